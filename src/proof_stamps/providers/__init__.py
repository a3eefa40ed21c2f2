"""Provider contract, registry and bundled providers."""

from __future__ import annotations

from proof_stamps.providers.base import Provider, ProviderContext
from proof_stamps.providers.cyberprofile import (
    ContractHandleResolver,
    CyberProfilePaidProvider,
    CyberProfilePremiumProvider,
    HandleResolver,
    get_primary_handle,
)
from proof_stamps.providers.registry import ProviderRegistry
from proof_stamps.providers.simple import SimpleProvider, verify_simple_provider

__all__ = [
    "ContractHandleResolver",
    "CyberProfilePaidProvider",
    "CyberProfilePremiumProvider",
    "HandleResolver",
    "Provider",
    "ProviderContext",
    "ProviderRegistry",
    "SimpleProvider",
    "get_primary_handle",
    "verify_simple_provider",
]
