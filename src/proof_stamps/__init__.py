"""Proof Stamps - verifiable identity credentials backed by pluggable providers."""

from __future__ import annotations

from importlib import import_module
from typing import Any, TYPE_CHECKING

__all__ = [
    "LocalSigningBackend",
    "ProofStampsSettings",
    "Provider",
    "ProviderContext",
    "ProviderRegistry",
    "RequestPayload",
    "TimeBoundedCache",
    "VerifiableCredential",
    "VerificationPipeline",
    "VerifiedPayload",
    "fetch_verifiable_credential",
    "issue_challenge_credential",
    "issue_hashed_credential",
    "verify_credential",
]

if TYPE_CHECKING:
    from .cache import TimeBoundedCache
    from .client import fetch_verifiable_credential
    from .credentials import (
        issue_challenge_credential,
        issue_hashed_credential,
        verify_credential,
    )
    from .models import RequestPayload, VerifiableCredential, VerifiedPayload
    from .pipeline import VerificationPipeline
    from .providers import Provider, ProviderContext, ProviderRegistry
    from .settings import ProofStampsSettings
    from .signing import LocalSigningBackend


def __getattr__(name: str) -> Any:
    """Lazily import submodules so the signing stack loads only when used."""

    module_map = {
        "LocalSigningBackend": "signing",
        "ProofStampsSettings": "settings",
        "Provider": "providers",
        "ProviderContext": "providers",
        "ProviderRegistry": "providers",
        "RequestPayload": "models",
        "TimeBoundedCache": "cache",
        "VerifiableCredential": "models",
        "VerificationPipeline": "pipeline",
        "VerifiedPayload": "models",
        "fetch_verifiable_credential": "client",
        "issue_challenge_credential": "credentials",
        "issue_hashed_credential": "credentials",
        "verify_credential": "credentials",
    }

    if name not in module_map:
        raise AttributeError(name)

    module = import_module(f".{module_map[name]}", __name__)
    return getattr(module, name)
