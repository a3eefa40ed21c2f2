"""Contract for the DID / Verifiable Credential signing backend."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

__all__ = ["SigningBackend", "VerificationReport"]


@dataclass(frozen=True, slots=True)
class VerificationReport:
    """Outcome of a proof verification performed by a backend."""

    checks: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@runtime_checkable
class SigningBackend(Protocol):
    """Capability that turns key material into DIDs and signed credentials.

    ``method`` is a DID method name without the ``did:`` prefix (``"key"``
    or ``"ethr"``). Documents and options are plain JSON mappings.
    """

    def key_to_did(self, method: str, key: str) -> str:
        """Return the DID controlled by ``key`` under ``method``."""
        ...

    def key_to_verification_method(self, method: str, key: str) -> str:
        """Return the verification method URL for ``key`` under ``method``."""
        ...

    def issue_credential(
        self, document: Mapping[str, Any], options: Mapping[str, Any], key: str
    ) -> dict[str, Any]:
        """Return ``document`` with a ``proof`` produced according to ``options``."""
        ...

    def verify_credential(
        self, document: Mapping[str, Any], proof_options: Mapping[str, Any]
    ) -> VerificationReport:
        """Check the proof embedded in ``document``."""
        ...
