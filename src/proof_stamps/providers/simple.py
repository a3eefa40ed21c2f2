"""Example provider checking a flag in the supplied proofs."""

from __future__ import annotations

from typing import Any, ClassVar

from proof_stamps.models import RequestPayload, VerifiedPayload
from proof_stamps.providers.base import Provider, ProviderContext

__all__ = ["SimpleProvider", "verify_simple_provider"]


class SimpleProvider(Provider):
    """Valid when ``proofs.valid`` equals the configured ``valid`` option."""

    type: ClassVar[str] = "Simple"
    default_options: ClassVar[dict[str, Any]] = {"valid": "true"}

    async def verify(
        self, payload: RequestPayload, context: ProviderContext
    ) -> VerifiedPayload:
        _ = context
        return verify_simple_provider(payload, expected=str(self._options["valid"]))


def verify_simple_provider(
    payload: RequestPayload, expected: str = "true"
) -> VerifiedPayload:
    """Evaluate ``payload`` for :class:`SimpleProvider`."""

    if payload.proofs.get("valid") != expected:
        return VerifiedPayload.failure("Proof is not valid")
    return VerifiedPayload(
        valid=True,
        record={"username": payload.proofs.get("username", "")},
    )
