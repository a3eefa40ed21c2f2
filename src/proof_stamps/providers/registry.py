"""Dispatch verification requests to providers by type tag."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence

from proof_stamps.errors import ProviderVerificationError
from proof_stamps.models import RequestPayload, VerifiedPayload
from proof_stamps.providers.base import Provider, ProviderContext

__all__ = ["ProviderRegistry"]

LOGGER = logging.getLogger(__name__)


class ProviderRegistry:
    """Hold providers keyed by ``type`` and run them for a request."""

    def __init__(self, providers: Iterable[Provider] = ()) -> None:
        self._providers: dict[str, Provider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: Provider) -> None:
        """Add ``provider``; registering a type twice is an error."""

        if provider.type in self._providers:
            raise ValueError(f"Provider type '{provider.type}' is already registered")
        self._providers[provider.type] = provider

    def get(self, provider_type: str) -> Provider | None:
        return self._providers.get(provider_type)

    @property
    def types(self) -> tuple[str, ...]:
        return tuple(self._providers)

    def __contains__(self, provider_type: object) -> bool:
        return provider_type in self._providers

    async def verify(
        self,
        types: Sequence[str],
        payload: RequestPayload,
        context: ProviderContext | None = None,
    ) -> dict[str, VerifiedPayload]:
        """Run the providers named in ``types`` against ``payload``.

        All providers share one :class:`ProviderContext` and run
        concurrently. A provider that raises or is not registered yields an
        invalid verdict without affecting the others.

        Returns:
            One verdict per distinct requested type.
        """

        shared = context if context is not None else ProviderContext()
        requested = list(dict.fromkeys(types))
        verdicts = await asyncio.gather(
            *(self._verify_one(name, payload, shared) for name in requested)
        )
        return dict(zip(requested, verdicts))

    async def _verify_one(
        self, provider_type: str, payload: RequestPayload, context: ProviderContext
    ) -> VerifiedPayload:
        provider = self._providers.get(provider_type)
        if provider is None:
            LOGGER.warning(
                "No provider registered for type",
                extra={"provider": provider_type},
            )
            return VerifiedPayload.failure(
                f"No provider registered for type '{provider_type}'"
            )

        try:
            verdict = await provider.verify(payload, context)
        except ProviderVerificationError as exc:
            LOGGER.warning(
                "Provider verification failed",
                extra={"provider": provider_type, "error_type": type(exc).__name__},
            )
            return VerifiedPayload.failure(str(exc))
        except Exception as exc:
            LOGGER.warning(
                "Provider raised unexpectedly",
                extra={"provider": provider_type, "error_type": type(exc).__name__},
                exc_info=exc,
            )
            return VerifiedPayload.failure(
                f"Unable to verify '{provider_type}': {type(exc).__name__}"
            )

        if not verdict.valid and verdict.record:
            return verdict.model_copy(update={"record": {}})
        return verdict
