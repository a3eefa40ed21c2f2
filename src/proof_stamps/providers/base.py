"""Provider contract and the per-request provider context."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, ClassVar, TypeVar

from proof_stamps.models import RequestPayload, VerifiedPayload

__all__ = ["Provider", "ProviderContext"]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderContext:
    """Scratch space shared by every provider invoked for one request.

    Entries are namespaced by provider family (for example one family per
    external system) and keyed by a stable resource identifier. Each entry
    is written once: concurrent callers asking for the same key wait for the
    first lookup instead of repeating it. A failed lookup is not stored, so
    a later caller may try again.
    """

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, Any]] = {}
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    def get(self, family: str, key: str, default: Any = None) -> Any:
        """Return the stored entry for ``(family, key)`` or ``default``."""

        return self._entries.get(family, {}).get(key, default)

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, tuple) or len(item) != 2:
            return False
        family, key = item
        return key in self._entries.get(family, {})

    async def memoize(
        self, family: str, key: str, factory: Callable[[], Awaitable[T]]
    ) -> T:
        """Return the entry for ``(family, key)``, computing it at most once.

        Args:
            family: Namespace of the external system.
            key: Stable identifier of the external resource.
            factory: Coroutine factory performing the external lookup.

        Returns:
            The stored or freshly computed value.
        """

        entries = self._entries.setdefault(family, {})
        if key in entries:
            LOGGER.debug(
                "Provider context hit",
                extra={"family": family, "cache_event": "hit"},
            )
            return entries[key]

        lock = self._locks.setdefault((family, key), asyncio.Lock())
        async with lock:
            if key in entries:
                return entries[key]
            LOGGER.debug(
                "Provider context miss",
                extra={"family": family, "cache_event": "miss"},
            )
            value = await factory()
            entries[key] = value
            return value


class Provider(ABC):
    """A verification strategy selected by its ``type`` tag.

    Subclasses declare ``type`` and optional ``default_options``; options
    passed to the constructor are merged over the defaults.
    """

    type: ClassVar[str]
    default_options: ClassVar[Mapping[str, Any]] = {}

    def __init__(self, options: Mapping[str, Any] | None = None) -> None:
        self._options: dict[str, Any] = {**self.default_options, **(options or {})}

    @property
    def options(self) -> Mapping[str, Any]:
        return dict(self._options)

    @abstractmethod
    async def verify(
        self, payload: RequestPayload, context: ProviderContext
    ) -> VerifiedPayload:
        """Decide whether ``payload`` can be substantiated."""
