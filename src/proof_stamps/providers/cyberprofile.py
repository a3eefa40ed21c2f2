"""CyberProfile handle-length providers."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, ClassVar, Final, Protocol

import httpx
from eth_abi import decode, encode
from eth_utils import (
    decode_hex,
    function_signature_to_4byte_selector,
    to_checksum_address,
)

from proof_stamps.errors import ProviderExternalVerificationError
from proof_stamps.models import RequestPayload, VerifiedPayload
from proof_stamps.providers.base import Provider, ProviderContext
from proof_stamps.settings import ProofStampsSettings, get_settings

__all__ = [
    "CYBERPROFILE_PROXY_CONTRACT_ADDRESS",
    "ContractHandleResolver",
    "CyberProfilePaidProvider",
    "CyberProfilePremiumProvider",
    "HandleResolver",
    "get_primary_handle",
]

LOGGER = logging.getLogger(__name__)

CYBERPROFILE_PROXY_CONTRACT_ADDRESS: Final[str] = (
    "0x2723522702093601e6360CAe665518C4f63e9dA6"
)
CONTEXT_FAMILY: Final[str] = "cyberConnect"

_GET_PRIMARY_PROFILE = function_signature_to_4byte_selector(
    "getPrimaryProfile(address)"
)
_GET_HANDLE_BY_PROFILE_ID = function_signature_to_4byte_selector(
    "getHandleByProfileId(uint256)"
)


class HandleResolver(Protocol):
    """Look up the primary CyberProfile handle of an address."""

    async def primary_handle(self, address: str) -> str:
        """Return the handle, or ``""`` when the address has no primary profile."""
        ...


class ContractHandleResolver:
    """Read primary handles from the CyberProfile proxy contract over JSON-RPC."""

    def __init__(
        self,
        rpc_url: str | None = None,
        contract_address: str = CYBERPROFILE_PROXY_CONTRACT_ADDRESS,
        *,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
        settings: ProofStampsSettings | None = None,
    ) -> None:
        settings_obj = settings or get_settings()
        self._rpc_url = rpc_url or settings_obj.bsc_rpc_url
        self._contract = contract_address
        self._timeout = timeout_seconds or settings_obj.http_timeout
        self._client = client

    async def primary_handle(self, address: str) -> str:
        """Return the primary handle of ``address`` (``""`` when none is set).

        Raises:
            ProviderExternalVerificationError: If the RPC call fails.
        """

        if self._client is not None:
            return await self._lookup(self._client, address)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._lookup(client, address)

    async def _lookup(self, client: httpx.AsyncClient, address: str) -> str:
        (profile_id,) = decode(
            ["uint256"],
            await self._eth_call(
                client,
                _GET_PRIMARY_PROFILE
                + encode(["address"], [to_checksum_address(address)]),
            ),
        )
        if profile_id == 0:
            return ""
        (handle,) = decode(
            ["string"],
            await self._eth_call(
                client, _GET_HANDLE_BY_PROFILE_ID + encode(["uint256"], [profile_id])
            ),
        )
        return str(handle)

    async def _eth_call(self, client: httpx.AsyncClient, data: bytes) -> bytes:
        body = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_call",
            "params": [{"to": self._contract, "data": "0x" + data.hex()}, "latest"],
        }
        try:
            response = await client.post(self._rpc_url, json=body)
            response.raise_for_status()
            payload: Any = response.json()
        except httpx.HTTPStatusError as exc:
            LOGGER.warning(
                "CyberProfile RPC HTTP error",
                extra={
                    "status_code": exc.response.status_code,
                    "url": self._rpc_url,
                },
            )
            raise ProviderExternalVerificationError(
                f"CyberProfile RPC returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            LOGGER.warning(
                "CyberProfile RPC transport error",
                extra={"url": self._rpc_url},
                exc_info=exc,
            )
            raise ProviderExternalVerificationError(
                "CyberProfile RPC is unreachable"
            ) from exc
        except ValueError as exc:
            raise ProviderExternalVerificationError(
                "CyberProfile RPC returned a non-JSON response"
            ) from exc

        if not isinstance(payload, Mapping) or "error" in payload:
            raise ProviderExternalVerificationError("CyberProfile RPC call failed")
        result = payload.get("result")
        if not isinstance(result, str):
            raise ProviderExternalVerificationError(
                "CyberProfile RPC returned no result"
            )
        return decode_hex(result)


async def get_primary_handle(
    address: str, context: ProviderContext, resolver: HandleResolver
) -> str:
    """Return the primary handle of ``address``, resolved once per request."""

    normalized = address.lower()
    return await context.memoize(
        CONTEXT_FAMILY, normalized, lambda: resolver.primary_handle(normalized)
    )


class _CyberProfileHandleProvider(Provider):
    """Valid when the primary handle length lies in ``(min_length, max_length]``."""

    min_length: ClassVar[int]
    max_length: ClassVar[int]

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        *,
        resolver: HandleResolver | None = None,
    ) -> None:
        super().__init__(options)
        self._resolver = resolver or ContractHandleResolver()

    async def verify(
        self, payload: RequestPayload, context: ProviderContext
    ) -> VerifiedPayload:
        try:
            handle = await get_primary_handle(payload.address, context, self._resolver)
        except Exception as exc:
            LOGGER.warning(
                "CyberProfile handle lookup failed",
                extra={"provider": self.type, "error_type": type(exc).__name__},
            )
            return VerifiedPayload.failure(
                "CyberProfile provider get user primary handle error"
            )

        if self.min_length < len(handle) <= self.max_length:
            return VerifiedPayload(valid=True, record={"userHandle": handle})
        return VerifiedPayload.failure(
            f"Primary handle length {len(handle)} is outside "
            f"({self.min_length}, {self.max_length}]"
        )


class CyberProfilePremiumProvider(_CyberProfileHandleProvider):
    """Primary handle of 1 to 6 characters."""

    type: ClassVar[str] = "CyberProfilePremium"
    min_length = 0
    max_length = 6


class CyberProfilePaidProvider(_CyberProfileHandleProvider):
    """Primary handle of 7 to 12 characters."""

    type: ClassVar[str] = "CyberProfilePaid"
    min_length = 6
    max_length = 12
