"""Client side of the challenge/verify exchange with the issuing service."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx
from eth_account import Account
from eth_account.messages import encode_defunct
from pydantic import ValidationError

from proof_stamps.errors import ConfigurationError, SigningError, TransportError
from proof_stamps.models import (
    CredentialResponseBody,
    IssuedChallenge,
    RequestPayload,
    VerifiableCredential,
    VerifiableCredentialRecord,
)
from proof_stamps.settings import DEFAULT_HTTP_TIMEOUT, get_settings

__all__ = [
    "LocalAccountSigner",
    "MessageSigner",
    "fetch_challenge_credential",
    "fetch_verifiable_credential",
]

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class MessageSigner(Protocol):
    """Anything able to sign the challenge text on behalf of the user."""

    async def sign_message(self, message: str) -> str: ...


class LocalAccountSigner:
    """Sign challenges as an EIP-191 personal message with a local key."""

    def __init__(self, private_key: str) -> None:
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_message(self, message: str) -> str:
        signed = self._account.sign_message(encode_defunct(text=message))
        return "0x" + bytes(signed.signature).hex()


def _endpoint(service_url: str | None, version: str, action: str) -> str:
    base = service_url or get_settings().iam_url
    if not base:
        raise ConfigurationError(
            "No issuing service URL given and IAM_URL is not configured"
        )
    return f"{base.rstrip('/')}/v{version}/{action}"


async def _post(
    client: httpx.AsyncClient | None, url: str, body: dict[str, Any]
) -> Any:
    try:
        if client is not None:
            response = await client.post(url, json=body)
            response.raise_for_status()
            return response.json()
        async with httpx.AsyncClient(timeout=DEFAULT_HTTP_TIMEOUT) as owned:
            response = await owned.post(url, json=body)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPStatusError as exc:
        LOGGER.warning(
            "Issuing service HTTP error",
            extra={"status_code": exc.response.status_code, "url": url},
        )
        raise TransportError(f"{url} returned HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        LOGGER.warning(
            "Issuing service transport error", extra={"url": url}, exc_info=exc
        )
        raise TransportError(f"Unable to reach {url}: {type(exc).__name__}") from exc
    except ValueError as exc:
        raise TransportError(f"{url} returned a non-JSON response") from exc


async def fetch_challenge_credential(
    service_url: str | None,
    payload: RequestPayload,
    *,
    client: httpx.AsyncClient | None = None,
) -> IssuedChallenge:
    """Ask the issuing service for a short-lived challenge credential.

    ``service_url`` falls back to the configured ``IAM_URL`` when ``None``.

    Raises:
        ConfigurationError: If no service URL is available.
        TransportError: If the service cannot be reached or answers badly.
    """

    url = _endpoint(service_url, payload.version, "challenge")
    body = payload.model_dump(
        mode="json",
        by_alias=True,
        exclude_none=True,
        include={"address", "type", "signer", "signature_type"},
    )
    data = await _post(client, url, {"payload": body})
    try:
        return IssuedChallenge(
            challenge=VerifiableCredential.model_validate(data["credential"])
        )
    except (KeyError, TypeError, ValidationError) as exc:
        raise TransportError(f"{url} returned no challenge credential") from exc


async def fetch_verifiable_credential(
    service_url: str | None,
    payload: RequestPayload,
    signer: MessageSigner | None,
    *,
    client: httpx.AsyncClient | None = None,
) -> VerifiableCredentialRecord:
    """Run the full exchange: fetch a challenge, sign it, submit it.

    Args:
        service_url: Base URL of the issuing service, or ``None`` to use the
            configured ``IAM_URL``.
        payload: Request naming the address and provider type(s).
        signer: Signs the challenge text for ``payload.address``.
        client: Optional shared HTTP client.

    Returns:
        The signature, challenge and issued credential(s). Batch requests
        populate ``credentials``; single requests populate ``record``,
        ``credential`` and ``error``.

    Raises:
        ConfigurationError: If no signer or service URL is available.
        SigningError: If the challenge carries no text to sign, or signing
            fails or yields an empty signature.
        TransportError: If either request fails.
    """

    if signer is None:
        raise ConfigurationError("Unable to sign message without a signer")

    issued = await fetch_challenge_credential(service_url, payload, client=client)
    challenge = issued.challenge
    message = challenge.credential_subject.get("challenge")
    if not isinstance(message, str) or not message:
        raise SigningError(
            "Unable to sign message: challenge credential carries no challenge text"
        )

    try:
        signature = await signer.sign_message(message)
    except Exception as exc:
        raise SigningError(f"Unable to sign challenge: {exc}") from exc
    if not signature:
        raise SigningError("Signer returned an empty signature")

    signed_payload = payload.with_proofs(signature=str(signature))
    url = _endpoint(service_url, payload.version, "verify")
    data = await _post(
        client,
        url,
        {"payload": signed_payload.to_wire(), "challenge": challenge.to_document()},
    )

    try:
        if isinstance(data, list):
            return VerifiableCredentialRecord(
                signature=str(signature),
                challenge=challenge,
                credentials=[
                    CredentialResponseBody.model_validate(item) for item in data
                ],
            )
        body = CredentialResponseBody.model_validate(data)
    except ValidationError as exc:
        raise TransportError(f"{url} returned a malformed response") from exc
    return VerifiableCredentialRecord(
        signature=str(signature),
        challenge=challenge,
        error=body.error,
        record=body.record,
        credential=body.credential,
    )
