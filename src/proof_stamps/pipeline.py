"""Server-side orchestration of the challenge and verify requests."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime

from eth_account import Account
from eth_account.messages import encode_defunct

from proof_stamps.credentials.issuer import (
    issue_challenge_credential,
    issue_hashed_credential,
)
from proof_stamps.credentials.verifier import verify_credential
from proof_stamps.errors import ConfigurationError
from proof_stamps.models import (
    CredentialResponseBody,
    IssuedCredential,
    RequestPayload,
    VerifiableCredential,
)
from proof_stamps.providers.base import ProviderContext
from proof_stamps.providers.registry import ProviderRegistry
from proof_stamps.settings import CREDENTIAL_EXPIRES_AFTER_SECONDS, ProofStampsSettings
from proof_stamps.signing.backend import SigningBackend
from proof_stamps.signing.local import LocalSigningBackend

__all__ = ["UNAUTHORIZED", "FORBIDDEN", "VerificationPipeline", "VerifyResponse"]

LOGGER = logging.getLogger(__name__)

UNAUTHORIZED = 401
FORBIDDEN = 403

VerifyResponse = CredentialResponseBody | list[CredentialResponseBody]


class VerificationPipeline:
    """Issue challenges and turn answered challenges into stamp credentials.

    Args:
        backend: Signing backend used to issue and verify credentials.
        registry: Providers available to verify requests.
        signing_key: Issuer key material.
        credential_ttl_seconds: Lifetime of issued stamps.
        signature_type: Default scheme; a payload ``signatureType`` wins.
        meta_pointers: Optional ``metaPointer`` URL per provider type.
    """

    def __init__(
        self,
        backend: SigningBackend,
        registry: ProviderRegistry,
        signing_key: str,
        *,
        credential_ttl_seconds: int = CREDENTIAL_EXPIRES_AFTER_SECONDS,
        signature_type: str | None = None,
        meta_pointers: Mapping[str, str] | None = None,
    ) -> None:
        if not signing_key:
            raise ConfigurationError("A signing key is required to issue credentials")
        self._backend = backend
        self._registry = registry
        self._key = signing_key
        self._ttl = credential_ttl_seconds
        self._signature_type = signature_type
        self._meta_pointers = dict(meta_pointers or {})

    @classmethod
    def from_settings(
        cls,
        settings: ProofStampsSettings,
        registry: ProviderRegistry,
        backend: SigningBackend | None = None,
        *,
        meta_pointers: Mapping[str, str] | None = None,
    ) -> VerificationPipeline:
        """Build a pipeline from environment settings.

        Raises:
            ConfigurationError: If ``IAM_SIGNING_KEY`` is not set.
        """

        if not settings.signing_key:
            raise ConfigurationError("IAM_SIGNING_KEY is not configured")
        return cls(
            backend or LocalSigningBackend(),
            registry,
            settings.signing_key,
            credential_ttl_seconds=settings.credential_ttl_seconds,
            signature_type=settings.signature_type,
            meta_pointers=meta_pointers,
        )

    def _scheme_for(self, payload: RequestPayload) -> str | None:
        return payload.signature_type or self._signature_type

    def issue_challenge(
        self, payload: RequestPayload, *, now: datetime | None = None
    ) -> IssuedCredential:
        """Issue the challenge credential answering ``payload``."""

        # The challenge text is always chosen here, never by the client
        return issue_challenge_credential(
            self._backend,
            self._key,
            payload.model_copy(update={"challenge": None}),
            self._scheme_for(payload),
            now=now,
        )

    def _challenge_error(
        self,
        payload: RequestPayload,
        challenge: VerifiableCredential,
        now: datetime | None,
    ) -> str | None:
        if not verify_credential(self._backend, challenge, now=now):
            return "Unable to verify challenge credential"

        subject = challenge.credential_subject
        if str(subject.get("address", "")).lower() != payload.address.lower():
            return "Challenge was issued to a different address"
        if subject.get("provider") != f"challenge-{payload.type}":
            return "Challenge was issued for a different provider"

        signature = payload.proofs.get("signature")
        if not signature:
            return "Missing challenge signature"
        try:
            signer = Account.recover_message(
                encode_defunct(text=str(subject.get("challenge", ""))),
                signature=signature,
            )
        except Exception as exc:
            LOGGER.warning(
                "Unable to recover challenge signer",
                extra={"provider": payload.type, "error_type": type(exc).__name__},
            )
            return "Invalid challenge signature"
        if signer.lower() != payload.address.lower():
            return "Challenge signature does not match the address"
        return None

    async def verify(
        self,
        payload: RequestPayload,
        challenge: VerifiableCredential,
        *,
        now: datetime | None = None,
    ) -> VerifyResponse:
        """Check the answered challenge, run the providers and issue stamps.

        Returns:
            One response body for a single-type request, otherwise a list with
            one body per requested type.

        Raises:
            IssuanceError: If signing a stamp fails.
        """

        requested = payload.requested_types()
        batch = payload.types is not None

        error = self._challenge_error(payload, challenge, now)
        if error is not None:
            LOGGER.info(
                "Rejected verify request",
                extra={"provider": payload.type, "reason": error},
            )
            body = CredentialResponseBody(error=error, code=UNAUTHORIZED)
            return [body] * len(dict.fromkeys(requested)) if batch else body

        verdicts = await self._registry.verify(requested, payload, ProviderContext())

        bodies: list[CredentialResponseBody] = []
        for provider_type, verdict in verdicts.items():
            if not verdict.valid:
                message = "; ".join(verdict.errors) or (
                    f"Unable to verify proofs for '{provider_type}'"
                )
                bodies.append(CredentialResponseBody(error=message, code=FORBIDDEN))
                continue

            record = {
                "type": provider_type,
                "version": payload.version,
                "address": payload.address.lower(),
                **verdict.record,
            }
            issued = issue_hashed_credential(
                self._backend,
                self._key,
                payload.address,
                record,
                self._ttl,
                self._scheme_for(payload),
                self._meta_pointers.get(provider_type),
                now=now,
            )
            bodies.append(
                CredentialResponseBody(record=record, credential=issued.credential)
            )

        LOGGER.info(
            "Verify request completed",
            extra={
                "provider": payload.type,
                "requested": len(requested),
                "issued": sum(1 for body in bodies if body.credential is not None),
            },
        )
        return bodies if batch else bodies[0]
