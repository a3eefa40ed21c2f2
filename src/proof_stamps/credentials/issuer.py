"""Issue challenge and stamp credentials."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError

from proof_stamps.canonical import versioned_record_hash
from proof_stamps.credentials.schemes import (
    CredentialKind,
    SignatureScheme,
    select_scheme,
)
from proof_stamps.errors import ConfigurationError, IssuanceError
from proof_stamps.models import (
    IssuedCredential,
    RequestPayload,
    VerifiableCredential,
    format_timestamp,
)
from proof_stamps.settings import (
    CHALLENGE_EXPIRES_AFTER_SECONDS,
    CREDENTIAL_EXPIRES_AFTER_SECONDS,
)
from proof_stamps.signing.backend import SigningBackend

__all__ = [
    "VC_CONTEXT",
    "challenge_message",
    "issue_challenge_credential",
    "issue_credential",
    "issue_hashed_credential",
    "pkh_did",
]

LOGGER = logging.getLogger(__name__)

VC_CONTEXT = "https://www.w3.org/2018/credentials/v1"


def pkh_did(address: str) -> str:
    """Return the mainnet ``did:pkh`` identifier for ``address``."""

    return f"did:pkh:eip155:1:{address}"


def challenge_message(provider_type: str, nonce: str) -> str:
    """Return the human-readable text a user signs to answer a challenge."""

    return (
        "I commit that this wallet is under my control and that I wish to "
        f"verify my {provider_type} account.\n\nnonce: {nonce}"
    )


def _resolve_expiration(
    issued_at: datetime,
    expires_in_seconds: float | None,
    expires_at: datetime | None,
) -> datetime:
    if expires_in_seconds is not None and expires_at is None:
        expiration = issued_at + timedelta(seconds=expires_in_seconds)
    elif expires_at is not None and expires_in_seconds is None:
        expiration = (
            expires_at.replace(tzinfo=timezone.utc)
            if expires_at.tzinfo is None
            else expires_at
        )
    else:
        raise ConfigurationError(
            "Exactly one of expires_in_seconds or expires_at must be supplied"
        )
    if expiration <= issued_at:
        raise ConfigurationError("A credential must expire after it is issued")
    return expiration


def issue_credential(
    backend: SigningBackend,
    key: str,
    fields: Mapping[str, Any],
    *,
    scheme: SignatureScheme,
    kind: CredentialKind,
    expires_in_seconds: float | None = None,
    expires_at: datetime | None = None,
    now: datetime | None = None,
) -> VerifiableCredential:
    """Build the credential envelope around ``fields`` and have it signed.

    Args:
        backend: Signing backend holding the DID/VC primitives.
        key: Issuer key material.
        fields: Top-level credential fields, usually ``credentialSubject``.
        scheme: Signature scheme the credential is issued under.
        kind: Whether a challenge or a stamp is being issued.
        expires_in_seconds: Lifetime relative to the issuance time.
        expires_at: Absolute expiration time.
        now: Issuance time; defaults to the current UTC time.

    Returns:
        The signed credential.

    Raises:
        ConfigurationError: If not exactly one expiration form is supplied.
        IssuanceError: If the backend fails or returns an unsigned document.
    """

    issued_at = now or datetime.now(timezone.utc)
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    expiration = _resolve_expiration(issued_at, expires_in_seconds, expires_at)

    try:
        issuer = backend.key_to_did(scheme.did_method, key)
        options = scheme.proof_options(backend, key, kind)
        document: dict[str, Any] = {
            "@context": [VC_CONTEXT, *scheme.document_contexts(kind)],
            "type": ["VerifiableCredential"],
            "issuer": issuer,
            "issuanceDate": format_timestamp(issued_at),
            "expirationDate": format_timestamp(expiration),
            **fields,
        }
        signed = backend.issue_credential(document, options, key)
    except Exception as exc:
        LOGGER.warning(
            "Signing backend failed to issue credential",
            extra={
                "credential_kind": kind,
                "did_method": scheme.did_method,
                "error_type": type(exc).__name__,
            },
            exc_info=exc,
        )
        raise IssuanceError(f"Unable to issue {kind} credential: {exc}") from exc

    if not isinstance(signed, Mapping) or not signed.get("proof"):
        raise IssuanceError(f"Signing backend returned an unsigned {kind} credential")
    try:
        return VerifiableCredential.model_validate(dict(signed))
    except ValidationError as exc:
        raise IssuanceError(
            f"Signing backend returned a malformed {kind} credential"
        ) from exc


def issue_challenge_credential(
    backend: SigningBackend,
    key: str,
    payload: RequestPayload,
    signature_type: str | None = None,
    *,
    nonce: str | None = None,
    now: datetime | None = None,
) -> IssuedCredential:
    """Issue a challenge credential valid for 60 seconds.

    The challenge text always embeds a server-side nonce: a fresh random one
    unless ``nonce`` is given. Any ``challenge`` carried by ``payload`` is
    ignored.
    """

    challenge = challenge_message(payload.type, nonce or secrets.token_hex(16))
    scheme = select_scheme(signature_type)
    credential = issue_credential(
        backend,
        key,
        {
            "credentialSubject": {
                "@context": scheme.challenge_context(),
                "id": pkh_did(payload.address),
                "provider": f"challenge-{payload.type}",
                "challenge": challenge,
                "address": payload.address,
            }
        },
        scheme=scheme,
        kind="challenge",
        expires_in_seconds=CHALLENGE_EXPIRES_AFTER_SECONDS,
        now=now,
    )
    return IssuedCredential(credential=credential)


def issue_hashed_credential(
    backend: SigningBackend,
    key: str,
    address: str,
    record: Mapping[str, Any],
    expires_in_seconds: float = CREDENTIAL_EXPIRES_AFTER_SECONDS,
    signature_type: str | None = None,
    meta_pointer: str | None = None,
    *,
    now: datetime | None = None,
) -> IssuedCredential:
    """Issue a stamp credential carrying a salted hash of ``record``.

    The hash is ``sha256(key || canonical(record))`` so the credential binds
    the verified facts without disclosing them. Raw evidence under the
    ``proofs`` entry is never hashed.

    Raises:
        ConfigurationError: If ``record`` has no ``type``.
        IssuanceError: If the signing backend fails.
    """

    provider = record.get("type")
    if not isinstance(provider, str) or not provider:
        raise ConfigurationError("A stamp record must name its provider 'type'")

    hashed = {k: v for k, v in record.items() if k != "proofs"}
    scheme = select_scheme(signature_type)
    credential = issue_credential(
        backend,
        key,
        {
            "credentialSubject": {
                "@context": scheme.stamp_context(meta_pointer),
                "id": pkh_did(address),
                "provider": provider,
                "hash": versioned_record_hash(key, hashed),
                **scheme.stamp_extras(meta_pointer),
            }
        },
        scheme=scheme,
        kind="stamp",
        expires_in_seconds=expires_in_seconds,
        now=now,
    )
    return IssuedCredential(credential=credential)
