"""Verify issued credentials before trusting them."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from proof_stamps.models import VerifiableCredential, parse_timestamp
from proof_stamps.signing.backend import SigningBackend

__all__ = ["is_expired", "verify_credential"]

LOGGER = logging.getLogger(__name__)


def is_expired(credential: VerifiableCredential, now: datetime | None = None) -> bool:
    """Return ``True`` once ``now`` has reached the credential's expiration.

    Unparsable expiration dates count as expired.
    """

    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    try:
        expiration = parse_timestamp(credential.expiration_date)
    except ValueError:
        return True
    return current >= expiration


def verify_credential(
    backend: SigningBackend,
    credential: VerifiableCredential | Mapping[str, Any],
    *,
    now: datetime | None = None,
) -> bool:
    """Return ``True`` when ``credential`` is unexpired and its proof checks out.

    Expired credentials are rejected without consulting the backend. Backend
    errors, including exceptions, are reported as ``False``; this function
    never raises.
    """

    try:
        vc = (
            credential
            if isinstance(credential, VerifiableCredential)
            else VerifiableCredential.model_validate(dict(credential))
        )
    except Exception:
        LOGGER.debug("Rejected malformed credential", exc_info=True)
        return False

    if is_expired(vc, now):
        LOGGER.debug(
            "Rejected expired credential",
            extra={"issuer": vc.issuer, "expiration_date": vc.expiration_date},
        )
        return False

    proof_purpose = (vc.proof or {}).get("proofPurpose")
    try:
        report = backend.verify_credential(
            vc.to_document(), {"proofPurpose": proof_purpose}
        )
    except Exception as exc:
        LOGGER.warning(
            "Signing backend raised during verification",
            extra={"issuer": vc.issuer, "error_type": type(exc).__name__},
            exc_info=exc,
        )
        return False

    errors = getattr(report, "errors", None)
    if errors is None and isinstance(report, Mapping):
        errors = report.get("errors")
    if errors is None:
        return False
    if errors:
        LOGGER.debug(
            "Credential proof rejected",
            extra={"issuer": vc.issuer, "errors": list(errors)},
        )
    return len(errors) == 0
