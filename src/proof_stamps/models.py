"""Pydantic models describing the proof-stamps wire format."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "CredentialResponseBody",
    "IssuedChallenge",
    "IssuedCredential",
    "RequestPayload",
    "VerifiableCredential",
    "VerifiableCredentialRecord",
    "VerifiedPayload",
    "format_timestamp",
    "parse_timestamp",
]


def format_timestamp(moment: datetime) -> str:
    """Render ``moment`` as UTC ISO-8601 with milliseconds and a ``Z`` suffix."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is present.

    Raises:
        ValueError: If ``value`` is not a valid timestamp.
    """

    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class WireModel(BaseModel):
    """Base model accepting both snake_case names and camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        """Return a JSON-ready payload using wire names, ``None`` values removed."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RequestPayload(WireModel):
    """Identifies the subject address, provider type(s) and supplied evidence."""

    address: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    version: str = "0.0.0"
    signer: dict[str, str] | None = None
    signature_type: str | None = Field(default=None, alias="signatureType")
    proofs: dict[str, str] = Field(default_factory=dict)
    types: list[str] | None = None
    challenge: str | None = None

    def with_proofs(self, **proofs: str) -> RequestPayload:
        """Return a copy of the payload with ``proofs`` merged into its proofs."""

        return self.model_copy(update={"proofs": {**self.proofs, **proofs}})

    def requested_types(self) -> list[str]:
        """Return the provider types targeted by this request."""

        return list(self.types) if self.types else [self.type]


class VerifiedPayload(WireModel):
    """Verdict returned by a provider."""

    valid: bool
    record: dict[str, str] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def failure(cls, *errors: str) -> VerifiedPayload:
        """Build an invalid verdict carrying ``errors`` and an empty record."""

        return cls(valid=False, record={}, errors=list(errors))


class VerifiableCredential(WireModel):
    """W3C Verifiable Credential envelope."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    context: list[str | dict[str, Any]] = Field(..., alias="@context")
    type: list[str]
    issuer: str
    issuance_date: str = Field(..., alias="issuanceDate")
    expiration_date: str = Field(..., alias="expirationDate")
    credential_subject: dict[str, Any] = Field(..., alias="credentialSubject")
    proof: dict[str, Any] | None = None

    def to_document(self) -> dict[str, Any]:
        """Return the credential as a plain JSON document."""

        document = self.model_dump(mode="json", by_alias=True)
        if document.get("proof") is None:
            document.pop("proof", None)
        return document

    def to_wire(self) -> dict[str, Any]:
        return self.to_document()


class IssuedCredential(WireModel):
    """Response of the issuer for a single credential."""

    credential: VerifiableCredential


class IssuedChallenge(WireModel):
    """Challenge credential returned to the client flow."""

    challenge: VerifiableCredential


class CredentialResponseBody(WireModel):
    """One entry of a verify endpoint response."""

    record: dict[str, str] | None = None
    credential: VerifiableCredential | None = None
    error: str | None = None
    code: int | None = None


class VerifiableCredentialRecord(WireModel):
    """Everything used to obtain a credential, normalized across batch sizes."""

    signature: str
    challenge: VerifiableCredential
    error: str | None = None
    record: dict[str, str] | None = None
    credential: VerifiableCredential | None = None
    credentials: list[CredentialResponseBody] | None = None
