"""The two signature/encoding schemes credentials can be issued under."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Literal

from proof_stamps.signing.backend import SigningBackend
from proof_stamps.signing.eip712 import (
    challenge_signing_document,
    stamp_signing_document,
)
from proof_stamps.signing.local import ED25519_PROOF_TYPE

__all__ = [
    "CredentialKind",
    "EIP712_SIGNATURE_TYPE",
    "Ed25519Scheme",
    "Eip712Scheme",
    "STATUS_LIST_CONTEXT",
    "SignatureScheme",
    "select_scheme",
]

CredentialKind = Literal["challenge", "stamp"]

EIP712_SIGNATURE_TYPE = "EIP712"
STATUS_LIST_CONTEXT = "https://w3id.org/vc/status-list/2021/v1"

_TEXT = "https://schema.org/Text"
_URL = "https://schema.org/URL"
_THING = "https://schema.org/Thing"

_CHALLENGE_CONTEXT: dict[str, str] = {
    "provider": _TEXT,
    "challenge": _TEXT,
    "address": _TEXT,
}


@dataclass(frozen=True, slots=True)
class Ed25519Scheme:
    """Default scheme: ``did:key`` issuer and a flat document signature."""

    did_method: ClassVar[str] = "key"

    def proof_options(
        self, backend: SigningBackend, key: str, kind: CredentialKind
    ) -> dict[str, Any]:
        _ = kind
        return {
            "type": ED25519_PROOF_TYPE,
            "proofPurpose": "assertionMethod",
            "verificationMethod": backend.key_to_verification_method(
                self.did_method, key
            ),
        }

    def document_contexts(self, kind: CredentialKind) -> list[str]:
        _ = kind
        return []

    def challenge_context(self) -> dict[str, str]:
        return dict(_CHALLENGE_CONTEXT)

    def stamp_context(self, meta_pointer: str | None) -> dict[str, str]:
        context = {"hash": _TEXT, "provider": _TEXT}
        if meta_pointer:
            context["metaPointer"] = _URL
        return context

    def stamp_extras(self, meta_pointer: str | None) -> dict[str, Any]:
        return {"metaPointer": meta_pointer} if meta_pointer else {}


@dataclass(frozen=True, slots=True)
class Eip712Scheme:
    """``did:ethr`` issuer signing EIP-712 typed data."""

    did_method: ClassVar[str] = "ethr"

    def proof_options(
        self, backend: SigningBackend, key: str, kind: CredentialKind
    ) -> dict[str, Any]:
        verification_method = backend.key_to_verification_method(self.did_method, key)
        if kind == "challenge":
            return challenge_signing_document(verification_method)
        return stamp_signing_document(verification_method)

    def document_contexts(self, kind: CredentialKind) -> list[str]:
        return [STATUS_LIST_CONTEXT] if kind == "stamp" else []

    def challenge_context(self) -> dict[str, str]:
        return dict(_CHALLENGE_CONTEXT)

    def stamp_context(self, meta_pointer: str | None) -> dict[str, str]:
        _ = meta_pointer
        return {
            "customInfo": _THING,
            "hash": _TEXT,
            "metaPointer": _URL,
            "provider": _TEXT,
        }

    def stamp_extras(self, meta_pointer: str | None) -> dict[str, Any]:
        extras: dict[str, Any] = {"customInfo": {}}
        if meta_pointer:
            extras["metaPointer"] = meta_pointer
        return extras


SignatureScheme = Ed25519Scheme | Eip712Scheme


def select_scheme(signature_type: str | None) -> SignatureScheme:
    """Return the scheme named by ``signature_type``.

    ``"EIP712"`` selects :class:`Eip712Scheme`; anything else, including
    ``None``, selects the default :class:`Ed25519Scheme`.
    """

    if signature_type == EIP712_SIGNATURE_TYPE:
        return Eip712Scheme()
    return Ed25519Scheme()
