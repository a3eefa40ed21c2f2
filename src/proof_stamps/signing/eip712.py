"""EIP-712 signing documents for challenge and stamp credentials.

A signing document is the options object handed to the backend for
``EthereumEip712Signature2021`` proofs. It names the verification method
and carries the typed-data schema the credential is projected onto before
hashing. EIP-712 field names cannot start with ``@``, so the schema uses
``context`` wherever the credential uses ``@context``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

__all__ = [
    "EIP712_PROOF_TYPE",
    "challenge_signing_document",
    "stamp_signing_document",
    "typed_data_for",
]

EIP712_PROOF_TYPE = "EthereumEip712Signature2021"

_DOMAIN: dict[str, str] = {"name": "VerifiableCredential"}

_DOMAIN_FIELDS = [{"name": "name", "type": "string"}]

_DOCUMENT_FIELDS = [
    {"name": "context", "type": "string[]"},
    {"name": "credentialSubject", "type": "CredentialSubject"},
    {"name": "expirationDate", "type": "string"},
    {"name": "issuanceDate", "type": "string"},
    {"name": "issuer", "type": "string"},
    {"name": "type", "type": "string[]"},
]

_CHALLENGE_SCHEMA: dict[str, list[dict[str, str]]] = {
    "EIP712Domain": _DOMAIN_FIELDS,
    "Document": _DOCUMENT_FIELDS,
    "CredentialSubject": [
        {"name": "address", "type": "string"},
        {"name": "challenge", "type": "string"},
        {"name": "context", "type": "ChallengeContext"},
        {"name": "id", "type": "string"},
        {"name": "provider", "type": "string"},
    ],
    "ChallengeContext": [
        {"name": "address", "type": "string"},
        {"name": "challenge", "type": "string"},
        {"name": "provider", "type": "string"},
    ],
}

_STAMP_SCHEMA: dict[str, list[dict[str, str]]] = {
    "EIP712Domain": _DOMAIN_FIELDS,
    "Document": _DOCUMENT_FIELDS,
    "CredentialSubject": [
        {"name": "context", "type": "StampContext"},
        {"name": "hash", "type": "string"},
        {"name": "id", "type": "string"},
        {"name": "metaPointer", "type": "string"},
        {"name": "provider", "type": "string"},
    ],
    "StampContext": [
        {"name": "customInfo", "type": "string"},
        {"name": "hash", "type": "string"},
        {"name": "metaPointer", "type": "string"},
        {"name": "provider", "type": "string"},
    ],
}


def _signing_document(
    verification_method: str, schema: Mapping[str, list[dict[str, str]]]
) -> dict[str, Any]:
    return {
        "type": EIP712_PROOF_TYPE,
        "proofPurpose": "assertionMethod",
        "verificationMethod": verification_method,
        "eip712Domain": {
            "domain": dict(_DOMAIN),
            "primaryType": "Document",
            "messageSchema": {name: list(fields) for name, fields in schema.items()},
        },
    }


def challenge_signing_document(verification_method: str) -> dict[str, Any]:
    """Return the signing document used for challenge credentials."""

    return _signing_document(verification_method, _CHALLENGE_SCHEMA)


def stamp_signing_document(verification_method: str) -> dict[str, Any]:
    """Return the signing document used for stamp credentials."""

    return _signing_document(verification_method, _STAMP_SCHEMA)


def _source_key(field_name: str) -> str:
    return "@context" if field_name == "context" else field_name


def _project(
    data: Mapping[str, Any],
    type_name: str,
    types: Mapping[str, list[dict[str, str]]],
) -> dict[str, Any]:
    message: dict[str, Any] = {}
    for entry in types[type_name]:
        name, kind = entry["name"], entry["type"]
        raw = data.get(_source_key(name))
        if kind in types:
            nested = raw if isinstance(raw, Mapping) else {}
            message[name] = _project(nested, kind, types)
        elif kind == "string[]":
            message[name] = [str(item) for item in (raw or [])]
        elif kind == "string":
            message[name] = "" if raw is None else str(raw)
        else:
            raise ValueError(f"Unsupported EIP-712 field type '{kind}' for '{name}'")
    return message


def typed_data_for(
    document: Mapping[str, Any], eip712_domain: Mapping[str, Any]
) -> dict[str, Any]:
    """Project ``document`` onto the typed-data schema of ``eip712_domain``.

    Args:
        document: Credential without its ``proof``.
        eip712_domain: The ``eip712Domain`` entry of a signing document.

    Returns:
        A full EIP-712 message (``types``, ``primaryType``, ``domain`` and
        ``message``) accepted by :func:`eth_account.messages.encode_typed_data`.
    """

    types = eip712_domain["messageSchema"]
    primary_type = eip712_domain["primaryType"]
    return {
        "types": types,
        "primaryType": primary_type,
        "domain": dict(eip712_domain["domain"]),
        "message": _project(document, primary_type, types),
    }
