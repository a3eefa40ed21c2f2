"""Credential issuance, signature schemes and verification."""

from __future__ import annotations

from proof_stamps.credentials.issuer import (
    VC_CONTEXT,
    challenge_message,
    issue_challenge_credential,
    issue_credential,
    issue_hashed_credential,
    pkh_did,
)
from proof_stamps.credentials.schemes import (
    EIP712_SIGNATURE_TYPE,
    STATUS_LIST_CONTEXT,
    Ed25519Scheme,
    Eip712Scheme,
    SignatureScheme,
    select_scheme,
)
from proof_stamps.credentials.verifier import is_expired, verify_credential

__all__ = [
    "EIP712_SIGNATURE_TYPE",
    "STATUS_LIST_CONTEXT",
    "VC_CONTEXT",
    "Ed25519Scheme",
    "Eip712Scheme",
    "SignatureScheme",
    "challenge_message",
    "is_expired",
    "issue_challenge_credential",
    "issue_credential",
    "issue_hashed_credential",
    "pkh_did",
    "select_scheme",
    "verify_credential",
]
