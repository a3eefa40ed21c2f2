"""Signing backend contract, EIP-712 documents and the local backend."""

from __future__ import annotations

from proof_stamps.signing.backend import SigningBackend, VerificationReport
from proof_stamps.signing.eip712 import (
    EIP712_PROOF_TYPE,
    challenge_signing_document,
    stamp_signing_document,
    typed_data_for,
)
from proof_stamps.signing.local import ED25519_PROOF_TYPE, LocalSigningBackend

__all__ = [
    "ED25519_PROOF_TYPE",
    "EIP712_PROOF_TYPE",
    "LocalSigningBackend",
    "SigningBackend",
    "VerificationReport",
    "challenge_signing_document",
    "stamp_signing_document",
    "typed_data_for",
]
