"""
In-process signing backend for ``did:key`` and ``did:ethr`` credentials.

A single hex encoded 32-byte secret serves both DID methods:

- ``did:key``: the secret is an Ed25519 seed (``cryptography``). The DID is
  the multibase base58btc encoding of the multicodec-prefixed public key and
  proofs are ``Ed25519Signature2020`` signatures over the canonicalized
  document and proof options.
- ``did:ethr``: the secret is a secp256k1 private key (``eth-account``). Proofs
  are ``EthereumEip712Signature2021`` signatures over the typed-data
  projection described by the signing document.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

import base58
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from eth_account import Account
from eth_account.messages import encode_typed_data

from proof_stamps.canonical import canonicalize
from proof_stamps.models import format_timestamp
from proof_stamps.signing.backend import VerificationReport
from proof_stamps.signing.eip712 import EIP712_PROOF_TYPE, typed_data_for

__all__ = ["ED25519_PROOF_TYPE", "LocalSigningBackend"]

LOGGER = logging.getLogger(__name__)

ED25519_PROOF_TYPE = "Ed25519Signature2020"

# Multicodec prefix for an Ed25519 public key (0xed, varint encoded)
_ED25519_MULTICODEC = b"\xed\x01"


def _key_bytes(key: str) -> bytes:
    """Decode a hex key (optional ``0x`` prefix) into exactly 32 bytes."""

    raw = key[2:] if key[:2] in ("0x", "0X") else key
    try:
        data = bytes.fromhex(raw)
    except ValueError as exc:
        raise ValueError("signing key must be hex encoded") from exc
    if len(data) != 32:
        raise ValueError("signing key must be exactly 32 bytes")
    return data


def _signing_input(unsigned: Mapping[str, Any], proof: Mapping[str, Any]) -> bytes:
    proof_options = {k: v for k, v in proof.items() if k != "proofValue"}
    return canonicalize({"document": dict(unsigned), "proof": proof_options}).encode(
        "utf-8"
    )


def _without_proof(document: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in document.items() if k != "proof"}


class LocalSigningBackend:
    """Sign and verify credentials with keys held in process memory."""

    def key_to_did(self, method: str, key: str) -> str:
        """Return the DID controlled by ``key`` under ``method``."""

        if method == "key":
            return f"did:key:{self._ed25519_fingerprint(key)}"
        if method == "ethr":
            return f"did:ethr:{Account.from_key(_key_bytes(key)).address}"
        raise ValueError(f"Unsupported DID method '{method}'")

    def key_to_verification_method(self, method: str, key: str) -> str:
        """Return the verification method URL for ``key`` under ``method``."""

        did = self.key_to_did(method, key)
        if method == "key":
            return f"{did}#{did.removeprefix('did:key:')}"
        return f"{did}#controller"

    def issue_credential(
        self, document: Mapping[str, Any], options: Mapping[str, Any], key: str
    ) -> dict[str, Any]:
        """Return ``document`` with a proof of the type requested in ``options``."""

        proof_type = str(options.get("type", ED25519_PROOF_TYPE))
        unsigned = _without_proof(document)
        proof: dict[str, Any] = {
            "type": proof_type,
            "created": format_timestamp(datetime.now(timezone.utc)),
            "proofPurpose": options.get("proofPurpose", "assertionMethod"),
        }

        if proof_type == ED25519_PROOF_TYPE:
            proof["verificationMethod"] = options.get(
                "verificationMethod"
            ) or self.key_to_verification_method("key", key)
            private_key = Ed25519PrivateKey.from_private_bytes(_key_bytes(key))
            signature = private_key.sign(_signing_input(unsigned, proof))
            proof["proofValue"] = "z" + base58.b58encode(signature).decode("ascii")
        elif proof_type == EIP712_PROOF_TYPE:
            proof["verificationMethod"] = options.get(
                "verificationMethod"
            ) or self.key_to_verification_method("ethr", key)
            eip712_domain = options.get("eip712Domain")
            if not isinstance(eip712_domain, Mapping):
                raise ValueError("EIP-712 proofs require an 'eip712Domain' option")
            typed = typed_data_for(unsigned, eip712_domain)
            signed = Account.sign_message(
                encode_typed_data(full_message=typed), private_key=_key_bytes(key)
            )
            proof["proofValue"] = "0x" + bytes(signed.signature).hex()
            proof["eip712"] = dict(eip712_domain)
        else:
            raise ValueError(f"Unsupported proof type '{proof_type}'")

        return {**unsigned, "proof": proof}

    def verify_credential(
        self, document: Mapping[str, Any], proof_options: Mapping[str, Any]
    ) -> VerificationReport:
        """Check the proof embedded in ``document``.

        Returns:
            A report whose ``errors`` list is empty only when the proof is
            valid for the document issuer.
        """

        proof = document.get("proof")
        if not isinstance(proof, Mapping):
            return VerificationReport(errors=["No applicable proof"])

        checks: list[str] = []
        errors: list[str] = []

        purpose = proof_options.get("proofPurpose")
        if purpose and proof.get("proofPurpose") != purpose:
            errors.append("Proof purpose does not match")

        verification_method = str(proof.get("verificationMethod", ""))
        if verification_method.split("#", 1)[0] != document.get("issuer"):
            errors.append("Verification method is not controlled by the issuer")

        unsigned = _without_proof(document)
        proof_type = proof.get("type")
        try:
            if proof_type == ED25519_PROOF_TYPE:
                self._verify_ed25519(unsigned, proof, verification_method)
            elif proof_type == EIP712_PROOF_TYPE:
                self._verify_eip712(unsigned, proof, verification_method)
            else:
                errors.append(f"Unsupported proof type '{proof_type}'")
        except Exception as exc:
            LOGGER.debug(
                "Credential proof rejected",
                extra={"proof_type": proof_type, "error_type": type(exc).__name__},
            )
            errors.append(f"Invalid signature: {type(exc).__name__}")
        else:
            if not errors:
                checks.append("proof")

        return VerificationReport(checks=checks, errors=errors)

    def _ed25519_fingerprint(self, key: str) -> str:
        public_key = Ed25519PrivateKey.from_private_bytes(_key_bytes(key)).public_key()
        raw = public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return "z" + base58.b58encode(_ED25519_MULTICODEC + raw).decode("ascii")

    @staticmethod
    def _verify_ed25519(
        unsigned: Mapping[str, Any],
        proof: Mapping[str, Any],
        verification_method: str,
    ) -> None:
        fingerprint = verification_method.split("#", 1)[0].removeprefix("did:key:")
        if not fingerprint.startswith("z"):
            raise ValueError("did:key identifiers must use base58btc multibase")
        decoded = base58.b58decode(fingerprint[1:])
        if not decoded.startswith(_ED25519_MULTICODEC):
            raise ValueError("did:key does not encode an Ed25519 public key")
        public_key = Ed25519PublicKey.from_public_bytes(
            decoded[len(_ED25519_MULTICODEC) :]
        )

        proof_value = str(proof.get("proofValue", ""))
        if not proof_value.startswith("z"):
            raise ValueError("proofValue must use base58btc multibase")
        public_key.verify(
            base58.b58decode(proof_value[1:]), _signing_input(unsigned, proof)
        )

    @staticmethod
    def _verify_eip712(
        unsigned: Mapping[str, Any],
        proof: Mapping[str, Any],
        verification_method: str,
    ) -> None:
        eip712_domain = proof.get("eip712")
        if not isinstance(eip712_domain, Mapping):
            raise ValueError("EIP-712 proof is missing its typed-data schema")
        typed = typed_data_for(unsigned, eip712_domain)
        recovered = Account.recover_message(
            encode_typed_data(full_message=typed),
            signature=str(proof.get("proofValue", "")),
        )
        expected = verification_method.split("#", 1)[0].removeprefix("did:ethr:")
        if recovered.lower() != expected.lower():
            raise ValueError("Signature was not produced by the verification method")
