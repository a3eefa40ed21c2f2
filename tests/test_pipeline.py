"""End-to-end tests for the challenge/verify pipeline."""

from __future__ import annotations

from datetime import timedelta

import pytest

from proof_stamps.canonical import versioned_record_hash
from proof_stamps.client import LocalAccountSigner
from proof_stamps.credentials.verifier import verify_credential
from proof_stamps.errors import ConfigurationError
from proof_stamps.models import CredentialResponseBody, RequestPayload, parse_timestamp
from proof_stamps.pipeline import VerificationPipeline
from proof_stamps.providers import (
    CyberProfilePremiumProvider,
    ProviderRegistry,
    SimpleProvider,
)
from proof_stamps.settings import ProofStampsSettings

USER_KEY = "0x" + "22" * 32
OTHER_KEY = "0x" + "44" * 32


class CountingResolver:
    def __init__(self, handle: str) -> None:
        self.handle = handle
        self.calls = 0

    async def primary_handle(self, address: str) -> str:
        self.calls += 1
        return self.handle


@pytest.fixture
def user() -> LocalAccountSigner:
    return LocalAccountSigner(USER_KEY)


@pytest.fixture
def resolver() -> CountingResolver:
    return CountingResolver("abcd")


@pytest.fixture
def pipeline(backend, issuer_key, resolver) -> VerificationPipeline:
    registry = ProviderRegistry(
        [SimpleProvider(), CyberProfilePremiumProvider(resolver=resolver)]
    )
    return VerificationPipeline(
        backend,
        registry,
        issuer_key,
        meta_pointers={"Simple": "https://example.org/stamps/simple"},
    )


async def _answer(pipeline, payload, signer, **kwargs):  # type: ignore[no-untyped-def]
    challenge = pipeline.issue_challenge(payload).credential
    signature = await signer.sign_message(challenge.credential_subject["challenge"])
    return await pipeline.verify(
        payload.with_proofs(signature=signature), challenge, **kwargs
    )


@pytest.mark.asyncio
async def test_single_request_issues_stamp(pipeline, backend, issuer_key, user) -> None:
    payload = RequestPayload(
        address=user.address,
        type="Simple",
        proofs={"valid": "true", "username": "alice"},
    )

    body = await _answer(pipeline, payload, user)

    assert isinstance(body, CredentialResponseBody)
    assert body.error is None
    assert body.record == {
        "type": "Simple",
        "version": "0.0.0",
        "address": user.address.lower(),
        "username": "alice",
    }
    subject = body.credential.credential_subject
    assert subject["hash"] == versioned_record_hash(issuer_key, body.record)
    assert subject["metaPointer"] == "https://example.org/stamps/simple"
    assert verify_credential(backend, body.credential) is True


@pytest.mark.asyncio
async def test_eip712_request(pipeline, backend, user) -> None:
    payload = RequestPayload(
        address=user.address,
        type="Simple",
        signature_type="EIP712",
        proofs={"valid": "true"},
    )

    body = await _answer(pipeline, payload, user)

    assert body.credential.issuer.startswith("did:ethr:")
    assert verify_credential(backend, body.credential) is True


@pytest.mark.asyncio
async def test_batch_request_returns_one_body_per_type(
    pipeline, user, resolver
) -> None:
    payload = RequestPayload(
        address=user.address,
        type="Bulk",
        types=["Simple", "CyberProfilePremium"],
        proofs={"valid": "false"},
    )

    bodies = await _answer(pipeline, payload, user)

    assert isinstance(bodies, list)
    by_code = {body.code: body for body in bodies}
    assert by_code[403].error == "Proof is not valid"
    assert by_code[None].record["userHandle"] == "abcd"
    assert resolver.calls == 1


@pytest.mark.asyncio
async def test_signature_from_another_wallet_is_rejected(pipeline, user) -> None:
    payload = RequestPayload(
        address=user.address, type="Simple", proofs={"valid": "true"}
    )

    body = await _answer(pipeline, payload, LocalAccountSigner(OTHER_KEY))

    assert body.code == 401
    assert body.credential is None


@pytest.mark.asyncio
async def test_missing_signature_is_rejected(pipeline, user) -> None:
    payload = RequestPayload(
        address=user.address, type="Simple", proofs={"valid": "true"}
    )
    challenge = pipeline.issue_challenge(payload).credential

    body = await pipeline.verify(payload, challenge)

    assert body.code == 401
    assert body.error == "Missing challenge signature"


@pytest.mark.asyncio
async def test_expired_challenge_is_rejected(pipeline, user) -> None:
    payload = RequestPayload(
        address=user.address, type="Simple", proofs={"valid": "true"}
    )
    challenge = pipeline.issue_challenge(payload).credential
    signature = await user.sign_message(challenge.credential_subject["challenge"])
    later = parse_timestamp(challenge.expiration_date) + timedelta(seconds=1)

    body = await pipeline.verify(
        payload.with_proofs(signature=signature), challenge, now=later
    )

    assert body.code == 401
    assert body.error == "Unable to verify challenge credential"


@pytest.mark.asyncio
async def test_challenge_for_other_provider_is_rejected(pipeline, user) -> None:
    issued_for = RequestPayload(address=user.address, type="Other")
    challenge = pipeline.issue_challenge(issued_for).credential
    signature = await user.sign_message(challenge.credential_subject["challenge"])
    payload = RequestPayload(
        address=user.address,
        type="Simple",
        proofs={"valid": "true", "signature": signature},
    )

    body = await pipeline.verify(payload, challenge)

    assert body.code == 401


@pytest.mark.asyncio
async def test_client_chosen_challenge_text_is_ignored(pipeline, user) -> None:
    old_signature = await user.sign_message("hello")
    payload = RequestPayload(
        address=user.address,
        type="Simple",
        challenge="hello",
        proofs={"valid": "true"},
    )

    challenge = pipeline.issue_challenge(payload).credential
    body = await pipeline.verify(
        payload.with_proofs(signature=old_signature), challenge
    )

    text = challenge.credential_subject["challenge"]
    assert text != "hello"
    assert "nonce: " in text
    assert body.code == 401
    assert body.credential is None


@pytest.mark.asyncio
async def test_rejected_batch_returns_one_body_per_distinct_type(
    pipeline, user
) -> None:
    payload = RequestPayload(
        address=user.address,
        type="Bulk",
        types=["Simple", "Simple", "CyberProfilePremium"],
        proofs={"valid": "true"},
    )

    bodies = await _answer(pipeline, payload, LocalAccountSigner(OTHER_KEY))

    assert isinstance(bodies, list)
    assert [body.code for body in bodies] == [401, 401]
    assert all(body.credential is None for body in bodies)


def test_from_settings_requires_signing_key() -> None:
    with pytest.raises(ConfigurationError):
        VerificationPipeline.from_settings(ProofStampsSettings(), ProviderRegistry())


def test_from_settings(issuer_key) -> None:
    settings = ProofStampsSettings(
        signing_key=issuer_key,
        signature_type="EIP712",
        credential_ttl_seconds=3600,
    )
    pipeline = VerificationPipeline.from_settings(settings, ProviderRegistry())
    payload = RequestPayload(address="0xabc", type="Simple")

    credential = pipeline.issue_challenge(payload).credential

    assert credential.issuer.startswith("did:ethr:")
