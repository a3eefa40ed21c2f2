"""Tests for the provider contract, registry and shared context."""

from __future__ import annotations

import asyncio
from typing import ClassVar

import pytest

from proof_stamps.errors import (
    ProviderExternalVerificationError,
    ProviderInternalVerificationError,
    ProviderVerificationError,
)
from proof_stamps.models import RequestPayload, VerifiedPayload
from proof_stamps.providers import (
    CyberProfilePaidProvider,
    CyberProfilePremiumProvider,
    Provider,
    ProviderContext,
    ProviderRegistry,
    SimpleProvider,
    get_primary_handle,
)


class CountingResolver:
    """Handle resolver returning fixed handles and counting lookups."""

    def __init__(self, handle: str, delay: float = 0.0) -> None:
        self.handle = handle
        self.delay = delay
        self.calls: list[str] = []

    async def primary_handle(self, address: str) -> str:
        self.calls.append(address)
        await asyncio.sleep(self.delay)
        return self.handle


class BrokenResolver:
    async def primary_handle(self, address: str) -> str:
        raise ProviderExternalVerificationError("rpc down")


class RaisingProvider(Provider):
    type: ClassVar[str] = "Raising"

    async def verify(self, payload, context):  # type: ignore[no-untyped-def]
        raise ProviderInternalVerificationError("invariant broken")


class CrashingProvider(Provider):
    type: ClassVar[str] = "Crashing"

    async def verify(self, payload, context):  # type: ignore[no-untyped-def]
        raise KeyError("missing")


class LeakyProvider(Provider):
    type: ClassVar[str] = "Leaky"

    async def verify(self, payload, context):  # type: ignore[no-untyped-def]
        return VerifiedPayload(valid=False, record={"secret": "x"}, errors=["no"])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("handle", "valid"), [("abcd", True), ("abcdefghi", False), ("", False)]
)
async def test_premium_handle_length(
    handle: str, valid: bool, payload, context
) -> None:
    provider = CyberProfilePremiumProvider(resolver=CountingResolver(handle))

    verdict = await provider.verify(payload, context)

    assert verdict.valid is valid
    if valid:
        assert verdict.record == {"userHandle": handle}
    else:
        assert verdict.record == {}
        assert verdict.errors


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("handle", "valid"), [("abcdef", False), ("abcdefg", True), ("a" * 13, False)]
)
async def test_paid_handle_length(handle: str, valid: bool, payload, context) -> None:
    verdict = await CyberProfilePaidProvider(
        resolver=CountingResolver(handle)
    ).verify(payload, context)

    assert verdict.valid is valid


@pytest.mark.asyncio
async def test_batch_shares_one_resolution(payload) -> None:
    resolver = CountingResolver("abcd", delay=0.01)
    registry = ProviderRegistry(
        [
            CyberProfilePremiumProvider(resolver=resolver),
            CyberProfilePaidProvider(resolver=resolver),
        ]
    )

    verdicts = await registry.verify(
        ["CyberProfilePaid", "CyberProfilePremium"], payload
    )

    assert resolver.calls == ["0xabcxyz"]
    assert set(verdicts) == {"CyberProfilePremium", "CyberProfilePaid"}
    assert verdicts["CyberProfilePremium"].valid is True
    assert verdicts["CyberProfilePaid"].valid is False


@pytest.mark.asyncio
async def test_resolver_failure_is_an_invalid_verdict(payload, context) -> None:
    verdict = await CyberProfilePremiumProvider(resolver=BrokenResolver()).verify(
        payload, context
    )

    assert verdict.valid is False
    assert verdict.errors == ["CyberProfile provider get user primary handle error"]


@pytest.mark.asyncio
async def test_failed_lookup_is_not_memoized(context) -> None:
    attempts = 0

    async def flaky() -> str:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise ProviderExternalVerificationError("timeout")
        return "handle"

    with pytest.raises(ProviderExternalVerificationError):
        await context.memoize("cyberConnect", "0xabc", flaky)
    assert ("cyberConnect", "0xabc") not in context

    assert await context.memoize("cyberConnect", "0xabc", flaky) == "handle"
    assert await context.memoize("cyberConnect", "0xabc", flaky) == "handle"
    assert attempts == 2
    assert context.get("cyberConnect", "0xabc") == "handle"


@pytest.mark.asyncio
async def test_context_is_namespaced_by_family(context) -> None:
    async def value_a() -> str:
        return "a"

    async def value_b() -> str:
        return "b"

    assert await context.memoize("alpha", "key", value_a) == "a"
    assert await context.memoize("beta", "key", value_b) == "b"
    assert context.get("gamma", "key", "missing") == "missing"


@pytest.mark.asyncio
async def test_get_primary_handle_lowercases_address(context) -> None:
    resolver = CountingResolver("abcd")

    await get_primary_handle("0xABC", context, resolver)
    await get_primary_handle("0xabc", context, resolver)

    assert resolver.calls == ["0xabc"]


@pytest.mark.asyncio
async def test_simple_provider(payload, context) -> None:
    provider = SimpleProvider()

    accepted = await provider.verify(
        payload.with_proofs(username="alice"), context
    )
    rejected = await provider.verify(payload.with_proofs(valid="false"), context)

    assert accepted == VerifiedPayload(valid=True, record={"username": "alice"})
    assert rejected.valid is False
    assert rejected.errors == ["Proof is not valid"]
    assert payload.proofs == {"valid": "true"}


def test_provider_options_merge_over_defaults() -> None:
    provider = SimpleProvider({"valid": "yes", "extra": 1})
    assert provider.options == {"valid": "yes", "extra": 1}
    assert SimpleProvider().options == {"valid": "true"}


@pytest.mark.asyncio
async def test_registry_isolates_failures(payload) -> None:
    registry = ProviderRegistry(
        [SimpleProvider(), RaisingProvider(), CrashingProvider(), LeakyProvider()]
    )

    verdicts = await registry.verify(
        ["Simple", "Raising", "Crashing", "Leaky", "Unknown", "Simple"], payload
    )

    assert list(verdicts) == ["Simple", "Raising", "Crashing", "Leaky", "Unknown"]
    assert verdicts["Simple"].valid is True
    assert verdicts["Raising"].errors == ["invariant broken"]
    assert verdicts["Crashing"].valid is False
    assert verdicts["Leaky"].record == {}
    assert verdicts["Unknown"].valid is False
    assert "Unknown" in verdicts["Unknown"].errors[0]


def test_registry_rejects_duplicate_types() -> None:
    registry = ProviderRegistry([SimpleProvider()])
    with pytest.raises(ValueError):
        registry.register(SimpleProvider())
    assert "Simple" in registry
    assert registry.types == ("Simple",)
    assert registry.get("Missing") is None


def test_provider_verification_error_is_abstract() -> None:
    with pytest.raises(TypeError):
        ProviderVerificationError("nope")
    assert isinstance(
        ProviderExternalVerificationError("x"), ProviderVerificationError
    )


def test_request_payload_requested_types() -> None:
    single = RequestPayload(address="0xabc", type="Simple")
    batch = RequestPayload(address="0xabc", type="Bulk", types=["A", "B"])

    assert single.requested_types() == ["Simple"]
    assert batch.requested_types() == ["A", "B"]


def test_request_payload_wire_names() -> None:
    payload = RequestPayload.model_validate(
        {"address": "0xabc", "type": "Simple", "signatureType": "EIP712"}
    )
    assert payload.signature_type == "EIP712"
    assert payload.to_wire()["signatureType"] == "EIP712"
