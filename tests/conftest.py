"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import inspect
import os
import sys
from typing import Any

import pytest

# Ensure src/ is on sys.path for tests so the src layout is used during test runs
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from proof_stamps.models import RequestPayload  # noqa: E402
from proof_stamps.providers.base import ProviderContext  # noqa: E402
from proof_stamps.signing.local import LocalSigningBackend  # noqa: E402

# Valid both as an Ed25519 seed and as a secp256k1 private key
ISSUER_KEY = "0x" + "11" * 32
USER_KEY = "0x" + "22" * 32

_ENV_VARS = (
    "IAM_URL",
    "IAM_SIGNING_KEY",
    "IAM_SIGNATURE_TYPE",
    "CREDENTIAL_EXPIRES_AFTER_SECONDS",
    "IAM_HTTP_TIMEOUT",
    "ETH_PRICE_URL",
    "ETH_PRICE_API_KEY",
    "ETH_PRICE_CACHE_SECONDS",
    "BSC_RPC_URL",
)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test as requiring an event loop")


def pytest_pyfunc_call(pyfuncitem: Any) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames  # type: ignore[attr-defined]
        }

        event_loop = asyncio.new_event_loop()
        try:
            event_loop.run_until_complete(pyfuncitem.obj(**call_kwargs))
        finally:
            event_loop.close()
        return True
    return None


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of settings-driven code paths."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def backend() -> LocalSigningBackend:
    return LocalSigningBackend()


@pytest.fixture
def issuer_key() -> str:
    return ISSUER_KEY


@pytest.fixture
def context() -> ProviderContext:
    return ProviderContext()


@pytest.fixture
def payload() -> RequestPayload:
    return RequestPayload(address="0xABCxyz", type="Simple", proofs={"valid": "true"})
