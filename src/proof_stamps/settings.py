"""Environment-backed settings primitives for :mod:`proof_stamps`."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    "CHALLENGE_EXPIRES_AFTER_SECONDS",
    "CREDENTIAL_EXPIRES_AFTER_SECONDS",
    "ProofStampsSettings",
    "get_settings",
]

CHALLENGE_EXPIRES_AFTER_SECONDS = 60
CREDENTIAL_EXPIRES_AFTER_SECONDS = 90 * 86400
DEFAULT_HTTP_TIMEOUT = 8.0
DEFAULT_PRICE_CACHE_SECONDS = 300.0


def _positive_float(value: object, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else default
    return default


class ProofStampsSettings(BaseSettings):
    """Expose environment-derived configuration knobs for proof-stamps.

    All environment lookups go through this class. Every attribute maps to a
    documented environment variable and falls back to ``None`` or an inline
    default when the variable is absent.

    Attributes:
        iam_url: Base URL of the challenge/verify service.
        signing_key: Hex encoded 32-byte issuer key.
        signature_type: Default signature scheme (``"EIP712"`` or unset).
        credential_ttl_seconds: Lifetime of issued stamp credentials.
        http_timeout: Timeout in seconds for outbound HTTP calls.
        eth_price_url: Endpoint returning the USD price of ETH.
        eth_price_api_key: Optional API key sent to the price endpoint.
        eth_price_cache_seconds: Refresh period of the cached ETH price.
        bsc_rpc_url: JSON-RPC endpoint used by the CyberProfile providers.
    """

    iam_url: str | None = Field(default=None, alias="IAM_URL")
    signing_key: str | None = Field(default=None, alias="IAM_SIGNING_KEY")
    signature_type: str | None = Field(default=None, alias="IAM_SIGNATURE_TYPE")
    credential_ttl_seconds: int = Field(
        default=CREDENTIAL_EXPIRES_AFTER_SECONDS,
        alias="CREDENTIAL_EXPIRES_AFTER_SECONDS",
    )
    http_timeout: float = Field(
        default=DEFAULT_HTTP_TIMEOUT, alias="IAM_HTTP_TIMEOUT"
    )
    eth_price_url: str | None = Field(default=None, alias="ETH_PRICE_URL")
    eth_price_api_key: str | None = Field(default=None, alias="ETH_PRICE_API_KEY")
    eth_price_cache_seconds: float = Field(
        default=DEFAULT_PRICE_CACHE_SECONDS, alias="ETH_PRICE_CACHE_SECONDS"
    )
    bsc_rpc_url: str = Field(
        default="https://bsc-dataseed.binance.org/", alias="BSC_RPC_URL"
    )

    model_config = SettingsConfigDict(
        env_file=None, extra="ignore", populate_by_name=True
    )

    @field_validator("credential_ttl_seconds", mode="before")
    @classmethod
    def _parse_ttl(cls, value: object) -> int:
        """Parse the credential TTL, falling back to 90 days on bad input.

        Args:
            value: Raw environment value.

        Returns:
            A positive number of seconds.
        """

        if isinstance(value, bool):
            return CREDENTIAL_EXPIRES_AFTER_SECONDS
        if isinstance(value, int):
            parsed = value
        elif isinstance(value, float) and value.is_integer():
            parsed = int(value)
        elif isinstance(value, str):
            try:
                parsed = int(value.strip())
            except ValueError:
                return CREDENTIAL_EXPIRES_AFTER_SECONDS
        else:
            return CREDENTIAL_EXPIRES_AFTER_SECONDS
        return parsed if parsed > 0 else CREDENTIAL_EXPIRES_AFTER_SECONDS

    @field_validator("http_timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, value: object) -> float:
        """Parse the HTTP timeout, falling back to the default on bad input."""

        return _positive_float(value, DEFAULT_HTTP_TIMEOUT)

    @field_validator("eth_price_cache_seconds", mode="before")
    @classmethod
    def _parse_cache_period(cls, value: object) -> float:
        """Parse the ETH price refresh period, falling back to five minutes."""

        return _positive_float(value, DEFAULT_PRICE_CACHE_SECONDS)

    @field_validator("signature_type", "signing_key", "iam_url", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        """Treat empty strings as unset."""

        if isinstance(value, str) and not value.strip():
            return None
        return value


def get_settings() -> ProofStampsSettings:
    """Return a :class:`ProofStampsSettings` instance.

    Returns:
        Settings parsed from environment variables.
    """

    return ProofStampsSettings()
