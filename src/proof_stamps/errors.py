"""Exception hierarchy for :mod:`proof_stamps`."""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "IssuanceError",
    "PriceLookupError",
    "ProofStampsError",
    "ProviderExternalVerificationError",
    "ProviderInternalVerificationError",
    "ProviderVerificationError",
    "SigningError",
    "TransportError",
]


class ProofStampsError(Exception):
    """Base class for all errors raised by proof-stamps."""


class ConfigurationError(ProofStampsError, ValueError):
    """Raised when a call is made with an invalid or incomplete configuration."""


class SigningError(ProofStampsError):
    """Raised when a message or credential could not be signed."""


class IssuanceError(SigningError):
    """Raised when the signing backend fails while issuing a credential."""


class TransportError(ProofStampsError):
    """Raised when the challenge or verify endpoint cannot be reached."""


class PriceLookupError(ProofStampsError):
    """Raised when the ETH price cannot be fetched."""


class ProviderVerificationError(ProofStampsError):
    """Abstract base for failures raised from inside a provider.

    Only the concrete subclasses may be instantiated.
    """

    def __init__(self, message: str) -> None:
        if type(self) is ProviderVerificationError:
            raise TypeError(
                "ProviderVerificationError is abstract and cannot be instantiated"
            )
        super().__init__(message)


class ProviderExternalVerificationError(ProviderVerificationError):
    """The external system a provider depends on failed or misbehaved."""


class ProviderInternalVerificationError(ProviderVerificationError):
    """The provider itself failed while evaluating a payload."""
