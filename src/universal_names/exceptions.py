"""
Exception classes for the universal name service.

All exceptions inherit from NameServiceError and provide structured
error information with codes, messages, and optional details.

The hierarchy mirrors the failure taxonomy of the engine:
- NameRejectedError: input rejected by the normalizer, never reaches a backend
- TransportError: RPC/HTTP failure or timeout ("could not check")
- ContractRevertError: an eth_call reverted (a backend miss unless it is CCIP-Read)
- ProtocolError: malformed OffchainLookup payload or redirect limit exceeded
- ResolutionFailedError: every candidate backend failed in transport
"""

from typing import Optional


class NameServiceError(Exception):
    """Base exception for all name service errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NameRejectedError(NameServiceError):
    """Raised when the normalizer rejects a malformed or unsafe name."""

    pass


class TransportError(NameServiceError):
    """Raised when an RPC or HTTP operation fails or times out."""

    pass


class RpcError(TransportError):
    """Raised when the JSON-RPC endpoint returns an error without revert data."""

    pass


class GatewayError(TransportError):
    """Raised when every CCIP-Read gateway failed to answer."""

    pass


class ContractRevertError(NameServiceError):
    """Raised when an eth_call reverts. Carries the raw revert data."""

    def __init__(
        self,
        revert_data: bytes,
        message: str = "Execution reverted",
        details: Optional[dict] = None,
    ) -> None:
        self.revert_data = revert_data
        super().__init__("execution_reverted", message, details)


class ProtocolError(NameServiceError):
    """Raised on CCIP-Read protocol violations (malformed OffchainLookup, sender mismatch)."""

    pass


class RedirectLimitExceededError(ProtocolError):
    """Raised when a CCIP-Read call chain exceeds the configured redirect limit."""

    pass


class ResolutionFailedError(NameServiceError):
    """Raised when no backend could be checked, as opposed to a name being unregistered."""

    pass


class RegistrationError(NameServiceError):
    """Raised when a registration or record update cannot be submitted."""

    pass


class NotificationError(NameServiceError):
    """Raised when notification delivery fails."""

    pass
