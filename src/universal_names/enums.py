"""
Enumeration types for the universal name service.

These enums provide type-safe constants for rejection codes, error codes,
operation kinds and configuration options throughout the system.
"""

from enum import Enum


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class RejectionCode(Enum):
    """Reasons the normalizer rejects a name."""

    EMPTY_INPUT = "empty_input"
    NAME_TOO_LONG = "name_too_long"
    EMPTY_LABEL = "empty_label"
    LABEL_TOO_LONG = "label_too_long"
    INVALID_HYPHEN = "invalid_hyphen"
    FORBIDDEN_CHARS = "forbidden_chars"
    ZERO_WIDTH = "zero_width"
    MIXED_SCRIPT = "mixed_script"
    CONFUSABLE = "confusable"
    DISALLOWED_CODEPOINT = "disallowed_codepoint"


class SecurityIssueCode(Enum):
    """Diagnostic findings reported by check_security_issues."""

    CONFUSABLE = "confusable"
    MIXED_SCRIPT = "mixed_script"
    ZERO_WIDTH = "zero_width"
    LONG_LABEL = "long_label"
    NON_ASCII = "non_ascii"


class Severity(Enum):
    """Severity of a security issue."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TransportErrorCode(Enum):
    """Error codes for RPC and gateway transport failures."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    RPC_ERROR = "rpc_error"
    PARSE_ERROR = "parse_error"
    GATEWAY_EXHAUSTED = "gateway_exhausted"


class ProtocolErrorCode(Enum):
    """Error codes for CCIP-Read protocol violations."""

    MALFORMED_LOOKUP = "malformed_lookup"
    SENDER_MISMATCH = "sender_mismatch"
    REDIRECT_LIMIT = "redirect_limit"


class OperationKind(Enum):
    """Kinds of operations recorded by the analytics collector."""

    RESOLVE = "resolve"
    REVERSE = "reverse"
    RECORDS = "records"
    BATCH = "batch"
    EXPIRY = "expiry"


class ExpirationEventKind(Enum):
    """Lifecycle events emitted by the expiration tracker."""

    EXPIRING = "expiring"
    EXPIRED = "expired"
    RENEWED = "renewed"
