"""
Universal Names - multi-backend blockchain name resolution.

This package resolves human-readable names (vitalik.eth, brad.crypto,
@alice) to addresses and records across ENS, SPACE ID, Unstoppable Domains,
CiFi and custom registries, with Unicode normalization, caching, Multicall3
batching, CCIP-Read, expiration tracking and analytics.
"""

__version__ = "0.1.0"
__author__ = "Universal Names Team"

from universal_names.exceptions import (
    NameServiceError,
    NameRejectedError,
    TransportError,
    RpcError,
    GatewayError,
    ContractRevertError,
    ProtocolError,
    RedirectLimitExceededError,
    ResolutionFailedError,
    RegistrationError,
    NotificationError,
)
from universal_names.enums import (
    LogLevel,
    RejectionCode,
    SecurityIssueCode,
    Severity,
    TransportErrorCode,
    ProtocolErrorCode,
    OperationKind,
    ExpirationEventKind,
)
from universal_names.config import (
    CacheConfig,
    CCIPReadConfig,
    BatchConfig,
    ExpirationConfig,
    RpcConfig,
    CiFiConfig,
    SolanaNameServiceConfig,
    SuiNameServiceConfig,
    TLDConfig,
    RegistryBackendConfig,
    TelegramConfig,
    WebhookConfig,
    RetryConfig,
    NotificationConfig,
    LoggingConfig,
    ServiceConfig,
)
from universal_names.models import (
    Name,
    ResolutionResult,
    NameRecords,
    OffchainLookup,
    SecurityIssue,
    NormalizationResult,
    ExpirationInfo,
    ExpirationEvent,
    RenewalEvent,
    CacheStats,
    ResolverStats,
    AnalyticsStats,
    Call3,
    CallResult,
    RegistrationResult,
)
from universal_names.normalizer import (
    NameNormalizer,
)
from universal_names.namehash import (
    labelhash,
    namehash,
    reverse_name,
)
from universal_names.audit_logger import (
    AuditLogger,
    LogEntry,
)
from universal_names.rpc_client import (
    RpcClient,
    HttpRpcClient,
)
from universal_names.ccip_read import (
    CCIPRead,
    CCIPReadClient,
)
from universal_names.multicall import (
    Multicall3,
)
from universal_names.cache import (
    NameCache,
)
from universal_names.analytics import (
    NameAnalytics,
)
from universal_names.events import (
    EventChannel,
    Subscription,
)
from universal_names.resolvers import (
    NameResolverBackend,
    RegistrableResolverBackend,
    TransactionSigner,
    ENSResolver,
    SpaceIdResolver,
    UnstoppableResolver,
    CiFiResolver,
    RegistryResolver,
    SnsResolver,
    SuiNsResolver,
)
from universal_names.batch import (
    BatchResolver,
    BatchOutcome,
)
from universal_names.expiration import (
    ExpirationTracker,
)
from universal_names.notifications import (
    NotificationPayload,
    NotificationResult,
    NotificationChannel,
    TelegramChannel,
    WebhookChannel,
    ExpirationNotifier,
)
from universal_names.i18n import (
    get_message,
    get_missing_translations,
    validate_translations,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from universal_names.tld_registry import (
    DEFAULT_TLDS,
    get_tld_config,
)
from universal_names.service import (
    UniversalNameService,
)
from universal_names.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Exceptions
    "NameServiceError",
    "NameRejectedError",
    "TransportError",
    "RpcError",
    "GatewayError",
    "ContractRevertError",
    "ProtocolError",
    "RedirectLimitExceededError",
    "ResolutionFailedError",
    "RegistrationError",
    "NotificationError",
    # Enums
    "LogLevel",
    "RejectionCode",
    "SecurityIssueCode",
    "Severity",
    "TransportErrorCode",
    "ProtocolErrorCode",
    "OperationKind",
    "ExpirationEventKind",
    # Configuration
    "CacheConfig",
    "CCIPReadConfig",
    "BatchConfig",
    "ExpirationConfig",
    "RpcConfig",
    "CiFiConfig",
    "SolanaNameServiceConfig",
    "SuiNameServiceConfig",
    "TLDConfig",
    "RegistryBackendConfig",
    "TelegramConfig",
    "WebhookConfig",
    "RetryConfig",
    "NotificationConfig",
    "LoggingConfig",
    "ServiceConfig",
    # Models
    "Name",
    "ResolutionResult",
    "NameRecords",
    "OffchainLookup",
    "SecurityIssue",
    "NormalizationResult",
    "ExpirationInfo",
    "ExpirationEvent",
    "RenewalEvent",
    "CacheStats",
    "ResolverStats",
    "AnalyticsStats",
    "Call3",
    "CallResult",
    "RegistrationResult",
    # Normalizer
    "NameNormalizer",
    "labelhash",
    "namehash",
    "reverse_name",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Transport
    "RpcClient",
    "HttpRpcClient",
    "CCIPRead",
    "CCIPReadClient",
    "Multicall3",
    # Cache and analytics
    "NameCache",
    "NameAnalytics",
    # Events
    "EventChannel",
    "Subscription",
    # Resolvers
    "NameResolverBackend",
    "RegistrableResolverBackend",
    "TransactionSigner",
    "ENSResolver",
    "SpaceIdResolver",
    "UnstoppableResolver",
    "CiFiResolver",
    "RegistryResolver",
    "SnsResolver",
    "SuiNsResolver",
    "BatchResolver",
    "BatchOutcome",
    # Expiration
    "ExpirationTracker",
    "NotificationPayload",
    "NotificationResult",
    "NotificationChannel",
    "TelegramChannel",
    "WebhookChannel",
    "ExpirationNotifier",
    # I18n
    "get_message",
    "get_missing_translations",
    "validate_translations",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # TLD registry
    "DEFAULT_TLDS",
    "get_tld_config",
    # Service
    "UniversalNameService",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
]
