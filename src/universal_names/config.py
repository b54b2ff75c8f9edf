"""
Configuration dataclasses for the universal name service.

This module defines all configuration structures used throughout the system,
including cache sizing, CCIP-Read behavior, batching, expiration tracking,
RPC transport, backend endpoints, notifications and logging.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class CacheConfig:
    """Sizes and TTLs of the three cache maps."""

    forward_max_size: int = 1000
    forward_ttl_seconds: float = 3600.0
    reverse_max_size: int = 1000
    reverse_ttl_seconds: float = 3600.0
    records_max_size: int = 500
    records_ttl_seconds: float = 3600.0
    cleanup_interval_seconds: float = 300.0
    enabled: bool = True


@dataclass
class CCIPReadConfig:
    """EIP-3668 off-chain lookup configuration."""

    enabled: bool = True
    max_redirects: int = 4
    gateway_timeout_seconds: float = 10.0


@dataclass
class BatchConfig:
    """Multicall batching configuration."""

    enabled: bool = False
    max_batch_size: int = 100
    max_concurrent_chunks: int = 4
    multicall_address: str = "0xcA11bde05977b3631167028862bE2a173976CA11"
    backend_id: str = "ens"


@dataclass
class ExpirationConfig:
    """Expiration tracker configuration."""

    check_interval_seconds: float = 6 * 3600.0
    thresholds_days: list[int] = field(default_factory=lambda: [30, 14, 7, 3, 1])


@dataclass
class RpcConfig:
    """JSON-RPC transport configuration."""

    url: str = "https://eth.llamarpc.com"
    timeout_seconds: float = 15.0
    chain_id: int = 1


@dataclass
class CiFiConfig:
    """CiFi identity API configuration."""

    api_key: str
    base_url: str = "https://api.cifi.network"
    timeout_seconds: float = 10.0


@dataclass
class SolanaNameServiceConfig:
    """Solana Name Service (.sol) lookups through the SNS SDK proxy."""

    enabled: bool = True
    base_url: str = "https://sns-sdk-proxy.bonfida.workers.dev"
    timeout_seconds: float = 10.0


@dataclass
class SuiNameServiceConfig:
    """Sui Name Service (.sui) lookups over Sui JSON-RPC."""

    enabled: bool = True
    rpc_url: str = "https://fullnode.mainnet.sui.io"
    timeout_seconds: float = 15.0


@dataclass
class TLDConfig:
    """Ownership of one TLD by a resolver backend."""

    tld: str
    backend_id: str
    chain_id: Optional[int] = None
    description: str = ""


@dataclass
class RegistryBackendConfig:
    """A custom community registry served by the registry backend."""

    backend_id: str
    registry_address: str
    tlds: list[str]
    chain_id: int = 1
    registrar_address: Optional[str] = None


@dataclass
class TelegramConfig:
    """Telegram notification channel configuration."""

    bot_token: str
    chat_id: str


@dataclass
class WebhookConfig:
    """Generic webhook notification channel configuration."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class RetryConfig:
    """Retry behavior for notification delivery."""

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0


@dataclass
class NotificationConfig:
    """Notification channels configuration."""

    telegram: Optional[TelegramConfig] = None
    webhook: Optional[WebhookConfig] = None
    retry: RetryConfig = field(default_factory=RetryConfig)


@dataclass
class LoggingConfig:
    """Logging and audit configuration."""

    level: str = "info"
    audit_mode: bool = False
    audit_signing_key: Optional[str] = None
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class ServiceConfig:
    """Main configuration combining all sub-configurations."""

    rpc: RpcConfig = field(default_factory=RpcConfig)
    chain_rpc_urls: dict[int, str] = field(default_factory=dict)  # Extra chains, e.g. {56: "..."}
    cache: CacheConfig = field(default_factory=CacheConfig)
    ccip_read: CCIPReadConfig = field(default_factory=CCIPReadConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    expiration: ExpirationConfig = field(default_factory=ExpirationConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    cifi: Optional[CiFiConfig] = None
    sns: SolanaNameServiceConfig = field(default_factory=SolanaNameServiceConfig)
    suins: SuiNameServiceConfig = field(default_factory=SuiNameServiceConfig)
    registries: list[RegistryBackendConfig] = field(default_factory=list)
    tlds: list[TLDConfig] = field(default_factory=list)  # Overrides the default TLD table
    enable_analytics: bool = True
    language: str = "de"  # 'de' or 'en'
