"""
Property-based tests for configuration module.

Uses Hypothesis for property-based testing to verify that configuration
files round-trip through save_config_to_file and load_config_from_file.
"""

import json
import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from universal_names.cli import load_config_from_file, save_config_to_file
from universal_names.config import (
    BatchConfig,
    CacheConfig,
    CCIPReadConfig,
    CiFiConfig,
    ExpirationConfig,
    LoggingConfig,
    NotificationConfig,
    RegistryBackendConfig,
    RetryConfig,
    RpcConfig,
    ServiceConfig,
    SolanaNameServiceConfig,
    SuiNameServiceConfig,
    TelegramConfig,
    TLDConfig,
    WebhookConfig,
)


# Strategies for generating valid configuration objects

token_text = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-"),
    min_size=1,
    max_size=40,
)
positive_floats = st.floats(min_value=0.5, max_value=86400, allow_nan=False, allow_infinity=False)
addresses = st.binary(min_size=20, max_size=20).map(lambda b: "0x" + b.hex())
tld_labels = st.sampled_from(["eth", "crypto", "bnb", "arb", "nft", "xdc", "cifi", "wallet"])


@st.composite
def rpc_config_strategy(draw) -> RpcConfig:
    return RpcConfig(
        url=draw(token_text.map(lambda s: f"https://rpc.example/{s}")),
        timeout_seconds=draw(positive_floats),
        chain_id=draw(st.sampled_from([1, 10, 56, 137, 8453])),
    )


@st.composite
def cache_config_strategy(draw) -> CacheConfig:
    return CacheConfig(
        forward_max_size=draw(st.integers(min_value=1, max_value=10000)),
        forward_ttl_seconds=draw(positive_floats),
        reverse_max_size=draw(st.integers(min_value=1, max_value=10000)),
        reverse_ttl_seconds=draw(positive_floats),
        records_max_size=draw(st.integers(min_value=1, max_value=10000)),
        records_ttl_seconds=draw(positive_floats),
        cleanup_interval_seconds=draw(positive_floats),
        enabled=draw(st.booleans()),
    )


@st.composite
def notification_config_strategy(draw) -> NotificationConfig:
    """Generate NotificationConfig objects with optional channels."""
    telegram = draw(st.one_of(
        st.none(),
        st.builds(TelegramConfig, bot_token=token_text, chat_id=st.integers(min_value=1).map(str)),
    ))
    webhook = draw(st.one_of(
        st.none(),
        st.builds(
            WebhookConfig,
            url=token_text.map(lambda s: f"https://hooks.example/{s}"),
            headers=st.dictionaries(token_text, token_text, max_size=3),
        ),
    ))
    max_retries = draw(st.integers(min_value=0, max_value=10))
    base_delay = draw(st.floats(min_value=0.1, max_value=10.0))
    max_delay = draw(st.floats(min_value=base_delay, max_value=300.0))
    return NotificationConfig(
        telegram=telegram,
        webhook=webhook,
        retry=RetryConfig(max_retries=max_retries, base_delay_seconds=base_delay, max_delay_seconds=max_delay),
    )


@st.composite
def registry_config_strategy(draw) -> RegistryBackendConfig:
    return RegistryBackendConfig(
        backend_id=draw(token_text),
        registry_address=draw(addresses),
        tlds=draw(st.lists(tld_labels, min_size=1, max_size=3, unique=True)),
        chain_id=draw(st.sampled_from([1, 50, 137])),
        registrar_address=draw(st.one_of(st.none(), addresses)),
    )


@st.composite
def service_config_strategy(draw) -> ServiceConfig:
    """Generate valid ServiceConfig objects."""
    return ServiceConfig(
        rpc=draw(rpc_config_strategy()),
        chain_rpc_urls=draw(st.dictionaries(
            st.sampled_from([10, 56, 137, 8453, 42161]),
            token_text.map(lambda s: f"https://rpc.example/{s}"),
            max_size=3,
        )),
        cache=draw(cache_config_strategy()),
        ccip_read=CCIPReadConfig(
            enabled=draw(st.booleans()),
            max_redirects=draw(st.integers(min_value=0, max_value=8)),
            gateway_timeout_seconds=draw(positive_floats),
        ),
        batch=BatchConfig(
            enabled=draw(st.booleans()),
            max_batch_size=draw(st.integers(min_value=1, max_value=500)),
            max_concurrent_chunks=draw(st.integers(min_value=1, max_value=16)),
        ),
        expiration=ExpirationConfig(
            check_interval_seconds=draw(positive_floats),
            thresholds_days=draw(st.lists(st.integers(min_value=1, max_value=90), min_size=1, max_size=5, unique=True)),
        ),
        notifications=draw(notification_config_strategy()),
        logging=LoggingConfig(
            level=draw(st.sampled_from(["debug", "info", "warn", "error"])),
            audit_mode=draw(st.booleans()),
            audit_signing_key=draw(st.one_of(st.none(), token_text)),
            output_format=draw(st.sampled_from(["json", "text", "both"])),
        ),
        cifi=draw(st.one_of(st.none(), st.builds(CiFiConfig, api_key=token_text, timeout_seconds=positive_floats))),
        sns=SolanaNameServiceConfig(
            enabled=draw(st.booleans()),
            base_url=draw(token_text.map(lambda s: f"https://sns.example/{s}")),
            timeout_seconds=draw(positive_floats),
        ),
        suins=SuiNameServiceConfig(
            enabled=draw(st.booleans()),
            rpc_url=draw(token_text.map(lambda s: f"https://sui.example/{s}")),
            timeout_seconds=draw(positive_floats),
        ),
        registries=draw(st.lists(registry_config_strategy(), max_size=2)),
        tlds=draw(st.lists(
            st.builds(
                TLDConfig,
                tld=tld_labels,
                backend_id=st.sampled_from(["ens", "spaceid", "spaceid-arb", "unstoppable", "cifi", "sns", "suins"]),
                chain_id=st.one_of(st.none(), st.sampled_from([1, 56, 137])),
            ),
            max_size=4,
        )),
        enable_analytics=draw(st.booleans()),
        language=draw(st.sampled_from(["de", "en"])),
    )


def round_trip(config: ServiceConfig) -> tuple[ServiceConfig, dict]:
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "nested" / "config.json"
        assert save_config_to_file(config, path)
        raw = json.loads(path.read_text(encoding="utf-8"))
        return load_config_from_file(path), raw


class TestConfigurationRoundTripProperty:
    """
    Property-based tests for configuration serialization round-trip.

    **Property 32: Configuration round-trips without data loss**
    """

    @given(config=service_config_strategy())
    @settings(max_examples=100, deadline=None)
    def test_config_round_trip_preserves_data(self, config: ServiceConfig) -> None:
        """
        Property 32: Configuration round-trips without data loss.

        *For any* valid ServiceConfig object, saving it to a file and loading
        it back SHALL produce an equal ServiceConfig object.
        """
        loaded, _ = round_trip(config)

        assert loaded == config
        assert all(isinstance(k, int) for k in loaded.chain_rpc_urls)

    @given(config=service_config_strategy())
    @settings(max_examples=50, deadline=None)
    def test_config_file_is_plain_json(self, config: ServiceConfig) -> None:
        """
        Property 32b: The file holds every top-level section.

        *For any* ServiceConfig, the written file SHALL be a JSON object
        with one key per top-level field.
        """
        _, raw = round_trip(config)

        assert set(raw) == {
            "rpc", "chain_rpc_urls", "cache", "ccip_read", "batch", "expiration",
            "notifications", "logging", "cifi", "sns", "suins", "registries", "tlds",
            "enable_analytics", "language",
        }

    @given(config=service_config_strategy())
    @settings(max_examples=50, deadline=None)
    def test_config_round_trip_is_idempotent(self, config: ServiceConfig) -> None:
        once, raw_once = round_trip(config)
        _, raw_twice = round_trip(once)

        assert json.dumps(raw_once, sort_keys=True) == json.dumps(raw_twice, sort_keys=True)


class TestConfigLoading:
    """Partial and broken configuration files."""

    def test_missing_sections_use_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"rpc": {"url": "https://rpc.example"}, "language": "en"}), encoding="utf-8")

        config = load_config_from_file(path)

        assert config.rpc == RpcConfig(url="https://rpc.example")
        assert config.language == "en"
        assert config.cache == CacheConfig()
        assert config.cifi is None
        assert config.sns == SolanaNameServiceConfig()
        assert config.suins.enabled is True
        assert config.notifications.telegram is None

    def test_empty_credentials_disable_channels(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "cifi": {"api_key": ""},
            "notifications": {"telegram": {"bot_token": "", "chat_id": "1"}, "webhook": {"url": ""}},
        }), encoding="utf-8")

        config = load_config_from_file(path)

        assert config.cifi is None
        assert config.notifications.telegram is None
        assert config.notifications.webhook is None

    def test_invalid_files(self, tmp_path: Path, capsys) -> None:
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        unknown_field = tmp_path / "unknown.json"
        unknown_field.write_text(json.dumps({"cache": {"size": 5}}), encoding="utf-8")

        assert load_config_from_file(broken) is None
        assert load_config_from_file(unknown_field) is None
        assert load_config_from_file(tmp_path / "missing.json") is None
        assert "Ungültige Konfiguration" in capsys.readouterr().err
