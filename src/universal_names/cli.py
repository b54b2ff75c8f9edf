"""
Command-line interface for the universal name service.

This module provides the main CLI entry point with commands for:
- resolve: Resolve names to addresses
- reverse: Look up the primary name of an address
- records: Show the record set of a name
- normalize: Normalize a name and print a security report
- expiry: One-off expiration check of names, optionally notifying
- config: Configuration management

Settings can come from a JSON config file and from environment variables
(a .env file is loaded first): UNS_RPC_URL, UNS_CHAIN_RPC_URLS
("56=https://...,137=https://..."), CIFI_API_KEY, UNS_LANGUAGE and
TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID.
"""

import argparse
import asyncio
import json
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .audit_logger import AuditLogger
from .config import (
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
from .enums import ExpirationEventKind
from .exceptions import NameRejectedError, NameServiceError
from .i18n import get_message
from .models import ExpirationInfo
from .notifications import ExpirationNotifier, NotificationPayload, format_timestamp
from .service import UniversalNameService


DEFAULT_CONFIG_PATH = Path.home() / ".universal_names" / "config.json"


def create_default_config(language: str = "de") -> ServiceConfig:
    """
    Create a default service configuration from the environment.

    Args:
        language: Output language ('de' or 'en')

    Returns:
        ServiceConfig with default settings
    """
    config = ServiceConfig(language=os.getenv("UNS_LANGUAGE", language))

    rpc_url = os.getenv("UNS_RPC_URL", "").strip()
    if rpc_url:
        config.rpc = RpcConfig(url=rpc_url)

    config.chain_rpc_urls = parse_chain_rpc_urls(os.getenv("UNS_CHAIN_RPC_URLS", ""))

    api_key = os.getenv("CIFI_API_KEY", "").strip()
    if api_key:
        config.cifi = CiFiConfig(api_key=api_key)

    bot_token = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
    chat_id = os.getenv("TELEGRAM_CHAT_ID", "").strip()
    if bot_token and chat_id:
        config.notifications.telegram = TelegramConfig(bot_token=bot_token, chat_id=chat_id)

    return config


def parse_chain_rpc_urls(raw: str) -> dict[int, str]:
    """Parse '56=https://a,137=https://b' into {56: 'https://a', 137: 'https://b'}."""
    urls: dict[int, str] = {}
    for part in raw.split(","):
        chain, sep, url = part.strip().partition("=")
        if not sep or not url.strip():
            continue
        try:
            urls[int(chain)] = url.strip()
        except ValueError:
            continue
    return urls


def load_config_from_file(config_path: Path) -> Optional[ServiceConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        ServiceConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        rpc = RpcConfig(**data.get("rpc", {}))
        chain_rpc_urls = {int(k): v for k, v in data.get("chain_rpc_urls", {}).items()}

        cifi = None
        if data.get("cifi") and data["cifi"].get("api_key"):
            cifi = CiFiConfig(**data["cifi"])

        registries = [RegistryBackendConfig(**r) for r in data.get("registries", [])]
        tlds = [TLDConfig(**t) for t in data.get("tlds", [])]

        # Parse notification config
        notifications_data = data.get("notifications") or {}
        notifications = NotificationConfig(retry=RetryConfig(**notifications_data.get("retry", {})))
        telegram_data = notifications_data.get("telegram") or {}
        if telegram_data.get("bot_token") and telegram_data.get("chat_id"):
            notifications.telegram = TelegramConfig(
                bot_token=telegram_data["bot_token"],
                chat_id=telegram_data["chat_id"],
            )
        webhook_data = notifications_data.get("webhook") or {}
        if webhook_data.get("url"):
            notifications.webhook = WebhookConfig(
                url=webhook_data["url"],
                headers=webhook_data.get("headers", {}),
            )

        return ServiceConfig(
            rpc=rpc,
            chain_rpc_urls=chain_rpc_urls,
            cache=CacheConfig(**data.get("cache", {})),
            ccip_read=CCIPReadConfig(**data.get("ccip_read", {})),
            batch=BatchConfig(**data.get("batch", {})),
            expiration=ExpirationConfig(**data.get("expiration", {})),
            notifications=notifications,
            logging=LoggingConfig(**data.get("logging", {})),
            cifi=cifi,
            sns=SolanaNameServiceConfig(**data.get("sns", {})),
            suins=SuiNameServiceConfig(**data.get("suins", {})),
            registries=registries,
            tlds=tlds,
            enable_analytics=data.get("enable_analytics", True),
            language=data.get("language", "de"),
        )

    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
        print(get_message("cli.config_invalid", error=e), file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def save_config_to_file(config: ServiceConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = asdict(config)
        data["chain_rpc_urls"] = {str(k): v for k, v in config.chain_rpc_urls.items()}

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(get_message("cli.error", config.language, error=e), file=sys.stderr)
        return False


def _load_config(args: argparse.Namespace) -> Optional[ServiceConfig]:
    """Config from --config if given, else defaults from the environment."""
    if getattr(args, "config", None):
        config_path = Path(args.config)
        config = load_config_from_file(config_path)
        if config is None:
            print(get_message("cli.config_not_found", args.language, path=config_path), file=sys.stderr)
            return None
    else:
        config = create_default_config(language=args.language or "de")
    if args.language:
        config.language = args.language
    return config


def _create_logger(config: ServiceConfig, verbose: bool) -> Optional[AuditLogger]:
    if not verbose:
        return None
    return AuditLogger.from_config(config.logging)


async def resolve_names(
    names: list[str],
    config: ServiceConfig,
    chain_id: Optional[int] = None,
    as_json: bool = False,
    verbose: bool = False,
) -> int:
    """
    Resolve names and print the results.

    Returns:
        Exit code (0 if every name resolved, 1 otherwise)
    """
    language = config.language
    logger = _create_logger(config, verbose)
    exit_code = 0
    output = {}

    async with UniversalNameService.from_config(config, logger=logger) as service:
        for name in names:
            try:
                result = await service.resolve_with_metadata(name, chain_id=chain_id)
            except NameRejectedError as e:
                print(get_message("normalize.invalid", language, reason=get_message(f"rejection.{e.code}", language)))
                output[name] = None
                exit_code = 1
                continue
            except NameServiceError as e:
                print(get_message("resolve.failed", language, name=name, error=e.message), file=sys.stderr)
                output[name] = None
                exit_code = 1
                continue

            if result is None:
                print(get_message("resolve.not_found", language, name=name))
                output[name] = None
                exit_code = 1
                continue

            output[name] = result.to_dict()
            if not as_json:
                print(get_message(
                    "resolve.resolved", language,
                    name=result.name, address=result.address, resolver=result.resolver_used,
                ))

        if verbose:
            stats = service.get_analytics()
            print(f"  Operations: {stats.total_operations}, success rate: {stats.success_rate:.0%}")

    if as_json:
        print(json.dumps(output, indent=2, ensure_ascii=False))
    return exit_code


async def reverse_address(address: str, config: ServiceConfig, verbose: bool = False) -> int:
    language = config.language
    async with UniversalNameService.from_config(config, logger=_create_logger(config, verbose)) as service:
        try:
            name = await service.reverse_resolve(address)
        except NameServiceError as e:
            print(get_message("cli.error", language, error=e.message), file=sys.stderr)
            return 1

    if name is None:
        print(get_message("reverse.not_found", language, address=address))
        return 1
    print(get_message("reverse.resolved", language, address=address, name=name))
    return 0


async def show_records(name: str, config: ServiceConfig, as_json: bool = False, verbose: bool = False) -> int:
    language = config.language
    async with UniversalNameService.from_config(config, logger=_create_logger(config, verbose)) as service:
        try:
            records = await service.get_records(name)
        except NameServiceError as e:
            print(get_message("cli.error", language, error=e.message), file=sys.stderr)
            return 1

    if records is None:
        print(get_message("records.none", language, name=name))
        return 1

    if as_json:
        print(json.dumps(records.to_dict(), indent=2, ensure_ascii=False))
        return 0

    print(get_message("records.header", language, name=name))
    for coin_type, address in sorted(records.addresses.items()):
        print(f"  addr[{coin_type}]: {address}")
    for key, value in sorted(records.texts.items()):
        print(f"  {key}: {value}")
    if records.content_hash:
        print(f"  contenthash: {records.content_hash}")
    if records.owner:
        print(f"  owner: {records.owner}")
    if records.expires_at:
        print(f"  expires: {format_timestamp(records.expires_at, language)}")
    return 0


def normalize_name(name: str, language: str = "de") -> int:
    """Normalize a name and print its security report. Offline."""
    service = UniversalNameService(ServiceConfig(language=language))
    normalizer = service.normalizer

    result = normalizer.check(name)
    if result.valid:
        print(get_message("normalize.valid", language, name=result.name.value))
    else:
        print(get_message("normalize.invalid", language, reason=get_message(f"rejection.{result.code.value}", language)))

    issues = normalizer.check_security_issues(name)
    if issues:
        print(get_message("normalize.issues_header", language))
        for issue in issues:
            print(f"  [{issue.severity.value}] {issue.message}")
    else:
        print(get_message("normalize.no_issues", language))

    return 0 if result.valid else 1


def format_expiration(info: ExpirationInfo, language: str) -> str:
    date = format_timestamp(info.expiry, language)
    if info.is_expired:
        return get_message("expiry.expired", language, name=info.name, date=date)
    return get_message(
        "expiry.expires", language,
        name=info.name, date=date, days=info.days_until_expiration, urgency=info.urgency_label,
    )


async def check_expiries(
    names: list[str],
    config: ServiceConfig,
    notify: bool = False,
    verbose: bool = False,
) -> int:
    """
    One-off expiration check.

    With notify, names inside the largest warning threshold (or already
    expired) are sent to the configured notification channels.

    Returns:
        Exit code (0 if no name is expired, 1 otherwise)
    """
    language = config.language
    logger = _create_logger(config, verbose)
    notifier = ExpirationNotifier.from_config(config.notifications, language=language, logger=logger) if notify else None
    horizon = max(config.expiration.thresholds_days)
    exit_code = 0

    async with UniversalNameService.from_config(config, logger=logger) as service:
        tracker = service.create_expiration_tracker()
        await tracker.track_many(names)

        for name in names:
            info = tracker.get_expiration_info(name)
            if info is None:
                print(get_message("expiry.unknown", language, name=name))
                continue

            print(format_expiration(info, language))
            if info.is_expired:
                exit_code = 1

            if notifier is None or not (info.is_expired or info.days_until_expiration <= horizon):
                continue
            payload = NotificationPayload(
                name=name,
                kind=ExpirationEventKind.EXPIRED if info.is_expired else ExpirationEventKind.EXPIRING,
                expiry=info.expiry,
                days_until_expiration=info.days_until_expiration,
                language=language,
            )
            for result in await notifier.notify(payload):
                if verbose or not result.success:
                    status = "ok" if result.success else f"failed: {result.error}"
                    print(f"  {result.channel}: {status}")

    return exit_code


def cmd_resolve(args: argparse.Namespace) -> int:
    """Handle the 'resolve' command."""
    config = _load_config(args)
    if config is None:
        return 1
    return asyncio.run(resolve_names(args.names, config, args.chain_id, args.json, args.verbose))


def cmd_reverse(args: argparse.Namespace) -> int:
    """Handle the 'reverse' command."""
    config = _load_config(args)
    if config is None:
        return 1
    return asyncio.run(reverse_address(args.address, config, args.verbose))


def cmd_records(args: argparse.Namespace) -> int:
    """Handle the 'records' command."""
    config = _load_config(args)
    if config is None:
        return 1
    return asyncio.run(show_records(args.name, config, args.json, args.verbose))


def cmd_normalize(args: argparse.Namespace) -> int:
    """Handle the 'normalize' command."""
    return normalize_name(args.name, args.language or "de")


def cmd_expiry(args: argparse.Namespace) -> int:
    """Handle the 'expiry' command."""
    config = _load_config(args)
    if config is None:
        return 1
    return asyncio.run(check_expiries(args.names, config, args.notify, args.verbose))


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH
    language = args.language or "de"

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(get_message("cli.config_not_found", language, path=config_path))
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Language: {config.language}")
        print(f"  RPC: {config.rpc.url} (chain {config.rpc.chain_id})")
        if config.chain_rpc_urls:
            print(f"  Extra chains: {', '.join(str(c) for c in sorted(config.chain_rpc_urls))}")
        print(f"  Cache: {'on' if config.cache.enabled else 'off'}")
        print(f"  CCIP-Read: {'on' if config.ccip_read.enabled else 'off'}")
        print(f"  Batch: {'on' if config.batch.enabled else 'off'}")
        print(f"  CiFi: {'on' if config.cifi else 'off'}")
        print(f"  SNS (.sol): {'on' if config.sns.enabled else 'off'}")
        print(f"  SuiNS (.sui): {'on' if config.suins.enabled else 'off'}")
        if config.registries:
            print(f"  Registries: {', '.join(r.backend_id for r in config.registries)}")
        print(f"  Log level: {config.logging.level}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(get_message("cli.config_exists", language, path=config_path))
            return 1

        config = create_default_config(language=language)
        if save_config_to_file(config, config_path):
            print(get_message("cli.config_created", language, path=config_path))
            return 0
        return 1

    return 1


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        default=None,
        help="Output language (default: de)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="universal-names",
        description="Multi-backend blockchain name resolution",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'resolve' command
    resolve_parser = subparsers.add_parser("resolve", help="Resolve names to addresses")
    resolve_parser.add_argument("names", nargs="+", help="Names to resolve (e.g., vitalik.eth)")
    resolve_parser.add_argument("--chain-id", type=int, help="Target chain id")
    resolve_parser.add_argument("--json", action="store_true", help="Print results as JSON")
    _add_common_arguments(resolve_parser)
    resolve_parser.set_defaults(func=cmd_resolve)

    # 'reverse' command
    reverse_parser = subparsers.add_parser("reverse", help="Primary name of an address")
    reverse_parser.add_argument("address", help="Address (0x...)")
    _add_common_arguments(reverse_parser)
    reverse_parser.set_defaults(func=cmd_reverse)

    # 'records' command
    records_parser = subparsers.add_parser("records", help="Show the records of a name")
    records_parser.add_argument("name", help="Name to inspect")
    records_parser.add_argument("--json", action="store_true", help="Print records as JSON")
    _add_common_arguments(records_parser)
    records_parser.set_defaults(func=cmd_records)

    # 'normalize' command
    normalize_parser = subparsers.add_parser("normalize", help="Normalize a name and report security issues")
    normalize_parser.add_argument("name", help="Name to normalize")
    normalize_parser.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        default=None,
        help="Output language (default: de)",
    )
    normalize_parser.set_defaults(func=cmd_normalize)

    # 'expiry' command
    expiry_parser = subparsers.add_parser("expiry", help="Check registration expiry of names")
    expiry_parser.add_argument("names", nargs="+", help="Names to check")
    expiry_parser.add_argument(
        "--notify",
        action="store_true",
        help="Send notifications for expiring and expired names",
    )
    _add_common_arguments(expiry_parser)
    expiry_parser.set_defaults(func=cmd_expiry)

    # 'config' command
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument("action", choices=["show", "init"], help="Configuration action")
    config_parser.add_argument("--path", "-p", help="Path to configuration file")
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        default=None,
        help="Default language for new configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print(get_message("cli.interrupted", args.language), file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
