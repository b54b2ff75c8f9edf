"""
Expiration notifications.

Forwards expiration tracker events to external channels (Telegram,
generic webhook). Each delivery is retried with exponential backoff; when
every attempt fails the failure is logged with the full attempt history
and the remaining channels still get their turn.
"""

import asyncio
from abc import abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

import httpx

from .audit_logger import AuditLogger
from .config import NotificationConfig, RetryConfig, TelegramConfig, WebhookConfig
from .enums import ExpirationEventKind, LogLevel
from .events import Subscription
from .exceptions import NotificationError
from .i18n import get_message
from .models import ExpirationEvent, RenewalEvent


def format_timestamp(value: datetime, language: str = "de") -> str:
    """
    Format a datetime for humans.

    Args:
        value: Aware or naive datetime
        language: 'de' for German, 'en' for English
    """
    if language == "de":
        # German format: 10.12.2025, 05:29 Uhr
        return value.strftime("%d.%m.%Y, %H:%M Uhr")
    # English format: Dec 10, 2025, 5:29 AM
    return value.strftime("%b %d, %Y, %I:%M %p")


@dataclass
class NotificationPayload:
    """Payload for one expiration notification."""

    name: str
    kind: ExpirationEventKind
    expiry: datetime
    days_until_expiration: Optional[int] = None
    threshold_days: Optional[int] = None
    language: str = "de"  # 'de' or 'en'

    @classmethod
    def from_event(
        cls,
        event: Union[ExpirationEvent, RenewalEvent],
        language: str = "de",
    ) -> "NotificationPayload":
        if isinstance(event, RenewalEvent):
            return cls(
                name=event.name,
                kind=event.kind,
                expiry=event.new_expiry,
                language=language,
            )
        return cls(
            name=event.name,
            kind=event.kind,
            expiry=event.expiry,
            days_until_expiration=event.days_until_expiration,
            threshold_days=event.threshold_days,
            language=language,
        )

    @property
    def title(self) -> str:
        return get_message(f"notification.{self.kind.value}", self.language)

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "event": self.kind.value,
            "expiry": self.expiry.isoformat(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if self.days_until_expiration is not None:
            data["days_until_expiration"] = self.days_until_expiration
        if self.threshold_days is not None:
            data["threshold_days"] = self.threshold_days
        return data


@dataclass
class NotificationResult:
    """Result of a notification delivery attempt."""

    channel: str
    success: bool
    error: Optional[str] = None
    attempts: int = 1


@dataclass
class RetryAttempt:
    """Information about a single delivery attempt."""

    attempt_number: int
    error: str
    timestamp: str


@runtime_checkable
class NotificationChannel(Protocol):
    """Protocol defining the interface for notification channels."""

    @abstractmethod
    async def send(self, payload: NotificationPayload) -> bool:
        """
        Send a notification.

        Returns:
            True if delivery was successful, False otherwise
        """
        ...

    @abstractmethod
    def get_name(self) -> str:
        ...


class TelegramChannel:
    """Telegram notification channel using the Bot API."""

    def __init__(
        self,
        config: TelegramConfig,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize Telegram channel.

        Args:
            config: Telegram configuration with bot_token and chat_id
            client: Optional pre-configured httpx client (tests pass a MockTransport)
            timeout: Request timeout in seconds
        """
        self._chat_id = config.chat_id
        self._base_url = f"https://api.telegram.org/bot{config.bot_token}"
        self._client = client
        self._timeout = timeout

    async def send(self, payload: NotificationPayload) -> bool:
        body = {
            "chat_id": self._chat_id,
            "text": self.format_message(payload),
            "parse_mode": "HTML",
        }
        if self._client is not None:
            response = await self._client.post(f"{self._base_url}/sendMessage", json=body)
            return response.status_code == 200
        async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout)) as client:
            response = await client.post(f"{self._base_url}/sendMessage", json=body)
            return response.status_code == 200

    def get_name(self) -> str:
        return "telegram"

    @staticmethod
    def format_message(payload: NotificationPayload) -> str:
        icon = {
            ExpirationEventKind.EXPIRING: "🟡",
            ExpirationEventKind.EXPIRED: "🔴",
            ExpirationEventKind.RENEWED: "🟢",
        }[payload.kind]
        lines = [
            f"{icon} <b>{payload.title}</b>",
            "",
            f"Name: <code>{payload.name}</code>",
            f"{get_message('notification.expiry', payload.language)}: "
            f"{format_timestamp(payload.expiry, payload.language)}",
        ]
        if payload.kind == ExpirationEventKind.EXPIRING and payload.days_until_expiration is not None:
            lines.append(
                f"{get_message('notification.days_left', payload.language)}: "
                f"{payload.days_until_expiration}"
            )
        return "\n".join(lines)


class WebhookChannel:
    """Generic webhook notification channel."""

    def __init__(
        self,
        config: WebhookConfig,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self._url = config.url
        self._headers = dict(config.headers)
        self._client = client
        self._timeout = timeout

    async def send(self, payload: NotificationPayload) -> bool:
        body = payload.to_dict()
        if self._client is not None:
            response = await self._client.post(self._url, json=body, headers=self._headers)
            return 200 <= response.status_code < 300
        async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout)) as client:
            response = await client.post(self._url, json=body, headers=self._headers)
            return 200 <= response.status_code < 300

    def get_name(self) -> str:
        return "webhook"


class ExpirationNotifier:
    """
    Routes expiration events to registered channels with retry logic.

    Subscribe it to a tracker with attach(); detach() removes the
    subscriptions again.
    """

    def __init__(
        self,
        retry_config: Optional[RetryConfig] = None,
        language: str = "de",
        logger: Optional[AuditLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        raise_on_failure: bool = False,
    ) -> None:
        """
        Initialize the notifier.

        Args:
            retry_config: Configuration for retry behavior
            language: Message language ('de' or 'en')
            logger: Optional audit logger for error logging
            sleep: Backoff sleep; tests inject a no-op
            raise_on_failure: Raise NotificationError once every channel had its turn
                and at least one of them failed
        """
        self._channels: list[NotificationChannel] = []
        self._retry_config = retry_config or RetryConfig()
        self._language = language
        self._logger = logger
        self._sleep = sleep
        self._raise_on_failure = raise_on_failure
        self._subscriptions: list[Subscription] = []

    @classmethod
    def from_config(
        cls,
        config: NotificationConfig,
        language: str = "de",
        logger: Optional[AuditLogger] = None,
    ) -> "ExpirationNotifier":
        notifier = cls(retry_config=config.retry, language=language, logger=logger)
        if config.telegram is not None:
            notifier.register_channel(TelegramChannel(config.telegram))
        if config.webhook is not None:
            notifier.register_channel(WebhookChannel(config.webhook))
        return notifier

    def register_channel(self, channel: NotificationChannel) -> None:
        self._channels.append(channel)

    def unregister_channel(self, channel_name: str) -> bool:
        """
        Unregister a notification channel by name.

        Returns:
            True if channel was found and removed, False otherwise
        """
        for i, channel in enumerate(self._channels):
            if channel.get_name() == channel_name:
                self._channels.pop(i)
                return True
        return False

    @property
    def channels(self) -> list[NotificationChannel]:
        return self._channels.copy()

    def attach(self, tracker) -> None:
        """Subscribe to the expiring, expired and renewed channels of a tracker."""
        for channel in (tracker.on_expiring, tracker.on_expired, tracker.on_renewed):
            self._subscriptions.append(channel.subscribe(self.handle_event))

    def detach(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()

    async def handle_event(self, event: Union[ExpirationEvent, RenewalEvent]) -> list[NotificationResult]:
        return await self.notify(NotificationPayload.from_event(event, self._language))

    async def notify(self, payload: NotificationPayload) -> list[NotificationResult]:
        """
        Send a payload to every registered channel.

        Raises:
            NotificationError: If raise_on_failure is set and a channel failed
        """
        results = []
        for channel in self._channels:
            results.append(await self._send_with_retry(channel, payload))

        failed = [r for r in results if not r.success]
        if failed and self._raise_on_failure:
            raise NotificationError(
                code="delivery_failed",
                message=f"Notification for {payload.name} failed on {len(failed)} channel(s)",
                details={"channels": {r.channel: r.error for r in failed}},
            )
        return results

    async def _send_with_retry(
        self,
        channel: NotificationChannel,
        payload: NotificationPayload,
    ) -> NotificationResult:
        channel_name = channel.get_name()
        max_attempts = self._retry_config.max_retries + 1
        attempts = 0
        retry_attempts: list[RetryAttempt] = []
        last_error: Optional[str] = None

        while attempts < max_attempts:
            attempts += 1
            try:
                if await channel.send(payload):
                    return NotificationResult(channel=channel_name, success=True, attempts=attempts)
                last_error = "Channel returned failure"
            except Exception as e:
                last_error = str(e) or type(e).__name__
            retry_attempts.append(
                RetryAttempt(
                    attempt_number=attempts,
                    error=last_error,
                    timestamp=datetime.now(timezone.utc).isoformat(),
                )
            )

            # No delay after the last attempt
            if attempts < max_attempts:
                await self._sleep(self._calculate_delay(attempts - 1))

        self._log_all_retries_failed(channel_name, payload, retry_attempts)
        return NotificationResult(
            channel=channel_name,
            success=False,
            error=last_error,
            attempts=attempts,
        )

    def _calculate_delay(self, attempt: int) -> float:
        """Exponential backoff for a 0-indexed attempt, capped at max_delay_seconds."""
        delay = self._retry_config.base_delay_seconds * (2 ** attempt)
        return min(delay, self._retry_config.max_delay_seconds)

    def _log_all_retries_failed(
        self,
        channel_name: str,
        payload: NotificationPayload,
        retry_attempts: list[RetryAttempt],
    ) -> None:
        if self._logger is None:
            return

        self._logger.log(
            level=LogLevel.ERROR,
            component="ExpirationNotifier",
            message=f"All notification retries failed for channel '{channel_name}'",
            data={
                "channel": channel_name,
                "name": payload.name,
                "event": payload.kind.value,
                "language": payload.language,
                "total_attempts": len(retry_attempts),
                "attempts": [
                    {
                        "attempt": attempt.attempt_number,
                        "error": attempt.error,
                        "timestamp": attempt.timestamp,
                    }
                    for attempt in retry_attempts
                ],
            },
        )
