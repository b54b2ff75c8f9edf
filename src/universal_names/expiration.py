"""
Expiration tracker.

Polls the expiry of a set of tracked names and publishes events:

- on_expiring: once per threshold crossing (30/14/7/3/1 days by default).
  When one poll crosses several thresholds only the tightest is reported,
  and a threshold is never reported again, nor is a looser one.
- on_expired: once, when the expiry has passed.
- on_renewed: when a later expiry shows up for a name that was expired or
  had been warned about. Its notification state starts over.

State lives in memory only. Reads of the snapshot (get_expiration_info and
friends) are synchronous and never touch the network.
"""

import asyncio
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional, Protocol, Sequence, runtime_checkable

from .audit_logger import AuditLogger, ComponentLogger
from .enums import ExpirationEventKind
from .events import EventChannel
from .models import ExpirationEvent, ExpirationInfo, RenewalEvent, days_between
from .scheduler import PeriodicTask

DEFAULT_THRESHOLDS_DAYS = (30, 14, 7, 3, 1)
DEFAULT_CHECK_INTERVAL = 6 * 3600.0


@runtime_checkable
class ExpirySource(Protocol):
    """Where the tracker gets expiries from (the dispatcher in practice)."""

    async def get_expiry(self, name: str) -> Optional[datetime]:
        ...


@dataclass
class _TrackedName:
    expiry: Optional[datetime] = None
    notified_threshold: Optional[int] = None  # Tightest threshold reported so far
    expired_notified: bool = False
    info: Optional[ExpirationInfo] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpirationTracker:
    """Tracks registration expiries and emits expiring/expired/renewed events."""

    def __init__(
        self,
        source: ExpirySource,
        thresholds_days: Sequence[int] = DEFAULT_THRESHOLDS_DAYS,
        check_interval_seconds: float = DEFAULT_CHECK_INTERVAL,
        clock: Callable[[], datetime] = _utcnow,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the tracker.

        Args:
            source: Expiry source; get_expiries(names) is used when available
            thresholds_days: Warning thresholds in days
            check_interval_seconds: Poll interval for start()
            clock: Returns the current aware datetime; tests inject a fake
            logger: Optional audit logger
        """
        if not thresholds_days or any(t <= 0 for t in thresholds_days):
            raise ValueError("thresholds_days must be positive")
        self._source = source
        self._thresholds = tuple(sorted(set(thresholds_days), reverse=True))
        self._interval = check_interval_seconds
        self._clock = clock
        self._state: dict[str, _TrackedName] = {}
        self._lock = threading.Lock()
        self._poller: Optional[PeriodicTask] = None
        self._logger = logger
        self._log = ComponentLogger(logger, "ExpirationTracker")

        self.on_expiring: EventChannel[ExpirationEvent] = EventChannel("expiring", logger)
        self.on_expired: EventChannel[ExpirationEvent] = EventChannel("expired", logger)
        self.on_renewed: EventChannel[RenewalEvent] = EventChannel("renewed", logger)

    @property
    def thresholds_days(self) -> tuple[int, ...]:
        return self._thresholds

    # Tracking

    async def track(self, name: str) -> Optional[ExpirationInfo]:
        """Start tracking a name and load its current expiry without emitting events."""
        await self.track_many([name])
        return self.get_expiration_info(name)

    async def track_many(self, names: Iterable[str]) -> None:
        new_names = []
        with self._lock:
            for name in names:
                if name not in self._state:
                    self._state[name] = _TrackedName()
                    new_names.append(name)
        if not new_names:
            return

        expiries = await self._fetch(new_names)
        now = self._clock()
        with self._lock:
            for name, expiry in expiries.items():
                state = self._state.get(name)
                if state is not None and expiry is not None:
                    state.expiry = expiry
                    state.info = ExpirationInfo.compute(name, expiry, now)
        self._log.debug("Tracking names", {"added": len(new_names)})

    def untrack(self, name: str) -> bool:
        with self._lock:
            return self._state.pop(name, None) is not None

    def get_tracked_names(self) -> list[str]:
        with self._lock:
            return list(self._state)

    async def mark_renewed(self, name: str) -> Optional[RenewalEvent]:
        """
        Re-fetch a name's expiry after a renewal and reset its notifications.

        Returns:
            The emitted RenewalEvent, or None if the name is not tracked or
            its expiry is unknown
        """
        with self._lock:
            if name not in self._state:
                return None
        expiries = await self._fetch([name])
        expiry = expiries.get(name)
        if expiry is None:
            return None

        with self._lock:
            state = self._state.get(name)
            if state is None:
                return None
            previous = state.expiry or expiry
            self._state[name] = _TrackedName(
                expiry=expiry,
                info=ExpirationInfo.compute(name, expiry, self._clock()),
            )
        event = RenewalEvent(name=name, previous_expiry=previous, new_expiry=expiry)
        await self.on_renewed.emit(event)
        return event

    # Polling

    async def check_now(self) -> None:
        """Run one poll: refresh every expiry, then emit due events."""
        names = self.get_tracked_names()
        if not names:
            return
        expiries = await self._fetch(names)
        now = self._clock()

        expiring: list[ExpirationEvent] = []
        expired: list[ExpirationEvent] = []
        renewed: list[RenewalEvent] = []

        with self._lock:
            for name in names:
                state = self._state.get(name)
                if state is None:
                    continue
                fetched = expiries.get(name)
                if fetched is not None:
                    if (
                        state.expiry is not None
                        and fetched > state.expiry
                        and (state.expired_notified or state.notified_threshold is not None)
                    ):
                        renewed.append(RenewalEvent(name, state.expiry, fetched))
                        state.notified_threshold = None
                        state.expired_notified = False
                    state.expiry = fetched
                if state.expiry is None:
                    continue

                state.info = ExpirationInfo.compute(name, state.expiry, now)
                event = self._due_event(name, state, now)
                if event is None:
                    continue
                if event.kind == ExpirationEventKind.EXPIRED:
                    expired.append(event)
                else:
                    expiring.append(event)

        for event in renewed:
            self._log.info("Name renewed", {"name": event.name, "expiry": event.new_expiry.isoformat()})
            await self.on_renewed.emit(event)
        for event in expired:
            self._log.warn("Name expired", {"name": event.name})
            await self.on_expired.emit(event)
        for event in expiring:
            self._log.info(
                "Name expiring",
                {"name": event.name, "days": event.days_until_expiration, "threshold": event.threshold_days},
            )
            await self.on_expiring.emit(event)

    def _due_event(self, name: str, state: _TrackedName, now: datetime) -> Optional[ExpirationEvent]:
        expiry = state.expiry
        days = days_between(now, expiry)
        if now > expiry:
            if state.expired_notified:
                return None
            state.expired_notified = True
            return ExpirationEvent(
                kind=ExpirationEventKind.EXPIRED,
                name=name,
                expiry=expiry,
                days_until_expiration=days,
            )

        remaining = expiry - now
        crossed = [t for t in self._thresholds if remaining <= timedelta(days=t)]
        if not crossed:
            return None
        tightest = min(crossed)
        if state.notified_threshold is not None and tightest >= state.notified_threshold:
            return None
        state.notified_threshold = tightest
        return ExpirationEvent(
            kind=ExpirationEventKind.EXPIRING,
            name=name,
            expiry=expiry,
            days_until_expiration=days,
            threshold_days=tightest,
        )

    async def _fetch(self, names: list[str]) -> dict[str, Optional[datetime]]:
        """Expiries for names; failures are logged and leave the entry out."""
        get_expiries = getattr(self._source, "get_expiries", None)
        if get_expiries is not None:
            try:
                return dict(await get_expiries(names))
            except Exception as e:
                self._log.error("Bulk expiry fetch failed", error=e, data={"names": len(names)})
                return {}

        results = await asyncio.gather(
            *(self._source.get_expiry(name) for name in names),
            return_exceptions=True,
        )
        expiries: dict[str, Optional[datetime]] = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                self._log.error("Expiry fetch failed", error=result, data={"name": name})
                continue
            expiries[name] = result
        return expiries

    def start(self) -> None:
        """Poll on the running event loop every check interval, starting now."""
        if self._poller is None:
            self._poller = PeriodicTask(
                name="expiration-check",
                interval_seconds=self._interval,
                callback=self.check_now,
                run_immediately=True,
                logger=self._logger,
            )
        self._poller.start()

    async def stop(self) -> None:
        if self._poller is not None:
            await self._poller.stop()

    def is_running(self) -> bool:
        return self._poller is not None and self._poller.is_running()

    # Snapshot queries

    def get_expiration_info(self, name: str) -> Optional[ExpirationInfo]:
        """Expiration info recomputed against the current clock."""
        with self._lock:
            state = self._state.get(name)
            expiry = state.expiry if state else None
        if expiry is None:
            return None
        return ExpirationInfo.compute(name, expiry, self._clock())

    def get_names_expiring_within(self, days: float) -> list[ExpirationInfo]:
        """Unexpired names whose expiry falls within the given window, soonest first."""
        now = self._clock()
        horizon = now + timedelta(days=days)
        with self._lock:
            candidates = [(n, s.expiry) for n, s in self._state.items() if s.expiry is not None]
        infos = [
            ExpirationInfo.compute(name, expiry, now)
            for name, expiry in candidates
            if now <= expiry < horizon
        ]
        return sorted(infos, key=lambda i: i.expiry)

    def get_expired_names(self) -> list[ExpirationInfo]:
        now = self._clock()
        with self._lock:
            candidates = [(n, s.expiry) for n, s in self._state.items() if s.expiry is not None]
        return [
            ExpirationInfo.compute(name, expiry, now)
            for name, expiry in candidates
            if now > expiry
        ]
