"""
Property-based tests for the expiration tracker.

Uses Hypothesis for property-based testing to verify that threshold,
expired and renewed events are emitted exactly once per crossing.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from io import StringIO
from typing import Optional

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from universal_names.audit_logger import AuditLogger
from universal_names.enums import ExpirationEventKind, LogLevel
from universal_names.exceptions import RpcError
from universal_names.expiration import ExpirationTracker
from universal_names.models import ExpirationEvent, ExpirationInfo, RenewalEvent

from fakes import FakeClock, run_async

DAY = 86400


class FakeExpirySource:
    """ExpirySource over a dict; names listed in failing raise RpcError."""

    def __init__(self, expiries: Optional[dict[str, datetime]] = None) -> None:
        self.expiries = dict(expiries or {})
        self.failing: set[str] = set()
        self.requests: list[str] = []

    async def get_expiry(self, name: str) -> Optional[datetime]:
        self.requests.append(name)
        if name in self.failing:
            raise RpcError(code="network_error", message="unreachable")
        return self.expiries.get(name)


class Recorder:
    """Subscribes to all three channels of a tracker."""

    def __init__(self, tracker: ExpirationTracker) -> None:
        self.expiring: list[ExpirationEvent] = []
        self.expired: list[ExpirationEvent] = []
        self.renewed: list[RenewalEvent] = []
        tracker.on_expiring.subscribe(self.expiring.append)
        tracker.on_expired.subscribe(self.expired.append)
        tracker.on_renewed.subscribe(self.renewed.append)


def make_tracker(source, clock: FakeClock, **kwargs) -> ExpirationTracker:
    return ExpirationTracker(source, clock=clock.utcnow, **kwargs)


class TestThresholdEventsProperty:
    """
    Property-based tests for threshold notifications.

    **Property 17: Each threshold is reported at most once, tightest first**
    """

    @given(
        days_left=st.integers(min_value=1, max_value=60),
        hours_offset=st.integers(min_value=0, max_value=23),
        poll_hours=st.sampled_from([6, 12, 24, 48]),
    )
    @settings(max_examples=100, deadline=None)
    def test_threshold_events_are_unique_and_tightening(
        self, days_left: int, hours_offset: int, poll_hours: int
    ) -> None:
        """
        Property 17: Threshold uniqueness.

        *For any* expiry and polling cadence, polling until past the expiry
        SHALL report strictly tightening thresholds, never repeat one, and
        report the expiry exactly once.
        """
        clock = FakeClock()
        expiry = clock.now + timedelta(days=days_left, hours=hours_offset)
        source = FakeExpirySource({"alice.eth": expiry})
        tracker = make_tracker(source, clock)
        recorder = Recorder(tracker)

        async def scenario() -> None:
            await tracker.track("alice.eth")
            while clock.now <= expiry + timedelta(days=3):
                await tracker.check_now()
                clock.advance(poll_hours * 3600)

        run_async(scenario())

        thresholds = [e.threshold_days for e in recorder.expiring]
        assert thresholds == sorted(set(thresholds), reverse=True)
        assert all(t in tracker.thresholds_days for t in thresholds)
        assert len(recorder.expired) == 1
        assert recorder.expired[0].kind == ExpirationEventKind.EXPIRED
        assert recorder.renewed == []

    def test_only_tightest_crossed_threshold_is_emitted(self) -> None:
        """A name first seen 6.5 days out gets one 7-day warning, not 30/14/7."""
        clock = FakeClock()
        source = FakeExpirySource({"alice.eth": clock.now + timedelta(days=6, hours=12)})
        tracker = make_tracker(source, clock)
        recorder = Recorder(tracker)

        async def scenario() -> None:
            await tracker.track("alice.eth")
            await tracker.check_now()
            await tracker.check_now()

        run_async(scenario())

        assert len(recorder.expiring) == 1
        assert recorder.expiring[0].threshold_days == 7
        assert recorder.expiring[0].days_until_expiration == 6

    def test_track_emits_nothing(self) -> None:
        clock = FakeClock()
        source = FakeExpirySource({"alice.eth": clock.now + timedelta(days=2)})
        tracker = make_tracker(source, clock)
        recorder = Recorder(tracker)

        info = run_async(tracker.track("alice.eth"))

        assert info.is_expiring_soon
        assert info.urgency_label == "critical"
        assert recorder.expiring == [] and recorder.expired == []

    def test_rejects_bad_thresholds(self) -> None:
        with pytest.raises(ValueError):
            ExpirationTracker(FakeExpirySource(), thresholds_days=[])
        with pytest.raises(ValueError):
            ExpirationTracker(FakeExpirySource(), thresholds_days=[7, 0])


class TestRenewalProperty:
    """
    Property-based tests for renewals.

    **Property 18: A renewal resets notification state**
    """

    @given(extension_days=st.integers(min_value=1, max_value=400))
    @settings(max_examples=50, deadline=None)
    def test_renewal_after_expiry(self, extension_days: int) -> None:
        """
        Property 18: Renewal detection.

        *For any* extension of an expired name, the next poll SHALL emit one
        renewed event and later crossings SHALL be reported again.
        """
        clock = FakeClock()
        expiry = clock.now + timedelta(days=1)
        source = FakeExpirySource({"alice.eth": expiry})
        tracker = make_tracker(source, clock)
        recorder = Recorder(tracker)

        async def scenario() -> None:
            await tracker.track("alice.eth")
            clock.advance(2 * DAY)
            await tracker.check_now()
            source.expiries["alice.eth"] = clock.now + timedelta(days=extension_days)
            await tracker.check_now()

        run_async(scenario())

        assert len(recorder.expired) == 1
        assert len(recorder.renewed) == 1
        assert recorder.renewed[0].previous_expiry == expiry
        assert recorder.renewed[0].new_expiry == source.expiries["alice.eth"]
        info = tracker.get_expiration_info("alice.eth")
        assert not info.is_expired
        if extension_days <= 30:
            assert recorder.expiring and recorder.expiring[-1].expiry == source.expiries["alice.eth"]

    def test_quiet_extension_is_not_a_renewal_event(self) -> None:
        """An expiry that moves before any warning was sent emits nothing."""
        clock = FakeClock()
        source = FakeExpirySource({"alice.eth": clock.now + timedelta(days=200)})
        tracker = make_tracker(source, clock)
        recorder = Recorder(tracker)

        async def scenario() -> None:
            await tracker.track("alice.eth")
            source.expiries["alice.eth"] = clock.now + timedelta(days=565)
            await tracker.check_now()

        run_async(scenario())

        assert recorder.renewed == []
        assert tracker.get_expiration_info("alice.eth").days_until_expiration == 565

    def test_mark_renewed(self) -> None:
        clock = FakeClock()
        source = FakeExpirySource({"alice.eth": clock.now + timedelta(days=5)})
        tracker = make_tracker(source, clock)
        recorder = Recorder(tracker)

        async def scenario() -> Optional[RenewalEvent]:
            await tracker.track("alice.eth")
            await tracker.check_now()
            source.expiries["alice.eth"] = clock.now + timedelta(days=370)
            return await tracker.mark_renewed("alice.eth")

        event = run_async(scenario())

        assert event is not None
        assert recorder.renewed == [event]
        assert run_async(tracker.mark_renewed("unknown.eth")) is None


class TestTrackerQueries:
    """Snapshot queries and failure handling."""

    def test_expiring_within_and_expired(self) -> None:
        clock = FakeClock()
        source = FakeExpirySource({
            "soon.eth": clock.now + timedelta(days=3),
            "later.eth": clock.now + timedelta(days=20),
            "far.eth": clock.now + timedelta(days=300),
            "gone.eth": clock.now - timedelta(days=1),
            "unknown.eth": None,
        })
        tracker = make_tracker(source, clock)

        run_async(tracker.track_many(list(source.expiries)))

        within = tracker.get_names_expiring_within(30)
        assert [i.name for i in within] == ["soon.eth", "later.eth"]
        assert [i.name for i in tracker.get_expired_names()] == ["gone.eth"]
        assert tracker.get_expiration_info("unknown.eth") is None
        assert set(tracker.get_tracked_names()) == set(source.expiries)
        assert tracker.untrack("far.eth")
        assert not tracker.untrack("far.eth")

    def test_source_failure_is_logged_not_raised(self) -> None:
        clock = FakeClock()
        logger = AuditLogger(output_stream=StringIO(), min_level=LogLevel.DEBUG)
        source = FakeExpirySource({"ok.eth": clock.now + timedelta(days=2)})
        source.failing.add("down.eth")
        tracker = make_tracker(source, clock, logger=logger)
        recorder = Recorder(tracker)

        async def scenario() -> None:
            await tracker.track_many(["ok.eth", "down.eth"])
            await tracker.check_now()

        run_async(scenario())

        assert [e.name for e in recorder.expiring] == ["ok.eth"]
        errors = [e for e in logger.entries if e.level == LogLevel.ERROR]
        assert errors and errors[0].data["error_code"] == "network_error"

    def test_start_polls_immediately(self) -> None:
        clock = FakeClock()
        source = FakeExpirySource({"alice.eth": clock.now + timedelta(days=10)})
        tracker = make_tracker(source, clock, check_interval_seconds=3600)
        recorder = Recorder(tracker)

        async def scenario() -> None:
            await tracker.track("alice.eth")
            tracker.start()
            await asyncio.sleep(0.01)
            assert tracker.is_running()
            await tracker.stop()

        run_async(scenario())

        assert [e.threshold_days for e in recorder.expiring] == [14]
        assert not tracker.is_running()


class TestExpirationInfoProperty:
    """
    Property-based tests for urgency classification.

    **Property 19: Urgency never decreases as expiry approaches**
    """

    @given(
        first=st.integers(min_value=-10 * DAY, max_value=400 * DAY),
        delta=st.integers(min_value=0, max_value=100 * DAY),
    )
    @settings(max_examples=200)
    def test_urgency_is_monotonic(self, first: int, delta: int) -> None:
        """
        *For any* two observation times, the later one SHALL report an
        urgency at least as high as the earlier one.
        """
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        expiry = now + timedelta(seconds=first)

        earlier = ExpirationInfo.compute("a.eth", expiry, now)
        later = ExpirationInfo.compute("a.eth", expiry, now + timedelta(seconds=delta))

        assert later.urgency >= earlier.urgency
        assert not (later.is_expired and later.is_expiring_soon)
