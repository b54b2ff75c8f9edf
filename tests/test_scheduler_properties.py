"""
Tests for background periodic tasks and event channels.

PeriodicTask drives the cache sweep and the expiration poll; EventChannel
delivers expiration events to subscribers.
"""

import asyncio
from io import StringIO

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from universal_names.audit_logger import AuditLogger
from universal_names.enums import LogLevel
from universal_names.events import EventChannel
from universal_names.scheduler import PeriodicTask

from fakes import run_async


class TestPeriodicTask:
    """Start/stop lifecycle of a periodic task."""

    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, lambda: None)

    def test_runs_repeatedly_until_stopped(self) -> None:
        ticks: list[int] = []

        async def scenario() -> PeriodicTask:
            task = PeriodicTask("tick", 0.01, lambda: ticks.append(1))
            task.start()
            await asyncio.sleep(0.1)
            await task.stop()
            return task

        task = run_async(scenario())

        assert len(ticks) >= 2
        assert task.run_count == len(ticks)
        assert not task.is_running()

    def test_run_immediately_fires_before_first_interval(self) -> None:
        calls: list[str] = []

        async def callback() -> None:
            calls.append("run")

        async def scenario() -> None:
            task = PeriodicTask("now", 60, callback, run_immediately=True)
            task.start()
            await asyncio.sleep(0.01)
            await task.stop()

        run_async(scenario())

        assert calls == ["run"]

    def test_callback_error_is_logged_and_loop_survives(self) -> None:
        logger = AuditLogger(output_stream=StringIO(), min_level=LogLevel.DEBUG)
        attempts: list[int] = []

        def flaky() -> None:
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("boom")

        async def scenario() -> PeriodicTask:
            task = PeriodicTask("flaky", 0.01, flaky, run_immediately=True, logger=logger)
            task.start()
            await asyncio.sleep(0.08)
            await task.stop()
            return task

        task = run_async(scenario())

        assert len(attempts) >= 2
        assert isinstance(task.last_error, RuntimeError)
        errors = [e for e in logger.entries if e.level == LogLevel.ERROR]
        assert errors and errors[0].component == "PeriodicTask"

    def test_start_twice_is_noop(self) -> None:
        async def scenario() -> int:
            task = PeriodicTask("once", 60, lambda: None, run_immediately=True)
            task.start()
            task.start()
            await asyncio.sleep(0.01)
            await task.stop()
            return task.run_count

        assert run_async(scenario()) == 1


class TestEventChannelProperty:
    """
    Property-based tests for event delivery.

    **Property 9: Every active subscriber receives every event once**
    """

    @given(
        subscribers=st.integers(min_value=0, max_value=10),
        unsubscribed=st.integers(min_value=0, max_value=10),
    )
    @settings(max_examples=100)
    def test_delivery_count_matches_active_subscribers(self, subscribers: int, unsubscribed: int) -> None:
        """
        Property 9: Delivery count.

        *For any* number of subscribers of which some unsubscribe, emit SHALL
        deliver the event exactly once to each remaining subscriber.
        """
        channel: EventChannel[str] = EventChannel("test")
        received: list[list[str]] = [[] for _ in range(subscribers)]
        subscriptions = [channel.subscribe(box.append) for box in received]

        dropped = min(unsubscribed, subscribers)
        for subscription in subscriptions[:dropped]:
            subscription.unsubscribe()
            subscription.unsubscribe()

        delivered = run_async(channel.emit("event"))

        assert delivered == subscribers - dropped
        assert channel.subscriber_count == subscribers - dropped
        assert all(box == [] for box in received[:dropped])
        assert all(box == ["event"] for box in received[dropped:])

    def test_failing_handler_does_not_block_others(self) -> None:
        logger = AuditLogger(output_stream=StringIO(), min_level=LogLevel.DEBUG)
        channel: EventChannel[int] = EventChannel("expiring", logger=logger)
        seen: list[int] = []

        def broken(event: int) -> None:
            raise ValueError("handler failed")

        async def async_handler(event: int) -> None:
            seen.append(event)

        channel.subscribe(broken)
        channel.subscribe(async_handler)

        delivered = run_async(channel.emit(7))

        assert delivered == 1
        assert seen == [7]
        assert any(e.level == LogLevel.ERROR for e in logger.entries)
