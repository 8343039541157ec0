"""
Tests for the app lifecycle monitor used by the UPI flow.
"""

import asyncio

import pytest

from storefront_checkout.services.lifecycle_monitor import AppState, ForegroundWaitResult


class TestForegroundWait:
    """Leave / return timing."""

    @pytest.mark.asyncio
    async def test_records_time_in_background(self, monitor, lifecycle_source, clock):
        async def leave_and_return():
            lifecycle_source.emit(AppState.BACKGROUND)
            clock.advance(12.5)
            lifecycle_source.emit(AppState.ACTIVE)

        result = await monitor.wait_for_foreground(60, before_wait=leave_and_return)

        assert result.timed_out is False
        assert result.background_seconds == pytest.approx(12.5)

    @pytest.mark.asyncio
    async def test_inactive_counts_as_leaving(self, monitor, lifecycle_source, clock):
        async def leave_and_return():
            lifecycle_source.emit(AppState.INACTIVE)
            clock.advance(2)
            lifecycle_source.emit(AppState.BACKGROUND)
            clock.advance(3)
            lifecycle_source.emit(AppState.ACTIVE)

        result = await monitor.wait_for_foreground(60, before_wait=leave_and_return)
        assert result.background_seconds == pytest.approx(5)

    @pytest.mark.asyncio
    async def test_active_before_leaving_is_ignored(self, monitor, lifecycle_source, clock):
        async def stay():
            lifecycle_source.emit(AppState.ACTIVE)
            clock.advance(61)

        result = await monitor.wait_for_foreground(60, before_wait=stay)

        assert result.timed_out is True
        assert result.left_at is None
        assert result.background_seconds == 0.0

    @pytest.mark.asyncio
    async def test_timeout_without_return(self, monitor, lifecycle_source, clock):
        async def leave():
            lifecycle_source.emit(AppState.BACKGROUND)
            clock.advance(301)

        result = await monitor.wait_for_foreground(300, before_wait=leave)

        assert result.timed_out is True
        assert result.left_at is not None
        assert result.returned_at is None

    @pytest.mark.asyncio
    async def test_timeout_follows_the_injected_clock(self, monitor, lifecycle_source, clock):
        async def five_minutes_pass():
            await asyncio.sleep(0.01)
            clock.advance(300.5)

        async def leave():
            lifecycle_source.emit(AppState.BACKGROUND)

        ticker = asyncio.ensure_future(five_minutes_pass())
        result = await asyncio.wait_for(
            monitor.wait_for_foreground(300, before_wait=leave), timeout=2
        )
        await ticker

        assert result.timed_out is True
        assert result.returned_at is None

    @pytest.mark.asyncio
    async def test_return_after_deadline_counts_as_timeout(self, monitor, lifecycle_source, clock):
        async def late_return():
            lifecycle_source.emit(AppState.BACKGROUND)
            clock.advance(400)
            lifecycle_source.emit(AppState.ACTIVE)

        result = await monitor.wait_for_foreground(300, before_wait=late_return)

        assert result.timed_out is True
        assert result.background_seconds == pytest.approx(400)

    def test_background_seconds_never_negative(self):
        result = ForegroundWaitResult(left_at=10.0, returned_at=9.0, timed_out=False)
        assert result.background_seconds == 0.0


class TestSubscription:
    """Subscriptions are scoped to one attempt."""

    @pytest.mark.asyncio
    async def test_unsubscribes_after_return(self, monitor, lifecycle_source, clock):
        async def leave_and_return():
            assert lifecycle_source.subscriber_count == 1
            lifecycle_source.emit(AppState.BACKGROUND)
            clock.advance(1)
            lifecycle_source.emit(AppState.ACTIVE)

        await monitor.wait_for_foreground(5, before_wait=leave_and_return)

        assert lifecycle_source.subscriber_count == 0
        assert monitor.watching is False

    @pytest.mark.asyncio
    async def test_unsubscribes_after_timeout(self, monitor, lifecycle_source, clock):
        async def time_passes():
            clock.advance(10)

        result = await monitor.wait_for_foreground(5, before_wait=time_passes)

        assert result.timed_out is True
        assert lifecycle_source.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_unsubscribes_when_launch_fails(self, monitor, lifecycle_source):
        async def explode():
            raise OSError("no activity")

        with pytest.raises(OSError):
            await monitor.wait_for_foreground(5, before_wait=explode)

        assert lifecycle_source.subscriber_count == 0
        assert monitor.watching is False

    @pytest.mark.asyncio
    async def test_only_one_watch_at_a_time(self, monitor, lifecycle_source):
        async with monitor.watch():
            with pytest.raises(RuntimeError):
                async with monitor.watch():
                    pass
            assert lifecycle_source.subscriber_count == 1

        assert lifecycle_source.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_events_after_return_are_ignored(self, monitor, lifecycle_source, clock):
        async with monitor.watch() as watch:
            lifecycle_source.emit(AppState.BACKGROUND)
            clock.advance(6)
            lifecycle_source.emit(AppState.ACTIVE)
            clock.advance(30)
            lifecycle_source.emit(AppState.BACKGROUND)
            lifecycle_source.emit(AppState.ACTIVE)
            result = await watch.wait(60)

        assert result.timed_out is False
        assert result.background_seconds == pytest.approx(6)
