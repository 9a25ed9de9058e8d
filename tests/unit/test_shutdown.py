"""Tests for parallel shutdown and sequential start of all resources."""

import asyncio
import logging
from unittest.mock import AsyncMock, Mock

import pytest

from process_supervisor import ProcessState, ResourceConfig


def errors_of(caplog) -> list[str]:
    return [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]


class TestShutdownAll:
    """Tests for shutdown_all()."""

    @pytest.mark.asyncio
    async def test_stops_all_resources(self, supervisor):
        stops = {rid: AsyncMock() for rid in ("a", "b", "c")}
        for rid, stop in stops.items():
            supervisor.register(rid, ResourceConfig(start=Mock(return_value=rid), stop=stop))
            await supervisor.start(rid)

        errors = await supervisor.shutdown_all()

        assert errors is False
        for rid, stop in stops.items():
            stop.assert_awaited_once_with(rid)
            assert supervisor.get_state(rid) is ProcessState.STOPPED

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(self, supervisor, caplog):
        """Two of three reach STOPPED, the failing one FAILED, one error logged."""
        caplog.set_level(logging.DEBUG, logger="sup")
        error = RuntimeError("Stop failed")
        supervisor.register("ok1", ResourceConfig(start=Mock(), stop=AsyncMock()))
        supervisor.register("bad", ResourceConfig(start=Mock(), stop=AsyncMock(side_effect=error)))
        supervisor.register("ok2", ResourceConfig(start=Mock(), stop=AsyncMock()))
        for rid in ("ok1", "bad", "ok2"):
            await supervisor.start(rid)

        errors = await supervisor.shutdown_all()

        assert errors is True
        assert supervisor.get_state("ok1") is ProcessState.STOPPED
        assert supervisor.get_state("ok2") is ProcessState.STOPPED
        assert supervisor.get_state("bad") is ProcessState.FAILED
        assert errors_of(caplog) == ['Failed to stop resource "bad": Stop failed']

    @pytest.mark.asyncio
    async def test_logs_every_failed_resource(self, supervisor, caplog):
        caplog.set_level(logging.DEBUG, logger="sup")
        for rid in ("x", "y"):
            supervisor.register(rid, ResourceConfig(
                start=Mock(),
                stop=AsyncMock(side_effect=RuntimeError(f"{rid} broke"))
            ))
            await supervisor.start(rid)

        assert await supervisor.shutdown_all() is True
        assert sorted(errors_of(caplog)) == [
            'Failed to stop resource "x": x broke',
            'Failed to stop resource "y": y broke',
        ]

    @pytest.mark.asyncio
    async def test_empty_supervisor(self, supervisor, caplog):
        caplog.set_level(logging.DEBUG, logger="sup")

        assert await supervisor.shutdown_all() is False
        assert errors_of(caplog) == []

    @pytest.mark.asyncio
    async def test_idle_resources_are_untouched(self, supervisor):
        stop = AsyncMock()
        supervisor.register("idle", ResourceConfig(start=Mock(), stop=stop))

        assert await supervisor.shutdown_all() is False
        stop.assert_not_called()
        assert supervisor.get_state("idle") is ProcessState.IDLE

    @pytest.mark.asyncio
    async def test_stops_run_concurrently(self, supervisor):
        """All stop callbacks are in flight before any of them finishes."""
        release = asyncio.Event()
        in_flight = []

        def make_stop(rid):
            async def stop(_instance):
                in_flight.append(rid)
                await release.wait()
            return stop

        for rid in ("a", "b", "c"):
            supervisor.register(rid, ResourceConfig(start=Mock(), stop=make_stop(rid)))
            await supervisor.start(rid)

        task = asyncio.create_task(supervisor.shutdown_all())
        await asyncio.sleep(0.01)
        assert sorted(in_flight) == ["a", "b", "c"]
        assert set(supervisor.get_all_states().values()) == {ProcessState.STOPPING}

        release.set()
        assert await task is False

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, supervisor, caplog):
        caplog.set_level(logging.DEBUG, logger="sup")
        never = asyncio.Event()

        async def hanging_stop(_instance):
            await never.wait()

        supervisor.register("hang", ResourceConfig(start=Mock(), stop=hanging_stop, timeout=0.05))
        supervisor.register("ok", ResourceConfig(start=Mock(), stop=AsyncMock()))
        await supervisor.start("hang")
        await supervisor.start("ok")

        assert await supervisor.shutdown_all() is True
        assert supervisor.get_state("hang") is ProcessState.FAILED
        assert supervisor.get_state("ok") is ProcessState.STOPPED
        assert errors_of(caplog) == ['Failed to stop resource "hang": Resource "hang" failed to stop within 0.05s']
        never.set()


class TestStartAll:
    """Tests for start_all()."""

    @pytest.mark.asyncio
    async def test_starts_in_registration_order(self, supervisor):
        order = []
        for rid in ("first", "second", "third"):
            supervisor.register(rid, ResourceConfig(
                start=lambda rid=rid: order.append(rid),
                stop=AsyncMock()
            ))

        assert await supervisor.start_all() is True
        assert order == ["first", "second", "third"]
        assert set(supervisor.get_all_states().values()) == {ProcessState.RUNNING}

    @pytest.mark.asyncio
    async def test_start_failure_is_logged_and_others_start(self, supervisor, caplog):
        caplog.set_level(logging.DEBUG, logger="sup")
        supervisor.register("bad", ResourceConfig(start=Mock(side_effect=OSError("spawn failed")), stop=AsyncMock()))
        supervisor.register("good", ResourceConfig(start=Mock(), stop=AsyncMock()))

        assert await supervisor.start_all() is False
        assert supervisor.get_state("bad") is ProcessState.FAILED
        assert supervisor.get_state("good") is ProcessState.RUNNING
        assert errors_of(caplog) == ['Failed to start resource "bad": spawn failed']
