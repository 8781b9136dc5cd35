"""Tests for the background gauge updaters."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import sample
from cosmos_evm_exporter.errors import NetworkError
from cosmos_evm_exporter.metrics_updater import MetricsUpdater


@pytest.fixture
def updater(metrics):
    height_reader = MagicMock()
    height_reader.current_cl_height = AsyncMock(return_value=1234)
    gap_tracker = MagicMock()
    gap_tracker.current_gap = AsyncMock(return_value=7)
    return MetricsUpdater(height_reader, gap_tracker, metrics, asyncio.Event(), interval=0.01)


@pytest.mark.asyncio
async def test_update_height(updater, metrics):
    await updater.update_height()
    assert sample(metrics, "validator_current_block_height") == 1234


@pytest.mark.asyncio
async def test_update_gap(updater, metrics):
    await updater.update_gap()
    assert sample(metrics, "validator_el_to_cl_gap") == 7


@pytest.mark.asyncio
async def test_negative_gap_is_published(updater, metrics):
    """Test that an execution layer ahead of consensus shows up as a negative gap."""
    updater.gap_tracker.current_gap = AsyncMock(return_value=-3)
    await updater.update_gap()
    assert sample(metrics, "validator_el_to_cl_gap") == -3


@pytest.mark.asyncio
async def test_failures_are_counted_and_loop_continues(updater, metrics):
    """Test that a failed refresh increments errors and the next one still runs."""
    calls = 0

    async def flaky_height():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise NetworkError("cl down", layer="consensus")
        updater.stop_event.set()
        return 1500

    updater.height_reader.current_cl_height = AsyncMock(side_effect=flaky_height)

    await asyncio.wait_for(updater.run_height_updater(), timeout=5)

    assert calls == 2
    assert sample(metrics, "validator_block_processing_errors_total") == 1
    assert sample(metrics, "validator_current_block_height") == 1500


@pytest.mark.asyncio
async def test_gap_updater_stops_on_event(updater, metrics):
    async def gap_then_stop():
        updater.stop_event.set()
        return 4

    updater.gap_tracker.current_gap = AsyncMock(side_effect=gap_then_stop)

    await asyncio.wait_for(updater.run_gap_updater(), timeout=5)

    updater.gap_tracker.current_gap.assert_awaited_once()
    assert sample(metrics, "validator_el_to_cl_gap") == 4


@pytest.mark.asyncio
async def test_unexpected_errors_do_not_end_the_loop(updater, metrics):
    """Test that a failure outside the exporter's error types is counted and the loop carries on."""
    calls = 0

    async def failing_gap():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("corrupt gzip body")
        updater.stop_event.set()
        return 9

    updater.gap_tracker.current_gap = AsyncMock(side_effect=failing_gap)

    await asyncio.wait_for(updater.run_gap_updater(), timeout=5)

    assert calls == 2
    assert sample(metrics, "validator_block_processing_errors_total") == 1
    assert sample(metrics, "validator_el_to_cl_gap") == 9
