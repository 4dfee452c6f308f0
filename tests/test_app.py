"""Tests for the pyinflate dashboard."""

from pathlib import Path

import pytest
from textual.widgets import DataTable

from pyinflate.app import EventTable, InflationStats, InflatorApp, format_bytes, main
from pyinflate.config import InflatorSettings
from pyinflate.models import EventKind, InflationEvent, InflationStatus, MemoryReport


@pytest.fixture
def settings():
    return InflatorSettings(default_max_mb=2, default_step_mb=1, step_interval=0)


def test_format_bytes_bytes():
    """Test format_bytes with byte values."""
    assert "B" in format_bytes(500)


def test_format_bytes_megabytes():
    """Test format_bytes with megabyte values."""
    assert "M" in format_bytes(5242880)


def test_format_bytes_gigabytes():
    """Test format_bytes with gigabyte values."""
    assert "G" in format_bytes(1073741824)


def test_format_bytes_absent():
    """Test format_bytes renders a missing container value."""
    assert format_bytes(None).strip() == "n/a"


@pytest.mark.asyncio
async def test_app_creation(settings):
    """Test InflatorApp can be instantiated."""
    app = InflatorApp(settings=settings)
    assert app.title == "pyinflate"
    assert app.sub_title == "Memory Pressure Generator"
    assert app.service.get_status() == InflationStatus(0, 0)


@pytest.mark.asyncio
async def test_app_compose(settings):
    """Test InflatorApp composes correctly."""
    app = InflatorApp(settings=settings)
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#inflation-stats") is not None
        assert pilot.app.query_one("#event-table") is not None


@pytest.mark.asyncio
async def test_app_quit_binding(settings):
    """Test that 'q' binding triggers quit."""
    app = InflatorApp(settings=settings)
    async with app.run_test() as pilot:
        await pilot.press("q")
        assert pilot.app._exit


@pytest.mark.asyncio
async def test_inflate_binding(settings):
    """Test that 'i' inflates with the configured defaults."""
    app = InflatorApp(settings=settings)
    async with app.run_test() as pilot:
        await pilot.press("i")
        app.service.wait(timeout=10)
        await pilot.pause(1)

        stats = pilot.app.query_one("#inflation-stats", InflationStats)
        table = pilot.app.query_one(EventTable)
        assert stats._allocated_mb == 2
        assert stats._block_count == 2
        # started, two steps, complete
        assert table.row_count == 4
        assert stats._report is not None


@pytest.mark.asyncio
async def test_reset_binding(settings):
    """Test that 'r' releases allocated memory."""
    app = InflatorApp(settings=settings)
    async with app.run_test() as pilot:
        await pilot.press("i")
        app.service.wait(timeout=10)
        await pilot.press("r")
        await pilot.pause(1)

        assert app.service.get_status() == InflationStatus(0, 0)
        stats = pilot.app.query_one("#inflation-stats", InflationStats)
        assert stats._allocated_mb == 0


@pytest.mark.asyncio
async def test_event_table_add_event(settings):
    """Test events are appended as rows."""
    app = InflatorApp(settings=settings)
    async with app.run_test() as pilot:
        table = pilot.app.query_one(EventTable)
        table.add_event(
            InflationEvent(
                kind=EventKind.STEP,
                allocated_mb=10,
                block_count=1,
                report=MemoryReport(own_bytes=1024, subtree_bytes=2048),
            )
        )
        table.add_event(InflationEvent(kind=EventKind.RESET, allocated_mb=0, block_count=0))

        assert table.row_count == 2


@pytest.mark.asyncio
async def test_stats_update(settings):
    """Test that header stats can be updated."""
    app = InflatorApp(settings=settings)
    async with app.run_test() as pilot:
        stats = pilot.app.query_one("#inflation-stats", InflationStats)

        stats.update_status(InflationStatus(allocated_mb=25, block_count=3))
        stats.update_report(MemoryReport(own_bytes=1, subtree_bytes=2, container_bytes=3))

        assert stats._allocated_mb == 25
        assert stats._block_count == 3
        assert stats._report.container_bytes == 3


@pytest.mark.asyncio
async def test_event_table_drops_oldest_rows(settings):
    """Test the event log keeps at most max_rows rows."""
    app = InflatorApp(settings=settings)
    async with app.run_test() as pilot:
        table = pilot.app.query_one(EventTable)
        table.max_rows = 5
        for mb in range(8):
            table.add_event(InflationEvent(kind=EventKind.STEP, allocated_mb=mb, block_count=mb))

        data_table = pilot.app.query_one("#event-table", DataTable)
        assert table.row_count == 5
        assert data_table.row_count == 5
        # Rows for 0..2 MB were dropped; the oldest remaining is 3 MB
        assert data_table.get_row_at(0)[2] == "3M"


def test_dashboard_script_registered():
    """Test the dashboard is installed as a console script."""
    tomllib = pytest.importorskip("tomllib")
    pyproject = Path(__file__).resolve().parent.parent / "pyproject.toml"
    with pyproject.open("rb") as f:
        scripts = tomllib.load(f)["project"]["scripts"]

    assert scripts["pyinflate-dashboard"] == "pyinflate.app:main"
    assert callable(main)
