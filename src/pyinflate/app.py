"""pyinflate - Live inflation dashboard."""

import time
from collections import deque
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static

from pyinflate.config import InflatorSettings, get_settings
from pyinflate.engine import InflationEngine
from pyinflate.errors import InvalidParameterError
from pyinflate.models import InflationEvent, InflationStatus, MemoryReport
from pyinflate.service import InflatorService


def format_bytes(size: int | None) -> str:
    """Format bytes as human-readable string."""
    if size is None:
        return "    n/a"
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


class InflationStats(Static):
    """Header widget showing engine accounting next to measured memory."""

    DEFAULT_CSS = """
    InflationStats {
        height: auto;
        min-height: 4;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize InflationStats."""
        super().__init__(*args, **kwargs)
        self._allocated_mb: int = 0
        self._block_count: int = 0
        self._report: MemoryReport | None = None

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_allocation_info(), id="allocation-info"),
            Static(self._get_memory_info(), id="memory-info"),
        )

    def update_status(self, status: InflationStatus) -> None:
        """Update the engine accounting."""
        self._allocated_mb = status.allocated_mb
        self._block_count = status.block_count
        self._refresh_display()

    def update_report(self, report: MemoryReport) -> None:
        """Update the measured memory figures."""
        self._report = report
        self._refresh_display()

    def _refresh_display(self) -> None:
        """Refresh the display with current data."""
        try:
            self.query_one("#allocation-info", Static).update(self._get_allocation_info())
            self.query_one("#memory-info", Static).update(self._get_memory_info())
        except Exception:
            pass  # Widget not mounted yet

    def _get_allocation_info(self) -> str:
        return f"Allocated: {self._allocated_mb} MB\nBlocks:    {self._block_count}"

    def _get_memory_info(self) -> str:
        if self._report is None:
            return "Waiting for memory report..."
        return (
            f"Own:       {format_bytes(self._report.own_bytes)}\n"
            f"Subtree:   {format_bytes(self._report.subtree_bytes)}\n"
            f"Container: {format_bytes(self._report.container_bytes)}"
        )


class EventTable(Container):
    """Container for the progress event log."""

    MAX_ROWS = 500

    DEFAULT_CSS = """
    EventTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize EventTable."""
        super().__init__(*args, **kwargs)
        self._row_keys: deque[str] = deque()
        self._next_key: int = 0
        self.max_rows: int = self.MAX_ROWS

    @property
    def row_count(self) -> int:
        """Get the number of rows currently shown."""
        return len(self._row_keys)

    def compose(self) -> ComposeResult:
        """Compose the event table."""
        yield DataTable(id="event-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#event-table", DataTable)
        table.cursor_type = "row"

        table.add_column("Time", key="time", width=10)
        table.add_column("Event", key="event", width=10)
        table.add_column("ALLOC", key="allocated", width=8)
        table.add_column("BLK", key="blocks", width=5)
        table.add_column("OWN", key="own", width=8)
        table.add_column("TREE", key="subtree", width=8)
        table.add_column("CGROUP", key="container", width=8)

    def add_event(self, event: InflationEvent) -> None:
        """Append a progress event, dropping the oldest rows past max_rows."""
        table = self.query_one("#event-table", DataTable)
        report = event.report
        row_key = str(self._next_key)
        self._next_key += 1
        table.add_row(
            time.strftime("%H:%M:%S", time.localtime(event.timestamp)),
            event.kind.value,
            f"{event.allocated_mb}M",
            str(event.block_count),
            format_bytes(report.own_bytes) if report else "",
            format_bytes(report.subtree_bytes) if report else "",
            format_bytes(report.container_bytes) if report else "",
            key=row_key,
        )
        self._row_keys.append(row_key)

        while len(self._row_keys) > self.max_rows:
            table.remove_row(self._row_keys.popleft())

        table.move_cursor(row=table.row_count - 1)


class InflatorApp(App):
    """Main pyinflate dashboard."""

    TITLE = "pyinflate"
    SUB_TITLE = "Memory Pressure Generator"

    CSS = """
    Screen {
        layout: vertical;
    }

    #inflation-stats {
        dock: top;
        height: auto;
        min-height: 5;
    }

    Horizontal {
        height: auto;
    }

    #allocation-info {
        width: 1fr;
        padding-right: 2;
    }

    #memory-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("i", "inflate", "Inflate"),
        ("r", "reset", "Reset"),
    ]

    def __init__(self, settings: InflatorSettings | None = None) -> None:
        """Initialize the InflatorApp."""
        super().__init__()
        self._settings = settings or get_settings()
        self._event_queue: Queue[InflationEvent] = Queue()
        self._service = InflatorService(
            InflationEngine(
                step_interval=self._settings.step_interval,
                events=self._event_queue,
            )
        )

    @property
    def service(self) -> InflatorService:
        """Get the inflation service driven by the dashboard."""
        return self._service

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield InflationStats(id="inflation-stats")
        yield EventTable()
        yield Footer()

    def on_mount(self) -> None:
        """Poll the event queue and engine status on a timer."""
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain queued events and refresh the header."""
        try:
            stats = self.query_one("#inflation-stats", InflationStats)
            table = self.query_one(EventTable)
            while True:
                try:
                    event = self._event_queue.get_nowait()
                except Empty:
                    break
                table.add_event(event)
                if event.report is not None:
                    stats.update_report(event.report)

            stats.update_status(self._service.get_status())
        except Exception:
            # The dashboard must never crash on a refresh
            pass

    def action_inflate(self) -> None:
        """Start one inflation run with the configured defaults."""
        try:
            self._service.start_inflation(
                self._settings.default_max_mb,
                self._settings.default_step_mb,
            )
        except InvalidParameterError as e:
            self.notify(str(e), severity="error")
            return
        self.notify(
            f"Inflating to {self._settings.default_max_mb} MB "
            f"in steps of {self._settings.default_step_mb} MB"
        )

    def action_reset(self) -> None:
        """Release all allocated memory."""
        self._service.reset()
        self.notify("Reset allocation to 0 MB")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._service.engine.close()
        self.exit()


def main() -> None:
    """Entry point for the pyinflate dashboard."""
    app = InflatorApp()
    app.run()


if __name__ == "__main__":
    main()
