"""Caller-facing inflation service for pyinflate."""

import logging
import threading

from pyinflate.engine import InflationEngine
from pyinflate.errors import AllocationError, InvalidParameterError
from pyinflate.models import InflationStatus, MemoryReport

logger = logging.getLogger(__name__)


class InflatorService:
    """
    Thin facade used by the HTTP API, the CLI and the dashboard.

    ``start_inflation`` returns immediately; the inflation runs on a daemon
    thread and callers poll ``get_status``. Whether to serialize overlapping
    requests is left to the caller; overlapping inflations add up.
    """

    def __init__(self, engine: InflationEngine | None = None) -> None:
        self._engine = engine or InflationEngine()
        self._threads: list[threading.Thread] = []
        self._threads_lock = threading.Lock()
        self._last_error: AllocationError | None = None

    @property
    def engine(self) -> InflationEngine:
        """Get the underlying engine."""
        return self._engine

    @property
    def last_error(self) -> AllocationError | None:
        """Most recent allocation failure from a background inflation."""
        return self._last_error

    @property
    def is_inflating(self) -> bool:
        """Check if any background inflation is still running."""
        with self._threads_lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            return bool(self._threads)

    def start_inflation(self, target_mb: int, step_mb: int) -> None:
        """
        Start inflating in the background.

        Raises:
            InvalidParameterError: Raised here, before any thread is started.
        """
        if target_mb < 0:
            raise InvalidParameterError(f"target_mb must be >= 0, got {target_mb}")
        if step_mb < 1:
            raise InvalidParameterError(f"step_mb must be >= 1, got {step_mb}")

        thread = threading.Thread(
            target=self._run,
            args=(target_mb, step_mb),
            daemon=True,
            name=f"Inflation-{target_mb}MB",
        )
        with self._threads_lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()

    def wait(self, timeout: float | None = None) -> bool:
        """
        Wait for background inflations to finish.

        Returns:
            True if none is still running.
        """
        with self._threads_lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout=timeout)
        return not self.is_inflating

    def get_status(self) -> InflationStatus:
        return self._engine.status()

    def reset(self) -> InflationStatus:
        self._last_error = None
        return self._engine.reset()

    def memory_report(self) -> MemoryReport:
        """Memory footprint of the current process."""
        return self._engine.introspector.memory_report()

    def _run(self, target_mb: int, step_mb: int) -> None:
        try:
            self._engine.inflate_to(target_mb, step_mb)
        except AllocationError as exc:
            # No caller is waiting on this thread; keep the error visible
            self._last_error = exc
            logger.error("Background inflation failed: %s", exc)
