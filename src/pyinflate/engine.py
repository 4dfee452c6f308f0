"""Memory inflation engine for pyinflate."""

import gc
import logging
import threading
import time
from queue import Queue

from pyinflate.errors import AllocationError, InvalidParameterError
from pyinflate.introspection import MemoryIntrospector, detect_introspector
from pyinflate.models import EventKind, InflationEvent, InflationStatus, MemoryReport

MB = 1024 * 1024
PAGE_SIZE = 4096

module_logger = logging.getLogger(__name__)


def allocate_block(size_mb: int) -> bytearray:
    """
    Allocate ``size_mb`` MiB and write one byte into every page.

    Zero-filled allocations are mapped lazily by the OS; the writes force
    each page to be backed by physical memory.

    Raises:
        MemoryError: If the allocation cannot be satisfied.
    """
    block = bytearray(size_mb * MB)
    pages = len(range(0, len(block), PAGE_SIZE))
    block[::PAGE_SIZE] = b"\x01" * pages
    return block


class InflationEngine:
    """
    Owns a growing list of touched memory blocks.

    All reads and writes of the block list and the allocated counter happen
    under a single lock, so ``status()`` never observes one without the
    other. Several ``inflate_to`` calls may run at once on different threads;
    each adds its own ``target_mb`` to the shared total. ``reset()`` releases
    every block and cancels inflations that started before it.
    """

    def __init__(
        self,
        introspector: MemoryIntrospector | None = None,
        step_interval: float = 2.0,
        logger: logging.Logger | None = None,
        events: Queue[InflationEvent] | None = None,
    ) -> None:
        """
        Initialize the InflationEngine.

        Args:
            introspector: Memory introspection strategy. Detected from the host if omitted.
            step_interval: Pause between allocation steps (in seconds). Default 2.0s.
            logger: Logger receiving progress events. Defaults to the module logger.
            events: Optional thread-safe queue that also receives progress events.
        """
        self._introspector = introspector or detect_introspector()
        self._step_interval = max(0.0, step_interval)
        self._log = logger or module_logger
        self._events = events
        self._lock = threading.Lock()
        self._blocks: list[bytearray] = []
        self._allocated_mb = 0
        self._generation = 0

    @property
    def step_interval(self) -> float:
        """Get the pause between allocation steps."""
        return self._step_interval

    @step_interval.setter
    def step_interval(self, value: float) -> None:
        """Set the pause between allocation steps."""
        self._step_interval = max(0.0, value)

    @property
    def introspector(self) -> MemoryIntrospector:
        """Get the memory introspection strategy."""
        return self._introspector

    @property
    def allocated_mb(self) -> int:
        """Get the total MB currently allocated."""
        return self.status().allocated_mb

    @property
    def block_count(self) -> int:
        """Get the number of blocks currently held."""
        return self.status().block_count

    def status(self) -> InflationStatus:
        """Return allocated MB and block count as one consistent pair."""
        with self._lock:
            return InflationStatus(
                allocated_mb=self._allocated_mb,
                block_count=len(self._blocks),
            )

    def inflate_to(self, target_mb: int, step_mb: int) -> int:
        """
        Allocate ``target_mb`` MiB in chunks of at most ``step_mb`` MiB.

        Blocks until done, pausing ``step_interval`` seconds between steps.
        Run it on a background thread when the caller must stay responsive.

        Args:
            target_mb: Total MiB this call adds. Must be >= 0.
            step_mb: Maximum MiB per block. Must be >= 1.

        Returns:
            MiB actually added by this call. Less than ``target_mb`` only if a
            concurrent ``reset()`` cancelled the inflation.

        Raises:
            InvalidParameterError: If target_mb or step_mb is out of range.
            AllocationError: If a block cannot be allocated.
        """
        if target_mb < 0:
            raise InvalidParameterError(f"target_mb must be >= 0, got {target_mb}")
        if step_mb < 1:
            raise InvalidParameterError(f"step_mb must be >= 1, got {step_mb}")

        with self._lock:
            generation = self._generation
        self._emit(EventKind.STARTED, target_mb=target_mb, step_mb=step_mb)

        progress = 0
        while progress < target_mb:
            if not self._is_current(generation):
                return self._cancelled(progress, target_mb, step_mb)

            chunk = min(step_mb, target_mb - progress)
            try:
                block = allocate_block(chunk)
            except MemoryError as exc:
                self._emit(EventKind.FAILED, target_mb=target_mb, step_mb=step_mb)
                raise AllocationError(chunk, self.allocated_mb) from exc

            with self._lock:
                appended = self._generation == generation
                if appended:
                    self._blocks.append(block)
                    self._allocated_mb += chunk
            del block

            if not appended:
                return self._cancelled(progress, target_mb, step_mb)

            progress += chunk
            self._emit(
                EventKind.STEP,
                target_mb=target_mb,
                step_mb=step_mb,
                report=self._safe_report(),
            )

            if progress < target_mb and self._step_interval > 0:
                time.sleep(self._step_interval)

        self._emit(
            EventKind.COMPLETE,
            target_mb=target_mb,
            step_mb=step_mb,
            report=self._safe_report(),
        )
        return progress

    def reset(self) -> InflationStatus:
        """Release every block, zero the counter and cancel running inflations."""
        with self._lock:
            self._blocks.clear()
            self._allocated_mb = 0
            self._generation += 1

        gc.collect()
        self._emit(EventKind.RESET)
        return InflationStatus(allocated_mb=0, block_count=0)

    def close(self) -> None:
        """Release all blocks without emitting events."""
        with self._lock:
            self._blocks.clear()
            self._allocated_mb = 0
            self._generation += 1

    def __enter__(self) -> "InflationEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return self._generation == generation

    def _cancelled(self, progress: int, target_mb: int, step_mb: int) -> int:
        self._emit(EventKind.CANCELLED, target_mb=target_mb, step_mb=step_mb)
        return progress

    def _safe_report(self) -> MemoryReport | None:
        """Best-effort memory report; introspection never interrupts inflation."""
        try:
            return self._introspector.memory_report()
        except Exception:
            self._log.debug("Memory introspection failed", exc_info=True)
            return None

    def _emit(
        self,
        kind: EventKind,
        target_mb: int = 0,
        step_mb: int = 0,
        report: MemoryReport | None = None,
    ) -> None:
        status = self.status()
        event = InflationEvent(
            kind=kind,
            allocated_mb=status.allocated_mb,
            block_count=status.block_count,
            target_mb=target_mb,
            step_mb=step_mb,
            report=report,
        )
        self._log_event(event)
        if self._events is not None:
            self._events.put(event)

    def _log_event(self, event: InflationEvent) -> None:
        if event.kind is EventKind.STARTED:
            self._log.info(
                "Starting inflation to %d MB in steps of %d MB",
                event.target_mb,
                event.step_mb,
            )
        elif event.kind is EventKind.STEP:
            self._log.info("Inflated to %d MB (%s)", event.allocated_mb, describe_report(event.report))
        elif event.kind is EventKind.COMPLETE:
            self._log.info(
                "Inflation complete: %d MB allocated (%s)",
                event.allocated_mb,
                describe_report(event.report),
            )
        elif event.kind is EventKind.CANCELLED:
            self._log.info(
                "Inflation to %d MB cancelled by reset, %d MB allocated",
                event.target_mb,
                event.allocated_mb,
            )
        elif event.kind is EventKind.FAILED:
            self._log.error("Allocation failed at %d MB allocated", event.allocated_mb)
        elif event.kind is EventKind.RESET:
            self._log.info("Reset allocation to 0 MB")


def describe_report(report: MemoryReport | None) -> str:
    """Format a memory report for log lines."""
    if report is None:
        return "memory report unavailable"
    container = "n/a" if report.container_mb is None else f"{report.container_mb:.1f} MB"
    return (
        f"own={report.own_mb:.1f} MB, subtree={report.subtree_mb:.1f} MB, "
        f"container={container}"
    )
