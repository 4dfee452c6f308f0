"""Data models for pyinflate."""

import time
from dataclasses import dataclass, field
from enum import Enum


@dataclass(slots=True, frozen=True)
class MemoryReport:
    """Immutable memory footprint of a process, its descendants and its container."""

    own_bytes: int
    subtree_bytes: int
    container_bytes: int | None = None  # None when no cgroup accounting exists

    @property
    def own_mb(self) -> float:
        """Get own resident memory in MB."""
        return self.own_bytes / (1024 * 1024)

    @property
    def subtree_mb(self) -> float:
        """Get resident memory of the process and its descendants in MB."""
        return self.subtree_bytes / (1024 * 1024)

    @property
    def container_mb(self) -> float | None:
        """Get container memory in MB, or None when unavailable."""
        if self.container_bytes is None:
            return None
        return self.container_bytes / (1024 * 1024)


@dataclass(slots=True, frozen=True)
class ProcessEntry:
    """One row of a process tree snapshot."""

    pid: int
    ppid: int
    rss: int  # Bytes


@dataclass(slots=True, frozen=True)
class InflationStatus:
    """Consistent view of the engine's allocation state."""

    allocated_mb: int
    block_count: int


class EventKind(Enum):
    """Kinds of progress events emitted by the engine."""

    STARTED = "started"
    STEP = "step"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    RESET = "reset"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class InflationEvent:
    """Advisory progress record; carries no control semantics."""

    kind: EventKind
    allocated_mb: int
    block_count: int
    target_mb: int = 0
    step_mb: int = 0
    report: MemoryReport | None = None
    timestamp: float = field(default_factory=time.time)
