"""Process and container memory introspection for pyinflate.

Three strategies share one interface: a Linux one that reads the proc and
cgroup pseudo-filesystems directly, a Windows one built on a psutil process
snapshot, and a fallback that only knows about the calling process. The
interface method never raises; any failure inside a strategy degrades to the
fallback report.
"""

import logging
import os
import re
import sys
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

import psutil

from pyinflate.models import MemoryReport, ProcessEntry

logger = logging.getLogger(__name__)

DEFAULT_PROC_ROOT = Path("/proc")
DEFAULT_CGROUP_ROOT = Path("/sys/fs/cgroup")

# Tried in order; the first readable and parseable file wins.
CGROUP_CANDIDATES = (
    "memory.current",  # cgroup v2 unified
    "memory/memory.usage_in_bytes",  # cgroup v1
    "memory.usage_in_bytes",  # cgroup v1, memory controller mounted at root
    "memory.stat",  # cgroup v2 stat table
)
CGROUP_STAT_KEYS = ("anon", "rss", "file")

# Index of the rss field in /proc/<pid>/stat once pid and comm are removed.
STAT_RSS_INDEX = 21

_LEADING_INT = re.compile(r"\A\s*(\d+)\s*\Z")


def own_process_report() -> MemoryReport:
    """Report the calling process's resident size for both own and subtree."""
    try:
        rss = psutil.Process().memory_info().rss
    except psutil.Error:
        logger.debug("Could not read own process memory", exc_info=True)
        rss = 0
    return MemoryReport(own_bytes=rss, subtree_bytes=rss, container_bytes=None)


def build_children(entries: dict[int, ProcessEntry]) -> dict[int, list[int]]:
    """Build the parent -> children adjacency map for a process table."""
    children: dict[int, list[int]] = {}
    for entry in entries.values():
        children.setdefault(entry.ppid, []).append(entry.pid)
    return children


def subtree_rss(pid: int, entries: dict[int, ProcessEntry]) -> int:
    """
    Sum resident memory of ``pid`` and all its descendants.

    Iterative depth-first walk; each pid is visited at most once so
    malformed or cyclic parent links cannot loop forever.
    """
    children = build_children(entries)
    visited: set[int] = set()
    stack = [pid]
    total = 0

    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)

        entry = entries.get(current)
        if entry is not None:
            total += entry.rss
        stack.extend(children.get(current, ()))

    return total


def parse_status(text: str) -> tuple[int, int]:
    """
    Parse ``/proc/<pid>/status`` content.

    Returns:
        (ppid, rss_bytes). rss_bytes is 0 when VmRSS is absent.
    """
    ppid = 0
    rss = 0
    for line in text.splitlines():
        key, _, value = line.partition(":")
        if key == "PPid":
            ppid = int(value.strip())
        elif key == "VmRSS":
            fields = value.split()
            if fields:
                rss = int(fields[0]) * 1024  # Reported in kB
    return ppid, rss


def parse_stat_rss_pages(text: str) -> int:
    """Extract the rss page count from ``/proc/<pid>/stat`` content."""
    # comm may contain spaces and parentheses; split after the last ')'
    _, _, rest = text.rpartition(")")
    fields = rest.split()
    return int(fields[STAT_RSS_INDEX])


def parse_cgroup_value(text: str) -> int | None:
    """
    Parse a cgroup memory accounting file.

    A file holding a single integer (memory.current, usage_in_bytes) yields
    that integer. A key/value table (memory.stat) yields the value of the
    first key containing anon, rss or file. Anything else yields None.
    """
    match = _LEADING_INT.match(text)
    if match:
        return int(match.group(1))

    for line in text.splitlines():
        fields = line.split()
        if len(fields) < 2 or not fields[1].isdigit():
            continue
        if any(key in fields[0] for key in CGROUP_STAT_KEYS):
            return int(fields[1])
    return None


def read_container_bytes(
    cgroup_root: Path = DEFAULT_CGROUP_ROOT,
    candidates: Iterable[str] = CGROUP_CANDIDATES,
) -> int | None:
    """Return container memory usage in bytes, or None if no source is usable."""
    for name in candidates:
        try:
            text = (cgroup_root / name).read_text()
        except OSError:
            continue
        value = parse_cgroup_value(text)
        if value is not None:
            return value
    return None


class MemoryIntrospector(ABC):
    """
    Capability interface for memory introspection.

    Subclasses implement ``_collect``; callers use ``memory_report``, which
    always returns a report and never raises.
    """

    name = "abstract"

    def memory_report(self, pid: int | None = None) -> MemoryReport:
        """
        Report own, subtree and container memory for ``pid``.

        Args:
            pid: Target process. Defaults to the calling process.
        """
        if pid is None:
            pid = os.getpid()
        try:
            return self._collect(pid)
        except Exception:
            logger.debug(
                "%s introspection failed for pid %d, using own-process fallback",
                self.name,
                pid,
                exc_info=True,
            )
            return own_process_report()

    @abstractmethod
    def _collect(self, pid: int) -> MemoryReport:
        """Build a report for ``pid``; may raise."""


class LinuxIntrospector(MemoryIntrospector):
    """Reads process and cgroup memory straight from procfs and cgroupfs."""

    name = "linux"

    def __init__(
        self,
        proc_root: Path = DEFAULT_PROC_ROOT,
        cgroup_root: Path = DEFAULT_CGROUP_ROOT,
        page_size: int | None = None,
    ) -> None:
        self._proc_root = Path(proc_root)
        self._cgroup_root = Path(cgroup_root)
        self._page_size = page_size or os.sysconf("SC_PAGE_SIZE")

    def _collect(self, pid: int) -> MemoryReport:
        entries = self.read_process_table()
        if pid not in entries:
            raise ProcessLookupError(f"pid {pid} not found under {self._proc_root}")

        return MemoryReport(
            own_bytes=entries[pid].rss,
            subtree_bytes=subtree_rss(pid, entries),
            container_bytes=read_container_bytes(self._cgroup_root),
        )

    def read_process_table(self) -> dict[int, ProcessEntry]:
        """
        Snapshot every process under the proc root.

        Processes that exit or deny access mid-scan are skipped.
        """
        entries: dict[int, ProcessEntry] = {}
        for path in self._proc_root.iterdir():
            if not path.name.isdigit():
                continue
            pid = int(path.name)
            try:
                entries[pid] = self._read_entry(pid, path)
            except (OSError, ValueError, IndexError):
                continue
        return entries

    def _read_entry(self, pid: int, path: Path) -> ProcessEntry:
        ppid, rss = parse_status((path / "status").read_text())
        if rss == 0:
            # Kernel threads and exiting processes omit VmRSS
            rss = parse_stat_rss_pages((path / "stat").read_text()) * self._page_size
        return ProcessEntry(pid=pid, ppid=ppid, rss=rss)


class WindowsIntrospector(MemoryIntrospector):
    """Walks a psutil process snapshot; working set stands in for RSS."""

    name = "windows"

    def _collect(self, pid: int) -> MemoryReport:
        entries = self.read_process_table()
        if pid not in entries:
            raise ProcessLookupError(f"pid {pid} not in process snapshot")

        return MemoryReport(
            own_bytes=entries[pid].rss,
            subtree_bytes=subtree_rss(pid, entries),
            container_bytes=None,
        )

    def read_process_table(self) -> dict[int, ProcessEntry]:
        """Snapshot pid, parent pid and working set of every running process."""
        entries: dict[int, ProcessEntry] = {}

        for proc in psutil.process_iter(attrs=["pid", "ppid", "memory_info"]):
            try:
                info = proc.info
                mem_info = info.get("memory_info")
                entries[info["pid"]] = ProcessEntry(
                    pid=info["pid"],
                    ppid=info.get("ppid") or 0,
                    rss=mem_info.rss if mem_info else 0,
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                # Exited or inaccessible mid-enumeration
                continue

        return entries


class FallbackIntrospector(MemoryIntrospector):
    """Knows only the calling process; used on hosts without a richer strategy."""

    name = "fallback"

    def _collect(self, pid: int) -> MemoryReport:
        return own_process_report()


def detect_introspector(platform: str | None = None) -> MemoryIntrospector:
    """Pick the introspection strategy for the host platform."""
    platform = platform or sys.platform
    if platform.startswith("linux"):
        return LinuxIntrospector()
    if platform == "win32":
        return WindowsIntrospector()
    return FallbackIntrospector()
