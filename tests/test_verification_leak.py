"""Verification Test: Memory Leak Check.

The tool must only hold the memory it was asked to hold. Repeated
introspection scans and inflate/reset cycles must not ratchet RSS upward.

Note: thresholds are relaxed for the test environment; pytest and psutil
add their own noise to RSS measurements.
"""

import gc
import time

import psutil

from pyinflate.engine import InflationEngine
from pyinflate.introspection import detect_introspector


def get_current_memory_mb() -> float:
    """Get current process memory usage in MB."""
    return psutil.Process().memory_info().rss / (1024 * 1024)


class TestMemoryLeakCheck:
    """Memory leak verification suite tests."""

    def test_introspection_no_leak(self):
        """
        Test that repeated process-tree scans don't leak memory.

        Each scan rebuilds the process table from scratch; nothing should
        be retained between calls.
        """
        introspector = detect_introspector()
        introspector.memory_report()  # warm up imports and caches
        gc.collect()
        initial_memory = get_current_memory_mb()

        num_iterations = 50
        for _ in range(num_iterations):
            report = introspector.memory_report()
            assert report.own_bytes > 0

        gc.collect()
        time.sleep(0.3)

        memory_delta = get_current_memory_mb() - initial_memory
        max_delta_mb = 5.0

        assert memory_delta < max_delta_mb, (
            f"Introspection leaked {memory_delta:.2f}MB over {num_iterations} iterations"
        )

    def test_inflate_reset_cycles_no_leak(self):
        """
        Test that inflate/reset cycles return to a stable baseline.

        Memory after the last reset should be close to memory after the
        first one; growth would mean blocks survive a reset.
        """
        engine = InflationEngine(step_interval=0)
        engine.inflate_to(16, 4)
        engine.reset()
        gc.collect()
        baseline_memory = get_current_memory_mb()

        samples = []
        for _ in range(10):
            engine.inflate_to(16, 4)
            engine.reset()
            samples.append(get_current_memory_mb())

        memory_delta = samples[-1] - baseline_memory
        assert memory_delta < 8.0, (
            f"Memory grew by {memory_delta:.2f}MB over 10 inflate/reset cycles "
            f"(samples: {samples})"
        )
