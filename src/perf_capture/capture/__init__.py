"""perf + FlameGraph capture controller.

This package drives a `perf` sampling subprocess in lockstep with a target
process (attached by PID or launched from an executable), then turns the raw
samples into a flamegraph SVG with the FlameGraph toolchain. An interactive
mode lets the target itself start and stop `perf stat` counter collection via
SIGUSR1/SIGUSR2.
"""

from __future__ import annotations
