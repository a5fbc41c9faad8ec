from __future__ import annotations

import shlex
from collections.abc import Sequence
from pathlib import Path

from .config import CaptureConfig


def _format_seconds(seconds: float) -> str:
    return f"{seconds:g}"


def _record_prefix(config: CaptureConfig, *, raw_data: Path) -> list[str]:
    return [
        config.sampler_path,
        "record",
        "-F",
        str(config.capture_frequency),
        "--call-graph=dwarf",
        "-g",
        "-o",
        str(raw_data),
    ]


def build_record_pid_argv(
    config: CaptureConfig, *, pid: int, raw_data: Path, duration: float | None = None
) -> list[str]:
    """`perf record` attached to a running PID.

    With a duration, perf itself bounds the run by supervising `sleep <duration>`
    as its workload; without one, it records until signalled.
    """
    argv = [*_record_prefix(config, raw_data=raw_data), "-p", str(pid)]
    if duration is not None:
        argv += ["--", "sleep", _format_seconds(duration)]
    return argv


def build_record_exec_argv(config: CaptureConfig, *, command: Sequence[str], raw_data: Path) -> list[str]:
    return [*_record_prefix(config, raw_data=raw_data), "--", *command]


def build_stat_argv(config: CaptureConfig, *, pid: int) -> list[str]:
    return [config.sampler_path, "stat", "-e", ",".join(config.stat_events), "-p", str(pid)]


def build_script_argv(config: CaptureConfig, *, raw_data: Path) -> list[str]:
    return [config.sampler_path, "script", "-i", str(raw_data)]


def build_collapse_argv(config: CaptureConfig, *, raw_script: Path) -> list[str]:
    return [str(config.collapse_tool), str(raw_script)]


def build_render_argv(config: CaptureConfig, *, folded: Path) -> list[str]:
    return [str(config.render_tool), str(folded)]


def render_command(argv: Sequence[str]) -> str:
    return shlex.join(argv)
