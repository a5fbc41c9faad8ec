from __future__ import annotations

import math
import shlex

from . import console
from .errors import ArgumentError
from .model import CaptureMode, Session


def _parse_pid(raw: str | int) -> int:
    try:
        pid = int(raw)
    except (TypeError, ValueError):
        raise ArgumentError(f"invalid PID: {raw!r}") from None
    if pid <= 0:
        raise ArgumentError(f"invalid PID: {raw!r}")
    return pid


def _parse_duration(raw: str | float) -> float:
    try:
        duration = float(raw)
    except (TypeError, ValueError):
        raise ArgumentError(f"invalid duration: {raw!r}") from None
    if not math.isfinite(duration) or duration <= 0:
        raise ArgumentError(f"duration must be a positive number of seconds, got {raw!r}")
    return duration


def _parse_exec(raw: str) -> tuple[str, ...]:
    try:
        argv = tuple(shlex.split(raw))
    except ValueError as e:
        raise ArgumentError(f"cannot parse executable command {raw!r}: {e}") from None
    if not argv:
        raise ArgumentError("executable path must be non-empty")
    return argv


def resolve_session(
    *,
    pid: str | int | None = None,
    duration: str | float | None = None,
    exec_path: str | None = None,
    interactive: bool = False,
) -> Session:
    """Map the raw -P/-D/-E/-I flag set to exactly one capture mode.

    Target checks come first (both given, then neither given); value parsing
    happens afterwards so that a contradictory flag set is always reported as
    such. `-D` is ignored outside attach mode and `-I` outside exec mode, with
    a warning.
    """
    if pid is not None and exec_path is not None:
        raise ArgumentError("mutually exclusive targets: -P and -E cannot be combined")
    if pid is None and exec_path is None:
        raise ArgumentError("no target specified: use -P <pid> or -E <exec_file_path>")

    if pid is not None:
        target_pid = _parse_pid(pid)
        if interactive:
            console.warn("-I only applies to -E; ignoring it in PID mode.")
        if duration is not None:
            return Session(mode=CaptureMode.PID_TIMED, target_pid=target_pid, duration=_parse_duration(duration))
        return Session(mode=CaptureMode.PID_UNTIL_INTERRUPT, target_pid=target_pid)

    assert exec_path is not None
    argv = _parse_exec(exec_path)
    if duration is not None:
        console.warn("-D only applies to -P; ignoring it in executable mode.")
    if interactive:
        return Session(mode=CaptureMode.EXEC_INTERACTIVE, exec_argv=argv)
    return Session(mode=CaptureMode.EXEC_RECORD, exec_argv=argv)
