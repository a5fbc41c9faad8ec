from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Literal

import attrs

CheckStatus = Literal["pass", "fail"]
ModeTag = Literal["pid", "exec"]


class CaptureMode(enum.Enum):
    PID_TIMED = "pid_timed"
    PID_UNTIL_INTERRUPT = "pid_until_interrupt"
    EXEC_RECORD = "exec_record"
    EXEC_INTERACTIVE = "exec_interactive"

    @property
    def attaches(self) -> bool:
        return self in (CaptureMode.PID_TIMED, CaptureMode.PID_UNTIL_INTERRUPT)

    @property
    def produces_flamegraph(self) -> bool:
        return self is not CaptureMode.EXEC_INTERACTIVE


class ControllerState(enum.Enum):
    IDLE = "idle"
    SAMPLING = "sampling"
    STOPPING = "stopping"
    DONE = "done"
    FAILED = "failed"


class SamplerState(enum.Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPING = "stopping"
    EXITED = "exited"


@attrs.define(frozen=True, slots=True)
class PrerequisiteCheck:
    check_name: str
    status: CheckStatus
    details: str | None = None


def _check_target(instance: "Session", attribute: attrs.Attribute, value: Any) -> None:
    if (instance.target_pid is None) == (instance.exec_argv is None):
        raise ValueError("Session needs exactly one of target_pid / exec_argv")


@attrs.define(frozen=True, slots=True)
class Session:
    mode: CaptureMode
    target_pid: int | None = None
    duration: float | None = None
    exec_argv: tuple[str, ...] | None = attrs.field(default=None, validator=_check_target)

    @property
    def mode_tag(self) -> ModeTag:
        return "pid" if self.mode.attaches else "exec"


@attrs.define(frozen=True, slots=True)
class ArtifactSet:
    timestamp: str
    mode_tag: str
    raw_script: Path
    folded: Path
    svg: Path

    def paths(self) -> tuple[Path, Path, Path]:
        return (self.raw_script, self.folded, self.svg)


@attrs.define(frozen=True, slots=True)
class CaptureOutcome:
    exit_code: int
    artifacts: ArtifactSet | None = None
