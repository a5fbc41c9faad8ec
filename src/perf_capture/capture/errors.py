from __future__ import annotations


class CaptureError(Exception):
    """Base class for every failure that ends a capture session.

    `step` names the operator-visible step that failed; it prefixes the one-line
    diagnostic printed before the process exits with status 1.
    """

    step = "capture"

    def __init__(self, message: str, *, step: str | None = None) -> None:
        super().__init__(message)
        if step is not None:
            self.step = step

    def diagnostic(self) -> str:
        return f"{self.step}: {self}"


class ArgumentError(CaptureError):
    step = "arguments"


class ConfigError(CaptureError):
    step = "config"


class EnvironmentCheckError(CaptureError):
    step = "preflight"

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class SpawnError(CaptureError):
    step = "spawn"


class PipelineError(CaptureError):
    step = "pipeline"

    def __init__(self, message: str, *, stage: str) -> None:
        super().__init__(message)
        self.stage = stage


class SessionInterruptedError(CaptureError):
    """An interactive session was ended by SIGINT/SIGTERM before its handshake completed."""

    step = "interactive"

    def __init__(self, message: str, *, signum: int) -> None:
        super().__init__(message)
        self.signum = signum
