from __future__ import annotations

import os
import signal
import subprocess
from collections.abc import Sequence

from . import toolchain
from .errors import SpawnError
from .model import SamplerState


def _spawn(argv: Sequence[str], *, what: str) -> subprocess.Popen:
    try:
        return subprocess.Popen(list(argv))
    except OSError as e:
        raise SpawnError(f"failed to start {what} (`{toolchain.render_command(argv)}`): {e}") from e


def _send(proc: subprocess.Popen, signum: int) -> bool:
    """Signal a child unless it has already been reaped. Returns True if sent."""
    if proc.poll() is not None:
        return False
    try:
        proc.send_signal(signum)
    except ProcessLookupError:
        return False
    return True


class SamplerHandle:
    """Ownership handle for the spawned `perf` subprocess."""

    def __init__(self, argv: Sequence[str]) -> None:
        self.argv = list(argv)
        self.state = SamplerState.NOT_STARTED
        self.stop_requested = False
        self._proc: subprocess.Popen | None = None

    @property
    def pid(self) -> int | None:
        return None if self._proc is None else self._proc.pid

    @property
    def returncode(self) -> int | None:
        return None if self._proc is None else self._proc.returncode

    @property
    def alive(self) -> bool:
        return self.state in (SamplerState.RUNNING, SamplerState.STOPPING)

    def start(self) -> None:
        if self.state is not SamplerState.NOT_STARTED:
            raise RuntimeError(f"sampler already started (state={self.state.value})")
        self._proc = _spawn(self.argv, what="sampler")
        self.state = SamplerState.RUNNING

    def request_stop(self, signum: int = signal.SIGINT) -> None:
        """Ask perf to flush and exit. Only the first request sends a signal."""
        if self._proc is None or self.stop_requested:
            return
        self.stop_requested = True
        if self.state is SamplerState.RUNNING:
            self.state = SamplerState.STOPPING
            _send(self._proc, signum)

    def poll(self) -> int | None:
        if self._proc is None:
            return None
        rc = self._proc.poll()
        if rc is not None:
            self.state = SamplerState.EXITED
        return rc

    def wait(self) -> int:
        if self._proc is None:
            raise RuntimeError("sampler was never started")
        rc = self._proc.wait()
        self.state = SamplerState.EXITED
        return rc


class TargetHandle:
    """The profiled process.

    Attached targets (`owned=False`) were not started by us: they are only ever
    signalled with the handshake acknowledge, never terminated or reaped.
    """

    def __init__(self, pid: int, *, proc: subprocess.Popen | None = None) -> None:
        self.pid = pid
        self._proc = proc

    @classmethod
    def attach(cls, pid: int) -> "TargetHandle":
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            raise SpawnError(f"cannot attach to PID {pid}: no such process") from None
        except PermissionError:
            # Exists but belongs to someone else; perf decides whether it may attach.
            pass
        return cls(pid)

    @classmethod
    def launch(cls, argv: Sequence[str]) -> "TargetHandle":
        proc = _spawn(argv, what="target")
        return cls(proc.pid, proc=proc)

    @property
    def owned(self) -> bool:
        return self._proc is not None

    @property
    def returncode(self) -> int | None:
        return None if self._proc is None else self._proc.returncode

    def send_signal(self, signum: int) -> bool:
        if self._proc is not None:
            return _send(self._proc, signum)
        try:
            os.kill(self.pid, signum)
        except ProcessLookupError:
            return False
        return True

    def poll(self) -> int | None:
        if self._proc is None:
            return None
        return self._proc.poll()

    def wait(self) -> int:
        if self._proc is None:
            raise RuntimeError(f"PID {self.pid} is attached, not owned; it cannot be waited on")
        return self._proc.wait()

    def terminate(self) -> None:
        if self._proc is None:
            raise RuntimeError(f"PID {self.pid} is attached, not owned; refusing to terminate it")
        if _send(self._proc, signal.SIGTERM):
            # A stopped target (waiting on the acknowledge) only acts on SIGTERM once continued.
            _send(self._proc, signal.SIGCONT)
