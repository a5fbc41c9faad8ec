from __future__ import annotations

import signal
import subprocess

import pytest

from perf_capture.capture.errors import SpawnError
from perf_capture.capture.model import SamplerState
from perf_capture.capture.process import SamplerHandle, TargetHandle


def test_sampler_lifecycle_states() -> None:
    h = SamplerHandle(["sleep", "30"])
    assert h.state is SamplerState.NOT_STARTED and h.pid is None
    h.start()
    assert h.state is SamplerState.RUNNING and h.pid is not None
    h.request_stop(signal.SIGINT)
    assert h.state is SamplerState.STOPPING
    h.request_stop(signal.SIGINT)
    assert h.wait() == -signal.SIGINT
    assert h.state is SamplerState.EXITED
    assert not h.alive


def test_sampler_cannot_start_twice() -> None:
    h = SamplerHandle(["true"])
    h.start()
    h.wait()
    with pytest.raises(RuntimeError):
        h.start()


def test_sampler_spawn_failure_is_spawn_error(tmp_path) -> None:
    with pytest.raises(SpawnError, match="failed to start sampler"):
        SamplerHandle([str(tmp_path / "missing-perf"), "record"]).start()


def test_attach_rejects_dead_pid(dead_pid: int) -> None:
    with pytest.raises(SpawnError, match="no such process"):
        TargetHandle.attach(dead_pid)


def test_attached_target_is_never_torn_down(sleeper: subprocess.Popen) -> None:
    t = TargetHandle.attach(sleeper.pid)
    assert not t.owned
    with pytest.raises(RuntimeError):
        t.terminate()
    with pytest.raises(RuntimeError):
        t.wait()
    assert sleeper.poll() is None


def test_launched_target_is_owned() -> None:
    t = TargetHandle.launch(["sleep", "30"])
    assert t.owned
    t.terminate()
    assert t.wait() == -signal.SIGTERM
    assert t.send_signal(signal.SIGCONT) is False
