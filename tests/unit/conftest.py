from __future__ import annotations

import subprocess
import time
from collections.abc import Iterator
from pathlib import Path

import pytest

from perf_capture.capture.config import CaptureConfig

# Minimal stand-in for `perf`: record writes a raw file and either runs the
# workload after `--` or waits for the attached PID / a stop signal; stat runs
# until interrupted; script prints two folded-looking stacks.
FAKE_PERF = """#!/usr/bin/env bash
sub="$1"; shift
case "$sub" in
  record)
    child=""
    trap '[ -n "$child" ] && kill "$child" 2>/dev/null; exit 0' INT TERM
    out="perf.data"; pid=""
    while [ $# -gt 0 ]; do
      case "$1" in
        -o) out="$2"; shift 2 ;;
        -p) pid="$2"; shift 2 ;;
        -F) shift 2 ;;
        --) shift; break ;;
        *) shift ;;
      esac
    done
    printf 'raw-samples\\n' > "$out"
    if [ $# -gt 0 ]; then
      # Backgrounded so the trap fires during `wait` rather than after the workload.
      "$@" &
      child=$!
      wait "$child"
      exit $?
    fi
    while kill -0 "$pid" 2>/dev/null; do sleep 0.05; done
    exit 0
    ;;
  stat)
    trap 'echo "counter stats" >&2; exit 0' INT TERM
    while true; do sleep 0.05; done
    ;;
  script)
    printf 'main;work;spin 3\\nmain;idle 1\\n'
    ;;
  *)
    exit 64
    ;;
esac
"""

FAKE_COLLAPSE = """#!/usr/bin/env bash
cat "$1"
"""

FAKE_RENDER = """#!/usr/bin/env bash
touch "$(dirname "$0")/render.ran"
printf '<svg xmlns="http://www.w3.org/2000/svg"/>\\n'
"""


def write_exe(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body)
    path.chmod(0o755)
    return path


def wait_for_file(path: Path, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not path.exists():
        if time.monotonic() > deadline:
            raise TimeoutError(f"{path} never appeared")
        time.sleep(0.01)


@pytest.fixture
def stub_config(tmp_path: Path) -> CaptureConfig:
    perf = write_exe(tmp_path / "bin" / "perf", FAKE_PERF)
    fg = tmp_path / "FlameGraph"
    write_exe(fg / "stackcollapse-perf.pl", FAKE_COLLAPSE)
    write_exe(fg / "flamegraph.pl", FAKE_RENDER)
    out = tmp_path / "perf_log"
    out.mkdir()
    return CaptureConfig(sampler_path=str(perf), flamegraph_dir=fg, output_dir=out, handshake_delay=0.0)


@pytest.fixture
def sleeper() -> Iterator[subprocess.Popen]:
    proc = subprocess.Popen(["sleep", "30"])
    try:
        yield proc
    finally:
        proc.kill()
        proc.wait()


@pytest.fixture
def dead_pid() -> int:
    proc = subprocess.Popen(["true"])
    proc.wait()
    return proc.pid
