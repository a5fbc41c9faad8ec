from __future__ import annotations

import subprocess
import sys
import tempfile
from pathlib import Path

from perf_capture.capture import config, prereqs, workflow


def main() -> int:
    out_dir = Path(tempfile.mkdtemp(prefix="perf-capture-smoke-"))
    cfg = config.build_config(overrides={"output_dir": out_dir})

    checks = prereqs.check_all(cfg)
    if any(c.status == "fail" for c in checks):
        print("Skipping: missing prerequisites")
        print(workflow.format_prereq_failures(checks))
        return 0

    # Attach for two seconds to a busy child, then render the flamegraph.
    busy = subprocess.Popen([sys.executable, "-c", "while True: sum(range(1000))"])
    try:
        cmd = [
            sys.executable,
            "-m",
            "perf_capture.capture",
            "-P",
            str(busy.pid),
            "-D",
            "2",
            "--output-dir",
            str(out_dir),
        ]
        rc = subprocess.call(cmd)
    finally:
        busy.kill()
        busy.wait()
    print(f"Artifacts: {out_dir}")
    return rc


if __name__ == "__main__":
    raise SystemExit(main())
