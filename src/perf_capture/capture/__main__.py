from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import NoReturn

from . import config as config_mod
from . import console, modes, workflow
from .errors import ArgumentError, CaptureError

USAGE = "%(prog)s -P <pid> [-D <duration>] | -E <exec_file_path> [-I]"


def _abs_path(p: str) -> Path:
    return Path(p).expanduser().resolve()


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        raise ArgumentError(message)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for the perf + FlameGraph capture controller."""
    parser = _Parser(
        prog="perf-capture",
        usage=USAGE,
        description="Record perf samples for a PID or an executable and render a flamegraph.",
    )
    parser.add_argument("-P", dest="pid", metavar="PID", default=None, help="Attach to an existing process.")
    parser.add_argument(
        "-D", dest="duration", metavar="SECONDS", default=None, help="Bounded sampling duration (only with -P)."
    )
    parser.add_argument(
        "-E", dest="exec_path", metavar="EXEC", default=None, help="Executable (with optional args) to launch and profile."
    )
    parser.add_argument(
        "-I",
        dest="interactive",
        action="store_true",
        help="Interactive perf stat handshake: the target sends SIGUSR1/SIGUSR2 to start/stop collection (only with -E).",
    )
    parser.add_argument("--config", type=_abs_path, default=None, help="JSON config file.")
    parser.add_argument("--output-dir", type=_abs_path, default=None, help="Directory for perf.data and artifacts.")
    parser.add_argument("--flamegraph-dir", type=_abs_path, default=None, help="FlameGraph checkout directory.")
    parser.add_argument("--perf", dest="sampler_path", default=None, help="perf executable (name or path).")
    parser.add_argument("--freq", dest="capture_frequency", type=int, default=None, help="Sampling frequency in Hz.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint. Returns process exit code."""
    parser = build_parser()
    try:
        ns = parser.parse_args(argv)
        session = modes.resolve_session(
            pid=ns.pid, duration=ns.duration, exec_path=ns.exec_path, interactive=ns.interactive
        )
        cfg = config_mod.build_config(
            config_file=ns.config,
            overrides={
                "output_dir": ns.output_dir,
                "flamegraph_dir": ns.flamegraph_dir,
                "sampler_path": ns.sampler_path,
                "capture_frequency": ns.capture_frequency,
            },
        )
    except ArgumentError as e:
        console.error(str(e))
        print(parser.format_usage().strip(), file=sys.stderr)
        return 1
    except CaptureError as e:
        console.error(e.diagnostic())
        return 1

    return workflow.run(session, cfg)


if __name__ == "__main__":
    raise SystemExit(main())
