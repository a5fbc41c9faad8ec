from __future__ import annotations

import sys

from . import console, prereqs
from .config import CaptureConfig
from .controller import CaptureController, PipelineFn
from .errors import CaptureError, EnvironmentCheckError
from .model import CaptureOutcome, PrerequisiteCheck, Session
from .pipeline import run_pipeline


def format_prereq_failures(checks: list[PrerequisiteCheck]) -> str:
    """Summarize every failing preflight check, one per line, in check order."""
    failed = [c for c in checks if c.status == "fail"]
    lines: list[str] = [f"{len(failed)} of {len(checks)} preflight checks failed:"]
    lines.extend(f"  {c.check_name}: {c.details or 'failed'}" for c in failed)
    return "\n".join(lines)


def execute(session: Session, config: CaptureConfig, *, pipeline: PipelineFn = run_pipeline) -> CaptureOutcome:
    """Preflight, then drive one controller session. Raises CaptureError on failure."""
    prereqs.ensure_ready(config)
    controller = CaptureController(session, config, pipeline=pipeline)
    return controller.run()


def run(session: Session, config: CaptureConfig, *, pipeline: PipelineFn = run_pipeline) -> int:
    """Run one capture session and return the process exit code.

    Every failure collapses to exit status 1 after a one-line diagnostic. A
    failed preflight also lists every other check that failed, so one run shows
    everything the environment is missing.
    """
    try:
        outcome = execute(session, config, pipeline=pipeline)
    except EnvironmentCheckError as e:
        console.error(str(e), hint=e.hint)
        print(format_prereq_failures(prereqs.check_all(config)), file=sys.stderr)
        return 1
    except CaptureError as e:
        console.error(e.diagnostic())
        return 1

    if outcome.artifacts is not None:
        print(outcome.artifacts.svg)
    return outcome.exit_code
