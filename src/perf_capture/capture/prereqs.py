from __future__ import annotations

import shutil

from .config import CaptureConfig
from .errors import EnvironmentCheckError
from .model import PrerequisiteCheck

FLAMEGRAPH_REPO_URL = "https://github.com/brendangregg/FlameGraph.git"


def check_output_dir(config: CaptureConfig) -> PrerequisiteCheck:
    try:
        config.output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return PrerequisiteCheck(
            check_name="output_dir",
            status="fail",
            details=f"cannot create output directory {config.output_dir}: {e}",
        )
    if not config.output_dir.is_dir():
        return PrerequisiteCheck(
            check_name="output_dir",
            status="fail",
            details=f"cannot create output directory {config.output_dir}: not a directory",
        )
    return PrerequisiteCheck(check_name="output_dir", status="pass")


def check_sampler_installed(config: CaptureConfig) -> PrerequisiteCheck:
    if shutil.which(config.sampler_path) is not None:
        return PrerequisiteCheck(check_name="sampler_installed", status="pass")
    return PrerequisiteCheck(
        check_name="sampler_installed",
        status="fail",
        details=f"sampler not installed: `{config.sampler_path}` not found on PATH. Install perf to use this tool.",
    )


def check_flamegraph_toolchain(config: CaptureConfig) -> PrerequisiteCheck:
    """The FlameGraph checkout must exist, along with both scripts we invoke."""
    if not config.flamegraph_dir.is_dir():
        return PrerequisiteCheck(
            check_name="flamegraph_toolchain",
            status="fail",
            details=f"flamegraph toolchain missing: directory does not exist at {config.flamegraph_dir}",
        )
    missing = [str(p) for p in (config.collapse_tool, config.render_tool) if not p.is_file()]
    if missing:
        return PrerequisiteCheck(
            check_name="flamegraph_toolchain",
            status="fail",
            details=f"flamegraph toolchain missing: {', '.join(missing)}",
        )
    return PrerequisiteCheck(check_name="flamegraph_toolchain", status="pass")


def toolchain_hint(config: CaptureConfig) -> str:
    return f'Run "git clone {FLAMEGRAPH_REPO_URL} {config.flamegraph_dir}" to download it.'


def check_all(config: CaptureConfig) -> list[PrerequisiteCheck]:
    return [
        check_output_dir(config),
        check_sampler_installed(config),
        check_flamegraph_toolchain(config),
    ]


def ensure_ready(config: CaptureConfig) -> None:
    """Raise EnvironmentCheckError for the first failing check, in check order."""
    for check in check_all(config):
        if check.status == "pass":
            continue
        hint = toolchain_hint(config) if check.check_name == "flamegraph_toolchain" else None
        raise EnvironmentCheckError(check.details or check.check_name, hint=hint)
