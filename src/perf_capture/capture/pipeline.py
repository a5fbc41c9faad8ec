"""
Artifact pipeline: raw perf samples -> textual script -> folded stacks -> SVG.

Each stage is an external executable whose stdout is redirected into the next
artifact file. A stage counts as failed if it cannot be started, exits
non-zero, or leaves an empty output file; later stages never run after a
failure and every file of the run is removed.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from . import artifacts, console, toolchain
from .config import CaptureConfig
from .errors import PipelineError
from .model import ArtifactSet

STAGE_CONVERT = "conversion"
STAGE_COLLAPSE = "collapse"
STAGE_RENDER = "render"


def _run_stage(stage: str, argv: list[str], *, out_path: Path) -> None:
    try:
        with out_path.open("wb") as f:
            proc = subprocess.run(argv, stdout=f, check=False)
    except OSError as e:
        raise PipelineError(f"{stage} failed: cannot run {argv[0]}: {e}", stage=stage) from e
    if proc.returncode != 0:
        raise PipelineError(
            f"{stage} failed: `{toolchain.render_command(argv)}` exited {proc.returncode}", stage=stage
        )
    if out_path.stat().st_size == 0:
        raise PipelineError(f"{stage} failed: {out_path} is empty", stage=stage)


def run_pipeline(
    raw_data: Path, mode_tag: str, config: CaptureConfig, *, timestamp: str | None = None
) -> ArtifactSet:
    if not raw_data.is_file() or raw_data.stat().st_size == 0:
        raise PipelineError(f"{STAGE_CONVERT} failed: no samples recorded at {raw_data}", stage=STAGE_CONVERT)

    token = artifacts.reserve_timestamp(config.output_dir, timestamp or artifacts.new_timestamp())
    out = artifacts.artifact_set(output_dir=config.output_dir, mode_tag=mode_tag, timestamp=token)

    try:
        console.info("Converting performance data to readable format...")
        _run_stage(STAGE_CONVERT, toolchain.build_script_argv(config, raw_data=raw_data), out_path=out.raw_script)

        console.info("Collapsing performance data...")
        _run_stage(STAGE_COLLAPSE, toolchain.build_collapse_argv(config, raw_script=out.raw_script), out_path=out.folded)

        console.info("Generating flamegraph...")
        _run_stage(STAGE_RENDER, toolchain.build_render_argv(config, folded=out.folded), out_path=out.svg)
    except PipelineError:
        artifacts.discard(out)
        raise

    console.info(f"Flamegraph saved as {out.svg}")
    return out
