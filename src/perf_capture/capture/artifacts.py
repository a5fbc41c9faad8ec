from __future__ import annotations

from datetime import datetime
from pathlib import Path

from .model import ArtifactSet

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def new_timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def artifact_set(*, output_dir: Path, mode_tag: str, timestamp: str) -> ArtifactSet:
    """Derive the three artifact paths of one run from `{mode, timestamp}` alone."""
    return ArtifactSet(
        timestamp=timestamp,
        mode_tag=mode_tag,
        raw_script=output_dir / f"out_{timestamp}.perf",
        folded=output_dir / f"out_{timestamp}.folded",
        svg=output_dir / f"{mode_tag}_{timestamp}.svg",
    )


def _taken(output_dir: Path, timestamp: str) -> bool:
    if (output_dir / f"out_{timestamp}.perf").exists() or (output_dir / f"out_{timestamp}.folded").exists():
        return True
    return any(output_dir.glob(f"*_{timestamp}.svg"))


def reserve_timestamp(output_dir: Path, timestamp: str) -> str:
    """Return `timestamp`, or `timestamp_N` if a previous run in the same second used it."""
    candidate = timestamp
    n = 0
    while _taken(output_dir, candidate):
        n += 1
        candidate = f"{timestamp}_{n}"
    return candidate


def discard(artifacts: ArtifactSet) -> None:
    for path in artifacts.paths():
        path.unlink(missing_ok=True)
