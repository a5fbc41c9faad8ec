from __future__ import annotations

import json
import os
import signal
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import attrs
from jsonschema import Draft202012Validator

from .errors import ConfigError

DEFAULT_OUTPUT_DIR = Path("./perf_log")
DEFAULT_FLAMEGRAPH_DIR = Path("/opt/FlameGraph")
DEFAULT_CAPTURE_FREQUENCY = 499
COLLAPSE_TOOL_NAME = "stackcollapse-perf.pl"
RENDER_TOOL_NAME = "flamegraph.pl"
RAW_DATA_NAME = "perf.data"

# Counters collected by `perf stat` in interactive mode.
DEFAULT_STAT_EVENTS: tuple[str, ...] = (
    "cpu-clock",
    "cycles",
    "instructions",
    "branches",
    "branch-misses",
    "LLC-loads",
    "LLC-load-misses",
    "dTLB-loads",
    "dTLB-load-misses",
)

ENV_SAMPLER = "PERF_CAPTURE_PERF"
ENV_FLAMEGRAPH_DIR = "PERF_CAPTURE_FLAMEGRAPH_DIR"
ENV_OUTPUT_DIR = "PERF_CAPTURE_OUTPUT_DIR"
ENV_FREQUENCY = "PERF_CAPTURE_FREQ"

CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "sampler_path": {"type": "string", "minLength": 1},
        "flamegraph_dir": {"type": "string", "minLength": 1},
        "collapse_tool_path": {"type": "string", "minLength": 1},
        "render_tool_path": {"type": "string", "minLength": 1},
        "output_dir": {"type": "string", "minLength": 1},
        "capture_frequency": {"type": "integer", "minimum": 1},
        "stat_events": {"type": "array", "items": {"type": "string", "minLength": 1}, "minItems": 1},
        "handshake_delay": {"type": "number", "minimum": 0},
        "ack_signal": {"type": "string", "pattern": "^SIG[A-Z0-9]+$"},
        "stop_signal": {"type": "string", "pattern": "^SIG[A-Z0-9]+$"},
    },
}


def parse_signal(name: str) -> signal.Signals:
    try:
        return signal.Signals[name]
    except KeyError:
        raise ConfigError(f"Unknown signal name: {name!r}") from None


@attrs.define(frozen=True, slots=True)
class CaptureConfig:
    """External tool locations and capture knobs for one session.

    `collapse_tool_path` / `render_tool_path` default to the standard script
    names under `flamegraph_dir` when left unset.
    """

    sampler_path: str = "perf"
    flamegraph_dir: Path = DEFAULT_FLAMEGRAPH_DIR
    collapse_tool_path: Path | None = None
    render_tool_path: Path | None = None
    output_dir: Path = DEFAULT_OUTPUT_DIR
    capture_frequency: int = DEFAULT_CAPTURE_FREQUENCY
    stat_events: tuple[str, ...] = DEFAULT_STAT_EVENTS
    handshake_delay: float = 1.0
    ack_signal: signal.Signals = signal.SIGCONT
    stop_signal: signal.Signals = signal.SIGINT

    @property
    def collapse_tool(self) -> Path:
        return self.collapse_tool_path or self.flamegraph_dir / COLLAPSE_TOOL_NAME

    @property
    def render_tool(self) -> Path:
        return self.render_tool_path or self.flamegraph_dir / RENDER_TOOL_NAME

    @property
    def raw_data_path(self) -> Path:
        return self.output_dir / RAW_DATA_NAME


def _from_env(environ: Mapping[str, str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if environ.get(ENV_SAMPLER):
        out["sampler_path"] = environ[ENV_SAMPLER]
    if environ.get(ENV_FLAMEGRAPH_DIR):
        out["flamegraph_dir"] = environ[ENV_FLAMEGRAPH_DIR]
    if environ.get(ENV_OUTPUT_DIR):
        out["output_dir"] = environ[ENV_OUTPUT_DIR]
    if environ.get(ENV_FREQUENCY):
        try:
            out["capture_frequency"] = int(environ[ENV_FREQUENCY])
        except ValueError:
            raise ConfigError(f"{ENV_FREQUENCY} must be an integer, got {environ[ENV_FREQUENCY]!r}") from None
    return out


def load_config_file(path: Path) -> dict[str, Any]:
    """Read and schema-validate a JSON config file."""
    try:
        data = json.loads(path.read_text())
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e

    errors = sorted(Draft202012Validator(CONFIG_SCHEMA).iter_errors(data), key=lambda e: list(e.path))
    if errors:
        first = errors[0]
        where = "/".join(str(p) for p in first.path) or "<root>"
        raise ConfigError(f"Invalid config file {path} at {where}: {first.message}")
    return data


def _coerce(values: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in values.items():
        if value is None:
            continue
        if key in {"flamegraph_dir", "collapse_tool_path", "render_tool_path", "output_dir"}:
            out[key] = Path(value).expanduser()
        elif key in {"ack_signal", "stop_signal"}:
            out[key] = value if isinstance(value, signal.Signals) else parse_signal(str(value))
        elif key == "stat_events":
            out[key] = tuple(value)
        elif key == "capture_frequency":
            if int(value) < 1:
                raise ConfigError(f"capture_frequency must be positive, got {value}")
            out[key] = int(value)
        elif key == "handshake_delay":
            out[key] = float(value)
        else:
            out[key] = value
    return out


def build_config(
    *,
    config_file: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> CaptureConfig:
    """Resolve config with precedence defaults < environment < config file < overrides."""
    environ = os.environ if environ is None else environ
    merged: dict[str, Any] = {}
    merged.update(_from_env(environ))
    if config_file is not None:
        merged.update(load_config_file(config_file))
    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})
    return CaptureConfig(**_coerce(merged))
