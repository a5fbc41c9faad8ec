from __future__ import annotations

import os
from pathlib import Path

import attrs
import pytest

from perf_capture.capture import prereqs
from perf_capture.capture.config import CaptureConfig
from perf_capture.capture.errors import EnvironmentCheckError


def test_check_output_dir_creates_missing_dir(tmp_path: Path) -> None:
    out = tmp_path / "nested" / "perf_log"
    c = prereqs.check_output_dir(CaptureConfig(output_dir=out))
    assert c.status == "pass"
    assert out.is_dir()


def test_check_output_dir_fails_under_a_file(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    c = prereqs.check_output_dir(CaptureConfig(output_dir=blocker / "perf_log"))
    assert c.status == "fail"
    assert c.details is not None and "cannot create output directory" in c.details


def test_check_sampler_installed_respects_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    perf = bin_dir / "perf"
    perf.write_text("#!/usr/bin/env bash\necho perf\n")
    perf.chmod(0o755)

    monkeypatch.setenv("PATH", os.fspath(bin_dir))
    assert prereqs.check_sampler_installed(CaptureConfig()).status == "pass"

    monkeypatch.setenv("PATH", os.fspath(tmp_path))
    c = prereqs.check_sampler_installed(CaptureConfig())
    assert c.status == "fail"
    assert c.details is not None and "sampler not installed" in c.details


def test_check_flamegraph_toolchain_missing_dir(tmp_path: Path) -> None:
    c = prereqs.check_flamegraph_toolchain(CaptureConfig(flamegraph_dir=tmp_path / "FlameGraph"))
    assert c.status == "fail"
    assert c.details is not None and "flamegraph toolchain missing" in c.details


def test_check_flamegraph_toolchain_missing_script(tmp_path: Path) -> None:
    fg = tmp_path / "FlameGraph"
    fg.mkdir()
    (fg / "flamegraph.pl").write_text("stub")
    c = prereqs.check_flamegraph_toolchain(CaptureConfig(flamegraph_dir=fg))
    assert c.status == "fail"
    assert c.details is not None and "stackcollapse-perf.pl" in c.details


def test_check_all_passes_with_stubs(stub_config: CaptureConfig) -> None:
    checks = prereqs.check_all(stub_config)
    assert [c.check_name for c in checks] == ["output_dir", "sampler_installed", "flamegraph_toolchain"]
    assert all(c.status == "pass" for c in checks)
    prereqs.ensure_ready(stub_config)


def test_ensure_ready_reports_toolchain_hint(stub_config: CaptureConfig, tmp_path: Path) -> None:
    cfg = attrs.evolve(stub_config, flamegraph_dir=tmp_path / "nowhere")
    with pytest.raises(EnvironmentCheckError) as excinfo:
        prereqs.ensure_ready(cfg)
    assert "flamegraph toolchain missing" in str(excinfo.value)
    assert excinfo.value.hint is not None and "git clone" in excinfo.value.hint


def test_ensure_ready_checks_sampler_before_toolchain(stub_config: CaptureConfig, tmp_path: Path) -> None:
    cfg = attrs.evolve(stub_config, sampler_path=str(tmp_path / "no-perf"), flamegraph_dir=tmp_path / "nowhere")
    with pytest.raises(EnvironmentCheckError, match="sampler not installed"):
        prereqs.ensure_ready(cfg)
