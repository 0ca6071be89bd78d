"""Tests for the command-line driver in scripts/run_analysis.py."""

from __future__ import annotations

import importlib.util
import json
from pathlib import Path
from types import ModuleType

import numpy as np
import pandas as pd
import pytest

from covertrend.results import AnalysisCompleted, ZonalStatRecord
from covertrend.sources.worldcover import WORLDCOVER_LEGEND

_SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "run_analysis.py"


@pytest.fixture(scope="module")
def script() -> ModuleType:
    spec = importlib.util.spec_from_file_location("run_analysis", _SCRIPT)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "model": "MIROC6",
                "variable": "tasmax",
                "buffer_radius_m": 5000.0,
                "scale_m": 30.0,
                "landcover_path": "/data/worldcover.vrt",
            }
        ),
        encoding="utf-8",
    )
    return path


def _parse(script: ModuleType, *argv: str) -> object:
    return script.build_parser().parse_args(["--lon", "10.0", "--lat", "50.0", *argv])


@pytest.mark.unit
class TestBuildConfig:
    def test_config_file_values_kept(
        self, script: ModuleType, config_file: Path
    ) -> None:
        config = script.build_config(_parse(script, "--config", str(config_file)))
        assert config.model == "MIROC6"
        assert config.variable == "tasmax"
        assert config.buffer_radius_m == 5000.0
        assert config.scale_m == 30.0
        assert config.landcover_path == "/data/worldcover.vrt"

    def test_command_line_overrides_file(
        self, script: ModuleType, config_file: Path
    ) -> None:
        args = _parse(
            script, "--config", str(config_file), "--model", "CanESM5", "--radius", "2000"
        )
        config = script.build_config(args)
        assert config.model == "CanESM5"
        assert config.buffer_radius_m == 2000.0
        assert config.variable == "tasmax"

    def test_defaults_without_config_file(
        self, script: ModuleType, tmp_path: Path
    ) -> None:
        args = _parse(script, "--config", str(tmp_path / "absent.json"))
        config = script.build_config(args)
        assert config.model == "CanESM5"
        assert config.variable == "tas"
        assert config.buffer_radius_m == 10_000.0
        assert config.scale_m == 100.0

    def test_no_percentile(self, script: ModuleType, tmp_path: Path) -> None:
        args = _parse(script, "--config", str(tmp_path / "absent.json"), "--no-percentile")
        assert script.build_config(args).percentile is None


@pytest.mark.unit
class TestChart:
    def test_trend_line_fits_linear_series(self, script: ModuleType) -> None:
        series = pd.Series([280.0, np.nan, 282.0, 283.0], index=[2000, 2001, 2002, 2003])
        trend = script.trend_line(series)
        assert trend is not None
        assert list(trend.index) == [2000, 2001, 2002, 2003]
        np.testing.assert_allclose(trend.to_numpy(), [280.0, 281.0, 282.0, 283.0])

    def test_trend_line_needs_two_years(self, script: ModuleType) -> None:
        series = pd.Series([280.0, np.nan], index=[2000, 2001])
        assert script.trend_line(series) is None

    def test_write_chart(self, script: ModuleType, tmp_path: Path) -> None:
        result = AnalysisCompleted(
            records=[
                ZonalStatRecord(year=2000, landCoverClass=30, mean=280.0, count=4),
                ZonalStatRecord(year=2001, landCoverClass=30, mean=281.0, count=4),
                ZonalStatRecord(year=2000, landCoverClass=40, mean=None, count=0),
                ZonalStatRecord(year=2001, landCoverClass=40, mean=279.0, count=2),
            ],
            legend=list(WORLDCOVER_LEGEND),
            years=[2000, 2001],
            categories=(30, 40),
            variable="tas",
        )
        path = script.write_chart(result, tmp_path / "chart.png")
        assert path.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"
