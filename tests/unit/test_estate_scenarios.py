"""Unit tests for scenario comparison, sensitivity and artefact export."""

from __future__ import annotations

import datetime as dt
import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from estate3.engine.estate import (
    EstateCalculationInput,
    ScenarioConfig,
    appreciation_sensitivity,
    calculate_estate_projection,
    compare_projections,
    load_scenarios_from_yaml,
    run_scenarios,
    write_scenario_artifacts,
)
from estate3.engine.estate.scenarios import BASELINE_NAME, SCENARIO_COLUMNS

AS_OF = dt.date(2024, 6, 1)


def _base_input() -> EstateCalculationInput:
    return EstateCalculationInput.from_mapping(
        {
            "base_estate_value": 25_000_000,
            "asset_composition": {"taxable": 5_000_000, "illiquid": 20_000_000},
            "profile": {"marital_status": "married", "state": "NY"},
            "assumptions": {"current_age": 65},
        }
    )


def test_compare_projections_reports_savings() -> None:
    base = calculate_estate_projection(_base_input(), as_of=AS_OF)
    candidate = calculate_estate_projection(
        _base_input().with_overrides(strategies={"bypass_trust": True}), as_of=AS_OF
    )
    comparison = compare_projections(base, candidate)
    assert comparison.tax_savings == pytest.approx(base.total_tax - candidate.total_tax)
    assert comparison.tax_savings > 0
    assert comparison.tax_savings_percent == pytest.approx(
        comparison.tax_savings / base.total_tax * 100.0
    )
    assert comparison.net_to_heirs_increase == pytest.approx(comparison.tax_savings)
    assert comparison.liquidity_improvement == pytest.approx(
        base.liquidity.gap - candidate.liquidity.gap
    )


def test_compare_projections_zero_baseline_has_zero_percentages() -> None:
    empty = calculate_estate_projection({"base_estate_value": 0}, as_of=AS_OF)
    comparison = compare_projections(empty, empty)
    assert comparison.tax_savings_percent == 0.0
    assert comparison.net_to_heirs_increase_percent == 0.0


def test_load_scenarios_from_yaml(config_root: Path) -> None:
    scenarios = load_scenarios_from_yaml(config_root / "scenarios.yml")
    names = [scenario.name for scenario in scenarios]
    assert names[0] == "annual_gifting"
    assert "bypass_trust" in names
    low_growth = next(scenario for scenario in scenarios if scenario.name == "low_growth")
    assert low_growth.assumptions == {"appreciation_rate": 2.0}
    assert low_growth.strategies == {}


def test_run_scenarios_builds_frame_with_baseline_first() -> None:
    scenarios = [
        ScenarioConfig(name="bypass", strategies={"bypass_trust": True}),
        ScenarioConfig(name="ilit", strategies={"ilit_death_benefit": 5_000_000}),
    ]
    summary = run_scenarios(_base_input(), scenarios, as_of=AS_OF)
    frame = summary.results
    assert list(frame.columns) == list(SCENARIO_COLUMNS)
    assert frame["scenario"].tolist() == [BASELINE_NAME, "bypass", "ilit"]
    baseline_row = frame.iloc[0]
    assert baseline_row["tax_savings"] == 0.0
    assert baseline_row["liquidity_improvement"] == 0.0
    assert summary.comparisons["bypass"].tax_savings > 0
    # An ILIT sits outside the estate: same tax, better liquidity.
    assert summary.comparisons["ilit"].tax_savings == pytest.approx(0.0)
    assert summary.comparisons["ilit"].liquidity_improvement > 0


def test_run_scenarios_rejects_duplicate_names() -> None:
    scenarios = [ScenarioConfig(name="a"), ScenarioConfig(name="a")]
    with pytest.raises(ValueError, match="duplicate scenario name"):
        run_scenarios(_base_input(), scenarios, as_of=AS_OF)


def test_appreciation_sensitivity_is_monotone_in_rate() -> None:
    frame = appreciation_sensitivity(_base_input(), np.array([0.0, 2.0, 4.0]), as_of=AS_OF)
    assert list(frame.index) == [0.0, 2.0, 4.0]
    assert frame["gross_estate"].is_monotonic_increasing
    assert frame["total_tax"].is_monotonic_increasing
    assert frame.loc[0.0, "gross_estate"] == pytest.approx(25_000_000.0)


def test_appreciation_sensitivity_rejects_matrix() -> None:
    with pytest.raises(ValueError, match="one-dimensional"):
        appreciation_sensitivity(_base_input(), np.zeros((2, 2)), as_of=AS_OF)


def test_write_scenario_artifacts(tmp_path: Path) -> None:
    summary = run_scenarios(
        _base_input(),
        [ScenarioConfig(name="gifts", strategies={"annual_gift_amount": 76_000})],
        as_of=AS_OF,
    )
    artifacts = write_scenario_artifacts(summary, label="smith family", output_dir=tmp_path)

    assert artifacts.results_csv == tmp_path / "estate" / "scenarios_smith family.csv"
    exported = pd.read_csv(artifacts.results_csv)
    assert exported["scenario"].tolist() == [BASELINE_NAME, "gifts"]
    projections = json.loads(artifacts.projection_json.read_text(encoding="utf-8"))
    assert set(projections) == {BASELINE_NAME, "gifts"}
    assert "liquidity" in projections["gifts"]
    assert artifacts.report_pdf.exists()
    assert artifacts.report_pdf.stat().st_size > 0


def test_run_scenarios_state_alias_beats_base_state_override() -> None:
    base = _base_input().with_overrides(assumptions={"state_override": "CA"})
    summary = run_scenarios(
        base, [ScenarioConfig(name="move", assumptions={"state": "NY"})], as_of=AS_OF
    )
    assert summary.baseline.assumptions.state == "CA"
    assert summary.projections["move"].assumptions.state == "NY"
    assert summary.projections["move"].state_tax > 0.0
