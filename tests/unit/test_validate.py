"""Validation command tests covering schema checks and CLI integration."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from estate3.cli.main import main as cli_main
from estate3.engine.validate import ValidationSummary, validate_configs


def _write_yaml(path: Path, payload: object) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(payload, sort_keys=True), encoding="utf-8")
    return path


def _seed_valid_configs(root: Path) -> tuple[Path, Path]:
    estate = {
        "base_estate_value": 12_000_000.0,
        "asset_composition": {"taxable": 4_000_000.0, "illiquid": 8_000_000.0},
        "profile": {"marital_status": "married", "state": "MA", "current_age": 62},
        "strategies": {
            "annual_gift_amount": 36_000.0,
            "trust_funding": [{"label": "slat", "amount": 1_000_000.0}],
            "bypass_trust": True,
        },
        "assumptions": {"appreciation_rate": 3.5, "assumed_heir_income_tax_rate": 0.3},
    }
    scenarios = {
        "scenarios": [
            {"name": "ilit", "strategies": {"ilit_death_benefit": 2_000_000.0}},
            {"name": "slow", "assumptions": {"appreciation_rate": 1.0}},
        ]
    }
    return (
        _write_yaml(root / "estate.yml", estate),
        _write_yaml(root / "scenarios.yml", scenarios),
    )


def test_validate_configs_reports_success(tmp_path: Path) -> None:
    estate_path, scenarios_path = _seed_valid_configs(tmp_path)
    summary = validate_configs(estate_path=estate_path, scenarios_path=scenarios_path)
    assert isinstance(summary, ValidationSummary)
    assert summary.errors == []
    assert summary.warnings == []
    assert summary.configs["estate"]["strategies"]["bypass_trust"] is True
    assert [item["name"] for item in summary.configs["scenarios"]["scenarios"]] == ["ilit", "slow"]


def test_repository_configs_are_valid(config_root: Path) -> None:
    summary = validate_configs(
        estate_path=config_root / "estate.yml",
        scenarios_path=config_root / "scenarios.yml",
        tax_tables_path=config_root / "tax_tables.yml",
    )
    assert summary.errors == []
    assert set(summary.configs) == {"estate", "scenarios", "tax_tables"}


def test_validate_configs_reports_path_qualified_errors(tmp_path: Path) -> None:
    estate_path, scenarios_path = _seed_valid_configs(tmp_path)
    _write_yaml(
        estate_path,
        {
            "base_estate_value": 1_000_000.0,
            "strategies": {"annual_gift_amount": -5.0, "bypass_trust": "yes"},
            "assumptions": {"state_override": "New York", "assumed_heir_income_tax_rate": 2.0},
        },
    )
    summary = validate_configs(estate_path=estate_path, scenarios_path=scenarios_path)
    assert "estate.strategies.annual_gift_amount must be >= 0.0" in summary.errors
    assert "estate.strategies.bypass_trust must be a boolean" in summary.errors
    assert "estate.assumptions.state_override must be a two-letter state code" in summary.errors
    assert "estate.assumptions.assumed_heir_income_tax_rate must be <= 1.0" in summary.errors
    assert "estate" not in summary.configs
    assert "scenarios" in summary.configs


def test_validate_configs_flags_scenario_problems(tmp_path: Path) -> None:
    estate_path, _ = _seed_valid_configs(tmp_path)
    scenarios_path = _write_yaml(
        tmp_path / "bad_scenarios.yml",
        {
            "scenarios": [
                {"name": "baseline"},
                {"name": "dup", "strategies": {"lifetime_gifts": 1.0}},
                {"name": "dup", "strategies": {"lifetimeGifts": 1.0}},
            ]
        },
    )
    summary = validate_configs(estate_path=estate_path, scenarios_path=scenarios_path)
    assert "scenarios.scenarios[0].name 'baseline' is reserved" in summary.errors
    assert "scenarios.scenarios[2].name 'dup' is duplicated" in summary.errors
    assert any("lifetimeGifts is not a recognised key" in warning for warning in summary.warnings)


def test_validate_configs_handles_missing_and_empty_files(tmp_path: Path) -> None:
    empty = tmp_path / "estate.yml"
    empty.write_text("", encoding="utf-8")
    summary = validate_configs(estate_path=empty, scenarios_path=tmp_path / "missing.yml")
    assert any("file at" in error and "is empty" in error for error in summary.errors)
    assert any(error.startswith("scenarios: missing file") for error in summary.errors)


def test_validate_tax_tables(tmp_path: Path) -> None:
    estate_path, scenarios_path = _seed_valid_configs(tmp_path)
    tables_path = _write_yaml(
        tmp_path / "tax_tables.yml",
        {
            "federal_rate": 1.5,
            "states": {"NY": {"exemption": 1_000_000.0, "brackets": [{"min": 0, "max": 0}]}},
        },
    )
    summary = validate_configs(
        estate_path=estate_path, scenarios_path=scenarios_path, tax_tables_path=tables_path
    )
    assert "tax_tables.federal_rate must be <= 1.0" in summary.errors
    assert "tax_tables.states.NY.brackets[0].max must be > min" in summary.errors
    assert "tax_tables.states.NY.brackets[0].rate must be a number" in summary.errors
    assert "tax_tables" not in summary.configs


def test_validate_warns_on_untaxed_state_and_missing_values(tmp_path: Path) -> None:
    estate_path = _write_yaml(tmp_path / "estate.yml", {"assumptions": {"state_override": "FL"}})
    _, scenarios_path = _seed_valid_configs(tmp_path / "other")
    summary = validate_configs(estate_path=estate_path, scenarios_path=scenarios_path)
    assert summary.errors == []
    assert any("FL levies no state estate tax" in warning for warning in summary.warnings)
    assert any("projection will be zero" in warning for warning in summary.warnings)


def test_validate_accepts_camel_case_keys_and_checks_their_ranges(tmp_path: Path) -> None:
    _, scenarios_path = _seed_valid_configs(tmp_path)
    estate_path = _write_yaml(
        tmp_path / "camel.yml",
        {
            "baseEstateValue": 5_000_000.0,
            "assetComposition": {"taxable": 1_000_000.0, "taxDeferred": 4_000_000.0},
            "strategies": {"annualGiftAmount": 18_000.0, "bypassTrust": False},
            "assumptions": {"state": "ny", "liquidityTargetPercent": 120.0},
        },
    )
    summary = validate_configs(estate_path=estate_path, scenarios_path=scenarios_path)
    assert summary.errors == []
    assert not any("not a recognised key" in warning for warning in summary.warnings)
    estate = summary.configs["estate"]
    assert estate["base_estate_value"] == 5_000_000.0
    assert estate["asset_composition"]["tax_deferred"] == 4_000_000.0
    assert estate["strategies"]["annual_gift_amount"] == 18_000.0
    assert estate["assumptions"]["state_override"] == "NY"

    _write_yaml(estate_path, {"strategies": {"annualGiftAmount": -1.0}})
    summary = validate_configs(estate_path=estate_path, scenarios_path=scenarios_path)
    assert "estate.strategies.annual_gift_amount must be >= 0.0" in summary.errors


def test_cli_validate_verbose_prints_payload(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    estate_path, scenarios_path = _seed_valid_configs(tmp_path)
    cli_main(
        [
            "validate",
            "--config",
            str(estate_path),
            "--scenarios",
            str(scenarios_path),
            "--verbose",
        ]
    )
    captured = capsys.readouterr()
    assert "[estate3] validate status=ok" in captured.out
    assert "annual_gift_amount" in captured.out
    assert captured.err == ""


def test_cli_validate_exits_on_errors(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    estate_path, _ = _seed_valid_configs(tmp_path)
    with pytest.raises(SystemExit) as excinfo:
        cli_main(
            ["validate", "--config", str(estate_path), "--scenarios", str(tmp_path / "nope.yml")]
        )
    assert excinfo.value.code == 1
    assert "[estate3] validate error: scenarios: missing file" in capsys.readouterr().out
