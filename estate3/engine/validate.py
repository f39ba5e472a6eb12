"""Validation utilities for estate3 configuration files.

The validator is hand rolled on top of PyYAML rather than a schema library.
Every problem is reported as a path-qualified message (for example
``estate.strategies.annual_gift_amount must be >= 0.0``) and the sections that
passed validation are returned in normalised form.
"""

from __future__ import annotations

# ruff: noqa: ANN401
import datetime as dt
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from estate3.engine.estate.tables import STATE_ESTATE_TAX_BY_CODE
from estate3.engine.infra.paths import DEFAULT_CONFIG_ROOT
from estate3.engine.utils.io import read_yaml

__all__ = ["ValidationSummary", "validate_configs"]

_STRATEGY_AMOUNTS = (
    "lifetime_gifts",
    "annual_gift_amount",
    "charitable_bequest",
    "ilit_death_benefit",
)
_STRATEGY_KEYS = frozenset((*_STRATEGY_AMOUNTS, "trust_funding", "bypass_trust"))
# key -> (minimum, maximum)
_ASSUMPTION_RANGES: dict[str, tuple[float | None, float | None]] = {
    "federal_exemption_override": (0.0, None),
    "dsue_amount": (0.0, None),
    "projected_death_age": (0.0, 130.0),
    "liquidity_target_percent": (0.0, 500.0),
    "appreciation_rate": (-50.0, 50.0),
    "assumed_heir_income_tax_rate": (0.0, 1.0),
    "current_age": (0.0, 130.0),
}
_ASSUMPTION_KEYS = frozenset((*_ASSUMPTION_RANGES, "state_override", "portability"))
_COMPOSITION_KEYS = ("taxable", "tax_deferred", "roth", "illiquid")
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_ASSUMPTION_ALIASES = {"state": "state_override"}


@dataclass(slots=True)
class ValidationSummary:
    """Aggregate structure returning validation diagnostics and parsed configs.

    Attributes:
      errors: Collection of error messages detected during validation.
      warnings: Soft diagnostics that highlight potential configuration issues.
      configs: Mapping between config label and the normalised payload obtained
        after validation.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    configs: dict[str, dict[str, Any]] = field(default_factory=dict)


def _is_number(value: Any) -> bool:
    """Return ``True`` for ints and floats, rejecting booleans."""

    return isinstance(value, int | float) and not isinstance(value, bool)


def _as_float(
    value: Any,
    *,
    path: str,
    errors: list[str],
    minimum: float | None = None,
    maximum: float | None = None,
) -> float | None:
    """Validate ``value`` as float returning the coerced number when valid."""

    if not _is_number(value):
        errors.append(f"{path} must be a number")
        return None
    number = float(value)
    if minimum is not None and number < minimum:
        errors.append(f"{path} must be >= {minimum}")
        return None
    if maximum is not None and number > maximum:
        errors.append(f"{path} must be <= {maximum}")
        return None
    return number


def _as_int(
    value: Any,
    *,
    path: str,
    errors: list[str],
    minimum: int | None = None,
) -> int | None:
    """Validate ``value`` as an integer (booleans rejected)."""

    if not isinstance(value, int) or isinstance(value, bool):
        errors.append(f"{path} must be an integer")
        return None
    if minimum is not None and value < minimum:
        errors.append(f"{path} must be >= {minimum}")
        return None
    return value


def _as_string(value: Any, *, path: str, errors: list[str]) -> str | None:
    """Return the stripped string, flagging blanks and non-strings."""

    if not isinstance(value, str) or value.strip() == "":
        errors.append(f"{path} must be a non-empty string")
        return None
    return value.strip()


def _as_bool(value: Any, *, path: str, errors: list[str]) -> bool | None:
    if not isinstance(value, bool):
        errors.append(f"{path} must be a boolean")
        return None
    return value


def _as_state(value: Any, *, path: str, errors: list[str]) -> str | None:
    """Validate a two-letter state code and return it upper-cased."""

    text = _as_string(value, path=path, errors=errors)
    if text is None:
        return None
    if len(text) != 2 or not text.isalpha():
        errors.append(f"{path} must be a two-letter state code")
        return None
    return text.upper()


def _snake_keys(payload: dict[str, Any], aliases: dict[str, str] | None = None) -> dict[str, Any]:
    """Rename camelCase (and aliased) keys to the snake_case names the engine reads.

    When both spellings are present the snake_case key wins, matching how the
    calculator resolves them.
    """

    normalised: dict[str, Any] = {}
    for key, value in payload.items():
        name = _CAMEL_BOUNDARY.sub("_", str(key)).lower()
        name = (aliases or {}).get(name, name)
        if name in normalised and key != name:
            continue
        normalised[name] = value
    return normalised


def _warn_unknown(
    payload: dict[str, Any], allowed: frozenset[str], *, path: str, warnings: list[str]
) -> None:
    """Warn about keys the calculator does not read."""

    for key in sorted(set(payload) - allowed, key=str):
        warnings.append(f"{path}.{key} is not a recognised key and will be ignored")


def _validate_strategies(
    value: Any, *, path: str, errors: list[str], warnings: list[str]
) -> dict[str, Any] | None:
    """Validate a strategies block; every key is optional."""

    if value is None:
        return {}
    if not isinstance(value, dict):
        errors.append(f"{path} must be a mapping")
        return None
    value = _snake_keys(value)
    error_count = len(errors)
    strategies: dict[str, Any] = {}
    for key in _STRATEGY_AMOUNTS:
        if key in value:
            strategies[key] = _as_float(
                value[key], path=f"{path}.{key}", errors=errors, minimum=0.0
            )
    if "bypass_trust" in value:
        strategies["bypass_trust"] = _as_bool(
            value["bypass_trust"], path=f"{path}.bypass_trust", errors=errors
        )
    trusts = value.get("trust_funding")
    if trusts is not None:
        if not isinstance(trusts, list):
            errors.append(f"{path}.trust_funding must be a list")
        else:
            entries: list[dict[str, Any]] = []
            for idx, entry in enumerate(trusts):
                entry_path = f"{path}.trust_funding[{idx}]"
                if not isinstance(entry, dict):
                    errors.append(f"{entry_path} must be a mapping")
                    continue
                label = _as_string(
                    entry.get("label", "trust"), path=f"{entry_path}.label", errors=errors
                )
                amount = _as_float(
                    entry.get("amount"), path=f"{entry_path}.amount", errors=errors, minimum=0.0
                )
                if label is not None and amount is not None:
                    entries.append({"label": label, "amount": amount})
            strategies["trust_funding"] = entries
    _warn_unknown(value, _STRATEGY_KEYS, path=path, warnings=warnings)
    if len(errors) != error_count:
        return None
    return strategies


def _validate_assumptions(
    value: Any, *, path: str, errors: list[str], warnings: list[str]
) -> dict[str, Any] | None:
    """Validate an assumptions block; every key is optional."""

    if value is None:
        return {}
    if not isinstance(value, dict):
        errors.append(f"{path} must be a mapping")
        return None
    value = _snake_keys(value, _ASSUMPTION_ALIASES)
    error_count = len(errors)
    assumptions: dict[str, Any] = {}
    for key, (minimum, maximum) in _ASSUMPTION_RANGES.items():
        if key in value and value[key] is not None:
            assumptions[key] = _as_float(
                value[key], path=f"{path}.{key}", errors=errors, minimum=minimum, maximum=maximum
            )
    if value.get("state_override") is not None:
        state = _as_state(value["state_override"], path=f"{path}.state_override", errors=errors)
        assumptions["state_override"] = state
        if state is not None and state not in STATE_ESTATE_TAX_BY_CODE:
            warnings.append(f"{path}.state_override: {state} levies no state estate tax")
    if value.get("portability") is not None:
        assumptions["portability"] = _as_bool(
            value["portability"], path=f"{path}.portability", errors=errors
        )
    rate = assumptions.get("assumed_heir_income_tax_rate")
    if rate is not None and rate > 0.6:
        warnings.append(f"{path}.assumed_heir_income_tax_rate: {rate:.2f} exceeds any US bracket")
    current_age = assumptions.get("current_age")
    death_age = assumptions.get("projected_death_age")
    if current_age is not None and death_age is not None and death_age <= current_age:
        warnings.append(
            f"{path}.projected_death_age: not after current_age; the default horizon applies"
        )
    _warn_unknown(value, _ASSUMPTION_KEYS, path=path, warnings=warnings)
    if len(errors) != error_count:
        return None
    return assumptions


def _validate_profile(value: Any, *, errors: list[str], warnings: list[str]) -> dict[str, Any]:
    """Validate the profile fields the calculator reads; others pass through."""

    if not isinstance(value, dict):
        errors.append("estate.profile must be a mapping")
        return {}
    value = _snake_keys(value)
    profile = dict(value)
    if value.get("marital_status") is not None:
        profile["marital_status"] = _as_string(
            value["marital_status"], path="estate.profile.marital_status", errors=errors
        )
    if value.get("state") is not None:
        state = _as_state(value["state"], path="estate.profile.state", errors=errors)
        profile["state"] = state
        if state is not None and state not in STATE_ESTATE_TAX_BY_CODE:
            warnings.append(f"estate.profile.state: {state} levies no state estate tax")
    for key in ("current_age", "longevity_age"):
        if value.get(key) is not None:
            profile[key] = _as_float(
                value[key], path=f"estate.profile.{key}", errors=errors, minimum=0.0, maximum=130.0
            )
    if value.get("dsue_amount") is not None:
        profile["dsue_amount"] = _as_float(
            value["dsue_amount"], path="estate.profile.dsue_amount", errors=errors, minimum=0.0
        )
    dob = value.get("date_of_birth")
    if dob is not None and not isinstance(dob, dt.date | str):
        errors.append("estate.profile.date_of_birth must be a date")
    assets = value.get("assets")
    if assets is not None:
        if not isinstance(assets, list):
            errors.append("estate.profile.assets must be a list")
        else:
            for idx, entry in enumerate(assets):
                entry_path = f"estate.profile.assets[{idx}]"
                if not isinstance(entry, dict):
                    errors.append(f"{entry_path} must be a mapping")
                    continue
                _as_string(entry.get("type"), path=f"{entry_path}.type", errors=errors)
                _as_float(
                    entry.get("value", entry.get("balance")),
                    path=f"{entry_path}.value",
                    errors=errors,
                    minimum=0.0,
                )
    return profile


def _validate_estate_config(
    payload: dict[str, Any], *, summary: ValidationSummary
) -> dict[str, Any] | None:
    """Validate the household file and warn about inconsistent totals."""

    payload = _snake_keys(payload)
    errors = summary.errors
    warnings = summary.warnings
    error_count = len(errors)
    config: dict[str, Any] = {}

    if payload.get("base_estate_value") is not None:
        config["base_estate_value"] = _as_float(
            payload["base_estate_value"],
            path="estate.base_estate_value",
            errors=errors,
            minimum=0.0,
        )

    composition = payload.get("asset_composition")
    if composition is not None:
        if not isinstance(composition, dict):
            errors.append("estate.asset_composition must be a mapping")
        else:
            composition = _snake_keys(composition)
            config["asset_composition"] = {
                key: _as_float(
                    composition.get(key, 0.0),
                    path=f"estate.asset_composition.{key}",
                    errors=errors,
                    minimum=0.0,
                )
                for key in _COMPOSITION_KEYS
            }

    if payload.get("profile") is not None:
        config["profile"] = _validate_profile(payload["profile"], errors=errors, warnings=warnings)

    strategies = _validate_strategies(
        payload.get("strategies"), path="estate.strategies", errors=errors, warnings=warnings
    )
    assumptions = _validate_assumptions(
        payload.get("assumptions"), path="estate.assumptions", errors=errors, warnings=warnings
    )
    if len(errors) != error_count:
        return None
    config["strategies"] = strategies or {}
    config["assumptions"] = assumptions or {}

    if "base_estate_value" not in config and "asset_composition" not in config:
        if "profile" not in config:
            warnings.append(
                "estate: neither base_estate_value, asset_composition nor profile supplied; "
                "the projection will be zero"
            )
    base = config.get("base_estate_value")
    buckets = config.get("asset_composition")
    if base is not None and buckets:
        total = sum(buckets.values())
        if total > base * 1.01:
            warnings.append(
                f"estate.asset_composition: total {total:,.0f} exceeds "
                f"base_estate_value {base:,.0f}"
            )
    return config


def _validate_scenarios_config(
    payload: dict[str, Any], *, summary: ValidationSummary
) -> dict[str, Any] | None:
    """Validate the scenario list; names must be unique and not ``baseline``."""

    errors = summary.errors
    raw = payload.get("scenarios")
    if not isinstance(raw, list):
        errors.append("scenarios.scenarios must be a list")
        return None
    error_count = len(errors)
    scenarios: list[dict[str, Any]] = []
    seen: set[str] = set()
    for idx, entry in enumerate(raw):
        path = f"scenarios.scenarios[{idx}]"
        if not isinstance(entry, dict):
            errors.append(f"{path} must be a mapping")
            continue
        name = _as_string(entry.get("name"), path=f"{path}.name", errors=errors)
        if name is not None:
            if name == "baseline":
                errors.append(f"{path}.name 'baseline' is reserved")
            elif name in seen:
                errors.append(f"{path}.name '{name}' is duplicated")
            seen.add(name)
        strategies = _validate_strategies(
            entry.get("strategies"),
            path=f"{path}.strategies",
            errors=errors,
            warnings=summary.warnings,
        )
        assumptions = _validate_assumptions(
            entry.get("assumptions"),
            path=f"{path}.assumptions",
            errors=errors,
            warnings=summary.warnings,
        )
        if name is None or strategies is None or assumptions is None:
            continue
        if not strategies and not assumptions:
            summary.warnings.append(f"{path}: no overrides; identical to the baseline")
        scenarios.append({"name": name, "strategies": strategies, "assumptions": assumptions})
    if len(errors) != error_count:
        return None
    if not scenarios:
        errors.append("scenarios.scenarios must contain at least one entry")
        return None
    return {"scenarios": scenarios}


def _validate_state_entry(value: Any, *, path: str, errors: list[str]) -> dict[str, Any] | None:
    """Accept either a flat ``rate`` or a ``brackets`` list next to the exemption."""

    if not isinstance(value, dict):
        errors.append(f"{path} must be a mapping")
        return None
    exemption = _as_float(
        value.get("exemption"), path=f"{path}.exemption", errors=errors, minimum=0.0
    )
    if "brackets" in value:
        brackets = value["brackets"]
        if not isinstance(brackets, list) or not brackets:
            errors.append(f"{path}.brackets must be a non-empty list")
            return None
        parsed: list[dict[str, Any]] = []
        for idx, bracket in enumerate(brackets):
            bracket_path = f"{path}.brackets[{idx}]"
            if not isinstance(bracket, dict):
                errors.append(f"{bracket_path} must be a mapping")
                continue
            low = _as_float(
                bracket.get("min", 0.0), path=f"{bracket_path}.min", errors=errors, minimum=0.0
            )
            high = None
            if bracket.get("max") is not None:
                high = _as_float(bracket["max"], path=f"{bracket_path}.max", errors=errors)
                if high is not None and low is not None and high <= low:
                    errors.append(f"{bracket_path}.max must be > min")
            rate = _as_float(
                bracket.get("rate"),
                path=f"{bracket_path}.rate",
                errors=errors,
                minimum=0.0,
                maximum=1.0,
            )
            parsed.append({"min": low, "max": high, "rate": rate})
        if exemption is None:
            return None
        return {"exemption": exemption, "brackets": parsed}
    rate = _as_float(
        value.get("rate"), path=f"{path}.rate", errors=errors, minimum=0.0, maximum=1.0
    )
    if exemption is None or rate is None:
        return None
    return {"exemption": exemption, "rate": rate}


def _validate_tax_tables_config(
    payload: dict[str, Any], *, summary: ValidationSummary
) -> dict[str, Any] | None:
    errors = summary.errors
    error_count = len(errors)
    config: dict[str, Any] = {}
    federal = payload.get("federal_exemptions")
    if federal is not None:
        if not isinstance(federal, dict):
            errors.append("tax_tables.federal_exemptions must be a mapping")
        else:
            config["federal_exemptions"] = {}
            for year, amount in federal.items():
                year_value = _as_int(
                    year, path=f"tax_tables.federal_exemptions.{year}", errors=errors, minimum=1900
                )
                amount_value = _as_float(
                    amount,
                    path=f"tax_tables.federal_exemptions.{year}",
                    errors=errors,
                    minimum=0.0,
                )
                if year_value is not None and amount_value is not None:
                    config["federal_exemptions"][year_value] = amount_value
    for key in ("federal_exemption_baseline", "fallback_exemption"):
        if payload.get(key) is not None:
            config[key] = _as_float(
                payload[key], path=f"tax_tables.{key}", errors=errors, minimum=0.0
            )
    if payload.get("baseline_from_year") is not None:
        config["baseline_from_year"] = _as_int(
            payload["baseline_from_year"],
            path="tax_tables.baseline_from_year",
            errors=errors,
            minimum=1900,
        )
    if payload.get("federal_rate") is not None:
        config["federal_rate"] = _as_float(
            payload["federal_rate"],
            path="tax_tables.federal_rate",
            errors=errors,
            minimum=0.0,
            maximum=1.0,
        )
    states = payload.get("states")
    if states is not None:
        if not isinstance(states, dict):
            errors.append("tax_tables.states must be a mapping")
        else:
            config["states"] = {}
            for code, entry in states.items():
                state = _as_state(code, path=f"tax_tables.states.{code}", errors=errors)
                parsed = _validate_state_entry(
                    entry, path=f"tax_tables.states.{code}", errors=errors
                )
                if state is not None and parsed is not None:
                    config["states"][state] = parsed
    if len(errors) != error_count:
        return None
    return config


def _load_payload(
    label: str,
    path: Path,
    *,
    summary: ValidationSummary,
) -> dict[str, Any] | None:
    """Load YAML payload handling missing files and empty documents."""

    if not path.exists():
        summary.errors.append(f"{label}: missing file at {path}")
        return None
    payload = read_yaml(path)
    if payload is None:
        summary.errors.append(f"{label}: file at {path} is empty")
        return None
    if not isinstance(payload, dict):
        summary.errors.append(f"{label}: expected a mapping at {path}")
        return None
    return payload


def validate_configs(
    *,
    estate_path: Path | str = DEFAULT_CONFIG_ROOT / "estate.yml",
    scenarios_path: Path | str = DEFAULT_CONFIG_ROOT / "scenarios.yml",
    tax_tables_path: Path | str | None = None,
) -> ValidationSummary:
    """Validate estate3 YAML configuration files and return diagnostics.

    Args:
      estate_path: Household estate configuration.
      scenarios_path: Scenario overrides.
      tax_tables_path: Optional tax-table override; skipped when ``None``.

    Returns:
      A :class:`ValidationSummary`; a section only appears in ``configs`` when
      it produced no errors.
    """

    summary = ValidationSummary()
    sections = [
        ("estate", estate_path, _validate_estate_config),
        ("scenarios", scenarios_path, _validate_scenarios_config),
    ]
    if tax_tables_path is not None:
        sections.append(("tax_tables", tax_tables_path, _validate_tax_tables_config))

    for label, path, validator in sections:
        payload = _load_payload(label, Path(path), summary=summary)
        if payload is None:
            continue
        error_count = len(summary.errors)
        config = validator(payload, summary=summary)
        if config is not None and len(summary.errors) == error_count:
            summary.configs[label] = config

    return summary
