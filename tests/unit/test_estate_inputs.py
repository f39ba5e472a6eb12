"""Unit tests for estate input coercion and record parsing."""

from __future__ import annotations

import math

import pytest

from estate3.engine.estate.inputs import (
    AssetComposition,
    AssumptionInputs,
    StrategyInputs,
    coerce_number,
    coerce_optional_bool,
    coerce_optional_number,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, 0.0),
        ("", 0.0),
        ("abc", 0.0),
        (math.nan, 0.0),
        (math.inf, 0.0),
        ("1250.5", 1250.5),
        (True, 1.0),
        (42, 42.0),
    ],
)
def test_coerce_number_defaults_unusable_values(raw: object, expected: float) -> None:
    assert coerce_number(raw) == pytest.approx(expected)


def test_coerce_optional_number_keeps_absence() -> None:
    assert coerce_optional_number(None) is None
    assert coerce_optional_number("n/a") is None
    assert coerce_optional_number(False) is None
    assert coerce_optional_number("4.5") == pytest.approx(4.5)


def test_coerce_optional_bool_accepts_text_flags() -> None:
    assert coerce_optional_bool("Yes") is True
    assert coerce_optional_bool("off") is False
    assert coerce_optional_bool("maybe") is None
    assert coerce_optional_bool(0) is False


def test_asset_composition_accepts_camel_case_and_clamps() -> None:
    composition = AssetComposition.from_mapping(
        {"taxable": "100", "taxDeferred": 50, "roth": -10, "illiquid": None}
    )
    assert composition == AssetComposition(taxable=100.0, tax_deferred=50.0, roth=0.0, illiquid=0.0)
    assert composition.total == pytest.approx(150.0)
    assert composition.to_dict()["tax_deferred"] == pytest.approx(50.0)


def test_strategy_inputs_parse_trusts_and_flags() -> None:
    strategies = StrategyInputs.from_mapping(
        {
            "lifetimeGifts": 1_000_000,
            "annual_gift_amount": "36000",
            "trustFunding": [{"label": "slat", "amount": 500_000}, "junk", {"amount": 250_000}],
            "bypassTrust": "true",
        }
    )
    assert strategies.lifetime_gifts == pytest.approx(1_000_000.0)
    assert strategies.annual_gift_amount == pytest.approx(36_000.0)
    assert [trust.label for trust in strategies.trust_funding] == ["slat", "trust"]
    assert strategies.total_trust_funding == pytest.approx(750_000.0)
    assert strategies.bypass_trust is True
    assert StrategyInputs.from_mapping(None) == StrategyInputs()


def test_assumption_inputs_normalise_state_and_keep_missing_as_none() -> None:
    assumptions = AssumptionInputs.from_mapping(
        {"stateOverride": " ny ", "appreciationRate": "bad", "portability": "no"}
    )
    assert assumptions.state_override == "NY"
    assert assumptions.appreciation_rate is None
    assert assumptions.portability is False
    assert assumptions.liquidity_target_percent is None
