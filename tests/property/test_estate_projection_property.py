from __future__ import annotations

import datetime as dt

import pytest

try:
    from hypothesis import given, settings
    from hypothesis import strategies as st
    from hypothesis.strategies import SearchStrategy
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    pytest.skip("Requires the hypothesis library", allow_module_level=True)

from estate3.engine.estate import (
    AssetComposition,
    AssumptionInputs,
    EstateCalculationInput,
    ProfileView,
    ProjectionSummary,
    StrategyInputs,
    TrustFunding,
    appreciate,
    calculate_estate_projection,
)
from estate3.engine.estate.tables import DEFAULT_TAX_TABLES

AS_OF = dt.date(2024, 6, 1)
STATES = ("CA", "NY", "MA", "WA", "OR", "CT", "TX")


def _money(max_value: float = 60_000_000.0) -> SearchStrategy[float]:
    return st.floats(min_value=0.0, max_value=max_value, allow_nan=False, allow_infinity=False)


def _input_strategy() -> SearchStrategy[EstateCalculationInput]:
    return st.builds(
        EstateCalculationInput,
        base_estate_value=_money(),
        asset_composition=st.builds(
            AssetComposition,
            taxable=_money(20_000_000.0),
            tax_deferred=_money(20_000_000.0),
            roth=_money(5_000_000.0),
            illiquid=_money(20_000_000.0),
        ),
        strategies=st.builds(
            StrategyInputs,
            lifetime_gifts=_money(5_000_000.0),
            annual_gift_amount=_money(200_000.0),
            trust_funding=st.lists(
                st.builds(TrustFunding, label=st.just("trust"), amount=_money(3_000_000.0)),
                max_size=2,
            ).map(tuple),
            charitable_bequest=_money(5_000_000.0),
            ilit_death_benefit=_money(5_000_000.0),
            bypass_trust=st.booleans(),
        ),
        assumptions=st.builds(
            AssumptionInputs,
            current_age=st.floats(min_value=30.0, max_value=95.0),
            appreciation_rate=st.one_of(st.none(), st.floats(min_value=-5.0, max_value=8.0)),
            portability=st.one_of(st.none(), st.booleans()),
            dsue_amount=st.one_of(st.none(), _money(10_000_000.0)),
            liquidity_target_percent=st.one_of(
                st.none(), st.floats(min_value=50.0, max_value=200.0)
            ),
        ),
        profile=st.builds(
            ProfileView,
            marital_status=st.sampled_from(["married", "single", None]),
            state=st.sampled_from(STATES),
        ),
    )


def _monetary_fields(summary: ProjectionSummary) -> list[float]:
    payload = summary.to_dict()
    values = [
        payload[key]
        for key in (
            "projected_estate_value",
            "projected_taxable_estate",
            "federal_tax",
            "state_tax",
            "total_tax",
            "net_to_heirs",
        )
    ]
    values.extend(payload["liquidity"].values())
    values.extend(
        payload["heir_tax"][key] for key in ("projected_income_tax", "net_after_income_tax")
    )
    return values


@settings(max_examples=75, deadline=None)
@given(calc_input=_input_strategy())
def test_totals_and_net_to_heirs_are_consistent(calc_input: EstateCalculationInput) -> None:
    summary = calculate_estate_projection(calc_input, as_of=AS_OF)
    assert summary.total_tax == pytest.approx(summary.federal_tax + summary.state_tax)
    assert summary.total_tax >= 0.0
    assert summary.net_to_heirs == pytest.approx(
        max(0.0, summary.projected_estate_value - summary.total_tax)
    )
    assert all(value >= 0.0 for value in _monetary_fields(summary))
    assert 0.0 <= summary.effective_tax_rate <= 1.0


@settings(max_examples=75, deadline=None)
@given(calc_input=_input_strategy())
def test_liquidity_gap_matches_shortfall(calc_input: EstateCalculationInput) -> None:
    liquidity = calculate_estate_projection(calc_input, as_of=AS_OF).liquidity
    if liquidity.available >= liquidity.required:
        assert liquidity.gap == 0.0
    else:
        assert liquidity.gap == pytest.approx(liquidity.required - liquidity.available)
    assert liquidity.insurance_need == pytest.approx(
        max(0.0, liquidity.gap - liquidity.ilit_coverage)
    )


@settings(max_examples=50, deadline=None)
@given(calc_input=_input_strategy(), increment=_money(30_000_000.0))
def test_total_tax_monotone_in_base_value(
    calc_input: EstateCalculationInput, increment: float
) -> None:
    richer = EstateCalculationInput(
        base_estate_value=calc_input.base_estate_value + increment,
        asset_composition=calc_input.asset_composition,
        strategies=calc_input.strategies,
        assumptions=calc_input.assumptions,
        profile=calc_input.profile,
    )
    base = calculate_estate_projection(calc_input, as_of=AS_OF)
    more = calculate_estate_projection(richer, as_of=AS_OF)
    assert more.total_tax >= base.total_tax - 1e-6


@given(
    base_value=_money(),
    current_age=st.floats(min_value=0.0, max_value=100.0),
    span=st.floats(min_value=0.0, max_value=80.0),
)
def test_zero_rate_appreciation_is_identity(
    base_value: float, current_age: float, span: float
) -> None:
    value, factor = appreciate(base_value, current_age, current_age + span, 0.0)
    assert value == base_value
    assert factor == 1.0


@settings(max_examples=50, deadline=None)
@given(calc_input=_input_strategy())
def test_bypass_trust_doubles_exemption_for_married(calc_input: EstateCalculationInput) -> None:
    married = EstateCalculationInput(
        base_estate_value=calc_input.base_estate_value,
        asset_composition=calc_input.asset_composition,
        strategies=StrategyInputs(bypass_trust=True),
        assumptions=calc_input.assumptions,
        profile=ProfileView(marital_status="married", state=calc_input.profile.state),
    )
    summary = calculate_estate_projection(married, as_of=AS_OF)
    base_exemption = DEFAULT_TAX_TABLES.federal_exemption(summary.assumptions.year_of_death)
    assert summary.assumptions.base_federal_exemption == pytest.approx(base_exemption)
    assert summary.assumptions.federal_exemption >= 2.0 * base_exemption - 1e-6
