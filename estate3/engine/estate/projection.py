"""Estate projection calculator.

The projection is a strictly downstream pipeline:

1. resolve ages and the year of death,
2. resolve federal and state exemptions,
3. compound the estate to the year of death and net out gifts and trusts,
4. compute federal and state estate tax,
5. compare liquid resources against taxes and settlement costs,
6. estimate the income tax heirs owe on inherited tax-deferred balances.

Nothing here performs I/O or mutates its inputs, and malformed numbers are
coerced rather than raised so the caller always receives a best-effort
estimate with non-negative currency figures.
"""

from __future__ import annotations

import datetime as dt
import math
import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from estate3.engine.estate.inputs import (
    AssetComposition,
    AssumptionInputs,
    StrategyInputs,
    coerce_number,
    first_present,
)
from estate3.engine.estate.profile import (
    ProfileView,
    build_asset_composition,
    estimate_base_estate_value,
)
from estate3.engine.estate.tables import DEFAULT_TAX_TABLES, TaxTables
from estate3.engine.estate.timeline import Timeline, resolve_timeline
from estate3.engine.logging import setup_logger

__all__ = [
    "ADMIN_EXPENSE_RATE",
    "PROBATE_RATE",
    "FUNERAL_COST",
    "DEFAULT_LIQUIDITY_TARGET_PERCENT",
    "DEFAULT_HEIR_INCOME_TAX_RATE",
    "MAX_PROJECTED_VALUE",
    "EstateCalculationInput",
    "ResolvedAssumptions",
    "EstateValueProjection",
    "TaxBreakdown",
    "LiquidityAnalysis",
    "HeirTaxEstimate",
    "CharitableImpact",
    "StrategyAdjustments",
    "AssumptionEcho",
    "ProjectionSummary",
    "resolve_assumptions",
    "appreciate",
    "project_estate_value",
    "compute_estate_taxes",
    "analyze_liquidity",
    "estimate_heir_tax",
    "calculate_estate_projection",
]

LOG = setup_logger(__name__)

ADMIN_EXPENSE_RATE = 0.03
PROBATE_RATE = 0.05
FUNERAL_COST = 10_000.0
DEFAULT_LIQUIDITY_TARGET_PERCENT = 110.0
DEFAULT_HEIR_INCOME_TAX_RATE = 0.25
# Upper bound on compounded values and factors; keeps every output finite.
MAX_PROJECTED_VALUE = 1e18

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
# Short spellings accepted in overrides, mapped to the field they replace.
_KEY_ALIASES = {"state": "state_override"}


def _snake_keys(payload: Mapping[str, object]) -> dict[str, object]:
    """Normalise camelCase and alias keys to the dataclass field names."""

    normalised: dict[str, object] = {}
    for key, value in payload.items():
        name = _CAMEL_BOUNDARY.sub("_", str(key)).lower()
        normalised[_KEY_ALIASES.get(name, name)] = value
    return normalised


@dataclass(frozen=True)
class EstateCalculationInput:
    """Everything the calculator needs for one projection.

    Attributes:
      base_estate_value: Current estate value before appreciation.
      asset_composition: Split of the estate by tax character.
      strategies: Planning strategies in force.
      assumptions: Optional overrides of the calculator defaults.
      profile: Read view of the household profile.
    """

    base_estate_value: float
    asset_composition: AssetComposition
    strategies: StrategyInputs = field(default_factory=StrategyInputs)
    assumptions: AssumptionInputs = field(default_factory=AssumptionInputs)
    profile: ProfileView = field(default_factory=ProfileView)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> EstateCalculationInput:
        """Build an input from a YAML or JSON record.

        A missing ``asset_composition`` is derived from the profile, and a
        missing base estate value defaults to the sum of the composition.

        Args:
          payload: Mapping with ``base_estate_value``/``baseEstateValue``,
            ``asset_composition``/``assetComposition``, ``strategies``,
            ``assumptions`` and ``profile`` keys.

        Returns:
          A populated :class:`EstateCalculationInput`.
        """

        raw_profile = payload.get("profile")
        profile = ProfileView.from_mapping(
            raw_profile if isinstance(raw_profile, Mapping) else None
        )
        raw_composition = first_present(payload, "asset_composition", "assetComposition")
        if isinstance(raw_composition, Mapping):
            composition = AssetComposition.from_mapping(raw_composition)
        else:
            composition = build_asset_composition(profile)
        raw_base = first_present(payload, "base_estate_value", "baseEstateValue")
        if raw_base is None:
            base = estimate_base_estate_value(composition)
        else:
            # Present but unusable (NaN, inf, text) projects a zero estate.
            base = coerce_number(raw_base)
        raw_strategies = payload.get("strategies")
        raw_assumptions = payload.get("assumptions")
        return cls(
            base_estate_value=max(0.0, base),
            asset_composition=composition,
            strategies=StrategyInputs.from_mapping(
                raw_strategies if isinstance(raw_strategies, Mapping) else None
            ),
            assumptions=AssumptionInputs.from_mapping(
                raw_assumptions if isinstance(raw_assumptions, Mapping) else None
            ),
            profile=profile,
        )

    def with_overrides(
        self,
        *,
        strategies: Mapping[str, object] | None = None,
        assumptions: Mapping[str, object] | None = None,
    ) -> EstateCalculationInput:
        """Return a copy with strategy/assumption keys replaced by ``overrides``.

        Keys absent from the overrides keep their current values.
        """

        merged_strategies = self.strategies
        if strategies:
            current = asdict(self.strategies)
            current.update(_snake_keys(strategies))
            merged_strategies = StrategyInputs.from_mapping(current)
        merged_assumptions = self.assumptions
        if assumptions:
            current = asdict(self.assumptions)
            current.update(_snake_keys(assumptions))
            merged_assumptions = AssumptionInputs.from_mapping(current)
        return EstateCalculationInput(
            base_estate_value=self.base_estate_value,
            asset_composition=self.asset_composition,
            strategies=merged_strategies,
            assumptions=merged_assumptions,
            profile=self.profile,
        )


@dataclass(frozen=True)
class ResolvedAssumptions:
    """Every assumption with its default applied, computed once per projection."""

    timeline: Timeline
    state: str | None
    marital_status: str | None
    is_married: bool
    portability: bool
    dsue_amount: float
    base_federal_exemption: float
    appreciation_rate: float
    liquidity_target_percent: float
    heir_income_tax_rate: float

    @property
    def liquidity_target(self) -> float:
        return self.liquidity_target_percent / 100.0


def resolve_assumptions(
    calc_input: EstateCalculationInput,
    *,
    tables: TaxTables = DEFAULT_TAX_TABLES,
    as_of: dt.date | None = None,
) -> ResolvedAssumptions:
    """Apply defaults to every optional assumption.

    Args:
      calc_input: Calculator input.
      tables: Tax tables used for the federal exemption lookup.
      as_of: Valuation date; defaults to today.

    Returns:
      The :class:`ResolvedAssumptions` used by the rest of the pipeline.
    """

    assumptions = calc_input.assumptions
    profile = calc_input.profile
    timeline = resolve_timeline(assumptions, profile, as_of)
    portability = (
        assumptions.portability if assumptions.portability is not None else profile.is_married
    )
    dsue = 0.0
    if portability:
        # A zero override falls through to the profile's amount.
        dsue = max(0.0, assumptions.dsue_amount or profile.dsue_amount or 0.0)
    liquidity_percent = assumptions.liquidity_target_percent
    if liquidity_percent is None:
        liquidity_percent = DEFAULT_LIQUIDITY_TARGET_PERCENT
    heir_rate = assumptions.assumed_heir_income_tax_rate
    if heir_rate is None:
        heir_rate = DEFAULT_HEIR_INCOME_TAX_RATE
    return ResolvedAssumptions(
        timeline=timeline,
        state=assumptions.state_override or profile.state,
        marital_status=profile.marital_status,
        is_married=profile.is_married,
        portability=bool(portability),
        dsue_amount=dsue,
        base_federal_exemption=tables.federal_exemption(
            timeline.year_of_death, assumptions.federal_exemption_override
        ),
        appreciation_rate=max(0.0, assumptions.appreciation_rate or 0.0),
        liquidity_target_percent=max(0.0, liquidity_percent),
        heir_income_tax_rate=max(0.0, heir_rate),
    )


@dataclass(frozen=True)
class EstateValueProjection:
    appreciated_value: float
    appreciation_factor: float
    lifetime_gifts: float
    annual_gifts: float
    trust_funding: float
    gross_estate: float
    admin_expenses: float
    deductions: float
    taxable_estate: float


@dataclass(frozen=True)
class TaxBreakdown:
    base_exemption: float
    effective_exemption: float
    federal_taxable_amount: float
    federal_tax: float
    state_tax: float
    state_exemption: float
    total_tax: float
    effective_tax_rate: float
    bypass_trust_applied: bool


@dataclass(frozen=True)
class LiquidityAnalysis:
    """Liquid resources versus taxes and settlement costs due at death.

    Attributes:
      available: Liquid assets and insurance proceeds net of the charitable reserve.
      required: Total tax scaled by the liquidity target plus settlement costs.
      gap: Shortfall of ``available`` against ``required``.
      insurance_need: Shortfall not already covered by the ILIT.
      ilit_coverage: ILIT death benefit.
      existing_life_insurance_user: In-estate coverage on the user.
      existing_life_insurance_spouse: In-estate coverage on the spouse.
      probate_costs: Probate estimate on the gross estate.
      funeral_cost: Funeral estimate.
      settlement_expenses: Probate plus funeral.
      charitable_reserve: Liquid funds earmarked for the charitable bequest.
    """

    available: float
    required: float
    gap: float
    insurance_need: float
    ilit_coverage: float
    existing_life_insurance_user: float
    existing_life_insurance_spouse: float
    probate_costs: float
    funeral_cost: float
    settlement_expenses: float
    charitable_reserve: float


@dataclass(frozen=True)
class HeirTaxEstimate:
    tax_deferred_balance: float
    assumed_rate: float
    projected_income_tax: float
    net_after_income_tax: float


@dataclass(frozen=True)
class CharitableImpact:
    charitable_bequests: float
    percent_of_estate: float


@dataclass(frozen=True)
class StrategyAdjustments:
    lifetime_gifts: float
    annual_gifts: float
    trust_funding: float
    appreciation_factor: float
    bypass_trust_applied: bool


@dataclass(frozen=True)
class AssumptionEcho:
    """Resolved assumptions echoed back for display and audit.

    ``federal_exemption`` is the effective exemption after DSUE and bypass
    trust adjustments; ``base_federal_exemption`` is the table value.
    """

    year_of_death: int
    death_age: float
    current_age: float
    state: str | None
    marital_status: str | None
    portability: bool
    dsue_amount: float
    federal_exemption: float
    base_federal_exemption: float
    state_exemption: float
    appreciation_rate: float
    liquidity_target_percent: float


@dataclass(frozen=True)
class ProjectionSummary:
    """Immutable result of :func:`calculate_estate_projection`.

    Attributes:
      projected_estate_value: Gross estate at death after gifts and trusts.
      projected_taxable_estate: Gross estate less deductions.
      federal_tax: Federal estate tax.
      state_tax: State estate tax.
      total_tax: Federal plus state tax.
      net_to_heirs: Gross estate less total tax, floored at zero.
      effective_tax_rate: Total tax as a fraction of the gross estate.
      liquidity: Liquidity analysis.
      heir_tax: Income tax heirs owe on tax-deferred balances.
      charitable_impact: Charitable bequest and its share of the estate.
      strategy_adjustments: Effect of the strategies on the estate.
      assumptions: Echo of the resolved assumptions.
    """

    projected_estate_value: float
    projected_taxable_estate: float
    federal_tax: float
    state_tax: float
    total_tax: float
    net_to_heirs: float
    effective_tax_rate: float
    liquidity: LiquidityAnalysis
    heir_tax: HeirTaxEstimate
    charitable_impact: CharitableImpact
    strategy_adjustments: StrategyAdjustments
    assumptions: AssumptionEcho

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def log_fields(self, scenario: str, elapsed_ms: float | None = None) -> dict[str, Any]:
        """Fields attached to audit log records via ``extra=``."""

        fields: dict[str, Any] = {
            "scenario": scenario,
            "state": self.assumptions.state,
            "estate_value": self.projected_estate_value,
            "total_tax": self.total_tax,
            "liquidity_gap": self.liquidity.gap,
            "year_of_death": self.assumptions.year_of_death,
        }
        if elapsed_ms is not None:
            fields["process_time_ms"] = elapsed_ms
        return fields


def appreciate(
    base_value: float,
    current_age: float,
    death_age: float,
    rate_percent: float | None,
) -> tuple[float, float]:
    """Compound ``base_value`` to the death age.

    Args:
      base_value: Estate value today.
      current_age: Age today.
      death_age: Projected age at death.
      rate_percent: Annual appreciation in percent; ``None`` or non-positive
        values mean no growth.

    Returns:
      Tuple ``(appreciated_value, factor)``.
    """

    if not rate_percent or rate_percent <= 0.0:
        return base_value, 1.0
    years = max(0.0, death_age - current_age)
    try:
        factor = (1.0 + rate_percent / 100.0) ** years
    except OverflowError:
        factor = math.inf
    ceiling = max(base_value, MAX_PROJECTED_VALUE)
    if base_value > 0.0 and base_value * factor > ceiling:
        factor = ceiling / base_value
    factor = min(factor, MAX_PROJECTED_VALUE)
    return base_value * factor, factor


def project_estate_value(
    base_estate_value: float,
    strategies: StrategyInputs,
    resolved: ResolvedAssumptions,
) -> EstateValueProjection:
    """Appreciate the estate and subtract gifts, trusts and deductions."""

    timeline = resolved.timeline
    appreciated, factor = appreciate(
        max(0.0, base_estate_value),
        timeline.current_age,
        timeline.death_age,
        resolved.appreciation_rate,
    )
    lifetime_gifts = max(0.0, strategies.lifetime_gifts)
    annual_gifts = max(0.0, strategies.annual_gift_amount) * timeline.years_to_death
    trust_funding = max(0.0, strategies.total_trust_funding)
    gross = max(0.0, appreciated - lifetime_gifts - annual_gifts - trust_funding)

    charitable = max(0.0, strategies.charitable_bequest)
    admin_expenses = gross * ADMIN_EXPENSE_RATE
    deductions = min(gross, admin_expenses + charitable)
    taxable = max(0.0, gross - deductions)
    return EstateValueProjection(
        appreciated_value=appreciated,
        appreciation_factor=factor,
        lifetime_gifts=lifetime_gifts,
        annual_gifts=annual_gifts,
        trust_funding=trust_funding,
        gross_estate=gross,
        admin_expenses=admin_expenses,
        deductions=deductions,
        taxable_estate=taxable,
    )


def compute_estate_taxes(
    estate: EstateValueProjection,
    strategies: StrategyInputs,
    resolved: ResolvedAssumptions,
    tables: TaxTables = DEFAULT_TAX_TABLES,
) -> TaxBreakdown:
    """Compute federal and state estate tax.

    The effective federal exemption adds the DSUE when portability applies. A
    bypass trust for a married couple guarantees at least twice the base
    exemption (the DSUE is not doubled).
    """

    base_exemption = resolved.base_federal_exemption
    effective = base_exemption + resolved.dsue_amount
    bypass_applied = bool(strategies.bypass_trust and resolved.is_married)
    if bypass_applied:
        effective = max(effective, base_exemption * 2.0)

    federal_taxable = max(0.0, estate.taxable_estate - effective)
    federal_tax = federal_taxable * tables.federal_rate if federal_taxable > 0.0 else 0.0
    state = tables.state_tax(estate.taxable_estate, resolved.state)
    total = federal_tax + state.tax
    rate = total / estate.gross_estate if estate.gross_estate > 0.0 else 0.0
    return TaxBreakdown(
        base_exemption=base_exemption,
        effective_exemption=effective,
        federal_taxable_amount=federal_taxable,
        federal_tax=federal_tax,
        state_tax=state.tax,
        state_exemption=state.exemption,
        total_tax=total,
        effective_tax_rate=rate,
        bypass_trust_applied=bypass_applied,
    )


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def analyze_liquidity(
    composition: AssetComposition,
    gross_estate: float,
    total_tax: float,
    strategies: StrategyInputs,
    profile: ProfileView,
    liquidity_target: float,
) -> LiquidityAnalysis:
    """Compare liquid resources with the cash needed at death.

    Args:
      composition: Asset composition of the estate.
      gross_estate: Projected gross estate.
      total_tax: Federal plus state tax.
      strategies: Strategies (ILIT benefit, charitable bequest).
      profile: Profile view supplying existing in-estate coverage.
      liquidity_target: Coverage ratio applied to the tax bill (1.1 = 110%).

    Returns:
      The :class:`LiquidityAnalysis`.
    """

    ilit = max(0.0, strategies.ilit_death_benefit)
    user_cover = max(0.0, profile.life_insurance_coverage)
    spouse_cover = max(0.0, profile.spouse_life_insurance_coverage)
    liquid_assets = composition.taxable + composition.roth
    pre_reserve = max(0.0, liquid_assets + ilit + user_cover + spouse_cover)
    charitable_reserve = max(0.0, min(max(0.0, strategies.charitable_bequest), pre_reserve))
    available = max(0.0, pre_reserve - charitable_reserve)

    if gross_estate > 0.0:
        probate = _round_half_up(gross_estate * PROBATE_RATE)
        funeral = FUNERAL_COST * (2.0 if profile.is_married else 1.0)
    else:
        probate = 0.0
        funeral = 0.0
    settlement = probate + funeral
    required = max(0.0, total_tax * liquidity_target + settlement)
    gap = max(0.0, required - available)
    insurance_need = max(0.0, gap - ilit)
    return LiquidityAnalysis(
        available=available,
        required=required,
        gap=gap,
        insurance_need=insurance_need,
        ilit_coverage=ilit,
        existing_life_insurance_user=user_cover,
        existing_life_insurance_spouse=spouse_cover,
        probate_costs=probate,
        funeral_cost=funeral,
        settlement_expenses=settlement,
        charitable_reserve=charitable_reserve,
    )


def estimate_heir_tax(
    tax_deferred_balance: float, net_to_heirs: float, assumed_rate: float
) -> HeirTaxEstimate:
    """Flat-rate income tax on inherited tax-deferred balances.

    A single assumed rate stands in for every beneficiary's bracket.
    """

    balance = max(0.0, tax_deferred_balance)
    rate = max(0.0, assumed_rate)
    income_tax = balance * rate
    return HeirTaxEstimate(
        tax_deferred_balance=balance,
        assumed_rate=rate,
        projected_income_tax=income_tax,
        net_after_income_tax=max(0.0, net_to_heirs - income_tax),
    )


def calculate_estate_projection(
    calc_input: EstateCalculationInput | Mapping[str, object],
    *,
    tables: TaxTables = DEFAULT_TAX_TABLES,
    as_of: dt.date | None = None,
) -> ProjectionSummary:
    """Project estate taxes, liquidity and heirs' net inheritance.

    Args:
      calc_input: An :class:`EstateCalculationInput` or the equivalent mapping.
      tables: Federal/state tax tables.
      as_of: Valuation date; defaults to today.

    Returns:
      The :class:`ProjectionSummary`.
    """

    if not isinstance(calc_input, EstateCalculationInput):
        calc_input = EstateCalculationInput.from_mapping(calc_input)

    resolved = resolve_assumptions(calc_input, tables=tables, as_of=as_of)
    LOG.debug(
        "resolved estate assumptions year_of_death=%s death_age=%s state=%s "
        "exemption=%.0f portability=%s",
        resolved.timeline.year_of_death,
        resolved.timeline.death_age,
        resolved.state,
        resolved.base_federal_exemption,
        resolved.portability,
    )

    strategies = calc_input.strategies
    estate = project_estate_value(calc_input.base_estate_value, strategies, resolved)
    taxes = compute_estate_taxes(estate, strategies, resolved, tables)
    net_to_heirs = max(0.0, estate.gross_estate - taxes.total_tax)
    liquidity = analyze_liquidity(
        calc_input.asset_composition,
        estate.gross_estate,
        taxes.total_tax,
        strategies,
        calc_input.profile,
        resolved.liquidity_target,
    )
    heir_tax = estimate_heir_tax(
        calc_input.asset_composition.tax_deferred, net_to_heirs, resolved.heir_income_tax_rate
    )
    charitable = max(0.0, strategies.charitable_bequest)
    percent_of_estate = (
        charitable / estate.gross_estate * 100.0 if estate.gross_estate > 0.0 else 0.0
    )

    summary = ProjectionSummary(
        projected_estate_value=estate.gross_estate,
        projected_taxable_estate=estate.taxable_estate,
        federal_tax=taxes.federal_tax,
        state_tax=taxes.state_tax,
        total_tax=taxes.total_tax,
        net_to_heirs=net_to_heirs,
        effective_tax_rate=taxes.effective_tax_rate,
        liquidity=liquidity,
        heir_tax=heir_tax,
        charitable_impact=CharitableImpact(
            charitable_bequests=charitable,
            percent_of_estate=percent_of_estate,
        ),
        strategy_adjustments=StrategyAdjustments(
            lifetime_gifts=estate.lifetime_gifts,
            annual_gifts=estate.annual_gifts,
            trust_funding=estate.trust_funding,
            appreciation_factor=estate.appreciation_factor,
            bypass_trust_applied=taxes.bypass_trust_applied,
        ),
        assumptions=AssumptionEcho(
            year_of_death=resolved.timeline.year_of_death,
            death_age=resolved.timeline.death_age,
            current_age=resolved.timeline.current_age,
            state=resolved.state,
            marital_status=resolved.marital_status,
            portability=resolved.portability,
            dsue_amount=resolved.dsue_amount,
            federal_exemption=taxes.effective_exemption,
            base_federal_exemption=resolved.base_federal_exemption,
            state_exemption=taxes.state_exemption,
            appreciation_rate=resolved.appreciation_rate,
            liquidity_target_percent=resolved.liquidity_target_percent,
        ),
    )
    LOG.debug(
        "estate projection gross=%.0f taxable=%.0f total_tax=%.0f gap=%.0f",
        summary.projected_estate_value,
        summary.projected_taxable_estate,
        summary.total_tax,
        summary.liquidity.gap,
    )
    return summary
