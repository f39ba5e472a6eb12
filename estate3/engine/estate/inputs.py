"""Input records consumed by the estate projection calculator.

Every numeric field is coerced on construction so the calculator itself never
has to guard against ``None``, ``NaN`` or stray strings coming from the
profile provider or a hand-edited YAML file.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

__all__ = [
    "AssetComposition",
    "TrustFunding",
    "StrategyInputs",
    "AssumptionInputs",
    "coerce_number",
    "coerce_optional_number",
    "coerce_optional_bool",
    "first_present",
]


def coerce_number(value: object, default: float = 0.0) -> float:
    """Return ``value`` as a finite float, or ``default`` when that is impossible.

    Args:
      value: Arbitrary payload value (number, numeric string, ``None``...).
      default: Fallback used for missing, non-numeric or non-finite values.

    Returns:
      A finite float.
    """

    if value is None:
        return default
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def coerce_optional_number(value: object) -> float | None:
    """Like :func:`coerce_number` but returns ``None`` for unusable values."""

    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def coerce_optional_bool(value: object) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {"1", "true", "yes", "on"}:
            return True
        if text in {"0", "false", "no", "off"}:
            return False
        return None
    if isinstance(value, int | float):
        return bool(value)
    return None


def first_present(payload: Mapping[str, object], *keys: str) -> object:
    """Return the first non-``None`` value stored under any of ``keys``."""

    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def _non_negative(value: object) -> float:
    return max(0.0, coerce_number(value))


@dataclass(frozen=True)
class AssetComposition:
    """Estate assets split by tax character.

    Attributes:
      taxable: Cash and brokerage balances taxed on realised gains only.
      tax_deferred: Traditional 401(k)/IRA style balances.
      roth: Roth accounts passing income-tax free.
      illiquid: Real estate, business interests and collectibles.
    """

    taxable: float = 0.0
    tax_deferred: float = 0.0
    roth: float = 0.0
    illiquid: float = 0.0

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> AssetComposition:
        """Create a composition from a mapping, flooring every bucket at zero."""

        return cls(
            taxable=_non_negative(payload.get("taxable")),
            tax_deferred=_non_negative(first_present(payload, "tax_deferred", "taxDeferred")),
            roth=_non_negative(payload.get("roth")),
            illiquid=_non_negative(payload.get("illiquid")),
        )

    @property
    def total(self) -> float:
        return self.taxable + self.tax_deferred + self.roth + self.illiquid

    def to_dict(self) -> dict[str, float]:
        return {
            "taxable": self.taxable,
            "tax_deferred": self.tax_deferred,
            "roth": self.roth,
            "illiquid": self.illiquid,
        }


@dataclass(frozen=True)
class TrustFunding:
    """Amount moved into a named trust before death."""

    label: str
    amount: float

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> TrustFunding:
        return cls(
            label=str(payload.get("label", "trust")),
            amount=coerce_number(payload.get("amount")),
        )


@dataclass(frozen=True)
class StrategyInputs:
    """User-adjustable planning strategies.

    Attributes:
      lifetime_gifts: Taxable gifts already made, removed from the estate.
      annual_gift_amount: Gifts made every year until death.
      trust_funding: Named amounts moved into trusts.
      charitable_bequest: Amount left to charity at death.
      ilit_death_benefit: Face amount held in an irrevocable life insurance trust.
      bypass_trust: Whether a bypass (credit shelter) trust is in place.
    """

    lifetime_gifts: float = 0.0
    annual_gift_amount: float = 0.0
    trust_funding: tuple[TrustFunding, ...] = field(default_factory=tuple)
    charitable_bequest: float = 0.0
    ilit_death_benefit: float = 0.0
    bypass_trust: bool = False

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object] | None) -> StrategyInputs:
        """Build strategies from a YAML or JSON mapping; missing keys use defaults."""

        if not payload:
            return cls()
        raw_trusts = first_present(payload, "trust_funding", "trustFunding")
        trusts: tuple[TrustFunding, ...] = ()
        if isinstance(raw_trusts, Sequence) and not isinstance(raw_trusts, str):
            trusts = tuple(
                TrustFunding.from_mapping(item) for item in raw_trusts if isinstance(item, Mapping)
            )
        return cls(
            lifetime_gifts=coerce_number(
                first_present(payload, "lifetime_gifts", "lifetimeGifts")
            ),
            annual_gift_amount=coerce_number(
                first_present(payload, "annual_gift_amount", "annualGiftAmount")
            ),
            trust_funding=trusts,
            charitable_bequest=coerce_number(
                first_present(payload, "charitable_bequest", "charitableBequest")
            ),
            ilit_death_benefit=coerce_number(
                first_present(payload, "ilit_death_benefit", "ilitDeathBenefit")
            ),
            bypass_trust=bool(
                coerce_optional_bool(first_present(payload, "bypass_trust", "bypassTrust"))
            ),
        )

    @property
    def total_trust_funding(self) -> float:
        return float(sum(item.amount for item in self.trust_funding))


@dataclass(frozen=True)
class AssumptionInputs:
    """Optional overrides of the calculator defaults.

    ``None`` means "not supplied"; :func:`resolve_assumptions` replaces each
    one with its documented default.
    """

    federal_exemption_override: float | None = None
    state_override: str | None = None
    portability: bool | None = None
    dsue_amount: float | None = None
    projected_death_age: float | None = None
    liquidity_target_percent: float | None = None
    appreciation_rate: float | None = None
    assumed_heir_income_tax_rate: float | None = None
    current_age: float | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object] | None) -> AssumptionInputs:
        if not payload:
            return cls()
        state = first_present(payload, "state_override", "stateOverride", "state")
        state_text = str(state).strip() if state is not None else ""
        return cls(
            federal_exemption_override=coerce_optional_number(
                first_present(payload, "federal_exemption_override", "federalExemptionOverride")
            ),
            state_override=state_text.upper() or None,
            portability=coerce_optional_bool(payload.get("portability")),
            dsue_amount=coerce_optional_number(first_present(payload, "dsue_amount", "dsueAmount")),
            projected_death_age=coerce_optional_number(
                first_present(payload, "projected_death_age", "projectedDeathAge")
            ),
            liquidity_target_percent=coerce_optional_number(
                first_present(payload, "liquidity_target_percent", "liquidityTargetPercent")
            ),
            appreciation_rate=coerce_optional_number(
                first_present(payload, "appreciation_rate", "appreciationRate")
            ),
            assumed_heir_income_tax_rate=coerce_optional_number(
                first_present(payload, "assumed_heir_income_tax_rate", "assumedHeirIncomeTaxRate")
            ),
            current_age=coerce_optional_number(first_present(payload, "current_age", "currentAge")),
        )
