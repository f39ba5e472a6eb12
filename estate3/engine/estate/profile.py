"""Narrow read view over the application's financial profile.

The profile provider returns a large, loosely typed record. The estate
calculator only needs a handful of its fields, so :class:`ProfileView` copies
those out once and the rest of the engine never touches the raw payload.
"""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import pandas as pd

from estate3.engine.estate.inputs import (
    AssetComposition,
    coerce_number,
    coerce_optional_bool,
    coerce_optional_number,
    first_present,
)

__all__ = [
    "AccountBalances",
    "ProfileAsset",
    "ProfileView",
    "build_asset_composition",
    "estimate_base_estate_value",
]

_TAX_DEFERRED_PATTERN = re.compile(r"(401k|403b|ira|retirement|pension|457|tsp|sep|simple)")
_ILLIQUID_PATTERN = re.compile(r"(real|property|business|collectible)")


def _mapping(value: object) -> Mapping[str, object]:
    """Treat anything that is not a mapping as an empty one."""

    return value if isinstance(value, Mapping) else {}


def _coerce_date(value: object) -> dt.date | None:
    """Convert supported date representations, returning ``None`` when unparseable."""

    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        parsed = pd.to_datetime(value, errors="coerce", utc=True)
    except (TypeError, ValueError, OverflowError):
        return None
    if isinstance(parsed, pd.Timestamp) and not pd.isna(parsed):
        return parsed.date()
    return None


def _insurance_coverage(payload: object) -> float:
    """Coverage of an in-estate policy; zero unless the policy flag is set."""

    policy = _mapping(payload)
    if not coerce_optional_bool(first_present(policy, "has_policy", "hasPolicy")):
        return 0.0
    amount = coerce_optional_number(first_present(policy, "coverage_amount", "coverageAmount"))
    return max(0.0, amount) if amount is not None else 0.0


@dataclass(frozen=True)
class ProfileAsset:
    type: str
    value: float

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> ProfileAsset:
        # ``value`` wins over ``balance`` unless it is zero or missing.
        value = coerce_number(payload.get("value")) or coerce_number(payload.get("balance"))
        return cls(type=str(payload.get("type") or ""), value=value)


@dataclass(frozen=True)
class AccountBalances:
    """Balances reported by the tax-strategy module of the profile."""

    traditional_401k: float = 0.0
    traditional_ira: float = 0.0
    roth_401k: float = 0.0
    roth_ira: float = 0.0
    taxable_brokerage: float = 0.0

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> AccountBalances:
        return cls(
            traditional_401k=coerce_number(
                first_present(payload, "traditional_401k", "traditional401k")
            ),
            traditional_ira=coerce_number(
                first_present(payload, "traditional_ira", "traditionalIRA")
            ),
            roth_401k=coerce_number(first_present(payload, "roth_401k", "roth401k")),
            roth_ira=coerce_number(first_present(payload, "roth_ira", "rothIRA")),
            taxable_brokerage=coerce_number(
                first_present(payload, "taxable_brokerage", "taxableBrokerage")
            ),
        )


@dataclass(frozen=True)
class ProfileView:
    """Fields of the household profile consumed by the estate calculator.

    Attributes:
      marital_status: Free-text marital status (``"married"``, ``"single"``...).
      state: State of residence, falling back to the primary residence state.
      date_of_birth: Date of birth when known.
      current_age: Explicit age reported by the profile.
      longevity_age: Planning longevity age from the retirement module.
      dsue_amount: Deceased spousal unused exemption already elected.
      life_insurance_coverage: In-estate coverage on the user's life.
      spouse_life_insurance_coverage: In-estate coverage on the spouse's life.
      assets: Asset list with free-text types.
      account_balances: Tax-strategy account balances.
      cash_reserves: Emergency cash reserves.
      savings_balance: Savings account balance.
      residence_value: Market value of the primary residence.
      mortgage_balance: Outstanding mortgage on the primary residence.
    """

    marital_status: str | None = None
    state: str | None = None
    date_of_birth: dt.date | None = None
    current_age: float | None = None
    longevity_age: float | None = None
    dsue_amount: float = 0.0
    life_insurance_coverage: float = 0.0
    spouse_life_insurance_coverage: float = 0.0
    assets: tuple[ProfileAsset, ...] = field(default_factory=tuple)
    account_balances: AccountBalances = field(default_factory=AccountBalances)
    cash_reserves: float = 0.0
    savings_balance: float = 0.0
    residence_value: float = 0.0
    mortgage_balance: float = 0.0

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object] | None) -> ProfileView:
        """Extract the view from a camelCase or snake_case profile payload.

        Args:
          payload: Profile record from the provider or a YAML config; ``None``
            yields an empty view.

        Returns:
          A populated :class:`ProfileView`.
        """

        if not payload:
            return cls()
        residence = _mapping(first_present(payload, "primary_residence", "primaryResidence"))
        state = first_present(payload, "state") or residence.get("state")
        marital = first_present(payload, "marital_status", "maritalStatus")
        raw_assets = payload.get("assets")
        assets: tuple[ProfileAsset, ...] = ()
        if isinstance(raw_assets, Sequence) and not isinstance(raw_assets, str):
            assets = tuple(
                ProfileAsset.from_mapping(item) for item in raw_assets if isinstance(item, Mapping)
            )
        tax_strategy = _mapping(first_present(payload, "tax_strategy", "taxStrategy"))
        balances = _mapping(first_present(tax_strategy, "account_balances", "accountBalances"))
        return cls(
            marital_status=str(marital) if marital else None,
            state=str(state).strip().upper() if state else None,
            date_of_birth=_coerce_date(first_present(payload, "date_of_birth", "dateOfBirth")),
            current_age=coerce_optional_number(first_present(payload, "current_age", "currentAge")),
            longevity_age=coerce_optional_number(
                first_present(payload, "longevity_age", "longevityAge")
            ),
            dsue_amount=coerce_number(first_present(payload, "dsue_amount", "dsueAmount")),
            life_insurance_coverage=_insurance_coverage(
                first_present(payload, "life_insurance", "lifeInsurance")
            ),
            spouse_life_insurance_coverage=_insurance_coverage(
                first_present(payload, "spouse_life_insurance", "spouseLifeInsurance")
            ),
            assets=assets,
            account_balances=AccountBalances.from_mapping(balances),
            cash_reserves=coerce_number(first_present(payload, "cash_reserves", "cashReserves")),
            savings_balance=coerce_number(
                first_present(payload, "savings_balance", "savingsBalance")
            ),
            residence_value=coerce_number(
                first_present(residence, "market_value", "marketValue")
            ),
            mortgage_balance=coerce_number(
                first_present(residence, "mortgage_balance", "mortgageBalance")
            ),
        )

    @property
    def is_married(self) -> bool:
        return (self.marital_status or "").strip().lower() == "married"


def build_asset_composition(profile: ProfileView) -> AssetComposition:
    """Classify profile assets into taxable, tax-deferred, Roth and illiquid buckets.

    Asset types are matched case-insensitively: anything containing ``roth`` is
    Roth, retirement-plan keywords are tax-deferred, real estate/business/
    collectibles are illiquid and the rest is taxable. Tax-strategy balances,
    cash reserves, savings and home equity are added on top.

    Args:
      profile: Read view of the household profile.

    Returns:
      The resulting :class:`AssetComposition`.
    """

    taxable = 0.0
    tax_deferred = 0.0
    roth = 0.0
    illiquid = 0.0
    for asset in profile.assets:
        if not asset.value:
            continue
        kind = asset.type.lower()
        if "roth" in kind:
            roth += asset.value
        elif _TAX_DEFERRED_PATTERN.search(kind):
            tax_deferred += asset.value
        elif _ILLIQUID_PATTERN.search(kind):
            illiquid += asset.value
        else:
            taxable += asset.value

    balances = profile.account_balances
    tax_deferred += balances.traditional_401k + balances.traditional_ira
    roth += balances.roth_401k + balances.roth_ira
    taxable += balances.taxable_brokerage
    taxable += profile.cash_reserves + profile.savings_balance
    if profile.residence_value:
        illiquid += max(0.0, profile.residence_value - profile.mortgage_balance)

    return AssetComposition(
        taxable=max(0.0, taxable),
        tax_deferred=max(0.0, tax_deferred),
        roth=max(0.0, roth),
        illiquid=max(0.0, illiquid),
    )


def estimate_base_estate_value(composition: AssetComposition) -> float:
    """Sum of every bucket, used when the caller supplies no base estate value."""

    return composition.total
