"""Federal and state estate-tax tables.

The default tables are immutable module-level mappings built once at import.
Alternative vintages can be loaded from YAML with :func:`load_tax_tables`.

State schedules currently carry a single flat bracket per jurisdiction even
though the structure supports progressive brackets. Unknown state codes have
no exemption and no brackets, hence no state tax.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from estate3.engine.estate.inputs import coerce_number, coerce_optional_number
from estate3.engine.utils.io import read_yaml

__all__ = [
    "FEDERAL_ESTATE_TAX_RATE",
    "FEDERAL_EXEMPTION_BY_YEAR",
    "FEDERAL_EXEMPTION_BASELINE",
    "FEDERAL_EXEMPTION_FALLBACK",
    "BASELINE_FROM_YEAR",
    "STATE_ESTATE_TAX_BY_CODE",
    "StateTaxBracket",
    "StateTaxConfig",
    "StateTaxResult",
    "TaxTables",
    "DEFAULT_TAX_TABLES",
    "load_tax_tables",
]

FEDERAL_ESTATE_TAX_RATE = 0.40
# Any year from BASELINE_FROM_YEAR onwards uses the flat baseline exemption.
BASELINE_FROM_YEAR = 2026
FEDERAL_EXEMPTION_BASELINE = 15_000_000.0
# Used for years that precede the table.
FEDERAL_EXEMPTION_FALLBACK = 13_610_000.0

FEDERAL_EXEMPTION_BY_YEAR: Mapping[int, float] = MappingProxyType(
    {
        2018: 11_180_000.0,
        2019: 11_400_000.0,
        2020: 11_580_000.0,
        2021: 11_700_000.0,
        2022: 12_060_000.0,
        2023: 12_920_000.0,
        2024: 13_610_000.0,
        2025: 13_990_000.0,
    }
)


@dataclass(frozen=True)
class StateTaxBracket:
    """Marginal bracket on the amount above the state exemption.

    Attributes:
      min: Lower bound of the bracket.
      max: Upper bound, ``None`` for an unbounded top bracket.
      rate: Marginal rate applied inside the bracket.
    """

    min: float
    max: float | None
    rate: float

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> StateTaxBracket:
        return cls(
            min=coerce_number(payload.get("min")),
            max=coerce_optional_number(payload.get("max")),
            rate=coerce_number(payload.get("rate")),
        )


@dataclass(frozen=True)
class StateTaxConfig:
    exemption: float
    brackets: tuple[StateTaxBracket, ...]

    @classmethod
    def flat(cls, exemption: float, rate: float) -> StateTaxConfig:
        return cls(exemption=exemption, brackets=(StateTaxBracket(0.0, None, rate),))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> StateTaxConfig:
        raw = payload.get("brackets")
        if isinstance(raw, Sequence) and not isinstance(raw, str):
            brackets = tuple(
                StateTaxBracket.from_mapping(item) for item in raw if isinstance(item, Mapping)
            )
        elif payload.get("rate") is not None:
            brackets = (StateTaxBracket(0.0, None, coerce_number(payload.get("rate"))),)
        else:
            brackets = ()
        return cls(exemption=max(0.0, coerce_number(payload.get("exemption"))), brackets=brackets)


STATE_ESTATE_TAX_BY_CODE: Mapping[str, StateTaxConfig] = MappingProxyType(
    {
        "CT": StateTaxConfig.flat(12_920_000.0, 0.12),
        "DC": StateTaxConfig.flat(4_528_800.0, 0.16),
        "HI": StateTaxConfig.flat(5_490_000.0, 0.20),
        "IL": StateTaxConfig.flat(4_000_000.0, 0.16),
        "MA": StateTaxConfig.flat(2_000_000.0, 0.16),
        "MD": StateTaxConfig.flat(5_000_000.0, 0.16),
        "ME": StateTaxConfig.flat(6_410_000.0, 0.12),
        "MN": StateTaxConfig.flat(3_000_000.0, 0.16),
        "NY": StateTaxConfig.flat(6_580_000.0, 0.16),
        "OR": StateTaxConfig.flat(1_000_000.0, 0.16),
        "RI": StateTaxConfig.flat(1_733_264.0, 0.16),
        "VT": StateTaxConfig.flat(5_000_000.0, 0.16),
        "WA": StateTaxConfig.flat(2_193_000.0, 0.20),
    }
)


@dataclass(frozen=True)
class StateTaxResult:
    tax: float
    exemption: float


@dataclass(frozen=True)
class TaxTables:
    """Bundle of federal and state estate-tax parameters.

    Attributes:
      federal_exemptions: Mapping year -> basic exclusion amount.
      federal_baseline: Flat exemption for years >= ``baseline_from_year``.
      baseline_from_year: First year governed by the flat baseline.
      fallback_exemption: Exemption for years before the table starts.
      federal_rate: Flat federal rate on the excess over the exemption.
      states: Mapping upper-case state code -> :class:`StateTaxConfig`.
    """

    federal_exemptions: Mapping[int, float] = field(
        default_factory=lambda: FEDERAL_EXEMPTION_BY_YEAR
    )
    federal_baseline: float = FEDERAL_EXEMPTION_BASELINE
    baseline_from_year: int = BASELINE_FROM_YEAR
    fallback_exemption: float = FEDERAL_EXEMPTION_FALLBACK
    federal_rate: float = FEDERAL_ESTATE_TAX_RATE
    states: Mapping[str, StateTaxConfig] = field(default_factory=lambda: STATE_ESTATE_TAX_BY_CODE)

    def federal_exemption(self, year: int, override: float | None = None) -> float:
        """Return the basic federal exemption for a death in ``year``.

        Args:
          year: Calendar year of death.
          override: Caller-supplied exemption; used when positive.

        Returns:
          The exemption amount in dollars.
        """

        if override is not None and override > 0:
            return float(override)
        if year >= self.baseline_from_year:
            return float(self.federal_baseline)
        amount = self.federal_exemptions.get(int(year))
        if amount:
            return float(amount)
        return float(self.fallback_exemption)

    def state_config(self, state_code: str | None) -> StateTaxConfig | None:
        if not state_code:
            return None
        return self.states.get(state_code.strip().upper())

    def state_tax(self, taxable_estate: float, state_code: str | None) -> StateTaxResult:
        """Compute state estate tax on ``taxable_estate``.

        The amount above the state exemption is consumed bracket by bracket;
        the last bracket touched is prorated on the partial span.

        Args:
          taxable_estate: Taxable estate after deductions.
          state_code: Two-letter jurisdiction code, case-insensitive.

        Returns:
          A :class:`StateTaxResult` with the tax and the exemption applied.
        """

        config = self.state_config(state_code)
        exemption = config.exemption if config is not None else 0.0
        brackets = config.brackets if config is not None else ()
        remaining = max(0.0, taxable_estate - exemption)
        if remaining <= 0.0:
            return StateTaxResult(tax=0.0, exemption=exemption)

        tax = 0.0
        for bracket in brackets:
            if remaining <= 0.0:
                break
            if bracket.max is None:
                span = remaining
            else:
                span = min(remaining, max(0.0, bracket.max - bracket.min))
            tax += span * bracket.rate
            remaining -= span
        return StateTaxResult(tax=max(0.0, tax), exemption=exemption)


DEFAULT_TAX_TABLES = TaxTables()


def load_tax_tables(path: Path | str) -> TaxTables:
    """Build :class:`TaxTables` from a YAML document.

    Keys absent from the document keep the built-in defaults. A ``states``
    block replaces the default state table entirely.

    Args:
      path: YAML file with optional ``federal_exemptions``,
        ``federal_exemption_baseline``, ``baseline_from_year``,
        ``fallback_exemption``, ``federal_rate`` and ``states`` keys.

    Returns:
      The resulting :class:`TaxTables`.

    Raises:
      ValueError: If the document is not a mapping.
    """

    data = read_yaml(path)
    if data is None:
        return DEFAULT_TAX_TABLES
    if not isinstance(data, Mapping):
        raise ValueError(f"tax tables at {path} must be a mapping")

    federal = FEDERAL_EXEMPTION_BY_YEAR
    raw_federal = data.get("federal_exemptions")
    if isinstance(raw_federal, Mapping):
        federal = MappingProxyType(
            {int(year): coerce_number(amount) for year, amount in raw_federal.items()}
        )

    states = STATE_ESTATE_TAX_BY_CODE
    raw_states = data.get("states")
    if isinstance(raw_states, Mapping):
        states = MappingProxyType(
            {
                str(code).upper(): StateTaxConfig.from_mapping(entry)
                for code, entry in raw_states.items()
                if isinstance(entry, Mapping)
            }
        )

    return TaxTables(
        federal_exemptions=federal,
        federal_baseline=coerce_number(
            data.get("federal_exemption_baseline"), FEDERAL_EXEMPTION_BASELINE
        ),
        baseline_from_year=int(coerce_number(data.get("baseline_from_year"), BASELINE_FROM_YEAR)),
        fallback_exemption=coerce_number(
            data.get("fallback_exemption"), FEDERAL_EXEMPTION_FALLBACK
        ),
        federal_rate=coerce_number(data.get("federal_rate"), FEDERAL_ESTATE_TAX_RATE),
        states=states,
    )
