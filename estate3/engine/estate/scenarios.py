"""Scenario comparison, appreciation sensitivity and artefact export."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import pandas as pd

from estate3.engine.estate.projection import (
    EstateCalculationInput,
    ProjectionSummary,
    calculate_estate_projection,
)
from estate3.engine.estate.tables import DEFAULT_TAX_TABLES, TaxTables
from estate3.engine.infra.paths import DEFAULT_REPORT_ROOT
from estate3.engine.logging import setup_logger
from estate3.engine.utils.io import ensure_dir, read_yaml, safe_path_segment, write_json

__all__ = [
    "BASELINE_NAME",
    "SCENARIO_COLUMNS",
    "ScenarioComparison",
    "ScenarioConfig",
    "ScenarioSummary",
    "ScenarioArtifacts",
    "compare_projections",
    "load_scenarios",
    "load_scenarios_from_yaml",
    "run_scenarios",
    "appreciation_sensitivity",
    "write_scenario_artifacts",
]

LOG = setup_logger(__name__)

BASELINE_NAME = "baseline"
SCENARIO_COLUMNS = (
    "scenario",
    "gross_estate",
    "taxable_estate",
    "federal_tax",
    "state_tax",
    "total_tax",
    "net_to_heirs",
    "effective_tax_rate",
    "liquidity_gap",
    "insurance_need",
    "tax_savings",
    "tax_savings_percent",
    "net_to_heirs_increase",
    "net_to_heirs_increase_percent",
    "liquidity_improvement",
)


@dataclass(frozen=True)
class ScenarioComparison:
    """Differences of a candidate projection against a baseline.

    Positive values always favour the candidate.
    """

    tax_savings: float
    tax_savings_percent: float
    net_to_heirs_increase: float
    net_to_heirs_increase_percent: float
    liquidity_improvement: float


def compare_projections(
    base: ProjectionSummary, candidate: ProjectionSummary
) -> ScenarioComparison:
    """Compare ``candidate`` with ``base``.

    Percentages are expressed against the baseline figure and are zero when
    that figure is zero.
    """

    tax_savings = base.total_tax - candidate.total_tax
    tax_savings_percent = tax_savings / base.total_tax * 100.0 if base.total_tax > 0.0 else 0.0
    heirs_increase = candidate.net_to_heirs - base.net_to_heirs
    heirs_percent = heirs_increase / base.net_to_heirs * 100.0 if base.net_to_heirs > 0.0 else 0.0
    return ScenarioComparison(
        tax_savings=tax_savings,
        tax_savings_percent=tax_savings_percent,
        net_to_heirs_increase=heirs_increase,
        net_to_heirs_increase_percent=heirs_percent,
        liquidity_improvement=base.liquidity.gap - candidate.liquidity.gap,
    )


@dataclass(frozen=True)
class ScenarioConfig:
    """Named set of strategy/assumption overrides applied on the base input.

    Attributes:
      name: Scenario identifier used in reports.
      strategies: Strategy keys replacing the base strategies.
      assumptions: Assumption keys replacing the base assumptions.
    """

    name: str
    strategies: Mapping[str, object] = field(default_factory=dict)
    assumptions: Mapping[str, object] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> ScenarioConfig:
        strategies = payload.get("strategies")
        assumptions = payload.get("assumptions")
        return cls(
            name=str(payload.get("name", "scenario")),
            strategies=dict(strategies) if isinstance(strategies, Mapping) else {},
            assumptions=dict(assumptions) if isinstance(assumptions, Mapping) else {},
        )


def load_scenarios(payload: Sequence[Mapping[str, object]] | None) -> list[ScenarioConfig]:
    if not payload:
        return []
    return [ScenarioConfig.from_mapping(item) for item in payload if isinstance(item, Mapping)]


def load_scenarios_from_yaml(path: Path | str) -> list[ScenarioConfig]:
    """Load scenarios from a YAML file.

    The document may either be a list of scenarios or a mapping with a
    ``scenarios`` key.

    Args:
      path: Path to the YAML document.

    Returns:
      List of :class:`ScenarioConfig` instances.
    """

    data = read_yaml(path)
    payload: Sequence[Mapping[str, object]] | None
    if isinstance(data, Mapping) and "scenarios" in data:
        payload = data["scenarios"]  # type: ignore[assignment]
    elif isinstance(data, Sequence) and not isinstance(data, str):
        payload = data  # type: ignore[assignment]
    else:
        payload = None
    return load_scenarios(payload)


@dataclass(frozen=True)
class ScenarioSummary:
    """Outcome of :func:`run_scenarios`.

    Attributes:
      results: One row per scenario (baseline first) with projection figures
        and the comparison against the baseline.
      baseline: Projection of the unmodified input.
      projections: Mapping scenario name -> projection.
      comparisons: Mapping scenario name -> comparison against the baseline.
    """

    results: pd.DataFrame
    baseline: ProjectionSummary
    projections: Mapping[str, ProjectionSummary]
    comparisons: Mapping[str, ScenarioComparison]


def _result_row(
    name: str, projection: ProjectionSummary, comparison: ScenarioComparison
) -> dict[str, object]:
    return {
        "scenario": name,
        "gross_estate": projection.projected_estate_value,
        "taxable_estate": projection.projected_taxable_estate,
        "federal_tax": projection.federal_tax,
        "state_tax": projection.state_tax,
        "total_tax": projection.total_tax,
        "net_to_heirs": projection.net_to_heirs,
        "effective_tax_rate": projection.effective_tax_rate,
        "liquidity_gap": projection.liquidity.gap,
        "insurance_need": projection.liquidity.insurance_need,
        "tax_savings": comparison.tax_savings,
        "tax_savings_percent": comparison.tax_savings_percent,
        "net_to_heirs_increase": comparison.net_to_heirs_increase,
        "net_to_heirs_increase_percent": comparison.net_to_heirs_increase_percent,
        "liquidity_improvement": comparison.liquidity_improvement,
    }


def run_scenarios(
    base_input: EstateCalculationInput,
    scenarios: Iterable[ScenarioConfig],
    *,
    tables: TaxTables = DEFAULT_TAX_TABLES,
    as_of: dt.date | None = None,
) -> ScenarioSummary:
    """Project the baseline and every scenario, comparing each to the baseline.

    Args:
      base_input: Unmodified calculator input.
      scenarios: Scenario overrides to evaluate.
      tables: Tax tables shared by every projection.
      as_of: Valuation date shared by every projection.

    Returns:
      The :class:`ScenarioSummary`.

    Raises:
      ValueError: If two scenarios share a name or one is named ``baseline``.
    """

    baseline = calculate_estate_projection(base_input, tables=tables, as_of=as_of)
    baseline_cmp = compare_projections(baseline, baseline)
    projections: dict[str, ProjectionSummary] = {BASELINE_NAME: baseline}
    comparisons: dict[str, ScenarioComparison] = {BASELINE_NAME: baseline_cmp}
    rows = [_result_row(BASELINE_NAME, baseline, baseline_cmp)]

    for scenario in scenarios:
        if scenario.name in projections:
            raise ValueError(f"duplicate scenario name: {scenario.name}")
        scenario_input = base_input.with_overrides(
            strategies=scenario.strategies, assumptions=scenario.assumptions
        )
        projection = calculate_estate_projection(scenario_input, tables=tables, as_of=as_of)
        comparison = compare_projections(baseline, projection)
        projections[scenario.name] = projection
        comparisons[scenario.name] = comparison
        rows.append(_result_row(scenario.name, projection, comparison))
        LOG.info(
            "scenario %s total_tax=%.0f tax_savings=%.0f",
            scenario.name,
            projection.total_tax,
            comparison.tax_savings,
        )

    results = pd.DataFrame(rows, columns=list(SCENARIO_COLUMNS))
    return ScenarioSummary(
        results=results,
        baseline=baseline,
        projections=projections,
        comparisons=comparisons,
    )


def appreciation_sensitivity(
    base_input: EstateCalculationInput,
    rates: Sequence[float] | np.ndarray,
    *,
    tables: TaxTables = DEFAULT_TAX_TABLES,
    as_of: dt.date | None = None,
) -> pd.DataFrame:
    """Project the estate across a grid of annual appreciation rates.

    Args:
      base_input: Calculator input; its appreciation assumption is replaced.
      rates: Appreciation rates in percent.
      tables: Tax tables.
      as_of: Valuation date.

    Returns:
      DataFrame indexed by ``appreciation_rate`` with gross estate, total tax,
      net to heirs and liquidity gap columns.
    """

    grid = np.asarray(rates, dtype=float)
    if grid.ndim != 1:
        raise ValueError("rates must be one-dimensional")
    records = []
    for rate in grid:
        projection = calculate_estate_projection(
            base_input.with_overrides(assumptions={"appreciation_rate": float(rate)}),
            tables=tables,
            as_of=as_of,
        )
        records.append(
            {
                "appreciation_rate": float(rate),
                "gross_estate": projection.projected_estate_value,
                "total_tax": projection.total_tax,
                "net_to_heirs": projection.net_to_heirs,
                "liquidity_gap": projection.liquidity.gap,
            }
        )
    frame = pd.DataFrame(
        records,
        columns=["appreciation_rate", "gross_estate", "total_tax", "net_to_heirs", "liquidity_gap"],
    )
    return frame.set_index("appreciation_rate")


@dataclass(frozen=True)
class ScenarioArtifacts:
    """Filesystem locations of the exported scenario artefacts."""

    results_csv: Path
    projection_json: Path
    report_pdf: Path


def _render_scenario_pdf(summary: ScenarioSummary, label: str, path: Path) -> Path:
    """Render total tax and net-to-heirs bars per scenario."""

    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    results = summary.results
    fig, axes = plt.subplots(2, 1, figsize=(8, 7))
    names = results["scenario"].tolist()
    positions = np.arange(len(names))

    tax_ax, heirs_ax = axes
    tax_ax.bar(positions, results["federal_tax"], color="#2E86AB", label="Federal")
    tax_ax.bar(
        positions,
        results["state_tax"],
        bottom=results["federal_tax"],
        color="#F18F01",
        label="State",
    )
    tax_ax.set_xticks(positions, names)
    tax_ax.set_ylabel("Estate tax (USD)")
    tax_ax.set_title("Estate tax by scenario")
    tax_ax.legend(loc="upper right")

    heirs_ax.bar(positions, results["net_to_heirs"], color="#3B7A57")
    heirs_ax.set_xticks(positions, names)
    heirs_ax.set_ylabel("Net to heirs (USD)")
    heirs_ax.set_title("Net to heirs by scenario")
    for pos, gap in zip(positions, results["liquidity_gap"], strict=False):
        if gap > 0:
            heirs_ax.annotate(f"gap {gap:,.0f}", (pos, 0), ha="center", va="bottom", fontsize=8)

    fig.suptitle(f"Estate scenarios: {label}", fontsize=12)
    fig.tight_layout()
    fig.savefig(path, format="pdf")
    plt.close(fig)
    return path


def write_scenario_artifacts(
    summary: ScenarioSummary,
    *,
    label: str,
    output_dir: Path | None = None,
) -> ScenarioArtifacts:
    """Write CSV/JSON/PDF artefacts for a scenario run.

    Args:
      summary: Result of :func:`run_scenarios`.
      label: Identifier used in filenames.
      output_dir: Destination directory; ``estate/`` is appended.

    Returns:
      Paths to the exported artefacts.
    """

    root = Path(output_dir) if output_dir is not None else DEFAULT_REPORT_ROOT
    root = ensure_dir(root / "estate")
    safe_label = safe_path_segment(label or "household")

    results_csv = root / f"scenarios_{safe_label}.csv"
    projection_json = root / f"projection_{safe_label}.json"
    report_pdf = root / f"scenarios_{safe_label}.pdf"

    summary.results.to_csv(results_csv, index=False)
    write_json(
        {name: projection.to_dict() for name, projection in summary.projections.items()},
        projection_json,
    )
    _render_scenario_pdf(summary, safe_label, report_pdf)
    return ScenarioArtifacts(
        results_csv=results_csv,
        projection_json=projection_json,
        report_pdf=report_pdf,
    )
