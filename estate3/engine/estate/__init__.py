"""Estate-tax projection engine."""

from .inputs import AssetComposition, AssumptionInputs, StrategyInputs, TrustFunding
from .profile import ProfileView, build_asset_composition, estimate_base_estate_value
from .projection import (
    EstateCalculationInput,
    ProjectionSummary,
    appreciate,
    calculate_estate_projection,
    resolve_assumptions,
)
from .scenarios import (
    ScenarioArtifacts,
    ScenarioComparison,
    ScenarioConfig,
    ScenarioSummary,
    appreciation_sensitivity,
    compare_projections,
    load_scenarios_from_yaml,
    run_scenarios,
    write_scenario_artifacts,
)
from .tables import DEFAULT_TAX_TABLES, TaxTables, load_tax_tables
from .timeline import Timeline, resolve_timeline

__all__ = [
    "AssetComposition",
    "AssumptionInputs",
    "StrategyInputs",
    "TrustFunding",
    "ProfileView",
    "build_asset_composition",
    "estimate_base_estate_value",
    "EstateCalculationInput",
    "ProjectionSummary",
    "appreciate",
    "calculate_estate_projection",
    "resolve_assumptions",
    "ScenarioArtifacts",
    "ScenarioComparison",
    "ScenarioConfig",
    "ScenarioSummary",
    "appreciation_sensitivity",
    "compare_projections",
    "load_scenarios_from_yaml",
    "run_scenarios",
    "write_scenario_artifacts",
    "DEFAULT_TAX_TABLES",
    "TaxTables",
    "load_tax_tables",
    "Timeline",
    "resolve_timeline",
]
