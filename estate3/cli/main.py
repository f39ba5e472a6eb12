"""Command-line interface for the estate3 projection engine."""

from __future__ import annotations

import argparse
import json
import time
from collections.abc import Mapping
from datetime import date, datetime
from pathlib import Path

import yaml

from estate3.engine.estate import (
    DEFAULT_TAX_TABLES,
    EstateCalculationInput,
    ProjectionSummary,
    TaxTables,
    appreciation_sensitivity,
    calculate_estate_projection,
    load_scenarios_from_yaml,
    load_tax_tables,
    run_scenarios,
    write_scenario_artifacts,
)
from estate3.engine.infra.paths import DEFAULT_CONFIG_ROOT
from estate3.engine.logging import configure_cli_logging, record_metrics, setup_logger
from estate3.engine.utils.io import read_yaml
from estate3.engine.validate import validate_configs

DESCRIPTION = "Estate tax projection engine"

LOG = setup_logger(__name__)


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:  # pragma: no cover - argparse validation
        raise argparse.ArgumentTypeError("Expected YYYY-MM-DD date format") from exc


def _add_common_inputs(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_ROOT / "estate.yml",
        help="Path to the household estate YAML",
    )
    parser.add_argument(
        "--tax-tables",
        type=Path,
        help="Optional YAML overriding the built-in federal/state tables",
    )
    parser.add_argument(
        "--as-of",
        type=_parse_date,
        help="Valuation date (YYYY-MM-DD); defaults to today",
    )


def _add_project_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    project = subparsers.add_parser("project", help="Project estate taxes and liquidity")
    _add_common_inputs(project)
    project.add_argument(
        "--appreciation-rate",
        type=float,
        help="Override the annual appreciation rate (percent)",
    )
    project.add_argument("--state", help="Override the state of residence (two-letter code)")
    project.add_argument("--death-age", type=float, help="Override the projected age at death")
    project.add_argument(
        "--json",
        action="store_true",
        help="Print the full projection as JSON instead of the summary line",
    )


def _add_scenarios_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    scenarios = subparsers.add_parser(
        "scenarios", help="Compare planning scenarios against the baseline"
    )
    _add_common_inputs(scenarios)
    scenarios.add_argument(
        "--scenarios",
        type=Path,
        default=DEFAULT_CONFIG_ROOT / "scenarios.yml",
        help="Path to the scenarios YAML",
    )
    scenarios.add_argument(
        "--output-dir",
        type=Path,
        help="Optional directory for scenario artefacts",
    )
    scenarios.add_argument(
        "--label",
        default="household",
        help="Identifier used in artefact filenames",
    )


def _add_sensitivity_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    sensitivity = subparsers.add_parser(
        "sensitivity", help="Project the estate across appreciation rates"
    )
    _add_common_inputs(sensitivity)
    sensitivity.add_argument(
        "--rates",
        type=float,
        nargs="+",
        default=[0.0, 2.0, 4.0, 6.0],
        help="Annual appreciation rates in percent",
    )


def _add_validate_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    """Attach the validate command used for configuration checks."""

    validate = subparsers.add_parser("validate", help="Validate YAML configuration files")
    validate.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_ROOT / "estate.yml",
        help="Path to estate.yml configuration",
    )
    validate.add_argument(
        "--scenarios",
        type=Path,
        default=DEFAULT_CONFIG_ROOT / "scenarios.yml",
        help="Path to scenarios.yml configuration",
    )
    validate.add_argument(
        "--tax-tables",
        type=Path,
        help="Optional path to tax_tables.yml configuration",
    )
    validate.add_argument(
        "--verbose",
        action="store_true",
        help="Print the parsed configuration payloads on success",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="estate3", description=DESCRIPTION)
    parser.add_argument(
        "--json-logs",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Mirror logs to artifacts/logs/estate3.log in JSON format",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)
    _add_validate_subparser(sub)
    _add_project_subparser(sub)
    _add_scenarios_subparser(sub)
    _add_sensitivity_subparser(sub)
    return parser


def _load_input(path: Path) -> EstateCalculationInput:
    if not path.exists():
        raise SystemExit(f"Estate config not found: {path}")
    payload = read_yaml(path)
    if not isinstance(payload, Mapping):
        raise SystemExit(f"Estate config at {path} must be a mapping")
    return EstateCalculationInput.from_mapping(payload)


def _load_tables(path: Path | None) -> TaxTables:
    if path is None:
        return DEFAULT_TAX_TABLES
    try:
        return load_tax_tables(path)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Invalid tax tables at {path}: {exc}") from exc


def _summary_line(summary: ProjectionSummary) -> str:
    echo = summary.assumptions
    return (
        f"gross={summary.projected_estate_value:.0f} "
        f"taxable={summary.projected_taxable_estate:.0f} "
        f"federal_tax={summary.federal_tax:.0f} state_tax={summary.state_tax:.0f} "
        f"total_tax={summary.total_tax:.0f} net_to_heirs={summary.net_to_heirs:.0f} "
        f"effective_rate={summary.effective_tax_rate:.4f} "
        f"liquidity_gap={summary.liquidity.gap:.0f} "
        f"year_of_death={echo.year_of_death} state={echo.state or 'none'}"
    )


def _handle_project(args: argparse.Namespace) -> None:
    calc_input = _load_input(args.config)
    overrides: dict[str, object] = {}
    if args.appreciation_rate is not None:
        overrides["appreciation_rate"] = float(args.appreciation_rate)
    if args.state:
        overrides["state_override"] = args.state
    if args.death_age is not None:
        overrides["projected_death_age"] = float(args.death_age)
    if overrides:
        calc_input = calc_input.with_overrides(assumptions=overrides)

    started = time.perf_counter()
    summary = calculate_estate_projection(
        calc_input, tables=_load_tables(args.tax_tables), as_of=args.as_of
    )
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    LOG.info("estate projection complete", extra=summary.log_fields("baseline", elapsed_ms))
    record_metrics("estate_total_tax", summary.total_tax, {"config": args.config.name})
    if args.json:
        print(json.dumps(summary.to_dict(), indent=2, sort_keys=True))
        return
    print(f"[estate3] project {_summary_line(summary)}")


def _handle_scenarios(args: argparse.Namespace) -> None:
    calc_input = _load_input(args.config)
    if not args.scenarios.exists():
        raise SystemExit(f"Scenarios config not found: {args.scenarios}")
    scenarios = load_scenarios_from_yaml(args.scenarios)
    if not scenarios:
        raise SystemExit("No scenarios configured")
    try:
        summary = run_scenarios(
            calc_input, scenarios, tables=_load_tables(args.tax_tables), as_of=args.as_of
        )
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    for name, projection in summary.projections.items():
        LOG.info("scenario projected", extra=projection.log_fields(name))
    artifacts = write_scenario_artifacts(summary, label=args.label, output_dir=args.output_dir)
    for name, comparison in summary.comparisons.items():
        record_metrics(
            "estate_tax_savings", comparison.tax_savings, {"label": args.label, "scenario": name}
        )
    fragments = [
        f"{row.scenario}={row.total_tax:.0f}/{row.tax_savings:.0f}"
        for row in summary.results.itertuples(index=False)
    ]
    print(
        f"[estate3] scenarios label={args.label} count={len(scenarios)} "
        f"total_tax/savings={','.join(fragments)} "
        f"csv={artifacts.results_csv} pdf={artifacts.report_pdf}"
    )


def _handle_sensitivity(args: argparse.Namespace) -> None:
    calc_input = _load_input(args.config)
    frame = appreciation_sensitivity(
        calc_input, args.rates, tables=_load_tables(args.tax_tables), as_of=args.as_of
    )
    rates = ",".join(f"{rate:g}" for rate in args.rates)
    print(f"[estate3] sensitivity rates={rates}")
    print(frame.to_string(float_format=lambda value: f"{value:,.0f}"))


def _handle_validate(args: argparse.Namespace) -> None:
    """Validate configuration files and report diagnostics to stdout."""

    summary = validate_configs(
        estate_path=args.config,
        scenarios_path=args.scenarios,
        tax_tables_path=args.tax_tables,
    )
    if args.verbose and summary.configs:
        for label, payload in summary.configs.items():
            rendered = yaml.safe_dump(payload, sort_keys=True)
            print(f"[estate3] validate {label}\n{rendered}", end="")
    for warning in summary.warnings:
        print(f"[estate3] validate warning: {warning}")
    if summary.errors:
        for error in summary.errors:
            print(f"[estate3] validate error: {error}")
        raise SystemExit(1)
    print("[estate3] validate status=ok")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_cli_logging(json_logs=bool(args.json_logs))
    if args.cmd == "project":
        _handle_project(args)
    elif args.cmd == "scenarios":
        _handle_scenarios(args)
    elif args.cmd == "sensitivity":
        _handle_sensitivity(args)
    elif args.cmd == "validate":
        _handle_validate(args)
    else:
        print(f"[estate3] command = {args.cmd}")


if __name__ == "__main__":
    main()
