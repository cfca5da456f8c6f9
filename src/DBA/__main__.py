"""
Command‑line interface for the DBA toolkit.
Loads disease statistics (plus optional lookup tables), audits them, and runs
the imputation and weighted aggregation pass, writing one CSV per output table.
"""

import json
import logging
import pathlib
import sys
import typing
from datetime import datetime

import click
import pandas as pd
from stairval.notepad import Notepad, create_notepad

from .aggregation import round_shares
from .audit import audit_entries
from .config import DEFAULT_DISEASES, AnalysisConfig, ConfigurationError
from .loader import EXCEL_SUFFIXES, choose_named_tables, load_table, load_workbook_tables
from .mapper import RecordMapper
from .pipeline import run_analysis
from .record import AGE_BRACKETS, DiseaseStatisticRecord, records_to_frame

LOGGER = logging.getLogger(__name__)


def _table_options(command):
    # shared input options for every command reading statistics
    command = click.option(
        "-c",
        "--country-years",
        "country_years_path",
        type=click.Path(exists=True, dir_okay=False),
        help="country-year context table (cy_id, country_id, year)",
    )(command)
    command = click.option(
        "-d",
        "--diseases",
        "diseases_path",
        type=click.Path(exists=True, dir_okay=False),
        help="disease lookup table (disease_id, disease_name)",
    )(command)
    command = click.option(
        "-s",
        "--statistics",
        "statistics_path",
        required=True,
        type=click.Path(exists=True, dir_okay=False),
        help="disease statistics table (CSV, or an Excel workbook with optional lookup sheets)",
    )(command)
    return command


@click.group()
def main():
    """DBA: Demographic Burden Analysis of disease statistics by age and gender."""
    pass


@main.command(name="audit")
@_table_options
@click.option("-r", "--raw-json", is_flag=True, help="print audit entries as JSON")
def audit(
    statistics_path: str,
    diseases_path: typing.Optional[str],
    country_years_path: typing.Optional[str],
    raw_json: bool,
):
    """
    Report record counts, missing values and raw age-sum drift.
    """
    notepad = create_notepad("statistics")
    records = _load_records(statistics_path, diseases_path, country_years_path, notepad)
    entries = audit_entries(records_to_frame(records))

    if raw_json:
        click.echo(json.dumps([entry._asdict() for entry in entries], indent=2))
        return

    click.echo(f"{'STEP':22}  {'SUBJECT':20}  {'LEVEL':5}  MESSAGE")
    for entry in entries:
        line = f"{entry.step:22}  {entry.subject:20}  {entry.level:5}  {entry.message}"
        colour = "yellow" if entry.level == "warn" else None
        click.echo(click.style(line, fg=colour) if colour else line)


@main.command(name="analyze")
@_table_options
@click.option("--year-start", default=2010, show_default=True, type=int, help="first year of the window")
@click.option("--year-end", default=2020, show_default=True, type=int, help="last year of the window")
@click.option(
    "--disease",
    "disease_names",
    multiple=True,
    help="disease name to report on (repeatable; defaults to the standard list)",
)
@click.option("--all-diseases", is_flag=True, help="report on every disease")
@click.option("--top-n", default=20, show_default=True, type=int, help="length of the child-burden ranking")
@click.option(
    "--comparison-limit",
    default=30,
    show_default=True,
    type=int,
    help="rows kept in the gender comparison table",
)
@click.option("--trend-disease", default="Malaria", show_default=True, help="disease for the year trend")
@click.option(
    "--trend-bracket",
    default="0_18",
    show_default=True,
    type=click.Choice(list(AGE_BRACKETS)),
    help="age bracket for the year trend",
)
@click.option(
    "-o",
    "--output-dir",
    "output_root",
    default=".",
    type=click.Path(file_okay=False),
    help="where the timestamped report folder is created",
)
@click.option("--verbose-logging", is_flag=True, help="Also emit debug logs to stderr")
@click.option(
    "--log-file-path",
    type=click.Path(dir_okay=False, writable=True),
    help="Append timestamped logs to this file",
)
def analyze(
    statistics_path: str,
    diseases_path: typing.Optional[str],
    country_years_path: typing.Optional[str],
    year_start: int,
    year_end: int,
    disease_names: tuple[str, ...],
    all_diseases: bool,
    top_n: int,
    comparison_limit: int,
    trend_disease: str,
    trend_bracket: str,
    output_root: str,
    verbose_logging: bool,
    log_file_path: typing.Optional[str],
):
    """
    Impute and normalize age shares, then write shares, burden, rankings,
    gender comparison, year trend and the summary table as CSV files.
    """
    _configure_logging(verbose_logging, log_file_path)

    if all_diseases and disease_names:
        raise click.UsageError("--disease and --all-diseases are mutually exclusive")

    # 1) Validate configuration before touching any data
    try:
        config = AnalysisConfig(
            year_start=year_start,
            year_end=year_end,
            diseases=None if all_diseases else (disease_names or DEFAULT_DISEASES),
            top_n=top_n,
            comparison_limit=comparison_limit,
            trend_disease=trend_disease,
            trend_bracket=trend_bracket,
        )
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    # 2) Load and map records, stop on mapping errors
    notepad = create_notepad("statistics")
    records = _load_records(statistics_path, diseases_path, country_years_path, notepad)
    if notepad.has_errors(include_subsections=True):
        click.echo("Aborting: fix the mapping errors above first.", err=True)
        sys.exit(1)

    # 3) Run the pass and export every table
    result = run_analysis(records, config)
    output_dir = _prepare_output_dir(pathlib.Path(output_root))
    for name, table in result.tables():
        _write_table(table, output_dir / f"{name}.csv")

    # 4) Final summary
    click.echo(f"Wrote {len(list(result.tables()))} tables to {output_dir}")
    click.echo(f"Normalized {len(result.normalized)} records from {len(records)} loaded")


def _configure_logging(verbose_logging: bool, log_file_path: typing.Optional[str]) -> None:
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
            force=True,
        )


def _read_tables(
    statistics_path: str,
    diseases_path: typing.Optional[str],
    country_years_path: typing.Optional[str],
) -> tuple[pd.DataFrame, pd.DataFrame | None, pd.DataFrame | None]:
    # a workbook may carry the lookup tables as extra sheets
    if pathlib.Path(statistics_path).suffix.lower() in EXCEL_SUFFIXES:
        sheets = choose_named_tables(load_workbook_tables(statistics_path))
        statistics = sheets["statistics"]
        if statistics is None:
            raise ValueError(f"Workbook {statistics_path} has no sheets")
        diseases = sheets["diseases"]
        country_years = sheets["country_years"]
    else:
        statistics = load_table(statistics_path)
        diseases = country_years = None

    if diseases_path:
        diseases = load_table(diseases_path)
    if country_years_path:
        country_years = load_table(country_years_path)
    return statistics, diseases, country_years


def _load_records(
    statistics_path: str,
    diseases_path: typing.Optional[str],
    country_years_path: typing.Optional[str],
    notepad: Notepad,
) -> list[DiseaseStatisticRecord]:
    # read the tables, map rows to records and show any issues
    try:
        statistics, diseases, country_years = _read_tables(
            statistics_path, diseases_path, country_years_path
        )
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    LOGGER.info("Loaded %d statistics rows from %s", len(statistics), statistics_path)

    mapper = RecordMapper(diseases=diseases, country_years=country_years)
    records = mapper.map_records(statistics, notepad)
    _report_issues(notepad)
    return records


def _report_issues(notepad: Notepad):
    # if there were errors, show them
    if notepad.has_errors(include_subsections=True):
        click.echo("Errors found in mapping:")
        for err in notepad.errors():
            click.echo(f"- {err}")
    # show any warnings but keep going
    if notepad.has_warnings(include_subsections=True):
        click.echo("Warnings found in mapping:")
        for w in notepad.warnings():
            click.echo(f"- {w}")


def _prepare_output_dir(root: pathlib.Path) -> pathlib.Path:
    # use YYYY-MM-DD_HH-MM-SS for human-readable timestamps
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    output_dir = root / "burden_reports" / timestamp
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def _write_table(table: pd.DataFrame, path: pathlib.Path) -> None:
    # the normalized table keeps full precision for traceability
    rendered = table if path.stem == "normalized" else round_shares(table)
    rendered.to_csv(path, index=False)
    LOGGER.debug("Wrote %d rows to %s", len(rendered), path)


if __name__ == "__main__":
    main()
