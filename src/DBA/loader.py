import pathlib

import pandas as pd

# Columns that need renaming → target record fields
RENAME_MAP = {
    # statistics columns
    "sex": "gender",
    "pop": "pop_affected",
    "population_affected": "pop_affected",
    "prevalence": "prevalence_pct",
    "ages_0_18": "ages_0_18_pct",
    "ages_19_35": "ages_19_35_pct",
    "ages_36_60": "ages_36_60_pct",
    "ages_61_plus": "ages_61_plus_pct",
    "ages_61+": "ages_61_plus_pct",
    # lookup columns
    "disease": "disease_name",
    "country": "country_id",
}

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}


def _normalize_headers(df: pd.DataFrame) -> pd.DataFrame:
    """
    - normalize all headers to snake_case lowercase
    - apply renames from RENAME_MAP
    """
    df.columns = (
        df.columns.astype(str)
        .str.strip()
        .str.replace(r"\s*\(.*?\)", "", regex=True)  # drop any "(…)"
        .str.replace(r"\s+", "_", regex=True)  # spaces → underscore
        .str.replace(":", "", regex=False)  # drop colons
        .str.lower()
    )
    return df.rename(
        columns={orig: target for orig, target in RENAME_MAP.items() if orig in df.columns}
    )


def load_table(path: str) -> pd.DataFrame:
    """
    Read one table from a CSV file or from the first sheet of an Excel workbook,
    with normalized headers.
    """
    suffix = pathlib.Path(path).suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path)
    elif suffix in EXCEL_SUFFIXES:
        df = pd.read_excel(path, sheet_name=0, header=0, engine="openpyxl")
    else:
        raise ValueError(f"Unsupported table format {suffix!r} for {path}")
    return _normalize_headers(df)


def load_workbook_tables(workbook_path: str) -> dict[str, pd.DataFrame]:
    """
    Read each worksheet into a DataFrame (first row = header) with normalized headers.
    """
    excel = pd.ExcelFile(workbook_path, engine="openpyxl")
    tables: dict[str, pd.DataFrame] = {}

    for sheet_name in excel.sheet_names:
        df = pd.read_excel(excel, sheet_name=sheet_name, header=0, engine="openpyxl")
        tables[sheet_name] = _normalize_headers(df)

    return tables


# Sheet names (casefolded) recognized in a single-workbook input
KNOWN_SHEET_ALIASES = {
    "statistics": {"statistics", "disease_statistics", "stats"},
    "diseases": {"diseases", "disease"},
    "country_years": {"country_years", "country_year_stats", "context"},
}


def choose_named_tables(tables: dict[str, pd.DataFrame]) -> dict[str, pd.DataFrame | None]:
    """
    Prefer explicit sheet names (plus common aliases). Statistics fall back on
    the first sheet when no sheet carries a known name.
    """

    def by_alias(kind: str) -> pd.DataFrame | None:
        aliases = KNOWN_SHEET_ALIASES[kind]
        for sheet_name, df in tables.items():
            if sheet_name.strip().casefold() in aliases:
                return df
        return None

    selected = {kind: by_alias(kind) for kind in KNOWN_SHEET_ALIASES}
    if selected["statistics"] is None and tables:
        selected["statistics"] = next(iter(tables.values()))
    return selected
