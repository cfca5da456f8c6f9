"""
Sanity checks run before (and right after) normalization.

These only describe the data: counts, missingness and how far raw age
percentages drift from 100. Nothing here changes the records.
"""

from collections import namedtuple

import pandas as pd

from .imputation import NORMALIZED_COLUMNS
from .record import AGE_COLUMNS

AuditEntry = namedtuple("AuditEntry", ["step", "subject", "message", "level"])

# Raw sums further than this from 100 are reported as drift
DRIFT_WARN_TOLERANCE = 5.0
DRIFT_INFO_TOLERANCE = 1.0


def summarize_records(frame: pd.DataFrame, limit: int = 20) -> dict:
    """
    Totals and distinct values of the record table.
    """
    per_disease = (
        frame.groupby("disease_name").size().sort_values(ascending=False, kind="mergesort").head(limit)
    )
    return {
        "total_records": len(frame),
        "distinct_diseases": int(frame["disease_id"].nunique()),
        "records_per_disease": {name: int(count) for name, count in per_disease.items()},
        "genders": sorted(frame["gender"].dropna().unique().tolist()),
        "years": sorted(int(year) for year in frame["year"].dropna().unique()),
    }


def missingness(frame: pd.DataFrame) -> dict[str, int]:
    """Number of null values per age column and in pop_affected."""
    columns = [*AGE_COLUMNS.values(), "pop_affected"]
    return {column: int(frame[column].isna().sum()) for column in columns}


def _raw_sums(frame: pd.DataFrame) -> pd.Series:
    # nulls count as 0, as a reader of the raw table would see it
    return frame[list(AGE_COLUMNS.values())].fillna(0).sum(axis=1)


def age_sum_drift(frame: pd.DataFrame) -> dict:
    """
    Distribution of raw age-percentage sums per record.
    """
    sums = _raw_sums(frame)
    if sums.empty:
        return {"total_records": 0}
    deviation = (sums - 100).abs()
    return {
        "total_records": len(sums),
        "avg_sum_ages": round(float(sums.mean()), 3),
        "min_sum_ages": round(float(sums.min()), 3),
        "max_sum_ages": round(float(sums.max()), 3),
        "off_by_more_than_5_pct": int((deviation > DRIFT_WARN_TOLERANCE).sum()),
        "off_by_more_than_1_pct": int((deviation > DRIFT_INFO_TOLERANCE).sum()),
    }


def drifted_records(
    frame: pd.DataFrame, tolerance: float = DRIFT_WARN_TOLERANCE, limit: int = 50
) -> pd.DataFrame:
    """Records whose raw age sum is more than `tolerance` points from 100."""
    sums = _raw_sums(frame)
    drifted = frame.assign(sum_ages=sums)[(sums - 100).abs() > tolerance]
    columns = ["stat_id", "disease_name", "country_id", "year", *AGE_COLUMNS.values(), "sum_ages"]
    return drifted[columns].head(limit).reset_index(drop=True)


def normalized_sum_check(normalized: pd.DataFrame) -> pd.DataFrame:
    """
    One-row table describing normalized sums; records without shares are skipped.
    """
    sums = normalized[list(NORMALIZED_COLUMNS.values())].dropna().sum(axis=1)
    return pd.DataFrame(
        [
            {
                "rows_checked": len(sums),
                "avg_norm_sum": round(float(sums.mean()), 3) if len(sums) else None,
                "min_norm_sum": round(float(sums.min()), 3) if len(sums) else None,
                "max_norm_sum": round(float(sums.max()), 3) if len(sums) else None,
            }
        ]
    )


def audit_entries(frame: pd.DataFrame) -> list[AuditEntry]:
    """
    Flatten the checks above into entries for display:
      - record counts and distinct values
      - missing values per column
      - raw age-sum drift, with the drifted records listed one by one
    """
    entries: list[AuditEntry] = []

    # Step 1: counts
    summary = summarize_records(frame)
    entries.append(AuditEntry("count-records", "all", f"{summary['total_records']} records", "info"))
    entries.append(
        AuditEntry("count-diseases", "all", f"{summary['distinct_diseases']} distinct diseases", "info")
    )
    for name, count in summary["records_per_disease"].items():
        entries.append(AuditEntry("records-per-disease", name, f"{count} records", "info"))
    entries.append(AuditEntry("distinct-genders", "all", ", ".join(summary["genders"]) or "-", "info"))
    years = summary["years"]
    entries.append(
        AuditEntry("distinct-years", "all", f"{years[0]}-{years[-1]} ({len(years)} years)" if years else "-", "info")
    )

    # Step 2: missingness
    for column, missing in missingness(frame).items():
        entries.append(
            AuditEntry("missing-values", column, f"{missing} missing", "warn" if missing else "info")
        )

    # Step 3: drift of raw sums
    drift = age_sum_drift(frame)
    if drift["total_records"]:
        entries.append(
            AuditEntry(
                "age-sum-range",
                "all",
                f"avg {drift['avg_sum_ages']} min {drift['min_sum_ages']} max {drift['max_sum_ages']}",
                "info",
            )
        )
        off = drift["off_by_more_than_5_pct"]
        entries.append(
            AuditEntry("age-sum-drift", "all", f"{off} records off by more than 5 points", "warn" if off else "info")
        )
        entries.append(
            AuditEntry(
                "age-sum-drift", "all", f"{drift['off_by_more_than_1_pct']} records off by more than 1 point", "info"
            )
        )
        for row in drifted_records(frame).itertuples(index=False):
            subject = "-" if pd.isna(row.stat_id) else str(row.stat_id)
            entries.append(
                AuditEntry(
                    "drifted-record",
                    subject,
                    f"sum {row.sum_ages:g} ({row.disease_name}, {row.country_id}, {row.year})",
                    "warn",
                )
            )
    return entries
