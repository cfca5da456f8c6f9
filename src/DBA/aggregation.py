"""
Weighted aggregation of normalized age shares.

All operations are grouping + reduction passes over the normalized table.
Sums go through math.fsum, which is exactly rounded, so every result is
bit-identical whatever order the input rows arrive in. Output rows are
sorted by their group keys.

A group whose total weight is zero is still reported, with NaN shares, so
"no data" stays distinguishable from "zero burden".
"""

import logging
import math
import typing

import numpy as np
import pandas as pd

from .config import AnalysisConfig
from .imputation import NORMALIZED_COLUMNS
from .record import AGE_BRACKETS

LOGGER = logging.getLogger(__name__)

GroupKeys = typing.Sequence[str]


def select_diseases(
    normalized: pd.DataFrame, diseases: typing.Optional[typing.Iterable[str]]
) -> pd.DataFrame:
    """Restrict the table to the given disease names (None keeps everything)."""
    if diseases is None:
        return normalized
    return normalized[normalized["disease_name"].isin(list(diseases))]


def _groups(frame: pd.DataFrame, group_keys: GroupKeys):
    keys = list(group_keys)
    for key, group in frame.groupby(keys, sort=True):
        yield dict(zip(keys, key)), group


def _has_shares(group: pd.DataFrame) -> pd.Series:
    # normalized brackets are either all present or all NaN
    return group[NORMALIZED_COLUMNS["0_18"]].notna()


def _weighted_parts(group: pd.DataFrame) -> dict[str, typing.Any]:
    """
    Numerators per bracket, the total weight and record counts for one group.
    Records lacking a weight or normalized shares are left out of both sums.
    """
    has_weight = group["pop_affected"].notna()
    has_shares = _has_shares(group)
    included = group[has_weight & has_shares]
    weights = included["pop_affected"].to_numpy(dtype=float)

    numerators = {
        bracket: math.fsum(weights * included[column].to_numpy(dtype=float) / 100)
        for bracket, column in NORMALIZED_COLUMNS.items()
    }
    return {
        "numerators": numerators,
        "total_weight": math.fsum(weights),
        "records_used": len(included),
        "excluded_records": int((has_weight & ~has_shares).sum()),
    }


def unweighted_share_by_group(normalized: pd.DataFrame, group_keys: GroupKeys) -> pd.DataFrame:
    """
    Arithmetic mean of each normalized bracket per group.
    Records without normalized shares count toward neither sum nor denominator.
    """
    value_columns = [f"avg_pct_{bracket}_unweighted" for bracket in AGE_BRACKETS]
    rows = []
    for row, group in _groups(normalized, group_keys):
        usable = group[_has_shares(group)]
        count = len(usable)
        for bracket, column in NORMALIZED_COLUMNS.items():
            row[f"avg_pct_{bracket}_unweighted"] = (
                math.fsum(usable[column]) / count if count else np.nan
            )
        row["records_used"] = count
        rows.append(row)
    return pd.DataFrame(rows, columns=[*group_keys, *value_columns, "records_used"])


def weighted_share_by_group(normalized: pd.DataFrame, group_keys: GroupKeys) -> pd.DataFrame:
    """
    Population-weighted share of each bracket per group:
    sum(pop_affected * norm / 100) / sum(pop_affected) * 100.
    """
    value_columns = [f"weighted_pct_{bracket}" for bracket in AGE_BRACKETS]
    rows = []
    for row, group in _groups(normalized, group_keys):
        parts = _weighted_parts(group)
        total = parts["total_weight"]
        for bracket, numerator in parts["numerators"].items():
            row[f"weighted_pct_{bracket}"] = numerator / total * 100 if total > 0 else np.nan
        if total <= 0:
            LOGGER.info("Group %s has no usable population weight", row)
        row["total_weight"] = total
        row["records_used"] = parts["records_used"]
        row["excluded_records"] = parts["excluded_records"]
        rows.append(row)
    return pd.DataFrame(
        rows,
        columns=[*group_keys, *value_columns, "total_weight", "records_used", "excluded_records"],
    )


def absolute_burden_by_group(normalized: pd.DataFrame, group_keys: GroupKeys) -> pd.DataFrame:
    """
    Estimated affected counts per bracket (the weighted numerators, undivided),
    with the total weight alongside as a cross-check.
    """
    value_columns = [f"affected_{bracket}" for bracket in AGE_BRACKETS]
    rows = []
    for row, group in _groups(normalized, group_keys):
        parts = _weighted_parts(group)
        for bracket, numerator in parts["numerators"].items():
            row[f"affected_{bracket}"] = numerator
        row["total_weight"] = parts["total_weight"]
        row["records_used"] = parts["records_used"]
        row["excluded_records"] = parts["excluded_records"]
        rows.append(row)
    return pd.DataFrame(
        rows,
        columns=[*group_keys, *value_columns, "total_weight", "records_used", "excluded_records"],
    )


def child_burden_ranking(
    normalized: pd.DataFrame,
    top_n: int,
    diseases: typing.Optional[typing.Iterable[str]] = None,
) -> pd.DataFrame:
    """
    Diseases ranked by the weighted 0–18 share, genders pooled, top N first.
    Diseases without a usable weight cannot be ranked and are left out.
    """
    shares = weighted_share_by_group(select_diseases(normalized, diseases), ["disease_name"])
    ranking = shares.dropna(subset=["weighted_pct_0_18"]).rename(
        columns={"weighted_pct_0_18": "pct_children_weighted", "total_weight": "total_affected"}
    )
    ranking = ranking.sort_values(
        ["pct_children_weighted", "disease_name"], ascending=[False, True], kind="mergesort"
    )
    return ranking[["disease_name", "pct_children_weighted", "total_affected"]].head(top_n).reset_index(
        drop=True
    )


def gender_comparison_table(
    normalized: pd.DataFrame, t_statistics: pd.DataFrame, config: AnalysisConfig
) -> pd.DataFrame:
    """
    Male and female weighted shares side by side per disease, joined with the
    approximate prevalence t-statistic and ordered by its absolute value.
    """
    shares = weighted_share_by_group(
        select_diseases(normalized, config.diseases), ["disease_name", "gender"]
    )
    value_columns = [f"weighted_pct_{bracket}" for bracket in AGE_BRACKETS]

    table = pd.DataFrame({"disease_name": sorted(shares["disease_name"].unique())})
    for gender in ("Male", "Female"):
        prefix = gender.lower()
        part = shares[shares["gender"] == gender][["disease_name", *value_columns, "total_weight"]]
        part = part.rename(
            columns={
                **{f"weighted_pct_{b}": f"{prefix}_pct_{b}" for b in AGE_BRACKETS},
                "total_weight": f"{prefix}_total_affected",
            }
        )
        table = table.merge(part, on="disease_name", how="left")

    t_columns = t_statistics[["disease_name", "approx_t_stat"]] if len(t_statistics) else None
    if t_columns is None:
        table["approx_t_stat"] = np.nan
    else:
        table = table.merge(t_columns, on="disease_name", how="left")

    table["_abs_t"] = table["approx_t_stat"].abs()
    table = table.sort_values(
        ["_abs_t", "disease_name"], ascending=[False, True], na_position="last", kind="mergesort"
    )
    return table.drop(columns="_abs_t").head(config.comparison_limit).reset_index(drop=True)


def year_trend(normalized: pd.DataFrame, disease_name: str, bracket: str = "0_18") -> pd.DataFrame:
    """
    Weighted share of one bracket per year for a single disease.
    """
    shares = weighted_share_by_group(select_diseases(normalized, [disease_name]), ["year"])
    trend = shares[["year", f"weighted_pct_{bracket}", "total_weight"]].rename(
        columns={"total_weight": "total_affected"}
    )
    return trend.reset_index(drop=True)


def summary_table(normalized: pd.DataFrame) -> pd.DataFrame:
    """
    Flattened per (disease, gender) summary exported for reporting:
    four weighted shares and the total estimated affected population.
    """
    shares = weighted_share_by_group(normalized, ["disease_name", "gender"])
    value_columns = [f"weighted_pct_{bracket}" for bracket in AGE_BRACKETS]
    summary = shares[["disease_name", "gender", *value_columns, "total_weight"]].rename(
        columns={
            **{f"weighted_pct_{b}": f"pct_{b}_weighted" for b in AGE_BRACKETS},
            "total_weight": "total_estimated_affected",
        }
    )
    summary = round_shares(summary)
    summary["total_estimated_affected"] = summary["total_estimated_affected"].round(0)
    summary = summary.sort_values(
        ["total_estimated_affected", "disease_name", "gender"],
        ascending=[False, True, True],
        kind="mergesort",
    )
    return summary.reset_index(drop=True)


def round_shares(frame: pd.DataFrame, decimals: int = 2) -> pd.DataFrame:
    """
    Round percentage columns for presentation. Only the reporting layer calls
    this; the engine itself never rounds.
    """
    rounded = frame.copy()
    for column in rounded.columns:
        if "pct" in column or column == "approx_t_stat":
            rounded[column] = rounded[column].astype(float).round(decimals)
    return rounded
