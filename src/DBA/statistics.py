"""
Approximate gender separation of prevalence.

For each disease the statistic
    t = (mean_male - mean_female) / sqrt(sd_male**2 / n_male + sd_female**2 / n_female)
is computed from the per-gender mean, sample standard deviation and count of
prevalence_pct. It is a descriptive measure of how far apart the two groups
are. There is no degrees-of-freedom correction and no p-value: it must not
be presented as a hypothesis test.
"""

import logging
import math

import numpy as np
import pandas as pd

from .config import AnalysisConfig

LOGGER = logging.getLogger(__name__)

STAT_COLUMNS = ["disease_id", "disease_name", "gender", "mean_prev", "sd_prev", "n_records"]


def _summarize(values: np.ndarray) -> tuple[float, float]:
    # exactly rounded sums keep the result independent of record order
    count = len(values)
    mean = math.fsum(values) / count
    if count < 2:
        return mean, np.nan
    return mean, math.sqrt(math.fsum((values - mean) ** 2) / (count - 1))


def prevalence_stats(frame: pd.DataFrame, config: AnalysisConfig) -> pd.DataFrame:
    """
    Mean, sample standard deviation (ddof=1) and count of prevalence_pct per
    (disease, gender), over in-window records with a reported prevalence.
    """
    windowed = frame[frame["year"].between(config.year_start, config.year_end)]
    reported = windowed.dropna(subset=["prevalence_pct"])

    rows = []
    for (disease_id, disease_name, gender), group in reported.groupby(
        ["disease_id", "disease_name", "gender"], sort=True
    ):
        values = group["prevalence_pct"].to_numpy(dtype=float)
        mean, sd = _summarize(values)
        rows.append(
            {
                "disease_id": disease_id,
                "disease_name": disease_name,
                "gender": gender,
                "mean_prev": mean,
                "sd_prev": sd,
                "n_records": len(values),
            }
        )
    return pd.DataFrame(rows, columns=STAT_COLUMNS)


def _t_stat(row: pd.Series) -> float:
    n_male, n_female = row["n_male"], row["n_female"]
    # a sample of one has no standard deviation
    if n_male < 2 or n_female < 2:
        return np.nan
    standard_error = math.sqrt(
        row["sd_male"] ** 2 / n_male + row["sd_female"] ** 2 / n_female
    )
    if not standard_error > 0:
        return np.nan
    return (row["mean_male"] - row["mean_female"]) / standard_error


def approximate_t_statistics(stats: pd.DataFrame) -> pd.DataFrame:
    """
    One row per disease with its male and female prevalence summaries and the
    approximate t-statistic, ordered by descending absolute value (NaN last).
    Only diseases with prevalence reported for both genders are listed.
    """
    columns = [
        "disease_id",
        "disease_name",
        "mean_male",
        "mean_female",
        "sd_male",
        "sd_female",
        "n_male",
        "n_female",
        "approx_t_stat",
    ]
    if stats.empty:
        return pd.DataFrame(columns=columns)

    by_gender = {}
    for gender in ("Male", "Female"):
        suffix = gender.lower()
        part = stats[stats["gender"] == gender].drop(columns="gender")
        by_gender[gender] = part.rename(
            columns={
                "mean_prev": f"mean_{suffix}",
                "sd_prev": f"sd_{suffix}",
                "n_records": f"n_{suffix}",
            }
        )

    table = by_gender["Male"].merge(
        by_gender["Female"], on=["disease_id", "disease_name"], how="inner"
    )
    if table.empty:
        return pd.DataFrame(columns=columns)
    table["approx_t_stat"] = table.apply(_t_stat, axis=1).astype(float)

    undefined = table["approx_t_stat"].isna().sum()
    if undefined:
        LOGGER.info("Approximate t-statistic undefined for %d diseases", undefined)

    table["_abs_t"] = table["approx_t_stat"].abs()
    table = table.sort_values(
        ["_abs_t", "disease_name"], ascending=[False, True], na_position="last", kind="mergesort"
    )
    return table.drop(columns="_abs_t")[columns].reset_index(drop=True)
