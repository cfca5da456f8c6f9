"""
One complete aggregation pass.

Profiles are built from the whole windowed record set before any record is
imputed; everything downstream reads the normalized table produced here.
"""

import logging
import typing
from dataclasses import dataclass, fields

import pandas as pd

from .aggregation import (
    absolute_burden_by_group,
    child_burden_ranking,
    gender_comparison_table,
    select_diseases,
    summary_table,
    unweighted_share_by_group,
    weighted_share_by_group,
    year_trend,
)
from .audit import normalized_sum_check
from .config import AnalysisConfig
from .imputation import normalize_records, normalized_to_frame
from .profiles import build_profiles
from .record import DiseaseStatisticRecord, records_to_frame
from .statistics import approximate_t_statistics, prevalence_stats

LOGGER = logging.getLogger(__name__)

DISEASE_GENDER = ["disease_name", "gender"]


@dataclass(frozen=True)
class AnalysisResult:
    """Every output table of one pass, keyed by its export name."""

    normalized: pd.DataFrame
    normalized_check: pd.DataFrame
    unweighted_shares: pd.DataFrame
    weighted_shares: pd.DataFrame
    absolute_burden: pd.DataFrame
    child_burden: pd.DataFrame
    prevalence_t_stats: pd.DataFrame
    gender_comparison: pd.DataFrame
    year_trend: pd.DataFrame
    summary: pd.DataFrame

    def tables(self) -> typing.Iterator[tuple[str, pd.DataFrame]]:
        for field in fields(self):
            yield field.name, getattr(self, field.name)


def run_analysis(
    records: typing.Sequence[DiseaseStatisticRecord], config: AnalysisConfig
) -> AnalysisResult:
    """
    Build profiles, impute and normalize, then derive every aggregate table.
    """
    records = list(records)
    LOGGER.info("Running analysis over %d records with %s", len(records), config)

    profiles = build_profiles(records, config)
    normalized = normalized_to_frame(normalize_records(records, profiles, config))
    selected = select_diseases(normalized, config.diseases)

    t_stats = approximate_t_statistics(prevalence_stats(records_to_frame(records), config))

    return AnalysisResult(
        normalized=normalized,
        normalized_check=normalized_sum_check(normalized),
        unweighted_shares=unweighted_share_by_group(selected, DISEASE_GENDER),
        weighted_shares=weighted_share_by_group(selected, DISEASE_GENDER),
        absolute_burden=absolute_burden_by_group(selected, DISEASE_GENDER),
        child_burden=child_burden_ranking(normalized, config.top_n),
        prevalence_t_stats=t_stats.head(config.comparison_limit).reset_index(drop=True),
        gender_comparison=gender_comparison_table(normalized, t_stats, config),
        year_trend=year_trend(normalized, config.trend_disease, config.trend_bracket),
        summary=summary_table(normalized),
    )
