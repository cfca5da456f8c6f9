"""
Average profile builder.

Computes the two fallback levels used by imputation: per (disease, gender)
and per disease with genders pooled. Only records reporting all four age
brackets contribute to a profile.
"""

import logging
import math
import typing
from dataclasses import dataclass

import pandas as pd

from .config import AnalysisConfig
from .record import AGE_COLUMNS, DiseaseStatisticRecord, Gender, records_to_frame

LOGGER = logging.getLogger(__name__)


class _BracketMeans:
    def mean(self, bracket: str) -> float:
        """Mean percentage for one bracket key (e.g. '0_18')."""
        return getattr(self, f"avg_{bracket}_pct")


@dataclass(frozen=True)
class GenderAverageProfile(_BracketMeans):
    """
    Mean age-bracket percentages of one disease for one gender.

    Attributes:
        disease_id: Disease the profile describes.
        gender: Gender the profile is restricted to.
        avg_0_18_pct .. avg_61_plus_pct: Bracket means over complete records.
        records_used: Number of complete records that contributed.
    """

    disease_id: str
    gender: Gender
    avg_0_18_pct: float
    avg_19_35_pct: float
    avg_36_60_pct: float
    avg_61_plus_pct: float
    records_used: int


@dataclass(frozen=True)
class DiseaseAverageProfile(_BracketMeans):
    """Same shape as GenderAverageProfile with both genders pooled."""

    disease_id: str
    avg_0_18_pct: float
    avg_19_35_pct: float
    avg_36_60_pct: float
    avg_61_plus_pct: float
    records_used: int


class AverageProfiles(typing.NamedTuple):
    """Read-only snapshot of both fallback levels for one aggregation pass."""

    by_gender: dict[tuple[str, Gender], GenderAverageProfile]
    by_disease: dict[str, DiseaseAverageProfile]


def _complete_window(frame: pd.DataFrame, config: AnalysisConfig) -> pd.DataFrame:
    # all-or-nothing: a record missing any bracket is dropped entirely
    windowed = frame[frame["year"].between(config.year_start, config.year_end)]
    return windowed.dropna(subset=list(AGE_COLUMNS.values()))


def _bracket_means(group: pd.DataFrame) -> dict[str, float]:
    count = len(group)
    return {
        f"avg_{bracket}_pct": math.fsum(group[column]) / count
        for bracket, column in AGE_COLUMNS.items()
    }


def build_profiles(
    records: typing.Iterable[DiseaseStatisticRecord], config: AnalysisConfig
) -> AverageProfiles:
    """
    Build the gender-level and disease-level average profiles from the
    records whose year lies in the configured window.
    Diseases (or disease/gender pairs) without a single complete record are
    simply absent from the returned maps.
    """
    complete = _complete_window(records_to_frame(records), config)

    by_gender: dict[tuple[str, Gender], GenderAverageProfile] = {}
    for (disease_id, gender_label), group in complete.groupby(["disease_id", "gender"], sort=True):
        gender = Gender(gender_label)
        by_gender[(disease_id, gender)] = GenderAverageProfile(
            disease_id=disease_id,
            gender=gender,
            records_used=len(group),
            **_bracket_means(group),
        )

    by_disease: dict[str, DiseaseAverageProfile] = {}
    for (disease_id,), group in complete.groupby(["disease_id"], sort=True):
        by_disease[disease_id] = DiseaseAverageProfile(
            disease_id=disease_id,
            records_used=len(group),
            **_bracket_means(group),
        )

    LOGGER.info(
        "Built %d disease/gender profiles and %d disease profiles from %d complete records "
        "in %d-%d",
        len(by_gender),
        len(by_disease),
        len(complete),
        config.year_start,
        config.year_end,
    )
    return AverageProfiles(by_gender=by_gender, by_disease=by_disease)
