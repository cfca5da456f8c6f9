"""
Imputation and normalization of per-record age shares.

Each missing bracket is filled independently by walking FALLBACK_CHAIN:
the record's own value, then the disease/gender profile, then the disease
profile, then zero. The four imputed values are then rescaled to sum to 100.
"""

import logging
import math
import typing
from dataclasses import asdict, dataclass

import pandas as pd

from .config import AnalysisConfig
from .profiles import AverageProfiles
from .record import AGE_BRACKETS, RECORD_COLUMNS, DiseaseStatisticRecord

LOGGER = logging.getLogger(__name__)

Resolver = typing.Callable[[DiseaseStatisticRecord, str, AverageProfiles], typing.Optional[float]]

# Derived columns of the normalized table
IMPUTED_COLUMNS: dict[str, str] = {bracket: f"imputed_{bracket}_pct" for bracket in AGE_BRACKETS}
NORMALIZED_COLUMNS: dict[str, str] = {bracket: f"norm_{bracket}_pct" for bracket in AGE_BRACKETS}
SOURCE_COLUMNS: dict[str, str] = {bracket: f"source_{bracket}" for bracket in AGE_BRACKETS}


def _own_value(record: DiseaseStatisticRecord, bracket: str, profiles: AverageProfiles):
    return record.age_pct(bracket)


def _gender_average(record: DiseaseStatisticRecord, bracket: str, profiles: AverageProfiles):
    profile = profiles.by_gender.get((record.disease_id, record.gender))
    return None if profile is None else profile.mean(bracket)


def _disease_average(record: DiseaseStatisticRecord, bracket: str, profiles: AverageProfiles):
    profile = profiles.by_disease.get(record.disease_id)
    return None if profile is None else profile.mean(bracket)


def _zero(record: DiseaseStatisticRecord, bracket: str, profiles: AverageProfiles):
    return 0.0


# Tried in order; the first non-None value wins
FALLBACK_CHAIN: tuple[tuple[str, Resolver], ...] = (
    ("own", _own_value),
    ("gender_profile", _gender_average),
    ("disease_profile", _disease_average),
    ("zero", _zero),
)


@dataclass(frozen=True)
class NormalizedRecord:
    """
    Imputed and normalized age shares for one source record.

    Attributes:
        record: The untouched source record.
        imputed: Bracket key → value after the fallback chain (pre-normalization).
        sources: Bracket key → name of the resolver that supplied the value.
        normalized: Bracket key → share rescaled to sum to 100, or None when the
            imputed values sum to zero.
    """

    record: DiseaseStatisticRecord
    imputed: dict[str, float]
    sources: dict[str, str]
    normalized: typing.Optional[dict[str, float]]

    @property
    def imputed_sum(self) -> float:
        return math.fsum(self.imputed.values())

    @property
    def is_excluded(self) -> bool:
        """True when the record cannot take part in share-based aggregates."""
        return self.normalized is None


def resolve_bracket(
    record: DiseaseStatisticRecord,
    bracket: str,
    profiles: AverageProfiles,
    chain: typing.Sequence[tuple[str, Resolver]] = FALLBACK_CHAIN,
) -> tuple[float, str]:
    """
    Return (value, resolver name) for one bracket of one record.
    """
    for name, resolver in chain:
        value = resolver(record, bracket, profiles)
        if value is not None:
            return float(value), name
    # chains without a terminal default fall through to zero
    return 0.0, "zero"


def normalize_shares(imputed: dict[str, float]) -> typing.Optional[dict[str, float]]:
    """
    Rescale bracket values so they sum to 100.
    Returns None when the values sum to zero.
    """
    total = math.fsum(imputed.values())
    if total <= 0:
        return None
    return {bracket: value / total * 100 for bracket, value in imputed.items()}


def impute_record(
    record: DiseaseStatisticRecord,
    profiles: AverageProfiles,
    chain: typing.Sequence[tuple[str, Resolver]] = FALLBACK_CHAIN,
) -> NormalizedRecord:
    """
    Fill each missing bracket independently and normalize. Never raises:
    a record nothing can be resolved for comes back with normalized=None.
    """
    imputed: dict[str, float] = {}
    sources: dict[str, str] = {}
    for bracket in AGE_BRACKETS:
        imputed[bracket], sources[bracket] = resolve_bracket(record, bracket, profiles, chain)

    normalized = normalize_shares(imputed)
    if normalized is None:
        LOGGER.debug(
            "Record %s (%s, %s, %s) has no resolvable age shares",
            record.stat_id,
            record.disease_name,
            record.year,
            record.gender.value,
        )
    return NormalizedRecord(record=record, imputed=imputed, sources=sources, normalized=normalized)


def normalize_records(
    records: typing.Iterable[DiseaseStatisticRecord],
    profiles: AverageProfiles,
    config: AnalysisConfig,
) -> list[NormalizedRecord]:
    """
    Impute and normalize every record inside the configured year window.
    The profiles must already be complete for that window.
    """
    normalized = [
        impute_record(record, profiles) for record in records if config.in_window(record.year)
    ]
    excluded = sum(1 for item in normalized if item.is_excluded)
    LOGGER.info("Normalized %d records (%d without resolvable age shares)", len(normalized), excluded)
    return normalized


def normalized_to_frame(normalized: typing.Iterable[NormalizedRecord]) -> pd.DataFrame:
    """
    Flatten normalized records into one table. The original bracket columns are
    kept next to the imputed and normalized ones for traceability.
    """
    columns = [
        *RECORD_COLUMNS,
        *IMPUTED_COLUMNS.values(),
        "sum_imputed",
        *NORMALIZED_COLUMNS.values(),
        *SOURCE_COLUMNS.values(),
    ]
    rows = []
    for item in normalized:
        row = asdict(item.record)
        row["gender"] = item.record.gender.value
        for bracket in AGE_BRACKETS:
            row[IMPUTED_COLUMNS[bracket]] = item.imputed[bracket]
            row[SOURCE_COLUMNS[bracket]] = item.sources[bracket]
            row[NORMALIZED_COLUMNS[bracket]] = (
                float("nan") if item.normalized is None else item.normalized[bracket]
            )
        row["sum_imputed"] = item.imputed_sum
        rows.append(row)

    frame = pd.DataFrame(rows, columns=columns)
    float_columns = [
        column
        for column in columns
        if column.endswith("_pct") or column in ("pop_affected", "sum_imputed")
    ]
    frame[float_columns] = frame[float_columns].astype(float)
    return frame
