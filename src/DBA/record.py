"""
Disease statistic record model.

Defines the Gender enum, the four fixed age brackets and the
DiseaseStatisticRecord dataclass for one country/disease/year/gender
observation.
"""

import math
import typing
from dataclasses import asdict, dataclass
from enum import Enum

import pandas as pd

# Bracket key → human-readable label, in reporting order
AGE_BRACKETS: dict[str, str] = {
    "0_18": "0–18",
    "19_35": "19–35",
    "36_60": "36–60",
    "61_plus": "61+",
}

# Raw record column for each bracket
AGE_COLUMNS: dict[str, str] = {bracket: f"ages_{bracket}_pct" for bracket in AGE_BRACKETS}

RECORD_COLUMNS = [
    "stat_id",
    "disease_id",
    "disease_name",
    "country_id",
    "year",
    "gender",
    *AGE_COLUMNS.values(),
    "pop_affected",
    "prevalence_pct",
]


class Gender(Enum):
    """Binary gender as reported by the source statistics."""

    MALE = "Male"
    FEMALE = "Female"

    @classmethod
    def from_label(cls, label: str) -> "Gender":
        """
        Convert a raw label ('Male', 'f', ' FEMALE ') into the enum.
        """
        key = str(label).strip().lower()
        mapping = {
            "male": cls.MALE,
            "m": cls.MALE,
            "female": cls.FEMALE,
            "f": cls.FEMALE,
        }
        try:
            return mapping[key]
        except KeyError:
            raise ValueError(f"Unknown gender label: {label!r}")


def _check_non_negative(name: str, value: typing.Optional[float]) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be numeric, got {type(value).__name__}")
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"{name} must be a finite non-negative number, got {value!r}")


@dataclass(frozen=True)
class DiseaseStatisticRecord:
    """
    One observation of a disease in a country, year and gender.

    Attributes:
        disease_id: Identifier of the disease in the record store.
        disease_name: Human-readable disease name (used for filtering and reports).
        country_id: Identifier of the reporting country.
        year: Calendar year of the observation.
        gender: Gender.MALE or Gender.FEMALE.
        ages_0_18_pct .. ages_61_plus_pct: Share of the affected population in
            each age bracket, in percent. Any of them may be None.
        pop_affected: Number of affected people, or None when not reported.
        prevalence_pct: Prevalence in percent, or None when not reported.
        stat_id: Optional source row identifier, kept for traceability.
    """

    disease_id: str
    disease_name: str
    country_id: str
    year: int
    gender: Gender
    ages_0_18_pct: typing.Optional[float] = None
    ages_19_35_pct: typing.Optional[float] = None
    ages_36_60_pct: typing.Optional[float] = None
    ages_61_plus_pct: typing.Optional[float] = None
    pop_affected: typing.Optional[float] = None
    prevalence_pct: typing.Optional[float] = None
    stat_id: typing.Optional[str] = None

    def __post_init__(self):
        if isinstance(self.year, bool) or not isinstance(self.year, int):
            raise ValueError(f"year must be an integer, got {self.year!r}")

        if not isinstance(self.gender, Gender):
            raise ValueError(f"gender must be a Gender, got {type(self.gender).__name__}")

        if not str(self.disease_id).strip():
            raise ValueError("disease_id must not be empty")

        for column in (*AGE_COLUMNS.values(), "pop_affected", "prevalence_pct"):
            _check_non_negative(column, getattr(self, column))

    @property
    def natural_key(self) -> tuple[str, str, int, Gender]:
        return self.country_id, self.disease_id, self.year, self.gender

    def age_pct(self, bracket: str) -> typing.Optional[float]:
        """Reported percentage for one bracket key (e.g. '0_18')."""
        return getattr(self, AGE_COLUMNS[bracket])


def records_to_frame(records: typing.Iterable[DiseaseStatisticRecord]) -> pd.DataFrame:
    """
    Flatten records into a DataFrame, one column per field.
    Gender is rendered as its label and missing values become NaN.
    """
    rows = []
    for record in records:
        row = asdict(record)
        row["gender"] = record.gender.value
        rows.append(row)
    frame = pd.DataFrame(rows, columns=RECORD_COLUMNS)
    numeric = [*AGE_COLUMNS.values(), "pop_affected", "prevalence_pct"]
    frame[numeric] = frame[numeric].astype(float)
    return frame
