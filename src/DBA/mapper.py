import abc
import logging
import typing

import pandas as pd
from stairval.notepad import Notepad

from .record import AGE_COLUMNS, DiseaseStatisticRecord, Gender

LOGGER = logging.getLogger(__name__)

# Columns every statistics table must carry (after renaming)
STATISTIC_KEY_COLUMNS = {
    "disease_id",
    "gender",
    *AGE_COLUMNS.values(),
    "pop_affected",
    "prevalence_pct",
}

# Either the context is inline, or it is looked up through cy_id
CONTEXT_COLUMNS = {"country_id", "year"}
DISEASE_LOOKUP_COLUMNS = {"disease_id", "disease_name"}
COUNTRY_YEAR_LOOKUP_COLUMNS = {"cy_id", "country_id", "year"}


class TableMapper(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def map_records(
            self, statistics: pd.DataFrame, notepad: Notepad
    ) -> typing.Sequence[DiseaseStatisticRecord]:
        # return validated records with a unique natural key
        raise NotImplementedError


class RecordMapper(TableMapper):
    def __init__(
            self,
            diseases: pd.DataFrame | None = None,
            country_years: pd.DataFrame | None = None,
    ):
        """
        - diseases: lookup table of disease_id → disease_name
        - country_years: lookup table of cy_id → (country_id, year)
        """
        self._diseases = diseases
        self._country_years = country_years

    def map_records(
            self, statistics: pd.DataFrame, notepad: Notepad
    ) -> list[DiseaseStatisticRecord]:
        """
        Process:
        1) attach country/year context (inline or via cy_id)
        2) check required columns
        3) parse each row into a DiseaseStatisticRecord
        4) reject rows repeating an already seen natural key
        """
        working = self._attach_context(statistics, notepad)
        if working is None:
            return []

        missing = sorted((STATISTIC_KEY_COLUMNS | CONTEXT_COLUMNS) - set(working.columns))
        if missing:
            notepad.add_error(f"Table 'statistics': missing required columns: {missing}")
            return []

        disease_names = self._disease_names(notepad)

        records: list[DiseaseStatisticRecord] = []
        seen: set[tuple] = set()
        for index, row in working.iterrows():
            record = self.parse_record_row(row, index, disease_names, notepad)
            if record is None:
                continue
            if record.natural_key in seen:
                notepad.add_error(
                    f"Table 'statistics', row {index}: duplicate record for "
                    f"country {record.country_id!r}, disease {record.disease_id!r}, "
                    f"year {record.year}, gender {record.gender.value}"
                )
                continue
            seen.add(record.natural_key)
            records.append(record)

        LOGGER.info("Mapped %d of %d statistics rows", len(records), len(working))
        return records

    @staticmethod
    def _to_identifier(value: typing.Any) -> str:
        """
        Identifiers read from CSV may come back as floats (12.0); render them as '12'.
        Empty/NaN -> empty string.
        """
        if value is None or pd.isna(value):
            return ""
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value).strip()

    @staticmethod
    def _to_optional_float(value: typing.Any) -> float | None:
        """
        Numeric parsing for nullable measures:
        - None, NaN and blank strings -> None
        - anything else must convert with float()
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if pd.isna(value):
            return None
        return float(value)

    @staticmethod
    def _to_year(value: typing.Any) -> int:
        if value is None or pd.isna(value):
            raise ValueError("year is missing")
        year = float(value)
        if not year.is_integer():
            raise ValueError(f"year must be a whole number, got {value!r}")
        return int(year)

    @staticmethod
    def parse_record_row(
            row: pd.Series, index: typing.Any, disease_names: dict[str, str], notepad: Notepad
    ) -> DiseaseStatisticRecord | None:
        """
        Parse a single statistics row. Returns None (and records an error) if the
        row cannot be turned into a valid record.
        """
        disease_id = RecordMapper._to_identifier(row.get("disease_id"))
        disease_name = disease_names.get(disease_id)
        if disease_name is None:
            # fall back on a name carried by the row itself, then on the id
            disease_name = RecordMapper._to_identifier(row.get("disease_name")) or disease_id
            if disease_names:
                notepad.add_warning(
                    f"Table 'statistics', row {index}: disease {disease_id!r} not in disease lookup"
                )

        try:
            return DiseaseStatisticRecord(
                disease_id=disease_id,
                disease_name=disease_name,
                country_id=RecordMapper._to_identifier(row.get("country_id")),
                year=RecordMapper._to_year(row.get("year")),
                gender=Gender.from_label(row.get("gender", "")),
                ages_0_18_pct=RecordMapper._to_optional_float(row.get("ages_0_18_pct")),
                ages_19_35_pct=RecordMapper._to_optional_float(row.get("ages_19_35_pct")),
                ages_36_60_pct=RecordMapper._to_optional_float(row.get("ages_36_60_pct")),
                ages_61_plus_pct=RecordMapper._to_optional_float(row.get("ages_61_plus_pct")),
                pop_affected=RecordMapper._to_optional_float(row.get("pop_affected")),
                prevalence_pct=RecordMapper._to_optional_float(row.get("prevalence_pct")),
                stat_id=RecordMapper._to_identifier(row.get("stat_id")) or None,
            )
        except (ValueError, TypeError) as e:
            notepad.add_error(f"Table 'statistics', row {index}: {e}")
            return None

    def _attach_context(self, statistics: pd.DataFrame, notepad: Notepad) -> pd.DataFrame | None:
        """
        Bring country_id and year into the statistics table. When they are not
        inline, resolve them through cy_id and the country-year lookup table.
        """
        if CONTEXT_COLUMNS.issubset(statistics.columns):
            return statistics

        if "cy_id" not in statistics.columns or self._country_years is None:
            notepad.add_error(
                "Table 'statistics': needs 'country_id' and 'year' columns, "
                "or 'cy_id' together with a country-year table"
            )
            return None

        missing = sorted(COUNTRY_YEAR_LOOKUP_COLUMNS - set(self._country_years.columns))
        if missing:
            notepad.add_error(f"Table 'country_years': missing required columns: {missing}")
            return None

        lookup = self._country_years[sorted(COUNTRY_YEAR_LOOKUP_COLUMNS)].drop_duplicates("cy_id")
        working = statistics.drop(columns=[c for c in CONTEXT_COLUMNS if c in statistics.columns])
        working = working.merge(lookup, on="cy_id", how="left", validate="many_to_one")
        working.index = statistics.index

        for index in working.index[working["year"].isna()]:
            notepad.add_error(
                f"Table 'statistics', row {index}: cy_id {statistics.at[index, 'cy_id']!r} "
                f"not in country-year table"
            )
        return working[working["year"].notna()]

    def _disease_names(self, notepad: Notepad) -> dict[str, str]:
        if self._diseases is None:
            return {}
        missing = sorted(DISEASE_LOOKUP_COLUMNS - set(self._diseases.columns))
        if missing:
            notepad.add_error(f"Table 'diseases': missing required columns: {missing}")
            return {}
        return {
            self._to_identifier(disease_id): str(name).strip()
            for disease_id, name in zip(self._diseases["disease_id"], self._diseases["disease_name"])
            if not pd.isna(name)
        }
