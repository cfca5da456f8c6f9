import pytest

from DBA.config import AnalysisConfig
from DBA.record import DiseaseStatisticRecord, Gender


@pytest.fixture
def make_record():
    """
    Factory for DiseaseStatisticRecord with sensible defaults.
    `ages` is a 4-tuple for the brackets 0–18, 19–35, 36–60, 61+.
    """

    def _make(
        disease="Malaria",
        gender=Gender.MALE,
        year=2015,
        country="C1",
        ages=(None, None, None, None),
        pop=None,
        prevalence=None,
        disease_id=None,
    ):
        return DiseaseStatisticRecord(
            disease_id=disease_id or disease.lower(),
            disease_name=disease,
            country_id=country,
            year=year,
            gender=gender,
            ages_0_18_pct=ages[0],
            ages_19_35_pct=ages[1],
            ages_36_60_pct=ages[2],
            ages_61_plus_pct=ages[3],
            pop_affected=pop,
            prevalence_pct=prevalence,
        )

    return _make


@pytest.fixture
def config() -> AnalysisConfig:
    """Default window 2010–2020 with every disease selected."""
    return AnalysisConfig(diseases=None)


@pytest.fixture
def malaria_records(make_record):
    """
    The worked example: one complete Malaria/Male record and one with no age data.
    """
    return [
        make_record(ages=(60, 20, 15, 5), pop=1000, country="C1"),
        make_record(pop=500, country="C2"),
    ]
