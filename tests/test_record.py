import math

import pytest

from DBA.record import AGE_BRACKETS, DiseaseStatisticRecord, Gender, records_to_frame


def test_gender_from_label():
    """Known labels map to the enum regardless of case and whitespace."""
    assert Gender.from_label("Male") == Gender.MALE
    assert Gender.from_label(" f ") == Gender.FEMALE
    assert Gender.from_label("FEMALE") == Gender.FEMALE


def test_gender_invalid_label_raises():
    with pytest.raises(ValueError):
        Gender.from_label("Other")


def test_age_brackets_are_ordered():
    assert list(AGE_BRACKETS) == ["0_18", "19_35", "36_60", "61_plus"]


def test_record_rejects_negative_percentage(make_record):
    with pytest.raises(ValueError):
        make_record(ages=(-1, 20, 30, 40))


def test_record_rejects_non_integer_year():
    with pytest.raises(ValueError):
        DiseaseStatisticRecord(
            disease_id="1", disease_name="Malaria", country_id="C1", year="2015", gender=Gender.MALE
        )


def test_record_rejects_string_gender():
    with pytest.raises(ValueError):
        DiseaseStatisticRecord(
            disease_id="1", disease_name="Malaria", country_id="C1", year=2015, gender="Male"
        )


def test_natural_key_and_age_pct(make_record):
    record = make_record(ages=(10, None, 30, 40), year=2012, country="KE")
    assert record.natural_key == ("KE", "malaria", 2012, Gender.MALE)
    assert record.age_pct("0_18") == 10
    assert record.age_pct("19_35") is None


def test_records_to_frame_renders_gender_and_nan(make_record):
    frame = records_to_frame([make_record(ages=(10, None, 30, 40), pop=5)])
    assert frame.loc[0, "gender"] == "Male"
    assert math.isnan(frame.loc[0, "ages_19_35_pct"])
    assert frame.loc[0, "pop_affected"] == 5.0


def test_records_to_frame_empty_has_columns():
    frame = records_to_frame([])
    assert frame.empty
    assert "ages_61_plus_pct" in frame.columns
