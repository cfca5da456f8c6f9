import pytest

from DBA.audit import (
    age_sum_drift,
    audit_entries,
    drifted_records,
    missingness,
    normalized_sum_check,
    summarize_records,
)
from DBA.imputation import normalize_records, normalized_to_frame
from DBA.profiles import build_profiles
from DBA.record import Gender, records_to_frame


@pytest.fixture
def frame(make_record):
    return records_to_frame(
        [
            make_record(ages=(60, 20, 15, 5), pop=1000, year=2012),
            make_record(ages=(60, 60, 60, 20), pop=None, year=2013, country="C2"),
            make_record(ages=(None, 50, 49.5, None), gender=Gender.FEMALE, pop=5, year=2014),
            make_record(disease="Diabetes", ages=(None, None, None, None), pop=10, year=2014),
        ]
    )


def test_summarize_records(frame):
    summary = summarize_records(frame)
    assert summary["total_records"] == 4
    assert summary["distinct_diseases"] == 2
    assert summary["records_per_disease"] == {"Malaria": 3, "Diabetes": 1}
    assert summary["genders"] == ["Female", "Male"]
    assert summary["years"] == [2012, 2013, 2014]


def test_missingness(frame):
    assert missingness(frame) == {
        "ages_0_18_pct": 2,
        "ages_19_35_pct": 1,
        "ages_36_60_pct": 1,
        "ages_61_plus_pct": 2,
        "pop_affected": 1,
    }


def test_age_sum_drift(frame):
    drift = age_sum_drift(frame)
    assert drift["min_sum_ages"] == 0
    assert drift["max_sum_ages"] == 200
    assert drift["off_by_more_than_5_pct"] == 2
    assert drift["off_by_more_than_1_pct"] == 2


def test_drifted_records(frame):
    drifted = drifted_records(frame)
    assert list(drifted["sum_ages"]) == [200, 0]
    assert list(drifted_records(frame, tolerance=0.1)["sum_ages"]) == [200, 99.5, 0]


def test_normalized_sum_check(make_record, config):
    records = [make_record(ages=(1, 2, 3, 4)), make_record(disease="Dengue")]
    normalized = normalized_to_frame(normalize_records(records, build_profiles(records, config), config))
    check = normalized_sum_check(normalized).iloc[0]
    assert check["rows_checked"] == 1
    assert check["avg_norm_sum"] == pytest.approx(100)


def test_audit_entries_flag_missing_and_drift(frame):
    entries = audit_entries(frame)
    steps = {entry.step for entry in entries}
    assert {"count-records", "missing-values", "age-sum-drift"} <= steps
    assert any(e.step == "missing-values" and e.level == "warn" for e in entries)
    assert any(e.step == "age-sum-drift" and e.level == "warn" for e in entries)


def test_audit_entries_on_empty_frame():
    entries = audit_entries(records_to_frame([]))
    assert entries[0].message == "0 records"


def test_audit_entries_list_each_drifted_record(frame):
    listed = [e for e in audit_entries(frame) if e.step == "drifted-record"]
    assert len(listed) == 2
    assert all(e.level == "warn" and e.subject == "-" for e in listed)
    assert listed[0].message == "sum 200 (Malaria, C2, 2013)"
    assert listed[1].message == "sum 0 (Diabetes, C1, 2014)"
