import math
import random

import pandas as pd
import pytest

from DBA.aggregation import (
    absolute_burden_by_group,
    child_burden_ranking,
    gender_comparison_table,
    round_shares,
    summary_table,
    unweighted_share_by_group,
    weighted_share_by_group,
    year_trend,
)
from DBA.config import AnalysisConfig
from DBA.imputation import normalize_records, normalized_to_frame
from DBA.profiles import build_profiles
from DBA.record import Gender, records_to_frame
from DBA.statistics import approximate_t_statistics, prevalence_stats

DISEASE_GENDER = ["disease_name", "gender"]


def _normalize(records, config):
    return normalized_to_frame(normalize_records(records, build_profiles(records, config), config))


@pytest.fixture
def mixed_records(make_record):
    return [
        make_record(ages=(60, 20, 15, 5), pop=1000, year=2012),
        make_record(ages=(None, None, None, None), pop=500, year=2013, country="C2"),
        make_record(ages=(30, 30, 20, 20), pop=250, year=2013, country="C3"),
        make_record(ages=(10, 30, 40, 20), gender=Gender.FEMALE, pop=800, year=2012),
        make_record(ages=(20.5, 29.5, 30, 20), gender=Gender.FEMALE, pop=None, year=2014),
        make_record(disease="Diabetes", ages=(2, 18, 45, 35), pop=4000, year=2015),
        make_record(disease="Diabetes", ages=(1, 9, 50, 40), gender=Gender.FEMALE, pop=3000, year=2015),
        make_record(disease="Measles", ages=(85, 10, 4, 1), pop=700, year=2016),
        make_record(disease="Dengue", pop=900, year=2016),
    ]


def test_weighted_share_worked_example(malaria_records, config):
    shares = weighted_share_by_group(_normalize(malaria_records, config), DISEASE_GENDER)
    row = shares.iloc[0]
    assert (row["disease_name"], row["gender"]) == ("Malaria", "Male")
    assert row["weighted_pct_0_18"] == pytest.approx(60.0)
    assert row["total_weight"] == 1500
    assert row["records_used"] == 2


def test_unweighted_share_ignores_null_records(make_record, config):
    """A planted record with no resolvable shares must not move the mean."""
    base = [
        make_record(disease="Dengue", disease_id="den", ages=(50, 20, 20, 10)),
        make_record(disease="Dengue", disease_id="den", ages=(30, 40, 20, 10), country="C2"),
    ]
    planted = make_record(disease="Dengue", disease_id="den2", country="C3")

    without = unweighted_share_by_group(_normalize(base, config), ["disease_name"])
    with_planted = unweighted_share_by_group(_normalize(base + [planted], config), ["disease_name"])

    assert with_planted["avg_pct_0_18_unweighted"].iloc[0] == without["avg_pct_0_18_unweighted"].iloc[0]
    assert with_planted["avg_pct_0_18_unweighted"].iloc[0] == pytest.approx(40)
    assert with_planted["records_used"].iloc[0] == 2


def test_weighted_share_excludes_missing_weights(mixed_records, config):
    shares = weighted_share_by_group(_normalize(mixed_records, config), DISEASE_GENDER)
    female = shares[(shares["disease_name"] == "Malaria") & (shares["gender"] == "Female")].iloc[0]
    # the record without pop_affected is left out of both sums
    assert female["total_weight"] == 800
    assert female["weighted_pct_0_18"] == pytest.approx(10)
    assert female["records_used"] == 1


def test_zero_weight_group_is_reported_as_null(make_record, config):
    records = [make_record(ages=(50, 50, 0, 0), pop=None)]
    shares = weighted_share_by_group(_normalize(records, config), DISEASE_GENDER)
    assert len(shares) == 1
    assert math.isnan(shares["weighted_pct_0_18"].iloc[0])
    assert shares["total_weight"].iloc[0] == 0


def test_excluded_records_are_counted(mixed_records, config):
    shares = weighted_share_by_group(_normalize(mixed_records, config), ["disease_name"])
    dengue = shares[shares["disease_name"] == "Dengue"].iloc[0]
    assert dengue["excluded_records"] == 1
    assert dengue["total_weight"] == 0
    assert math.isnan(dengue["weighted_pct_0_18"])


def test_absolute_burden_counts(malaria_records, config):
    burden = absolute_burden_by_group(_normalize(malaria_records, config), DISEASE_GENDER)
    row = burden.iloc[0]
    assert row["affected_0_18"] == pytest.approx(900)
    assert row["affected_61_plus"] == pytest.approx(75)
    assert row["total_weight"] == 1500
    total = sum(row[f"affected_{b}"] for b in ("0_18", "19_35", "36_60", "61_plus"))
    assert total == pytest.approx(row["total_weight"])


@pytest.mark.parametrize(
    "operation", [weighted_share_by_group, absolute_burden_by_group, unweighted_share_by_group]
)
def test_results_do_not_depend_on_row_order(mixed_records, config, operation):
    normalized = _normalize(mixed_records, config)
    expected = operation(normalized, DISEASE_GENDER)
    rng = random.Random(7)
    for _ in range(5):
        order = list(normalized.index)
        rng.shuffle(order)
        shuffled = normalized.loc[order].reset_index(drop=True)
        pd.testing.assert_frame_equal(operation(shuffled, DISEASE_GENDER), expected, check_exact=True)


def test_child_burden_ranking(mixed_records, config):
    ranking = child_burden_ranking(_normalize(mixed_records, config), top_n=2)
    assert list(ranking["disease_name"]) == ["Measles", "Malaria"]
    assert ranking["pct_children_weighted"].iloc[0] == pytest.approx(85)
    assert list(ranking.columns) == ["disease_name", "pct_children_weighted", "total_affected"]


def test_child_burden_ranking_skips_unweighted_diseases(mixed_records, config):
    ranking = child_burden_ranking(_normalize(mixed_records, config), top_n=10)
    assert "Dengue" not in set(ranking["disease_name"])


def test_gender_comparison_table(make_record):
    records = [
        make_record(ages=(60, 20, 15, 5), pop=100, prevalence=1.0),
        make_record(ages=(60, 20, 15, 5), pop=100, prevalence=3.0, country="C2"),
        make_record(ages=(40, 30, 20, 10), gender=Gender.FEMALE, pop=100, prevalence=4.0),
        make_record(ages=(40, 30, 20, 10), gender=Gender.FEMALE, pop=100, prevalence=6.0, country="C2"),
    ]
    config = AnalysisConfig(diseases=["Malaria"])
    normalized = _normalize(records, config)
    t_stats = approximate_t_statistics(prevalence_stats(records_to_frame(records), config))

    table = gender_comparison_table(normalized, t_stats, config)
    row = table.iloc[0]
    assert row["male_pct_0_18"] == pytest.approx(60)
    assert row["female_pct_0_18"] == pytest.approx(40)
    assert row["male_total_affected"] == 200
    assert row["approx_t_stat"] == pytest.approx(-3 / math.sqrt(2))


def test_year_trend(mixed_records, config):
    trend = year_trend(_normalize(mixed_records, config), "Malaria")
    assert list(trend["year"]) == [2012, 2013, 2014]
    assert list(trend.columns) == ["year", "weighted_pct_0_18", "total_affected"]
    assert trend["weighted_pct_0_18"].iloc[0] == pytest.approx((600 + 80) / 1800 * 100)
    assert trend["total_affected"].iloc[1] == 750
    # 2014 only has a record without population weight
    assert math.isnan(trend["weighted_pct_0_18"].iloc[2])


def test_summary_table(mixed_records, config):
    summary = summary_table(_normalize(mixed_records, config))
    assert list(summary.columns) == [
        "disease_name",
        "gender",
        "pct_0_18_weighted",
        "pct_19_35_weighted",
        "pct_36_60_weighted",
        "pct_61_plus_weighted",
        "total_estimated_affected",
    ]
    assert summary.iloc[0]["disease_name"] == "Diabetes"
    assert summary.iloc[0]["total_estimated_affected"] == 4000


def test_round_shares_leaves_engine_values_untouched():
    frame = pd.DataFrame({"weighted_pct_0_18": [33.33333], "total_weight": [1.23456]})
    rounded = round_shares(frame)
    assert rounded["weighted_pct_0_18"].iloc[0] == 33.33
    assert rounded["total_weight"].iloc[0] == 1.23456
    assert frame["weighted_pct_0_18"].iloc[0] == 33.33333


def test_disease_without_records_is_absent(mixed_records, config):
    normalized = _normalize(mixed_records, config)
    for table in (
        weighted_share_by_group(normalized, DISEASE_GENDER),
        unweighted_share_by_group(normalized, DISEASE_GENDER),
        absolute_burden_by_group(normalized, DISEASE_GENDER),
    ):
        assert "Cholera" not in set(table["disease_name"])
