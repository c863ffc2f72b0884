from datetime import datetime, timedelta

import pytest

from app.analytics.ab_test import (
    VariantRecord,
    analyze_experiment,
    recommend,
    relative_lift,
    two_proportion_ztest,
    variant_time_series,
    wilson_interval,
)


@pytest.fixture
def significant_records():
    return [VariantRecord("control", 1000, 120), VariantRecord("variant", 1000, 156)]


def test_significant_lift(significant_records):
    analysis = analyze_experiment(significant_records)

    control, variant = analysis["variants"]
    assert control["conversion_rate"] == 12.0
    assert variant["conversion_rate"] == 15.6
    assert variant["lift"] == 30.0
    assert variant["p_value"] == pytest.approx(0.0196, abs=0.001)
    assert variant["is_significant"] is True
    assert variant["exceeds_lift_threshold"] is True
    assert analysis["is_significant"] is True
    assert analysis["winner"] == "variant"
    assert analysis["control"] == "control"
    assert analysis["overall_conversion_rate"] == 13.8
    assert analysis["chi_square"] is None


def test_control_values_are_not_compared(significant_records):
    control = analyze_experiment(significant_records)["variants"][0]

    assert control["is_control"] is True
    assert control["lift"] is None
    assert control["p_value"] is None


def test_lift_is_null_without_control_users():
    analysis = analyze_experiment([VariantRecord("control", 0, 0), VariantRecord("b", 100, 10)])

    variant = analysis["variants"][1]
    assert variant["lift"] is None
    assert variant["z_score"] is None
    assert variant["is_significant"] is False
    assert analysis["winner"] == "b"


def test_small_samples_are_never_significant():
    analysis = analyze_experiment([VariantRecord("control", 50, 5), VariantRecord("b", 50, 15)])

    assert analysis["variants"][1]["sufficient_sample"] is False
    assert analysis["is_significant"] is False


def test_no_users_no_winner():
    analysis = analyze_experiment([VariantRecord("a", 0, 0), VariantRecord("b", 0, 0)])

    assert analysis["winner"] is None
    assert analysis["overall_conversion_rate"] == 0.0


def test_ties_go_to_the_control():
    analysis = analyze_experiment([VariantRecord("a", 100, 10), VariantRecord("b", 200, 20)])

    assert analysis["winner"] == "a"


def test_needs_two_variants():
    with pytest.raises(ValueError):
        analyze_experiment([VariantRecord("a", 100, 10)])


def test_chi_square_for_multiple_variants():
    analysis = analyze_experiment(
        [
            VariantRecord("a", 1000, 100),
            VariantRecord("b", 1000, 120),
            VariantRecord("c", 1000, 160),
        ]
    )

    assert analysis["chi_square"]["degrees_of_freedom"] == 2
    assert analysis["chi_square"]["p_value"] < 0.05


def test_relative_lift():
    assert relative_lift(15.6, 12.0) == pytest.approx(30.0)
    assert relative_lift(5.0, 0.0) is None


def test_ztest_undefined_when_nobody_converts():
    assert two_proportion_ztest(0, 100, 0, 100) == (None, None)


def test_wilson_interval_contains_rate():
    interval = wilson_interval(120, 1000, 0.95)

    assert interval["lower"] < 12.0 < interval["upper"]
    assert wilson_interval(0, 0, 0.95) == {"lower": 0.0, "upper": 0.0}


def test_recommend_implement_winner(significant_records):
    recommendation = recommend(analyze_experiment(significant_records), days_running=7)

    assert recommendation["action"] == "implement_winner"
    assert recommendation["confidence"] == "high"
    assert recommendation["recommended_variant"] == "variant"


def test_recommend_continue_on_small_samples():
    analysis = analyze_experiment([VariantRecord("a", 20, 2), VariantRecord("b", 20, 3)])

    recommendation = recommend(analysis, days_running=20)

    assert recommendation["action"] == "continue"
    assert recommendation["confidence"] == "low"
    assert any("two weeks" in message for message in recommendation["messages"])


def test_recommend_no_clear_winner():
    analysis = analyze_experiment([VariantRecord("a", 1000, 100), VariantRecord("b", 1000, 102)])

    assert recommend(analysis, days_running=3)["action"] == "no_clear_winner"


def test_variant_time_series():
    day_1 = datetime(2024, 1, 1, 10)
    day_2 = day_1 + timedelta(days=1)

    series = variant_time_series(
        ["control", "variant"],
        [("control", day_1), ("control", day_1), ("variant", day_1), ("control", day_2)],
        [("control", day_2)],
        granularity="day",
    )

    control, variant = series
    assert [p["period"] for p in control["data_points"]] == ["2024-01-01", "2024-01-02"]
    last = control["data_points"][-1]
    assert last["assignments"] == 1
    assert last["conversion_rate"] == 100.0
    assert last["cumulative_assignments"] == 3
    assert last["cumulative_conversion_rate"] == 33.33
    assert variant["data_points"][0]["conversions"] == 0
