from datetime import date

import pytest

from diary_lens.exceptions import InvalidPeriodTypeError
from diary_lens.metrics import (
    StabilityWeights,
    analyze_emotions,
    analyze_emotions_daily,
    calc_current_state,
    calc_elevation,
    calc_monthly_deep_analysis,
    calc_stability_by_year,
    linear_slope,
    mean,
    moving_average,
    population_stdev,
    seasonal_baselines,
    stability_score,
)
from diary_lens.processor import DiaryProcessor

from conftest import emotion_text, make_entry, month_keys, monthly_row, rows_from_ratios


# =============================================================================
# Helpers
# =============================================================================


def test_moving_average_needs_a_full_window():
    result = moving_average([0.1, 0.2, 0.3, 0.4], 3)
    assert result[:2] == [None, None]
    assert result[2] == pytest.approx(0.2)
    assert result[3] == pytest.approx(0.3)


def test_moving_average_rejects_bad_window():
    with pytest.raises(ValueError):
        moving_average([1.0], 0)


def test_linear_slope():
    assert linear_slope([0.2, 0.3, 0.4]) == pytest.approx(0.1)
    assert linear_slope([0.5]) == 0.0
    assert linear_slope([0.3, 0.3, 0.3]) == pytest.approx(0.0)


def test_moving_average_of_short_series_is_all_none():
    assert moving_average([0.1, 0.2], 3) == [None, None]


def test_mean_and_population_stdev():
    assert mean(iter([1.0, 2.0])) == pytest.approx(1.5)
    assert mean([]) == 0.0
    assert population_stdev([1.0, 2.0, 3.0, 4.0]) == pytest.approx(1.25 ** 0.5)
    assert population_stdev([5.0]) == 0.0
    assert isinstance(population_stdev([1.0, 3.0]), float)


def test_seasonal_baseline_requires_two_occurrences():
    baselines = seasonal_baselines([("2023-03", 0.2), ("2024-03", 0.4), ("2024-04", 0.5)])
    assert baselines[3] == pytest.approx(0.3)
    assert baselines[4] is None


# =============================================================================
# Monthly series
# =============================================================================


def test_monthly_deep_analysis_from_linear_corpus(linear_entries):
    stats = DiaryProcessor(linear_entries).get_period_stats("month")
    monthly = calc_monthly_deep_analysis(stats)

    assert [m.month for m in monthly] == month_keys(12)
    assert monthly[0].negative_ratio == pytest.approx(0.1)
    assert monthly[-1].negative_ratio == pytest.approx(0.6)
    assert monthly[0].negative_ratio_ma3 is None
    assert monthly[1].negative_ratio_ma3 is None
    assert monthly[2].negative_ratio_ma3 == pytest.approx(0.1 + 1 / 22)
    assert monthly[4].negative_ratio_ma6 is None
    assert monthly[5].negative_ratio_ma6 is not None
    # one year of data: no calendar month repeats
    assert all(m.seasonal_baseline is None and m.seasonal_deviation is None for m in monthly)


def test_monthly_analysis_rejects_daily_stats(linear_entries):
    daily = DiaryProcessor(linear_entries).get_period_stats("day")
    with pytest.raises(InvalidPeriodTypeError):
        calc_monthly_deep_analysis(daily)


def test_emotion_series():
    processor = DiaryProcessor([
        make_entry(date(2024, 1, 1), "辛い辛い嬉しい。自分なんか"),
        make_entry(date(2024, 1, 2), "嬉しい。"),
    ])
    monthly = analyze_emotions(processor.get_period_stats("month"), processor.get_period_texts("month"))
    assert monthly[0].month == "2024-01"
    assert monthly[0].self_denial_count == 1
    assert monthly[0].top_emotion_words[0] == ("辛い", 2)

    daily = analyze_emotions_daily(processor.get_period_stats("day"), processor.get_period_texts("day"), every=2)
    assert [d.date for d in daily] == ["2024-01-01"]


# =============================================================================
# Stability
# =============================================================================


@pytest.mark.parametrize("positive_ratio", [0.0, 0.5, 1.0])
def test_stability_score_is_monotonic(positive_ratio):
    volatilities = [0.0, 0.05, 0.1, 0.2, 0.4]
    scores = [stability_score(positive_ratio, v, 0.0) for v in volatilities]
    assert scores == sorted(scores, reverse=True)

    denials = [0.0, 1.0, 5.0, 20.0]
    scores = [stability_score(positive_ratio, 0.0, d) for d in denials]
    assert scores == sorted(scores, reverse=True)


def test_stability_score_is_clamped():
    assert stability_score(1.0, 0.0, 0.0) == 100
    assert stability_score(0.0, 1.0, 50.0) == 0
    heavy = StabilityWeights(positive_weight=500.0)
    assert stability_score(1.0, 0.0, 0.0, heavy) == 100


def test_stability_by_year():
    rows = [monthly_row(key, 0.3) for key in ("2023-11", "2023-12", "2024-01")]
    indices = calc_stability_by_year(rows)
    assert [i.year for i in indices] == ["2023", "2024"]
    assert indices[0].month_count == 2
    assert indices[0].volatility == 0.0
    assert indices[0].positive_ratio == pytest.approx(0.7)
    # 0.7 * 40 + 30 + 30
    assert indices[0].score == 88


# =============================================================================
# Elevation
# =============================================================================


def test_elevation_only_climbs():
    processor = DiaryProcessor([
        make_entry(date(2024, 1, 1), emotion_text(0, 4)),
        make_entry(date(2024, 2, 1), emotion_text(4, 0)),
        make_entry(date(2024, 3, 1), emotion_text(1, 3)),
        make_entry(date(2024, 4, 1), "今日は晴れた。"),
    ])
    points = calc_elevation(processor.get_period_stats("month"))

    assert [p.climb for p in points] == pytest.approx([300.0, 0.0, 150.0, 0.0])
    assert [p.elevation for p in points] == pytest.approx([1300.0, 1300.0, 1450.0, 1450.0])
    elevations = [p.elevation for p in points]
    assert elevations == sorted(elevations)


def test_elevation_by_year(linear_entries):
    points = calc_elevation(DiaryProcessor(linear_entries).get_period_stats("year"))
    assert len(points) == 1
    assert points[0].elevation >= 1000.0


# =============================================================================
# Current state
# =============================================================================


def test_current_state_needs_six_months():
    assert calc_current_state(rows_from_ratios([0.2] * 5)) is None


def test_current_state_elevated_when_recent_negativity_is_high():
    state = calc_current_state(rows_from_ratios([0.2, 0.2, 0.2, 0.7, 0.7, 0.7]))
    assert state.risk_level == "elevated"
    assert state.neg_ratio_trend == "stable"
    assert state.recent_neg_ratio == pytest.approx(0.7)
    assert state.historical_neg_ratio == pytest.approx(0.2)
    # 0 (negativity) + 20 (symptoms) + 20 (volatility) + 20 (writing)
    assert state.overall_stability == 60


def test_current_state_low_risk():
    state = calc_current_state(rows_from_ratios([0.2] * 6))
    assert state.risk_level == "low"
    assert state.overall_stability == 84


def test_current_state_worsening_trend_is_moderate():
    state = calc_current_state(rows_from_ratios([0.2, 0.2, 0.2, 0.2, 0.3, 0.4]))
    assert state.neg_ratio_trend == "worsening"
    assert state.risk_level == "moderate"


def test_current_state_symptoms_raise_risk():
    rows = rows_from_ratios([0.2] * 3) + [
        monthly_row(key, 0.2, physical_symptom_count=8) for key in ("2023-04", "2023-05", "2023-06")
    ]
    state = calc_current_state(rows)
    assert state.risk_level == "elevated"
    assert state.recent_physical_symptoms == pytest.approx(8.0)
