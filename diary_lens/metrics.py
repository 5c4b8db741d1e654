"""Derived time-series metrics computed from raw period statistics.

Everything here is a pure function of a sequence of RawPeriodStats (or
of rows derived from them): moving averages, seasonal baselines, the
yearly stability index, the cumulative elevation index, and a numeric
"where am I now" evaluation of the most recent months.

Results are returned as frozen dataclasses built in a single pass; no
function mutates a row after creating it.

Example:
    >>> from diary_lens.metrics import calc_monthly_deep_analysis, calc_stability_by_year
    >>> monthly = calc_monthly_deep_analysis(processor.get_period_stats("month"))
    >>> for index in calc_stability_by_year(monthly):
    ...     print(index.year, index.score)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import Literal

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy import stats as sp_stats

from .constants import (
    BASE_ELEVATION_M,
    CLIMB_SCALE_M,
    LONG_MA_WINDOW,
    MAX_CLIMB_M,
    MIN_HISTORICAL_MONTHS,
    MIN_SEASONAL_OCCURRENCES,
    RECENT_MONTHS,
    SHORT_MA_WINDOW,
    TREND_SLOPE_THRESHOLD,
)
from .exceptions import InvalidPeriodTypeError
from .processor import RawPeriodStats
from .scanner import top_emotion_words

__all__ = [
    "CurrentStateNumeric",
    "CurrentStateWeights",
    "ElevationPoint",
    "EmotionAnalysis",
    "EmotionAnalysisDaily",
    "MonthlyDeepAnalysis",
    "StabilityIndex",
    "StabilityWeights",
    "analyze_emotions",
    "analyze_emotions_daily",
    "calc_current_state",
    "calc_elevation",
    "calc_monthly_deep_analysis",
    "calc_stability_by_year",
    "linear_slope",
    "mean",
    "moving_average",
    "population_stdev",
    "seasonal_baselines",
    "stability_score",
]

logger = logging.getLogger(__name__)


# =============================================================================
# Statistics Helpers
# =============================================================================


def moving_average(values: Sequence[float], window: int) -> list[float | None]:
    """Trailing simple moving average.

    Partial windows are not averaged: the first ``window - 1`` positions
    are None, so early-series spikes are not presented as trends.

    Args:
        values: Series values in chronological order.
        window: Number of trailing values to average (>= 1).

    Returns:
        List the same length as values.

    Example:
        >>> moving_average([0.1, 0.2, 0.3, 0.4], 3)
        [None, None, 0.2, 0.3]
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    series = np.asarray(values, dtype=float)
    if len(series) < window:
        return [None] * len(series)
    means = sliding_window_view(series, window).mean(axis=1)
    return [None] * (window - 1) + [float(m) for m in means]


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean; 0.0 for an empty series."""
    series = np.fromiter(values, dtype=float)
    return float(series.mean()) if series.size else 0.0


def population_stdev(values: Sequence[float]) -> float:
    """Population standard deviation; 0.0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    return float(np.std(values))


def linear_slope(values: Sequence[float]) -> float:
    """Least-squares slope of values against their index (0 if undefined)."""
    if len(values) < 2:
        return 0.0
    return float(sp_stats.linregress(np.arange(len(values)), values).slope)


def _require_granularity(stats: Sequence[RawPeriodStats], granularity: str) -> None:
    for row in stats:
        if row.granularity != granularity:
            raise InvalidPeriodTypeError(
                row.granularity,
                message=f"Expected {granularity} periods, got {row.granularity!r} ({row.period}).",
            )


# =============================================================================
# Emotion Analysis
# =============================================================================


@dataclass(frozen=True, slots=True)
class EmotionAnalysis:
    """Monthly emotion summary.

    Attributes:
        month: Month key ("YYYY-MM").
        negative_ratio: Negative hits / (negative + positive hits).
        self_denial_count: Raw self-denial phrase hits.
        self_denial_rate: Self-denial hits per 1000 characters.
        top_emotion_words: Most frequent emotion words as (word, count).
    """

    month: str
    negative_ratio: float
    self_denial_count: int
    self_denial_rate: float
    top_emotion_words: tuple[tuple[str, int], ...]

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class EmotionAnalysisDaily:
    """Daily emotion summary; same fields as EmotionAnalysis, keyed by date."""

    date: str
    negative_ratio: float
    self_denial_count: int
    self_denial_rate: float
    top_emotion_words: tuple[tuple[str, int], ...]

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def analyze_emotions(
    stats: Sequence[RawPeriodStats],
    texts: Mapping[str, str],
) -> list[EmotionAnalysis]:
    """Build the monthly emotion series.

    Args:
        stats: Monthly RawPeriodStats.
        texts: Period text keyed by month, for top-word ranking.
    """
    _require_granularity(stats, "month")
    return [
        EmotionAnalysis(
            month=row.period,
            negative_ratio=row.negative_ratio,
            self_denial_count=row.count("self_denial"),
            self_denial_rate=row.rate("self_denial"),
            top_emotion_words=tuple(top_emotion_words(texts.get(row.period, ""))),
        )
        for row in stats
    ]


def analyze_emotions_daily(
    stats: Sequence[RawPeriodStats],
    texts: Mapping[str, str],
    *,
    every: int = 1,
) -> list[EmotionAnalysisDaily]:
    """Build the daily emotion series.

    Args:
        stats: Daily RawPeriodStats.
        texts: Period text keyed by date.
        every: Keep every n-th writing day (2 = every other day).
    """
    if every < 1:
        raise ValueError(f"every must be >= 1, got {every}")
    _require_granularity(stats, "day")
    return [
        EmotionAnalysisDaily(
            date=row.period,
            negative_ratio=row.negative_ratio,
            self_denial_count=row.count("self_denial"),
            self_denial_rate=row.rate("self_denial"),
            top_emotion_words=tuple(top_emotion_words(texts.get(row.period, ""))),
        )
        for row in stats[::every]
    ]


# =============================================================================
# Monthly Deep Analysis
# =============================================================================


@dataclass(frozen=True, slots=True)
class MonthlyDeepAnalysis:
    """One month of derived metrics.

    Rates are per 1000 characters. Moving averages and seasonal fields
    are None when there is not enough history to compute them.
    """

    month: str
    negative_ratio: float
    negative_ratio_ma3: float | None
    negative_ratio_ma6: float | None
    seasonal_baseline: float | None
    seasonal_deviation: float | None
    entry_count: int
    total_chars: int
    avg_sentence_length: float
    negative_count: int
    positive_count: int
    negative_rate: float
    positive_rate: float
    first_person_rate: float
    other_person_rate: float
    task_word_rate: float
    self_monitor_rate: float
    work_word_rate: float
    self_denial_count: int
    self_denial_rate: float
    physical_symptom_count: int
    physical_symptom_rate: float

    @property
    def year(self) -> str:
        return self.month[:4]

    @property
    def calendar_month(self) -> int:
        return int(self.month[5:7])

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def seasonal_baselines(points: Sequence[tuple[str, float]]) -> dict[int, float | None]:
    """Mean value per calendar month across all years.

    Args:
        points: ``(month_key, value)`` pairs, month_key as "YYYY-MM".

    Returns:
        Mapping of calendar month (1-12) to its mean, or None when the
        calendar month occurs only once (no baseline to compare against).

    Example:
        >>> seasonal_baselines([("2023-03", 0.2), ("2024-03", 0.4), ("2024-04", 0.5)])
        {3: 0.30000000000000004, 4: None}
    """
    by_month: dict[int, list[float]] = defaultdict(list)
    for key, value in points:
        by_month[int(key[5:7])].append(value)
    return {
        month: mean(values) if len(values) >= MIN_SEASONAL_OCCURRENCES else None
        for month, values in sorted(by_month.items())
    }


def calc_monthly_deep_analysis(stats: Sequence[RawPeriodStats]) -> list[MonthlyDeepAnalysis]:
    """Derive the monthly metric series from monthly raw stats.

    Args:
        stats: Monthly RawPeriodStats in chronological order.

    Returns:
        One MonthlyDeepAnalysis per month present in the data.

    Raises:
        InvalidPeriodTypeError: If stats are not monthly.
    """
    _require_granularity(stats, "month")

    ratios = [row.negative_ratio for row in stats]
    ma3 = moving_average(ratios, SHORT_MA_WINDOW)
    ma6 = moving_average(ratios, LONG_MA_WINDOW)
    baselines = seasonal_baselines([(row.period, row.negative_ratio) for row in stats])

    results: list[MonthlyDeepAnalysis] = []
    for i, row in enumerate(stats):
        baseline = baselines.get(row.calendar_month)
        results.append(
            MonthlyDeepAnalysis(
                month=row.period,
                negative_ratio=row.negative_ratio,
                negative_ratio_ma3=ma3[i],
                negative_ratio_ma6=ma6[i],
                seasonal_baseline=baseline,
                seasonal_deviation=None if baseline is None else row.negative_ratio - baseline,
                entry_count=row.entry_count,
                total_chars=row.total_chars,
                avg_sentence_length=row.avg_sentence_length,
                negative_count=row.count("negative"),
                positive_count=row.count("positive"),
                negative_rate=row.rate("negative"),
                positive_rate=row.rate("positive"),
                first_person_rate=row.rate("first_person"),
                other_person_rate=row.rate("other_person"),
                task_word_rate=row.rate("task"),
                self_monitor_rate=row.rate("self_monitor"),
                work_word_rate=row.rate("work"),
                self_denial_count=row.count("self_denial"),
                self_denial_rate=row.rate("self_denial"),
                physical_symptom_count=row.count("physical_symptom"),
                physical_symptom_rate=row.rate("physical_symptom"),
            )
        )
    return results


# =============================================================================
# Stability Index
# =============================================================================


@dataclass(frozen=True, slots=True)
class StabilityWeights:
    """Tunable coefficients of the stability score.

    score = positive_ratio * positive_weight
          + max(0, volatility_weight - volatility * volatility_penalty)
          + max(0, denial_weight - self_denial_avg * denial_penalty)

    clamped to [0, 100]. With the defaults, a volatility of 0.2 or ten
    self-denial phrases a month zero out their respective parts.
    """

    positive_weight: float = 40.0
    volatility_weight: float = 30.0
    volatility_penalty: float = 150.0
    denial_weight: float = 30.0
    denial_penalty: float = 3.0


@dataclass(frozen=True, slots=True)
class StabilityIndex:
    """Year-level stability score (0-100).

    Attributes:
        year: Year key ("YYYY").
        score: Composite score; higher is steadier.
        positive_ratio: 1 - mean monthly negative ratio.
        volatility: Stddev of the monthly negative ratios (lower is steadier).
        self_denial_avg: Mean self-denial hits per month.
        month_count: Months of data in the year.
    """

    year: str
    score: int
    positive_ratio: float
    volatility: float
    self_denial_avg: float
    month_count: int

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def stability_score(
    positive_ratio: float,
    volatility: float,
    self_denial_avg: float,
    weights: StabilityWeights = StabilityWeights(),
) -> int:
    """Composite stability score, clamped to [0, 100].

    Non-increasing in volatility and in self_denial_avg for fixed
    positive_ratio, as long as the penalties are non-negative.
    """
    positive_part = positive_ratio * weights.positive_weight
    volatility_part = max(0.0, weights.volatility_weight - volatility * weights.volatility_penalty)
    denial_part = max(0.0, weights.denial_weight - self_denial_avg * weights.denial_penalty)
    return round(min(100.0, max(0.0, positive_part + volatility_part + denial_part)))


def calc_stability_by_year(
    monthly: Sequence[MonthlyDeepAnalysis],
    weights: StabilityWeights = StabilityWeights(),
) -> list[StabilityIndex]:
    """Compute the stability index for each year with monthly data.

    Args:
        monthly: Monthly deep-analysis rows.
        weights: Score coefficients.

    Returns:
        One StabilityIndex per year, sorted by year.
    """
    by_year: dict[str, list[MonthlyDeepAnalysis]] = defaultdict(list)
    for row in monthly:
        by_year[row.year].append(row)

    results: list[StabilityIndex] = []
    for year in sorted(by_year):
        months = by_year[year]
        ratios = [m.negative_ratio for m in months]
        positive_ratio = 1.0 - mean(ratios)
        volatility = population_stdev(ratios)
        self_denial_avg = mean(m.self_denial_count for m in months)

        results.append(
            StabilityIndex(
                year=year,
                score=stability_score(positive_ratio, volatility, self_denial_avg, weights),
                positive_ratio=positive_ratio,
                volatility=volatility,
                self_denial_avg=self_denial_avg,
                month_count=len(months),
            )
        )
    return results


# =============================================================================
# Elevation Index
# =============================================================================


@dataclass(frozen=True, slots=True)
class ElevationPoint:
    """Cumulative elevation after one period.

    Attributes:
        period: Period key (year, month, or day).
        elevation: Cumulative elevation in metres.
        climb: Non-negative metres climbed in this period.
    """

    period: str
    elevation: float
    climb: float

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def period_climb(stats: RawPeriodStats) -> float:
    """Metres climbed in one period.

    The climb grows with the positive share minus the negative share of
    emotion hits, capped at MAX_CLIMB_M. Periods where negativity wins,
    or with no emotion words at all, climb 0 m; elevation is a ratchet,
    never a descent.
    """
    positive = stats.count("positive")
    negative = stats.count("negative")
    total = positive + negative
    if total == 0:
        return 0.0
    balance = (positive - negative) / total
    return min(MAX_CLIMB_M, CLIMB_SCALE_M * max(0.0, balance))


def calc_elevation(stats: Sequence[RawPeriodStats]) -> list[ElevationPoint]:
    """Accumulate elevation over a period series of any granularity.

    Args:
        stats: RawPeriodStats in chronological order.

    Returns:
        One ElevationPoint per period; elevation never decreases and
        starts from BASE_ELEVATION_M.
    """
    results: list[ElevationPoint] = []
    elevation = float(BASE_ELEVATION_M)
    for row in stats:
        climb = period_climb(row)
        elevation += climb
        results.append(ElevationPoint(period=row.period, elevation=elevation, climb=climb))
    return results


# =============================================================================
# Current State
# =============================================================================

NegRatioTrend = Literal["improving", "stable", "worsening"]
RiskLevel = Literal["low", "moderate", "elevated"]


@dataclass(frozen=True, slots=True)
class CurrentStateWeights:
    """Tunable coefficients of the overall stability of recent months."""

    negative_weight: float = 40.0
    negative_penalty: float = 80.0
    symptom_weight: float = 20.0
    symptom_penalty: float = 2.0
    volatility_weight: float = 20.0
    volatility_penalty: float = 100.0
    writing_weight: float = 20.0
    writing_bonus: float = 2.0
    elevated_negative_ratio: float = 0.6
    elevated_symptoms: float = 5.0
    moderate_negative_ratio: float = 0.4


@dataclass(frozen=True, slots=True)
class CurrentStateNumeric:
    """Numeric comparison of the last few months against history."""

    recent_neg_ratio: float
    recent_neg_ratio_ma: float
    recent_self_denial_rate: float
    recent_avg_sentence_length: float
    recent_first_person_rate: float
    recent_physical_symptoms: float
    recent_work_word_rate: float
    historical_neg_ratio: float
    historical_self_denial_rate: float
    historical_avg_sentence_length: float
    historical_first_person_rate: float
    historical_physical_symptoms: float
    neg_ratio_trend: NegRatioTrend
    overall_stability: int
    risk_level: RiskLevel

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def calc_current_state(
    monthly: Sequence[MonthlyDeepAnalysis],
    weights: CurrentStateWeights = CurrentStateWeights(),
) -> CurrentStateNumeric | None:
    """Evaluate the most recent months against the writer's own history.

    Returns:
        CurrentStateNumeric, or None when there are fewer than
        RECENT_MONTHS + MIN_HISTORICAL_MONTHS months of data.
    """
    if len(monthly) < RECENT_MONTHS + MIN_HISTORICAL_MONTHS:
        logger.debug("Current state needs %d months, have %d",
                     RECENT_MONTHS + MIN_HISTORICAL_MONTHS, len(monthly))
        return None

    recent = list(monthly[-RECENT_MONTHS:])
    historical = list(monthly[:-RECENT_MONTHS])

    def avg(rows: list[MonthlyDeepAnalysis], attr: str) -> float:
        return mean(getattr(m, attr) for m in rows)

    recent_ratios = [m.negative_ratio for m in recent]
    recent_neg = mean(recent_ratios)
    recent_symptoms = avg(recent, "physical_symptom_count")

    slope = linear_slope(recent_ratios)
    trend: NegRatioTrend
    if slope < -TREND_SLOPE_THRESHOLD:
        trend = "improving"
    elif slope > TREND_SLOPE_THRESHOLD:
        trend = "worsening"
    else:
        trend = "stable"

    w = weights
    overall = round(min(100.0, (
        max(0.0, w.negative_weight - recent_neg * w.negative_penalty)
        + max(0.0, w.symptom_weight - recent_symptoms * w.symptom_penalty)
        + max(0.0, w.volatility_weight - population_stdev(recent_ratios) * w.volatility_penalty)
        + min(w.writing_weight, avg(recent, "entry_count") * w.writing_bonus)
    )))

    risk: RiskLevel
    if recent_neg > w.elevated_negative_ratio or recent_symptoms > w.elevated_symptoms:
        risk = "elevated"
    elif recent_neg > w.moderate_negative_ratio or trend == "worsening":
        risk = "moderate"
    else:
        risk = "low"

    last_ma = recent[-1].negative_ratio_ma3

    return CurrentStateNumeric(
        recent_neg_ratio=recent_neg,
        recent_neg_ratio_ma=last_ma if last_ma is not None else recent_neg,
        recent_self_denial_rate=avg(recent, "self_denial_rate"),
        recent_avg_sentence_length=avg(recent, "avg_sentence_length"),
        recent_first_person_rate=avg(recent, "first_person_rate"),
        recent_physical_symptoms=recent_symptoms,
        recent_work_word_rate=avg(recent, "work_word_rate"),
        historical_neg_ratio=avg(historical, "negative_ratio"),
        historical_self_denial_rate=avg(historical, "self_denial_rate"),
        historical_avg_sentence_length=avg(historical, "avg_sentence_length"),
        historical_first_person_rate=avg(historical, "first_person_rate"),
        historical_physical_symptoms=avg(historical, "physical_symptom_count"),
        neg_ratio_trend=trend,
        overall_stability=overall,
        risk_level=risk,
    )
