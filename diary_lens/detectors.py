"""Pattern detectors over the derived metric series.

Each detector is a pure function of already-aggregated data:

- detect_trend_shifts: sustained changes in the monthly negative ratio
  (or in writing style) between adjacent three-month windows.
- calc_seasonal_cross_stats: per-season means plus a chi-square test of
  each season's negative share against the other seasons.
- calc_vocabulary_depth / interpret_depth: how "deep" the negative
  vocabulary is, and how that changed between two periods.
- interpret_first_person_shift: what a change in self-reference means
  when read together with other-person references and negativity.
- calc_predictive_indicators: precursor words before negative spikes,
  current month-over-month warning signals, and lagged correlations
  between physical symptoms and later negativity.

Insufficient data never raises; detectors return empty results or an
``insufficient_data`` label and log at DEBUG.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass, replace
from datetime import date, timedelta
from typing import TYPE_CHECKING, Literal

from scipy.stats import chi2_contingency, pearsonr

from .constants import (
    DEPTH_CHANGE_THRESHOLD,
    FIRST_PERSON_CHANGE_THRESHOLD,
    FREQUENCY_CHANGE_THRESHOLD,
    MAX_PRECURSOR_WORDS,
    MAX_SYMPTOM_LAG_DAYS,
    MIN_CORRELATION_SAMPLES,
    MIN_CORRELATION_STRENGTH,
    MIN_FIRST_PERSON_PERIODS,
    MIN_TREND_MONTHS,
    NEGATIVE_RATIO_CHANGE_THRESHOLD,
    PLATEAU_TOLERANCE,
    PLATEAU_WINDOW,
    PRECURSOR_BASELINE_FACTOR,
    PRECURSOR_LOOKBACK_DAYS,
    SIGNIFICANCE_LEVEL,
    SPIKE_SIGMA,
    TREND_THRESHOLD_FLOOR,
    TREND_THRESHOLD_SIGMA,
    TREND_WINDOW,
    VOCAB_SHIFT_THRESHOLD,
)
from .exceptions import InvalidPeriodTypeError
from .lexicon import PRECURSOR_CANDIDATES
from .metrics import MonthlyDeepAnalysis, mean, population_stdev
from .processor import RawPeriodStats, scan_entries
from .scanner import count_occurrences, normalize_rate

if TYPE_CHECKING:
    from .entry import DiaryEntry

__all__ = [
    "ActiveSignal",
    "DepthInterpretation",
    "FirstPersonShiftInterpretation",
    "PrecursorWord",
    "PredictiveIndicator",
    "SEASON_LABELS",
    "SeasonalCrossStats",
    "SymptomCorrelation",
    "TrendShift",
    "TrendShiftMetrics",
    "VocabularyDepth",
    "calc_predictive_indicators",
    "calc_seasonal_cross_stats",
    "calc_vocabulary_depth",
    "detect_trend_shifts",
    "interpret_depth",
    "interpret_first_person_shift",
    "season_for_month",
    "split_early_late",
]

logger = logging.getLogger(__name__)


def _relative_change(before: float, after: float) -> float:
    """(after - before) / before; a rise from zero counts as +100%."""
    if before > 0:
        return (after - before) / before
    return 1.0 if after > 0 else 0.0


# =============================================================================
# Trend Shifts
# =============================================================================

ShiftType = Literal["deterioration", "recovery", "plateau", "vocabulary_shift"]


@dataclass(frozen=True, slots=True)
class TrendShiftMetrics:
    """Before/after snapshot of the windows around a shift."""

    neg_ratio_before: float
    neg_ratio_after: float
    vocab_shift_score: float
    sentence_length_change: float
    first_person_change: float


@dataclass(frozen=True, slots=True)
class TrendShift:
    """A sustained change between two months (inclusive).

    Attributes:
        start_month: First month of the interval ("YYYY-MM").
        end_month: Last month of the interval; never before start_month.
        type: deterioration, recovery, plateau, or vocabulary_shift.
        magnitude: |negative-ratio difference| in standard deviations.
        metrics: Before/after window snapshot.
        description: Human-readable summary.
    """

    start_month: str
    end_month: str
    type: ShiftType
    magnitude: float
    metrics: TrendShiftMetrics
    description: str

    def __post_init__(self) -> None:
        if self.start_month > self.end_month:
            raise ValueError(f"start_month {self.start_month} is after end_month {self.end_month}")

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def _describe_shift(shift_type: ShiftType, metrics: TrendShiftMetrics, rates: dict[str, float]) -> str:
    parts: list[str] = []
    points = round(abs(metrics.neg_ratio_after - metrics.neg_ratio_before) * 100)

    if shift_type == "deterioration":
        parts.append(f"negative ratio up {points}pt")
    elif shift_type == "recovery":
        parts.append(f"negative ratio down {points}pt")
    elif shift_type == "plateau":
        parts.append(f"negative ratio held near {round(metrics.neg_ratio_after * 100)}%")

    if metrics.vocab_shift_score > VOCAB_SHIFT_THRESHOLD:
        if rates["fp_after"] > rates["fp_before"] * 1.3:
            parts.append("more first-person references (turning inward)")
        elif rates["fp_after"] < rates["fp_before"] * 0.7:
            parts.append("fewer first-person references (outward, role-focused)")
        if rates["sm_after"] < rates["sm_before"] * 0.5:
            parts.append("self-monitoring words faded")
        elif rates["sm_after"] > rates["sm_before"] * 1.5:
            parts.append("more self-monitoring words")
        if abs(metrics.sentence_length_change) > 10:
            parts.append("longer sentences" if metrics.sentence_length_change > 0 else "shorter sentences")

    return "; ".join(parts) or "change detected"


def _window_snapshot(
    before: Sequence[MonthlyDeepAnalysis],
    after: Sequence[MonthlyDeepAnalysis],
) -> tuple[TrendShiftMetrics, dict[str, float]]:
    rates = {
        "neg_before": mean(m.negative_ratio for m in before),
        "neg_after": mean(m.negative_ratio for m in after),
        "fp_before": mean(m.first_person_rate for m in before),
        "fp_after": mean(m.first_person_rate for m in after),
        "sl_before": mean(m.avg_sentence_length for m in before),
        "sl_after": mean(m.avg_sentence_length for m in after),
        "sm_before": mean(m.self_monitor_rate for m in before),
        "sm_after": mean(m.self_monitor_rate for m in after),
    }
    vocab_shift = (
        abs(rates["fp_after"] - rates["fp_before"]) / max(rates["fp_before"], 0.01)
        + abs(rates["sl_after"] - rates["sl_before"]) / max(rates["sl_before"], 1.0)
        + abs(rates["sm_after"] - rates["sm_before"]) / max(rates["sm_before"], 0.01)
    )
    metrics = TrendShiftMetrics(
        neg_ratio_before=rates["neg_before"],
        neg_ratio_after=rates["neg_after"],
        vocab_shift_score=vocab_shift,
        sentence_length_change=rates["sl_after"] - rates["sl_before"],
        first_person_change=rates["fp_after"] - rates["fp_before"],
    )
    return metrics, rates


def detect_trend_shifts(monthly: Sequence[MonthlyDeepAnalysis]) -> list[TrendShift]:
    """Detect sustained shifts in the monthly series.

    At every split point the mean negative ratio of the preceding
    TREND_WINDOW months is compared with the following TREND_WINDOW
    months. A difference beyond ``max(0.05, 0.8 * stddev)`` is a
    deterioration or recovery; otherwise a large composite change in
    first-person rate, sentence length and self-monitor rate is a
    vocabulary shift.

    Adjacent detections of the same type are merged into one interval.
    A detection of a different type that overlaps the previous interval
    is trimmed to begin after it, so returned intervals never overlap.
    A directional shift followed by PLATEAU_WINDOW flat months also
    yields a plateau interval.

    Args:
        monthly: Monthly rows in chronological order.

    Returns:
        Shifts ordered by start month; [] when there are fewer than
        MIN_TREND_MONTHS months or the series is quiet.
    """
    n = len(monthly)
    if n < MIN_TREND_MONTHS:
        logger.debug("Trend shifts need %d months, have %d", MIN_TREND_MONTHS, n)
        return []

    ratios = [m.negative_ratio for m in monthly]
    std = population_stdev(ratios)
    threshold = max(TREND_THRESHOLD_FLOOR, std * TREND_THRESHOLD_SIGMA)

    # Each entry: (start index, end index, shift)
    found: list[tuple[int, int, TrendShift]] = []

    for i in range(TREND_WINDOW, n - TREND_WINDOW + 1):
        before = monthly[i - TREND_WINDOW : i]
        after = monthly[i : i + TREND_WINDOW]
        metrics, rates = _window_snapshot(before, after)
        diff = metrics.neg_ratio_after - metrics.neg_ratio_before

        shift_type: ShiftType
        if diff > threshold:
            shift_type = "deterioration"
        elif diff < -threshold:
            shift_type = "recovery"
        elif metrics.vocab_shift_score > VOCAB_SHIFT_THRESHOLD:
            shift_type = "vocabulary_shift"
        else:
            continue

        magnitude = abs(diff) / std if std > 0 else 0.0
        start, end = i - TREND_WINDOW, i + TREND_WINDOW - 1

        if found and start <= found[-1][1]:
            last_start, last_end, last = found[-1]
            if last.type == shift_type:
                merged_metrics = replace(
                    last.metrics,
                    neg_ratio_after=metrics.neg_ratio_after,
                    vocab_shift_score=max(last.metrics.vocab_shift_score, metrics.vocab_shift_score),
                )
                found[-1] = (last_start, end, replace(
                    last,
                    end_month=monthly[end].month,
                    magnitude=max(last.magnitude, magnitude),
                    metrics=merged_metrics,
                    description=_describe_shift(shift_type, merged_metrics, rates),
                ))
                continue
            start = last_end + 1
            if start >= i:
                continue

        found.append((start, end, TrendShift(
            start_month=monthly[start].month,
            end_month=monthly[end].month,
            type=shift_type,
            magnitude=magnitude,
            metrics=metrics,
            description=_describe_shift(shift_type, metrics, rates),
        )))

    shifts = [shift for _, _, shift in found]
    shifts.extend(_detect_plateaus(monthly, found))
    shifts.sort(key=lambda s: s.start_month)

    logger.debug("Detected %d trend shifts over %d months (threshold %.3f)", len(shifts), n, threshold)
    return shifts


def _detect_plateaus(
    monthly: Sequence[MonthlyDeepAnalysis],
    found: Sequence[tuple[int, int, TrendShift]],
) -> list[TrendShift]:
    covered = {i for start, end, _ in found for i in range(start, end + 1)}
    plateaus: list[TrendShift] = []

    for _, end, shift in found:
        if shift.type not in ("deterioration", "recovery"):
            continue
        window = range(end + 1, end + 1 + PLATEAU_WINDOW)
        if window.stop > len(monthly) or covered.intersection(window):
            continue
        values = [monthly[i].negative_ratio for i in window]
        if max(values) - min(values) > PLATEAU_TOLERANCE:
            continue

        level = mean(values)
        metrics = TrendShiftMetrics(
            neg_ratio_before=level,
            neg_ratio_after=level,
            vocab_shift_score=0.0,
            sentence_length_change=0.0,
            first_person_change=0.0,
        )
        plateaus.append(TrendShift(
            start_month=monthly[window.start].month,
            end_month=monthly[window.stop - 1].month,
            type="plateau",
            magnitude=0.0,
            metrics=metrics,
            description=_describe_shift("plateau", metrics, {}),
        ))
        covered.update(window)

    return plateaus


# =============================================================================
# Seasonal Cross Statistics
# =============================================================================

Season = Literal["spring", "summer", "autumn", "winter"]

SEASON_LABELS: dict[str, str] = {
    "spring": "Spring (Mar-May)",
    "summer": "Summer (Jun-Aug)",
    "autumn": "Autumn (Sep-Nov)",
    "winter": "Winter (Dec-Feb)",
}


def season_for_month(month: int) -> Season:
    """Map a calendar month to its meteorological season.

    Raises:
        ValueError: If month is not in 1..12.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "autumn"
    return "winter"


@dataclass(frozen=True, slots=True)
class SeasonalCrossStats:
    """Per-season averages across every year, with a significance test.

    Averages are means of the monthly values mapped to the season.
    ``p_value`` comes from a chi-square test (Yates' correction) of the
    season's negative hits per character against all other seasons pooled,
    so it compares negative rates rather than the negative share.
    """

    season: Season
    label: str
    avg_negative_ratio: float
    avg_sentence_length: float
    avg_work_word_rate: float
    avg_physical_symptoms: float
    avg_first_person_rate: float
    avg_self_monitor_rate: float
    avg_self_denial_rate: float
    negative_count: int
    positive_count: int
    total_chars: int
    entry_count: int
    month_count: int
    p_value: float
    significant: bool

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def _chi_square_p_value(table: list[list[int]]) -> float:
    """p-value of a 2x2 contingency table; 1.0 for degenerate tables."""
    rows = [sum(row) for row in table]
    cols = [sum(col) for col in zip(*table)]
    if 0 in rows or 0 in cols:
        return 1.0
    _, p_value, _, _ = chi2_contingency(table, correction=True)
    p_value = float(p_value)
    return 1.0 if math.isnan(p_value) else p_value


def calc_seasonal_cross_stats(monthly: Sequence[MonthlyDeepAnalysis]) -> list[SeasonalCrossStats]:
    """Aggregate monthly rows by season across all years.

    Returns:
        One row per season that has data, in spring/summer/autumn/winter
        order. Seasons without any month are omitted.
    """
    by_season: dict[str, list[MonthlyDeepAnalysis]] = {season: [] for season in SEASON_LABELS}
    for row in monthly:
        by_season[season_for_month(row.calendar_month)].append(row)

    total_negative = sum(m.negative_count for m in monthly)
    total_chars = sum(m.total_chars for m in monthly)

    results: list[SeasonalCrossStats] = []
    for season, months in by_season.items():
        if not months:
            continue

        negative = sum(m.negative_count for m in months)
        chars = sum(m.total_chars for m in months)
        rest_negative = total_negative - negative
        # Negative hits against all other characters: compares negative rates
        p_value = _chi_square_p_value([
            [negative, max(0, chars - negative)],
            [rest_negative, max(0, total_chars - chars - rest_negative)],
        ])

        results.append(SeasonalCrossStats(
            season=season,  # type: ignore[arg-type]
            label=SEASON_LABELS[season],
            avg_negative_ratio=mean(m.negative_ratio for m in months),
            avg_sentence_length=mean(m.avg_sentence_length for m in months),
            avg_work_word_rate=mean(m.work_word_rate for m in months),
            avg_physical_symptoms=mean(m.physical_symptom_count for m in months),
            avg_first_person_rate=mean(m.first_person_rate for m in months),
            avg_self_monitor_rate=mean(m.self_monitor_rate for m in months),
            avg_self_denial_rate=mean(m.self_denial_rate for m in months),
            negative_count=negative,
            positive_count=sum(m.positive_count for m in months),
            total_chars=chars,
            entry_count=sum(m.entry_count for m in months),
            month_count=len(months),
            p_value=p_value,
            significant=p_value < SIGNIFICANCE_LEVEL,
        ))
    return results


# =============================================================================
# Vocabulary Depth
# =============================================================================

DepthLabel = Literal[
    "frequency_down_depth_up",
    "frequency_down_depth_down",
    "frequency_up_depth_up",
    "stable",
    "other",
]


@dataclass(frozen=True, slots=True)
class VocabularyDepth:
    """Depth of negative vocabulary and subject balance for one period.

    Attributes:
        period: Human-readable period label.
        light_neg_count: Hits of everyday-grumble words.
        deep_neg_count: Hits of despair-level words.
        first_person_count: Self-reference hits.
        other_person_count: Hits of words referring to other people.
        negative_rate: Negative hits per 1000 characters.
        avg_sentence_length: Mean characters per sentence.
        question_count: Question sentences.
        exclamation_count: Exclamation sentences.
        entry_count: Entries in the period.
    """

    period: str
    light_neg_count: int
    deep_neg_count: int
    first_person_count: int
    other_person_count: int
    negative_rate: float
    avg_sentence_length: float
    question_count: int
    exclamation_count: int
    entry_count: int

    @property
    def depth_ratio(self) -> float:
        """deep / (light + deep), 0 when neither occurs."""
        total = self.light_neg_count + self.deep_neg_count
        return self.deep_neg_count / total if total else 0.0

    @property
    def subject_ratio(self) -> float:
        """other / (first + other), 0 when neither occurs."""
        total = self.first_person_count + self.other_person_count
        return self.other_person_count / total if total else 0.0

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["depth_ratio"] = self.depth_ratio
        data["subject_ratio"] = self.subject_ratio
        return data


def calc_vocabulary_depth(entries: Sequence[DiaryEntry], label: str) -> VocabularyDepth:
    """Measure vocabulary depth over a group of entries."""
    scan = scan_entries(entries)
    return VocabularyDepth(
        period=label,
        light_neg_count=scan.count("light_negative"),
        deep_neg_count=scan.count("deep_negative"),
        first_person_count=scan.count("first_person"),
        other_person_count=scan.count("other_person"),
        negative_rate=scan.rate("negative"),
        avg_sentence_length=scan.avg_sentence_length,
        question_count=scan.question_count,
        exclamation_count=scan.exclamation_count,
        entry_count=len(entries),
    )


def split_early_late(entries: Iterable[DiaryEntry]) -> tuple[list[DiaryEntry], list[DiaryEntry]]:
    """Split dated entries at the chronological midpoint.

    Undated entries are dropped. With an odd count, the later half gets
    the extra entry.
    """
    dated = sorted((e for e in entries if e.date is not None), key=lambda e: e.date)
    middle = len(dated) // 2
    return dated[:middle], dated[middle:]


@dataclass(frozen=True, slots=True)
class DepthInterpretation:
    """Qualitative reading of an early vs late VocabularyDepth pair.

    Fewer negative words is not growth on its own: if what remains is
    deeper, the writer may simply be writing less about ordinary
    frustrations while the serious ones intensify.
    """

    early: VocabularyDepth
    late: VocabularyDepth

    @property
    def frequency_change(self) -> float | None:
        """Relative change in negative rate; None when the early rate is 0."""
        if self.early.negative_rate > 0:
            return (self.late.negative_rate - self.early.negative_rate) / self.early.negative_rate
        return None

    @property
    def depth_change(self) -> float:
        return self.late.depth_ratio - self.early.depth_ratio

    @property
    def subject_change(self) -> float:
        return self.late.subject_ratio - self.early.subject_ratio

    @property
    def _frequency_direction(self) -> str:
        change = self.frequency_change
        if change is None:
            return "up" if self.late.negative_rate > 0 else "flat"
        if change > FREQUENCY_CHANGE_THRESHOLD:
            return "up"
        if change < -FREQUENCY_CHANGE_THRESHOLD:
            return "down"
        return "flat"

    @property
    def _depth_direction(self) -> str:
        if self.depth_change > DEPTH_CHANGE_THRESHOLD:
            return "up"
        if self.depth_change < -DEPTH_CHANGE_THRESHOLD:
            return "down"
        return "flat"

    @property
    def label(self) -> DepthLabel:
        directions = (self._frequency_direction, self._depth_direction)
        if directions == ("down", "up"):
            return "frequency_down_depth_up"
        if directions == ("down", "down"):
            return "frequency_down_depth_down"
        if directions == ("up", "up"):
            return "frequency_up_depth_up"
        if directions == ("flat", "flat"):
            return "stable"
        return "other"

    def to_dict(self) -> dict[str, object]:
        return {
            "early": self.early.to_dict(),
            "late": self.late.to_dict(),
            "frequency_change": self.frequency_change,
            "depth_change": self.depth_change,
            "subject_change": self.subject_change,
            "label": self.label,
        }


def interpret_depth(early: VocabularyDepth, late: VocabularyDepth) -> DepthInterpretation:
    return DepthInterpretation(early=early, late=late)


# =============================================================================
# First-Person Shift
# =============================================================================

FirstPersonLabel = Literal[
    "role_persona",
    "outward_adaptation",
    "self_disclosure_decrease",
    "genuine_growth",
    "no_shift",
    "insufficient_data",
]


@dataclass(frozen=True, slots=True)
class FirstPersonShiftInterpretation:
    """First-half vs second-half comparison of self-reference.

    A falling first-person rate can mean very different things:
    a social mask (role_persona), turning attention outward
    (outward_adaptation), writing less about oneself
    (self_disclosure_decrease), or, when self-reference holds while
    negativity falls, genuine improvement (genuine_growth).
    With enough data and none of these patterns the label is no_shift.
    """

    period_count: int
    first_person_before: float
    first_person_after: float
    other_person_before: float
    other_person_after: float
    negative_ratio_before: float
    negative_ratio_after: float

    @property
    def first_person_change(self) -> float:
        return _relative_change(self.first_person_before, self.first_person_after)

    @property
    def other_person_change(self) -> float:
        return _relative_change(self.other_person_before, self.other_person_after)

    @property
    def negative_ratio_change(self) -> float:
        return self.negative_ratio_after - self.negative_ratio_before

    @property
    def label(self) -> FirstPersonLabel:
        if self.period_count < MIN_FIRST_PERSON_PERIODS:
            return "insufficient_data"

        first_falls = self.first_person_change < -FIRST_PERSON_CHANGE_THRESHOLD
        other_rises = self.other_person_change > FIRST_PERSON_CHANGE_THRESHOLD
        negativity_falls = self.negative_ratio_change < -NEGATIVE_RATIO_CHANGE_THRESHOLD

        if first_falls and other_rises and negativity_falls:
            return "role_persona"
        if first_falls and other_rises:
            return "outward_adaptation"
        if first_falls:
            return "self_disclosure_decrease"
        if negativity_falls:
            return "genuine_growth"
        return "no_shift"

    @property
    def shift_detected(self) -> bool:
        return self.label not in ("no_shift", "insufficient_data")

    @property
    def evidence(self) -> list[str]:
        if self.period_count < MIN_FIRST_PERSON_PERIODS:
            return [f"only {self.period_count} periods of data"]
        return [
            f"first-person rate {self.first_person_before:.1f} -> {self.first_person_after:.1f}"
            f" per 1000 chars ({self.first_person_change:+.0%})",
            f"other-person rate {self.other_person_before:.1f} -> {self.other_person_after:.1f}"
            f" per 1000 chars ({self.other_person_change:+.0%})",
            f"negative ratio {self.negative_ratio_before:.0%} -> {self.negative_ratio_after:.0%}",
        ]

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["label"] = self.label
        data["shift_detected"] = self.shift_detected
        data["evidence"] = self.evidence
        return data


def interpret_first_person_shift(monthly: Sequence[MonthlyDeepAnalysis]) -> FirstPersonShiftInterpretation:
    """Compare the first and second halves of the monthly series."""
    n = len(monthly)
    if n < MIN_FIRST_PERSON_PERIODS:
        logger.debug("First-person shift needs %d periods, have %d", MIN_FIRST_PERSON_PERIODS, n)
        return FirstPersonShiftInterpretation(n, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    middle = n // 2
    before, after = monthly[:middle], monthly[middle:]
    return FirstPersonShiftInterpretation(
        period_count=n,
        first_person_before=mean(m.first_person_rate for m in before),
        first_person_after=mean(m.first_person_rate for m in after),
        other_person_before=mean(m.other_person_rate for m in before),
        other_person_after=mean(m.other_person_rate for m in after),
        negative_ratio_before=mean(m.negative_ratio for m in before),
        negative_ratio_after=mean(m.negative_ratio for m in after),
    )


# =============================================================================
# Predictive Indicators
# =============================================================================

Severity = Literal["watch", "caution", "warning"]


@dataclass(frozen=True, slots=True)
class PrecursorWord:
    """A word that tends to appear in the days before a negative spike.

    Attributes:
        word: The candidate word.
        correlation: Share of spikes whose look-back window contains it.
        lead_days: Mean days from its first appearance to the spike.
        pre_spike_rate: Hits per 1000 chars inside look-back windows.
        baseline_rate: Hits per 1000 chars on ordinary days.
    """

    word: str
    correlation: float
    lead_days: float
    pre_spike_rate: float
    baseline_rate: float


@dataclass(frozen=True, slots=True)
class ActiveSignal:
    signal: str
    severity: Severity
    evidence: str


@dataclass(frozen=True, slots=True)
class SymptomCorrelation:
    """Pearson correlation of symptom rate with negative rate lag days later."""

    lag_days: int
    strength: float
    p_value: float
    sample_count: int


@dataclass(frozen=True, slots=True)
class PredictiveIndicator:
    precursor_words: tuple[PrecursorWord, ...]
    active_signals: tuple[ActiveSignal, ...]
    symptom_correlations: tuple[SymptomCorrelation, ...]
    spike_count: int = 0

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def _find_spike_days(daily: Sequence[RawPeriodStats]) -> list[date]:
    rates = [row.rate("negative") for row in daily]
    std = population_stdev(rates)
    if std <= 0:
        return []
    cutoff = mean(rates) + SPIKE_SIGMA * std
    return [row.day for row in daily if row.rate("negative") > cutoff]  # type: ignore[misc]


def _mine_precursor_words(
    daily: Sequence[RawPeriodStats],
    texts_by_day: Mapping[date, str],
    spikes: Sequence[date],
) -> list[PrecursorWord]:
    chars_by_day = {row.day: row.total_chars for row in daily}
    windows: dict[date, list[date]] = {
        spike: [
            spike - timedelta(days=offset)
            for offset in range(PRECURSOR_LOOKBACK_DAYS, 0, -1)
            if spike - timedelta(days=offset) in chars_by_day
        ]
        for spike in spikes
    }
    window_days = {d for days in windows.values() for d in days}
    spike_days = set(spikes)
    baseline_days = [d for d in chars_by_day if d not in window_days and d not in spike_days]

    window_chars = sum(chars_by_day[d] for d in window_days)
    baseline_chars = sum(chars_by_day[d] for d in baseline_days)

    found: list[PrecursorWord] = []
    for word in PRECURSOR_CANDIDATES:
        pre_rate = normalize_rate(
            sum(count_occurrences(texts_by_day[d], [word]) for d in window_days), window_chars
        )
        if pre_rate <= 0:
            continue
        base_rate = normalize_rate(
            sum(count_occurrences(texts_by_day[d], [word]) for d in baseline_days), baseline_chars
        )
        if base_rate > 0 and pre_rate <= base_rate * PRECURSOR_BASELINE_FACTOR:
            continue

        leads: list[int] = []
        for spike, days in windows.items():
            first = next((d for d in days if word in texts_by_day[d]), None)
            if first is not None:
                leads.append((spike - first).days)
        if not leads:
            continue

        found.append(PrecursorWord(
            word=word,
            correlation=len(leads) / len(spikes),
            lead_days=mean(leads),
            pre_spike_rate=pre_rate,
            baseline_rate=base_rate,
        ))

    found.sort(key=lambda p: (-p.correlation, -p.lead_days, p.word))
    return found[:MAX_PRECURSOR_WORDS]


def _symptom_correlations(daily: Sequence[RawPeriodStats]) -> list[SymptomCorrelation]:
    by_day = {row.day: row for row in daily}
    results: list[SymptomCorrelation] = []

    for lag in range(MAX_SYMPTOM_LAG_DAYS + 1):
        xs: list[float] = []
        ys: list[float] = []
        for day, row in by_day.items():
            later = by_day.get(day + timedelta(days=lag))  # type: ignore[operator]
            if later is not None:
                xs.append(row.rate("physical_symptom"))
                ys.append(later.rate("negative"))

        if len(xs) < MIN_CORRELATION_SAMPLES or len(set(xs)) < 2 or len(set(ys)) < 2:
            continue
        r, p_value = pearsonr(xs, ys)
        r, p_value = float(r), float(p_value)
        if math.isnan(r) or math.isnan(p_value) or r < MIN_CORRELATION_STRENGTH:
            continue
        results.append(SymptomCorrelation(lag_days=lag, strength=r, p_value=p_value, sample_count=len(xs)))

    return results


def _active_signals(
    monthly: Sequence[MonthlyDeepAnalysis],
    latest_text: str,
    precursors: Sequence[PrecursorWord],
) -> list[ActiveSignal]:
    if len(monthly) < 2:
        return []
    prev, latest = monthly[-2], monthly[-1]
    signals: list[ActiveSignal] = []

    if (latest.physical_symptom_count > prev.physical_symptom_count * 1.5
            and latest.physical_symptom_count >= 3):
        signals.append(ActiveSignal(
            signal="physical symptoms increasing",
            severity="warning" if latest.physical_symptom_count >= 5 else "caution",
            evidence=f"{prev.physical_symptom_count} last month -> {latest.physical_symptom_count} this month",
        ))

    if abs(latest.first_person_rate - prev.first_person_rate) > prev.first_person_rate * 0.5:
        signals.append(ActiveSignal(
            signal=("self-focus increasing" if latest.first_person_rate > prev.first_person_rate
                    else "self-reference decreasing"),
            severity="watch",
            evidence=f"first-person rate {prev.first_person_rate:.1f} -> {latest.first_person_rate:.1f} per 1000 chars",
        ))

    if latest.avg_sentence_length < prev.avg_sentence_length * 0.6:
        signals.append(ActiveSignal(
            signal="sentences getting shorter",
            severity="caution",
            evidence=f"average sentence length {prev.avg_sentence_length:.0f} -> {latest.avg_sentence_length:.0f} chars",
        ))

    if latest.entry_count < prev.entry_count * 0.3 and prev.entry_count >= 5:
        signals.append(ActiveSignal(
            signal="writing frequency dropped",
            severity="caution",
            evidence=f"{prev.entry_count} entries last month -> {latest.entry_count} this month",
        ))

    if prev.self_monitor_rate > 0.5 and latest.self_monitor_rate < 0.1:
        signals.append(ActiveSignal(
            signal="self-monitoring words vanished",
            severity="watch",
            evidence=f"self-monitor rate {prev.self_monitor_rate:.1f} -> {latest.self_monitor_rate:.1f} per 1000 chars",
        ))

    for precursor in precursors:
        if precursor.word in latest_text:
            signals.append(ActiveSignal(
                signal=f"precursor word {precursor.word!r} present",
                severity="caution" if precursor.correlation > 0.6 else "watch",
                evidence=f"appeared before {precursor.correlation:.0%} of past negative spikes",
            ))

    return signals


def calc_predictive_indicators(
    daily_stats: Sequence[RawPeriodStats],
    daily_texts: Mapping[str, str],
    monthly: Sequence[MonthlyDeepAnalysis],
) -> PredictiveIndicator:
    """Mine early-warning indicators from the daily and monthly series.

    Args:
        daily_stats: Daily RawPeriodStats in chronological order.
        daily_texts: Day text keyed by "YYYY-MM-DD".
        monthly: Monthly rows, for month-over-month signals.

    Returns:
        PredictiveIndicator; every part may be empty.

    Raises:
        InvalidPeriodTypeError: If daily_stats are not daily.
    """
    for row in daily_stats:
        if row.granularity != "day":
            raise InvalidPeriodTypeError(
                row.granularity, message=f"Expected day periods, got {row.granularity!r} ({row.period})."
            )

    texts_by_day = {row.day: daily_texts.get(row.period, "") for row in daily_stats}
    spikes = _find_spike_days(daily_stats)
    if spikes:
        precursors = _mine_precursor_words(daily_stats, texts_by_day, spikes)
    else:
        logger.debug("No negative spikes among %d days", len(daily_stats))
        precursors = []

    latest_text = ""
    if monthly:
        latest_month = monthly[-1].month
        latest_text = "\n".join(text for key, text in daily_texts.items() if key.startswith(latest_month))

    return PredictiveIndicator(
        precursor_words=tuple(precursors),
        active_signals=tuple(_active_signals(monthly, latest_text, precursors)),
        symptom_correlations=tuple(_symptom_correlations(daily_stats)),
        spike_count=len(spikes),
    )
