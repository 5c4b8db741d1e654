"""Analysis façade over the diary corpus.

``DiaryAnalyzer`` takes an immutable snapshot of the entries and exposes
every analysis as a method: period statistics, the derived metric
series, the pattern detectors, and a plain-text digest of the measured
results.

The digest is what gets sent to a text generator for narrative
summaries. The generator is any ``(prompt: str) -> str`` callable (for
example a ``ModelManager``); it is treated as slow and fallible, and a
failure never propagates out of ``narrate()``.

Example:
    >>> from diary_lens.analyzer import DiaryAnalyzer
    >>> from diary_lens.model import ModelManager
    >>>
    >>> analyzer = DiaryAnalyzer(entries)
    >>> for shift in analyzer.trend_shifts():
    ...     print(shift.start_month, shift.type)
    >>> result = analyzer.narrate("tone", ModelManager("qwen-7b"))
    >>> print(result.text)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import asdict, dataclass
from datetime import datetime
from functools import cached_property
from typing import TYPE_CHECKING

from .cache import AnalysisCache
from .constants import (
    EMOTION_TAG_EXCERPT_CHARS,
    EXCERPT_CHARS_PER_ENTRY,
    EXCERPT_CHARS_TOTAL,
    TONE_EXCERPT_CHARS,
    TONE_EXCERPT_TOTAL,
    YEAR_HEADER_OVERHEAD,
)
from .detectors import (
    DepthInterpretation,
    FirstPersonShiftInterpretation,
    PredictiveIndicator,
    SeasonalCrossStats,
    TrendShift,
    VocabularyDepth,
    calc_predictive_indicators,
    calc_seasonal_cross_stats,
    calc_vocabulary_depth,
    detect_trend_shifts,
    interpret_depth,
    interpret_first_person_shift,
    split_early_late,
)
from .exceptions import TemplateNotFoundError
from .metrics import (
    CurrentStateNumeric,
    CurrentStateWeights,
    ElevationPoint,
    EmotionAnalysis,
    EmotionAnalysisDaily,
    MonthlyDeepAnalysis,
    StabilityIndex,
    StabilityWeights,
    analyze_emotions,
    analyze_emotions_daily,
    calc_current_state,
    calc_elevation,
    calc_monthly_deep_analysis,
    calc_stability_by_year,
)
from .processor import DiaryProcessor, Granularity, RawPeriodStats
from .scanner import anonymize

if TYPE_CHECKING:
    from .entry import DiaryEntry

__all__ = [
    "DiaryAnalyzer",
    "NARRATIVE_TEMPLATES",
    "NarrativeResult",
    "SYSTEM_PROMPT",
    "format_deep_stats_for_prompt",
    "format_vocabulary_depth_for_prompt",
    "list_narrative_templates",
]

logger = logging.getLogger(__name__)

TextGenerator = Callable[[str], str]


# =============================================================================
# System Prompt
# =============================================================================

SYSTEM_PROMPT: str = """You are an analyst of diary text. Do not play a persona; only analyze.

Rules:
- State facts and tendencies calmly
- No consolation or encouragement
- No sentimental language
- Base every judgement on the measured data provided, not on single sentences
- Respond in the same language as the diary entries"""


# =============================================================================
# Narrative Templates
# =============================================================================

NARRATIVE_TEMPLATES: dict[str, str] = {
    "period_summary": """Summarize the diary year by year.
- About 100 words per year, at most 500 words overall
- Describe facts and tendencies only""",

    "emotion_tags": """Extract the emotions that recur across the whole diary as tags.
- Give each tag an estimated frequency (high / medium / low)
- At most 15 tags
- Output a plain bulleted list""",

    "tone": """Compare the writing tone of the early and late halves of the diary.
- Focus on changes in style, vocabulary and point of view
- Use the vocabulary-depth data: fewer negative words is not growth if the remaining ones are deeper
- At most 300 words""",

    "deep_insight": """Describe where the writer stands now and how they got here.
- Turning points must come from the detected trend shifts, not from single entries
- Seasonal remarks must cite the seasonal numbers
- Judge calm vs unstable from the current-state numbers, not from impressions
- Mention active warning signals plainly, without alarm""",
}


def list_narrative_templates() -> dict[str, str]:
    """Get available narrative templates with their first line.

    Example:
        >>> for name, desc in list_narrative_templates().items():
        ...     print(f"{name}: {desc}")
    """
    return {name: prompt.splitlines()[0] for name, prompt in NARRATIVE_TEMPLATES.items()}


# =============================================================================
# Prompt Formatters
# =============================================================================


def format_deep_stats_for_prompt(
    shifts: Sequence[TrendShift],
    seasonal: Sequence[SeasonalCrossStats],
    current_state: CurrentStateNumeric | None,
    predictive: PredictiveIndicator,
) -> str:
    """Render the measured results as prompt text.

    Sections with no data are left out, so an empty corpus yields "".
    """
    lines: list[str] = []

    if shifts:
        lines.append("[Measured: trend shifts]")
        lines.append("Detected with 3-month moving windows; these are sustained tendencies, not single entries:")
        for s in shifts:
            m = s.metrics
            lines.append(f"  {s.start_month} to {s.end_month}: {s.type}, {s.description} ({s.magnitude:.2f} sigma)")
            lines.append(
                f"    negative ratio {m.neg_ratio_before:.0%} -> {m.neg_ratio_after:.0%}"
                f" / first-person change {m.first_person_change:+.2f}"
                f" / sentence length change {m.sentence_length_change:+.1f} chars"
            )
        lines.append("")

    if seasonal:
        lines.append("[Measured: seasonal cross statistics]")
        for row in seasonal:
            marker = " (significant)" if row.significant else ""
            lines.append(f"  {row.label}, {row.month_count} months{marker}:")
            lines.append(
                f"    negative ratio {row.avg_negative_ratio:.0%}"
                f" / work words {row.avg_work_word_rate:.2f} per 1000 chars"
                f" / physical symptoms {row.avg_physical_symptoms:.1f} per month"
                f" / first-person {row.avg_first_person_rate:.2f} per 1000 chars"
                f" / self-monitoring {row.avg_self_monitor_rate:.2f} per 1000 chars"
            )
        lines.append("")

    if current_state is not None:
        c = current_state
        lines.append("[Measured: current state]")
        lines.append(f"  last 3 months negative ratio: {c.recent_neg_ratio:.0%} (history: {c.historical_neg_ratio:.0%})")
        lines.append(f"  3-month moving average: {c.recent_neg_ratio_ma:.0%}")
        lines.append(f"  trend: {c.neg_ratio_trend}")
        lines.append(f"  overall stability: {c.overall_stability}/100")
        lines.append(f"  risk level: {c.risk_level}")
        lines.append(
            f"  first-person rate: {c.recent_first_person_rate:.2f} per 1000 chars"
            f" (history: {c.historical_first_person_rate:.2f})"
        )
        lines.append(
            f"  physical symptoms: {c.recent_physical_symptoms:.1f} per month"
            f" (history: {c.historical_physical_symptoms:.1f})"
        )
        lines.append(
            f"  average sentence length: {c.recent_avg_sentence_length:.1f} chars"
            f" (history: {c.historical_avg_sentence_length:.1f})"
        )
        lines.append("")

    if predictive.active_signals:
        icons = {"warning": "!!", "caution": "! ", "watch": "- "}
        lines.append("[Measured: active signals]")
        for sig in predictive.active_signals:
            lines.append(f"  {icons[sig.severity]} {sig.signal}: {sig.evidence}")
        lines.append("")

    if predictive.precursor_words:
        lines.append("[Measured: words that preceded negative spikes]")
        for p in predictive.precursor_words:
            lines.append(f"  {p.word}: before {p.correlation:.0%} of spikes, about {p.lead_days:.0f} days ahead")
        lines.append("")

    if predictive.symptom_correlations:
        lines.append("[Measured: lagged symptom correlation]")
        for corr in predictive.symptom_correlations:
            lines.append(
                f"  physical symptoms -> negative ratio {corr.lag_days} days later:"
                f" r={corr.strength:.2f} (n={corr.sample_count})"
            )
        lines.append("")

    return "\n".join(lines)


def format_vocabulary_depth_for_prompt(early: VocabularyDepth, late: VocabularyDepth) -> str:
    """Render an early/late vocabulary-depth comparison as prompt text."""
    lines = ["[Measured: vocabulary depth]"]
    for title, depth in (("early", early), ("late", late)):
        lines.append(f"  {title} ({depth.period}):")
        lines.append(
            f"    light negative {depth.light_neg_count} / deep negative {depth.deep_neg_count}"
            f" / depth ratio {depth.depth_ratio:.0%}"
        )
        lines.append(
            f"    first-person {depth.first_person_count} / other-person {depth.other_person_count}"
            f" / other-person share {depth.subject_ratio:.0%}"
        )
        lines.append(
            f"    average sentence {depth.avg_sentence_length:.1f} chars"
            f" / questions {depth.question_count} / exclamations {depth.exclamation_count}"
        )

    depth_change = late.depth_ratio - early.depth_ratio
    subject_change = late.subject_ratio - early.subject_ratio

    lines.append("  what changed:")
    if abs(depth_change) > 0.1:
        lines.append(
            "    -> negative words got deeper (everyday complaints to real distress)"
            if depth_change > 0
            else "    -> negative words got lighter (real distress to everyday complaints), possibly recovery"
        )
    if abs(subject_change) > 0.1:
        lines.append(
            "    -> more references to others: stronger social role, or less honest self-disclosure"
            if subject_change > 0
            else "    -> self-reference dominates: deeper reflection, or social withdrawal"
        )
    lines.append("")

    return "\n".join(lines)


# =============================================================================
# Excerpts
# =============================================================================


def _year_excerpts(entries: Iterable[DiaryEntry]) -> str:
    """Entries grouped by year under a shared character budget."""
    by_year: dict[str, list[str]] = {}
    for entry in entries:
        year = f"{entry.date.year:04d}" if entry.date else "unknown"
        by_year.setdefault(year, []).append(entry.content[:EXCERPT_CHARS_PER_ENTRY])

    if not by_year:
        return ""

    budget = (EXCERPT_CHARS_TOTAL - len(by_year) * YEAR_HEADER_OVERHEAD) // len(by_year)
    blocks: list[str] = []
    for year in sorted(by_year):
        chunk = ""
        for text in by_year[year]:
            candidate = f"{chunk}\n---\n{text}" if chunk else text
            if len(candidate) > budget:
                break
            chunk = candidate
        blocks.append(f"[{year}]\n{chunk}")
    return "\n\n".join(blocks)


def _tag_excerpts(entries: Iterable[DiaryEntry]) -> str:
    return "\n---\n".join(e.content[:EMOTION_TAG_EXCERPT_CHARS] for e in entries)[:EXCERPT_CHARS_TOTAL]


def _tone_excerpts(early: Sequence[DiaryEntry], late: Sequence[DiaryEntry]) -> str:
    early_text = "\n".join(e.content[:TONE_EXCERPT_CHARS] for e in early)[:TONE_EXCERPT_TOTAL]
    late_text = "\n".join(e.content[:TONE_EXCERPT_CHARS] for e in late)[:TONE_EXCERPT_TOTAL]
    return f"[early]\n{early_text}\n\n[late]\n{late_text}"


# =============================================================================
# Narrative Result
# =============================================================================


@dataclass(frozen=True, slots=True)
class NarrativeResult:
    """Outcome of a narrative request.

    Attributes:
        kind: Template name.
        text: Generated text, or the previous cached text on failure
              ("" when there is none).
        available: False when generation failed or was skipped.
        is_stale: True when text predates the current corpus.
        error: Failure message, if any.
        analyzed_at: When text was generated, if known.
    """

    kind: str
    text: str
    available: bool
    is_stale: bool = False
    error: str | None = None
    analyzed_at: datetime | None = None

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["analyzed_at"] = self.analyzed_at.isoformat() if self.analyzed_at else None
        return data


# =============================================================================
# Analyzer Class
# =============================================================================


class DiaryAnalyzer:
    """Run every diary analysis over one corpus snapshot.

    The analyzer holds an immutable tuple of entries. Monthly and daily
    statistics are computed on first use and reused across methods;
    nothing else is retained apart from the optional result cache.

    Attributes:
        cache: Sink for narrative results; a fresh one by default.

    Example:
        >>> analyzer = DiaryAnalyzer(entries)
        >>> analyzer.stability()
        [StabilityIndex(year='2023', score=71, ...), ...]
    """

    def __init__(self, entries: Iterable[DiaryEntry], cache: AnalysisCache | None = None) -> None:
        """Initialize with diary entries.

        Args:
            entries: Entries in any order; undated ones are excluded from
                     period analyses but counted in the corpus size.
            cache: Existing result cache to read from and write to.
        """
        self._entries: tuple[DiaryEntry, ...] = tuple(entries)
        self._processor = DiaryProcessor(self._entries)
        self.cache: AnalysisCache = cache if cache is not None else AnalysisCache()

    @property
    def entries(self) -> tuple[DiaryEntry, ...]:
        return self._entries

    @property
    def processor(self) -> DiaryProcessor:
        return self._processor

    # -------------------------------------------------------------------------
    # Period statistics
    # -------------------------------------------------------------------------

    def period_stats(self, granularity: Granularity | str = "month") -> list[RawPeriodStats]:
        if granularity == "month":
            return list(self._monthly_stats)
        if granularity == "day":
            return list(self._daily_stats)
        return self._processor.get_period_stats(granularity)

    @cached_property
    def _monthly_stats(self) -> tuple[RawPeriodStats, ...]:
        return tuple(self._processor.get_period_stats("month"))

    @cached_property
    def _daily_stats(self) -> tuple[RawPeriodStats, ...]:
        return tuple(self._processor.get_period_stats("day"))

    @cached_property
    def _monthly(self) -> tuple[MonthlyDeepAnalysis, ...]:
        return tuple(calc_monthly_deep_analysis(self._monthly_stats))

    def total_stats(self) -> dict[str, object]:
        return self._processor.get_total_stats()

    # -------------------------------------------------------------------------
    # Derived metrics
    # -------------------------------------------------------------------------

    def monthly_analysis(self) -> list[MonthlyDeepAnalysis]:
        return list(self._monthly)

    def emotions(self) -> list[EmotionAnalysis]:
        return analyze_emotions(self._monthly_stats, self._processor.get_period_texts("month"))

    def emotions_daily(self, every: int = 1) -> list[EmotionAnalysisDaily]:
        return analyze_emotions_daily(self._daily_stats, self._processor.get_period_texts("day"), every=every)

    def elevation(self, granularity: Granularity | str = "month") -> list[ElevationPoint]:
        return calc_elevation(self.period_stats(granularity))

    def stability(self, weights: StabilityWeights = StabilityWeights()) -> list[StabilityIndex]:
        return calc_stability_by_year(self._monthly, weights)

    def current_state(self, weights: CurrentStateWeights = CurrentStateWeights()) -> CurrentStateNumeric | None:
        return calc_current_state(self._monthly, weights)

    # -------------------------------------------------------------------------
    # Pattern detectors
    # -------------------------------------------------------------------------

    def trend_shifts(self) -> list[TrendShift]:
        return detect_trend_shifts(self._monthly)

    def seasonal_stats(self) -> list[SeasonalCrossStats]:
        return calc_seasonal_cross_stats(self._monthly)

    def vocabulary_depth(self) -> DepthInterpretation | None:
        """Compare the early and late halves of the corpus.

        Returns:
            DepthInterpretation, or None with fewer than two dated entries.
        """
        early, late = split_early_late(self._processor.entries)
        if not early or not late:
            logger.debug("Vocabulary depth needs two dated entries, have %d", len(early) + len(late))
            return None
        return interpret_depth(
            calc_vocabulary_depth(early, f"{early[0].date} to {early[-1].date}"),
            calc_vocabulary_depth(late, f"{late[0].date} to {late[-1].date}"),
        )

    def first_person_shift(self) -> FirstPersonShiftInterpretation:
        return interpret_first_person_shift(self._monthly)

    def predictive_indicators(self) -> PredictiveIndicator:
        return calc_predictive_indicators(
            self._daily_stats,
            self._processor.get_period_texts("day"),
            self._monthly,
        )

    # -------------------------------------------------------------------------
    # Digest and narratives
    # -------------------------------------------------------------------------

    def digest(self) -> str:
        """Plain-text digest of every measured result, for prompts."""
        parts = [
            format_deep_stats_for_prompt(
                self.trend_shifts(),
                self.seasonal_stats(),
                self.current_state(),
                self.predictive_indicators(),
            )
        ]
        depth = self.vocabulary_depth()
        if depth is not None:
            parts.append(format_vocabulary_depth_for_prompt(depth.early, depth.late))

        digest = "\n".join(part for part in parts if part)
        logger.info(
            "Built digest from %d entries (%d months)", len(self._entries), len(self._monthly)
        )
        return digest

    def build_prompt(self, kind: str, *, mask_names: bool = False) -> str:
        """Build the full prompt for a narrative template.

        Args:
            kind: Template name (see NARRATIVE_TEMPLATES).
            mask_names: Mask name-like patterns in the diary excerpts.

        Raises:
            TemplateNotFoundError: If kind is not a known template.
        """
        if kind not in NARRATIVE_TEMPLATES:
            raise TemplateNotFoundError(kind, available_templates=list(NARRATIVE_TEMPLATES))

        dated = self._processor.entries
        if kind == "period_summary":
            excerpts = _year_excerpts(self._entries)
        elif kind == "emotion_tags":
            excerpts = _tag_excerpts(self._entries)
        elif kind == "tone":
            excerpts = _tone_excerpts(*split_early_late(dated))
        else:
            excerpts = _year_excerpts(dated)
        if mask_names:
            excerpts = anonymize(excerpts)

        return f"""{SYSTEM_PROMPT}

{NARRATIVE_TEMPLATES[kind]}

---

{self.digest()}
---

Diary excerpts:

{excerpts}"""

    def narrate(self, kind: str, generate: TextGenerator, *, mask_names: bool = False) -> NarrativeResult:
        """Generate a narrative summary and store it in the cache.

        Args:
            kind: Template name (see NARRATIVE_TEMPLATES).
            generate: Text generator taking the prompt and returning text.
            mask_names: Mask name-like patterns before text leaves the engine.

        Returns:
            NarrativeResult. When the generator fails, the previous
            cached text (if any) is returned marked stale, with
            ``available=False``.

        Raises:
            TemplateNotFoundError: If kind is not a known template.
        """
        prompt = self.build_prompt(kind, mask_names=mask_names)
        entry_count = len(self._entries)

        cached = self.cache.get(kind)
        if cached is not None and cached.entry_count != entry_count:
            self.cache.mark_stale(kind)
            cached = self.cache.get(kind)

        if not self._entries:
            return NarrativeResult(kind=kind, text="", available=False, error="No entries to analyze.")

        try:
            text = generate(prompt)
        except Exception as e:
            logger.warning("Narrative %r failed: %s", kind, e)
            return NarrativeResult(
                kind=kind,
                text=cached.result if cached else "",
                available=False,
                is_stale=cached is not None,
                error=str(e),
                analyzed_at=cached.analyzed_at if cached else None,
            )

        saved = self.cache.save(kind, text, entry_count)
        logger.info("Narrative %r generated (%d chars)", kind, len(text))
        return NarrativeResult(kind=kind, text=text, available=True, analyzed_at=saved.analyzed_at)
