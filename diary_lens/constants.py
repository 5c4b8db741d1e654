"""Shared constants for diary-lens.

This module centralizes magic numbers, thresholds, and default values
used throughout the analytics engine. Import from here to ensure
consistency between the scanners, detectors, and the CLI.
"""

from typing import Final


# =============================================================================
# Period Configuration
# =============================================================================

# Valid granularities for period aggregation
VALID_GRANULARITIES: Final[tuple[str, ...]] = ("day", "month", "year")

# Default granularity (monthly series drive most derived metrics)
DEFAULT_GRANULARITY: Final[str] = "month"

# Periods scanned between progress log lines in iter_period_stats()
DEFAULT_SCAN_CHUNK_SIZE: Final[int] = 50

# Maximum periods to show in "period not found" suggestions
MAX_PERIODS_TO_SUGGEST: Final[int] = 10


# =============================================================================
# Text Scanning
# =============================================================================

# Rates are reported as occurrences per this many characters
RATE_SCALE_CHARS: Final[int] = 1000

# Sentence delimiters (full-width terminators plus newline)
SENTENCE_DELIMITERS: Final[str] = "。！？\n"

# Number of emotion words kept in top-word rankings
TOP_EMOTION_WORDS: Final[int] = 10


# =============================================================================
# Derived Metrics
# =============================================================================

# Moving-average windows over the monthly negative ratio
SHORT_MA_WINDOW: Final[int] = 3
LONG_MA_WINDOW: Final[int] = 6

# Minimum same-calendar-month occurrences for a seasonal baseline
MIN_SEASONAL_OCCURRENCES: Final[int] = 2

# Elevation model (metres); elevation starts at a base camp and only climbs
BASE_ELEVATION_M: Final[int] = 1000
CLIMB_SCALE_M: Final[float] = 300.0
MAX_CLIMB_M: Final[float] = 300.0

# Current-state evaluation compares the latest months against the rest
RECENT_MONTHS: Final[int] = 3
MIN_HISTORICAL_MONTHS: Final[int] = 3
TREND_SLOPE_THRESHOLD: Final[float] = 0.02


# =============================================================================
# Pattern Detection
# =============================================================================

# Trend shifts: months before/after each split point
TREND_WINDOW: Final[int] = 3
MIN_TREND_MONTHS: Final[int] = 4

# Threshold = max(floor, factor * stddev of the whole series)
TREND_THRESHOLD_FLOOR: Final[float] = 0.05
TREND_THRESHOLD_SIGMA: Final[float] = 0.8

# Composite vocabulary change score above which a shift is reported
VOCAB_SHIFT_THRESHOLD: Final[float] = 1.5

# Plateau: months of near-flat negative ratio right after a shift
PLATEAU_WINDOW: Final[int] = 6
PLATEAU_TOLERANCE: Final[float] = 0.02

# Seasonal significance level
SIGNIFICANCE_LEVEL: Final[float] = 0.05

# Vocabulary depth interpretation thresholds
DEPTH_CHANGE_THRESHOLD: Final[float] = 0.1
FREQUENCY_CHANGE_THRESHOLD: Final[float] = 0.1

# First-person shift interpretation
MIN_FIRST_PERSON_PERIODS: Final[int] = 3
FIRST_PERSON_CHANGE_THRESHOLD: Final[float] = 0.15
NEGATIVE_RATIO_CHANGE_THRESHOLD: Final[float] = 0.05

# Predictive indicators
SPIKE_SIGMA: Final[float] = 1.5
PRECURSOR_LOOKBACK_DAYS: Final[int] = 14
PRECURSOR_BASELINE_FACTOR: Final[float] = 2.0
MAX_PRECURSOR_WORDS: Final[int] = 10
MAX_SYMPTOM_LAG_DAYS: Final[int] = 14
MIN_CORRELATION_SAMPLES: Final[int] = 10
MIN_CORRELATION_STRENGTH: Final[float] = 0.3


# =============================================================================
# Narrative (LLM) Configuration
# =============================================================================

# Default local model for narrative summaries
DEFAULT_MODEL_ID: Final[str] = "mlx-community/Qwen2.5-7B-Instruct-4bit"

# Pre-configured model presets
MODEL_PRESETS: Final[dict[str, str]] = {
    "qwen-7b": "mlx-community/Qwen2.5-7B-Instruct-4bit",
    "qwen-14b": "mlx-community/Qwen2.5-14B-Instruct-4bit",
    "llama-8b": "mlx-community/Meta-Llama-3.1-8B-Instruct-4bit",
    "gemma-9b": "mlx-community/gemma-2-9b-it-4bit",
}

# Narratives are short and sampled at a low temperature
DEFAULT_MAX_GENERATION_TOKENS: Final[int] = 1024
DEFAULT_TEMPERATURE: Final[float] = 0.3

# Excerpt budgets for prompts built from raw entries
EXCERPT_CHARS_PER_ENTRY: Final[int] = 200
EXCERPT_CHARS_TOTAL: Final[int] = 6000
TONE_EXCERPT_CHARS: Final[int] = 100
EMOTION_TAG_EXCERPT_CHARS: Final[int] = 150
TONE_EXCERPT_TOTAL: Final[int] = 3000

# Characters reserved per "[YYYY]" header when splitting the summary budget
YEAR_HEADER_OVERHEAD: Final[int] = 20

# Future-facing comments are kept short
MAX_COMMENT_LENGTH: Final[int] = 140


# =============================================================================
# Import Configuration
# =============================================================================

# Only the first lines of an entry are searched for a date
DATE_SEARCH_LINES: Final[int] = 5

# Plausible year range for extracted dates
MIN_ENTRY_YEAR: Final[int] = 1900
MAX_ENTRY_YEAR: Final[int] = 2100

# Japanese era offsets (era year 1 == offset + 1)
ERA_OFFSETS: Final[dict[str, int]] = {
    "令和": 2018,
    "平成": 1988,
}

# Text file suffixes picked up when reading a directory
TEXT_SUFFIXES: Final[tuple[str, ...]] = (".txt", ".md")
