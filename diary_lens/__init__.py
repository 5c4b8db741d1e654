"""diary-lens: Measure emotional patterns in a diary archive.

This package turns a chronological corpus of free-text diary entries
into derived time series and pattern reports using fixed word lists
and plain statistics. Nothing in the engine calls out to the network;
narrative summaries are optional and go through any text generator
you pass in (for example a local mlx-lm model).

Key Features:
    - Lexicon scanning with rates per 1000 characters
    - Day / month / year aggregation
    - Stability and elevation indices
    - Trend-shift detection and seasonal significance tests
    - Vocabulary-depth and first-person-shift interpretation
    - Precursor words, active signals and lagged symptom correlations

Quick Start:
    >>> from diary_lens import EntryReader, DiaryAnalyzer
    >>>
    >>> entries = EntryReader("diary.json").read_entries()
    >>> analyzer = DiaryAnalyzer(entries)
    >>> for index in analyzer.stability():
    ...     print(index.year, index.score)

CLI Usage:
    $ diary-lens stats diary.json
    $ diary-lens shifts diary.json
    $ diary-lens narrate diary.json tone -m qwen-7b
"""

__version__ = "0.1.0"

# Core classes
from .entry import DiaryEntry, FutureComment
from .reader import EntryReader, extract_date, extract_date_from_filename
from .scanner import TextScan, anonymize, scan_text
from .processor import DiaryProcessor, Granularity, RawPeriodStats, period_key
from .cache import AiCache, AiLog, AnalysisCache
from .model import ModelManager, list_available_models, resolve_model_name
from .analyzer import (
    DiaryAnalyzer,
    NARRATIVE_TEMPLATES,
    SYSTEM_PROMPT,
    NarrativeResult,
    list_narrative_templates,
)
from .metrics import StabilityWeights, CurrentStateWeights

# Exceptions
from .exceptions import (
    DiaryLensError,
    EntryError,
    SourceNotFoundError,
    EntryFormatError,
    PeriodError,
    PeriodNotFoundError,
    InvalidPeriodTypeError,
    LexiconError,
    UnknownCategoryError,
    ModelError,
    ModelLoadError,
    AnalysisError,
    TemplateNotFoundError,
)

# Constants (for advanced users)
from .constants import (
    DEFAULT_MODEL_ID,
    MODEL_PRESETS,
    VALID_GRANULARITIES,
)

__all__ = [
    # Version
    "__version__",
    # Core classes
    "DiaryEntry",
    "FutureComment",
    "EntryReader",
    "TextScan",
    "DiaryProcessor",
    "Granularity",
    "RawPeriodStats",
    "AiCache",
    "AiLog",
    "AnalysisCache",
    "ModelManager",
    "DiaryAnalyzer",
    "NarrativeResult",
    "StabilityWeights",
    "CurrentStateWeights",
    # Functions
    "extract_date",
    "extract_date_from_filename",
    "anonymize",
    "scan_text",
    "period_key",
    "list_available_models",
    "resolve_model_name",
    "list_narrative_templates",
    # Constants
    "NARRATIVE_TEMPLATES",
    "SYSTEM_PROMPT",
    "DEFAULT_MODEL_ID",
    "MODEL_PRESETS",
    "VALID_GRANULARITIES",
    # Exceptions
    "DiaryLensError",
    "EntryError",
    "SourceNotFoundError",
    "EntryFormatError",
    "PeriodError",
    "PeriodNotFoundError",
    "InvalidPeriodTypeError",
    "LexiconError",
    "UnknownCategoryError",
    "ModelError",
    "ModelLoadError",
    "AnalysisError",
    "TemplateNotFoundError",
]
