"""Custom exceptions for diary-lens.

This module defines a hierarchy of exceptions used throughout the library.
All exceptions inherit from DiaryLensError for easy catching.

Insufficient data is deliberately NOT an exception: detectors return
None, an empty list, or an ``insufficient_data`` label instead. These
exceptions signal caller mistakes (unknown categories, bad period types)
and unreadable input.

Example:
    try:
        entries = EntryReader("diary.json").read_entries()
    except DiaryLensError as e:
        print(f"diary-lens error: {e}")
"""

from .constants import MAX_PERIODS_TO_SUGGEST, VALID_GRANULARITIES


class DiaryLensError(Exception):
    """Base exception for all diary-lens errors.

    All custom exceptions in this library inherit from this class,
    making it easy to catch any diary-lens specific error.
    """

    pass


class EntryError(DiaryLensError):
    """Error related to loading diary entries."""

    pass


class SourceNotFoundError(EntryError):
    """Entry source file or directory not found.

    Attributes:
        path: The path where entries were expected.
    """

    def __init__(self, path: str, message: str | None = None):
        self.path = path
        if message is None:
            message = (
                f"Diary source not found at: {path}\n"
                "Pass a JSON export (a list of entries) or a directory "
                "of .txt/.md files."
            )
        super().__init__(message)


class EntryFormatError(EntryError):
    """An entry record could not be parsed.

    Attributes:
        source: Where the malformed record came from.
        reason: What was wrong with it.
    """

    def __init__(self, source: str, reason: str, message: str | None = None):
        self.source = source
        self.reason = reason
        if message is None:
            message = f"Malformed diary entry in {source}: {reason}"
        super().__init__(message)


class PeriodError(DiaryLensError):
    """Error related to time period operations."""

    pass


class PeriodNotFoundError(PeriodError):
    """Specified period not found in the diary data.

    Attributes:
        period_key: The period that was requested.
        available_periods: List of available period keys, if known.
    """

    def __init__(
        self,
        period_key: str,
        available_periods: list[str] | None = None,
        message: str | None = None,
    ):
        self.period_key = period_key
        self.available_periods = available_periods

        if message is None:
            message = f"Period not found: {period_key}"
            if available_periods:
                preview = available_periods[:MAX_PERIODS_TO_SUGGEST]
                message += f"\nAvailable periods: {', '.join(preview)}"
                if len(available_periods) > MAX_PERIODS_TO_SUGGEST:
                    remaining = len(available_periods) - MAX_PERIODS_TO_SUGGEST
                    message += f" (and {remaining} more)"

        super().__init__(message)


class InvalidPeriodTypeError(PeriodError):
    """Invalid period granularity specified.

    Attributes:
        granularity: The invalid granularity.
    """

    VALID_TYPES = VALID_GRANULARITIES

    def __init__(self, granularity: str, message: str | None = None):
        self.granularity = granularity

        if message is None:
            message = (
                f"Invalid period granularity: '{granularity}'. "
                f"Must be one of: {', '.join(self.VALID_TYPES)}"
            )

        super().__init__(message)


class LexiconError(DiaryLensError):
    """Error related to lexicon lookups."""

    pass


class UnknownCategoryError(LexiconError):
    """Lexicon category does not exist.

    Attributes:
        category: The category that was requested.
        available_categories: Known category names.
    """

    def __init__(
        self,
        category: str,
        available_categories: list[str] | None = None,
        message: str | None = None,
    ):
        self.category = category
        self.available_categories = available_categories

        if message is None:
            message = f"Unknown lexicon category: '{category}'"
            if available_categories:
                message += f"\nAvailable categories: {', '.join(available_categories)}"

        super().__init__(message)


class ModelError(DiaryLensError):
    """Error related to LLM model operations."""

    pass


class ModelLoadError(ModelError):
    """Failed to load the model.

    Attributes:
        model_name: The model that failed to load.
        reason: The underlying reason for the failure, if known.
    """

    def __init__(
        self,
        model_name: str,
        reason: str | None = None,
        message: str | None = None,
    ):
        self.model_name = model_name
        self.reason = reason

        if message is None:
            message = f"Failed to load model: {model_name}"
            if reason:
                message += f"\nReason: {reason}"

        super().__init__(message)


class AnalysisError(DiaryLensError):
    """Error during diary analysis."""

    pass


class TemplateNotFoundError(AnalysisError):
    """Narrative template not found.

    Attributes:
        template_name: The template that was requested.
        available_templates: List of available template names.
    """

    def __init__(
        self,
        template_name: str,
        available_templates: list[str] | None = None,
        message: str | None = None,
    ):
        self.template_name = template_name
        self.available_templates = available_templates

        if message is None:
            message = f"Unknown narrative template: '{template_name}'"
            if available_templates:
                message += f"\nAvailable templates: {', '.join(available_templates)}"

        super().__init__(message)
