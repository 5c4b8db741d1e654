"""Group diary entries into periods and scan each period.

This module is the period aggregator: it buckets dated entries by day,
month, or year and runs the text scanner over every bucket, producing
one RawPeriodStats per period that actually has entries.

Periods without entries are never synthesized as zero rows, so callers
must be prepared for sparse timelines (a month with no writing is simply
absent from the series).

Example:
    >>> from diary_lens.processor import DiaryProcessor
    >>> processor = DiaryProcessor(entries)
    >>> for stats in processor.get_period_stats("month"):
    ...     print(f"{stats.period}: {stats.entry_count} entries")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Literal

from .constants import DEFAULT_GRANULARITY, DEFAULT_SCAN_CHUNK_SIZE, VALID_GRANULARITIES
from .exceptions import InvalidPeriodTypeError, PeriodNotFoundError
from .scanner import TextScan, scan_text

if TYPE_CHECKING:
    from .entry import DiaryEntry

__all__ = [
    "DiaryProcessor",
    "Granularity",
    "RawPeriodStats",
    "period_key",
    "validate_granularity",
]

logger = logging.getLogger(__name__)


# Type alias for period granularities
Granularity = Literal["day", "month", "year"]


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True, slots=True)
class RawPeriodStats:
    """Raw lexical statistics for one period.

    Computed fresh on each analysis run and never persisted.

    Attributes:
        period: Period key ("2024-03-15", "2024-03", or "2024").
        granularity: The granularity the key was built with.
        entry_count: Number of entries in the period.
        scan: Merged scan of every entry in the period.

    Example:
        >>> stats = processor.get_period_stats("month")[0]
        >>> print(f"{stats.period}: {stats.negative_ratio:.2f}")
        2024-01: 0.35
    """

    period: str
    granularity: Granularity
    entry_count: int
    scan: TextScan

    @property
    def total_chars(self) -> int:
        """Total character length of the period's entries."""
        return self.scan.char_length

    @property
    def negative_ratio(self) -> float:
        return self.scan.negative_ratio

    @property
    def sentence_count(self) -> int:
        return self.scan.sentence_count

    @property
    def avg_sentence_length(self) -> float:
        return self.scan.avg_sentence_length

    def count(self, category: str) -> int:
        """Raw hit count for a lexicon category."""
        return self.scan.count(category)

    def rate(self, category: str) -> float:
        """Hits per 1000 characters for a lexicon category."""
        return self.scan.rate(category)

    @property
    def year(self) -> str:
        return self.period[:4]

    @property
    def calendar_month(self) -> int | None:
        """Calendar month (1-12), or None for yearly periods."""
        if self.granularity == "year":
            return None
        return int(self.period[5:7])

    @property
    def day(self) -> date | None:
        """The period's date for daily periods, else None."""
        if self.granularity != "day":
            return None
        return date.fromisoformat(self.period)

    def to_dict(self) -> dict[str, object]:
        return {
            "period": self.period,
            "granularity": self.granularity,
            "entry_count": self.entry_count,
            "total_chars": self.total_chars,
            "negative_ratio": self.negative_ratio,
            **self.scan.to_dict(),
        }


# =============================================================================
# Period Calculation Helpers
# =============================================================================


def validate_granularity(granularity: str) -> Granularity:
    """Validate and return a granularity.

    Raises:
        InvalidPeriodTypeError: If granularity is not day/month/year.
    """
    if granularity not in VALID_GRANULARITIES:
        raise InvalidPeriodTypeError(granularity)
    return granularity  # type: ignore


def period_key(day: date, granularity: Granularity | str) -> str:
    """Generate a period key for a date.

    Args:
        day: Date to generate a key for.
        granularity: "day", "month", or "year".

    Returns:
        Period key string ("2024-03-15", "2024-03", or "2024").

    Raises:
        InvalidPeriodTypeError: If granularity is not valid.

    Example:
        >>> period_key(date(2024, 3, 15), "month")
        '2024-03'
    """
    granularity = validate_granularity(granularity)

    if granularity == "day":
        return day.isoformat()
    elif granularity == "month":
        return f"{day.year:04d}-{day.month:02d}"
    else:  # year
        return f"{day.year:04d}"


def scan_entries(entries: Iterable[DiaryEntry]) -> TextScan:
    """Scan several entries as one block of text."""
    return TextScan.merge(scan_text(e.content) for e in entries)


# =============================================================================
# Main Processor Class
# =============================================================================


class DiaryProcessor:
    """Bucket diary entries by period and scan each bucket.

    The processor holds a sorted, immutable snapshot of the dated
    entries; undated entries are counted but excluded from every
    period-based result.

    Attributes:
        entries: Dated entries in chronological order.

    Example:
        >>> processor = DiaryProcessor(entries)
        >>> monthly = processor.get_period_stats("month")
        >>> daily = processor.get_period_stats("day")
    """

    def __init__(self, entries: Iterable[DiaryEntry]) -> None:
        """Initialize with diary entries.

        Args:
            entries: Entries to process, in any order. Sorted by date
                     internally; the input is not modified.
        """
        snapshot = tuple(entries)
        self._undated_count = sum(1 for e in snapshot if e.date is None)
        self._entries: tuple[DiaryEntry, ...] = tuple(
            sorted((e for e in snapshot if e.date is not None), key=lambda e: e.date)
        )

    @property
    def entries(self) -> tuple[DiaryEntry, ...]:
        """Get the dated entries in chronological order."""
        return self._entries

    @property
    def entry_count(self) -> int:
        """Number of dated entries."""
        return len(self._entries)

    def group_by_period(
        self,
        granularity: Granularity | str = DEFAULT_GRANULARITY,
    ) -> dict[str, list[DiaryEntry]]:
        """Group dated entries by period key, in chronological order.

        Raises:
            InvalidPeriodTypeError: If granularity is not valid.
        """
        validated = validate_granularity(granularity)

        groups: dict[str, list[DiaryEntry]] = {}
        for entry in self._entries:
            key = period_key(entry.date, validated)
            if key not in groups:
                groups[key] = []
            groups[key].append(entry)

        return {key: groups[key] for key in sorted(groups)}

    def iter_period_stats(
        self,
        granularity: Granularity | str = DEFAULT_GRANULARITY,
        *,
        chunk_size: int = DEFAULT_SCAN_CHUNK_SIZE,
    ) -> Iterator[RawPeriodStats]:
        """Scan periods lazily, one RawPeriodStats at a time.

        Full-corpus rescans can take a while on large imports; iterating
        lets the caller interleave its own work between periods.

        Args:
            granularity: "day", "month", or "year".
            chunk_size: Log progress after this many periods.

        Yields:
            RawPeriodStats in ascending chronological order.
        """
        validated = validate_granularity(granularity)
        groups = self.group_by_period(validated)
        total = len(groups)

        for index, (key, group) in enumerate(groups.items(), start=1):
            yield RawPeriodStats(
                period=key,
                granularity=validated,
                entry_count=len(group),
                scan=scan_entries(group),
            )
            if chunk_size > 0 and index % chunk_size == 0:
                logger.debug("Scanned %d/%d %s periods", index, total, validated)

    def get_period_stats(
        self,
        granularity: Granularity | str = DEFAULT_GRANULARITY,
    ) -> list[RawPeriodStats]:
        """Scan every period that has entries.

        Args:
            granularity: How to bucket entries:
                - "day": one row per writing day
                - "month": one row per month (drives most metrics)
                - "year": one row per year

        Returns:
            List of RawPeriodStats, sorted chronologically. Periods with
            no entries are absent.

        Raises:
            InvalidPeriodTypeError: If granularity is not valid.

        Example:
            >>> for stats in processor.get_period_stats("year"):
            ...     print(stats.period, stats.entry_count)
        """
        return list(self.iter_period_stats(granularity))

    def get_period_text(
        self,
        key: str,
        granularity: Granularity | str = DEFAULT_GRANULARITY,
    ) -> str:
        """Get the newline-joined text of one period ("" if absent)."""
        group = self.group_by_period(granularity).get(key, [])
        return "\n".join(e.content for e in group)

    def get_period_texts(
        self,
        granularity: Granularity | str = DEFAULT_GRANULARITY,
    ) -> dict[str, str]:
        """Get the newline-joined text of every period, keyed by period."""
        return {
            key: "\n".join(e.content for e in group)
            for key, group in self.group_by_period(granularity).items()
        }

    def get_stats_by_key(
        self,
        key: str,
        granularity: Granularity | str = DEFAULT_GRANULARITY,
        *,
        raise_if_missing: bool = False,
    ) -> RawPeriodStats | None:
        """Get the stats of one period.

        Args:
            key: Period key (e.g., "2024-03").
            granularity: Granularity the key belongs to.
            raise_if_missing: If True, raise PeriodNotFoundError instead
                              of returning None.

        Raises:
            InvalidPeriodTypeError: If granularity is not valid.
            PeriodNotFoundError: If raise_if_missing=True and the period
                                 has no entries.
        """
        validated = validate_granularity(granularity)
        groups = self.group_by_period(validated)

        group = groups.get(key)
        if group is not None:
            return RawPeriodStats(
                period=key,
                granularity=validated,
                entry_count=len(group),
                scan=scan_entries(group),
            )

        if raise_if_missing:
            raise PeriodNotFoundError(key, list(groups))

        return None

    def get_total_stats(self) -> dict[str, int | tuple[date, date] | None]:
        """Get overall statistics for the corpus.

        Returns:
            Dictionary with keys:
                - total_entries: Number of entries including undated ones
                - dated_entries: Entries usable for period analysis
                - undated_entries: Entries skipped by period analysis
                - total_chars: Character count of dated entries
                - date_range: (earliest, latest) dates, or None
        """
        if not self._entries:
            return {
                "total_entries": self._undated_count,
                "dated_entries": 0,
                "undated_entries": self._undated_count,
                "total_chars": 0,
                "date_range": None,
            }

        return {
            "total_entries": len(self._entries) + self._undated_count,
            "dated_entries": len(self._entries),
            "undated_entries": self._undated_count,
            "total_chars": sum(e.char_count for e in self._entries),
            "date_range": (self._entries[0].date, self._entries[-1].date),
        }
