"""Read diary entries from exported files.

This module loads entries from a JSON export (a list of entry objects,
an object with an ``entries`` list, or a single entry object), from a
single ``.txt`` / ``.md`` file, or from a directory of such files. It
never writes to the source.

Entry dates come from the record itself when present; otherwise they
are extracted from the first lines of the text, and finally from the
filename (``2024-01-15.txt``, ``diary_20240115.md``).

A text file that contains several date lines is split into one entry
per dated section.

Example:
    >>> from diary_lens.reader import EntryReader
    >>> reader = EntryReader("exports/")
    >>> entries = reader.read_entries()
    >>> print(f"Loaded {len(entries)} entries")
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from collections.abc import Iterator
from datetime import date, datetime
from pathlib import Path
from typing import Any

from .constants import DATE_SEARCH_LINES, ERA_OFFSETS, MAX_ENTRY_YEAR, MIN_ENTRY_YEAR, TEXT_SUFFIXES
from .entry import DiaryEntry
from .exceptions import EntryFormatError, SourceNotFoundError

__all__ = ["EntryReader", "extract_date", "extract_date_from_filename", "split_by_dates"]

logger = logging.getLogger(__name__)

_MONTH_NUMBERS: dict[str, int] = {
    "january": 1, "jan": 1, "february": 2, "feb": 2, "march": 3, "mar": 3,
    "april": 4, "apr": 4, "may": 5, "june": 6, "jun": 6, "july": 7, "jul": 7,
    "august": 8, "aug": 8, "september": 9, "sep": 9, "october": 10, "oct": 10,
    "november": 11, "nov": 11, "december": 12, "dec": 12,
}
_MONTH_NAME = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
    "|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sep|Oct|Nov|Dec"
)
_ERA = "|".join(ERA_OFFSETS)

_ISO_DATE = re.compile(r"(\d{4})[-/](\d{1,2})[-/](\d{1,2})")
_KANJI_DATE = re.compile(r"(\d{4})年(\d{1,2})月(\d{1,2})日")
_ERA_DATE = re.compile(rf"({_ERA})(\d{{1,2}}|元)年(\d{{1,2}})月(\d{{1,2}})日")
_MONTH_FIRST = re.compile(rf"({_MONTH_NAME})\s+(\d{{1,2}}),?\s+(\d{{4}})", re.IGNORECASE)
_DAY_FIRST = re.compile(rf"(\d{{1,2}})\s+({_MONTH_NAME})\s+(\d{{4}})", re.IGNORECASE)
_FILENAME_DATE = re.compile(r"(\d{4})[-_]?(\d{2})[-_]?(\d{2})")

# A line that starts a new dated section inside a text file
_DATE_LINE = re.compile(rf"^(?:\d{{4}}[-/]\d{{1,2}}[-/]\d{{1,2}}|\d{{4}}年\d{{1,2}}月\d{{1,2}}日|(?:{_ERA})(?:\d{{1,2}}|元)年)")


# =============================================================================
# Date Extraction
# =============================================================================


def _to_date(year: int, month: int, day: int) -> date | None:
    """Build a date, or None when it is outside the plausible range."""
    if not MIN_ENTRY_YEAR <= year <= MAX_ENTRY_YEAR:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _match_date(text: str) -> date | None:
    if m := _ISO_DATE.search(text):
        if found := _to_date(int(m[1]), int(m[2]), int(m[3])):
            return found
    if m := _KANJI_DATE.search(text):
        if found := _to_date(int(m[1]), int(m[2]), int(m[3])):
            return found
    if m := _ERA_DATE.search(text):
        era_year = 1 if m[2] == "元" else int(m[2])
        if found := _to_date(ERA_OFFSETS[m[1]] + era_year, int(m[3]), int(m[4])):
            return found
    if m := _MONTH_FIRST.search(text):
        if found := _to_date(int(m[3]), _MONTH_NUMBERS[m[1].lower()], int(m[2])):
            return found
    if m := _DAY_FIRST.search(text):
        if found := _to_date(int(m[3]), _MONTH_NUMBERS[m[2].lower()], int(m[1])):
            return found
    return None


def extract_date(text: str) -> date | None:
    """Find an entry date in the first lines of a text.

    Recognized forms: ``2024-01-15`` / ``2024/01/15``, ``2024年1月15日``,
    ``令和6年1月15日`` / ``平成31年1月15日``, ``January 15, 2024`` and
    ``15 January 2024`` (full or abbreviated month names).

    Example:
        >>> extract_date("令和6年1月15日\\n晴れ")
        datetime.date(2024, 1, 15)
    """
    head = " ".join(text.split("\n")[:DATE_SEARCH_LINES])
    return _match_date(head)


def extract_date_from_filename(filename: str) -> date | None:
    """Find a date in a filename such as ``diary_20240115.md``."""
    m = _FILENAME_DATE.search(filename)
    if m is None:
        return None
    return _to_date(int(m[1]), int(m[2]), int(m[3]))


def split_by_dates(text: str) -> list[tuple[date | None, str]]:
    """Split a text into sections, each starting at a date line.

    Returns:
        ``(date, content)`` pairs; text before the first date line
        becomes an undated section. Blank sections are dropped.
    """
    sections: list[tuple[date | None, str]] = []
    current: list[str] = []
    current_date: date | None = None

    for line in text.split("\n"):
        if _DATE_LINE.match(line.strip()):
            if any(part.strip() for part in current):
                sections.append((current_date, "\n".join(current).strip()))
            current_date = _match_date(line)
            current = [line]
        else:
            current.append(line)

    if any(part.strip() for part in current):
        sections.append((current_date, "\n".join(current).strip()))

    return sections


# =============================================================================
# Main Reader Class
# =============================================================================


class EntryReader:
    """Read-only loader for exported diary entries.

    Attributes:
        path: A .json/.txt/.md file or a directory of them.

    Example:
        >>> reader = EntryReader("diary.json")
        >>> entries = reader.read_entries()

    Raises:
        SourceNotFoundError: If the path doesn't exist.
    """

    def __init__(self, path: Path | str) -> None:
        self.path: Path = Path(path)

        if not self.path.exists():
            raise SourceNotFoundError(str(self.path))

    def _iter_files(self) -> Iterator[Path]:
        if self.path.is_file():
            yield self.path
            return
        for file in sorted(self.path.rglob("*")):
            if file.is_file() and file.suffix.lower() in (*TEXT_SUFFIXES, ".json"):
                yield file

    def read_entries(self) -> list[DiaryEntry]:
        """Load every entry under the path.

        Returns:
            Entries sorted by date, undated entries last.

        Raises:
            EntryFormatError: If a JSON file is malformed.
        """
        entries: list[DiaryEntry] = []
        for file in self._iter_files():
            try:
                text = file.read_text(encoding="utf-8")
            except UnicodeDecodeError as e:
                raise EntryFormatError(str(file), f"not UTF-8 text ({e.reason})") from e

            if file.suffix.lower() == ".json":
                entries.extend(self._parse_json(text, file.name))
            else:
                entries.extend(self._parse_text(text, file.name))

        logger.info("Read %d entries from %s", len(entries), self.path)
        return sorted(entries, key=lambda e: (e.date is None, e.date or date.min))

    def get_entries_by_date_range(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[DiaryEntry]:
        """Get dated entries within an inclusive date range.

        Example:
            >>> march = reader.get_entries_by_date_range(date(2024, 3, 1), date(2024, 3, 31))
        """
        return [
            e for e in self.read_entries()
            if e.date is not None
            and (start_date is None or e.date >= start_date)
            and (end_date is None or e.date <= end_date)
        ]

    @staticmethod
    def _parse_text(text: str, filename: str) -> list[DiaryEntry]:
        now = datetime.now()
        sections = split_by_dates(text)

        if len(sections) <= 1:
            if not text.strip():
                return []
            return [DiaryEntry(
                id=str(uuid.uuid4()),
                date=extract_date(text) or extract_date_from_filename(filename),
                content=text.strip(),
                source_file=filename,
                imported_at=now,
            )]

        return [
            DiaryEntry(
                id=str(uuid.uuid4()),
                date=section_date,
                content=content,
                source_file=filename,
                imported_at=now,
            )
            for section_date, content in sections
        ]

    @classmethod
    def _parse_json(cls, text: str, filename: str) -> list[DiaryEntry]:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise EntryFormatError(filename, f"invalid JSON ({e.msg} at line {e.lineno})") from e

        if isinstance(data, dict) and isinstance(data.get("entries"), list):
            data = data["entries"]
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise EntryFormatError(filename, "expected a list of entries")

        return [cls._record_to_entry(item, f"{filename}[{i}]", filename) for i, item in enumerate(data)]

    @staticmethod
    def _record_to_entry(item: Any, source: str, filename: str) -> DiaryEntry:
        if not isinstance(item, dict):
            raise EntryFormatError(source, "entry must be an object")

        record = dict(item)
        content = record.get("content", record.get("text", record.get("body")))
        if content is None:
            content = json.dumps(item, ensure_ascii=False)
        record["content"] = str(content)

        if not record.get("date"):
            record["date"] = extract_date(record["content"])
        if not record.get("sourceFile") and not record.get("source_file"):
            record["sourceFile"] = filename

        return DiaryEntry.from_dict(record, source)
