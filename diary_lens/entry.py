"""Diary entry data model.

Entries are owned by a storage collaborator; the analytics engine only
ever sees immutable snapshots. The only user-facing mutations after
import (attaching a future-facing comment, toggling the favorite flag)
return new instances instead of changing the original.

The dictionary form mirrors the JSON backup format of the diary app,
which uses camelCase keys (``sourceFile``, ``importedAt``, ``isFavorite``).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any

from .constants import MAX_COMMENT_LENGTH
from .exceptions import EntryFormatError

__all__ = ["DiaryEntry", "FutureComment"]


def _parse_date(value: Any, source: str) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as e:
        raise EntryFormatError(source, f"invalid date {value!r}") from e


def _parse_datetime(value: Any, source: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if value in (None, ""):
        return datetime.now()
    try:
        # fromisoformat() before 3.11 does not accept a trailing "Z"
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as e:
        raise EntryFormatError(source, f"invalid timestamp {value!r}") from e


@dataclass(frozen=True, slots=True)
class FutureComment:
    """A short note attached to an entry by the writer's future self.

    Attributes:
        id: Unique identifier.
        text: Comment text (at most 140 characters).
        created_at: When the comment was written.
    """

    id: str
    text: str
    created_at: datetime

    def __post_init__(self) -> None:
        if len(self.text) > MAX_COMMENT_LENGTH:
            raise ValueError(
                f"Comment is {len(self.text)} characters; the limit is {MAX_COMMENT_LENGTH}."
            )

    @classmethod
    def create(cls, text: str) -> FutureComment:
        """Create a new comment stamped with the current time."""
        return cls(id=str(uuid.uuid4()), text=text, created_at=datetime.now())

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "text": self.text, "createdAt": self.created_at.isoformat()}


def _parse_comments(value: Any, source: str) -> tuple[FutureComment, ...]:
    if value in (None, ""):
        return ()
    if not isinstance(value, list):
        raise EntryFormatError(source, "'comments' must be a list")

    comments = []
    for c in value:
        if not isinstance(c, dict):
            raise EntryFormatError(source, "comment must be an object")
        comments.append(FutureComment(
            id=str(c.get("id") or uuid.uuid4()),
            # Over-long comments in a backup are cut, not rejected
            text=str(c.get("text", ""))[:MAX_COMMENT_LENGTH],
            created_at=_parse_datetime(c.get("createdAt", c.get("created_at")), source),
        ))
    return tuple(comments)


@dataclass(frozen=True, slots=True)
class DiaryEntry:
    """An immutable diary entry.

    Attributes:
        id: Unique identifier.
        date: Calendar date of the entry, or None if it could not be
              determined. Undated entries are skipped by every
              period-based analysis.
        content: Free-text body.
        source_file: Name of the file the entry was imported from.
        imported_at: When the entry was imported.
        comments: Future-facing comments, oldest first.
        is_favorite: Whether the writer starred this entry.

    Example:
        >>> entry = DiaryEntry(id="1", date=date(2024, 3, 1), content="晴れ。")
        >>> entry.period_key("month")
        '2024-03'
    """

    id: str
    date: date | None
    content: str
    source_file: str = ""
    imported_at: datetime = field(default_factory=datetime.now)
    comments: tuple[FutureComment, ...] = field(default_factory=tuple)
    is_favorite: bool = False

    @property
    def char_count(self) -> int:
        """Number of characters in the content."""
        return len(self.content)

    @property
    def is_dated(self) -> bool:
        return self.date is not None

    def period_key(self, granularity: str) -> str | None:
        """Period key for this entry, or None when undated."""
        if self.date is None:
            return None
        from .processor import period_key

        return period_key(self.date, granularity)

    def with_comment(self, text: str) -> DiaryEntry:
        """Return a copy with a new future comment appended."""
        return replace(self, comments=(*self.comments, FutureComment.create(text)))

    def toggle_favorite(self) -> DiaryEntry:
        """Return a copy with the favorite flag flipped."""
        return replace(self, is_favorite=not self.is_favorite)

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str = "<dict>") -> DiaryEntry:
        """Build an entry from its JSON form.

        Args:
            data: Mapping with ``content`` and optionally ``id``, ``date``,
                  ``sourceFile``, ``importedAt``, ``comments``, ``isFavorite``.
                  snake_case keys are accepted as well.
            source: Where the record came from, for error messages.

        Raises:
            EntryFormatError: If the record has no content, bad dates or
                malformed comments. Comments over 140 characters are
                truncated.
        """
        if not isinstance(data, dict):
            raise EntryFormatError(source, "entry must be an object")
        content = data.get("content")
        if not isinstance(content, str):
            raise EntryFormatError(source, "missing 'content' text")

        comments = _parse_comments(data.get("comments"), source)

        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            date=_parse_date(data.get("date"), source),
            content=content,
            source_file=str(data.get("sourceFile", data.get("source_file", ""))),
            imported_at=_parse_datetime(data.get("importedAt", data.get("imported_at")), source),
            comments=comments,
            is_favorite=bool(data.get("isFavorite", data.get("is_favorite", False))),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON backup shape."""
        return {
            "id": self.id,
            "date": self.date.isoformat() if self.date else None,
            "content": self.content,
            "sourceFile": self.source_file,
            "importedAt": self.imported_at.isoformat(),
            "comments": [c.to_dict() for c in self.comments],
            "isFavorite": self.is_favorite,
        }
