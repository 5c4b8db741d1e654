"""In-memory memoization of generated narrative results.

``AnalysisCache`` holds at most one current result per analysis type
(``AiCache``) plus an append-only history of every result ever saved
(``AiLog``). A cached result becomes stale when the corpus changes; the
stale text is still served as a fallback when regeneration fails.

Persistence is the caller's concern: ``to_dict()`` on the records gives
the JSON shape of the diary app's backup.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime

__all__ = ["AiCache", "AiLog", "AnalysisCache"]


@dataclass(frozen=True, slots=True)
class AiCache:
    """Current narrative result for one analysis type.

    Attributes:
        type: Analysis type (template name).
        result: Generated text.
        analyzed_at: When the result was generated.
        entry_count: Corpus size the result was generated from.
        is_stale: True once the corpus has changed since generation.
    """

    type: str
    result: str
    analyzed_at: datetime
    entry_count: int
    is_stale: bool = False

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["analyzed_at"] = self.analyzed_at.isoformat()
        return data


@dataclass(frozen=True, slots=True)
class AiLog:
    """One historical narrative result."""

    id: str
    type: str
    result: str
    analyzed_at: datetime
    entry_count: int

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["analyzed_at"] = self.analyzed_at.isoformat()
        return data


@dataclass
class AnalysisCache:
    """Result sink keyed by analysis type.

    Example:
        >>> cache = AnalysisCache()
        >>> cache.save("tone", "Mostly calm.", entry_count=120)
        >>> cache.get("tone").result
        'Mostly calm.'
    """

    _current: dict[str, AiCache] = field(default_factory=dict)
    _logs: list[AiLog] = field(default_factory=list)

    def get(self, kind: str) -> AiCache | None:
        return self._current.get(kind)

    def save(self, kind: str, result: str, entry_count: int) -> AiCache:
        """Store a fresh result and append it to the history."""
        now = datetime.now()
        cached = AiCache(type=kind, result=result, analyzed_at=now, entry_count=entry_count)
        self._current[kind] = cached
        self._logs.append(AiLog(
            id=str(uuid.uuid4()),
            type=kind,
            result=result,
            analyzed_at=now,
            entry_count=entry_count,
        ))
        return cached

    def mark_stale(self, kind: str) -> None:
        cached = self._current.get(kind)
        if cached is not None and not cached.is_stale:
            self._current[kind] = replace(cached, is_stale=True)

    def mark_all_stale(self) -> None:
        """Flag every cached result as stale, e.g. after an import."""
        for kind in list(self._current):
            self.mark_stale(kind)

    def clear(self) -> None:
        """Drop current results; the history is kept."""
        self._current.clear()

    def logs(self, kind: str | None = None) -> list[AiLog]:
        """History in analyzed_at order, optionally for one type."""
        selected = [log for log in self._logs if kind is None or log.type == kind]
        return sorted(selected, key=lambda log: log.analyzed_at)

    def __len__(self) -> int:
        return len(self._current)
