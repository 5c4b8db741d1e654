"""Lexical and structural scanning of diary text.

The scanner is the shared primitive under every analysis: it counts
lexicon hits per category and measures sentence structure in a block
of text. Counts are always reported alongside rates normalized per
1000 characters, because raw counts are biased by how much was written.

Scanning is a linear substring search per lexicon word (``str.count``),
which counts non-overlapping occurrences of that word. Each category is
scanned in its own pass, so overlapping category membership simply
contributes to both categories.

Example:
    >>> from diary_lens.scanner import scan_text
    >>> scan = scan_text("今日は疲れた。でも楽しい！")
    >>> scan.count("negative"), scan.count("positive")
    (1, 1)
    >>> scan.sentence_count
    2
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .constants import RATE_SCALE_CHARS, SENTENCE_DELIMITERS, TOP_EMOTION_WORDS
from .lexicon import CATEGORIES, COMMON_KATAKANA_WORDS, EMOTION_CATEGORIES, get_words

__all__ = [
    "TextScan",
    "anonymize",
    "count_occurrences",
    "normalize_rate",
    "scan_text",
    "split_sentences",
    "top_emotion_words",
]

_SENTENCE_SPLIT = re.compile(f"[{SENTENCE_DELIMITERS}]+")
# Zero-width split after each delimiter keeps the terminator on its segment
_SEGMENT_SPLIT = re.compile(f"(?<=[{SENTENCE_DELIMITERS}])")

# Up to four kanji or kana followed by an honorific
_HONORIFIC_NAME = re.compile(r"[\u4e00-\u9fff\u3040-\u309f\u30a0-\u30ff]{1,4}(さん|くん|ちゃん|先生|氏)")
# A standalone run of 2-6 katakana
_KATAKANA_NAME = re.compile(r"(?<![ァ-ヶー])[ァ-ヶー]{2,6}(?![ァ-ヶー])")
NAME_MASK = "***"


# =============================================================================
# Primitives
# =============================================================================


def count_occurrences(text: str, words: Iterable[str]) -> int:
    """Count exact substring hits of every word in text.

    Each word is searched independently; hits of different words are
    summed even when they overlap (``体が重い`` also contains ``重い``).

    Args:
        text: Text to scan.
        words: Trigger words.

    Returns:
        Total number of hits.

    Example:
        >>> count_occurrences("疲れた。疲れすぎ", ["疲れ"])
        2
    """
    if not text:
        return 0
    return sum(text.count(word) for word in words if word)


def normalize_rate(count: int | float, char_length: int) -> float:
    """Convert a count into occurrences per 1000 characters.

    Returns 0.0 for an empty text instead of dividing by zero.
    """
    if char_length <= 0:
        return 0.0
    return count / char_length * RATE_SCALE_CHARS


def split_sentences(text: str) -> list[str]:
    """Split text into sentences on ``。！？`` and newlines.

    Empty (or whitespace-only) segments are discarded.

    Example:
        >>> split_sentences("晴れ。散歩した！\\n\\n")
        ['晴れ', '散歩した']
    """
    return [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]


def _segments_with_terminators(text: str) -> list[str]:
    return [s for s in _SEGMENT_SPLIT.split(text) if s.strip()]


def _is_question(segment: str) -> bool:
    return segment.endswith("？") or "?" in segment


def _is_exclamation(segment: str) -> bool:
    return segment.endswith("！") or "!" in segment


# =============================================================================
# Scan Result
# =============================================================================


@dataclass(frozen=True, slots=True)
class TextScan:
    """Immutable scan result for a block of text.

    Attributes:
        char_length: Number of characters scanned.
        counts: Raw hit count per lexicon category.
        sentence_count: Number of non-empty sentences.
        sentence_length_sum: Total characters across sentences.
        question_count: Segments ending in ``？`` or containing ``?``.
        exclamation_count: Segments ending in ``！`` or containing ``!``.
    """

    char_length: int
    counts: Mapping[str, int]
    sentence_count: int = 0
    sentence_length_sum: int = 0
    question_count: int = 0
    exclamation_count: int = 0
    rates: Mapping[str, float] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        counts = {category: int(self.counts.get(category, 0)) for category in CATEGORIES}
        object.__setattr__(self, "counts", MappingProxyType(counts))
        object.__setattr__(
            self,
            "rates",
            MappingProxyType({
                category: normalize_rate(count, self.char_length)
                for category, count in counts.items()
            }),
        )

    def count(self, category: str) -> int:
        """Raw hit count for a category."""
        get_words(category)  # validates the name
        return self.counts[category]

    def rate(self, category: str) -> float:
        """Hits per 1000 characters for a category."""
        get_words(category)
        return self.rates[category]

    @property
    def avg_sentence_length(self) -> float:
        """Average characters per sentence (0.0 when there are none)."""
        if self.sentence_count == 0:
            return 0.0
        return self.sentence_length_sum / self.sentence_count

    @property
    def negative_ratio(self) -> float:
        """Share of negative hits among negative + positive hits."""
        negative = self.counts["negative"]
        total = negative + self.counts["positive"]
        return negative / total if total > 0 else 0.0

    @classmethod
    def empty(cls) -> TextScan:
        """Scan of an empty text."""
        return cls(char_length=0, counts={})

    @classmethod
    def merge(cls, scans: Iterable[TextScan]) -> TextScan:
        """Combine scans of separate texts into one.

        Counts and lengths add up, and rates are re-normalized by the
        combined length. Joining texts with a newline would give the same
        counts, since no trigger word contains a newline.
        """
        char_length = 0
        counts = dict.fromkeys(CATEGORIES, 0)
        sentence_count = sentence_length_sum = questions = exclamations = 0
        for scan in scans:
            char_length += scan.char_length
            for category, value in scan.counts.items():
                counts[category] += value
            sentence_count += scan.sentence_count
            sentence_length_sum += scan.sentence_length_sum
            questions += scan.question_count
            exclamations += scan.exclamation_count
        return cls(
            char_length=char_length,
            counts=counts,
            sentence_count=sentence_count,
            sentence_length_sum=sentence_length_sum,
            question_count=questions,
            exclamation_count=exclamations,
        )

    def to_dict(self) -> dict[str, object]:
        """Flatten into ``<category>_count`` / ``<category>_rate`` keys."""
        data: dict[str, object] = {"char_length": self.char_length}
        for category in CATEGORIES:
            data[f"{category}_count"] = self.counts[category]
            data[f"{category}_rate"] = self.rates[category]
        data.update(
            sentence_count=self.sentence_count,
            avg_sentence_length=self.avg_sentence_length,
            question_count=self.question_count,
            exclamation_count=self.exclamation_count,
        )
        return data


# =============================================================================
# Scanning
# =============================================================================


def scan_text(text: str) -> TextScan:
    """Scan a text block for every lexicon category and sentence features.

    Args:
        text: Raw diary text (may be empty).

    Returns:
        TextScan with counts, rates, and structural features. An empty
        text yields all zeros, never NaN.

    Example:
        >>> scan = scan_text("")
        >>> scan.rate("negative"), scan.avg_sentence_length
        (0.0, 0.0)
    """
    if not text:
        return TextScan.empty()

    counts = {category: count_occurrences(text, get_words(category)) for category in CATEGORIES}
    sentences = split_sentences(text)
    segments = _segments_with_terminators(text)

    return TextScan(
        char_length=len(text),
        counts=counts,
        sentence_count=len(sentences),
        sentence_length_sum=sum(len(s) for s in sentences),
        question_count=sum(1 for s in segments if _is_question(s)),
        exclamation_count=sum(1 for s in segments if _is_exclamation(s)),
    )


def top_emotion_words(text: str, limit: int = TOP_EMOTION_WORDS) -> list[tuple[str, int]]:
    """Rank the emotion words appearing in text by hit count.

    Args:
        text: Text to scan.
        limit: Maximum number of words to return.

    Returns:
        ``(word, count)`` pairs, most frequent first. Ties keep lexicon
        order (negative words before positive ones).
    """
    hits: list[tuple[str, int]] = []
    for category in EMOTION_CATEGORIES:
        for word in get_words(category):
            count = text.count(word) if text else 0
            if count > 0:
                hits.append((word, count))
    hits.sort(key=lambda pair: pair[1], reverse=True)
    return hits[:limit]


# =============================================================================
# Anonymization
# =============================================================================


def anonymize(text: str) -> str:
    """Mask name-like patterns so an entry can be shown to someone else.

    Two heuristics are applied in order: up to four characters before an
    honorific (``田中さん`` becomes ``***さん``), then standalone runs of
    2-6 katakana that are not everyday words (``COMMON_KATAKANA_WORDS``).
    This is a display aid, not a guarantee; kanji names without an
    honorific are left alone.

    Example:
        >>> anonymize("田中さんとカフェでケンに会った")
        '***さんとカフェで***に会った'
    """
    masked = _HONORIFIC_NAME.sub(lambda m: NAME_MASK + m.group(1), text)
    return _KATAKANA_NAME.sub(
        lambda m: m.group(0) if m.group(0) in COMMON_KATAKANA_WORDS else NAME_MASK, masked
    )
