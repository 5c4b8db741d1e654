"""Shared fixtures for building diary corpora."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta

import pytest

from diary_lens.entry import DiaryEntry
from diary_lens.metrics import MonthlyDeepAnalysis

# Contains no lexicon word in any category
FILLER = "今日は晴れた。"


def emotion_text(negative: int, positive: int) -> str:
    """Text with an exact number of negative and positive hits."""
    return "辛い" * negative + "嬉しい" * positive


def make_entry(day: date | None, content: str, entry_id: str | None = None) -> DiaryEntry:
    return DiaryEntry(
        id=entry_id or f"{day}-{abs(hash(content)) % 10_000}",
        date=day,
        content=content,
        imported_at=datetime(2024, 6, 1, 12, 0),
    )


def month_keys(count: int, start_year: int = 2023) -> list[str]:
    return [f"{start_year + i // 12:04d}-{i % 12 + 1:02d}" for i in range(count)]


def monthly_row(month: str, negative_ratio: float = 0.3, **overrides) -> MonthlyDeepAnalysis:
    """MonthlyDeepAnalysis with neutral defaults for every other field."""
    negative = round(negative_ratio * 100)
    fields = dict(
        month=month,
        negative_ratio=negative_ratio,
        negative_ratio_ma3=None,
        negative_ratio_ma6=None,
        seasonal_baseline=None,
        seasonal_deviation=None,
        entry_count=10,
        total_chars=1000,
        avg_sentence_length=30.0,
        negative_count=negative,
        positive_count=100 - negative,
        negative_rate=1.0,
        positive_rate=1.0,
        first_person_rate=1.0,
        other_person_rate=1.0,
        task_word_rate=1.0,
        self_monitor_rate=1.0,
        work_word_rate=1.0,
        self_denial_count=0,
        self_denial_rate=0.0,
        physical_symptom_count=0,
        physical_symptom_rate=0.0,
    )
    fields.update(overrides)
    return MonthlyDeepAnalysis(**fields)


def rows_from_ratios(ratios: list[float], **overrides) -> list[MonthlyDeepAnalysis]:
    return [monthly_row(key, ratio, **overrides) for key, ratio in zip(month_keys(len(ratios)), ratios)]


@pytest.fixture
def linear_entries() -> list[DiaryEntry]:
    """Twelve monthly entries whose negative ratio rises from 0.1 to 0.6.

    Month i has 22 + 10*i negative hits out of 220, so the ratio steps
    by exactly 1/22 per month.
    """
    entries = []
    for i in range(12):
        negative = 22 + 10 * i
        entries.append(make_entry(date(2023, i + 1, 10), emotion_text(negative, 220 - negative)))
    return entries


@pytest.fixture
def spike_entries() -> list[DiaryEntry]:
    """Sixty days (2024-01-01..2024-02-29) with two negative spikes.

    Spikes fall on day 30 and day 50; "頭痛" appears exactly five days
    before each spike and nowhere else.
    """
    start = date(2024, 1, 1)
    entries = []
    for offset in range(60):
        if offset in (30, 50):
            content = "辛い辛い辛い。" + FILLER
        elif offset in (25, 45):
            content = "頭痛がする。" + FILLER + "嬉しい。"
        else:
            content = FILLER + "嬉しい。"
        entries.append(make_entry(start + timedelta(days=offset), content))
    return entries


@pytest.fixture
def json_export(tmp_path, linear_entries):
    """A JSON export of the linear corpus on disk."""
    path = tmp_path / "diary.json"
    path.write_text(
        json.dumps([e.to_dict() for e in linear_entries], ensure_ascii=False),
        encoding="utf-8",
    )
    return path
