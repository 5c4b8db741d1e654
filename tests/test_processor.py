from datetime import date

import pytest

from diary_lens.entry import DiaryEntry, FutureComment
from diary_lens.exceptions import EntryFormatError, InvalidPeriodTypeError, PeriodNotFoundError
from diary_lens.processor import DiaryProcessor, period_key

from conftest import FILLER, make_entry


@pytest.fixture
def processor():
    return DiaryProcessor([
        make_entry(date(2024, 3, 2), "辛い。嬉しい！", entry_id="b"),
        make_entry(date(2024, 3, 1), "辛い。嬉しい！", entry_id="a"),
        make_entry(date(2024, 5, 9), FILLER, entry_id="c"),
        make_entry(None, "日付のない日記", entry_id="d"),
    ])


# =============================================================================
# Period keys
# =============================================================================


def test_period_key_formats():
    day = date(2024, 3, 5)
    assert period_key(day, "day") == "2024-03-05"
    assert period_key(day, "month") == "2024-03"
    assert period_key(day, "year") == "2024"


def test_invalid_granularity_raises(processor):
    with pytest.raises(InvalidPeriodTypeError) as exc_info:
        processor.get_period_stats("week")
    assert exc_info.value.granularity == "week"


# =============================================================================
# Aggregation
# =============================================================================


def test_entries_are_sorted_and_undated_skipped(processor):
    assert [e.id for e in processor.entries] == ["a", "b", "c"]
    assert processor.entry_count == 3


def test_same_month_entries_share_one_bucket(processor):
    march = processor.get_period_stats("month")[0]
    single = DiaryProcessor([make_entry(date(2024, 3, 1), "辛い。嬉しい！")]).get_period_stats("month")[0]

    assert march.period == "2024-03"
    assert march.entry_count == 2
    assert march.count("negative") == 2 * single.count("negative")
    assert march.count("positive") == 2 * single.count("positive")
    assert march.rate("negative") == pytest.approx(single.rate("negative"))
    assert march.negative_ratio == pytest.approx(0.5)


def test_periods_without_entries_are_absent(processor):
    assert [s.period for s in processor.get_period_stats("month")] == ["2024-03", "2024-05"]
    assert [s.period for s in processor.get_period_stats("year")] == ["2024"]


def test_daily_stats_expose_the_day(processor):
    first = processor.get_period_stats("day")[0]
    assert first.day == date(2024, 3, 1)
    assert first.calendar_month == 3


def test_period_text_joins_with_newlines(processor):
    assert processor.get_period_text("2024-03") == "辛い。嬉しい！\n辛い。嬉しい！"
    assert processor.get_period_text("2023-01") == ""


def test_get_stats_by_key(processor):
    assert processor.get_stats_by_key("2024-05").entry_count == 1
    assert processor.get_stats_by_key("2024-04") is None
    with pytest.raises(PeriodNotFoundError) as exc_info:
        processor.get_stats_by_key("2024-04", raise_if_missing=True)
    assert exc_info.value.available_periods == ["2024-03", "2024-05"]


def test_total_stats(processor):
    totals = processor.get_total_stats()
    assert totals["total_entries"] == 4
    assert totals["dated_entries"] == 3
    assert totals["undated_entries"] == 1
    assert totals["date_range"] == (date(2024, 3, 1), date(2024, 5, 9))


def test_total_stats_empty():
    totals = DiaryProcessor([]).get_total_stats()
    assert totals["total_entries"] == 0
    assert totals["date_range"] is None


# =============================================================================
# Entry model
# =============================================================================


def test_entry_round_trips_camel_case_keys():
    entry = DiaryEntry.from_dict({
        "id": "x",
        "date": "2024-01-15",
        "content": "晴れ",
        "sourceFile": "a.txt",
        "isFavorite": True,
    })
    assert entry.date == date(2024, 1, 15)
    assert entry.source_file == "a.txt"
    data = entry.to_dict()
    assert data["sourceFile"] == "a.txt"
    assert data["isFavorite"] is True


def test_entry_without_content_is_rejected():
    with pytest.raises(EntryFormatError):
        DiaryEntry.from_dict({"date": "2024-01-15"})


def test_with_comment_returns_new_entry():
    entry = make_entry(date(2024, 1, 1), FILLER)
    commented = entry.with_comment("よく頑張った")
    assert entry.comments == ()
    assert commented.comments[0].text == "よく頑張った"
    assert commented.toggle_favorite().is_favorite is True


def test_comment_length_limit():
    with pytest.raises(ValueError):
        FutureComment.create("あ" * 141)
