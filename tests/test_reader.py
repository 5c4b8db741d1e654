import json
from datetime import date

import pytest

from diary_lens.exceptions import EntryFormatError, SourceNotFoundError
from diary_lens.reader import EntryReader, extract_date, extract_date_from_filename, split_by_dates


# =============================================================================
# Date extraction
# =============================================================================


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2024-01-15\n晴れ", date(2024, 1, 15)),
        ("2024/1/5 日記", date(2024, 1, 5)),
        ("2024年3月9日（土）", date(2024, 3, 9)),
        ("令和6年1月15日", date(2024, 1, 15)),
        ("平成31年4月30日", date(2019, 4, 30)),
        ("令和元年5月1日", date(2019, 5, 1)),
        ("January 15, 2024", date(2024, 1, 15)),
        ("15 Jan 2024", date(2024, 1, 15)),
        ("sep 3 2023", date(2023, 9, 3)),
    ],
)
def test_extract_date_forms(text, expected):
    assert extract_date(text) == expected


@pytest.mark.parametrize("text", ["2024-13-40", "1800-01-01", "今日は晴れた", ""])
def test_extract_date_rejects_implausible_dates(text):
    assert extract_date(text) is None


def test_extract_date_only_searches_the_first_lines():
    assert extract_date("\n" * 5 + "2024-01-15") is None
    assert extract_date("\n" * 4 + "2024-01-15") == date(2024, 1, 15)


def test_extract_date_from_filename():
    assert extract_date_from_filename("diary_20240115.md") == date(2024, 1, 15)
    assert extract_date_from_filename("2024-01-15.txt") == date(2024, 1, 15)
    assert extract_date_from_filename("notes.txt") is None


def test_split_by_dates():
    sections = split_by_dates("前書き\n2024-01-01\n晴れ\n\n2024年1月2日\n雨")
    assert sections == [
        (None, "前書き"),
        (date(2024, 1, 1), "2024-01-01\n晴れ"),
        (date(2024, 1, 2), "2024年1月2日\n雨"),
    ]


# =============================================================================
# EntryReader
# =============================================================================


def test_missing_source_raises(tmp_path):
    with pytest.raises(SourceNotFoundError) as exc_info:
        EntryReader(tmp_path / "missing.json")
    assert "missing.json" in exc_info.value.path


def test_read_json_list(tmp_path):
    path = tmp_path / "export.json"
    path.write_text(json.dumps([
        {"id": "b", "content": "2024年2月3日\n晴れ"},
        {"id": "a", "date": "2024-01-05", "text": "雨"},
        {"id": "c", "content": "日付なし"},
    ], ensure_ascii=False), encoding="utf-8")

    entries = EntryReader(path).read_entries()

    assert [e.id for e in entries] == ["a", "b", "c"]
    assert entries[0].content == "雨"
    assert entries[1].date == date(2024, 2, 3)
    assert entries[2].date is None
    assert all(e.source_file == "export.json" for e in entries)


def test_read_json_entries_object(tmp_path):
    path = tmp_path / "backup.json"
    path.write_text(json.dumps({"entries": [
        {"date": "2024-01-05", "content": "晴れ", "sourceFile": "orig.txt"},
    ]}), encoding="utf-8")

    entries = EntryReader(path).read_entries()
    assert len(entries) == 1
    assert entries[0].source_file == "orig.txt"


def test_malformed_json_raises(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("[{", encoding="utf-8")
    with pytest.raises(EntryFormatError) as exc_info:
        EntryReader(path).read_entries()
    assert exc_info.value.source == "broken.json"


def test_non_object_record_raises(tmp_path):
    path = tmp_path / "numbers.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(EntryFormatError):
        EntryReader(path).read_entries()


def test_read_directory_of_text_files(tmp_path):
    (tmp_path / "diary_20240115.md").write_text("散歩した。", encoding="utf-8")
    (tmp_path / "multi.txt").write_text("2024-01-01\n晴れ\n2024-01-02\n雨", encoding="utf-8")
    (tmp_path / "empty.txt").write_text("   \n", encoding="utf-8")
    (tmp_path / "image.png").write_bytes(b"\x89PNG")

    entries = EntryReader(tmp_path).read_entries()

    assert [e.date for e in entries] == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 15)]
    assert entries[2].content == "散歩した。"
    assert entries[2].source_file == "diary_20240115.md"


def test_non_utf8_text_raises(tmp_path):
    (tmp_path / "legacy.txt").write_bytes("日記".encode("shift_jis"))
    with pytest.raises(EntryFormatError):
        EntryReader(tmp_path).read_entries()


def test_get_entries_by_date_range(tmp_path):
    (tmp_path / "multi.txt").write_text(
        "2024-01-01\n晴れ\n2024-02-01\n雨\n2024-03-01\n曇り", encoding="utf-8"
    )
    reader = EntryReader(tmp_path)
    selected = reader.get_entries_by_date_range(date(2024, 1, 15), date(2024, 3, 1))
    assert [e.date for e in selected] == [date(2024, 2, 1), date(2024, 3, 1)]


def test_long_backup_comment_is_truncated(tmp_path):
    path = tmp_path / "backup.json"
    path.write_text(json.dumps([
        {"date": "2024-01-05", "content": "晴れ", "comments": [{"text": "あ" * 141}]},
    ]), encoding="utf-8")

    entries = EntryReader(path).read_entries()
    assert len(entries[0].comments[0].text) == 140


@pytest.mark.parametrize("comments", [["just text"], "not a list"])
def test_malformed_comments_raise(tmp_path, comments):
    path = tmp_path / "backup.json"
    path.write_text(json.dumps([{"content": "晴れ", "comments": comments}]), encoding="utf-8")
    with pytest.raises(EntryFormatError):
        EntryReader(path).read_entries()
