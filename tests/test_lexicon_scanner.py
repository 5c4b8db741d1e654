import pytest

from diary_lens.exceptions import UnknownCategoryError
from diary_lens.lexicon import CATEGORIES, COMMON_KATAKANA_WORDS, PRECURSOR_CANDIDATES, get_words
from diary_lens.scanner import (
    TextScan,
    anonymize,
    count_occurrences,
    normalize_rate,
    scan_text,
    split_sentences,
    top_emotion_words,
)


# =============================================================================
# Lexicon
# =============================================================================


def test_get_words_returns_immutable_tuple():
    words = get_words("negative")
    assert isinstance(words, tuple)
    assert "辛い" in words


def test_unknown_category_raises():
    with pytest.raises(UnknownCategoryError) as exc_info:
        get_words("happiness")
    assert "happiness" in str(exc_info.value)
    assert exc_info.value.available_categories == list(CATEGORIES)


def test_depth_lexicons_are_disjoint():
    assert not set(get_words("light_negative")) & set(get_words("deep_negative"))


def test_precursor_candidates_are_unique():
    assert len(PRECURSOR_CANDIDATES) == len(set(PRECURSOR_CANDIDATES))
    assert "頭痛" in PRECURSOR_CANDIDATES
    assert "残業" in PRECURSOR_CANDIDATES


# =============================================================================
# Primitives
# =============================================================================


def test_count_occurrences_sums_each_word():
    assert count_occurrences("疲れた。疲れすぎ", ["疲れ"]) == 2
    assert count_occurrences("辛い嬉しい", ["辛い", "嬉しい"]) == 2
    assert count_occurrences("", ["辛い"]) == 0


def test_normalize_rate_handles_empty_text():
    assert normalize_rate(5, 0) == 0.0
    assert normalize_rate(1, 500) == pytest.approx(2.0)


def test_split_sentences_drops_blank_segments():
    assert split_sentences("晴れ。散歩した！\n\n") == ["晴れ", "散歩した"]
    assert split_sentences("。。\n") == []


# =============================================================================
# scan_text
# =============================================================================


def test_empty_text_scans_to_zeros():
    scan = scan_text("")
    assert scan.char_length == 0
    assert all(count == 0 for count in scan.counts.values())
    assert all(rate == 0.0 for rate in scan.rates.values())
    assert scan.sentence_count == 0
    assert scan.avg_sentence_length == 0.0
    assert scan.negative_ratio == 0.0


def test_rate_is_count_per_thousand_chars():
    text = "辛い。今日は晴れた。"
    scan = scan_text(text)
    assert scan.count("negative") == 1
    assert scan.rate("negative") == pytest.approx(1 / len(text) * 1000)


def test_overlapping_categories_are_counted_independently():
    scan = scan_text("疲れた")
    assert scan.count("negative") == 1
    assert scan.count("light_negative") == 1
    assert scan.count("deep_negative") == 0


def test_sentence_structure():
    scan = scan_text("晴れ。散歩した！\n\n")
    assert scan.sentence_count == 2
    assert scan.avg_sentence_length == pytest.approx(3.0)


def test_question_and_exclamation_counts():
    scan = scan_text("元気？うん。本当?はい！")
    assert scan.question_count == 2
    assert scan.exclamation_count == 1


def test_negative_ratio():
    assert scan_text("辛い辛い嬉しい").negative_ratio == pytest.approx(2 / 3)


def test_scan_rejects_unknown_category():
    with pytest.raises(UnknownCategoryError):
        scan_text("辛い").count("joy")


def test_merge_adds_counts_and_renormalizes_rates():
    merged = TextScan.merge([scan_text("辛い。"), scan_text("嬉しい！")])
    assert merged.char_length == 7
    assert merged.count("negative") == 1
    assert merged.count("positive") == 1
    assert merged.sentence_count == 2
    assert merged.rate("negative") == pytest.approx(1 / 7 * 1000)


def test_to_dict_flattens_categories():
    data = scan_text("辛い").to_dict()
    assert data["negative_count"] == 1
    assert "physical_symptom_rate" in data


def test_top_emotion_words_ranks_by_count():
    assert top_emotion_words("辛い辛い嬉しい") == [("辛い", 2), ("嬉しい", 1)]
    assert top_emotion_words("辛い嬉しい楽しい", limit=1) == [("辛い", 1)]


# =============================================================================
# Anonymization
# =============================================================================


@pytest.mark.parametrize(
    "text, expected",
    [
        ("田中さんとカフェでケンに会った", "***さんとカフェで***に会った"),
        ("山田先生に相談した。", "***先生に相談した。"),
        ("ストレスでイライラする", "ストレスでイライラする"),
        ("マリアちゃんが来た", "***ちゃんが来た"),
        ("今日は晴れた。", "今日は晴れた。"),
    ],
)
def test_anonymize_masks_name_like_words(text, expected):
    assert anonymize(text) == expected


def test_anonymize_leaves_long_katakana_runs():
    # Seven katakana characters are treated as a loanword, not a name
    assert anonymize("インターネット") == "インターネット"


def test_common_katakana_words_survive_anonymize():
    assert "カウンセリング" in COMMON_KATAKANA_WORDS
    assert all(anonymize(word) == word for word in COMMON_KATAKANA_WORDS)
