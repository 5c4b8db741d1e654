from datetime import date

import pytest

from diary_lens.analyzer import (
    NARRATIVE_TEMPLATES,
    SYSTEM_PROMPT,
    DiaryAnalyzer,
    format_deep_stats_for_prompt,
    list_narrative_templates,
)
from diary_lens.cache import AnalysisCache
from diary_lens.detectors import PredictiveIndicator
from diary_lens.exceptions import TemplateNotFoundError

from conftest import FILLER, make_entry


class FakeGenerator:
    """Records prompts and returns canned text."""

    def __init__(self, text="The writer's tone stayed even."):
        self.text = text
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        return self.text


def failing_generator(prompt):
    raise RuntimeError("model unavailable")


# =============================================================================
# Cache
# =============================================================================


def test_cache_save_and_history():
    cache = AnalysisCache()
    cache.save("tone", "first", entry_count=3)
    cache.save("tone", "second", entry_count=4)
    cache.save("emotion_tags", "tags", entry_count=4)

    assert cache.get("tone").result == "second"
    assert len(cache) == 2
    assert [log.result for log in cache.logs("tone")] == ["first", "second"]
    assert len(cache.logs()) == 3


def test_cache_staleness_and_clear():
    cache = AnalysisCache()
    cache.save("tone", "text", entry_count=3)
    cache.save("deep_insight", "text", entry_count=3)

    cache.mark_stale("tone")
    assert cache.get("tone").is_stale is True
    assert cache.get("deep_insight").is_stale is False

    cache.mark_all_stale()
    assert cache.get("deep_insight").is_stale is True

    cache.clear()
    assert cache.get("tone") is None
    assert len(cache.logs()) == 2


def test_cache_records_serialize():
    cache = AnalysisCache()
    saved = cache.save("tone", "text", entry_count=1)
    assert saved.to_dict()["analyzed_at"] == saved.analyzed_at.isoformat()
    assert cache.logs()[0].to_dict()["type"] == "tone"


# =============================================================================
# Facade
# =============================================================================


def test_analyzer_reuses_monthly_series(linear_entries):
    analyzer = DiaryAnalyzer(linear_entries)
    assert len(analyzer.monthly_analysis()) == 12
    assert analyzer.period_stats("month")[0].period == "2023-01"
    assert analyzer.period_stats("year")[0].period == "2023"
    assert analyzer.total_stats()["dated_entries"] == 12
    assert len(analyzer.emotions()) == 12
    assert len(analyzer.emotions_daily(every=3)) == 4
    assert analyzer.stability()[0].year == "2023"
    assert analyzer.current_state() is not None
    assert len(analyzer.elevation("year")) == 1


def test_digest_reports_measured_sections(linear_entries):
    digest = DiaryAnalyzer(linear_entries).digest()
    assert "[Measured: trend shifts]" in digest
    assert "2023-01 to 2023-12: deterioration" in digest
    assert "[Measured: current state]" in digest
    assert "[Measured: vocabulary depth]" in digest


def test_digest_of_empty_corpus_is_empty():
    assert DiaryAnalyzer([]).digest() == ""


def test_format_deep_stats_skips_empty_sections():
    empty = PredictiveIndicator(precursor_words=(), active_signals=(), symptom_correlations=())
    assert format_deep_stats_for_prompt([], [], None, empty) == ""


def test_templates_listing():
    listing = list_narrative_templates()
    assert set(listing) == set(NARRATIVE_TEMPLATES)
    assert listing["tone"].startswith("Compare the writing tone")


@pytest.mark.parametrize("kind", sorted(NARRATIVE_TEMPLATES))
def test_build_prompt(kind, linear_entries):
    prompt = DiaryAnalyzer(linear_entries).build_prompt(kind)
    assert prompt.startswith(SYSTEM_PROMPT)
    assert NARRATIVE_TEMPLATES[kind] in prompt
    assert "Diary excerpts:" in prompt


def test_tone_prompt_has_early_and_late_excerpts(linear_entries):
    prompt = DiaryAnalyzer(linear_entries).build_prompt("tone")
    assert "[early]" in prompt
    assert "[late]" in prompt


def test_period_summary_groups_by_year():
    entries = [make_entry(date(2023, 5, 1), "去年の話"), make_entry(date(2024, 5, 1), "今年の話")]
    prompt = DiaryAnalyzer(entries).build_prompt("period_summary")
    assert "[2023]\n去年の話" in prompt
    assert "[2024]\n今年の話" in prompt


def test_unknown_template_raises(linear_entries):
    with pytest.raises(TemplateNotFoundError) as exc_info:
        DiaryAnalyzer(linear_entries).narrate("poem", FakeGenerator())
    assert exc_info.value.available_templates == list(NARRATIVE_TEMPLATES)


# =============================================================================
# Narratives
# =============================================================================


def test_narrate_success_is_cached(linear_entries):
    analyzer = DiaryAnalyzer(linear_entries)
    generator = FakeGenerator()

    result = analyzer.narrate("tone", generator)

    assert result.available is True
    assert result.is_stale is False
    assert result.text == generator.text
    assert len(generator.prompts) == 1
    cached = analyzer.cache.get("tone")
    assert cached.result == generator.text
    assert cached.entry_count == 12
    assert len(analyzer.cache.logs("tone")) == 1


def test_narrate_failure_without_cache(linear_entries):
    result = DiaryAnalyzer(linear_entries).narrate("tone", failing_generator)
    assert result.available is False
    assert result.text == ""
    assert result.is_stale is False
    assert result.error == "model unavailable"


def test_narrate_failure_falls_back_to_stale_text(linear_entries):
    analyzer = DiaryAnalyzer(linear_entries)
    analyzer.narrate("tone", FakeGenerator("old reading"))

    result = analyzer.narrate("tone", failing_generator)

    assert result.available is False
    assert result.text == "old reading"
    assert result.is_stale is True
    assert result.analyzed_at == analyzer.cache.get("tone").analyzed_at


def test_corpus_change_marks_cache_stale(linear_entries):
    first = DiaryAnalyzer(linear_entries)
    first.narrate("tone", FakeGenerator("old reading"))

    grown = DiaryAnalyzer([*linear_entries, make_entry(date(2024, 1, 5), FILLER)], cache=first.cache)
    grown.narrate("tone", failing_generator)
    assert grown.cache.get("tone").is_stale is True

    refreshed = grown.narrate("tone", FakeGenerator("new reading"))
    assert refreshed.available is True
    assert grown.cache.get("tone").is_stale is False
    assert grown.cache.get("tone").entry_count == 13


def test_narrate_with_no_entries_skips_the_generator():
    generator = FakeGenerator()
    result = DiaryAnalyzer([]).narrate("deep_insight", generator)
    assert result.available is False
    assert result.error == "No entries to analyze."
    assert generator.prompts == []


def test_narrative_result_serializes(linear_entries):
    data = DiaryAnalyzer(linear_entries).narrate("emotion_tags", FakeGenerator()).to_dict()
    assert data["kind"] == "emotion_tags"
    assert isinstance(data["analyzed_at"], str)


def test_masked_prompt_hides_names():
    entries = [make_entry(date(2024, 1, 5), "田中さんとカフェでケンに会った")]
    analyzer = DiaryAnalyzer(entries)

    assert "田中さん" in analyzer.build_prompt("emotion_tags")
    masked = analyzer.build_prompt("emotion_tags", mask_names=True)
    assert "***さんとカフェで***に会った" in masked
    assert "田中" not in masked

    generator = FakeGenerator()
    analyzer.narrate("emotion_tags", generator, mask_names=True)
    assert "ケン" not in generator.prompts[0]
