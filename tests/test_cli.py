import json
import sys
import types

import pytest
from click.testing import CliRunner

from diary_lens import cli
from diary_lens.cli import main
from diary_lens.exceptions import ModelLoadError
from diary_lens.model import ModelManager, resolve_model_name


@pytest.fixture
def runner():
    return CliRunner()


class FakeModel:
    """Stands in for ModelManager in CLI tests."""

    reply = "The tone grew heavier through the year."
    prompts: list = []

    def __init__(self, model_name, **kwargs):
        self.model_name = model_name
        self.kwargs = kwargs

    def __call__(self, prompt):
        FakeModel.prompts.append(prompt)
        return self.reply


class BrokenModel(FakeModel):
    def __call__(self, prompt):
        raise ModelLoadError(self.model_name, reason="no GPU")


# =============================================================================
# Corpus and index commands
# =============================================================================


def test_stats(runner, json_export):
    result = runner.invoke(main, ["stats", str(json_export)])
    assert result.exit_code == 0
    assert "Total entries: 12" in result.output
    assert "2023-01-10 to 2023-12-10" in result.output


def test_stats_json(runner, json_export):
    result = runner.invoke(main, ["stats", str(json_export), "--json"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["total_entries"] == 12
    assert data["years"][0]["period"] == "2023"


def test_shifts_json(runner, json_export):
    result = runner.invoke(main, ["shifts", str(json_export), "--json"])
    assert result.exit_code == 0
    shifts = json.loads(result.output)
    assert len(shifts) == 1
    assert shifts[0]["type"] == "deterioration"
    assert shifts[0]["start_month"] == "2023-01"


@pytest.mark.parametrize(
    "command",
    [
        ["monthly"], ["daily", "--every", "2"], ["stability"], ["elevation", "-g", "year"],
        ["current"], ["shifts"], ["seasons"], ["depth"], ["first-person"], ["predict"], ["digest"],
    ],
)
def test_analysis_commands_run(runner, json_export, command):
    result = runner.invoke(main, [command[0], str(json_export), *command[1:]])
    assert result.exit_code == 0, result.output


def test_missing_source_is_a_usage_error(runner, tmp_path):
    result = runner.invoke(main, ["stats", str(tmp_path / "nope.json")])
    assert result.exit_code == 2


def test_malformed_source_exits_with_error(runner, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{", encoding="utf-8")
    result = runner.invoke(main, ["stats", str(path)])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_empty_source_exits(runner, tmp_path):
    path = tmp_path / "empty.json"
    path.write_text("[]", encoding="utf-8")
    result = runner.invoke(main, ["monthly", str(path)])
    assert result.exit_code == 1
    assert "No diary entries found" in result.output


def test_invalid_granularity_is_rejected(runner, json_export):
    result = runner.invoke(main, ["elevation", str(json_export), "-g", "week"])
    assert result.exit_code == 2


# =============================================================================
# Info commands
# =============================================================================


def test_templates(runner):
    result = runner.invoke(main, ["templates"])
    assert result.exit_code == 0
    for name in ("period_summary", "emotion_tags", "tone", "deep_insight"):
        assert name in result.output


def test_models(runner):
    result = runner.invoke(main, ["models"])
    assert result.exit_code == 0
    assert "qwen-7b" in result.output


# =============================================================================
# Narratives
# =============================================================================


def test_narrate_prints_generated_text(runner, json_export, monkeypatch):
    monkeypatch.setattr(cli, "ModelManager", FakeModel)
    result = runner.invoke(main, ["narrate", str(json_export), "tone"])
    assert result.exit_code == 0
    assert FakeModel.reply in result.output


def test_narrate_failure_exits_nonzero(runner, json_export, monkeypatch):
    monkeypatch.setattr(cli, "ModelManager", BrokenModel)
    result = runner.invoke(main, ["narrate", str(json_export), "tone"])
    assert result.exit_code == 1
    assert "Narrative unavailable" in result.output


def test_narrate_anonymize_masks_excerpts(runner, tmp_path, monkeypatch):
    path = tmp_path / "diary.json"
    path.write_text(json.dumps([{"date": "2024-01-05", "content": "ケンと話した"}], ensure_ascii=False),
                    encoding="utf-8")
    monkeypatch.setattr(cli, "ModelManager", FakeModel)
    monkeypatch.setattr(FakeModel, "prompts", [])

    result = runner.invoke(main, ["narrate", str(path), "emotion_tags", "--anonymize"])

    assert result.exit_code == 0, result.output
    assert "***と話した" in FakeModel.prompts[0]
    assert "ケン" not in FakeModel.prompts[0]


def test_narrate_rejects_unknown_kind(runner, json_export):
    result = runner.invoke(main, ["narrate", str(json_export), "poem"])
    assert result.exit_code == 2


# =============================================================================
# Model manager
# =============================================================================


def test_resolve_model_name():
    assert resolve_model_name("qwen-7b") == "mlx-community/Qwen2.5-7B-Instruct-4bit"
    assert resolve_model_name("someone/custom") == "someone/custom"


def test_model_manager_is_lazy():
    manager = ModelManager("qwen-7b")
    assert manager.is_loaded is False
    assert "not loaded" in repr(manager)


def test_missing_mlx_raises_model_load_error(monkeypatch):
    monkeypatch.setitem(sys.modules, "mlx_lm", None)
    manager = ModelManager("qwen-7b")
    with pytest.raises(ModelLoadError) as exc_info:
        manager("hello")
    assert "mlx-lm is not installed" in str(exc_info.value)


def test_stats_accepts_backup_with_long_comment(runner, tmp_path):
    path = tmp_path / "backup.json"
    path.write_text(json.dumps([
        {"date": "2024-01-05", "content": "晴れ", "comments": [{"text": "x" * 141}]},
    ]), encoding="utf-8")
    result = runner.invoke(main, ["stats", str(path)])
    assert result.exit_code == 0, result.output
    assert "Total entries: 1" in result.output


def test_model_manager_generates_through_mlx(monkeypatch):
    calls = {}

    class Tokenizer:
        def apply_chat_template(self, messages, add_generation_prompt, tokenize):
            return "|".join(f"{m['role']}:{m['content']}" for m in messages)

    def fake_generate(model, tokenizer, prompt, max_tokens, sampler, verbose):
        calls.update(prompt=prompt, max_tokens=max_tokens, sampler=sampler)
        return "generated"

    mlx_lm = types.SimpleNamespace(load=lambda name: ("weights", Tokenizer()), generate=fake_generate)
    sample_utils = types.SimpleNamespace(make_sampler=lambda temp: ("sampler", temp))
    monkeypatch.setitem(sys.modules, "mlx_lm", mlx_lm)
    monkeypatch.setitem(sys.modules, "mlx_lm.sample_utils", sample_utils)

    manager = ModelManager("qwen-7b", system_prompt="Be brief.", max_tokens=50, temperature=0.2)

    assert manager("hello") == "generated"
    assert manager.is_loaded is True
    assert calls == {"prompt": "system:Be brief.|user:hello", "max_tokens": 50, "sampler": ("sampler", 0.2)}
