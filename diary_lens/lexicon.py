"""Static trigger-word lexicons used by every scanner.

Each category maps to an immutable, ordered tuple of words. Lookups are
case-sensitive exact substring matches against raw diary text: the
corpus is Japanese and not whitespace-segmented, so there is no
tokenization or stemming step anywhere in the engine.

A word may belong to several categories (``疲れ`` is both ``negative``
and ``light_negative``); each category is scanned independently.

Example:
    >>> from diary_lens.lexicon import get_words
    >>> get_words("first_person")[:3]
    ('私', 'わたし', 'あたし')
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Final, Literal

from .exceptions import UnknownCategoryError

__all__ = [
    "Category",
    "CATEGORIES",
    "COMMON_KATAKANA_WORDS",
    "LEXICONS",
    "EMOTION_CATEGORIES",
    "PRECURSOR_CANDIDATES",
    "get_words",
]


# Type alias for lexicon category names
Category = Literal[
    "negative",
    "positive",
    "self_denial",
    "first_person",
    "other_person",
    "task",
    "self_monitor",
    "physical_symptom",
    "work",
    "light_negative",
    "deep_negative",
]


# =============================================================================
# Emotion Vocabulary
# =============================================================================

_NEGATIVE: Final[tuple[str, ...]] = (
    "辛い", "つらい", "苦しい", "悲しい", "寂しい", "怖い",
    "不安", "孤独", "絶望", "死にたい", "消えたい", "無理",
    "嫌だ", "嫌い", "最悪", "地獄", "痛い", "泣", "涙",
    "疲れ", "限界", "逃げたい", "しんどい", "だるい", "憂鬱",
    "鬱", "落ち込", "暗い", "重い", "苦手", "怒り", "腹が立つ",
    "イライラ", "ストレス", "後悔", "失敗", "惨め", "情けない",
)

_POSITIVE: Final[tuple[str, ...]] = (
    "嬉しい", "楽しい", "幸せ", "好き", "感謝", "ありがとう",
    "笑", "元気", "希望", "安心", "心地よい", "穏やか",
    "面白い", "素敵", "美しい", "温かい", "優しい", "喜び",
    "達成", "成功", "前向き", "光", "明るい", "自由",
)

_SELF_DENIAL: Final[tuple[str, ...]] = (
    "自分が嫌", "自分なんか", "価値がない", "どうせ", "無価値",
    "存在意義", "生きてる意味", "いらない人間", "迷惑",
    "ダメな", "何もできない", "役に立たない", "自己嫌悪",
    "自分のせい", "自分が悪い", "能力がない", "才能がない",
)

# Depth split of negative vocabulary: everyday friction vs. despair
_LIGHT_NEGATIVE: Final[tuple[str, ...]] = (
    "疲れ", "だるい", "面倒", "嫌だ", "苦手", "イライラ", "ストレス",
    "重い", "暗い", "落ち込", "後悔", "失敗",
)

_DEEP_NEGATIVE: Final[tuple[str, ...]] = (
    "死にたい", "消えたい", "絶望", "無理", "限界", "逃げたい",
    "生きてる意味", "価値がない", "自分なんか", "無価値",
    "地獄", "惨め", "情けない",
)


# =============================================================================
# Subject and Behaviour Vocabulary
# =============================================================================

_FIRST_PERSON: Final[tuple[str, ...]] = (
    "私", "わたし", "あたし", "僕", "ぼく", "俺", "おれ", "自分",
)

_OTHER_PERSON: Final[tuple[str, ...]] = (
    "あの人", "この人", "その人", "友達", "友人", "家族",
    "母", "父", "兄", "姉", "弟", "妹", "夫", "妻", "彼",
    "彼女", "先生", "医者", "カウンセラー", "子供", "こども",
)

# Tracking one's own condition ("調子" and friends)
_SELF_MONITOR: Final[tuple[str, ...]] = (
    "調子", "体調", "気分", "状態", "コンディション", "具合",
    "波", "浮き沈み", "安定", "不安定", "回復", "悪化",
)

_TASK: Final[tuple[str, ...]] = (
    "やること", "やらなきゃ", "やらないと", "予定", "計画",
    "目標", "TODO", "やりたい", "やろう", "決めた", "始める",
)

_PHYSICAL_SYMPTOM: Final[tuple[str, ...]] = (
    "頭痛", "偏頭痛", "吐き気", "めまい", "動悸", "息苦しい",
    "不眠", "眠れない", "体が重い", "食欲がない", "食欲不振",
    "引き攣", "痙攣", "震え", "過呼吸", "幻嗅", "幻聴",
    "耳鳴り", "肩こり", "腰痛", "胃痛", "腹痛", "下痢",
    "蕁麻疹", "発疹", "微熱", "倦怠感", "脱力", "手汗",
    "冷や汗", "顔が引き攣", "体が固まる", "声が出ない",
    "過食", "拒食", "寝すぎ", "早朝覚醒", "中途覚醒",
)

_WORK: Final[tuple[str, ...]] = (
    "仕事", "職場", "上司", "同僚", "部下", "会議", "締切",
    "残業", "出勤", "退勤", "業務", "プロジェクト", "タスク",
    "報告", "資料", "納期", "評価", "面談", "異動", "転職",
    "給料", "昇進", "降格", "クビ", "解雇", "ミス", "失注",
    "クレーム", "研修", "出張",
)


# =============================================================================
# Anonymization
# =============================================================================

# Everyday katakana words that are never masked as names
COMMON_KATAKANA_WORDS: Final[frozenset[str]] = frozenset((
    "ストレス", "イライラ", "パソコン", "スマホ", "テレビ", "コンビニ", "トイレ", "バイト",
    "メール", "ネット", "ゲーム", "カフェ", "コーヒー", "ラーメン", "カレー", "ベッド",
    "シャワー", "タクシー", "バス", "マスク", "ノート", "ペン", "ダメ", "クリニック",
    "カウンセラー", "カウンセリング", "セラピー", "リハビリ", "グループ", "プログラム",
    "ボランティア",
))


# =============================================================================
# Registry
# =============================================================================

LEXICONS: Final[MappingProxyType[str, tuple[str, ...]]] = MappingProxyType({
    "negative": _NEGATIVE,
    "positive": _POSITIVE,
    "self_denial": _SELF_DENIAL,
    "first_person": _FIRST_PERSON,
    "other_person": _OTHER_PERSON,
    "task": _TASK,
    "self_monitor": _SELF_MONITOR,
    "physical_symptom": _PHYSICAL_SYMPTOM,
    "work": _WORK,
    "light_negative": _LIGHT_NEGATIVE,
    "deep_negative": _DEEP_NEGATIVE,
})

CATEGORIES: Final[tuple[str, ...]] = tuple(LEXICONS)

# Categories whose words are ranked in "top emotion words"
EMOTION_CATEGORIES: Final[tuple[str, ...]] = ("negative", "positive")

# Words watched for before negative spikes
PRECURSOR_CANDIDATES: Final[tuple[str, ...]] = tuple(dict.fromkeys((
    *_PHYSICAL_SYMPTOM[:15],
    "不安", "眠れない", "疲れ", "だるい", "イライラ", "ストレス",
    "仕事", "残業", "締切",
)))


def get_words(category: str) -> tuple[str, ...]:
    """Get the trigger words for a lexicon category.

    Args:
        category: Category name (see CATEGORIES).

    Returns:
        Immutable, ordered tuple of trigger strings.

    Raises:
        UnknownCategoryError: If the category does not exist.

    Example:
        >>> "頭痛" in get_words("physical_symptom")
        True
    """
    try:
        return LEXICONS[category]
    except KeyError:
        raise UnknownCategoryError(category, list(CATEGORIES)) from None
