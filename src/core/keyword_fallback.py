"""
Keyword fallback classification.

Degraded policy used by the pipeline when the Classifier has exhausted its
attempts. It is deliberately not part of the Classifier so the
classification contract stays uniform: a model answer or ClassificationError.
"""

import re
from typing import List, Tuple

from src.models.generation import ClassificationResult, ClassificationSource, ContentCategory

KEYWORD_CONFIDENCE = 0.3
NO_MATCH_CONFIDENCE = 0.1
DEFAULT_CATEGORY = ContentCategory.BUSINESS

# First matching rule wins
KEYWORD_RULES: List[Tuple[ContentCategory, Tuple[str, ...]]] = [
    (ContentCategory.NARRATIVE, (
        "物語", "昔話", "童話", "の話", "ストーリー", "桃太郎", "体験談",
        "story", "stories", "tale", "fairy tale", "legend", "fable", "memoir",
    )),
    (ContentCategory.BUSINESS, (
        "営業", "マーケティング", "商品", "ブランド", "宣伝", "キャンペーン", "研修", "売上",
        "marketing", "sales", "brand", "campaign", "strategy", "revenue", "quarterly",
        "leadership", "training", "pitch", "product launch",
    )),
    (ContentCategory.ACADEMIC, (
        "研究", "学術", "調査", "分析", "統計", "データ", "歴史", "科学", "レシピ", "やり方", "手順",
        "research", "study", "analysis", "statistics", "history", "science", "thesis",
        "recipe", "how to", "tutorial",
    )),
    (ContentCategory.TECHNICAL, (
        "技術", "プログラミング", "システム", "エンジニアリング",
        "ai", "gpt", "api", "software", "programming", "engineering", "architecture",
        "kubernetes", "database", "cloud", "algorithm",
    )),
    (ContentCategory.CREATIVE, (
        "アート", "デザイン", "創作", "芸術",
        "art", "design", "creative", "illustration", "music", "photography",
    )),
]


def _matches(topic_lower: str, keyword: str) -> bool:
    if keyword.isascii():
        return re.search(rf"\b{re.escape(keyword)}\b", topic_lower) is not None
    return keyword in topic_lower


def guess_category(topic: str) -> Tuple[ContentCategory, bool]:
    """
    Returns:
        (category, matched) where matched is False when no rule applied
    """
    topic_lower = topic.lower()
    for category, keywords in KEYWORD_RULES:
        if any(_matches(topic_lower, keyword) for keyword in keywords):
            return category, True
    return DEFAULT_CATEGORY, False


def classify_by_keywords(topic: str, min_slides: int = 1, max_slides: int = 100) -> ClassificationResult:
    """Low-confidence ClassificationResult from keyword rules."""
    category, matched = guess_category(topic)
    return ClassificationResult.from_category(
        category,
        KEYWORD_CONFIDENCE if matched else NO_MATCH_CONFIDENCE,
        min_slides=min_slides,
        max_slides=max_slides,
        source=ClassificationSource.KEYWORD_FALLBACK,
    )
