#!/usr/bin/env python3
"""
Tests for StrategyRegistry, StrategySelector and strategy behavior.

Usage:
    pytest test_strategy_selection.py -v
"""

from datetime import date

import pytest

from src.core.errors import UnknownStrategyError
from src.core.strategies import Strategy, build_strategies, extract_main_title
from src.core.strategy_profiles import SIMPLE
from src.core.strategy_registry import (
    CATEGORY_STRATEGY_MAP,
    StrategyRegistry,
    StrategySelector,
)
from src.models.document import Document, Layer, Slide
from src.models.generation import ClassificationResult, ContentCategory, GenerationRequest
from src.models.pipeline_record import SelectionSource


@pytest.fixture
def registry():
    return StrategyRegistry.default()


@pytest.fixture
def selector(registry):
    return StrategySelector(registry)


def classified(category, confidence=0.95):
    return ClassificationResult.from_category(category, confidence)


# ============================================================================
# Registry
# ============================================================================

def test_default_registry_catalog(registry):
    assert registry.ids == ["simple", "education", "marketing-oriented", "research-presentation-oriented"]
    assert len(registry) == 4
    assert "simple" in registry
    assert "auto" not in registry


def test_unknown_strategy_id_raises(registry):
    with pytest.raises(UnknownStrategyError) as exc_info:
        registry.get("nonexistent")
    assert exc_info.value.strategy_id == "nonexistent"


def test_duplicate_strategy_ids_rejected():
    with pytest.raises(ValueError):
        StrategyRegistry([Strategy(SIMPLE), Strategy(SIMPLE)])


def test_selector_validates_configuration(registry):
    with pytest.raises(UnknownStrategyError):
        StrategySelector(registry, default_strategy_id="missing")
    with pytest.raises(UnknownStrategyError):
        StrategySelector(registry, category_map={ContentCategory.BUSINESS: "missing"})


def test_describe_lists_every_strategy(registry):
    described = registry.describe()
    assert [entry["id"] for entry in described] == registry.ids
    assert all("preferredLayouts" in entry["layout"] for entry in described)


# ============================================================================
# Selection order
# ============================================================================

def test_confidence_does_not_affect_selection(selector):
    request = GenerationRequest(topic="Market entry plan")

    high = selector.select(request, classified(ContentCategory.BUSINESS, 0.95))
    low = selector.select(request, classified(ContentCategory.BUSINESS, 0.3))

    assert high.strategy.id == low.strategy.id
    assert high.source == low.source == SelectionSource.CATEGORY_MAP


def test_explicit_strategy_wins(selector):
    request = GenerationRequest(topic="Anything", strategy_id="education")
    selection = selector.select(request, classified(ContentCategory.TECHNICAL))

    assert selection.strategy.id == "education"
    assert selection.source == SelectionSource.EXPLICIT


@pytest.mark.parametrize("strategy_id", ["auto", "not-a-strategy", None])
def test_auto_and_unknown_fall_through_to_category(selector, strategy_id):
    request = GenerationRequest(topic="Anything", strategy_id=strategy_id)
    selection = selector.select(request, classified(ContentCategory.ACADEMIC))

    assert selection.strategy.id == CATEGORY_STRATEGY_MAP[ContentCategory.ACADEMIC]
    assert selection.source == SelectionSource.CATEGORY_MAP


def test_default_when_nothing_applies(registry):
    selector = StrategySelector(registry, category_map={}, default_strategy_id="simple")

    selection = selector.select(GenerationRequest(topic="Anything"), classified(ContentCategory.CREATIVE))
    assert selection.strategy.id == "simple"
    assert selection.source == SelectionSource.DEFAULT

    assert selector.select(GenerationRequest(topic="Anything"), None).source == SelectionSource.DEFAULT


def test_selection_is_deterministic(selector):
    request = GenerationRequest(topic="Cloud migration", strategy_id="auto")
    results = {selector.select(request, classified(category)).strategy.id
               for category in ContentCategory for _ in range(3)}

    assert results <= set(CATEGORY_STRATEGY_MAP.values())
    for category in ContentCategory:
        ids = {selector.select(request, classified(category)).strategy.id for _ in range(5)}
        assert len(ids) == 1


# ============================================================================
# Strategy behavior
# ============================================================================

def test_instruction_mentions_slide_count():
    strategy = Strategy(SIMPLE)
    classification = classified(ContentCategory.BUSINESS)

    auto = strategy.build_instruction(GenerationRequest(topic="Budget"), classification)
    exact = strategy.build_instruction(GenerationRequest(topic="Budget", slide_count=3), classification)

    assert f"about {classification.suggested_slide_count} slides" in auto
    assert "exactly 3 slides" in exact
    assert "Topic: Budget" in exact


def test_extract_main_title():
    assert extract_main_title("AIについて教えてください") == "AI"
    assert extract_main_title("an overview of cloud computing.") == "Cloud computing"
    assert extract_main_title("Quarterly results") == "Quarterly results"


def test_title_slide_shape():
    strategy = Strategy(SIMPLE)
    slide = strategy.build_title_slide(
        GenerationRequest(topic="Quarterly results", purpose="Board update"),
        today=date(2024, 3, 5),
    )

    assert slide.metadata["slideType"] == "title"
    assert [layer.content for layer in slide.layers] == [
        "Quarterly results",
        "Board update\n\nMarch 5, 2024",
    ]
    assert slide.layers[0].font_size == 56


def test_post_process_applies_palette_bullets_and_notes():
    strategy = Strategy(SIMPLE)
    slide = Slide(id="s1", title="Results", layers=[
        Layer(id="l1", content="Results", y=8, height=12),
        Layer(id="l2", content="Subtitle", y=30, height=20),
        Layer(id="l3", content="Revenue up", y=50, height=30),
        Layer(id="l4", content="• Already marked", y=60, height=30),
    ])
    document = Document(title="T", slides=[slide])

    strategy.post_process(document, GenerationRequest(topic="Results"), classified(ContentCategory.BUSINESS))

    palette = SIMPLE.palette
    assert slide.background == palette.background
    assert slide.layers[0].text_color == palette.primary
    assert slide.layers[2].text_color == palette.text
    assert [layer.content for layer in slide.layers] == [
        "Results", "Subtitle", "• Revenue up", "• Already marked",
    ]
    assert slide.notes and "Introduce Results" in slide.notes
    assert all(layer.font_size for layer in slide.layers)


def test_post_process_keeps_existing_notes():
    strategy = build_strategies()[1]
    slide = Slide(id="s1", title="Once upon a time", notes="Keep me", layers=[Layer(id="l1", content="x")])

    strategy.post_process(Document(slides=[slide]), GenerationRequest(topic="Tale"), classified(ContentCategory.NARRATIVE))

    assert slide.notes == "Keep me"
