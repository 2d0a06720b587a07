#!/usr/bin/env python3
"""
Tests for RecoveryEngine - four-level recovery of raw generator output.

Usage:
    pytest test_recovery_engine.py -v
"""

import json

import pytest

from conftest import deck_payload
from src.core.recovery_engine import (
    EMERGENCY_DOCUMENT,
    GENERIC_TITLE,
    RecoveryEngine,
    extract_title,
    pre_clean,
    repair_structure,
)
from src.models.document import Document
from src.models.pipeline_record import PipelineRecord, RecoveryLevel


SCENARIO_DOC = '{"title":"T","slides":[{"id":"s1","title":"A","layers":[]}]}'


@pytest.fixture
def engine():
    return RecoveryEngine()


# ============================================================================
# Levels 1-4
# ============================================================================

def test_valid_json_parses_directly(engine):
    outcome = engine.recover_with_outcome(SCENARIO_DOC)

    assert outcome.level == RecoveryLevel.DIRECT_PARSE
    assert outcome.document.title == "T"
    assert [(s.id, s.title, s.layers) for s in outcome.document.slides] == [("s1", "A", [])]


def test_missing_closers_repaired_structurally(engine):
    truncated = SCENARIO_DOC[:-2]  # drop the final "]}"
    outcome = engine.recover_with_outcome(truncated)

    assert outcome.level == RecoveryLevel.STRUCTURAL_REPAIR
    assert outcome.document.title == "T"
    assert len(outcome.document.slides) == 1
    assert outcome.document.slides[0].title == "A"


def test_title_probe_rebuilds_one_slide(engine):
    outcome = engine.recover_with_outcome('not json at all but title: "My Deck" appears here')

    assert outcome.level == RecoveryLevel.MINIMAL_RECONSTRUCTION
    assert len(outcome.document.slides) == 1
    assert "My Deck" in outcome.document.slides[0].title


def test_empty_input_gives_identical_emergency_document(engine):
    first = engine.recover_with_outcome("")
    second = engine.recover_with_outcome("")

    assert first.level == second.level == RecoveryLevel.EMERGENCY
    assert first.document.to_wire() == second.document.to_wire()
    assert first.document.to_wire() == Document.model_validate(EMERGENCY_DOCUMENT).to_wire()


def test_emergency_documents_are_independent(engine):
    first = engine.recover("")
    first.slides[0].set_notes("edited")
    first.set_title("Changed")

    second = engine.recover("")
    assert second.title == EMERGENCY_DOCUMENT["title"]
    assert second.slides[0].notes is None


@pytest.mark.parametrize("raw", [None, "   ", "\ufeff", "\x00\x01"])
def test_blank_inputs_reach_emergency(engine, raw):
    assert engine.recover_with_outcome(raw).level == RecoveryLevel.EMERGENCY


def test_non_json_text_without_title_uses_generic_title(engine):
    outcome = engine.recover_with_outcome("The model apologised instead of answering.")

    assert outcome.level == RecoveryLevel.MINIMAL_RECONSTRUCTION
    assert outcome.document.title == GENERIC_TITLE


def test_json_without_slides_falls_to_minimal(engine):
    outcome = engine.recover_with_outcome('{"title": "Only a title"}')

    assert outcome.level == RecoveryLevel.MINIMAL_RECONSTRUCTION
    assert outcome.document.title == "Only a title"


# ============================================================================
# Cleaning and repair details
# ============================================================================

def test_code_fences_and_bom_are_stripped(engine):
    raw = "\ufeff```json\n" + SCENARIO_DOC + "\n```"
    outcome = engine.recover_with_outcome(raw)

    assert outcome.level == RecoveryLevel.DIRECT_PARSE
    assert outcome.document.title == "T"


def test_unterminated_fence_is_stripped():
    assert pre_clean("```json\n{\"a\": 1") == '{"a": 1'


def test_trailing_commas_are_removed(engine):
    raw = '{"title": "T", "slides": [{"id": "s1", "title": "A", "layers": [],},]}'
    outcome = engine.recover_with_outcome(raw)

    assert outcome.level == RecoveryLevel.STRUCTURAL_REPAIR
    assert outcome.document.slides[0].id == "s1"


def test_raw_newlines_inside_strings_are_escaped(engine):
    raw = '{"title": "T", "slides": [{"id": "s1", "title": "A", "layers": [' \
          '{"id": "l1", "type": "text", "content": "line one\nline two"}]}]}'
    outcome = engine.recover_with_outcome(raw)

    assert outcome.level == RecoveryLevel.STRUCTURAL_REPAIR
    assert outcome.document.slides[0].layers[0].content == "line one\nline two"


def test_repair_closes_innermost_first():
    repaired = repair_structure('{"slides": [{"layers": [{"id": "l1"}')
    assert json.loads(repaired.text) == {"slides": [{"layers": [{"id": "l1"}]}]}
    assert repaired.truncated


@pytest.mark.parametrize("tail", ['"', '"ti', '"title"', '"title":', '"title": ', '"title": "Po', '"x": 1'])
def test_repair_cuts_back_to_the_last_complete_value(tail):
    repaired = repair_structure('{"slides": [{"id": "s1", "title": "A"}, {"id": "s2", ' + tail)
    assert json.loads(repaired.text) == {"slides": [{"id": "s1", "title": "A"}, {"id": "s2"}]}


def test_repair_keeps_numbers_only_once_terminated():
    assert json.loads(repair_structure('{"a": 1, "b": 12').text) == {"a": 1}
    assert json.loads(repair_structure('{"a": 1, "b": 12 ').text) == {"a": 1, "b": 12}


def test_repair_ignores_text_after_root_closes():
    repaired = repair_structure('Here you go: {"slides": []} hope this helps }')
    assert repaired.text == '{"slides": []}'
    assert not repaired.truncated


def test_repair_returns_none_without_object():
    assert repair_structure("no braces here") is None


def test_extract_title_probes_in_order():
    assert extract_title('{"title": "Quoted", "x": 1') == "Quoted"
    assert extract_title("{\"title\": 'Single'}") == "Single"
    assert extract_title("# Markdown Heading\n\nbody") == "Markdown Heading"
    with pytest.raises(ValueError):
        extract_title("  ")


def test_geometry_is_defaulted_and_clamped(engine):
    raw = json.dumps({"title": "T", "slides": [{"id": "s1", "layers": [
        {"id": "l1", "type": "text", "content": "x", "x": 150, "width": -5, "y": "30%"},
        {"id": "l2", "type": "image", "src": "a.png"},
    ]}]})
    layers = engine.recover(raw).slides[0].layers

    assert (layers[0].x, layers[0].y, layers[0].width, layers[0].height) == (100, 30, 0, 20)
    assert (layers[1].x, layers[1].y, layers[1].width, layers[1].height) == (10, 10, 80, 20)
    assert [layer.z_index for layer in layers] == [1, 2]


def test_unknown_layer_types_are_dropped_and_ids_made_unique(engine):
    raw = json.dumps({"title": "T", "slides": [
        {"id": "s1", "layers": [{"id": "l1", "type": "video"}, {"id": "l2", "content": "kept"}]},
        {"id": "s1", "layers": []},
        "not a slide",
    ]})
    outcome = engine.recover_with_outcome(raw)
    document = outcome.document

    assert outcome.level == RecoveryLevel.DIRECT_PARSE
    assert [slide.id for slide in document.slides] == ["s1", "s1-2"]
    assert [layer.id for layer in document.slides[0].layers] == ["l2"]
    assert any("unsupported type" in action for action in outcome.actions)


# ============================================================================
# Properties over many inputs
# ============================================================================

def test_every_truncation_of_a_valid_deck_recovers(engine):
    payload = deck_payload(3)
    text = json.dumps(payload)
    first_slide_end = text.index(json.dumps(payload["slides"][0])) + len(json.dumps(payload["slides"][0]))

    for cut in range(len(text) + 1):
        prefix = text[:cut]
        outcome = engine.recover_with_outcome(prefix)

        assert isinstance(outcome.document, Document), f"cut={cut}"
        assert len(outcome.document.slides) >= 1, f"cut={cut}"
        if prefix.strip():
            assert outcome.level <= RecoveryLevel.MINIMAL_RECONSTRUCTION, f"cut={cut}"
        if cut >= first_slide_end:
            assert outcome.level <= RecoveryLevel.STRUCTURAL_REPAIR, f"cut={cut}"
            assert outcome.document.slides[0].title == "Point 1", f"cut={cut}"


def test_shorter_truncations_never_recover_at_a_better_level(engine):
    text = json.dumps(deck_payload(3))
    levels = [engine.recover_with_outcome(text[:cut]).level for cut in range(len(text) + 1)]

    for cut in range(1, len(levels)):
        assert levels[cut] <= levels[cut - 1], f"cut={cut}: {levels[cut - 1]} -> {levels[cut]}"


def test_structural_repair_never_invents_blank_slides(engine):
    text = json.dumps(deck_payload(3))

    for cut in range(len(text)):
        outcome = engine.recover_with_outcome(text[:cut])
        if outcome.level != RecoveryLevel.STRUCTURAL_REPAIR:
            continue
        for slide in outcome.document.slides:
            assert slide.title or slide.layers, f"cut={cut}: blank slide {slide.id}"


def test_dangling_key_keeps_the_slide_before_it(engine):
    text = json.dumps(deck_payload(3))
    cut = text.index('"title": "Point 1"') + len('"title": "Point 1", ')

    for extra in ('', '"', '"background"', '"background":'):
        outcome = engine.recover_with_outcome(text[:cut] + extra)

        assert outcome.level == RecoveryLevel.STRUCTURAL_REPAIR, extra
        assert [slide.title for slide in outcome.document.slides] == ["Point 1"], extra


def test_cut_right_after_a_slide_opens_is_not_a_slide(engine):
    text = json.dumps(deck_payload(3))
    cut = text.index('"slides": [{') + len('"slides": [{')

    for prefix in (text[:cut - 1], text[:cut], text[:cut + 1]):
        outcome = engine.recover_with_outcome(prefix)

        assert outcome.level == RecoveryLevel.MINIMAL_RECONSTRUCTION, prefix
        assert outcome.document.slides[0].title == "Quarterly Review"


def test_blank_slide_written_in_full_survives_repair(engine):
    raw = '{"title": "T", "slides": [{"id": "a", "title": "", "layers": []}, {"id": "b", "title": "B"}'

    outcome = engine.recover_with_outcome(raw)

    assert outcome.level == RecoveryLevel.STRUCTURAL_REPAIR
    assert [slide.id for slide in outcome.document.slides] == ["a", "b"]


def test_closed_document_with_chatter_accepts_empty_slides_like_direct_parse(engine):
    outcome = engine.recover_with_outcome('{"title": "T", "slides": []} thanks')

    assert outcome.level == RecoveryLevel.STRUCTURAL_REPAIR
    assert outcome.document.title == "T"
    assert outcome.document.slides == []


def test_recovered_documents_parse_directly_when_fed_back(engine):
    inputs = [SCENARIO_DOC, SCENARIO_DOC[:-2], 'title: "My Deck"', "", json.dumps(deck_payload(2))[:400]]

    for raw in inputs:
        document = engine.recover(raw)
        again = engine.recover_with_outcome(document.to_json())

        assert again.level == RecoveryLevel.DIRECT_PARSE, raw
        assert again.document.to_wire() == document.to_wire(), raw


def test_arbitrary_garbage_never_raises(engine):
    samples = ["{", "}", "[", "]]]}}}", '{"slides": [', '{"slides": "nope"}', "{\"a\": \"\\",
               "```", "```json", '"title":', "\x7f{\x02", "{" * 200]

    for raw in samples:
        outcome = engine.recover_with_outcome(raw)
        assert len(outcome.document.slides) >= 1, raw


# ============================================================================
# PipelineRecord integration
# ============================================================================

def test_transitions_are_written_to_the_record(engine):
    record = PipelineRecord()
    outcome = engine.recover_with_outcome("garbage without structure", record)

    assert record.recovery_level == outcome.level == RecoveryLevel.MINIMAL_RECONSTRUCTION
    failed_levels = [entry.detail["level"] for entry in record.entries_for("recovery")
                     if entry.action == "level_failed"]
    assert failed_levels == [1, 2]


def test_empty_slides_array_still_parses_directly(engine):
    outcome = engine.recover_with_outcome('{"title": "T", "slides": [1, 2, 3]}')

    assert outcome.level == RecoveryLevel.DIRECT_PARSE
    assert outcome.document.slides == []
    assert len([a for a in outcome.actions if "non-object slide" in a]) == 3
