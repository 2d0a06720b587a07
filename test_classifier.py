#!/usr/bin/env python3
"""
Tests for topic classification, the keyword fallback and retry backoff.

Usage:
    pytest test_classifier.py -v
"""

import asyncio

import pytest

from conftest import RecordingSleep, ScriptedTextClient
from src.core.classifier import (
    CONTAINED_MATCH_CONFIDENCE,
    EXACT_MATCH_CONFIDENCE,
    Classifier,
    parse_category,
)
from src.core.errors import (
    ClassificationError,
    TextServiceQuotaError,
    TextServiceTransportError,
)
from src.core.keyword_fallback import (
    KEYWORD_CONFIDENCE,
    NO_MATCH_CONFIDENCE,
    classify_by_keywords,
)
from src.models.generation import ClassificationSource, ContentCategory, ImageConsistency
from src.utils.retry import BackoffPolicy, call_with_retry, compute_delay


# ============================================================================
# Classifier
# ============================================================================

def test_classifier_gives_up_after_exactly_three_attempts():
    client = ScriptedTextClient(default=TextServiceTransportError("connection reset"))
    sleep = RecordingSleep()
    classifier = Classifier(client, max_attempts=3, base_delay=1.0, sleep=sleep)

    with pytest.raises(ClassificationError) as exc_info:
        asyncio.run(classifier.classify("History of the Roman Empire"))

    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.last_error, TextServiceTransportError)
    assert client.call_count == 3
    assert sleep.delays == [1.0, 2.0], "Linear backoff: attempt x base delay"


def test_classifier_retries_unrecognized_answers():
    client = ScriptedTextClient("I would say it depends", "Business")
    sleep = RecordingSleep()
    classifier = Classifier(client, sleep=sleep)

    result = asyncio.run(classifier.classify("Q3 sales review"))

    assert result.category == ContentCategory.BUSINESS
    assert result.confidence == EXACT_MATCH_CONFIDENCE
    assert result.source == ClassificationSource.MODEL
    assert client.call_count == 2
    assert sleep.delays == [1.0]


def test_classifier_sends_constrained_request():
    client = ScriptedTextClient("technical")
    classifier = Classifier(client, temperature=0.1)

    asyncio.run(classifier.classify('Intro to "Kubernetes"'))

    call = client.calls[0]
    assert call['max_tokens'] == 10
    assert call['temperature'] == 0.1
    assert "Intro to 'Kubernetes'" in call['instruction']


def test_classification_flags_come_from_category_profile():
    client = ScriptedTextClient("narrative")
    result = asyncio.run(Classifier(client, min_slides=5, max_slides=20).classify("The tale of Momotaro"))

    assert result.category == ContentCategory.NARRATIVE
    assert result.suggested_slide_count == 8
    assert result.needs_page_numbers is False
    assert result.image_consistency == ImageConsistency.HIGH


def test_suggested_slide_count_is_clamped():
    client = ScriptedTextClient("academic")
    result = asyncio.run(Classifier(client, min_slides=3, max_slides=6).classify("Thesis defense"))

    assert result.suggested_slide_count == 6


def test_classifier_does_not_retry_forever_on_quota():
    client = ScriptedTextClient(default=TextServiceQuotaError("RESOURCE_EXHAUSTED", status_code=429))
    classifier = Classifier(client, max_attempts=2, sleep=RecordingSleep())

    with pytest.raises(ClassificationError):
        asyncio.run(classifier.classify("Anything"))
    assert client.call_count == 2


@pytest.mark.parametrize("answer,expected", [
    ("business", (ContentCategory.BUSINESS, EXACT_MATCH_CONFIDENCE)),
    ("  Technical.\n", (ContentCategory.TECHNICAL, EXACT_MATCH_CONFIDENCE)),
    ("**creative**", (ContentCategory.CREATIVE, EXACT_MATCH_CONFIDENCE)),
    ("Story", (ContentCategory.NARRATIVE, EXACT_MATCH_CONFIDENCE)),
    ("The category is academic", (ContentCategory.ACADEMIC, CONTAINED_MATCH_CONFIDENCE)),
    ("business or technical", None),
    ("no idea", None),
    ("", None),
])
def test_parse_category(answer, expected):
    assert parse_category(answer) == expected


# ============================================================================
# Keyword fallback
# ============================================================================

def test_keyword_fallback_matches_first_rule():
    result = classify_by_keywords("Quarterly sales strategy", min_slides=5, max_slides=20)

    assert result.category == ContentCategory.BUSINESS
    assert result.confidence == KEYWORD_CONFIDENCE
    assert result.source == ClassificationSource.KEYWORD_FALLBACK


def test_keyword_fallback_handles_japanese_topics():
    assert classify_by_keywords("桃太郎の物語").category == ContentCategory.NARRATIVE
    assert classify_by_keywords("AIプログラミング入門").category == ContentCategory.TECHNICAL


def test_keyword_fallback_matches_whole_words_only():
    # "ai" must not match inside "mountain"
    result = classify_by_keywords("Mountain trails")

    assert result.category == ContentCategory.BUSINESS
    assert result.confidence == NO_MATCH_CONFIDENCE


# ============================================================================
# Backoff
# ============================================================================

def test_compute_delay_policies():
    assert [compute_delay(n, 1.0, BackoffPolicy.LINEAR) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]
    assert [compute_delay(n, 2.0, BackoffPolicy.EXPONENTIAL) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]
    assert compute_delay(10, 2.0, BackoffPolicy.EXPONENTIAL, max_delay=30.0) == 30.0
    with pytest.raises(ValueError):
        compute_delay(0, 1.0)


def test_non_retryable_errors_propagate_immediately():
    calls = []

    async def fails():
        calls.append(1)
        raise KeyError("boom")

    with pytest.raises(KeyError):
        asyncio.run(call_with_retry(fails, max_attempts=3, retry_on=(ValueError,), sleep=RecordingSleep()))
    assert len(calls) == 1


def test_retry_returns_first_success():
    attempts = []
    sleep = RecordingSleep()

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ValueError("not yet")
        return "ok"

    result = asyncio.run(call_with_retry(flaky, max_attempts=3, base_delay=0.5, retry_on=(ValueError,), sleep=sleep))

    assert result == "ok"
    assert sleep.delays == [0.5, 1.0]
