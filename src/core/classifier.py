"""
Classifier - topic to content category.

One constrained call per attempt: the model is asked for a single category
word and the answer is matched case-insensitively against the closed
category set. Unusable answers and text service failures both count as a
failed attempt. After the attempt budget is spent the Classifier raises
ClassificationError; deciding on a fallback is the caller's job.
"""

import re
from typing import Awaitable, Callable, Optional, Tuple

from config.settings import Settings
from src.clients.text_generation_client import TextGenerationClient
from src.core.errors import ClassificationError, TextServiceError
from src.models.generation import ClassificationResult, ContentCategory
from src.utils.logger import setup_logger
from src.utils.retry import BackoffPolicy, call_with_retry

logger = setup_logger(__name__)

EXACT_MATCH_CONFIDENCE = 0.95
CONTAINED_MATCH_CONFIDENCE = 0.7

# Answer words accepted in addition to the category values themselves
CATEGORY_SYNONYMS = {
    "story": ContentCategory.NARRATIVE,
    "storytelling": ContentCategory.NARRATIVE,
    "research": ContentCategory.ACADEMIC,
    "education": ContentCategory.ACADEMIC,
}

CLASSIFICATION_PROMPT = """You are a content classification expert. Classify the presentation request below into exactly one category.

Request: "{topic}"

Categories:
1. narrative - stories, fairy tales, personal experiences, anything told as a story
2. business - management, sales, marketing, corporate training, reports
3. academic - research, education, history, science, practical how-to guides and recipes
4. technical - technology, IT, AI, engineering, programming, system explanations
5. creative - art, design, creative work and expression

Answer with the category name only, in lowercase English (one of: narrative, business, academic, technical, creative)."""


class UnrecognizedAnswerError(ValueError):
    """The model answered, but not with a single known category."""

    def __init__(self, answer: str):
        super().__init__(f"Unrecognized classification answer: {answer[:80]!r}")
        self.answer = answer


def _answer_tokens() -> dict:
    tokens = {category.value: category for category in ContentCategory}
    tokens.update(CATEGORY_SYNONYMS)
    return tokens


ANSWER_TOKENS = _answer_tokens()
_WORD_PATTERN = re.compile(r"[a-z]+")


def parse_category(answer: str) -> Optional[Tuple[ContentCategory, float]]:
    """
    Match a model answer against the category set.

    Args:
        answer: Raw model output

    Returns:
        (category, confidence) or None if the answer names zero or several
        distinct categories
    """
    cleaned = answer.strip().lower().strip(" \t\r\n.\"'`*:")
    if cleaned in ANSWER_TOKENS:
        return ANSWER_TOKENS[cleaned], EXACT_MATCH_CONFIDENCE

    found = {ANSWER_TOKENS[word] for word in _WORD_PATTERN.findall(cleaned) if word in ANSWER_TOKENS}
    if len(found) == 1:
        return found.pop(), CONTAINED_MATCH_CONFIDENCE
    return None


class Classifier:
    """Classifies topics with bounded, linearly backed-off retries."""

    def __init__(
        self,
        client: TextGenerationClient,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        temperature: float = 0.1,
        min_slides: int = 5,
        max_slides: int = 20,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        self.client = client
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.temperature = temperature
        self.min_slides = min_slides
        self.max_slides = max_slides
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: TextGenerationClient,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ) -> "Classifier":
        return cls(
            client=client,
            max_attempts=settings.CLASSIFIER_MAX_ATTEMPTS,
            base_delay=settings.CLASSIFIER_RETRY_BASE_DELAY,
            temperature=settings.CLASSIFIER_TEMPERATURE,
            min_slides=settings.MIN_SLIDE_COUNT,
            max_slides=settings.MAX_SLIDE_COUNT,
            sleep=sleep,
        )

    def build_instruction(self, topic: str) -> str:
        return CLASSIFICATION_PROMPT.format(topic=topic.replace('"', "'"))

    async def classify(self, topic: str) -> ClassificationResult:
        """
        Classify a topic.

        Args:
            topic: Free-text presentation topic

        Returns:
            ClassificationResult with flags from the category profile

        Raises:
            ClassificationError: After max_attempts failed attempts
        """
        instruction = self.build_instruction(topic)
        attempts = 0

        async def attempt() -> Tuple[ContentCategory, float]:
            nonlocal attempts
            attempts += 1
            answer = await self.client.generate_text(
                instruction,
                temperature=self.temperature,
                max_tokens=10,
            )
            parsed = parse_category(answer or "")
            if parsed is None:
                raise UnrecognizedAnswerError(answer or "")
            return parsed

        try:
            category, confidence = await call_with_retry(
                attempt,
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                policy=BackoffPolicy.LINEAR,
                retry_on=(TextServiceError, UnrecognizedAnswerError),
                operation_name="Topic classification",
                sleep=self._sleep,
            )
        except (TextServiceError, UnrecognizedAnswerError) as e:
            raise ClassificationError(topic, attempts, e) from e

        result = ClassificationResult.from_category(
            category,
            confidence,
            min_slides=self.min_slides,
            max_slides=self.max_slides,
        )
        logger.info(
            f"Classified topic as {category.value} (confidence {confidence:.2f})",
            attempts=attempts,
        )
        return result
