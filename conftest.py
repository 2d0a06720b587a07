"""
Shared test fixtures.

Every test runs without network access: the text service is replaced by a
scripted fake and backoff sleeps are recorded instead of awaited.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from config.settings import Settings
from src.agents.generation_pipeline import PipelineContext


class ScriptedTextClient:
    """
    TextGenerationClient fake that replays queued responses in order.

    A queued item is either a string (returned) or an exception instance
    (raised). Once the queue is empty, `default` is replayed forever.
    """

    def __init__(self, *responses, default=None):
        self.responses = list(responses)
        self.default = default
        self.calls: List[dict] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def generate_text(self, instruction: str, *, temperature: float = 0.7, max_tokens: Optional[int] = None) -> str:
        self.calls.append({
            'instruction': instruction,
            'temperature': temperature,
            'max_tokens': max_tokens,
        })
        if self.responses:
            item = self.responses.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise AssertionError(f"Unexpected text service call #{len(self.calls)}")

        if isinstance(item, BaseException):
            raise item
        return item


class BlockingTextClient:
    """TextGenerationClient fake that never answers; records whether it was cancelled."""

    def __init__(self):
        self.started = asyncio.Event()
        self.cancelled = False

    async def generate_text(self, instruction: str, *, temperature: float = 0.7, max_tokens: Optional[int] = None) -> str:
        self.started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def deck_payload(slide_count: int = 2) -> dict:
    """A well-formed generator payload with text and image layers."""
    slides = []
    for n in range(1, slide_count + 1):
        slides.append({
            "id": f"s{n}",
            "title": f"Point {n}",
            "background": "#ffffff",
            "layers": [
                {"id": f"s{n}-heading", "type": "text", "content": f"Point {n}",
                 "x": 10, "y": 8, "width": 80, "height": 12, "zIndex": 1, "fontSize": 40},
                {"id": f"s{n}-body", "type": "text", "content": f"Revenue grew in region {n}",
                 "x": 10, "y": 30, "width": 45, "height": 40, "zIndex": 2, "fontSize": 24},
                {"id": f"s{n}-detail", "type": "text", "content": f"Margin detail {n}",
                 "x": 10, "y": 72, "width": 45, "height": 16, "zIndex": 3, "fontSize": 20},
                {"id": f"s{n}-image", "type": "image", "src": "", "alt": "[Image: chart]",
                 "x": 60, "y": 30, "width": 30, "height": 40, "zIndex": 4},
            ],
        })
    return {"title": "Quarterly Review", "description": "Results", "slides": slides}


@pytest.fixture
def deck_json() -> str:
    return json.dumps(deck_payload())


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        GCP_ENABLED=True,
        CLASSIFIER_MAX_ATTEMPTS=3,
        CLASSIFIER_RETRY_BASE_DELAY=1.0,
        CLASSIFIER_KEYWORD_FALLBACK=False,
        GENERATOR_MAX_ATTEMPTS=2,
        GENERATOR_RETRY_BASE_DELAY=2.0,
        LOGFIRE_TOKEN=None,
    )


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_context(settings, sleep):
    """Build a PipelineContext around scripted classifier and generator clients."""

    def _make(classifier_client, generator_client, **overrides) -> PipelineContext:
        context_settings = settings.model_copy(update=overrides) if overrides else settings
        return PipelineContext.from_settings(
            context_settings,
            client=generator_client,
            classifier_client=classifier_client,
            sleep=sleep,
        )

    return _make
