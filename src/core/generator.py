"""
Generator - instruction in, raw text out.

Transport plus one sanity check: a response that is empty (or shorter than
min_content_length after stripping) raises EmptyGenerationError so the caller
can retry instead of feeding nothing into the RecoveryEngine. Text service
errors pass through unchanged. No structure is assumed about the text.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from config.settings import Settings
from src.clients.text_generation_client import TextGenerationClient
from src.core.errors import EmptyGenerationError
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


class ModelHints(BaseModel):
    """Per-call sampling hints for the text-generation capability."""
    model_config = ConfigDict(frozen=True)

    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, ge=1)


class Generator:

    def __init__(
        self,
        client: TextGenerationClient,
        min_content_length: int = 2,
        default_hints: Optional[ModelHints] = None
    ):
        self.client = client
        self.min_content_length = min_content_length
        self.default_hints = default_hints or ModelHints()

    @classmethod
    def from_settings(cls, settings: Settings, client: TextGenerationClient) -> "Generator":
        return cls(
            client=client,
            min_content_length=settings.GENERATOR_MIN_CONTENT_LENGTH,
            default_hints=ModelHints(
                temperature=settings.GENERATOR_TEMPERATURE,
                max_tokens=settings.GENERATOR_MAX_TOKENS,
            ),
        )

    async def generate(self, instruction: str, hints: Optional[ModelHints] = None) -> str:
        """
        Send an instruction to the text service.

        Args:
            instruction: Strategy-built instruction
            hints: Sampling hints (defaults from settings)

        Returns:
            Raw model output, unmodified

        Raises:
            EmptyGenerationError: Response is empty or near-empty
            TextServiceError: Transport, quota or rate-limit failure
        """
        hints = hints or self.default_hints
        logger.info(
            f"Generating deck content ({len(instruction)} char instruction)",
            temperature=hints.temperature,
        )

        raw = await self.client.generate_text(
            instruction,
            temperature=hints.temperature,
            max_tokens=hints.max_tokens,
        )
        raw = raw or ""

        length = len(raw.strip())
        if length < self.min_content_length:
            logger.warning(f"Text service returned near-empty output ({length} chars)")
            raise EmptyGenerationError(length, self.min_content_length)

        logger.info(f"Received {len(raw)} characters of raw output")
        return raw
