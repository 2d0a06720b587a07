"""
Text Generation Client

Narrow contract to the external text-generation capability:

    await client.generate_text(instruction, temperature=0.7) -> str

Failures are reported with the TextServiceError taxonomy (transport, quota,
rate limit). The Vertex implementation wraps a pydantic-ai Agent on the
`google-vertex:` model family; tests pass any object with the same method.
"""

import asyncio
from typing import Dict, Optional, Protocol, runtime_checkable

import httpx
from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior

from config.settings import Settings, get_settings
from src.core.errors import (
    TextServiceError,
    TextServiceQuotaError,
    TextServiceRateLimitError,
    TextServiceTransportError,
)
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

SYSTEM_PROMPT = (
    "You are a presentation generation service. Follow the instruction exactly and "
    "answer with the requested content only, without commentary."
)


@runtime_checkable
class TextGenerationClient(Protocol):
    """Anything that can turn an instruction into text."""

    async def generate_text(
        self,
        instruction: str,
        *,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None
    ) -> str:
        ...


def map_service_error(exc: BaseException) -> TextServiceError:
    """
    Translate a backend exception into the TextServiceError taxonomy.

    Args:
        exc: Exception raised by pydantic-ai, httpx or the event loop

    Returns:
        The matching TextServiceError subclass instance
    """
    if isinstance(exc, TextServiceError):
        return exc

    if isinstance(exc, ModelHTTPError):
        body = str(exc.body or "")
        if exc.status_code == 429 and "RESOURCE_EXHAUSTED" not in body:
            return TextServiceRateLimitError(str(exc), status_code=429)
        if "RESOURCE_EXHAUSTED" in body or "quota" in body.lower():
            return TextServiceQuotaError(str(exc), status_code=exc.status_code)
        return TextServiceTransportError(str(exc), status_code=exc.status_code)

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 429:
            return TextServiceRateLimitError(str(exc), status_code=status)
        return TextServiceTransportError(str(exc), status_code=status)

    return TextServiceTransportError(f"{type(exc).__name__}: {exc}")


class VertexTextGenerationClient:
    """
    Text generation through Vertex AI Gemini models via pydantic-ai.

    One Agent per model name, created lazily on first use so that importing
    the service never touches GCP credentials.
    """

    def __init__(self, settings: Optional[Settings] = None, model_name: Optional[str] = None):
        self.settings = settings or get_settings()
        self.model_name = model_name or self.settings.GCP_MODEL_GENERATOR
        self._agents: Dict[str, Agent] = {}

    def _get_agent(self, model_name: str) -> Agent:
        agent = self._agents.get(model_name)
        if agent is None:
            from src.utils.gcp_auth import initialize_vertex_ai

            initialize_vertex_ai(self.settings)

            model_id = f"google-vertex:{model_name}"
            agent = Agent(
                model=model_id,
                system_prompt=SYSTEM_PROMPT,
                output_type=str
            )
            self._agents[model_name] = agent
            logger.info(f"Text generation agent initialized with Vertex AI model: {model_id}")
        return agent

    async def generate_text(
        self,
        instruction: str,
        *,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        model_name: Optional[str] = None
    ) -> str:
        """
        Generate text for an instruction.

        Args:
            instruction: Full prompt text
            temperature: Sampling temperature
            max_tokens: Output token cap
            model_name: Overrides the client's default model

        Returns:
            Raw model output

        Raises:
            TextServiceError: Transport, quota or rate-limit failure
        """
        model_settings = {"temperature": temperature}
        if max_tokens:
            model_settings["max_tokens"] = max_tokens

        try:
            agent = self._get_agent(model_name or self.model_name)
            result = await agent.run(instruction, model_settings=model_settings)
        except asyncio.CancelledError:
            raise
        except (ModelHTTPError, UnexpectedModelBehavior, httpx.HTTPError,
                TimeoutError, ConnectionError, RuntimeError) as e:
            error = map_service_error(e)
            logger.warning(
                f"Text service call failed: {error}",
                error_type=type(error).__name__,
                status_code=error.status_code,
            )
            raise error from e

        # Pydantic-AI 1.0+: use .output instead of .data
        return result.output or ""
