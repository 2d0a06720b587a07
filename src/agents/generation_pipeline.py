"""
Generation Pipeline

One run per GenerationRequest, strictly sequential:

    Classifier -> StrategySelector -> Generator -> RecoveryEngine
        -> strategy post-processing -> Enhancer -> Assembler

All collaborators live on a PipelineContext built once per process and
passed in, so tests swap the text client and the sleep function without
touching globals. A run either returns a Document plus its PipelineRecord or
raises PipelineError with one of a closed set of codes. Cancelling the task
running the pipeline cancels the in-flight text service call; nothing
partially built is returned.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, NamedTuple, Optional

from config.settings import Settings, get_settings
from src.clients.text_generation_client import TextGenerationClient, VertexTextGenerationClient
from src.core.assembler import Assembler
from src.core.classifier import Classifier
from src.core.enhancer import Enhancer
from src.core.errors import (
    ClassificationError,
    ContractViolationError,
    EmptyGenerationError,
    PipelineError,
    PipelineErrorCode,
    TextServiceError,
    TextServiceRateLimitError,
    TextServiceTransportError,
)
from src.core.generator import Generator
from src.core.keyword_fallback import classify_by_keywords
from src.core.recovery_engine import RecoveryEngine
from src.core.strategy_registry import StrategyRegistry, StrategySelector
from src.models.document import Document
from src.models.generation import ClassificationResult, GenerationRequest
from src.models.pipeline_record import PipelineRecord, RunOutcome
from src.utils.logger import setup_logger
from src.utils.retry import BackoffPolicy, SleepFunc, call_with_retry

logger = setup_logger(__name__)

StageCallback = Callable[[str, Dict[str, Any]], Awaitable[None]]

GENERATOR_RETRYABLE = (EmptyGenerationError, TextServiceRateLimitError, TextServiceTransportError)


class PipelineStage(str, Enum):
    CLASSIFICATION = "classification"
    SELECTION = "selection"
    GENERATION = "generation"
    RECOVERY = "recovery"
    POST_PROCESSING = "post_processing"
    ENHANCEMENT = "enhancement"
    ASSEMBLY = "assembly"


@dataclass
class PipelineContext:
    """Process-wide collaborators shared by every pipeline run."""
    settings: Settings
    classifier: Classifier
    registry: StrategyRegistry
    selector: StrategySelector
    generator: Generator
    recovery_engine: RecoveryEngine
    enhancer: Enhancer
    assembler: Assembler
    sleep: Optional[SleepFunc] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        client: Optional[TextGenerationClient] = None,
        classifier_client: Optional[TextGenerationClient] = None,
        sleep: Optional[SleepFunc] = None
    ) -> "PipelineContext":
        """
        Build the context from settings.

        Args:
            settings: Settings (cached settings if omitted)
            client: Text client for generation (Vertex if omitted)
            classifier_client: Text client for classification (defaults to
                `client`, else a Vertex client on the classifier model)
            sleep: Backoff sleep used by every retry loop
        """
        settings = settings or get_settings()
        generator_client = client or VertexTextGenerationClient(settings, settings.GCP_MODEL_GENERATOR)
        classifier_client = classifier_client or client or VertexTextGenerationClient(
            settings, settings.GCP_MODEL_CLASSIFIER
        )

        registry = StrategyRegistry.default()
        return cls(
            settings=settings,
            classifier=Classifier.from_settings(settings, classifier_client, sleep=sleep),
            registry=registry,
            selector=StrategySelector(registry, default_strategy_id=settings.DEFAULT_STRATEGY_ID),
            generator=Generator.from_settings(settings, generator_client),
            recovery_engine=RecoveryEngine(),
            enhancer=Enhancer(max_workers=settings.ENHANCER_MAX_WORKERS),
            assembler=Assembler(page_numbers_enabled=settings.PAGE_NUMBERS_ENABLED),
            sleep=sleep,
        )


class PipelineResult(NamedTuple):
    document: Document
    record: PipelineRecord


class GenerationPipeline:
    """Runs one GenerationRequest through every stage."""

    def __init__(self, context: PipelineContext):
        self.context = context

    async def run(
        self,
        request: GenerationRequest,
        on_stage: Optional[StageCallback] = None,
        record: Optional[PipelineRecord] = None
    ) -> PipelineResult:
        """
        Generate a document.

        Args:
            request: Accepted (immutable) request
            on_stage: Optional async progress callback, called as
                on_stage(stage_name, detail) when each stage starts
            record: Record to fill (a new one if omitted)

        Returns:
            PipelineResult(document, record)

        Raises:
            PipelineError: classification_exhausted, service_unavailable or
                empty_generation
            asyncio.CancelledError: The run was cancelled
        """
        record = record or PipelineRecord()
        ctx = self.context

        async def stage(name: PipelineStage, **detail: Any) -> None:
            logger.info(f"▶ {name.value}", request_id=record.request_id)
            if on_stage is not None:
                await on_stage(name.value, detail)

        logger.info(f"Pipeline started for topic: {request.topic[:80]}", request_id=record.request_id)
        try:
            await stage(PipelineStage.CLASSIFICATION)
            classification = await self._classify(request, record)
            record.set_classification(classification)

            await stage(PipelineStage.SELECTION, category=classification.category.value)
            strategy, source = ctx.selector.select(request, classification)
            record.set_strategy(strategy.id, source)

            await stage(PipelineStage.GENERATION, strategy_id=strategy.id)
            instruction = strategy.build_instruction(request, classification)
            raw = await self._generate(instruction, record)

            await stage(PipelineStage.RECOVERY, characters=len(raw))
            outcome = ctx.recovery_engine.recover_with_outcome(raw, record)
            document = outcome.document

            await stage(PipelineStage.POST_PROCESSING, recovery_level=int(outcome.level))
            strategy.post_process(document, request, classification)
            record.append("post_processing", "applied", strategy_id=strategy.id)

            enhancements: Dict[str, bool] = {}
            if request.include_images:
                await stage(PipelineStage.ENHANCEMENT, slides=len(document.slides))
                enhancements = await ctx.enhancer.enhance(document, strategy, request, classification, record)
            else:
                record.append("enhancement", "skipped", reason="images not requested")

            await stage(PipelineStage.ASSEMBLY)
            ctx.assembler.assemble(document, strategy, request, classification, enhancements, record)

        except asyncio.CancelledError:
            record.finish(RunOutcome.CANCELLED)
            logger.warning("Pipeline cancelled; partial document discarded", request_id=record.request_id)
            raise
        except PipelineError as e:
            e.record = record
            record.finish(RunOutcome.FAILED, code=e.code.value, message=e.message)
            logger.error(f"Pipeline failed: {e.code.value}: {e.message}", request_id=record.request_id)
            raise
        except ContractViolationError as e:
            record.finish(RunOutcome.FAILED, error=type(e).__name__, message=str(e))
            logger.exception(f"Pipeline contract violation: {e}", request_id=record.request_id)
            raise
        except Exception as e:
            record.finish(RunOutcome.FAILED, error=type(e).__name__, message=str(e))
            logger.exception(f"Pipeline failed unexpectedly: {e}", request_id=record.request_id)
            raise

        record.finish(
            RunOutcome.COMPLETED,
            slides=len(document.slides),
            recovery_level=int(outcome.level),
        )
        logger.info(
            f"✅ Pipeline completed: {len(document.slides)} slides, recovery level {int(outcome.level)}",
            request_id=record.request_id,
        )
        return PipelineResult(document, record)

    async def _classify(self, request: GenerationRequest, record: PipelineRecord) -> ClassificationResult:
        ctx = self.context
        try:
            return await ctx.classifier.classify(request.topic)
        except ClassificationError as e:
            record.append("classification", "exhausted", attempts=e.attempts, error=str(e.last_error))
            if not ctx.settings.CLASSIFIER_KEYWORD_FALLBACK:
                raise PipelineError(
                    PipelineErrorCode.CLASSIFICATION_EXHAUSTED,
                    f"Could not classify the topic after {e.attempts} attempts",
                ) from e

            logger.warning(f"Classification exhausted; using keyword fallback: {e}")
            record.append("classification", "keyword_fallback")
            return classify_by_keywords(
                request.topic,
                min_slides=ctx.settings.MIN_SLIDE_COUNT,
                max_slides=ctx.settings.MAX_SLIDE_COUNT,
            )

    async def _generate(self, instruction: str, record: PipelineRecord) -> str:
        ctx = self.context
        settings = ctx.settings
        attempts = 0

        async def attempt() -> str:
            nonlocal attempts
            attempts += 1
            try:
                return await ctx.generator.generate(instruction)
            except GENERATOR_RETRYABLE as e:
                record.append("generation", "attempt_failed", attempt=attempts, error=type(e).__name__)
                raise

        try:
            raw = await call_with_retry(
                attempt,
                max_attempts=settings.GENERATOR_MAX_ATTEMPTS,
                base_delay=settings.GENERATOR_RETRY_BASE_DELAY,
                policy=BackoffPolicy.EXPONENTIAL,
                max_delay=settings.GENERATOR_MAX_RETRY_DELAY,
                retry_on=GENERATOR_RETRYABLE,
                operation_name="Deck generation",
                sleep=ctx.sleep,
            )
        except EmptyGenerationError as e:
            raise PipelineError(
                PipelineErrorCode.EMPTY_GENERATION,
                f"The text service returned no content after {attempts} attempts",
            ) from e
        except TextServiceError as e:
            raise PipelineError(
                PipelineErrorCode.SERVICE_UNAVAILABLE,
                f"The text service is unavailable: {type(e).__name__}",
            ) from e

        record.append("generation", "completed", attempts=attempts, characters=len(raw))
        return raw
