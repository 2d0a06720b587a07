"""
Enhancer - per-slide image instructions.

For every slide, the selected strategy builds an image instruction from the
slide's plain text; the Enhancer appends the strategy's image style block and
the content category, then attaches the result to the slide's metadata. The
image itself is fetched downstream.

Slides are independent, so instruction building fans out over a bounded
number of worker threads. Results are attached on the event loop, one slide
at a time, after each worker finishes.
"""

import asyncio
from typing import Dict, Optional

from src.core.strategies import ImageContext, Strategy
from src.models.document import Document, Slide
from src.models.generation import ClassificationResult, GenerationRequest
from src.models.pipeline_record import PipelineRecord
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

NO_TEXT_NOTE = "Note: No text overlays, website URLs, or icons8.com imagery."


def augment_image_instruction(
    base_instruction: str,
    strategy: Strategy,
    classification: ClassificationResult
) -> str:
    """Append the strategy's style block and the content category."""
    style = strategy.image_style
    return (
        f"{base_instruction}\n\n"
        f"{style.style}\n"
        f"Context: {style.context} ({classification.category.value} content)\n"
        f"{style.guidelines}\n"
        f"Important: {style.prohibitions}\n"
        f"{NO_TEXT_NOTE}"
    )


class Enhancer:

    def __init__(self, max_workers: int = 4):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers

    async def enhance(
        self,
        document: Document,
        strategy: Strategy,
        request: GenerationRequest,
        classification: ClassificationResult,
        record: Optional[PipelineRecord] = None
    ) -> Dict[str, bool]:
        """
        Attach image instructions to every slide.

        Args:
            document: Recovered document, mutated in place
            strategy: Selected strategy
            request: The accepted request
            classification: Classifier output

        Returns:
            Map of slide id to whether enhancement succeeded
        """
        consistency = request.image_consistency or classification.image_consistency
        total = len(document.slides)
        semaphore = asyncio.Semaphore(self.max_workers)

        async def enhance_slide(index: int, slide: Slide) -> bool:
            context = ImageContext(
                slide_index=index,
                total_slides=total,
                topic=request.topic,
                category=classification.category,
                consistency=consistency,
            )
            async with semaphore:
                try:
                    base, full = await asyncio.to_thread(
                        self._build, strategy, classification, slide.plain_text(), context
                    )
                except (KeyError, ValueError, TypeError, IndexError) as e:
                    logger.warning(f"Image instruction failed for slide {slide.id}: {e}")
                    if record is not None:
                        record.append("enhancement", "slide_failed", slide_id=slide.id, reason=str(e))
                    return False

            slide.attach_metadata("imagePrompt", full)
            slide.attach_metadata("baseImagePrompt", base)
            slide.attach_metadata("styleIntelligence", {
                "selectedStyle": strategy.id,
                "category": classification.category.value,
                "confidence": classification.confidence,
                "consistency": consistency.value,
                "reasoning": f"Style-driven image for {strategy.id} presentation",
            })
            slide.attach_metadata("imageGenerated", False)
            return True

        logger.info(f"Enhancing {total} slides (max {self.max_workers} workers)")
        outcomes = await asyncio.gather(
            *(enhance_slide(index, slide) for index, slide in enumerate(document.slides))
        )
        results = {slide.id: ok for slide, ok in zip(document.slides, outcomes)}

        succeeded = sum(outcomes)
        if record is not None:
            record.append("enhancement", "completed", succeeded=succeeded, total=total)
        logger.info(f"Enhanced {succeeded}/{total} slides")
        return results

    @staticmethod
    def _build(
        strategy: Strategy,
        classification: ClassificationResult,
        slide_text: str,
        context: ImageContext
    ):
        base = strategy.build_image_instruction(slide_text, context)
        return base, augment_image_instruction(base, strategy, classification)
