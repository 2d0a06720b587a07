"""
Assembler - final document shape.

Prepends the strategy's title slide, renumbers slide and layer ids from
position, copies the deck title from the title slide, optionally adds page
numbers, and stamps a generation metadata block. Pure data manipulation: any
exception here is a programmer error.
"""

from datetime import date, datetime, timezone
from typing import Dict, Optional

from src.core.strategies import Strategy
from src.models.document import Document, Layer, LayerType
from src.models.generation import ClassificationResult, GenerationRequest
from src.models.pipeline_record import PipelineRecord
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

PAGE_NUMBER_GEOMETRY = {"x": 45, "y": 92, "width": 10, "height": 6}
PAGE_NUMBER_FONT_SIZE = 14
PAGE_NUMBER_COLOR = "#64748b"


class Assembler:

    def __init__(self, page_numbers_enabled: bool = True):
        self.page_numbers_enabled = page_numbers_enabled

    def assemble(
        self,
        document: Document,
        strategy: Strategy,
        request: GenerationRequest,
        classification: ClassificationResult,
        enhancements: Optional[Dict[str, bool]] = None,
        record: Optional[PipelineRecord] = None,
        today: Optional[date] = None
    ) -> Document:
        """
        Finish a document in place.

        Args:
            document: Recovered (and enhanced) document
            strategy: Selected strategy
            request: The accepted request
            classification: Classifier output
            enhancements: Enhancer results keyed by pre-assembly slide id
            record: PipelineRecord for the run
            today: Date printed on the title slide

        Returns:
            The same document
        """
        enhancements = enhancements or {}
        # Remember outcomes by slide object; ids change below
        outcomes = [(slide, enhancements[slide.id]) for slide in document.slides if slide.id in enhancements]

        title_slide = strategy.build_title_slide(request, today=today)
        document.prepend_slide(title_slide)
        document.renumber_slides()
        document.set_title(title_slide.title)

        page_numbers = self.page_numbers_enabled and classification.needs_page_numbers
        if page_numbers:
            self._add_page_numbers(document)

        document.attach_metadata("generation", {
            "strategyId": strategy.id,
            "strategyName": strategy.display_name,
            "classifierConfidence": classification.confidence,
            "contentCategory": classification.category.value,
            "classificationSource": classification.source.value,
            "recoveryLevel": int(record.recovery_level) if record and record.recovery_level else None,
            "enhancements": {slide.id: ok for slide, ok in outcomes},
            "pageNumbers": page_numbers,
            "generatedAt": datetime.now(timezone.utc).isoformat(),
        })

        if record is not None:
            record.append("assembly", "assembled", slides=len(document.slides), page_numbers=page_numbers)
        logger.info(f"Assembled '{document.title}' with {len(document.slides)} slides")
        return document

    def _add_page_numbers(self, document: Document) -> None:
        total = len(document.slides)
        for number, slide in enumerate(document.slides, start=1):
            if slide.metadata.get("slideType") == "title":
                continue
            slide.add_layer(Layer(
                id=f"{slide.id}-page-number",
                type=LayerType.TEXT,
                content=f"{number} / {total}",
                z_index=slide.next_z_index(),
                font_size=PAGE_NUMBER_FONT_SIZE,
                text_align="center",
                text_color=PAGE_NUMBER_COLOR,
                **PAGE_NUMBER_GEOMETRY,
            ))
