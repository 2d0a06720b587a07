"""
Generation Strategies

A Strategy is a stateless policy bundle built from a StrategyProfile. It
exposes four operations:

- build_instruction(request, classification) -> text for the Generator
- post_process(document, request, classification) -> adjusts a recovered
  Document in place through the Document mutation API
- build_image_instruction(slide_text, context) -> image prompt for one slide
- build_title_slide(request) -> the synthesized opening slide

There is one Strategy class; the four strategies differ only in their
profile data.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Tuple

from src.core.font_sizing import calculate_font_size, detect_text_role, font_context_for
from src.core.strategy_profiles import STRATEGY_PROFILES, ImageStyle, LayoutProfile, StrategyProfile
from src.models.document import Document, Layer, LayerType, Slide
from src.models.generation import (
    ClassificationResult,
    ContentCategory,
    GenerationRequest,
    ImageConsistency,
)

TITLE_SLIDE_BACKGROUND = "#f8f9fa"
TITLE_COLOR = "#2c3e50"
SUBTITLE_COLOR = "#7f8c8d"
BULLET = "•"

JSON_STRUCTURE_INSTRUCTIONS = """Return the result as minified JSON (no spaces, line breaks or indentation) with exactly this structure:

Content format rules:
- Never use HTML tags in "content" fields (no <div>, <span>, <br> or style attributes)
- Use plain text or Markdown (**bold**, ### headings, - lists)

{"title":"Presentation title","description":"Presentation description","slides":[{"id":"slide-1","title":"Slide title","layers":[{"id":"layer-1","type":"text","content":"Main slide content","x":10,"y":20,"width":80,"height":60,"fontSize":32,"textAlign":"left","textColor":"#000000"},{"id":"layer-2","type":"image","src":"","alt":"[Image: description of the picture]","x":60,"y":30,"width":35,"height":40}],"background":"#ffffff","aspectRatio":"16:9","notes":"Speaker notes"}]}

Geometry: x, y, width and height are percentages of the slide (0-100).

Font sizes:
- Short text (under 30 characters): 40-48px
- Medium text (30-80 characters): 32-40px
- Long text (150+ characters): at least 20px
- Titles 10-20px larger than body text

Images:
- Leave "src" as an empty string; never put image URLs in it
- Describe the intended picture in "alt" as [Image: ...]
- Never reference icons8.com, unsplash.com, pixabay.com or other image sites"""

_TOPIC_SUFFIXES = (
    re.compile(r"について.*$", re.S),
    re.compile(r"の(?:解説|説明).*$", re.S),
)
_TOPIC_PREFIXES = re.compile(
    r"^(?:an?\s+)?(?:overview|introduction|presentation|deck|talk)\s+(?:of|to|on|about)\s+",
    re.I,
)
_TRAILING_PUNCTUATION = " \t\r\n.!?。！？、,:;"


def extract_main_title(topic: str) -> str:
    """Short deck title derived from a free-text topic."""
    title = topic.strip()
    for pattern in _TOPIC_SUFFIXES:
        title = pattern.sub("", title)
    title = _TOPIC_PREFIXES.sub("", title).rstrip(_TRAILING_PUNCTUATION)
    if not title:
        return topic.strip()
    return title[0].upper() + title[1:]


def slide_count_instructions(count: int, exact: bool) -> str:
    if count <= 3:
        guidance = "give every slide plenty of content with detailed explanations"
    elif count <= 8:
        guidance = "keep a moderate amount of information per slide so the flow is easy to follow"
    else:
        guidance = "keep each slide concise while covering the topic comprehensively"

    if exact:
        return f"Use exactly {count} slides; {guidance}"
    return f"Use about {count} slides; {guidance}"


def purpose_context(purpose: Optional[str]) -> str:
    if purpose:
        return f"in a way that serves the purpose \"{purpose}\""
    return "in the format best suited to the topic"


@dataclass(frozen=True)
class ImageContext:
    """Cross-cutting context for one slide's image instruction."""
    slide_index: int
    total_slides: int
    topic: str
    category: ContentCategory
    consistency: ImageConsistency


@dataclass(frozen=True)
class Strategy:
    profile: StrategyProfile

    @property
    def id(self) -> str:
        return self.profile.id

    @property
    def display_name(self) -> str:
        return self.profile.display_name

    @property
    def image_style(self) -> ImageStyle:
        return self.profile.image_style

    @property
    def layout(self) -> LayoutProfile:
        return self.profile.layout

    # Instruction building

    def build_instruction(self, request: GenerationRequest, classification: ClassificationResult) -> str:
        """
        Build the generation instruction for a request.

        Args:
            request: The accepted request
            classification: Classifier output (supplies the slide count for 'auto')

        Returns:
            Instruction text for the Generator
        """
        profile = self.profile
        explicit_count = request.requested_slide_count
        count = explicit_count or classification.suggested_slide_count

        lines = [
            f"Topic: {request.topic}",
            "",
            f"[{profile.display_name} - {profile.tagline}]",
            f"Use your expertise to provide {profile.goal} about \"{request.topic}\".",
            "",
            "Style guidelines:",
        ]
        lines.extend(f"- {guideline}" for guideline in profile.guidelines)
        lines.append("")

        if request.theme:
            lines.append(f"Tone and theme: {request.theme}.")
        if request.purpose:
            lines.append(f"Purpose: build the deck {purpose_context(request.purpose)}.")

        lines.append(slide_count_instructions(count, exact=explicit_count is not None) + ".")

        if request.include_images:
            lines.append(
                "Images: include one relevant image per slide. Images must match the content "
                "and help the audience understand the slide."
            )

        lines.append("")
        lines.append(JSON_STRUCTURE_INSTRUCTIONS)
        return "\n".join(lines)

    # Post-processing

    def post_process(
        self,
        document: Document,
        request: GenerationRequest,
        classification: ClassificationResult
    ) -> None:
        """Speaker notes, font sizing, palette and bullet markers, in that order."""
        font_context = font_context_for(classification.category)

        for index, slide in enumerate(document.slides):
            if not (slide.notes or "").strip():
                slide.set_notes(self.build_speaker_notes(slide, index, request))

            for layer in slide.text_layers:
                if layer.content:
                    role = detect_text_role(layer, index)
                    layer.set_font_size(
                        calculate_font_size(layer.content, layer.width, layer.height, role, font_context)
                    )

            if self.profile.palette:
                self._apply_palette(slide)
            if self.profile.bullet_markers:
                self._add_bullet_markers(slide)

    def build_speaker_notes(self, slide: Slide, index: int, request: GenerationRequest) -> str:
        title = slide.title or f"Slide {index + 1}"
        content = slide.plain_text().replace("\n", " ")

        if index == 0:
            return (
                f"[Introduction]\nIntroduce {title}.\n"
                f"Content: {content[:100]}...\n"
                "Speaking time: 1-2 minutes\n"
                "Tip: Speak clearly to capture the audience's attention."
            )
        return (
            f"[{title}]\nKey points: {content[:150]}...\n"
            f"Delivery: Present this content {purpose_context(request.purpose)}.\n"
            "Suggested time: 1-2 minutes"
        )

    def _apply_palette(self, slide: Slide) -> None:
        palette = self.profile.palette
        slide.set_background(palette.background)
        for position, layer in enumerate(slide.layers):
            if layer.is_text:
                layer.set_text_color(palette.primary if position == 0 else palette.text)

    def _add_bullet_markers(self, slide: Slide) -> None:
        if len(slide.layers) < 2:
            return
        for position, layer in enumerate(slide.layers):
            if position <= 1 or not layer.is_text or not layer.content:
                continue
            stripped = layer.content.strip()
            if not stripped.startswith((BULLET, "#")):
                layer.set_content(f"{BULLET} {layer.content}")

    # Image instructions

    def analyze_slide_content(self, slide_text: str) -> Dict[str, str]:
        """Template fields from the first content rule whose keyword occurs in the text."""
        lowered = slide_text.lower()
        for rule in self.profile.content_rules:
            if any(keyword in lowered for keyword in rule.keywords):
                return dict(rule.fields)
        return dict(self.profile.default_fields)

    def build_image_instruction(self, slide_text: str, context: ImageContext) -> str:
        fields = self.analyze_slide_content(slide_text)
        return self.profile.image_template.format(
            content=slide_text,
            consistency=self.profile.consistency[context.consistency],
            style_hint=self.profile.image_style_hint.format(topic=slide_text or context.topic),
            **fields,
        )

    # Title slide

    def build_title_slide(self, request: GenerationRequest, today: Optional[date] = None) -> Slide:
        main_title = extract_main_title(request.topic)
        subtitle = request.purpose or self.display_name
        date_line = (today or date.today()).strftime("%B %d, %Y").replace(" 0", " ")

        layers = [
            Layer(
                id="title-layer-1",
                type=LayerType.TEXT,
                content=main_title,
                x=10, y=25, width=80, height=25,
                font_size=56,
                text_align="center",
                text_color=TITLE_COLOR,
                font_weight="bold",
                z_index=1,
            ),
            Layer(
                id="title-layer-2",
                type=LayerType.TEXT,
                content=f"{subtitle}\n\n{date_line}",
                x=10, y=65, width=80, height=20,
                font_size=24,
                text_align="center",
                text_color=SUBTITLE_COLOR,
                opacity=0.8,
                z_index=2,
            ),
        ]

        return Slide(
            id="slide-title",
            title=main_title,
            layers=layers,
            background=TITLE_SLIDE_BACKGROUND,
            notes=self.build_title_notes(main_title, request),
            metadata={
                "slideType": "title",
                "strategyUsed": self.display_name,
            },
        )

    def build_title_notes(self, main_title: str, request: GenerationRequest) -> str:
        return (
            "[Title slide]\n"
            f"Open the presentation on {main_title}.\n\n"
            "Preparation:\n"
            f"{BULLET} Greet the audience and introduce yourself\n"
            f"{BULLET} State the goal of the presentation\n"
            f"{BULLET} Preview the structure and timing\n\n"
            f"Delivery: {purpose_context(request.purpose)}\n"
            "Suggested time: 1-2 minutes"
        )


def build_strategies(profiles: Tuple[StrategyProfile, ...] = STRATEGY_PROFILES) -> List[Strategy]:
    """One Strategy per profile, in profile order."""
    return [Strategy(profile) for profile in profiles]
