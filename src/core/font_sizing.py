"""
Role-aware font sizing for text layers.

The size is a base size for the text role (title, subtitle, body, caption)
scaled by the deck's content context, the layer area, the text length, line
breaks and word density, then clamped to the role's range.
"""

from enum import Enum
from typing import Dict, NamedTuple

from src.models.document import Layer
from src.models.generation import ContentCategory


class TextRole(str, Enum):
    TITLE = "title"
    SUBTITLE = "subtitle"
    BODY = "body"
    CAPTION = "caption"


class FontContext(str, Enum):
    STORY = "story"
    BUSINESS = "business"
    ACADEMIC = "academic"
    TECHNICAL = "technical"


class SizeRange(NamedTuple):
    max: int
    base: int
    min: int


BASE_SIZES: Dict[TextRole, SizeRange] = {
    TextRole.TITLE: SizeRange(56, 42, 32),
    TextRole.SUBTITLE: SizeRange(48, 36, 26),
    TextRole.BODY: SizeRange(40, 28, 20),
    TextRole.CAPTION: SizeRange(28, 20, 16),
}

CONTEXT_MULTIPLIERS: Dict[FontContext, Dict[TextRole, float]] = {
    FontContext.STORY: {TextRole.TITLE: 1.1, TextRole.SUBTITLE: 1.05, TextRole.BODY: 1.0, TextRole.CAPTION: 0.95},
    FontContext.BUSINESS: {TextRole.TITLE: 1.0, TextRole.SUBTITLE: 1.0, TextRole.BODY: 1.0, TextRole.CAPTION: 1.0},
    FontContext.ACADEMIC: {TextRole.TITLE: 0.95, TextRole.SUBTITLE: 0.95, TextRole.BODY: 0.9, TextRole.CAPTION: 0.9},
    FontContext.TECHNICAL: {TextRole.TITLE: 0.9, TextRole.SUBTITLE: 0.9, TextRole.BODY: 0.85, TextRole.CAPTION: 0.85},
}

CATEGORY_FONT_CONTEXT: Dict[ContentCategory, FontContext] = {
    ContentCategory.NARRATIVE: FontContext.STORY,
    ContentCategory.CREATIVE: FontContext.STORY,
    ContentCategory.BUSINESS: FontContext.BUSINESS,
    ContentCategory.ACADEMIC: FontContext.ACADEMIC,
    ContentCategory.TECHNICAL: FontContext.TECHNICAL,
}

# 80 x 20 is the default text box
STANDARD_AREA = 1600.0

# (max length, factor); longer text gets the last factor
LENGTH_FACTORS = ((20, 1.3), (50, 1.1), (100, 1.0), (200, 0.9), (350, 0.8))
LONG_TEXT_FACTOR = 0.7

DEFAULT_FONT_SIZE = 32


def font_context_for(category: ContentCategory) -> FontContext:
    return CATEGORY_FONT_CONTEXT.get(category, FontContext.BUSINESS)


def detect_text_role(layer: Layer, slide_index: int) -> TextRole:
    """Guess a text layer's role from its position, size and current font size."""
    content = layer.content or ""
    y = layer.y
    font_size = layer.font_size or DEFAULT_FONT_SIZE

    if slide_index == 0 and y < 30 and font_size > 40:
        return TextRole.TITLE
    if y < 25 and (font_size > 35 or len(content) < 50):
        return TextRole.TITLE
    if 25 <= y < 40 and font_size > 30:
        return TextRole.SUBTITLE
    if y > 80 or layer.height < 15 or font_size < 22:
        return TextRole.CAPTION
    return TextRole.BODY


def _length_factor(text_length: int) -> float:
    for limit, factor in LENGTH_FACTORS:
        if text_length <= limit:
            return factor
    return LONG_TEXT_FACTOR


def calculate_font_size(
    content: str,
    width: float = 80,
    height: float = 20,
    role: TextRole = TextRole.BODY,
    context: FontContext = FontContext.BUSINESS
) -> int:
    """
    Compute a font size in px for a text layer.

    Args:
        content: Layer text
        width: Layer width in percent
        height: Layer height in percent
        role: Text role
        context: Content context of the deck

    Returns:
        Font size clamped to the role's [min, max]
    """
    size_range = BASE_SIZES[role]
    words = len(content.split())

    area_factor = min(1.2, max(0.7, (width * height) / STANDARD_AREA))
    line_break_factor = 0.95 if "\n" in content else 1.0
    word_density_factor = max(0.8, min(1.1, 50 / words)) if words > 0 else 1.0

    size = (
        size_range.base
        * CONTEXT_MULTIPLIERS[context][role]
        * area_factor
        * _length_factor(len(content))
        * line_break_factor
        * word_density_factor
    )
    return round(min(size_range.max, max(size_range.min, size)))
