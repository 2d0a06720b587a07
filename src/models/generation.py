"""
Request and classification models for the generation pipeline.

GenerationRequest and ClassificationResult are frozen: once the pipeline
accepts a request, or the Classifier produces a result, nothing downstream
may change them.
"""

from enum import Enum
from typing import Dict, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentCategory(str, Enum):
    """Closed set of content categories the Classifier may answer with."""
    NARRATIVE = "narrative"
    BUSINESS = "business"
    ACADEMIC = "academic"
    TECHNICAL = "technical"
    CREATIVE = "creative"


class ImageConsistency(str, Enum):
    """How strongly images across one deck should share a visual style."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ClassificationSource(str, Enum):
    """Where a ClassificationResult came from."""
    MODEL = "model"
    KEYWORD_FALLBACK = "keyword_fallback"


class CategoryProfile(NamedTuple):
    suggested_slide_count: int
    needs_page_numbers: bool
    image_consistency: ImageConsistency


CATEGORY_PROFILES: Dict[ContentCategory, CategoryProfile] = {
    ContentCategory.NARRATIVE: CategoryProfile(8, False, ImageConsistency.HIGH),
    ContentCategory.BUSINESS: CategoryProfile(10, True, ImageConsistency.MEDIUM),
    ContentCategory.ACADEMIC: CategoryProfile(15, True, ImageConsistency.MEDIUM),
    ContentCategory.TECHNICAL: CategoryProfile(12, True, ImageConsistency.LOW),
    ContentCategory.CREATIVE: CategoryProfile(12, False, ImageConsistency.HIGH),
}


def profile_for(category: ContentCategory) -> CategoryProfile:
    """Auxiliary generation hints attached to a content category."""
    return CATEGORY_PROFILES[category]


class GenerationRequest(BaseModel):
    """
    One deck generation request.

    slide_count is either a positive integer or the literal "auto", in which
    case the Classifier's suggestion is used.
    """
    model_config = ConfigDict(frozen=True)

    topic: str = Field(..., min_length=1, description="Free-text presentation topic")
    strategy_id: Optional[str] = Field(
        None,
        description="Explicit strategy id; 'auto' or unknown ids fall through to classification"
    )
    purpose: Optional[str] = Field(None, description="Purpose hint, e.g. 'quarterly review'")
    theme: Optional[str] = Field(None, description="Visual theme hint")
    slide_count: Union[int, Literal["auto"]] = Field("auto", description="Slide count or 'auto'")
    include_images: bool = Field(True, description="Attach image instructions to slides")
    image_consistency: Optional[ImageConsistency] = Field(
        None,
        description="Overrides the consistency level suggested by classification"
    )

    @field_validator('topic')
    @classmethod
    def topic_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("topic must not be blank")
        return v

    @field_validator('slide_count')
    @classmethod
    def slide_count_positive(cls, v):
        if isinstance(v, int) and v < 1:
            raise ValueError("slide_count must be >= 1 or 'auto'")
        return v

    @property
    def requested_slide_count(self) -> Optional[int]:
        """Explicit slide count, or None when 'auto'."""
        return None if self.slide_count == "auto" else self.slide_count


class ClassificationResult(BaseModel):
    """Categorical signals derived from a topic."""
    model_config = ConfigDict(frozen=True)

    category: ContentCategory
    confidence: float = Field(..., ge=0.0, le=1.0)
    suggested_slide_count: int = Field(..., ge=1)
    needs_page_numbers: bool = False
    image_consistency: ImageConsistency = ImageConsistency.MEDIUM
    source: ClassificationSource = ClassificationSource.MODEL

    @classmethod
    def from_category(
        cls,
        category: ContentCategory,
        confidence: float,
        min_slides: int = 1,
        max_slides: int = 100,
        source: ClassificationSource = ClassificationSource.MODEL
    ) -> "ClassificationResult":
        """Build a result whose auxiliary flags come from the category profile."""
        profile = profile_for(category)
        return cls(
            category=category,
            confidence=confidence,
            suggested_slide_count=max(min_slides, min(max_slides, profile.suggested_slide_count)),
            needs_page_numbers=profile.needs_page_numbers,
            image_consistency=profile.image_consistency,
            source=source,
        )
