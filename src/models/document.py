"""
Document Models

Typed Document / Slide / Layer tree matching the deck wire format:

    {"title": str, "description": str, "slides": [
        {"id": str, "title": str, "background": str, "layers": [
            {"id": str, "type": "text" | "image",
             "x": 0-100, "y": 0-100, "width": 0-100, "height": 0-100,
             "zIndex": int, "content"/"textColor"/"fontSize" | "src"/"alt"}
        ]}
    ]}

Field names are snake_case in Python and camelCase on the wire. Strategies
and pipeline stages change documents only through the mutation methods
below, which keep geometry in range and slide ids unique.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from src.core.errors import ContractViolationError, InvalidGeometryError

DEFAULT_BACKGROUND = "#ffffff"
DEFAULT_ASPECT_RATIO = "16:9"

GEOMETRY_FIELDS = ("x", "y", "width", "height")
GEOMETRY_DEFAULTS = {"x": 10.0, "y": 10.0, "width": 80.0, "height": 20.0}


class LayerType(str, Enum):
    TEXT = "text"
    IMAGE = "image"


class WireModel(BaseModel):
    """Base for wire-format models: camelCase aliases, validated assignment."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        extra="allow",
    )

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the camelCase wire dict, omitting unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_wire(), ensure_ascii=False, indent=indent)


class Layer(WireModel):
    """A positioned text or image element. Geometry is in percent of the slide."""
    id: str
    type: LayerType = LayerType.TEXT
    x: float = Field(GEOMETRY_DEFAULTS["x"], ge=0, le=100)
    y: float = Field(GEOMETRY_DEFAULTS["y"], ge=0, le=100)
    width: float = Field(GEOMETRY_DEFAULTS["width"], ge=0, le=100)
    height: float = Field(GEOMETRY_DEFAULTS["height"], ge=0, le=100)
    z_index: int = 1
    rotation: float = 0
    opacity: float = Field(1.0, ge=0, le=1)

    # Text layers
    content: Optional[str] = None
    text_color: Optional[str] = None
    font_size: Optional[int] = None
    text_align: Optional[str] = None
    font_weight: Optional[str] = None

    # Image layers; src stays empty until the downstream image fetch
    src: Optional[str] = None
    alt: Optional[str] = None
    prompt: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def fill_type_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        layer_type = data.get("type", LayerType.TEXT)
        if layer_type in (LayerType.IMAGE, "image"):
            if data.get("src") is None:
                data = {**data, "src": ""}
        elif data.get("content") is None:
            data = {**data, "content": ""}
        return data

    @property
    def is_text(self) -> bool:
        return self.type == LayerType.TEXT

    @property
    def area(self) -> float:
        return self.width * self.height

    def set_geometry(
        self,
        x: Optional[float] = None,
        y: Optional[float] = None,
        width: Optional[float] = None,
        height: Optional[float] = None
    ) -> None:
        """
        Move or resize the layer.

        Raises:
            InvalidGeometryError: If any value falls outside 0-100
        """
        updates = {"x": x, "y": y, "width": width, "height": height}
        for name, value in updates.items():
            if value is None:
                continue
            if not isinstance(value, (int, float)) or not 0 <= value <= 100:
                raise InvalidGeometryError(
                    f"Layer {self.id}: {name}={value!r} is outside the 0-100 range"
                )
        for name, value in updates.items():
            if value is not None:
                setattr(self, name, float(value))

    def set_text_color(self, color: str) -> None:
        self._require_text("text color")
        self.text_color = color

    def set_font_size(self, size: int) -> None:
        self._require_text("font size")
        if size <= 0:
            raise ContractViolationError(f"Layer {self.id}: font size must be positive, got {size}")
        self.font_size = int(size)

    def set_content(self, content: str) -> None:
        self._require_text("content")
        self.content = content

    def _require_text(self, what: str) -> None:
        if not self.is_text:
            raise ContractViolationError(f"Layer {self.id}: cannot set {what} on an image layer")


class Slide(WireModel):
    id: str
    title: str = ""
    layers: List[Layer] = Field(default_factory=list)
    background: str = DEFAULT_BACKGROUND
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    notes: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def text_layers(self) -> List[Layer]:
        return [layer for layer in self.layers if layer.is_text]

    def plain_text(self) -> str:
        """Concatenated content of the text layers, in layer order."""
        return "\n".join(layer.content for layer in self.text_layers if layer.content)

    def set_background(self, color: str) -> None:
        self.background = color

    def set_notes(self, notes: str) -> None:
        self.notes = notes

    def attach_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = value

    def add_layer(self, layer: Layer) -> Layer:
        """Append a layer, stacking it above existing ones."""
        if any(existing is layer for existing in self.layers):
            raise ContractViolationError(f"Layer {layer.id} is already on slide {self.id}")
        if any(existing.id == layer.id for existing in self.layers):
            raise ContractViolationError(f"Slide {self.id} already has a layer with id {layer.id}")
        self.layers.append(layer)
        return layer

    def next_z_index(self) -> int:
        return max((layer.z_index for layer in self.layers), default=0) + 1


class Document(WireModel):
    title: str = ""
    description: str = ""
    slides: List[Slide] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def ids_unique(self) -> "Document":
        self.check_integrity()
        return self

    def check_integrity(self) -> None:
        """
        Raises:
            ContractViolationError: If slide ids repeat or a layer object is
                shared between slides
        """
        seen_ids = set()
        seen_layers = set()
        for slide in self.slides:
            if slide.id in seen_ids:
                raise ContractViolationError(f"Duplicate slide id: {slide.id}")
            seen_ids.add(slide.id)
            for layer in slide.layers:
                if id(layer) in seen_layers:
                    raise ContractViolationError(
                        f"Layer {layer.id} on slide {slide.id} is shared with another slide"
                    )
                seen_layers.add(id(layer))

    def set_title(self, title: str) -> None:
        self.title = title

    def attach_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = value

    def prepend_slide(self, slide: Slide) -> None:
        self.slides.insert(0, slide)

    def renumber_slides(self) -> None:
        """Rewrite ids from position: slide-1..n, layers {slide_id}-layer-1..k."""
        for i, slide in enumerate(self.slides, start=1):
            slide.id = f"slide-{i}"
            for k, layer in enumerate(slide.layers, start=1):
                layer.id = f"{slide.id}-layer-{k}"
        self.check_integrity()
