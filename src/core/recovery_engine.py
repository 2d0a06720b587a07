"""
RecoveryEngine - raw generator output to a valid Document.

recover() never raises. It walks four levels, ordered from most to least
information preserved, and stops at the first that yields a Document:

1. Direct parse: the cleaned text is a JSON object with a "slides" array.
2. Structural repair: one left-to-right scan tracks the open object/array
   stack and whether the position is inside a string. Everything after the
   last complete value is dropped, then the owed closing delimiters are
   appended. Truncated input needs at least one slide with a title or
   layers to count; a cut-off last slide with neither is dropped. Input
   whose root object did close (trailing chatter, trailing commas, raw
   newlines) is accepted on the same terms as a direct parse.
3. Minimal reconstruction: a title is probed out of the raw text and a
   one-slide Document is built around it.
4. Emergency: a fixed one-slide Document that never looks at the input.

Each level does bounded work (one linear scan, one parse, a few regex
probes) and no level recurses on the input. Every level transition is
logged and written to the PipelineRecord when one is given.
"""

import copy
import json
import math
import re
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from src.core.errors import ContractViolationError
from src.models.document import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_BACKGROUND,
    GEOMETRY_DEFAULTS,
    GEOMETRY_FIELDS,
    Document,
    Layer,
    LayerType,
    Slide,
)
from src.models.pipeline_record import PipelineRecord, RecoveryLevel
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

GENERIC_TITLE = "Generated Presentation"
MAX_TITLE_LENGTH = 120

EMERGENCY_DOCUMENT: Dict[str, Any] = {
    "title": "Presentation",
    "description": "The generated content could not be recovered.",
    "slides": [
        {
            "id": "slide-1",
            "title": "Content unavailable",
            "background": DEFAULT_BACKGROUND,
            "aspectRatio": DEFAULT_ASPECT_RATIO,
            "layers": [
                {
                    "id": "slide-1-layer-1",
                    "type": "text",
                    "content": (
                        "The generated content could not be recovered. "
                        "Please try generating the presentation again."
                    ),
                    "x": 10,
                    "y": 35,
                    "width": 80,
                    "height": 30,
                    "zIndex": 1,
                    "fontSize": 32,
                    "textAlign": "center",
                    "textColor": "#1E293B",
                }
            ],
        }
    ],
}

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_FENCED = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?(.*?)\n?```$", re.S)
_OPENING_FENCE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")

# Tried in order against the raw text; the first non-empty capture wins
_TITLE_PROBES = (
    re.compile(r'"title"\s*:\s*"((?:[^"\\]|\\.)*)"'),
    re.compile(r"\"title\"\s*:\s*'([^']*)'"),
    re.compile(r"title:\s*[\"']([^\"']*)", re.I),
    re.compile(r"^\s{0,3}#{1,3}\s+(.+?)\s*#*\s*$", re.M),
)

_OPENERS = {"{": "}", "[": "]"}
_CLOSERS = {"}": "{", "]": "["}

_LAYER_KEYS = {
    "id", "type", "x", "y", "width", "height", "zIndex", "z_index", "rotation", "opacity",
    "content", "textColor", "text_color", "fontSize", "font_size", "textAlign", "text_align",
    "fontWeight", "font_weight", "src", "alt", "prompt",
}
_SLIDE_KEYS = {
    "id", "title", "layers", "background", "aspectRatio", "aspect_ratio", "notes", "metadata",
}
_DOCUMENT_KEYS = {"title", "description", "slides", "metadata"}


class RecoveryOutcome(NamedTuple):
    document: Document
    level: RecoveryLevel
    actions: List[str]


class LevelFailed(Exception):
    """A recovery level could not produce a Document; try the next one."""


def pre_clean(raw: Optional[str]) -> str:
    """Strip BOM, control characters and Markdown code fences."""
    text = (raw or "").replace("\ufeff", "")
    text = _CONTROL_CHARS.sub("", text).strip()

    fenced = _FENCED.match(text)
    if fenced:
        return fenced.group(1).strip()
    if text.startswith("```"):
        # Opening fence without a closing one: output was cut off
        return _OPENING_FENCE.sub("", text, count=1).strip()
    return text


class Repair(NamedTuple):
    text: str
    truncated: bool


def repair_structure(text: str) -> Optional[Repair]:
    """
    Cut truncated JSON back to its last complete value and close it.

    Scans once from the first "{", keeping the open object/array stack and
    whether the position is inside a string. A safe cut point is recorded
    after every complete value (and right after every opener), so a dangling
    key, a `key:` without a value or a partial string or number never
    survives the cut. Inside strings, raw line breaks are escaped; outside,
    a trailing comma before a closer is dropped. A closer that does not
    match the open stack ends the scan, as does the root object closing.

    Args:
        text: Pre-cleaned raw output

    Returns:
        Repair with the candidate text and whether anything was cut off,
        or None if there is no object to repair
    """
    start = text.find("{")
    if start < 0:
        return None

    out: List[str] = []
    stack: List[str] = []
    # Per open frame: True between an object's ":" and the end of its value
    awaiting_value: List[bool] = []
    in_string = False
    string_is_key = False
    escaped = False
    in_scalar = False
    safe: Tuple[int, Tuple[str, ...]] = (0, ())

    def value_done() -> None:
        nonlocal safe
        if stack and (stack[-1] == "[" or awaiting_value[-1]):
            safe = (len(out), tuple(stack))
            awaiting_value[-1] = False

    for ch in text[start:]:
        if in_string:
            if escaped:
                escaped = False
                out.append(ch)
            elif ch == "\\":
                escaped = True
                out.append(ch)
            elif ch == '"':
                in_string = False
                out.append(ch)
                if not string_is_key:
                    value_done()
            elif ch == "\n":
                out.append("\\n")
            elif ch == "\r":
                out.append("\\r")
            elif ch == "\t":
                out.append("\\t")
            else:
                out.append(ch)
            continue

        if in_scalar and (ch.isspace() or ch == "," or ch in _CLOSERS):
            in_scalar = False
            value_done()

        if ch == '"':
            in_string = True
            string_is_key = bool(stack) and stack[-1] == "{" and not awaiting_value[-1]
            out.append(ch)
        elif ch in _OPENERS:
            stack.append(ch)
            awaiting_value.append(False)
            out.append(ch)
            safe = (len(out), tuple(stack))
        elif ch in _CLOSERS:
            if not stack or stack[-1] != _CLOSERS[ch]:
                break
            _drop_trailing_comma(out)
            stack.pop()
            awaiting_value.pop()
            out.append(ch)
            if not stack:
                return Repair("".join(out), truncated=False)
            value_done()
        elif ch == ":":
            if stack and stack[-1] == "{":
                awaiting_value[-1] = True
            out.append(ch)
        elif ch == "," or ch.isspace():
            out.append(ch)
        else:
            in_scalar = True
            out.append(ch)

    end, owed = safe
    body = out[:end]
    _drop_trailing_comma(body)
    return Repair(
        "".join(body) + "".join(_OPENERS[opener] for opener in reversed(owed)),
        truncated=True,
    )


def _drop_trailing_comma(out: List[str]) -> None:
    i = len(out) - 1
    while i >= 0 and out[i].isspace():
        i -= 1
    if i >= 0 and out[i] == ",":
        del out[i]


def _is_cut_off_slide(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    layers = data.get("layers")
    return not _as_str(data.get("title")).strip() and not (isinstance(layers, list) and layers)


def extract_title(raw: str) -> str:
    """
    Best-effort human-readable title from corrupted output.

    Raises:
        ValueError: If there is no text at all to reconstruct from
    """
    if not raw or not raw.strip():
        raise ValueError("no text to reconstruct a title from")

    for probe in _TITLE_PROBES:
        match = probe.search(raw)
        if not match:
            continue
        title = _unescape(match.group(1)).strip()
        if title:
            return title[:MAX_TITLE_LENGTH]
    return GENERIC_TITLE


def _unescape(value: str) -> str:
    try:
        decoded = json.loads(f'"{value}"')
    except ValueError:
        return value
    return decoded if isinstance(decoded, str) else value


# Coercion of parsed JSON into the typed model

def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _unique(candidate: str, seen: set) -> str:
    unique_id = candidate
    n = 2
    while unique_id in seen:
        unique_id = f"{candidate}-{n}"
        n += 1
    seen.add(unique_id)
    return unique_id


def _extras(data: Dict[str, Any], known: set) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key not in known}


def _coerce_layer(data: Any, index: int, seen_ids: set, actions: List[str]) -> Optional[Layer]:
    if not isinstance(data, dict):
        actions.append(f"dropped non-object layer at index {index}")
        return None

    layer_type = data.get("type")
    if layer_type is None:
        layer_type = "image" if "src" in data else "text"
    if layer_type not in ("text", "image"):
        actions.append(f"dropped layer with unsupported type {layer_type!r}")
        return None

    fields: Dict[str, Any] = _extras(data, _LAYER_KEYS)
    fields["id"] = _unique(_as_str(data.get("id")) or f"layer-{index + 1}", seen_ids)
    fields["type"] = layer_type

    for name in GEOMETRY_FIELDS:
        number = _as_number(data.get(name))
        fields[name] = GEOMETRY_DEFAULTS[name] if number is None else _clamp(number, 0, 100)

    z_index = _as_number(data.get("zIndex", data.get("z_index")))
    fields["zIndex"] = int(z_index) if z_index is not None else index + 1
    rotation = _as_number(data.get("rotation"))
    fields["rotation"] = rotation if rotation is not None else 0
    opacity = _as_number(data.get("opacity"))
    fields["opacity"] = _clamp(opacity, 0, 1) if opacity is not None else 1

    if layer_type == "text":
        fields["content"] = _as_str(data.get("content"))
        font_size = _as_number(data.get("fontSize", data.get("font_size")))
        if font_size is not None and font_size > 0:
            fields["fontSize"] = max(1, int(round(font_size)))
        for key, snake in (("textColor", "text_color"), ("textAlign", "text_align"), ("fontWeight", "font_weight")):
            value = data.get(key, data.get(snake))
            if value is not None:
                fields[key] = _as_str(value)
    else:
        fields["src"] = _as_str(data.get("src"))

    for key in ("alt", "prompt"):
        if data.get(key) is not None:
            fields[key] = _as_str(data.get(key))

    return Layer.model_validate(fields)


def _coerce_slide(data: Any, index: int, seen_ids: set, actions: List[str]) -> Optional[Slide]:
    if not isinstance(data, dict):
        actions.append(f"dropped non-object slide at index {index}")
        return None

    raw_layers = data.get("layers")
    if raw_layers is None:
        raw_layers = []
    elif not isinstance(raw_layers, list):
        actions.append(f"slide {index + 1}: replaced non-array layers")
        raw_layers = []

    layer_ids: set = set()
    layers = [
        layer
        for k, raw_layer in enumerate(raw_layers)
        for layer in [_coerce_layer(raw_layer, k, layer_ids, actions)]
        if layer is not None
    ]

    fields: Dict[str, Any] = _extras(data, _SLIDE_KEYS)
    fields.update({
        "id": _unique(_as_str(data.get("id")) or f"slide-{index + 1}", seen_ids),
        "title": _as_str(data.get("title")),
        "layers": layers,
        "background": _as_str(data.get("background"), DEFAULT_BACKGROUND) or DEFAULT_BACKGROUND,
        "aspectRatio": _as_str(data.get("aspectRatio", data.get("aspect_ratio")), DEFAULT_ASPECT_RATIO)
        or DEFAULT_ASPECT_RATIO,
    })
    notes = data.get("notes")
    if notes is not None:
        fields["notes"] = _as_str(notes)
    metadata = data.get("metadata")
    fields["metadata"] = dict(metadata) if isinstance(metadata, dict) else {}
    return Slide.model_validate(fields)


def coerce_document(data: Any, actions: Optional[List[str]] = None) -> Document:
    """
    Build a Document from parsed JSON, filling defaults.

    Missing geometry gets defaults, out-of-range geometry is clamped, layers
    of unknown type are dropped and repeated ids get a numeric suffix.

    Raises:
        LevelFailed: If data is not an object with a "slides" array
    """
    actions = actions if actions is not None else []
    if not isinstance(data, dict):
        raise LevelFailed(f"top-level value is {type(data).__name__}, not an object")
    raw_slides = data.get("slides")
    if not isinstance(raw_slides, list):
        raise LevelFailed('no "slides" array')

    slide_ids: set = set()
    slides = [
        slide
        for i, raw_slide in enumerate(raw_slides)
        for slide in [_coerce_slide(raw_slide, i, slide_ids, actions)]
        if slide is not None
    ]

    fields: Dict[str, Any] = _extras(data, _DOCUMENT_KEYS)
    metadata = data.get("metadata")
    fields.update({
        "title": _as_str(data.get("title")),
        "description": _as_str(data.get("description")),
        "slides": slides,
        "metadata": dict(metadata) if isinstance(metadata, dict) else {},
    })
    return Document.model_validate(fields)


def build_minimal_document(title: str) -> Document:
    slide = Slide(
        id="slide-1",
        title=title,
        layers=[
            Layer(
                id="slide-1-layer-1",
                type=LayerType.TEXT,
                content=title,
                x=10, y=35, width=80, height=30,
                z_index=1,
                font_size=48,
                text_align="center",
            )
        ],
    )
    return Document(title=title, slides=[slide])


def build_emergency_document() -> Document:
    return Document.model_validate(copy.deepcopy(EMERGENCY_DOCUMENT))


class RecoveryEngine:
    """Four-level recovery of malformed generator output."""

    def recover(self, raw: Optional[str], record: Optional[PipelineRecord] = None) -> Document:
        return self.recover_with_outcome(raw, record).document

    def recover_with_outcome(
        self,
        raw: Optional[str],
        record: Optional[PipelineRecord] = None
    ) -> RecoveryOutcome:
        """
        Recover a Document, reporting the level used and the actions taken.

        Args:
            raw: Raw generator output (any text, possibly empty)
            record: PipelineRecord receiving level transitions

        Returns:
            RecoveryOutcome; never raises for any input text
        """
        raw = raw if isinstance(raw, str) else ""
        actions: List[str] = []
        cleaned = pre_clean(raw)
        if cleaned != raw.strip():
            actions.append("pre-cleaned input (BOM, control characters or code fences)")

        levels = (
            (RecoveryLevel.DIRECT_PARSE, lambda: self._direct_parse(cleaned, actions)),
            (RecoveryLevel.STRUCTURAL_REPAIR, lambda: self._structural_repair(cleaned, actions)),
            (RecoveryLevel.MINIMAL_RECONSTRUCTION, lambda: self._minimal_reconstruction(raw, actions)),
        )

        for level, attempt in levels:
            try:
                document = attempt()
            except (LevelFailed, ValueError, TypeError, RecursionError, ContractViolationError) as e:
                self._transition(level, e, actions, record)
                continue
            except Exception as e:
                # Any failure while reconstructing from the raw text falls to the emergency document
                logger.exception(f"Unexpected error at recovery level {int(level)}: {e}")
                self._transition(level, e, actions, record)
                continue
            return self._finish(document, level, actions, record)

        return self._finish(build_emergency_document(), RecoveryLevel.EMERGENCY, actions, record)

    def _direct_parse(self, text: str, actions: List[str]) -> Document:
        if not text:
            raise LevelFailed("empty input")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise LevelFailed(f"not valid JSON: {e.msg} at offset {e.pos}") from e
        return coerce_document(data, actions)

    def _structural_repair(self, text: str, actions: List[str]) -> Document:
        repair = repair_structure(text)
        if repair is None:
            raise LevelFailed("no JSON object found")
        try:
            data = json.loads(repair.text)
        except json.JSONDecodeError as e:
            raise LevelFailed(f"repaired text still invalid: {e.msg} at offset {e.pos}") from e

        repair_actions: List[str] = []
        if repair.truncated:
            slides = data.get("slides") if isinstance(data, dict) else None
            if isinstance(slides, list) and slides and _is_cut_off_slide(slides[-1]):
                data["slides"] = slides[:-1]
                repair_actions.append("dropped cut-off last slide with no title or layers")

        document = coerce_document(data, repair_actions)
        # A complete root object only needed cleanup and is held to the level 1 rule
        if repair.truncated and not document.slides:
            raise LevelFailed("repaired document has no slides")

        actions.append(
            f"structural repair: {len(text)} characters in, {len(repair.text)} out, "
            f"{len(document.slides)} slides kept"
            + (", truncated input" if repair.truncated else "")
        )
        actions.extend(repair_actions)
        return document

    def _minimal_reconstruction(self, raw: str, actions: List[str]) -> Document:
        title = extract_title(pre_clean(raw))
        actions.append(f"rebuilt a one-slide document titled {title!r}")
        return build_minimal_document(title)

    def _transition(
        self,
        level: RecoveryLevel,
        error: BaseException,
        actions: List[str],
        record: Optional[PipelineRecord]
    ) -> None:
        reason = str(error) or type(error).__name__
        actions.append(f"level {int(level)} failed: {reason}")
        logger.warning(
            f"Recovery level {int(level)} ({level.name.lower()}) failed: {reason}",
            next_level=int(level) + 1,
        )
        if record is not None:
            record.append("recovery", "level_failed", level=int(level), reason=reason)

    def _finish(
        self,
        document: Document,
        level: RecoveryLevel,
        actions: List[str],
        record: Optional[PipelineRecord]
    ) -> RecoveryOutcome:
        if level > RecoveryLevel.DIRECT_PARSE:
            logger.warning(
                f"Recovered document at level {int(level)} ({level.name.lower()})",
                slides=len(document.slides),
            )
        else:
            logger.info(f"Parsed document directly ({len(document.slides)} slides)")

        if record is not None:
            if actions:
                record.append("recovery", "actions", actions=list(actions))
            record.set_recovery_level(level)
        return RecoveryOutcome(document, level, actions)
