"""
WebSocket Message Protocol Models

Client -> server: `generate` (with a request) and `cancel`.
Server -> client: `status` per pipeline stage, then exactly one of
`result`, `error` or `cancelled` per run.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, Field, ConfigDict, field_serializer
from enum import Enum

from src.models.generation import GenerationRequest


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """
    Format datetime to ISO 8601 with 'Z' suffix for UTC.

    Frontend JavaScript requires 'Z' suffix to correctly parse as UTC.
    """
    if dt.tzinfo is None:
        return dt.isoformat() + 'Z'
    return dt.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


class MessageType(str, Enum):
    """Server message types"""
    STATUS = "status"
    RESULT = "result"
    ERROR = "error"
    CANCELLED = "cancelled"


class ClientMessageType(str, Enum):
    """Client message types"""
    GENERATE = "generate"
    CANCEL = "cancel"
    PING = "ping"


class StatusLevel(str, Enum):
    """Status levels for progress indicators"""
    IDLE = "idle"
    THINKING = "thinking"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


STAGE_STATUS = {
    "classification": (StatusLevel.THINKING, "Analyzing your topic..."),
    "selection": (StatusLevel.THINKING, "Choosing a presentation style..."),
    "generation": (StatusLevel.GENERATING, "Writing slides..."),
    "recovery": (StatusLevel.GENERATING, "Reading the generated deck..."),
    "post_processing": (StatusLevel.GENERATING, "Styling slides..."),
    "enhancement": (StatusLevel.GENERATING, "Preparing image instructions..."),
    "assembly": (StatusLevel.GENERATING, "Assembling the final deck..."),
}


class StatusPayload(BaseModel):
    """Payload for pipeline progress updates"""
    status: StatusLevel = Field(..., description="Current status level")
    stage: str = Field(..., description="Pipeline stage that just started")
    text: str = Field(..., description="Status message text")
    detail: Dict[str, Any] = Field(default_factory=dict, description="Stage-specific detail")


class ResultPayload(BaseModel):
    """Payload for a completed run"""
    document: Dict[str, Any] = Field(..., description="Finished document in wire form")
    record: Dict[str, Any] = Field(..., description="PipelineRecord of the run")


class ErrorPayload(BaseModel):
    """Payload for a failed run or a rejected client message"""
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    record: Optional[Dict[str, Any]] = Field(None, description="PipelineRecord, when a run had started")


class CancelledPayload(BaseModel):
    """Payload acknowledging a cancelled run"""
    request_id: Optional[str] = Field(None, description="Request id of the cancelled run")
    record: Optional[Dict[str, Any]] = Field(None, description="PipelineRecord of the cancelled run")


class BaseMessage(BaseModel):
    """Base envelope for all server messages"""
    model_config = ConfigDict(use_enum_values=True)

    message_id: str = Field(default_factory=lambda: f"msg_{uuid.uuid4().hex[:8]}")
    timestamp: datetime = Field(default_factory=utc_now, description="Message timestamp (UTC)")
    type: MessageType = Field(..., description="Message type discriminator")

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)


class StatusUpdate(BaseMessage):
    type: Literal[MessageType.STATUS] = MessageType.STATUS
    payload: StatusPayload


class ResultMessage(BaseMessage):
    type: Literal[MessageType.RESULT] = MessageType.RESULT
    payload: ResultPayload


class ErrorMessage(BaseMessage):
    type: Literal[MessageType.ERROR] = MessageType.ERROR
    payload: ErrorPayload


class CancelledMessage(BaseMessage):
    type: Literal[MessageType.CANCELLED] = MessageType.CANCELLED
    payload: CancelledPayload


ServerMessage = Union[StatusUpdate, ResultMessage, ErrorMessage, CancelledMessage]


class GenerateCommand(BaseModel):
    """`{"type": "generate", "request": {...}}`"""
    type: Literal["generate"] = "generate"
    request: GenerationRequest


def create_status_update(stage: str, detail: Optional[Dict[str, Any]] = None) -> StatusUpdate:
    """Helper function to create a status update for a pipeline stage"""
    status, text = STAGE_STATUS.get(stage, (StatusLevel.GENERATING, f"{stage}..."))
    return StatusUpdate(
        payload=StatusPayload(status=status, stage=stage, text=text, detail=detail or {})
    )


def create_result(document: Dict[str, Any], record: Dict[str, Any]) -> ResultMessage:
    return ResultMessage(payload=ResultPayload(document=document, record=record))


def create_error(code: str, message: str, record: Optional[Dict[str, Any]] = None) -> ErrorMessage:
    return ErrorMessage(payload=ErrorPayload(code=code, message=message, record=record))


def create_cancelled(
    request_id: Optional[str] = None,
    record: Optional[Dict[str, Any]] = None
) -> CancelledMessage:
    return CancelledMessage(payload=CancelledPayload(request_id=request_id, record=record))
