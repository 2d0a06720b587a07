"""
PipelineRecord - per-request audit trail.

Strategy, classification, recovery level and outcome are write-once; a second
write is a programmer error. Entries are append-only and exposed as a tuple so
callers cannot edit history.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, PrivateAttr

from src.core.errors import RecordAlreadyWrittenError
from src.models.generation import ClassificationResult


class RecoveryLevel(IntEnum):
    """Recovery levels, ordered from most to least information preserved."""
    DIRECT_PARSE = 1
    STRUCTURAL_REPAIR = 2
    MINIMAL_RECONSTRUCTION = 3
    EMERGENCY = 4


class SelectionSource(str, Enum):
    """Which rule of the selector picked the strategy."""
    EXPLICIT = "explicit"
    CATEGORY_MAP = "category_map"
    DEFAULT = "default"


class RunOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordEntry(BaseModel):
    """One step in the audit trail."""
    stage: str
    action: str
    detail: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)


class PipelineRecord(BaseModel):
    """Audit trail owned by one pipeline run."""
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = Field(default_factory=_utcnow)

    _strategy_id: Optional[str] = PrivateAttr(default=None)
    _selection_source: Optional[SelectionSource] = PrivateAttr(default=None)
    _classification: Optional[ClassificationResult] = PrivateAttr(default=None)
    _recovery_level: Optional[RecoveryLevel] = PrivateAttr(default=None)
    _outcome: Optional[RunOutcome] = PrivateAttr(default=None)
    _finished_at: Optional[datetime] = PrivateAttr(default=None)
    _entries: List[RecordEntry] = PrivateAttr(default_factory=list)

    # Write-once fields

    @property
    def strategy_id(self) -> Optional[str]:
        return self._strategy_id

    @property
    def selection_source(self) -> Optional[SelectionSource]:
        return self._selection_source

    @property
    def classification(self) -> Optional[ClassificationResult]:
        return self._classification

    @property
    def recovery_level(self) -> Optional[RecoveryLevel]:
        return self._recovery_level

    @property
    def outcome(self) -> Optional[RunOutcome]:
        return self._outcome

    @property
    def entries(self) -> Tuple[RecordEntry, ...]:
        return tuple(self._entries)

    def set_strategy(self, strategy_id: str, source: SelectionSource) -> None:
        if self._strategy_id is not None:
            raise RecordAlreadyWrittenError("strategy_id")
        self._strategy_id = strategy_id
        self._selection_source = source
        self.append("selection", "strategy_selected", strategy_id=strategy_id, source=source.value)

    def set_classification(self, result: ClassificationResult) -> None:
        if self._classification is not None:
            raise RecordAlreadyWrittenError("classification")
        self._classification = result
        self.append(
            "classification",
            "classified",
            category=result.category.value,
            confidence=result.confidence,
            source=result.source.value,
        )

    def set_recovery_level(self, level: RecoveryLevel) -> None:
        if self._recovery_level is not None:
            raise RecordAlreadyWrittenError("recovery_level")
        self._recovery_level = RecoveryLevel(level)
        self.append("recovery", "recovered", level=int(level))

    def finish(self, outcome: RunOutcome, **detail: Any) -> None:
        if self._outcome is not None:
            raise RecordAlreadyWrittenError("outcome")
        self._outcome = outcome
        self._finished_at = _utcnow()
        self.append("pipeline", outcome.value, **detail)

    # Append-only trail

    def append(self, stage: str, action: str, **detail: Any) -> RecordEntry:
        entry = RecordEntry(stage=stage, action=action, detail=detail)
        self._entries.append(entry)
        return entry

    def entries_for(self, stage: str) -> List[RecordEntry]:
        return [entry for entry in self._entries if entry.stage == stage]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready summary for API responses and logs."""
        return {
            "requestId": self.request_id,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self._finished_at.isoformat() if self._finished_at else None,
            "outcome": self._outcome.value if self._outcome else None,
            "strategyId": self._strategy_id,
            "selectionSource": self._selection_source.value if self._selection_source else None,
            "classification": (
                self._classification.model_dump(mode="json") if self._classification else None
            ),
            "recoveryLevel": int(self._recovery_level) if self._recovery_level else None,
            "entries": [entry.model_dump(mode="json") for entry in self._entries],
        }
