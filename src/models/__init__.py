"""
Models Package for the deck generation pipeline.

Contains all Pydantic models for requests, documents, audit records and
WebSocket messages.
"""

from .generation import (
    ContentCategory,
    ImageConsistency,
    ClassificationSource,
    CategoryProfile,
    CATEGORY_PROFILES,
    profile_for,
    GenerationRequest,
    ClassificationResult
)

from .document import (
    LayerType,
    Layer,
    Slide,
    Document
)

from .pipeline_record import (
    RecoveryLevel,
    SelectionSource,
    RunOutcome,
    RecordEntry,
    PipelineRecord
)

__all__ = [
    # Request / classification
    'ContentCategory',
    'ImageConsistency',
    'ClassificationSource',
    'CategoryProfile',
    'CATEGORY_PROFILES',
    'profile_for',
    'GenerationRequest',
    'ClassificationResult',

    # Document tree
    'LayerType',
    'Layer',
    'Slide',
    'Document',

    # Audit trail
    'RecoveryLevel',
    'SelectionSource',
    'RunOutcome',
    'RecordEntry',
    'PipelineRecord',
]
