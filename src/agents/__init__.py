"""
Agents Package for the deck generation pipeline.

Contains the per-request pipeline orchestration.
"""

from .generation_pipeline import GenerationPipeline, PipelineContext, PipelineResult

__all__ = [
    'GenerationPipeline',
    'PipelineContext',
    'PipelineResult'
]
