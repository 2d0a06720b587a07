"""
Clients Package for the deck generation pipeline.

Contains the text-generation client used by the Classifier and Generator.
"""

from .text_generation_client import TextGenerationClient, VertexTextGenerationClient

__all__ = [
    'TextGenerationClient',
    'VertexTextGenerationClient'
]
