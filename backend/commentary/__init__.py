"""
Qualitative Commentary Layer

GPT-4o powered prose for a finished simulation run:
- Executive analysis
- Strategic suggestions
- Risk assessment

Numbers are never produced here; the layer only reads the numeric summary
the statement engine already computed.
"""

from .llm_client import CommentaryLLMClient, CommentaryConfig, CommentaryError, LLMResponse
from .commentary_generator import CommentaryGenerator, CommentaryInput, CommentaryOutput

__all__ = [
    'CommentaryLLMClient',
    'CommentaryConfig',
    'CommentaryError',
    'LLMResponse',
    'CommentaryGenerator',
    'CommentaryInput',
    'CommentaryOutput',
]
