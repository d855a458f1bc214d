"""
AI Fallback Module.

Language-model extraction used when heuristic confidence is too low:
    - AIFallbackExtractor: OpenAI chat-completion client wrapper
    - ResponseParser: tagged parsing of the model's JSON reply
"""

from .ai_extractor import AIFallbackExtractor
from .response_parser import ResponseParser, ParsedFields, MalformedResponse, ParseResult

__all__ = [
    'AIFallbackExtractor',
    'ResponseParser',
    'ParsedFields',
    'MalformedResponse',
    'ParseResult',
]
