"""
Analyze Service
Finds recurring patterns and knowledge gaps in canonical tickets

Components:
- prompts.py: prompt templates and the one-line-per-ticket rendering
- completion.py: CompletionClient for Ollama / OpenAI / Anthropic
- detector.py: BasicPatternDetector (deterministic, AI-free)
- parser.py: ResponseParser for free-text completions
- analyzer.py: TicketAnalyzer with AI fallback
"""

from .analyzer import TicketAnalyzer, basic_summary
from .completion import CompletionClient, create_completion_client
from .detector import BasicPatternDetector, description_signature
from .parser import ResponseParser

__all__ = [
    "TicketAnalyzer",
    "basic_summary",
    "CompletionClient",
    "create_completion_client",
    "BasicPatternDetector",
    "description_signature",
    "ResponseParser",
]
