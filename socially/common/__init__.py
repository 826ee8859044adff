"""
Common utilities shared across Socially modules.
"""

from .debug_log import DebugLogSink
from .errors import (
    FatalError,
    GenerationCancelled,
    GenerationError,
    MissingCredentialsError,
    RateLimited,
    RegenerationFailed,
    SociallyError,
    StoryParseError,
    TransientError,
)
from .llm import ChatResult, CompletionCallable, call_chat_completion
from .run_ids import new_run_id

__all__ = [
    "ChatResult",
    "CompletionCallable",
    "call_chat_completion",
    "DebugLogSink",
    "new_run_id",
    "SociallyError",
    "GenerationError",
    "RateLimited",
    "TransientError",
    "FatalError",
    "MissingCredentialsError",
    "StoryParseError",
    "GenerationCancelled",
    "RegenerationFailed",
]
