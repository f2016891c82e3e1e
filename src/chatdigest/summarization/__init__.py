"""Report summarization with overload-tolerant Gemini calls."""

from .prompt import Conversation, build_report_prompt, format_conversation, format_conversations
from .resilient import RetryState, is_transient_overload, summarize_with_retry
from .summarizer import LLMProtocol, Summarizer

__all__ = [
    "Conversation",
    "build_report_prompt",
    "format_conversation",
    "format_conversations",
    "RetryState",
    "is_transient_overload",
    "summarize_with_retry",
    "LLMProtocol",
    "Summarizer",
]
