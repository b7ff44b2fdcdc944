"""AI assistant package."""

from finance_tracker.agents.ai_agents import (
    AssistantError,
    ChatMessage,
    Completion,
    CompletionOptions,
    GenerativeAIService,
    GroundingSource,
    ReceiptExtraction,
    extract_json_object,
    extract_sources,
    strip_code_fences,
)

__all__ = [
    "AssistantError",
    "ChatMessage",
    "Completion",
    "CompletionOptions",
    "GenerativeAIService",
    "GroundingSource",
    "ReceiptExtraction",
    "extract_json_object",
    "extract_sources",
    "strip_code_fences",
]
