from kadre.llm.client import (
    LLMClient,
    LLMUnavailable,
    ModelTurn,
    ToolCall,
    ToolResult,
    ToolResults,
    UserMessage,
)

__all__ = [
    "LLMClient",
    "LLMUnavailable",
    "ModelTurn",
    "ToolCall",
    "ToolResult",
    "ToolResults",
    "UserMessage",
]
