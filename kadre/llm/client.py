import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from openai import OpenAI

from kadre.config import Settings

logger = logging.getLogger("llm.client")

TIERS = ("fast", "reasoning")


class LLMUnavailable(RuntimeError):
    """Raised when no LLM backend is configured."""


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    call_id: str
    content: str


@dataclass(frozen=True)
class UserMessage:
    content: str


@dataclass(frozen=True)
class ModelTurn:
    text: str = ""
    tool_calls: Tuple[ToolCall, ...] = ()
    stop_reason: str = "end_turn"  # end_turn, tool_use, max_tokens


@dataclass(frozen=True)
class ToolResults:
    results: Tuple[ToolResult, ...]


HistoryEntry = Union[UserMessage, ModelTurn, ToolResults]


class LLMClient:
    """Two-tier wrapper around the OpenAI Responses API.

    Built once per process and handed to every component that needs a model;
    the sync SDK client runs in a worker thread so callers stay async.
    """

    def __init__(self, *, api_key: Optional[str], models: Dict[str, str]) -> None:
        self.models = models
        self._openai_client = OpenAI(api_key=api_key) if api_key else None

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(
            api_key=settings.openai_api_key,
            models={"fast": settings.fast_model, "reasoning": settings.reasoning_model},
        )

    def _model(self, tier: str) -> str:
        if tier not in self.models:
            raise ValueError(f"Unknown model tier '{tier}'")
        return self.models[tier]

    def _require_client(self) -> OpenAI:
        if not self._openai_client:
            raise LLMUnavailable("OPENAI_API_KEY not configured")
        return self._openai_client

    async def complete(
        self,
        prompt: str,
        *,
        tier: str = "fast",
        max_tokens: int = 500,
        system: Optional[str] = None,
    ) -> str:
        client = self._require_client()
        model = self._model(tier)
        kwargs: Dict[str, Any] = {
            "model": model,
            "input": prompt,
            "max_output_tokens": max_tokens,
        }
        if system:
            kwargs["instructions"] = system
        response = await asyncio.to_thread(client.responses.create, **kwargs)
        return (response.output_text or "").strip()

    async def converse(
        self,
        history: Sequence[HistoryEntry],
        *,
        tools: Sequence[Dict[str, Any]] = (),
        system: Optional[str] = None,
        tier: str = "reasoning",
        max_tokens: int = 2000,
    ) -> ModelTurn:
        client = self._require_client()
        kwargs: Dict[str, Any] = {
            "model": self._model(tier),
            "input": to_input_items(history),
            "max_output_tokens": max_tokens,
        }
        if system:
            kwargs["instructions"] = system
        if tools:
            kwargs["tools"] = [{"type": "function", "strict": False, **tool} for tool in tools]
        response = await asyncio.to_thread(client.responses.create, **kwargs)
        return parse_response(response)


def to_input_items(history: Sequence[HistoryEntry]) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    for entry in history:
        if isinstance(entry, UserMessage):
            items.append({"role": "user", "content": entry.content})
        elif isinstance(entry, ModelTurn):
            if entry.text:
                items.append({"role": "assistant", "content": entry.text})
            for call in entry.tool_calls:
                items.append(
                    {
                        "type": "function_call",
                        "call_id": call.id,
                        "name": call.name,
                        "arguments": json.dumps(call.arguments),
                    }
                )
        elif isinstance(entry, ToolResults):
            for result in entry.results:
                items.append(
                    {
                        "type": "function_call_output",
                        "call_id": result.call_id,
                        "output": result.content,
                    }
                )
        else:
            raise TypeError(f"Unsupported history entry: {type(entry).__name__}")
    return items


def _parse_arguments(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding malformed tool arguments: %.200s", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_response(response: Any) -> ModelTurn:
    calls = tuple(
        ToolCall(id=item.call_id, name=item.name, arguments=_parse_arguments(item.arguments))
        for item in (response.output or [])
        if getattr(item, "type", None) == "function_call"
    )
    if calls:
        stop_reason = "tool_use"
    elif getattr(response, "status", None) == "incomplete":
        stop_reason = "max_tokens"
    else:
        stop_reason = "end_turn"
    return ModelTurn(text=(response.output_text or "").strip(), tool_calls=calls, stop_reason=stop_reason)
