"""Tool-calling assistant that answers a coach's questions from their data.

The loop is a small state machine:

    AwaitModel --(end_turn or no tool calls)--> Terminal
    AwaitModel --(tool calls)--> ExecuteTools --> AwaitModel

History is an immutable tuple; each iteration produces a new one. The loop is
capped, and running out of iterations returns ``FALLBACK_RESPONSE``.
"""

import asyncio
import logging
from typing import Tuple

from kadre.agents.prompts import ASSISTANT_SYSTEM_PROMPT
from kadre.agents.tools import CoachTools
from kadre.llm import LLMClient, ModelTurn, ToolResult, ToolResults, UserMessage
from kadre.llm.client import HistoryEntry
from kadre.store import CoachStore

logger = logging.getLogger("agent.assistant")

DEFAULT_MAX_ITERATIONS = 5
FALLBACK_RESPONSE = "I was unable to complete your request. Please try again."
EMPTY_RESPONSE = "No response generated."


def is_terminal(turn: ModelTurn) -> bool:
    return turn.stop_reason == "end_turn" or not turn.tool_calls


async def execute_tools(tools: CoachTools, turn: ModelTurn) -> ToolResults:
    outputs = await asyncio.gather(*(tools.execute(call.name, call.arguments) for call in turn.tool_calls))
    return ToolResults(
        results=tuple(ToolResult(call_id=call.id, content=output) for call, output in zip(turn.tool_calls, outputs))
    )


async def run_assistant(
    llm: LLMClient,
    store: CoachStore,
    coach_id: str,
    message: str,
    *,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> str:
    tools = CoachTools(store, coach_id)
    schemas = CoachTools.schemas()
    history: Tuple[HistoryEntry, ...] = (UserMessage(content=message),)

    for iteration in range(1, max_iterations + 1):
        turn = await llm.converse(
            history,
            tools=schemas,
            system=ASSISTANT_SYSTEM_PROMPT,
            tier="reasoning",
            max_tokens=2000,
        )
        if is_terminal(turn):
            logger.info("Assistant finished for coach %s after %s iteration(s)", coach_id, iteration)
            return turn.text or EMPTY_RESPONSE

        logger.info(
            "Assistant iteration %s for coach %s requested tools: %s",
            iteration,
            coach_id,
            ", ".join(call.name for call in turn.tool_calls),
        )
        results = await execute_tools(tools, turn)
        history = history + (turn, results)

    logger.warning("Assistant exhausted %s iterations for coach %s", max_iterations, coach_id)
    return FALLBACK_RESPONSE
