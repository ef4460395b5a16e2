import json

from kadre.agents.assistant import EMPTY_RESPONSE, FALLBACK_RESPONSE, run_assistant
from kadre.db import Client
from kadre.llm import ModelTurn, ToolCall, ToolResults, UserMessage


def _tool_turn(*calls):
    return ModelTurn(tool_calls=tuple(calls), stop_reason="tool_use")


async def test_direct_answer_needs_one_model_call(store, fake_llm):
    llm = fake_llm(turns=[ModelTurn(text="You have no clients yet.")])

    answer = await run_assistant(llm, store, "coach-1", "How many clients do I have?")

    assert answer == "You have no clients yet."
    assert len(llm.conversations) == 1
    call = llm.conversations[0]
    assert call["history"] == (UserMessage(content="How many clients do I have?"),)
    assert call["tier"] == "reasoning"
    assert call["system"]
    assert len(call["tools"]) == 8


async def test_tool_call_then_answer(seed, store, fake_llm):
    await seed(
        Client(coach_id="coach-1", company_name="Acme Corp"),
        Client(coach_id="coach-2", company_name="Initech"),
    )
    llm = fake_llm(
        turns=[
            _tool_turn(ToolCall(id="call_1", name="list_companies")),
            ModelTurn(text="You coach Acme Corp."),
        ]
    )

    answer = await run_assistant(llm, store, "coach-1", "Who do I coach?")

    assert answer == "You coach Acme Corp."
    history = llm.conversations[1]["history"]
    assert len(history) == 3
    results = history[2]
    assert isinstance(results, ToolResults)
    assert results.results[0].call_id == "call_1"
    companies = json.loads(results.results[0].content)
    assert [c["company_name"] for c in companies] == ["Acme Corp"]


async def test_tool_requests_forever_hit_the_iteration_cap(store, fake_llm):
    llm = fake_llm(turns=lambda n: _tool_turn(ToolCall(id=f"call_{n}", name="get_stats")))

    answer = await run_assistant(llm, store, "coach-1", "Keep going")

    assert answer == FALLBACK_RESPONSE
    assert len(llm.conversations) == 5
    assert [len(c["history"]) for c in llm.conversations] == [1, 3, 5, 7, 9]


async def test_iteration_cap_is_adjustable(store, fake_llm):
    llm = fake_llm(turns=lambda n: _tool_turn(ToolCall(id=f"call_{n}", name="get_stats")))

    assert await run_assistant(llm, store, "coach-1", "Keep going", max_iterations=2) == FALLBACK_RESPONSE
    assert len(llm.conversations) == 2


async def test_failing_and_unknown_tools_report_back_to_model(store, fake_llm):
    llm = fake_llm(
        turns=[
            _tool_turn(
                ToolCall(id="a", name="launch_rockets"),
                ToolCall(id="b", name="search_notes", arguments={}),
                ToolCall(id="c", name="get_synthesis", arguments={"date": "2026-13-40"}),
            ),
            ModelTurn(text="Sorry, I could not find that."),
        ]
    )

    answer = await run_assistant(llm, store, "coach-1", "Find notes")

    assert answer == "Sorry, I could not find that."
    results = {r.call_id: r.content for r in llm.conversations[1]["history"][2].results}
    assert results["a"] == "Unknown tool: launch_rockets"
    assert results["b"].startswith("Error executing search_notes:")
    assert results["c"] == "Invalid date: 2026-13-40"


async def test_empty_final_text_gets_placeholder(store, fake_llm):
    llm = fake_llm(turns=[ModelTurn(text="", stop_reason="end_turn")])

    assert await run_assistant(llm, store, "coach-1", "Hello?") == EMPTY_RESPONSE


async def test_max_tokens_stop_ends_the_loop(store, fake_llm):
    llm = fake_llm(turns=[ModelTurn(text="Partial answer", stop_reason="max_tokens")])

    assert await run_assistant(llm, store, "coach-1", "Summarize everything") == "Partial answer"
    assert len(llm.conversations) == 1
