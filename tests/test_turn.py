import asyncio

import pytest
from openai import OpenAIError

from helpers import FakeConnector, FakeModel, answer, function_call, raw_function_call, response, run

from mcpchat.agent import ConversationTurn
from mcpchat.schemas import ProcessServer
from mcpchat.tools import builtin_tools

CALC_SERVERS = {"calc": ProcessServer(command="node", args=["calc.js"], env={})}
QUESTION = [{"role": "user", "content": "what is 2 plus 3 greater than 4?"}]


def _turn(model, connector, *, servers=CALC_SERVERS, delay=0.0, **kwargs) -> ConversationTurn:
    return ConversationTurn(
        QUESTION,
        servers=servers,
        builtins=builtin_tools(comparison_delay=delay),
        model_client=model,
        model="gpt-4o",
        system_prompt="You are a test assistant.",
        connector=connector,
        **kwargs,
    )


def _collect(turn: ConversationTurn):
    async def main():
        return [event async for event in turn.stream()]

    return run(main())


def test_sum_then_compare_end_to_end() -> None:
    model = FakeModel(
        response(function_call("call_1", "calculateSum", a=2, b=3)),
        response(function_call("call_2", "isGreaterThan", a=5, b=4)),
        answer("Yes: 2 + 3 = 5, and 5 > 4 is true."),
    )
    connector = FakeConnector({"calc": {"multiply": lambda a, b: a * b}})
    turn = _turn(model, connector, delay=0.01)
    events = _collect(turn)

    kinds = [e["type"] for e in events]
    assert kinds == [
        "tool_call",
        "tool_result",
        "tool_call",
        "annotation",
        "annotation",
        "tool_result",
        "text",
        "finish",
    ]
    assert events[1]["result"] == "5"
    assert events[3]["annotation"] == {"type": "tool-status", "toolCallId": "call_2", "status": "in-progress"}
    assert events[4]["annotation"]["status"] == "success"
    assert events[5]["toolCallId"] == "call_2" and events[5]["result"] == "true"
    assert "true" in events[6]["content"]
    assert events[-1] == {"type": "finish", "finishReason": "stop", "steps": 3}

    outputs = [m["output"] for m in turn.messages if isinstance(m, dict) and m.get("type") == "function_call_output"]
    assert outputs == ["5", "true"]
    assert turn.messages[0] == {"role": "system", "content": "You are a test assistant."}

    tool_names = {tool["name"] for tool in model.responses.requests[0]["tools"]}
    assert tool_names == {"calculateSum", "isGreaterThan", "multiply"}
    assert connector.connected == ["calc"]
    assert connector.open_count == 0


def test_remote_tool_result_flows_back_to_the_model() -> None:
    model = FakeModel(response(function_call("r1", "multiply", a=6, b=7)), answer("42"))
    connector = FakeConnector({"calc": {"multiply": lambda a, b: a * b}})
    turn = _turn(model, connector)
    events = _collect(turn)

    result = next(e for e in events if e["type"] == "tool_result")
    assert result["result"] == "42" and result["isError"] is False
    assert connector.sessions[0].calls == [("multiply", {"a": 6, "b": 7})]
    assert turn.text == "42"


def test_failed_tool_is_reported_to_the_model_and_turn_continues() -> None:
    model = FakeModel(response(function_call("r1", "divide", a=1, b=0)), answer("Sorry, I cannot divide by zero."))
    connector = FakeConnector({"calc": {"divide": lambda a, b: a / b}})
    turn = _turn(model, connector)
    events = _collect(turn)

    result = next(e for e in events if e["type"] == "tool_result")
    assert result["isError"] is True
    assert turn.finish_reason == "stop"
    fed_back = model.responses.requests[1]["input"][-1]
    assert fed_back["call_id"] == "r1" and '"error"' in fed_back["output"]


def test_step_budget_stops_a_model_that_always_calls_tools() -> None:
    model = FakeModel(lambda n: response(function_call(f"loop_{n}", "calculateSum", a=n, b=1)))
    connector = FakeConnector()
    turn = _turn(model, connector, max_steps=5)
    events = _collect(turn)

    assert len(model.responses.requests) == 5
    assert sum(1 for e in events if e["type"] == "tool_result") == 5
    assert events[-1] == {"type": "finish", "finishReason": "budget", "steps": 5}
    assert connector.open_count == 0


def test_unreachable_server_degrades_the_turn() -> None:
    servers = {
        "alpha": ProcessServer(command="a", args=[], env={}),
        "beta": ProcessServer(command="b", args=[], env={}),
        "gamma": ProcessServer(command="c", args=[], env={}),
    }
    model = FakeModel(answer("done"))
    connector = FakeConnector(
        {"alpha": {"one": lambda a, b: 1}, "gamma": {"three": lambda a, b: 3}},
        failing={"beta"},
    )
    turn = _turn(model, connector, servers=servers)
    events = _collect(turn)

    assert events[-1]["finishReason"] == "stop"
    offered = {tool["name"] for tool in model.responses.requests[0]["tools"]}
    assert offered == {"calculateSum", "isGreaterThan", "one", "three"}
    assert list(turn.aggregator.failures) == ["beta"]


def test_model_error_ends_turn_with_error_event_and_closes_sessions() -> None:
    model = FakeModel(OpenAIError("upstream unavailable"))
    connector = FakeConnector({"calc": {}})
    events = _collect(_turn(model, connector))

    assert [e["type"] for e in events] == ["error", "finish"]
    assert events[-1]["finishReason"] == "error"
    assert connector.open_count == 0


def test_unexpected_error_still_finishes_and_closes_sessions() -> None:
    model = FakeModel(RuntimeError("bug"))
    connector = FakeConnector({"calc": {}})
    turn = _turn(model, connector)
    events = _collect(turn)

    assert [e["type"] for e in events] == ["error", "finish"]
    assert "RuntimeError: bug" in events[0]["error"]
    assert events[-1]["finishReason"] == "error"
    assert turn.finish_reason == "error"
    assert len(connector.sessions) == 1
    assert connector.open_count == 0


def test_unparseable_arguments_fail_the_call_without_invoking() -> None:
    model = FakeModel(
        response(raw_function_call("p1", "ping", '{"host": "example.com"')),
        response(raw_function_call("p2", "ping", '["example.com"]')),
        answer("I could not ping it."),
    )
    connector = FakeConnector(
        {"net": {"ping": lambda **kwargs: f"called with {kwargs}"}},
        input_schema={"type": "object", "properties": {"host": {"type": "string"}}},
    )
    turn = _turn(model, connector, servers={"net": ProcessServer(command="net", args=[], env={})})
    events = _collect(turn)

    results = [e for e in events if e["type"] == "tool_result"]
    assert [r["isError"] for r in results] == [True, True]
    assert "not valid JSON" in results[0]["result"]["error"]
    assert "not a JSON object" in results[1]["result"]["error"]
    calls = [e for e in events if e["type"] == "tool_call"]
    assert calls[0]["args"] == '{"host": "example.com"'
    assert connector.sessions[0].calls == []
    fed_back = model.responses.requests[1]["input"][-1]
    assert fed_back["call_id"] == "p1" and '"error"' in fed_back["output"]
    assert events[-1]["finishReason"] == "stop"


def test_turn_timeout_closes_sessions() -> None:
    model = FakeModel(response(function_call("slow", "isGreaterThan", a=2, b=1)), answer("late"))
    connector = FakeConnector({"calc": {}})
    turn = _turn(model, connector, delay=5, max_duration=0.2)
    events = _collect(turn)

    assert [a["annotation"]["status"] for a in events if a["type"] == "annotation"] == ["in-progress"]
    assert events[-1]["finishReason"] == "timeout"
    assert turn.channel.closed
    assert connector.open_count == 0


def test_cancelled_turn_closes_sessions() -> None:
    model = FakeModel(response(function_call("slow", "isGreaterThan", a=2, b=1)), answer("never"))
    connector = FakeConnector({"calc": {}, "web": {}})
    servers = {**CALC_SERVERS, "web": ProcessServer(command="web", args=[], env={})}
    turn = _turn(model, connector, servers=servers, delay=10)

    async def main():
        started = asyncio.Event()

        async def consume():
            async for event in turn.stream():
                if event["type"] == "annotation":
                    started.set()

        task = asyncio.create_task(consume())
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    run(main())
    assert len(connector.sessions) == 2
    assert connector.open_count == 0
    assert turn.channel.closed
