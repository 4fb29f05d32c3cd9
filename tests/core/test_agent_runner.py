from __future__ import annotations

import asyncio

import pytest
from pydantic import BaseModel

from turnloop.agents import AgentCancelledError, AgentConfigurationError, AgentExecutionError
from turnloop.core import (
    MISSING_SESSION_ID,
    AbortRegistry,
    AgentRunner,
    EventChannel,
    InMemoryEventRecorder,
    InMemoryTelemetrySink,
    RunnerConfig,
    Session,
    SessionConfig,
)
from turnloop.execution import LocalExecutionAdapter
from turnloop.llms import LLMError, LLMResponse, ScriptedModelClient, ToolCall
from turnloop.tools import ToolRegistry, tool


def run_async(coro):
    return asyncio.run(coro)


class EchoArgs(BaseModel):
    text: str


class WaitArgs(BaseModel):
    seconds: float = 5.0


@tool(args_model=EchoArgs, name="echo")
def echo(args: EchoArgs) -> dict[str, str]:
    return {"echo": args.text}


@tool(args_model=EchoArgs, name="explode")
def explode(args: EchoArgs) -> str:
    raise RuntimeError("tool blew up")


def _session(session_id: str | None = "s-runner") -> Session:
    return Session(id=session_id, config=SessionConfig(permission_mode="auto"))


def _runner(model, *extra_tools, **kwargs) -> AgentRunner:
    registry = ToolRegistry()
    registry.register_many([echo, explode, *extra_tools])
    return AgentRunner(model=model, tools=registry, execution=LocalExecutionAdapter(), **kwargs)


def _call(name: str, call_id: str = "tu_1", **arguments) -> LLMResponse:
    return LLMResponse(tool_calls=[ToolCall(id=call_id, tool_name=name, arguments=arguments)])


def _started_waiter(started: asyncio.Event):
    @tool(args_model=WaitArgs, name="wait")
    async def wait(args: WaitArgs) -> str:
        started.set()
        await asyncio.sleep(args.seconds)
        return "finished"

    return wait


def test_scenario_a_plain_answer():
    model = ScriptedModelClient([LLMResponse(text="just text")])
    runner = _runner(model)

    result = run_async(runner.process_turn("hi", _session()))

    assert result.response == "just text"
    assert result.error is None
    assert result.tool_results == []
    assert result.aborted is False
    assert result.iterations == 1
    assert result.done is True


def test_scenario_b_one_successful_tool():
    model = ScriptedModelClient([_call("echo", text="ping"), LLMResponse(text="pong")])
    runner = _runner(model)

    result = run_async(runner.process_turn("hi", _session()))

    assert result.iterations == 2
    assert len(result.tool_results) == 1
    assert result.tool_results[0].aborted is False
    assert result.tool_results[0].result == {"echo": "ping"}
    assert result.response == "pong"


def test_scenario_c_tool_error_still_completes():
    model = ScriptedModelClient([_call("explode", text="x"), LLMResponse(text="handled")])
    runner = _runner(model)

    result = run_async(runner.process_turn("hi", _session()))

    assert result.error is None
    assert result.aborted is False
    assert result.response == "handled"
    assert result.tool_results[0].result == {"error": "Error executing tool 'explode': tool blew up"}


def test_scenario_d_abort_mid_tool_via_registry():
    async def scenario():
        started = asyncio.Event()
        channel = EventChannel()
        recorder = InMemoryEventRecorder()
        channel.subscribe(recorder)
        model = ScriptedModelClient([_call("wait", seconds=5), LLMResponse(text="never asked")])
        runner = _runner(model, _started_waiter(started), events=channel)
        session = _session()

        async def abort_when_started():
            await started.wait()
            runner.request_abort(session.id)

        aborter = asyncio.create_task(abort_when_started())
        result = await asyncio.wait_for(runner.process_turn("go", session), timeout=2.0)
        await aborter
        return result, runner, model, session, recorder

    result, runner, model, session, recorder = run_async(scenario())

    assert result.aborted is True
    assert result.response == "Operation aborted by user"
    assert len(result.tool_results) == 1
    assert result.tool_results[0].aborted is True
    assert model.calls == 1

    assert not runner.aborts.is_aborted(session.id)
    assert session.cancellation is not None and not session.cancellation.cancelled
    kinds = [e.type for e in recorder.events()]
    assert kinds == ["session_abort_requested", "processing_completed"]
    assert recorder.events("processing_completed")[0].response == "Operation aborted by user"


def test_pending_abort_flag_short_circuits_and_is_cleared():
    aborts = AbortRegistry()
    model = ScriptedModelClient([LLMResponse(text="second turn answer")])
    runner = _runner(model, aborts=aborts)
    session = _session()
    old_token = session.ensure_cancellation()

    aborts.request_abort(session.id)
    first = run_async(runner.process_turn("hi", session))

    assert first.aborted is True
    assert first.done is True
    assert first.response == "Operation aborted by user"
    assert model.calls == 0
    assert not aborts.is_aborted(session.id)
    assert session.cancellation is not old_token
    assert not session.cancellation.cancelled

    second = run_async(runner.process_turn("hi", session))
    assert second.aborted is False
    assert second.response == "second turn answer"


def test_abort_message_is_configurable():
    aborts = AbortRegistry()
    runner = _runner(
        ScriptedModelClient([]),
        aborts=aborts,
        config=RunnerConfig(abort_message="stopped"),
    )
    aborts.request_abort("s-runner")

    result = run_async(runner.process_turn("hi", _session()))

    assert result.response == "stopped"


def test_missing_session_id_is_terminal_and_mutates_nothing():
    model = ScriptedModelClient([LLMResponse(text="unused")])
    runner = _runner(model)
    session = _session(session_id=None)

    result = run_async(runner.process_turn("hi", session))

    assert result.error == MISSING_SESSION_ID
    assert result.done is True
    assert result.aborted is False
    assert len(session.context_window) == 0
    assert session.cancellation is None
    assert model.calls == 0


def test_user_entry_is_not_duplicated_when_turn_is_retried():
    model = ScriptedModelClient([LLMError("provider down"), LLMResponse(text="recovered")])
    runner = _runner(model)
    session = _session()

    first = run_async(runner.process_turn("question", session))
    second = run_async(runner.process_turn("question", session))

    assert first.error == "provider down"
    assert second.response == "recovered"
    users = [m for m in session.context_window.messages() if m.role == "user"]
    assert len(users) == 1
    assert [m.role for m in session.context_window.messages()] == ["user", "assistant"]


def test_follow_up_turn_appends_new_user_entry():
    model = ScriptedModelClient([LLMResponse(text="a1"), LLMResponse(text="a2")])
    runner = _runner(model)
    session = _session()

    run_async(runner.process_turn("q1", session))
    run_async(runner.process_turn("q2", session))

    texts = [(m.role, m.text()) for m in session.context_window.messages()]
    assert texts == [("user", "q1"), ("assistant", "a1"), ("user", "q2"), ("assistant", "a2")]


def test_unexpected_exception_becomes_error_result():
    model = ScriptedModelClient([RuntimeError("model exploded")])
    runner = _runner(model)

    result = run_async(runner.process_turn("hi", _session()))

    assert result.error == "model exploded"
    assert result.aborted is False
    assert result.done is True


def test_error_result_reports_current_abort_status():
    aborts = AbortRegistry()

    def fail_after_abort(req):
        aborts.request_abort("s-runner")
        raise RuntimeError("failed while aborting")

    runner = _runner(ScriptedModelClient([fail_after_abort]), aborts=aborts)

    result = run_async(runner.process_turn("hi", _session()))

    assert result.error == "failed while aborting"
    assert result.aborted is True


def test_iteration_limit_is_reported_as_error():
    model = ScriptedModelClient([_call("echo", call_id=f"tu_{i}", text="x") for i in range(3)])
    runner = _runner(model, config=RunnerConfig(max_iterations=2))

    result = run_async(runner.process_turn("hi", _session()))

    assert result.error is not None
    assert "max_iterations=2" in result.error
    assert result.iterations == 2
    assert [r.tool_use_id for r in result.tool_results] == ["tu_0", "tu_1"]


def test_error_result_keeps_tool_records_from_earlier_iterations():
    model = ScriptedModelClient([_call("echo", text="ping"), RuntimeError("model down")])
    runner = _runner(model)
    session = _session()

    result = run_async(runner.process_turn("hi", session))

    assert result.error == "model down"
    assert result.iterations == 2
    assert len(result.tool_results) == 1
    assert result.tool_results[0].result == {"echo": "ping"}
    assert session.context_window.tool_result_ids() == ["tu_1"]


def test_abort_during_final_answer_is_observed_by_the_same_turn():
    aborts = AbortRegistry()

    def answer_after_abort(req):
        aborts.request_abort("s-runner")
        return LLMResponse(text="late answer")

    model = ScriptedModelClient([answer_after_abort, LLMResponse(text="next answer")])
    runner = _runner(model, aborts=aborts)
    session = _session()

    first = run_async(runner.process_turn("q1", session))

    assert first.aborted is True
    assert first.response == "Operation aborted by user"
    assert first.iterations == 1
    assert not aborts.is_aborted("s-runner")
    assert not session.cancellation.cancelled

    second = run_async(runner.process_turn("q2", session))

    assert second.aborted is False
    assert second.response == "next answer"
    assert model.calls == 2


def test_processing_completed_event_carries_response():
    channel = EventChannel()
    recorder = InMemoryEventRecorder()
    channel.subscribe(recorder)
    runner = _runner(ScriptedModelClient([LLMResponse(text="final")]), events=channel)

    run_async(runner.process_turn("hi", _session()))

    events = recorder.events("processing_completed")
    assert len(events) == 1
    assert events[0].session_id == "s-runner"
    assert events[0].response == "final"


def test_failing_listener_does_not_break_the_turn():
    channel = EventChannel()

    def broken(event):
        raise RuntimeError("listener bug")

    channel.subscribe(broken)
    runner = _runner(ScriptedModelClient([LLMResponse(text="still fine")]), events=channel)

    result = run_async(runner.process_turn("hi", _session()))

    assert result.error is None
    assert result.response == "still fine"


def test_concurrent_sessions_share_registry_without_interference():
    async def scenario():
        aborts = AbortRegistry()
        started = asyncio.Event()
        waiter = _started_waiter(started)

        slow_model = ScriptedModelClient([_call("wait", seconds=5), LLMResponse(text="unused")])
        fast_model = ScriptedModelClient(
            [_call("echo", text="b"), LLMResponse(text="session b done")],
            delay_s=0.05,
        )
        runner_a = _runner(slow_model, waiter, aborts=aborts)
        runner_b = _runner(fast_model, aborts=aborts)
        session_a = _session("s-a")
        session_b = _session("s-b")

        async def abort_a():
            await started.wait()
            aborts.request_abort("s-a")

        results = await asyncio.wait_for(
            asyncio.gather(
                runner_a.process_turn("a", session_a),
                runner_b.process_turn("b", session_b),
                abort_a(),
            ),
            timeout=3.0,
        )
        return results[0], results[1], aborts

    result_a, result_b, aborts = run_async(scenario())

    assert result_a.aborted is True
    assert result_b.aborted is False
    assert result_b.response == "session b done"
    assert result_b.tool_results[0].result == {"echo": "b"}
    assert aborts.aborted_sessions() == []


def test_turn_telemetry_span_and_abort_counter():
    sink = InMemoryTelemetrySink()
    aborts = AbortRegistry()
    runner = _runner(ScriptedModelClient([LLMResponse(text="ok")]), aborts=aborts, telemetry=sink)

    run_async(runner.process_turn("hi", _session()))
    aborts.request_abort("s-runner")
    run_async(runner.process_turn("hi", _session()))

    turn_spans = sink.spans("agent.turn")
    assert [s["status"] for s in turn_spans] == ["ok"]
    assert turn_spans[0]["attributes"]["iterations"] == 1
    counters = sink.counters("agent.turns.aborted")
    assert [c["attributes"]["path"] for c in counters] == ["pending_flag"]


def test_missing_collaborators_are_rejected():
    with pytest.raises(AgentConfigurationError) as exc:
        AgentRunner(model=None, tools=ToolRegistry(), execution=None)

    assert "model" in str(exc.value)
    assert "execution" in str(exc.value)


def test_run_conversation_collects_responses():
    runner = _runner(ScriptedModelClient([LLMResponse(text="only answer")]))

    result = run_async(runner.run_conversation("start"))

    assert result.responses == ["only answer"]
    assert len(result.turns) == 1
    assert result.final_response == "only answer"
    assert result.session is not None
    assert result.session.context_window.messages()[0].text() == "start"


def test_run_conversation_reports_errors_with_prefix():
    runner = _runner(ScriptedModelClient([RuntimeError("bad model")]))

    result = run_async(runner.run_conversation("start", _session()))

    assert result.responses == ["Error: bad model"]


def test_raise_for_status_maps_outcomes_to_exceptions():
    aborts = AbortRegistry()
    runner = _runner(
        ScriptedModelClient([RuntimeError("broken"), LLMResponse(text="fine")]),
        aborts=aborts,
    )

    failed = run_async(runner.process_turn("hi", _session("s-1")))
    with pytest.raises(AgentExecutionError):
        failed.raise_for_status()

    aborts.request_abort("s-2")
    aborted = run_async(runner.process_turn("hi", _session("s-2")))
    with pytest.raises(AgentCancelledError):
        aborted.raise_for_status()

    ok = run_async(runner.process_turn("hi", _session("s-3")))
    assert ok.raise_for_status() is ok
