from __future__ import annotations

import asyncio

import pytest

from turnloop.llms import LLMError, LLMRequest, LLMResponse, ScriptedModelClient


def run_async(coro):
    return asyncio.run(coro)


def _req(text: str = "hi") -> LLMRequest:
    return LLMRequest(model="m", metadata={"text": text})


def test_steps_are_replayed_in_order_and_requests_kept():
    async def computed(req: LLMRequest) -> LLMResponse:
        return LLMResponse(text=f"computed:{req.metadata['text']}")

    client = ScriptedModelClient([LLMResponse(text="first"), computed, lambda req: LLMResponse(text="sync")])

    async def scenario():
        return [
            (await client.chat(_req("a"))).text,
            (await client.chat(_req("b"))).text,
            (await client.chat(_req("c"))).text,
        ]

    assert run_async(scenario()) == ["first", "computed:b", "sync"]
    assert client.calls == 3
    assert [r.metadata["text"] for r in client.requests()] == ["a", "b", "c"]
    assert client.remaining() == 0


def test_exception_step_is_raised():
    client = ScriptedModelClient([ValueError("scripted failure")])

    with pytest.raises(ValueError, match="scripted failure"):
        run_async(client.chat(_req()))


def test_exhausted_script_raises_llm_error():
    client = ScriptedModelClient([])

    with pytest.raises(LLMError, match="exhausted"):
        run_async(client.chat(_req()))
    assert client.calls == 1
