from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from errors import GatewayError, GatewayMalformedResponse, GatewayRateLimited
from llm import AnthropicLLM, SESSION_OPENER, fallback_message, is_rate_limit_error, to_messages
from prompts import HIGH_TRAFFIC, MELODY_SCHEMA, NOT_CONFIGURED, SINGING_FEEDBACK_SCHEMA, SOUR_NOTE
from session_state import ConversationTurn, Role


def text_response(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


def tool_response(name, data):
    return SimpleNamespace(content=[SimpleNamespace(type="tool_use", name=name, input=data)])


def make_llm(*responses):
    client = MagicMock()
    client.messages.create = AsyncMock(side_effect=list(responses))
    return AnthropicLLM(client=client), client.messages.create


def test_history_becomes_messages():
    history = [
        ConversationTurn(Role.MODEL, "Namaste!"),
        ConversationTurn(Role.USER, "Hi"),
        ConversationTurn(Role.USER, "Are you there?"),
    ]
    assert to_messages(history) == [
        {"role": "user", "content": SESSION_OPENER},
        {"role": "assistant", "content": "Namaste!"},
        {"role": "user", "content": "Hi\nAre you there?"},
    ]


def test_rate_limit_detection():
    assert is_rate_limit_error(Exception("Error 429: Too Many Requests"))
    assert is_rate_limit_error(Exception("RESOURCE_EXHAUSTED"))
    assert is_rate_limit_error(Exception("You exceeded your current quota"))
    assert is_rate_limit_error(GatewayRateLimited("slow down"))
    assert not is_rate_limit_error(Exception("invalid request"))


def test_missing_key_is_rejected():
    with pytest.raises(ValueError):
        AnthropicLLM(api_key=None)


@pytest.mark.asyncio
async def test_complete_sends_system_prompt_and_history():
    llm, create = make_llm(text_response(" Sa Re Ga \n"))
    history = [ConversationTurn(Role.MODEL, "Namaste!"), ConversationTurn(Role.USER, "Teach me")]

    assert await llm.complete("be kind", history) == "Sa Re Ga"
    kwargs = create.await_args.kwargs
    assert kwargs["system"] == "be kind"
    assert kwargs["messages"][-1] == {"role": "user", "content": "Teach me"}
    assert kwargs["model"] == llm.model


@pytest.mark.asyncio
async def test_rate_limit_is_retried_with_doubling_delay():
    llm, create = make_llm(Exception("429 rate limit"), Exception("429 rate limit"), text_response("ok"))
    with patch("llm.asyncio.sleep", new=AsyncMock()) as sleep:
        assert await llm.complete(None, [ConversationTurn(Role.USER, "hi")]) == "ok"

    assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]
    assert create.await_count == 3
    assert "system" not in create.await_args.kwargs


@pytest.mark.asyncio
async def test_rate_limit_gives_up_after_three_retries():
    llm, create = make_llm(*[Exception("429")] * 4)
    with patch("llm.asyncio.sleep", new=AsyncMock()) as sleep:
        with pytest.raises(GatewayRateLimited):
            await llm.complete(None, [ConversationTurn(Role.USER, "hi")])

    assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0, 8.0]
    assert create.await_count == 4


@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    llm, create = make_llm(RuntimeError("bad request"))
    with patch("llm.asyncio.sleep", new=AsyncMock()) as sleep:
        with pytest.raises(GatewayError):
            await llm.complete(None, [ConversationTurn(Role.USER, "hi")])
    sleep.assert_not_awaited()
    assert create.await_count == 1


@pytest.mark.asyncio
async def test_singing_feedback_uses_forced_tool():
    data = {"lyrics": "Tum hi ho", "feedback": "Lovely breath control."}
    llm, create = make_llm(tool_response(SINGING_FEEDBACK_SCHEMA["name"], data))

    assert await llm.singing_feedback("Tum Hi Ho") == data
    kwargs = create.await_args.kwargs
    assert kwargs["tool_choice"] == {"type": "tool", "name": SINGING_FEEDBACK_SCHEMA["name"]}
    assert "Tum Hi Ho" in kwargs["messages"][0]["content"]


@pytest.mark.asyncio
async def test_malformed_structured_output():
    llm, _ = make_llm(tool_response(MELODY_SCHEMA["name"], {"description": "A calm raga"}),
                      text_response("no tool here"))
    with pytest.raises(GatewayMalformedResponse):
        await llm.generate_melody("calm raga")
    with pytest.raises(GatewayMalformedResponse):
        await llm.generate_melody("calm raga")


@pytest.mark.asyncio
async def test_empty_text_is_malformed():
    llm, _ = make_llm(text_response("   "))
    with pytest.raises(GatewayMalformedResponse):
        await llm.diction_feedback("Peter Piper")


@pytest.mark.asyncio
async def test_plain_prompts_mention_their_subject():
    llm, create = make_llm(text_response("Try a walking bass."), text_response("It would sparkle."))
    assert await llm.instrument_accompaniment("Piano") == "Try a walking bass."
    assert "Piano" in create.await_args.kwargs["messages"][0]["content"]
    assert await llm.instrument_transformation("Guitar") == "It would sparkle."
    assert "Guitar" in create.await_args.kwargs["messages"][0]["content"]


def test_fallback_messages():
    assert fallback_message(GatewayRateLimited("429")) == HIGH_TRAFFIC
    assert fallback_message(ValueError("ANTHROPIC_API_KEY not found in environment")) == NOT_CONFIGURED
    assert fallback_message(GatewayError("boom")) == SOUR_NOTE
