# llm.py - LLM gateway backed by the Anthropic Messages API
import asyncio
import re
from typing import Dict, List, Optional, Sequence

import anthropic
from anthropic import AsyncAnthropic

from components import LLMInterface
from errors import GatewayError, GatewayMalformedResponse, GatewayRateLimited, GatewayUnavailable
from prompts import (
    ACCOMPANIMENT_PROMPT, DICTION_PROMPT, HIGH_TRAFFIC, MELODY_PROMPT, MELODY_SCHEMA, NOT_CONFIGURED,
    SINGING_FEEDBACK_PROMPT, SINGING_FEEDBACK_SCHEMA, SOUR_NOTE, TRANSFORMATION_PROMPT,
)
from session_state import ConversationTurn, Role

RATE_LIMIT_PATTERN = re.compile(r"429|rate.?limit|exceeded.*quota|RESOURCE_EXHAUSTED|overloaded", re.IGNORECASE)

# The Messages API expects the conversation to open with a user turn.
SESSION_OPENER = "(The student has opened a voice session.)"


def is_rate_limit_error(error: BaseException) -> bool:
    if isinstance(error, (anthropic.RateLimitError, GatewayRateLimited)):
        return True
    if isinstance(error, anthropic.APIStatusError) and error.status_code in (429, 529):
        return True
    return bool(RATE_LIMIT_PATTERN.search(str(error)))


def to_messages(history: Sequence[ConversationTurn]) -> List[Dict[str, str]]:
    """Map conversation turns to Messages API messages.

    Model turns become assistant turns and consecutive turns from the same
    role are merged.
    """
    messages: List[Dict[str, str]] = []
    for turn in history:
        role = "assistant" if turn.role is Role.MODEL else "user"
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n" + turn.text
        else:
            messages.append({"role": role, "content": turn.text})
    if messages and messages[0]["role"] == "assistant":
        messages.insert(0, {"role": "user", "content": SESSION_OPENER})
    return messages


class AnthropicLLM(LLMInterface):
    def __init__(self,
                 api_key: Optional[str] = None,
                 model: str = "claude-sonnet-4-20250514",
                 max_tokens: int = 1024,
                 retries: int = 3,
                 initial_delay: float = 2.0,
                 client=None):
        """
        :param api_key: Anthropic API key
        :param model: Anthropic 模型名称
        :param retries: how many times a rate-limited call is retried
        :param initial_delay: first backoff delay in seconds, doubled per retry
        """
        self.model = model
        self.max_tokens = max_tokens
        self.retries = retries
        self.initial_delay = initial_delay

        if client is None:
            if not api_key:
                raise ValueError("ANTHROPIC_API_KEY not found in environment")
            # Backoff is handled here, not by the SDK.
            client = AsyncAnthropic(api_key=api_key, max_retries=0)
        self.client = client

        print(f"[LLM] Initialized with model: {model}")

    async def _call_with_retry(self, **params):
        retries = self.retries
        delay = self.initial_delay
        while True:
            try:
                return await self.client.messages.create(
                    model=self.model, max_tokens=self.max_tokens, **params)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if is_rate_limit_error(e) and retries > 0:
                    print(f"[LLM] Rate limit error detected. Retrying in {delay:.1f}s... ({retries} retries left)")
                    await asyncio.sleep(delay)
                    retries -= 1
                    delay *= 2
                    continue
                print(f"[LLM] Call failed after retries or for a non-retriable error: {e}")
                raise self._classify(e) from e

    @staticmethod
    def _classify(error: Exception) -> GatewayError:
        if isinstance(error, GatewayError):
            return error
        if is_rate_limit_error(error):
            return GatewayRateLimited(str(error))
        if isinstance(error, (anthropic.APIConnectionError, anthropic.APITimeoutError,
                              anthropic.InternalServerError)):
            return GatewayUnavailable(str(error))
        return GatewayError(str(error))

    @staticmethod
    def _text_of(response) -> str:
        text = "".join(block.text for block in response.content
                       if getattr(block, "type", None) == "text")
        if not text.strip():
            raise GatewayMalformedResponse("Response contained no text")
        return text.strip()

    @staticmethod
    def _tool_input_of(response, schema: dict) -> Dict[str, str]:
        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and block.name == schema["name"]:
                data = block.input
                break
        else:
            raise GatewayMalformedResponse(f"Response did not call {schema['name']}")

        if not isinstance(data, dict):
            raise GatewayMalformedResponse(f"{schema['name']} input is not an object")
        result = {}
        for key in schema["input_schema"]["required"]:
            value = data.get(key)
            if not isinstance(value, str):
                raise GatewayMalformedResponse(f"{schema['name']} is missing '{key}'")
            result[key] = value
        return result

    async def complete(self, system_prompt: Optional[str], history: Sequence[ConversationTurn]) -> str:
        messages = to_messages(history)
        print(f"[LLM] Message history length: {len(messages)}")
        params = {"messages": messages}
        if system_prompt:
            params["system"] = system_prompt
        response = await self._call_with_retry(**params)
        text = self._text_of(response)
        print(f"[LLM] Assistant response completed: '{text[:100]}...'")
        return text

    async def _prompt(self, prompt: str) -> str:
        response = await self._call_with_retry(messages=[{"role": "user", "content": prompt}])
        return self._text_of(response)

    async def _structured(self, prompt: str, schema: dict) -> Dict[str, str]:
        response = await self._call_with_retry(
            messages=[{"role": "user", "content": prompt}],
            tools=[schema],
            tool_choice={"type": "tool", "name": schema["name"]},
        )
        return self._tool_input_of(response, schema)

    async def singing_feedback(self, song_title: str) -> Dict[str, str]:
        return await self._structured(SINGING_FEEDBACK_PROMPT.format(song_title=song_title),
                                      SINGING_FEEDBACK_SCHEMA)

    async def generate_melody(self, prompt: str) -> Dict[str, str]:
        return await self._structured(MELODY_PROMPT.format(prompt=prompt), MELODY_SCHEMA)

    async def diction_feedback(self, lyrics: str) -> str:
        return await self._prompt(DICTION_PROMPT.format(lyrics=lyrics))

    async def instrument_accompaniment(self, instrument: str) -> str:
        return await self._prompt(ACCOMPANIMENT_PROMPT.format(instrument=instrument))

    async def instrument_transformation(self, instrument: str) -> str:
        return await self._prompt(TRANSFORMATION_PROMPT.format(instrument=instrument))


def fallback_message(error: BaseException) -> str:
    """The in-character line shown when a practice feature's gateway call fails."""
    if isinstance(error, ValueError) and "API_KEY" in str(error):
        return NOT_CONFIGURED
    if isinstance(error, GatewayRateLimited) or is_rate_limit_error(error):
        return HIGH_TRAFFIC
    return SOUR_NOTE
