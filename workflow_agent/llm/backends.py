"""LLM backend abstraction for multi-model support.

Provides a unified async interface over Google Gemini and Anthropic Claude:

- generate_json: one structured (JSON) response, used for planning
- stream_text: an async iterator of text fragments, used for step output

Each backend handles provider-specific concerns:
- Client creation, credentials and timeout configuration
- Thinking configuration
- Separating thought parts from visible text
- Heartbeat monitoring of streams (stall detection)
- Closing the upstream stream when the consumer stops early

Calls are not retried: a failed call surfaces to the caller.
"""

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Callable, Optional, Protocol, runtime_checkable

from workflow_agent.llm.client import require_api_key

logger = logging.getLogger(__name__)

# Constants shared across backends
HEARTBEAT_TIMEOUT = 120  # seconds without data before considering stalled
HEARTBEAT_LOG_INTERVAL = 30  # Log every 30s to confirm call is alive


@runtime_checkable
class ModelBackend(Protocol):
    """Protocol for LLM backend implementations."""

    @property
    def model_id(self) -> str: ...

    async def generate_json(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        response_schema: Optional[Any] = None,
        thinking_budget: Optional[int] = None,
        label: str = "",
    ) -> str: ...

    def stream_text(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        thinking_budget: Optional[int] = None,
        label: str = "",
        cancellation_check: Optional[Callable[[], bool]] = None,
    ) -> AsyncIterator[str]: ...


async def _monitored(
    source: AsyncIterator[Any],
    label: str,
    provider: str,
    cancellation_check: Optional[Callable[[], bool]] = None,
) -> AsyncIterator[Any]:
    """Iterate a provider stream with stall detection and heartbeat logging.

    Raises:
        TimeoutError: If no chunk arrives for HEARTBEAT_TIMEOUT seconds
        InterruptedError: If cancellation_check() returns True between chunks
    """
    iterator = source.__aiter__()
    start_time = time.time()
    last_heartbeat_log = start_time
    chunk_count = 0

    try:
        while True:
            try:
                chunk = await asyncio.wait_for(
                    iterator.__anext__(), timeout=HEARTBEAT_TIMEOUT
                )
            except StopAsyncIteration:
                break
            except asyncio.TimeoutError:
                raise TimeoutError(
                    f"[{label}] No data for {HEARTBEAT_TIMEOUT}s -- stalled"
                ) from None

            chunk_count += 1
            now = time.time()
            if now - last_heartbeat_log > HEARTBEAT_LOG_INTERVAL:
                logger.info(
                    f"[{label}] {provider} streaming: {chunk_count} chunks, "
                    f"{int(now - start_time)}s"
                )
                last_heartbeat_log = now

            if cancellation_check and cancellation_check():
                raise InterruptedError(f"[{label}] Cancelled during streaming")

            yield chunk
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()

    logger.info(
        f"[{label}] {provider} stream completed: {chunk_count} chunks, "
        f"{int((time.time() - start_time) * 1000)}ms"
    )


class GeminiBackend:
    """Google Gemini backend (google-genai async client).

    Handles:
    - JSON mode with response schema for structured planning
    - Thinking with thinking_budget (0 disables thinking)
    - Dropping thought parts from streamed text

    Requires GEMINI_API_KEY (or GOOGLE_API_KEY) environment variable.
    Requires google-genai package: pip install google-genai
    """

    def __init__(self, model_id: str = "gemini-2.5-flash"):
        self._model_id = model_id
        self._client = None

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def max_output_tokens(self) -> int:
        return 65_536

    def _get_client(self):
        """Get a Gemini client, created on first use."""
        if self._client is None:
            from google import genai

            api_key = require_api_key("GEMINI_API_KEY", "GOOGLE_API_KEY")
            self._client = genai.Client(api_key=api_key)
        return self._client

    def _build_config(
        self,
        system_prompt: str,
        max_tokens: int,
        thinking_budget: Optional[int],
        **extra: Any,
    ):
        from google.genai import types

        config_kwargs: dict[str, Any] = {
            "system_instruction": system_prompt,
            "max_output_tokens": min(max_tokens, self.max_output_tokens),
            **extra,
        }
        if thinking_budget is not None:
            config_kwargs["thinking_config"] = types.ThinkingConfig(
                thinking_budget=thinking_budget,
            )
        return types.GenerateContentConfig(**config_kwargs)

    @staticmethod
    def _visible_text(chunk: Any) -> str:
        """Text from a response or stream chunk, excluding thought parts."""
        text = ""
        try:
            if chunk.candidates and chunk.candidates[0].content:
                for part in chunk.candidates[0].content.parts or []:
                    if getattr(part, "thought", False):
                        continue
                    text += getattr(part, "text", "") or ""
        except (IndexError, AttributeError):
            pass  # Some chunks are metadata-only
        return text

    async def generate_json(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        response_schema: Optional[Any] = None,
        thinking_budget: Optional[int] = None,
        label: str = "",
    ) -> str:
        """Single JSON-mode call. Returns the raw response text."""
        client = self._get_client()
        start_time = time.time()

        extra: dict[str, Any] = {"response_mime_type": "application/json"}
        if response_schema is not None:
            extra["response_schema"] = response_schema
        config = self._build_config(system_prompt, max_tokens, thinking_budget, **extra)

        logger.info(
            f"[{label}] Gemini JSON call: ~{len(user_message) // 4:,} input tokens, "
            f"thinking_budget={thinking_budget}"
        )

        response = await client.aio.models.generate_content(
            model=self._model_id,
            contents=user_message,
            config=config,
        )
        raw_text = self._visible_text(response)

        logger.info(
            f"[{label}] Gemini JSON call completed: "
            f"{int((time.time() - start_time) * 1000)}ms, {len(raw_text):,} chars"
        )
        return raw_text

    async def stream_text(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        thinking_budget: Optional[int] = None,
        label: str = "",
        cancellation_check: Optional[Callable[[], bool]] = None,
    ) -> AsyncIterator[str]:
        """Stream visible text fragments as they arrive."""
        client = self._get_client()
        config = self._build_config(system_prompt, max_tokens, thinking_budget)

        logger.info(
            f"[{label}] Gemini streaming: ~{len(user_message) // 4:,} input tokens, "
            f"thinking_budget={thinking_budget}"
        )

        stream = await client.aio.models.generate_content_stream(
            model=self._model_id,
            contents=user_message,
            config=config,
        )
        async for chunk in _monitored(stream, label, "Gemini", cancellation_check):
            text = self._visible_text(chunk)
            if text:
                yield text


class AnthropicBackend:
    """Anthropic Claude backend (AsyncAnthropic).

    Handles:
    - JSON via prompt instruction (no native schema mode)
    - Extended thinking when a budget of at least 1024 tokens is given
    - Streaming text deltas through messages.stream

    Requires ANTHROPIC_API_KEY environment variable.
    """

    MIN_THINKING_BUDGET = 1024

    def __init__(self, model_id: str = "claude-sonnet-4-6"):
        self._model_id = model_id
        self._client = None

    @property
    def model_id(self) -> str:
        return self._model_id

    def _get_client(self):
        """Get an async Anthropic client with HTTP timeouts to avoid dead-socket hangs."""
        if self._client is None:
            import httpx
            from anthropic import AsyncAnthropic

            self._client = AsyncAnthropic(
                api_key=require_api_key("ANTHROPIC_API_KEY"),
                timeout=httpx.Timeout(
                    connect=60.0,
                    read=300.0,  # 5 min max silence on socket
                    write=60.0,
                    pool=60.0,
                ),
            )
        return self._client

    def _build_kwargs(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: int,
        thinking_budget: Optional[int],
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._model_id,
            "max_tokens": max_tokens,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_message}],
        }
        if (
            thinking_budget
            and thinking_budget >= self.MIN_THINKING_BUDGET
            and thinking_budget < max_tokens
        ):
            kwargs["thinking"] = {"type": "enabled", "budget_tokens": thinking_budget}
        return kwargs

    async def generate_json(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        response_schema: Optional[Any] = None,
        thinking_budget: Optional[int] = None,
        label: str = "",
    ) -> str:
        """Single call whose prompt asks for JSON. Returns the raw text."""
        client = self._get_client()
        start_time = time.time()
        kwargs = self._build_kwargs(system_prompt, user_message, max_tokens, thinking_budget)

        logger.info(f"[{label}] Anthropic JSON call: model={self._model_id}")
        response = await client.messages.create(**kwargs)

        raw_text = ""
        for block in response.content:
            if getattr(block, "type", "") == "text":
                raw_text += block.text

        logger.info(
            f"[{label}] Anthropic JSON call completed: {response.usage.input_tokens}+"
            f"{response.usage.output_tokens} tokens, "
            f"{int((time.time() - start_time) * 1000)}ms"
        )
        return raw_text

    async def stream_text(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        thinking_budget: Optional[int] = None,
        label: str = "",
        cancellation_check: Optional[Callable[[], bool]] = None,
    ) -> AsyncIterator[str]:
        """Stream text deltas as they arrive."""
        client = self._get_client()
        kwargs = self._build_kwargs(system_prompt, user_message, max_tokens, thinking_budget)

        logger.info(
            f"[{label}] Anthropic streaming: ~{len(user_message) // 4:,} input tokens, "
            f"max_tokens={max_tokens}"
        )

        async with client.messages.stream(**kwargs) as stream:
            async for text in _monitored(
                stream.text_stream, label, "Anthropic", cancellation_check
            ):
                if text:
                    yield text
