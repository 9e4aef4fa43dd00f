"""Completion provider invocation (OpenAI chat completions)."""
from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import structlog
from openai import APIConnectionError, APIStatusError

from api.shared.exceptions import (
    EmptyCompletionError,
    ProviderError,
    ProviderTimeoutError,
)
from core.settings import DEFAULT_SYSTEM_PROMPT
from infra.resources import CompletionProviderResource

logger = structlog.get_logger("fixie.chat.completion")

# Worth another attempt; everything else is a permanent rejection
TRANSIENT_STATUSES = frozenset({408, 409, 429})

TITLE_PROMPT = """Generate a concise, descriptive title for this IT support conversation. The title should:
- Be 3-8 words maximum
- Clearly indicate the main issue
- Be professional and technical
- Help users identify the conversation later

Conversation:
{conversation}

Title:"""


def is_transient_status(status: Optional[int]) -> bool:
    if status is None:
        return True
    return status in TRANSIENT_STATUSES or status >= 500


class CompletionInvoker:
    """Sends a conversation to the provider and returns the generated text.

    A fixed system instruction is prepended to the history. Transient failures
    are retried with exponential backoff; the whole call, retries included, is
    bounded by ``timeout_seconds``.
    """

    def __init__(
        self,
        provider: CompletionProviderResource,
        *,
        model: str = "gpt-4o-mini",
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_tokens: int = 500,
        temperature: float = 0.7,
        timeout_seconds: float = 120.0,
        max_retries: int = 3,
        backoff_initial_seconds: float = 1.0,
        backoff_max_seconds: float = 20.0,
        title_max_tokens: int = 100,
        title_temperature: float = 0.3,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.provider = provider
        self.model = model
        self.system_prompt = system_prompt
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff_initial_seconds = backoff_initial_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.title_max_tokens = title_max_tokens
        self.title_temperature = title_temperature
        self._sleep = sleep

    def build_messages(self, history: Sequence[Dict[str, str]]) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": self.system_prompt}]
        messages.extend({"role": m["role"], "content": m["content"]} for m in history)
        return messages

    async def complete(
        self, history: Sequence[Dict[str, str]], *, timeout_seconds: Optional[float] = None
    ) -> str:
        """Generate the assistant reply for ``history``.

        ``timeout_seconds`` narrows the budget to what the caller has left.
        """
        return await self._generate(
            self.build_messages(history),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            timeout_seconds=timeout_seconds,
        )

    async def generate_title(
        self, history: Sequence[Dict[str, str]], *, timeout_seconds: Optional[float] = None
    ) -> str:
        """Generate a short conversation title from ``history``."""
        transcript = "\n".join(f"{m['role']}: {m['content']}" for m in history)
        prompt = TITLE_PROMPT.format(conversation=transcript)
        title = await self._generate(
            [{"role": "user", "content": prompt}],
            max_tokens=self.title_max_tokens,
            temperature=self.title_temperature,
            timeout_seconds=timeout_seconds,
        )
        return title.strip().strip('"').strip()[:500]

    async def _generate(
        self,
        messages: List[Dict[str, str]],
        *,
        max_tokens: int,
        temperature: float,
        timeout_seconds: Optional[float] = None,
    ) -> str:
        budget = self.timeout_seconds
        if timeout_seconds is not None:
            budget = min(budget, timeout_seconds)
        if budget <= 0:
            raise ProviderTimeoutError(self.timeout_seconds)
        deadline = time.monotonic() + budget
        try:
            return await asyncio.wait_for(
                self._generate_with_retries(
                    messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    deadline=deadline,
                ),
                timeout=budget,
            )
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(budget) from e

    async def _generate_with_retries(
        self,
        messages: List[Dict[str, str]],
        *,
        max_tokens: int,
        temperature: float,
        deadline: float,
    ) -> str:
        try:
            client = self.provider.get_client()
        except RuntimeError as e:
            raise ProviderError(str(e), reason="not_configured") from e

        delay = self.backoff_initial_seconds
        attempt = 0
        while True:
            attempt += 1
            remaining = max(deadline - time.monotonic(), 0.001)
            try:
                resp = await client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    timeout=remaining,
                )
            except APIStatusError as e:
                error = ProviderError(
                    f"OpenAI API error: {e.status_code} {e.message}", status=e.status_code
                )
            except APIConnectionError as e:
                error = ProviderError(f"OpenAI connection error: {e}")
            else:
                return self._extract_text(resp)

            if not is_transient_status(error.status) or attempt > self.max_retries:
                raise error

            logger.warning(
                "chat.completion.retry",
                attempt=attempt,
                status=error.status,
                delay_seconds=delay,
                error=error.message,
            )
            await self._sleep(delay)
            delay = min(delay * 2, self.backoff_max_seconds)

    def _extract_text(self, resp: Any) -> str:
        content = resp.choices[0].message.content if resp.choices else None
        text = (content or "").strip()
        if not text:
            raise EmptyCompletionError(self.model)
        return text
