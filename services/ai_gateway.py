"""
AI Gateway - single entry point for generative text calls

Builds the system instruction and conversation payload, retries transient
upstream failures with backoff and trips a circuit breaker after repeated
failures. Providers are interchangeable: anything with an async
``complete(system_instruction, turns)`` method returning text.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from config.settings import settings

logger = logging.getLogger(__name__)

MAX_TURN_CHARS = 2000
RETRY_DELAYS = (1.0, 3.0)
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

Turn = Dict[str, str]
MessageOrHistory = Union[str, Sequence[Dict[str, Any]]]


class AIGatewayError(Exception):
    """Base class for gateway failures."""


class AIServiceUnavailableError(AIGatewayError):
    """Upstream failed after retries, or the circuit is open."""


class UpstreamError(AIGatewayError):
    """A single provider call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class EmptyCompletionError(UpstreamError):
    def __init__(self, message: str = "AI response contained no text"):
        super().__init__(message, retryable=False)


class CircuitBreaker:
    """
    Consecutive-failure counter. ``failure_threshold`` failures open the
    circuit for ``reset_timeout`` seconds; after that a call is let through
    again and one success closes it.

    Not locked: concurrent requests may race on the counter.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self.failures = 0
        self.opened_at: Optional[float] = None

    def is_open(self) -> bool:
        if self.opened_at is None:
            return False
        if self._clock() - self.opened_at >= self.reset_timeout:
            return False
        return True

    def record_success(self) -> None:
        self.failures = 0
        self.opened_at = None

    def record_failure(self) -> None:
        self.failures += 1
        if self.failures >= self.failure_threshold:
            if self.opened_at is None or not self.is_open():
                logger.error(f"AI circuit breaker opened after {self.failures} consecutive failures")
            self.opened_at = self._clock()


def normalize_turns(message_or_history: MessageOrHistory) -> List[Turn]:
    """
    Convert a prompt string or a list of ``{role, content}`` dicts into
    provider-neutral turns with role ``user`` or ``model``.
    Every turn is cut to MAX_TURN_CHARS.
    """
    if isinstance(message_or_history, str):
        return [{"role": "user", "text": message_or_history[:MAX_TURN_CHARS]}]

    turns = []
    for item in message_or_history:
        role = "model" if item.get("role") in ("mentor", "model", "assistant") else "user"
        content = str(item.get("content") or "")[:MAX_TURN_CHARS]
        turns.append({"role": role, "text": content})
    return turns


def build_system_instruction(system_instruction: str, context_data: Optional[Dict[str, Any]] = None) -> str:
    """
    Append the optional user profile and app context to the base instruction.

    context_data keys:
        user_context: dict with name / zodiac_sign / birth_date
        app_context: free text (recent readings, moon phase)
    """
    if not context_data:
        return system_instruction

    parts = [system_instruction]
    user_context = context_data.get("user_context")
    if user_context:
        lines = []
        if user_context.get("name"):
            lines.append(f"- Name: {user_context['name']}")
        if user_context.get("zodiac_sign"):
            lines.append(f"- Zodiac sign: {user_context['zodiac_sign']}")
        if user_context.get("birth_date"):
            lines.append(f"- Birth date: {user_context['birth_date']}")
        if lines:
            parts.append("USER PROFILE:\n" + "\n".join(lines))

    app_context = context_data.get("app_context")
    if app_context:
        parts.append(f"CONTEXT:\n{app_context}")

    return "\n\n".join(parts)


class GeminiProvider:
    """Google Gemini over its REST API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    def build_payload(self, system_instruction: str, turns: List[Turn]) -> Dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "contents": [{"role": turn["role"], "parts": [{"text": turn["text"]}]} for turn in turns],
            "generationConfig": {
                "temperature": 0.9,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": 1024,
            },
        }

    async def complete(self, system_instruction: str, turns: List[Turn]) -> str:
        url = f"{GEMINI_API_BASE}/{self.model}:generateContent"
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        payload = self.build_payload(system_instruction, turns)

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                res = await client.post(url, headers=headers, json=payload)
        except httpx.RequestError as e:
            raise UpstreamError(f"Gemini request failed: {e}", retryable=True) from e

        if not res.is_success:
            raise UpstreamError(
                f"Gemini API error {res.status_code}: {res.text[:200]}",
                status_code=res.status_code,
                retryable=res.status_code in RETRYABLE_STATUS_CODES,
            )

        data = res.json()
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise EmptyCompletionError()
        if not text:
            raise EmptyCompletionError()
        return text


class OpenAIProvider:
    """OpenAI chat completions via the official SDK."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout: float = 30.0, client: Optional[AsyncOpenAI] = None):
        self.model = model
        # Retries are the gateway's job
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    async def complete(self, system_instruction: str, turns: List[Turn]) -> str:
        messages = [{"role": "system", "content": system_instruction}]
        for turn in turns:
            messages.append({
                "role": "assistant" if turn["role"] == "model" else "user",
                "content": turn["text"],
            })
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0.9,
                max_tokens=1024,
            )
        except APIStatusError as e:
            raise UpstreamError(
                f"OpenAI API error {e.status_code}: {e.message}",
                status_code=e.status_code,
                retryable=e.status_code in RETRYABLE_STATUS_CODES,
            ) from e
        except APIConnectionError as e:
            raise UpstreamError(f"OpenAI request failed: {e}", retryable=True) from e

        if not response.choices or not response.choices[0].message.content:
            raise EmptyCompletionError()
        return response.choices[0].message.content.strip()


class AIGateway:
    """
    Provider wrapper adding retry with backoff and a circuit breaker.
    """

    def __init__(
        self,
        provider,
        breaker: Optional[CircuitBreaker] = None,
        retry_delays: Sequence[float] = RETRY_DELAYS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.breaker = breaker or CircuitBreaker()
        self.retry_delays = tuple(retry_delays)
        self._sleep = sleep

    async def generate(
        self,
        system_instruction: str,
        message_or_history: MessageOrHistory,
        context_data: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Run one generation.

        Raises:
            AIServiceUnavailableError: circuit open, or the call failed after retries
        """
        if self.breaker.is_open():
            logger.warning("AI circuit breaker is open, failing fast")
            raise AIServiceUnavailableError("AI service temporarily unavailable")

        instruction = build_system_instruction(system_instruction, context_data)
        turns = normalize_turns(message_or_history)

        try:
            text = await self._call_with_retry(instruction, turns)
        except UpstreamError as e:
            self.breaker.record_failure()
            logger.error(f"AI generation failed: {e}")
            raise AIServiceUnavailableError("AI service unavailable") from e

        self.breaker.record_success()
        return text

    async def _call_with_retry(self, instruction: str, turns: List[Turn]) -> str:
        attempt = 0
        while True:
            try:
                return await self.provider.complete(instruction, turns)
            except UpstreamError as e:
                if not e.retryable or attempt >= len(self.retry_delays):
                    raise
                delay = self.retry_delays[attempt]
                attempt += 1
                logger.warning(f"AI call failed ({e}); retry {attempt}/{len(self.retry_delays)} in {delay}s")
                await self._sleep(delay)


def build_provider():
    """Pick the provider named by AI_PROVIDER."""
    if settings.ai_provider.lower() == "openai":
        if not settings.openai_api_key:
            logger.warning("OPENAI_API_KEY is not set. AI calls will fail.")
        return OpenAIProvider(
            api_key=settings.openai_api_key or "",
            model=settings.openai_model,
            timeout=settings.ai_request_timeout,
        )
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set. AI calls will fail.")
    return GeminiProvider(
        api_key=settings.gemini_api_key or "",
        model=settings.gemini_model,
        timeout=settings.ai_request_timeout,
    )


_gateway: Optional[AIGateway] = None


def get_ai_gateway() -> AIGateway:
    """
    FastAPI dependency returning the process-wide gateway. The breaker
    state must be shared by every request, so the instance is built once.
    """
    global _gateway
    if _gateway is None:
        _gateway = AIGateway(build_provider())
    return _gateway
