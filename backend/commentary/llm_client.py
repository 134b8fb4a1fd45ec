"""
LLM Client

OpenAI GPT-4o wrapper with retry logic and token tracking, used only for
qualitative commentary on simulation runs.
"""

import os
import logging
import time
from typing import Optional, Dict, Any
from dataclasses import dataclass
import asyncio

import openai

logger = logging.getLogger(__name__)


class CommentaryError(Exception):
    """Raised when commentary cannot be produced (not configured, transport or parse failure)."""


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


@dataclass
class CommentaryConfig:
    """Configuration for the commentary LLM client"""
    api_key: Optional[str] = None
    model: Optional[str] = None
    temperature: float = 0.3  # Lower for more consistent outputs
    max_tokens: int = 1200
    timeout: Optional[float] = None  # seconds, bounds the whole commentary step
    max_retries: Optional[int] = None
    retry_delay: float = 1.0

    def __post_init__(self):
        if not self.api_key:
            self.api_key = os.getenv("OPENAI_API_KEY")
        if not self.model:
            self.model = os.getenv("SIMULATION_LLM_MODEL", "gpt-4o")
        if self.timeout is None:
            self.timeout = _env_float("SIMULATION_LLM_TIMEOUT", 30.0)
        if self.max_retries is None:
            self.max_retries = _env_int("SIMULATION_LLM_MAX_RETRIES", 3)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


@dataclass
class LLMResponse:
    """Response from LLM"""
    text: str
    tokens_used: int
    model: str
    finish_reason: str
    latency_ms: int


@dataclass
class TokenUsage:
    """Token usage tracking"""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def add(self, prompt: int, completion: int):
        self.prompt_tokens += prompt
        self.completion_tokens += completion
        self.total_tokens += prompt + completion


class CommentaryLLMClient:
    """
    OpenAI GPT-4o client for simulation commentary.

    Features:
    - Async API calls
    - Retry with exponential backoff
    - Token usage tracking
    """

    SYSTEM_PROMPT = """You are a senior financial analyst reviewing the output of a deterministic
financial simulation engine.

Guidelines:
1. All numbers are pre-computed - never recalculate or invent figures
2. Reference the figures you are given
3. Provide specific, actionable recommendations tied to adjustable parameters
4. Flag risks and uncertainties clearly
5. Use professional financial language
6. Respond with JSON only
"""

    def __init__(self, config: Optional[CommentaryConfig] = None, client: Any = None):
        self.config = config or CommentaryConfig()
        self.usage = TokenUsage()
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None or self.config.enabled

    def _ensure_client(self):
        """Lazy initialization of OpenAI client"""
        if self._client is not None:
            return self._client
        if not self.config.enabled:
            raise CommentaryError("No OpenAI API key configured - commentary disabled")
        self._client = openai.AsyncOpenAI(api_key=self.config.api_key)
        return self._client

    async def aclose(self):
        """Close the underlying OpenAI client and its connection pool, if one was created."""
        if self._client is None:
            return
        await self._client.close()
        self._client = None
        logger.info("Commentary LLM client closed")

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Get a completion from the LLM.

        Args:
            prompt: The user prompt
            system_prompt: Override system prompt
            temperature: Override temperature
            max_tokens: Override max tokens

        Returns:
            LLMResponse with text and metadata

        Raises:
            CommentaryError: If the client is not configured or every attempt failed
        """
        client = self._ensure_client()

        messages = [
            {"role": "system", "content": system_prompt or self.SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

        start_time = time.perf_counter()

        for attempt in range(self.config.max_retries):
            try:
                response = await client.chat.completions.create(
                    model=self.config.model,
                    messages=messages,
                    temperature=temperature if temperature is not None else self.config.temperature,
                    max_tokens=max_tokens or self.config.max_tokens,
                    timeout=self.config.timeout,
                )

                latency_ms = int((time.perf_counter() - start_time) * 1000)

                usage = response.usage
                self.usage.add(usage.prompt_tokens, usage.completion_tokens)

                return LLMResponse(
                    text=response.choices[0].message.content or "",
                    tokens_used=usage.total_tokens,
                    model=response.model,
                    finish_reason=response.choices[0].finish_reason,
                    latency_ms=latency_ms,
                )

            except Exception as e:
                if attempt < self.config.max_retries - 1:
                    delay = self.config.retry_delay * (2 ** attempt)
                    logger.warning(f"LLM call failed (attempt {attempt + 1}), retrying in {delay}s: {e}")
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"LLM call failed after {self.config.max_retries} attempts: {e}")
                    raise CommentaryError(str(e)) from e

        raise CommentaryError("LLM client configured with zero retries")

    def get_usage_stats(self) -> Dict[str, Any]:
        """Get token usage statistics"""
        return {
            "prompt_tokens": self.usage.prompt_tokens,
            "completion_tokens": self.usage.completion_tokens,
            "total_tokens": self.usage.total_tokens,
        }
