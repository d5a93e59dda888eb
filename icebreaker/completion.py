"""
Completion Client

Turns a user profile + event context into a chat-completion request and
the model's reply into a validated batch of icebreakers.

Outcomes of `CompletionClient.generate`:
  - API answered and the content honours the JSON contract
        → success, provenance AI
  - API answered but the content is not the required JSON array
        → success, the embedded generic set, provenance GENERIC
  - API unreachable, timed out, returned non-2xx, or no key configured
        → failure (never an exception) with `fallbackRequired` set and
          429 labelled as rate limiting by the classifier
"""

from __future__ import annotations

import json
import logging
import re
import time
import uuid
from typing import Any, Optional

import openai
from pydantic import TypeAdapter, ValidationError

from .classifier import classify
from .models import (
    Difficulty,
    GenerationFailure,
    GenerationResult,
    IcebreakerRecord,
    ModelIcebreaker,
    Provenance,
    UserProfile,
)
from .prompts import build_messages

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-3.5-turbo"
TEMPERATURE = 0.8
MAX_TOKENS = 1500
DEFAULT_TIMEOUT = 20.0

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?|\n?\s*```\s*$")
_BATCH_ADAPTER = TypeAdapter(list[ModelIcebreaker])

# Used when the model answers but ignores the output contract.
GENERIC_ICEBREAKERS: tuple[tuple[str, str, Difficulty], ...] = (
    ("What's the most interesting thing that happened to you this week?", "personal", Difficulty.EASY),
    ("If you could have dinner with anyone, who would it be and why?", "fun", Difficulty.MEDIUM),
    ("What's a skill you'd love to learn?", "personal", Difficulty.EASY),
    ("What's the best advice you've ever received?", "personal", Difficulty.MEDIUM),
    ("If you could travel anywhere right now, where would you go?", "fun", Difficulty.EASY),
    ("What's something you're passionate about that might surprise people?", "personal", Difficulty.HARD),
)


class MalformedOutputError(ValueError):
    """Model content does not satisfy the JSON array contract."""


# ──────────────────────────── Parsing ────────────────────────────

def _strip_fences(content: str) -> str:
    return _FENCE_RE.sub("", content.strip()).strip()


def parse_icebreakers(content: Optional[str]) -> list[ModelIcebreaker]:
    """
    Validate raw model content against the output contract.

    Raises:
        MalformedOutputError: content is empty, not JSON, not an array,
            an empty array, or has an element missing/invalid fields.
    """
    if not content or not content.strip():
        raise MalformedOutputError("empty completion content")
    try:
        data = json.loads(_strip_fences(content))
    except json.JSONDecodeError as e:
        raise MalformedOutputError(f"content is not JSON: {e}") from e
    if not isinstance(data, list) or not data:
        raise MalformedOutputError(f"expected a non-empty JSON array, got {type(data).__name__}")
    try:
        return _BATCH_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise MalformedOutputError(f"array elements do not match the contract: {e.error_count()} errors") from e


def _batch_prefix(provenance: Provenance) -> str:
    return "ai" if provenance == Provenance.AI else provenance.value


def to_records(
    items: list[ModelIcebreaker],
    provenance: Provenance = Provenance.AI,
    now_ms: Optional[int] = None,
) -> list[IcebreakerRecord]:
    """Assign globally unique ids (`<prefix>-<epoch ms>-<random>-<index>`) and wrap as records."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    prefix = f"{_batch_prefix(provenance)}-{stamp}-{uuid.uuid4().hex[:8]}"
    return [
        IcebreakerRecord(
            id=f"{prefix}-{index}",
            text=item.text,
            category=item.category,
            difficulty=item.difficulty,
            provenance=provenance,
        )
        for index, item in enumerate(items)
    ]


def generic_icebreakers(now_ms: Optional[int] = None) -> list[IcebreakerRecord]:
    items = [ModelIcebreaker(text=t, category=c, difficulty=d) for t, c, d in GENERIC_ICEBREAKERS]
    return to_records(items, Provenance.GENERIC, now_ms)


# ──────────────────────────── Client ────────────────────────────

class CompletionClient:
    """
    Calls the chat-completion API for one generation and maps the reply
    onto `GenerationResult`. Holds no per-request state, so one instance
    serves concurrent requests.
    """

    def __init__(
        self,
        llm_client=None,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 1,
    ):
        """
        Args:
            llm_client: An `openai.AsyncOpenAI`-compatible client. If None,
                        every call reports a fallback-required failure.
            model:      Chat model identifier.
            timeout:    Per-attempt timeout in seconds.
            max_retries: Extra attempts for connection errors, timeouts and 5xx.
        """
        self.llm_client = llm_client
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries

    @classmethod
    def from_api_key(cls, api_key: Optional[str], **kwargs: Any) -> CompletionClient:
        llm_client = None
        if api_key:
            # Retries are handled here so 429 is never retried.
            llm_client = openai.AsyncOpenAI(api_key=api_key, max_retries=0)
            logger.info("Initialized with OpenAI LLM client")
        else:
            logger.warning("OPENAI_API_KEY is not set; AI generation disabled, curated fallback only")
        return cls(llm_client=llm_client, **kwargs)

    @property
    def enabled(self) -> bool:
        return self.llm_client is not None

    async def generate(self, profile: UserProfile, event_type: str, event_name: Optional[str]) -> GenerationResult:
        """Run one generation. Never raises for API, transport or parsing failures."""
        if self.llm_client is None:
            return GenerationResult(
                success=False,
                failure=GenerationFailure(error="Completion API key not configured"),
            )

        messages = build_messages(profile, event_type, event_name)
        try:
            content = await self._complete(messages)
        except openai.APIStatusError as e:
            logger.error("Completion API error: %s %s", e.status_code, e.message)
            return self._failure(f"Completion API error: {e.status_code}", e.status_code, _error_details(e))
        except (openai.APITimeoutError, openai.APIConnectionError) as e:
            logger.error("Completion API unreachable: %s", e)
            return self._failure("Completion API unreachable", None, str(e))

        logger.debug("Generated content: %s", content)
        try:
            items = parse_icebreakers(content)
        except MalformedOutputError as e:
            logger.warning("Failed to parse model output (%s); using generic icebreakers", e)
            return GenerationResult(success=True, icebreakers=generic_icebreakers(), provenance=Provenance.GENERIC)

        return GenerationResult(success=True, icebreakers=to_records(items), provenance=Provenance.AI)

    async def _complete(self, messages: list[dict[str, str]]) -> Optional[str]:
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                response = await self.llm_client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=TEMPERATURE,
                    max_tokens=MAX_TOKENS,
                    timeout=self.timeout,
                )
                if not response.choices:
                    return None
                return response.choices[0].message.content
            except (openai.APIStatusError, openai.APITimeoutError, openai.APIConnectionError) as e:
                if attempt >= attempts or not _is_transient(e):
                    raise
                logger.warning("Completion attempt %d/%d failed (%s), retrying", attempt, attempts, e)
        return None

    @staticmethod
    def _failure(error: str, status: Optional[int], details: Optional[str]) -> GenerationResult:
        classification = classify(status)
        return GenerationResult(
            success=False,
            failure=GenerationFailure(
                error=error,
                details=details,
                is_rate_limit=classification.is_rate_limit,
                fallback_required=True,
            ),
        )


def _is_transient(error: Exception) -> bool:
    if isinstance(error, openai.RateLimitError):
        return False
    if isinstance(error, openai.APIStatusError):
        return error.status_code >= 500
    return isinstance(error, (openai.APITimeoutError, openai.APIConnectionError))


def _error_details(error: openai.APIStatusError) -> str:
    if error.body is not None:
        return json.dumps(error.body) if not isinstance(error.body, str) else error.body
    return error.message
