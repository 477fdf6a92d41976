"""Retry/backoff wrappers around one streaming or one structured remote call."""

import json
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

import litellm

from ..errors import (
    FatalRemoteError,
    RemoteCallError,
    StructuredResponseError,
    TransientRemoteError,
)
from ..logger import get_logger

_log = get_logger(__name__)

# Lower-cased message fragments that mark a transient server-side condition.
_RETRYABLE_MARKERS = ("503", "unavailable", "500", "internal", "rate limit")

_RETRYABLE_TYPES = (
    litellm.exceptions.RateLimitError,
    litellm.exceptions.ServiceUnavailableError,
    litellm.exceptions.InternalServerError,
)

StreamEvent = Tuple[str, Any]


@dataclass
class RetryPolicy:
    """Bounds for one logical remote call. Delays are in seconds."""

    max_retries: int = 5
    initial_delay: float = 1.0
    jitter_max: float = 1.0

    def __post_init__(self):
        self.max_retries = max(1, int(self.max_retries))
        self.initial_delay = max(0.0, float(self.initial_delay))
        self.jitter_max = max(0.0, float(self.jitter_max))

    def delay_for(self, attempt: int) -> float:
        """Backoff after the 1-based ``attempt`` failed: exponential base plus jitter in [0, jitter_max)."""
        return self.initial_delay * (2 ** (attempt - 1)) + random.random() * self.jitter_max


def is_retryable(error: BaseException) -> bool:
    """Classify an error as transient by type or by its message text."""
    cause = getattr(error, "cause", None)
    if isinstance(error, _RETRYABLE_TYPES) or isinstance(cause, _RETRYABLE_TYPES):
        return True
    message = str(error).lower()
    return any(marker in message for marker in _RETRYABLE_MARKERS)


def _escalate(error: BaseException, attempts: int, retryable: bool) -> RemoteCallError:
    if isinstance(error, FatalRemoteError):
        error.attempts = attempts
        return error
    cause = getattr(error, "cause", None) or error
    error_cls = TransientRemoteError if retryable else FatalRemoteError
    return error_cls(str(error) or type(error).__name__, attempts=attempts, cause=cause)


def _give_up(error: Exception, attempts: int, retryable: bool):
    escalated = _escalate(error, attempts, retryable)
    if escalated is error:
        raise error
    raise escalated from error


def stream_with_retry(
    llm,
    prompt: str,
    policy: Optional[RetryPolicy] = None,
    label: str = "stream",
) -> Iterator[StreamEvent]:
    """Stream one prompt, restarting the whole call on transient failure.

    Yields ``(event_type, data)`` tuples:
      "attempt" — int: a new attempt is starting; text from earlier attempts is void
      "text"    — str: incremental text from the current attempt

    Raises :class:`TransientRemoteError` when retries are exhausted and
    :class:`FatalRemoteError` on a non-retryable failure.
    """
    policy = policy or RetryPolicy()
    messages = [{"role": "user", "content": prompt}]
    attempt = 0
    while True:
        attempt += 1
        if attempt > 1:
            yield ("attempt", attempt)
        try:
            for fragment in llm.chat_stream(messages):
                yield ("text", fragment)
            return
        except Exception as e:
            retryable = is_retryable(e)
            if attempt >= policy.max_retries or not retryable:
                _log.error("%s failed (attempt %d/%d): not retrying: %s",
                           label, attempt, policy.max_retries, e)
                _give_up(e, attempt, retryable)
            delay = policy.delay_for(attempt)
            _log.warning("%s failed (attempt %d/%d). Retrying in %.1fs: %s",
                         label, attempt, policy.max_retries, delay, e)
            time.sleep(delay)


def strip_code_fence(text: str) -> str:
    """Remove an optional leading ```json / ``` marker and trailing ```."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_structured(text: str) -> Any:
    cleaned = strip_code_fence(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise StructuredResponseError(
            f"Malformed structured response: {e.msg} at position {e.pos}",
            raw=text, cause=e,
        )


def complete_structured(
    llm,
    prompt: str,
    system: Optional[str] = None,
    schema: Optional[Dict[str, Any]] = None,
    schema_name: str = "response",
    history: Optional[List[Dict[str, str]]] = None,
    policy: Optional[RetryPolicy] = None,
    label: str = "structured call",
) -> Any:
    """Single-shot call whose reply must parse as JSON.

    Parse failures are fatal and never retried; transport failures follow
    the same transient/fatal classification as streaming calls.
    """
    policy = policy or RetryPolicy()
    messages: List[Dict[str, str]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.extend(history or [])
    messages.append({"role": "user", "content": prompt})

    if schema:
        response_format = {
            "type": "json_schema",
            "json_schema": {"name": schema_name, "schema": schema},
        }
    else:
        response_format = {"type": "json_object"}

    attempt = 0
    while True:
        attempt += 1
        try:
            response = llm.chat(messages, response_format=response_format)
            return parse_structured(response.content or "")
        except StructuredResponseError as e:
            _log.error("%s returned malformed JSON (attempt %d/%d): not retrying",
                       label, attempt, policy.max_retries)
            e.attempts = attempt
            raise
        except Exception as e:
            retryable = is_retryable(e)
            if attempt >= policy.max_retries or not retryable:
                _log.error("%s failed (attempt %d/%d): not retrying: %s",
                           label, attempt, policy.max_retries, e)
                _give_up(e, attempt, retryable)
            delay = policy.delay_for(attempt)
            _log.warning("%s failed (attempt %d/%d). Retrying in %.1fs: %s",
                         label, attempt, policy.max_retries, delay, e)
            time.sleep(delay)
