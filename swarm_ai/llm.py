"""LLM adapter via litellm."""

from typing import List, Dict, Any, Optional, Iterator
from dataclasses import dataclass

import litellm
litellm.suppress_debug_info = True

from .errors import RemoteCallError


@dataclass
class LLMResponse:
    content: Optional[str] = None


class LLMAdapter:
    """Unified LLM interface. Passes api_key/api_base directly to litellm,
    avoiding env-var pollution when switching between providers.

    Provider exceptions are re-raised as :class:`RemoteCallError` with the
    provider message kept intact, since retry classification reads it.
    """

    def __init__(self, model: str, temperature: float = 0.0,
                 max_tokens: int = 4096, api_base: Optional[str] = None,
                 api_key: Optional[str] = None,
                 request_timeout: Optional[float] = None):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_base = api_base
        self.api_key = api_key
        self.request_timeout = request_timeout

    def _base_kwargs(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.model, "messages": messages,
            "temperature": self.temperature, "max_tokens": self.max_tokens,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.request_timeout:
            kwargs["timeout"] = self.request_timeout
        return kwargs

    def chat(self, messages: List[Dict[str, Any]],
             response_format: Optional[Dict[str, Any]] = None) -> LLMResponse:
        """Single-shot completion returning one text blob."""
        kwargs = self._base_kwargs(messages)
        if response_format:
            kwargs["response_format"] = response_format

        try:
            response = litellm.completion(**kwargs)
        except litellm.exceptions.AuthenticationError as e:
            raise RemoteCallError(f"Auth failed. Check API key.\n{e}", cause=e)
        except litellm.exceptions.APIConnectionError as e:
            raise RemoteCallError(
                f"Cannot connect: model={self.model}, base={self.api_base or 'default'}\n{e}",
                cause=e,
            )
        except Exception as e:
            raise RemoteCallError(f"LLM error: {type(e).__name__}: {e}", cause=e)

        msg = response.choices[0].message
        return LLMResponse(content=msg.content)

    def chat_stream(self, messages: List[Dict[str, Any]]) -> Iterator[str]:
        """Streaming completion. Yields incremental text fragments.

        Chunks without text (role headers, usage-only tails) are skipped.
        """
        kwargs = self._base_kwargs(messages)
        kwargs["stream"] = True

        try:
            response_stream = litellm.completion(**kwargs)
        except Exception as e:
            raise RemoteCallError(f"LLM error: {type(e).__name__}: {e}", cause=e)

        try:
            for chunk in response_stream:
                if not chunk.choices:
                    continue
                text = getattr(chunk.choices[0].delta, "content", None)
                if text:
                    yield text
        except Exception as e:
            raise RemoteCallError(f"Stream interrupted: {type(e).__name__}: {e}", cause=e)
