"""Language-model client used by AI, conditional and trigger executors."""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Any, Optional
import requests
from shared.exceptions import NodeExecutionError


@dataclass
class LLMResponse:
    text: str
    tokens_used: int = 0
    model: Optional[str] = None


class LLMClient(ABC):

    @abstractmethod
    def chat(self, messages: List[Dict[str, str]], options: Optional[Dict[str, Any]] = None) -> LLMResponse:
        ...

    def generate_text(self, prompt: str, options: Optional[Dict[str, Any]] = None) -> LLMResponse:
        return self.chat([{"role": "user", "content": prompt}], options)


class HttpLLMClient(LLMClient):
    """Chat-completions client for OpenAI-compatible endpoints"""

    def __init__(self, api_url: str = None, api_key: str = None, default_model: str = None,
                 timeout_seconds: float = None, session: requests.Session = None):
        self.api_url = api_url or os.getenv("LLM_API_URL", "https://api.openai.com/v1/chat/completions")
        self.api_key = api_key if api_key is not None else os.getenv("LLM_API_KEY", "")
        self.default_model = default_model or os.getenv("LLM_DEFAULT_MODEL", "gpt-4o-mini")
        self.timeout_seconds = timeout_seconds or float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
        self.session = session or requests.Session()

    def chat(self, messages: List[Dict[str, str]], options: Optional[Dict[str, Any]] = None) -> LLMResponse:
        options = options or {}
        model = options.get("model") or self.default_model

        payload: Dict[str, Any] = {"model": model, "messages": messages}
        if options.get("temperature") is not None:
            payload["temperature"] = options["temperature"]
        if options.get("maxTokens") is not None:
            payload["max_tokens"] = options["maxTokens"]

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = self.session.post(self.api_url, json=payload, headers=headers, timeout=self.timeout_seconds)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.Timeout:
            raise NodeExecutionError(f"LLM request timed out after {self.timeout_seconds}s", model=model)
        except requests.exceptions.RequestException as e:
            raise NodeExecutionError(f"LLM request failed: {e}", model=model)
        except ValueError:
            raise NodeExecutionError("LLM returned a non-JSON response", model=model)

        try:
            text = body["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            raise NodeExecutionError("LLM response did not contain a message", model=model)

        usage = body.get("usage") or {}
        tokens = usage.get("total_tokens") or usage.get("tokensUsed") or 0

        logging.debug("LLM call completed", extra={"model": model, "tokens_used": tokens})
        return LLMResponse(text=text, tokens_used=int(tokens), model=body.get("model", model))
