"""Ollama client implementation.

This module provides a completion client backed by a local Ollama server.
"""

from typing import Any, Optional

import httpx
import structlog

from travel_tracker.config import Settings
from travel_tracker.exceptions import LLMConnectionError, LLMInferenceError

logger = structlog.get_logger()


class OllamaClient:
    """Ollama LLM client for trip extraction.

    Sends chat requests to ``/api/chat`` with JSON output enabled and returns
    the assistant message text.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize Ollama client.

        Args:
            settings: Application settings. If None, uses default settings.
            http_client: Preconfigured HTTP client. If None, one is created.
        """
        from travel_tracker.config import get_settings

        self.settings = settings or get_settings()
        self._http = http_client or httpx.AsyncClient(
            base_url=self.settings.ollama_host.rstrip("/"),
            timeout=self.settings.extraction_timeout_seconds,
        )
        logger.info(
            "ollama_client_initialized",
            host=self.settings.ollama_host,
            model=self.settings.ollama_model,
        )

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Run one chat completion and return the reply text.

        Raises:
            LLMConnectionError: If unable to connect to Ollama.
            LLMInferenceError: If Ollama rejects the request or replies without content.
        """
        return await self.chat(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ]
        )

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: Optional[str] = None,
    ) -> str:
        """Have a chat conversation with Ollama.

        Args:
            messages: List of message dictionaries with 'role' and 'content'.
            model: Model name to use. If None, uses default from settings.

        Returns:
            The assistant reply content.

        Raises:
            LLMConnectionError: If unable to connect to Ollama.
            LLMInferenceError: If inference fails.
        """
        model = model or self.settings.ollama_model
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": False,
            "format": "json",
            "options": {
                "temperature": self.settings.llm_temperature,
                "num_predict": self.settings.llm_max_tokens,
            },
        }
        logger.debug("chat_started", model=model, message_count=len(messages))

        try:
            response = await self._http.post("/api/chat", json=payload)
            response.raise_for_status()
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise LLMConnectionError(f"Ollama unreachable at {self.settings.ollama_host}: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise LLMInferenceError(
                f"Ollama returned HTTP {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise LLMConnectionError(str(exc)) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMInferenceError("Ollama response was not JSON") from exc

        content = ((data.get("message") or {}).get("content") or "").strip()
        if not content:
            raise LLMInferenceError("Ollama returned an empty reply")
        return content

    async def aclose(self) -> None:
        await self._http.aclose()
