"""OpenAI chat completion client."""

from __future__ import annotations

from typing import Any

import structlog
from openai import APIConnectionError, APIError, APITimeoutError, AsyncOpenAI

from travel_tracker.config import Settings
from travel_tracker.exceptions import ConfigurationError, LLMConnectionError, LLMInferenceError

logger = structlog.get_logger()


class OpenAIClient:
    """Completion client backed by the OpenAI chat completions API."""

    def __init__(self, settings: Settings | None = None, client: Any | None = None) -> None:
        from travel_tracker.config import get_settings

        self.settings = settings or get_settings()
        if client is None:
            if not self.settings.openai_api_key:
                raise ConfigurationError(
                    "TRAVEL_TRACKER_OPENAI_API_KEY must be set when llm_provider=openai"
                )
            client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.extraction_timeout_seconds,
                max_retries=0,
            )
        self._client = client
        logger.info("openai_client_initialized", model=self.settings.openai_model)

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.settings.openai_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.settings.llm_temperature,
                max_tokens=self.settings.llm_max_tokens,
                response_format={"type": "json_object"},
            )
        except (APIConnectionError, APITimeoutError) as exc:
            raise LLMConnectionError(f"OpenAI unreachable: {exc}") from exc
        except APIError as exc:
            raise LLMInferenceError(f"OpenAI request failed: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise LLMInferenceError("OpenAI returned an empty reply")
        return content

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()
