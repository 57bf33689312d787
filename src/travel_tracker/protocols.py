"""Capability interfaces the scan pipeline depends on.

The pipeline only talks to a mailbox and a language model through these
protocols, so tests and alternative providers can stand in for Gmail,
Ollama or OpenAI.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from travel_tracker.models import RawMessage


@runtime_checkable
class MailProvider(Protocol):
    """Search and fetch access to a mailbox."""

    async def search(self, query: str, max_results: int) -> list[str]:
        """Return IDs of messages matching ``query``, newest first."""
        ...

    async def get_detail(self, message_id: str) -> RawMessage:
        """Fetch one message with its decoded body."""
        ...


@runtime_checkable
class CompletionClient(Protocol):
    """A chat completion backend returning raw text."""

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        ...
