"""Gmail API client implementation.

This module provides a client for interacting with the Gmail API.

Notes:
    The Google API client is synchronous. This project wraps those calls using
    `asyncio.to_thread` so the rest of the codebase can remain async-friendly.
    The client's HTTP transport is not thread-safe, so each worker thread
    builds its own service object from the shared credentials.
"""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Any

import structlog

from travel_tracker.config import Settings
from travel_tracker.exceptions import AuthenticationError, ConfigurationError, GmailAPIError
from travel_tracker.gmail.parsing import message_to_raw_message
from travel_tracker.models import RawMessage

logger = structlog.get_logger()


class GmailClient:
    """Gmail API client for mailbox search and message retrieval.

    Implements the `MailProvider` protocol used by the scan pipeline.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize Gmail client.

        Args:
            settings: Application settings. If None, uses default settings.
        """
        from travel_tracker.config import get_settings

        self.settings = settings or get_settings()
        self._service: Any | None = None
        self._credentials: Any | None = None
        self._local = threading.local()
        logger.info("gmail_client_initialized")

    async def authenticate(self) -> None:
        """Authenticate with Gmail API using OAuth2.

        Raises:
            ConfigurationError: If the credentials file is missing.
            AuthenticationError: If authentication fails.
        """

        if self._service is not None:
            return

        credentials_path = Path(self.settings.gmail_credentials_path)
        token_path = Path(self.settings.gmail_token_path)
        scope = self.settings.gmail_scope

        if not credentials_path.exists():
            raise ConfigurationError(
                f"Gmail credentials file not found: {credentials_path}. "
                "See README.md -> Setup."
            )

        logger.info(
            "gmail_authentication_started",
            credentials_path=str(credentials_path),
            token_path=str(token_path),
            scope=scope,
        )

        try:
            self._credentials = await asyncio.to_thread(
                self._load_credentials,
                credentials_path,
                token_path,
                scope,
            )
            self._service = await asyncio.to_thread(self._build_service)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_authentication_failed", error=str(exc))
            raise AuthenticationError(str(exc)) from exc

        logger.info("gmail_authentication_completed")

    async def search(self, query: str, max_results: int) -> list[str]:
        """Return IDs of messages matching ``query``.

        Raises:
            GmailAPIError: If the API request fails.
        """

        messages = await self.list_messages(max_results=max_results, query=query)
        return [m["id"] for m in messages if isinstance(m.get("id"), str) and m["id"]]

    async def get_detail(self, message_id: str) -> RawMessage:
        """Fetch a full message and decode its headers and body.

        Raises:
            GmailAPIError: If the API request fails.
        """

        raw = await self.get_message(message_id, format="full")
        message = message_to_raw_message(raw)
        if not message.id:
            message = message.model_copy(update={"id": message_id})
        return message

    async def list_messages(
        self,
        max_results: int | None = None,
        query: str | None = None,
    ) -> list[dict[str, Any]]:
        """List messages from Gmail.

        Args:
            max_results: Maximum number of messages to return.
            query: Gmail search query string.

        Returns:
            List of message metadata dictionaries.

        Raises:
            GmailAPIError: If the API request fails.
        """

        await self._ensure_authenticated()

        if max_results is None:
            logger.info("listing_messages", max_results="all", query=query)
        else:
            logger.info("listing_messages", max_results=max_results, query=query)

        try:
            return await asyncio.to_thread(self._list_messages_sync, max_results, query)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_list_messages_failed", error=str(exc))
            raise GmailAPIError(str(exc)) from exc

    async def get_message(
        self,
        message_id: str,
        *,
        format: str = "full",
    ) -> dict[str, Any]:
        """Get a specific message by ID.

        Args:
            message_id: The Gmail message ID.
            format: Gmail message format (``full``, ``metadata``, ...).

        Returns:
            Message data dictionary.

        Raises:
            GmailAPIError: If the API request fails.
        """

        await self._ensure_authenticated()

        logger.debug("getting_message", message_id=message_id, format=format)

        try:
            return await asyncio.to_thread(self._get_message_sync, message_id, format)
        except Exception as exc:  # noqa: BLE001
            logger.warning("gmail_get_message_failed", message_id=message_id, error=str(exc))
            raise GmailAPIError(str(exc)) from exc

    async def _ensure_authenticated(self) -> None:
        if self._service is None:
            raise AuthenticationError(
                "Gmail client is not authenticated. Call await GmailClient.authenticate() first."
            )

    def _load_credentials(self, credentials_path: Path, token_path: Path, scope: str) -> Any:
        # Imported lazily to keep import-time cost low and tests fast.
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials
        from google_auth_oauthlib.flow import InstalledAppFlow

        creds: Credentials | None = None
        if token_path.exists():
            creds = Credentials.from_authorized_user_file(str(token_path), scopes=[scope])

        if creds is not None and creds.expired and creds.refresh_token:
            creds.refresh(Request())

        if creds is None or not creds.valid:
            flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes=[scope])
            creds = flow.run_local_server(port=0)
            token_path.parent.mkdir(parents=True, exist_ok=True)
            token_path.write_text(creds.to_json(), encoding="utf-8")

        return creds

    def _build_service(self) -> Any:
        from googleapiclient.discovery import build

        # cache_discovery=False prevents writing discovery docs to disk.
        return build("gmail", "v1", credentials=self._credentials, cache_discovery=False)

    def _thread_service(self) -> Any:
        service = getattr(self._local, "service", None)
        if service is None:
            service = self._build_service()
            self._local.service = service
        return service

    def _list_messages_sync(self, max_results: int | None, query: str | None) -> list[dict[str, Any]]:
        service = self._thread_service()
        user_id = "me"
        messages: list[dict[str, Any]] = []

        page_token: str | None = None
        while True:
            if max_results is not None and len(messages) >= max_results:
                break

            remaining = None if max_results is None else max_results - len(messages)
            per_page = 500 if remaining is None else min(500, remaining)

            request = (
                service.users()
                .messages()
                .list(userId=user_id, maxResults=per_page, q=query, pageToken=page_token)
            )
            response = request.execute()
            messages.extend(response.get("messages", []) or [])
            page_token = response.get("nextPageToken")
            if page_token is None:
                break

        return messages if max_results is None else messages[:max_results]

    def _get_message_sync(self, message_id: str, format: str) -> dict[str, Any]:
        service = self._thread_service()
        request = service.users().messages().get(userId="me", id=message_id, format=format)
        return request.execute()
