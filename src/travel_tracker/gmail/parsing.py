"""Helpers for parsing Gmail API messages into internal models."""

from __future__ import annotations

import base64
import binascii
from typing import Any

from travel_tracker.models import RawMessage


def _header_map(message: dict[str, Any]) -> dict[str, str]:
    payload = message.get("payload") or {}
    headers = payload.get("headers") or []
    result: dict[str, str] = {}
    for h in headers:
        name = h.get("name")
        value = h.get("value")
        if isinstance(name, str) and isinstance(value, str):
            # Gmail can include duplicates; keep the first.
            result.setdefault(name.lower(), value)
    return result


def decode_part_data(data: str) -> str:
    """Decode a Gmail base64url body payload to text."""

    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, ValueError, UnicodeEncodeError):
        return ""
    return raw.decode("utf-8", errors="replace")


def _mime_type(part: dict[str, Any]) -> str:
    return (part.get("mimeType") or "").lower()


def _walk(part: dict[str, Any], found: dict[str, str]) -> None:
    mime = _mime_type(part)
    data = (part.get("body") or {}).get("data")

    if data:
        if mime.startswith("text/html") and "html" not in found:
            found["html"] = decode_part_data(data)
        # A body without a MIME type is treated as plain text.
        elif (mime.startswith("text/plain") or not mime) and "plain" not in found:
            found["plain"] = decode_part_data(data)

    for child in part.get("parts") or []:
        if "plain" in found and "html" in found:
            return
        _walk(child, found)


def extract_body(payload: dict[str, Any]) -> str:
    """Return the message body text.

    The first ``text/plain`` part anywhere in the (possibly nested) multipart
    tree wins. The first ``text/html`` part is used only when the tree has no
    plain text part at all.
    """

    found: dict[str, str] = {}
    _walk(payload or {}, found)
    if "plain" in found:
        return found["plain"]
    return found.get("html", "")


def message_to_raw_message(message: dict[str, Any]) -> RawMessage:
    """Convert a Gmail API message (format=full) to RawMessage.

    Args:
        message: Gmail API message dict.

    Returns:
        RawMessage: Headers and decoded body.
    """

    hm = _header_map(message)

    return RawMessage(
        id=str(message.get("id") or ""),
        subject=hm.get("subject") or "",
        sender=hm.get("from") or "",
        date=hm.get("date") or "",
        snippet=message.get("snippet") or "",
        body=extract_body(message.get("payload") or {}),
    )
