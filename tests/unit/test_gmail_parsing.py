"""Unit tests for Gmail message parsing helpers."""

import base64

from travel_tracker.gmail.parsing import decode_part_data, extract_body, message_to_raw_message


def _encode(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def _part(mime: str, text: str) -> dict:
    return {"mimeType": mime, "body": {"data": _encode(text)}}


def test_message_to_raw_message_parses_basic_fields(sample_email_data) -> None:
    message = message_to_raw_message(sample_email_data)

    assert message.id == "msg123456"
    assert message.subject == "Flight Confirmation - DL123"
    assert message.sender == "Delta <noreply@delta.com>"
    assert message.date == "Mon, 1 Jul 2024 09:00:00 +0000"
    assert message.snippet == "Your flight to Los Angeles is confirmed"


def test_plain_text_preferred_when_html_comes_first(sample_email_data) -> None:
    message = message_to_raw_message(sample_email_data)

    assert message.body == "Your flight DL123 is confirmed"


def test_plain_text_preferred_when_plain_comes_first() -> None:
    payload = {
        "mimeType": "multipart/alternative",
        "parts": [_part("text/plain", "plain body"), _part("text/html", "<p>html body</p>")],
    }

    assert extract_body(payload) == "plain body"


def test_nested_plain_part_beats_top_level_html() -> None:
    payload = {
        "mimeType": "multipart/mixed",
        "parts": [
            _part("text/html", "<p>outer html</p>"),
            {
                "mimeType": "multipart/alternative",
                "parts": [_part("text/plain", "inner plain")],
            },
        ],
    }

    assert extract_body(payload) == "inner plain"


def test_html_used_when_no_plain_part() -> None:
    payload = {
        "mimeType": "multipart/alternative",
        "parts": [_part("text/html", "<p>only html</p>")],
    }

    assert extract_body(payload) == "<p>only html</p>"


def test_single_part_body() -> None:
    payload = {"mimeType": "text/plain", "body": {"data": _encode("Booking ref ABC123")}}

    assert extract_body(payload) == "Booking ref ABC123"


def test_empty_payload_has_empty_body() -> None:
    assert extract_body({}) == ""
    assert message_to_raw_message({"id": "m1"}).body == ""


def test_duplicate_headers_keep_first() -> None:
    message = message_to_raw_message(
        {
            "id": "m1",
            "payload": {
                "headers": [
                    {"name": "Subject", "value": "first"},
                    {"name": "subject", "value": "second"},
                ]
            },
        }
    )

    assert message.subject == "first"


def test_decode_part_data_handles_missing_padding() -> None:
    assert decode_part_data(_encode("ab")) == "ab"
    assert decode_part_data(_encode("héllo wörld")) == "héllo wörld"
