"""Prompt contract for extracting trip details from travel emails."""

from __future__ import annotations


PROMPT_VERSION = "trip-extract-v1"

SYSTEM_PROMPT = (
    "You are a specialized travel email parser. Extract structured travel information "
    "from emails and return valid JSON. Be precise and only extract information that is "
    "explicitly stated in the email. Never infer or guess missing details."
)

_SCHEMA = """{
  "type": "flight" | "hotel" | "car_rental" | "vacation_rental" | "other",
  "airline": "string (for flights)",
  "flight_number": "string (for flights)",
  "aircraft_type": "string (for flights)",
  "departure_airport": "string (full airport name)",
  "departure_airport_code": "string (3-letter code)",
  "arrival_airport": "string (full airport name)",
  "arrival_airport_code": "string (3-letter code)",
  "departure_date": "YYYY-MM-DD",
  "departure_time": "HH:MM",
  "arrival_date": "YYYY-MM-DD",
  "arrival_time": "HH:MM",
  "duration": "string (e.g., '2h 30m')",
  "seat_number": "string",
  "seat_class": "string (Economy, Business, First)",
  "hotel_name": "string (for hotels and vacation rentals)",
  "hotel_address": "string (for hotels and vacation rentals)",
  "check_in_date": "YYYY-MM-DD",
  "check_out_date": "YYYY-MM-DD",
  "room_type": "string",
  "guests": number,
  "origin_city": "string",
  "destination_city": "string",
  "origin_country": "string",
  "destination_country": "string",
  "booking_reference": "string",
  "confirmation_number": "string",
  "passenger_name": "string",
  "cost": number,
  "currency": "string (ISO 4217 code)",
  "booking_date": "YYYY-MM-DD",
  "confidence_score": number (0-1),
  "extracted_data": {}
}"""

_GUIDELINES = """Important guidelines:
1. Only extract information that is explicitly stated in the email
2. Use null for fields that are not present or unclear
3. Ensure dates are in YYYY-MM-DD format
4. Ensure times are in HH:MM format (24-hour)
5. Set confidence_score based on how clear and complete the information is
6. If this is not a travel-related email, set confidence_score to 0
7. For costs, extract only the numeric value without currency symbols
8. Put any other relevant booking details in extracted_data
9. Return valid JSON only, no additional text or explanations"""


def build_trip_extraction_prompt(
    *,
    subject: str | None,
    sender: str | None,
    body: str,
    body_char_limit: int = 4000,
) -> str:
    """Build the user prompt for one email.

    Args:
        subject: Email subject.
        sender: Raw From header.
        body: Decoded email body.
        body_char_limit: Number of leading body characters included.

    Returns:
        Prompt string.
    """

    content = (body or "")[:body_char_limit]

    return (
        "Please analyze this email and extract travel information. "
        "Return a JSON object with the following structure:\n\n"
        f"{_SCHEMA}\n\n"
        "Email Details:\n"
        f"- Subject: {subject or ''}\n"
        f"- From: {sender or ''}\n"
        f"- Content: {content}\n\n"
        f"{_GUIDELINES}\n\n"
        "Return only the JSON object, nothing else.\n"
    )
