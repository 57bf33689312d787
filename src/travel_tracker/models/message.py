"""Source email model.

Only the fields trip extraction needs are kept: the provider ID, the three
headers shown in progress updates and the decoded body.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RawMessage(BaseModel):
    """One candidate travel email, as returned by the mail source."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Provider-stable message ID")
    subject: str = Field(default="", description="Subject header")
    sender: str = Field(default="", description="Raw From header")
    date: str = Field(default="", description="Raw Date header")
    snippet: str = Field(default="", description="Provider snippet")
    body: str = Field(default="", description="Decoded plain text (or HTML fallback) body")


class EmailSummary(BaseModel):
    """Headers of an email as shown alongside progress updates."""

    subject: str
    sender: str
    date: str | None = None

    @classmethod
    def from_message(cls, message: RawMessage) -> "EmailSummary":
        return cls(subject=message.subject, sender=message.sender, date=message.date)
