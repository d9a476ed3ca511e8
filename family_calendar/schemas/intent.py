"""Structured payloads exchanged with Gemini."""
from __future__ import annotations

import json
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict

IntentAction = Literal["create_event", "ask_clarification", "chat"]


class EventIntent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    start_datetime: Optional[str] = None
    end_datetime: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None


class ResolvedIntent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: IntentAction
    message: str
    event: Optional[EventIntent] = None

    @property
    def should_materialize(self) -> bool:
        return bool(
            self.action == "create_event"
            and self.event is not None
            and self.event.title
            and self.event.start_datetime
        )


class ExtractedImageData(BaseModel):
    """Candidate event fields read from an image; nothing is guaranteed to be filled."""

    model_config = ConfigDict(extra="allow")

    event_name: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    all_text: Optional[str] = None

    def to_prompt_json(self) -> str:
        return json.dumps(self.model_dump(exclude_none=True), ensure_ascii=False)


# Gemini response schemas (OpenAPI subset accepted by GenerationConfig.response_schema).
INTENT_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "action": {
            "type": "string",
            "format": "enum",
            "enum": ["create_event", "ask_clarification", "chat"],
            "description": "What action to take",
        },
        "message": {"type": "string", "description": "Response message to send to the user"},
        "event": {
            "type": "object",
            "description": "Event details (only when action is create_event)",
            "properties": {
                "title": {"type": "string", "description": "Event title"},
                "start_datetime": {"type": "string", "description": "ISO 8601 start datetime"},
                "end_datetime": {"type": "string", "description": "ISO 8601 end datetime"},
                "location": {"type": "string", "description": "Event location (optional)"},
                "description": {"type": "string", "description": "Event description (optional)"},
            },
        },
    },
    "required": ["action", "message"],
}

EXTRACTION_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "event_name": {"type": "string", "description": "Name or title of the event"},
        "date": {"type": "string", "description": "Date of the event"},
        "time": {"type": "string", "description": "Time of the event"},
        "end_time": {"type": "string", "description": "End time if visible"},
        "location": {"type": "string", "description": "Location or venue"},
        "description": {"type": "string", "description": "Any other details about the event"},
        "all_text": {"type": "string", "description": "All text visible in the image"},
    },
}


def unwrap_extraction_output(payload: Any) -> Any:
    """Return ``payload["output"]`` for ``{status, output}`` envelopes, else the payload itself."""
    if isinstance(payload, dict) and payload.get("output"):
        return payload["output"]
    return payload
