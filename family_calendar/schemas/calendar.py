from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

DEFAULT_EVENT_DURATION = timedelta(hours=1)


def parse_iso_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.strip())
    except (AttributeError, ValueError) as exc:
        raise ValueError("start_datetime_invalid") from exc


def default_end_datetime(start_datetime: str) -> str:
    """ISO datetime one hour after ``start_datetime``, keeping its offset (or lack of one)."""
    return (parse_iso_datetime(start_datetime) + DEFAULT_EVENT_DURATION).isoformat()


@dataclass(slots=True)
class EventDraft:
    summary: str
    start: dict[str, Any]
    end: dict[str, Any]
    description: str | None = None
    location: str | None = None

    def __post_init__(self) -> None:
        if not self.summary or not self.summary.strip():
            raise ValueError("summary_required")
        self._validate_datetime_payload(self.start, "start")
        self._validate_datetime_payload(self.end, "end")

    @staticmethod
    def _validate_datetime_payload(payload: dict[str, Any], field_name: str) -> None:
        if not isinstance(payload, dict):
            raise ValueError(f"{field_name}_payload_invalid")
        date_time = payload.get("dateTime")
        time_zone = payload.get("timeZone")
        if not date_time:
            raise ValueError(f"{field_name}_datetime_missing")
        if not time_zone:
            raise ValueError(f"{field_name}_timezone_missing")
        try:
            datetime.fromisoformat(date_time)
        except ValueError as exc:
            raise ValueError(f"{field_name}_datetime_invalid") from exc

    @classmethod
    def from_fields(
        cls,
        *,
        title: str,
        start_datetime: str,
        timezone: str,
        end_datetime: str | None = None,
        location: str | None = None,
        description: str | None = None,
    ) -> "EventDraft":
        end_value = end_datetime or default_end_datetime(start_datetime)
        return cls(
            summary=title,
            start={"dateTime": start_datetime, "timeZone": timezone},
            end={"dateTime": end_value, "timeZone": timezone},
            description=description or None,
            location=location or None,
        )

    def to_api(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "summary": self.summary,
            "start": dict(self.start),
            "end": dict(self.end),
        }
        if self.location:
            body["location"] = self.location
        if self.description:
            body["description"] = self.description
        return body


@dataclass(slots=True)
class CalendarEvent:
    id: str
    summary: str
    start: dict[str, Any]
    end: dict[str, Any]
    description: str | None
    location: str | None
    html_link: str | None
    raw: dict[str, Any]

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "CalendarEvent":
        return cls(
            id=payload.get("id", ""),
            summary=payload.get("summary", "(untitled)"),
            start=dict(payload.get("start") or {}),
            end=dict(payload.get("end") or {}),
            description=payload.get("description"),
            location=payload.get("location"),
            html_link=payload.get("htmlLink"),
            raw=payload,
        )


@dataclass(slots=True)
class CalendarCreationResult:
    success: bool
    status_code: int
    event: CalendarEvent | None = None
    error: str | None = None
    # Rejected locally before any provider call.
    invalid_request: bool = False

    @classmethod
    def created(cls, event: CalendarEvent) -> "CalendarCreationResult":
        return cls(success=True, status_code=200, event=event)

    @classmethod
    def failed(cls, status_code: int, error: str) -> "CalendarCreationResult":
        return cls(success=False, status_code=status_code, error=error)

    @classmethod
    def invalid(cls, error: str) -> "CalendarCreationResult":
        return cls(success=False, status_code=400, error=error, invalid_request=True)
