from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@dataclass(frozen=True, slots=True)
class TimeReference:
    """Temporal anchor handed to the language model for relative dates."""

    timezone: str
    now: datetime
    weekday_name: str
    today: str  # YYYY-MM-DD
    current_time: str  # HH:MM
    upcoming: dict[str, str]  # weekday name -> YYYY-MM-DD of its next occurrence

    def as_prompt_lines(self) -> list[str]:
        week = ", ".join(f"{name[:3]}={self.upcoming[name]}" for name in WEEKDAY_NAMES)
        return [
            f"- Today is {self.weekday_name}, {self.today} (current time: {self.current_time}, timezone: {self.timezone})",
            f"- Upcoming weekdays: {week}",
        ]


def next_occurrence(today: date, weekday: int) -> date:
    """Date of the next ``weekday`` (Monday=0) strictly after ``today``."""
    if not 0 <= weekday <= 6:
        raise ValueError("weekday_out_of_range")
    diff = weekday - today.weekday()
    if diff <= 0:
        diff += 7
    return today + timedelta(days=diff)


def build_time_reference(timezone: str, now: datetime | None = None) -> TimeReference:
    tz = ZoneInfo(timezone)
    local_now = now.astimezone(tz) if now is not None else datetime.now(tz)
    today = local_now.date()
    upcoming = {
        name: next_occurrence(today, index).isoformat()
        for index, name in enumerate(WEEKDAY_NAMES)
    }
    return TimeReference(
        timezone=timezone,
        now=local_now,
        weekday_name=WEEKDAY_NAMES[today.weekday()],
        today=today.isoformat(),
        current_time=local_now.strftime("%H:%M"),
        upcoming=upcoming,
    )
