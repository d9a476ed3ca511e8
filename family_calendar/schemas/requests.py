"""Pydantic request models for the HTTP endpoints."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class CalendarEventRequest(BaseModel):
    """Direct calendar-creation call; title and start_datetime are checked by the handler."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    start_datetime: Optional[str] = None
    end_datetime: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    timezone: Optional[str] = None
