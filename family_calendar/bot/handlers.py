"""HTTP entry points: Telegram webhook and direct calendar creation."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from family_calendar.bot.context import get_services
from family_calendar.bot.pipeline import BotTokenMissingError, ConversationPipeline
from family_calendar.schemas.requests import CalendarEventRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def get_pipeline(request: Request) -> ConversationPipeline:
    return request.app.state.pipeline


@router.get("/health")
async def health() -> dict:
    return {"ok": True}


@router.post("/telegram/webhook")
async def telegram_webhook(request: Request):
    try:
        payload = await request.json()
        outcome = await get_pipeline(request).handle_update(payload)
    except BotTokenMissingError as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)
    except Exception as exc:
        logger.exception("Webhook error")
        return JSONResponse({"error": str(exc)}, status_code=500)
    logger.debug("Webhook handled: %s", outcome.stage.value)
    return {"ok": True}


@router.post("/calendar/events")
async def create_calendar_event(request: Request):
    services = get_services(request)
    try:
        payload = await request.json()
        body = CalendarEventRequest.model_validate(payload)
    except (ValueError, ValidationError) as exc:
        return JSONResponse({"error": f"invalid request body: {exc}"}, status_code=400)

    if not body.title or not body.start_datetime:
        return JSONResponse({"error": "title and start_datetime are required"}, status_code=400)

    try:
        result = await services.calendar.materialize(
            title=body.title,
            start_datetime=body.start_datetime,
            end_datetime=body.end_datetime,
            location=body.location,
            description=body.description,
            timezone=body.timezone,
        )
    except Exception as exc:
        logger.exception("Calendar creation error")
        return JSONResponse({"error": str(exc)}, status_code=500)

    if not result.success or result.event is None:
        if result.invalid_request:
            return JSONResponse({"error": result.error}, status_code=400)
        return JSONResponse(
            {"error": f"Google Calendar API error: {result.error}"},
            status_code=result.status_code,
        )

    event = result.event
    return {
        "success": True,
        "event_id": event.id,
        "html_link": event.html_link,
        "summary": event.summary,
        "start": event.start,
        "end": event.end,
    }
