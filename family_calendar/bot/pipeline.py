"""Per-update conversation pipeline behind the Telegram webhook.

One pass per inbound update:

    RECEIVED -> ACKNOWLEDGED                      (no message / unsupported type)
    RECEIVED -> GREETED                           (/start)
    RECEIVED -> [image] -> state loaded -> intent resolved
             -> [calendar attempted] -> replied -> STATE_SAVED

State is written only after the reply has been composed and sent, so a failing turn never
leaves a half-finished assistant message in the stored history.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from family_calendar.bot.context import ServiceContainer
from family_calendar.schemas.calendar import CalendarCreationResult
from family_calendar.schemas.conversation import AssistantTurn, ChatStatus, UserTurn
from family_calendar.schemas.intent import ResolvedIntent
from family_calendar.schemas.telegram import TelegramUpdate
from family_calendar.services.gemini import IntentResolutionError
from family_calendar.services.image_ingestion import ImageIngestionResult, merge_user_text
from family_calendar.services.time_reference import build_time_reference

logger = logging.getLogger(__name__)

START_COMMAND = "/start"
GREETING = (
    "Hi! I'm your calendar assistant.\n\n"
    "Send me event information (invitations, save the dates, or just a description of an event) "
    "and I'll add it to your Google Calendar.\n\n"
    "You can send text, forward messages, or even send photos of invitations!"
)
INTENT_UNAVAILABLE_REPLY = (
    "Sorry, I'm having trouble understanding messages right now. Please try again in a few minutes."
)


class BotTokenMissingError(RuntimeError):
    def __init__(self) -> None:
        super().__init__("Bot token not configured")


class PipelineStage(str, Enum):
    ACKNOWLEDGED = "acknowledged"
    GREETED = "greeted"
    INTENT_FAILED = "intent_failed"
    STATE_SAVED = "state_saved"


@dataclass(slots=True)
class PipelineOutcome:
    stage: PipelineStage
    reply: str | None = None
    intent: ResolvedIntent | None = None
    calendar: CalendarCreationResult | None = None
    image: ImageIngestionResult | None = None


def compose_calendar_reply(message: str, result: CalendarCreationResult) -> str:
    if result.success:
        link = result.event.html_link if result.event else None
        return f"{message}\n\n📅 Event created!\n{link}" if link else f"{message}\n\n📅 Event created!"
    return (
        f"{message}\n\n⚠️ I understood the event details but couldn't create it in Google Calendar. "
        f"Error: {result.error}"
    )


class ConversationPipeline:

    def __init__(
        self,
        services: ServiceContainer,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.services = services
        self.clock = clock

    async def handle_update(self, payload: dict[str, Any]) -> PipelineOutcome:
        update = TelegramUpdate.model_validate(payload)
        message = update.message
        if message is None or not message.is_supported:
            return PipelineOutcome(stage=PipelineStage.ACKNOWLEDGED)

        settings = self.services.settings
        if not settings.telegram_bot_token:
            logger.error("TELEGRAM_BOT_TOKEN not configured")
            raise BotTokenMissingError()

        telegram = self.services.telegram
        chat_id = message.chat_id
        user_text = message.user_text

        if user_text.strip() == START_COMMAND:
            await telegram.send_message(chat_id, GREETING)
            logger.info("Greeted chat %s", chat_id)
            return PipelineOutcome(stage=PipelineStage.GREETED, reply=GREETING)

        image_result: ImageIngestionResult | None = None
        if message.has_image:
            image_result = await self.services.images.process(message)
            user_text = merge_user_text(user_text, image_result.prompt_json)

        record = await self.services.store.get_or_create(chat_id)
        record.append(UserTurn(user_text))

        now = self.clock() if self.clock is not None else None
        reference = build_time_reference(settings.timezone, now=now)
        try:
            intent = await self.services.gemini.resolve_intent(
                reference,
                image_result.data if image_result is not None else None,
                list(record.turns),
            )
        except IntentResolutionError:
            await telegram.send_message(chat_id, INTENT_UNAVAILABLE_REPLY)
            return PipelineOutcome(
                stage=PipelineStage.INTENT_FAILED,
                reply=INTENT_UNAVAILABLE_REPLY,
                image=image_result,
            )
        logger.info("Chat %s resolved action=%s", chat_id, intent.action)

        reply = intent.message
        calendar_result: CalendarCreationResult | None = None
        if intent.should_materialize and intent.event is not None:
            event = intent.event
            calendar_result = await self.services.calendar.materialize(
                title=event.title or "",
                start_datetime=event.start_datetime or "",
                end_datetime=event.end_datetime,
                location=event.location,
                description=event.description,
            )
            reply = compose_calendar_reply(reply, calendar_result)
        elif intent.action == "create_event":
            logger.warning("Chat %s: create_event without title/start, skipping calendar", chat_id)

        await telegram.send_message(chat_id, reply)

        record.append(AssistantTurn(reply))
        record.status = (
            ChatStatus.AWAITING_CLARIFICATION
            if intent.action == "ask_clarification"
            else ChatStatus.IDLE
        )
        await self.services.store.save(record)
        return PipelineOutcome(
            stage=PipelineStage.STATE_SAVED,
            reply=reply,
            intent=intent,
            calendar=calendar_result,
            image=image_result,
        )
