from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, assert_never

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPIError
from pydantic import ValidationError

from family_calendar.config.settings import Settings
from family_calendar.schemas.conversation import AssistantTurn, Turn, UserTurn
from family_calendar.schemas.intent import (
    EXTRACTION_RESPONSE_SCHEMA,
    INTENT_RESPONSE_SCHEMA,
    ExtractedImageData,
    ResolvedIntent,
)
from family_calendar.services.async_executor import run_in_executor
from family_calendar.services.time_reference import TimeReference

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a bilingual (English/Hebrew) family calendar assistant that helps manage schedules, homework, activities, appointments, and events.

## Core Capabilities
- Add events: Create homework assignments, activities, appointments, and family events
- Answer questions about what you understood and what is still missing

## Language Handling
- Auto-detect: Seamlessly work with English, Hebrew, or mixed-language input
- Preserve original: Keep event titles in the language provided
- Respond in the same language as the user's request
- Recognize Hebrew calendar terms (לו״ז, שיעורי בית, פגישה, יומולדת, חופשה)

## Input Processing
The user sends text messages or images containing event information:
- Invitations, save-the-dates, flyers, event announcements
- Homework assignments, school notices, schedule screenshots
- WhatsApp message screenshots, handwritten notes
- Direct text descriptions of events

## Your Job
1. Extract event details: title, start date/time, end date/time, location, description
2. If you have enough info to create an event (at minimum: title and start date/time), set action to "create_event"
3. If critical information is missing or ambiguous, set action to "ask_clarification" and ask specifically what you need
4. For non-event messages, set action to "chat"
5. When processing image data, acknowledge what you found ("I can see a wedding invitation for...")

## Date & Time Rules
- Use ISO 8601 format: YYYY-MM-DDTHH:mm:ss, in the user's local timezone given below
- Accept dates in multiple formats: 15/2, Feb 15, tomorrow, מחר, בעוד שבוע
- "Monday" = the NEXT upcoming Monday from the reference list (never today); "next Monday" = the Monday AFTER that
- If the year is not specified, assume the next upcoming occurrence
- Time inference:
  - Homework/assignments: due by end of day (23:59) unless specified
  - Appointments: ask for a specific time if not given
  - Birthdays/holidays/vacations: all-day events (use 00:00-23:59)
  - Activities: use the provided time, default 1 hour duration

## Smart Defaults
- Infer event type: "math test" = exam, "dentist" = appointment, "football" = activity
- Track family members when mentioned
- Don't ask for clarification if you can reasonably infer details

## Response Style
- Confirm actions: "✅ Added: Math homework due tomorrow at 11:59 PM"
- Be concise, friendly, occasional emojis (📅 🎯 ✏️ ⚽ 🎉 ⏰ 📸)
- For images: acknowledge what you found before adding

Reply ONLY with JSON matching the response schema: action and message are required, event only when action is create_event."""

EXTRACTION_PROMPT = (
    "Read this image (an invitation, notice, flyer or screenshot) and extract the event it describes. "
    "Fill event_name, date, time, end_time, location and description when visible, and copy all visible "
    "text into all_text. Leave fields out when they are not present. Reply ONLY with JSON."
)

FALLBACK_REPLY = "Sorry, I couldn't quite understand that. Could you say it another way?"


class IntentResolutionError(Exception):
    """The language model could not be reached or refused to answer."""


class GeminiNotConfiguredError(RuntimeError):
    pass


class GeminiService:

    def __init__(
        self,
        settings: Settings,
        model: Any | None = None,
        vision_model: Any | None = None,
        file_uploader: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.settings = settings
        self._model = model
        self._vision_model = vision_model
        self._upload_file = file_uploader
        self._configured = False

    def _configure(self) -> None:
        # Runs on first model use, not at construction.
        if self._configured:
            return
        if not self.settings.gemini_api_key:
            raise GeminiNotConfiguredError("Gemini API key is missing")
        genai.configure(api_key=self.settings.gemini_api_key)
        self._configured = True

    @property
    def model(self) -> Any:
        if self._model is None:
            self._configure()
            self._model = genai.GenerativeModel(
                self.settings.gemini_model,
                system_instruction=SYSTEM_PROMPT,
            )
        return self._model

    @property
    def vision_model(self) -> Any:
        if self._vision_model is None:
            self._configure()
            self._vision_model = genai.GenerativeModel(self.settings.gemini_vision_model)
        return self._vision_model

    def _uploader(self) -> Callable[..., Any]:
        if self._upload_file is None:
            self._configure()
            self._upload_file = genai.upload_file
        return self._upload_file

    async def resolve_intent(
        self,
        reference: TimeReference,
        image_data: ExtractedImageData | None,
        turns: Iterable[Turn],
    ) -> ResolvedIntent:
        prompt_text = self.build_prompt_text(reference, image_data, turns)
        try:
            raw_text = await run_in_executor(
                self._generate_json, self.model, [prompt_text], INTENT_RESPONSE_SCHEMA
            )
        except (GoogleAPIError, GeminiNotConfiguredError, ValueError) as exc:
            logger.exception("Gemini intent call failed")
            raise IntentResolutionError(str(exc)) from exc
        logger.debug("Gemini raw response: %s", raw_text)
        return self.parse_intent(raw_text)

    async def extract_image_data(self, path: Path, mime_type: str) -> dict[str, Any] | None:
        return await run_in_executor(self._extract_image_data_sync, path, mime_type)

    def _extract_image_data_sync(self, path: Path, mime_type: str) -> dict[str, Any] | None:
        uploaded = self._uploader()(path=str(path), mime_type=mime_type)
        raw_text = self._generate_json(
            self.vision_model, [uploaded, EXTRACTION_PROMPT], EXTRACTION_RESPONSE_SCHEMA
        )
        logger.debug("Gemini extraction raw response: %s", raw_text)
        return self._extract_json(raw_text)

    def _generate_json(self, model: Any, contents: list[Any], schema: dict[str, Any]) -> str:
        response = model.generate_content(
            contents,
            generation_config=genai.GenerationConfig(
                response_mime_type="application/json",
                response_schema=schema,
            ),
            request_options={"timeout": self.settings.request_timeout},
        )
        return response.text or ""

    @staticmethod
    def build_prompt_text(
        reference: TimeReference,
        image_data: ExtractedImageData | None,
        turns: Iterable[Turn],
    ) -> str:
        lines = ["## CURRENT DATE AND TIME", *reference.as_prompt_lines()]
        if image_data is not None:
            lines += [
                "",
                "## Image Data",
                "The user sent an image. Here is the structured data extracted from it:",
                image_data.to_prompt_json(),
                "",
                "Use this extracted data to identify event details. If the image contained multiple events, "
                "process all of them. Summarize what you found and confirm before adding.",
            ]
        lines += ["", "Conversation so far:"]
        lines += [_format_turn(turn) for turn in turns]
        return "\n".join(lines)

    @classmethod
    def parse_intent(cls, raw_text: str) -> ResolvedIntent:
        payload = cls._extract_json(raw_text)
        if payload is None:
            logger.warning("Gemini returned non-JSON output, falling back to chat")
            return ResolvedIntent(action="chat", message=raw_text.strip() or FALLBACK_REPLY)
        try:
            return ResolvedIntent.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Gemini output does not match the intent schema: %s", exc)
            message = payload.get("message")
            return ResolvedIntent(
                action="chat",
                message=message if isinstance(message, str) and message.strip() else FALLBACK_REPLY,
            )

    @staticmethod
    def _extract_json(raw_text: str) -> dict[str, Any] | None:
        raw_text = (raw_text or "").strip()
        if not raw_text:
            return None
        start = raw_text.find("{")
        end = raw_text.rfind("}")
        if start == -1 or end == -1:
            return None
        snippet = raw_text[start : end + 1]
        try:
            payload = json.loads(snippet)
        except json.JSONDecodeError:
            logger.exception("Could not parse JSON from Gemini: %s", snippet)
            return None
        return payload if isinstance(payload, dict) else None


def _format_turn(turn: Turn) -> str:
    if isinstance(turn, UserTurn):
        return f"user: {turn.content}"
    if isinstance(turn, AssistantTurn):
        return f"assistant: {turn.content}"
    assert_never(turn)
