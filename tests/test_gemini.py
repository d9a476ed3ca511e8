import json
from dataclasses import replace
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import ServiceUnavailable

from family_calendar.schemas.conversation import AssistantTurn, UserTurn
from family_calendar.schemas.intent import ExtractedImageData, INTENT_RESPONSE_SCHEMA
from family_calendar.services.gemini import (
    FALLBACK_REPLY,
    GeminiNotConfiguredError,
    GeminiService,
    IntentResolutionError,
)
from family_calendar.services.time_reference import build_time_reference


@pytest.fixture
def reference():
    return build_time_reference("UTC", now=datetime(2026, 10, 18, 10, 0, tzinfo=timezone.utc))


def _model_returning(text):
    model = MagicMock()
    model.generate_content.return_value = SimpleNamespace(text=text)
    return model


def _service(settings, model=None, vision_model=None, uploader=None):
    return GeminiService(
        settings,
        model=model or _model_returning("{}"),
        vision_model=vision_model or _model_returning("{}"),
        file_uploader=uploader or MagicMock(),
    )


def test_prompt_contains_reference_and_history(reference):
    turns = [UserTurn("Football on Monday at 5"), AssistantTurn("Which child?"), UserTurn("Dani")]

    prompt = GeminiService.build_prompt_text(reference, None, turns)

    assert "## CURRENT DATE AND TIME" in prompt
    assert "Today is Sunday, 2026-10-18" in prompt
    assert "Mon=2026-10-19" in prompt
    assert "Sun=2026-10-25" in prompt
    assert "## Image Data" not in prompt
    assert prompt.endswith(
        "Conversation so far:\n"
        "user: Football on Monday at 5\n"
        "assistant: Which child?\n"
        "user: Dani"
    )


def test_prompt_includes_image_block_when_present(reference):
    image = ExtractedImageData(event_name="Wedding", date="2026-11-05")

    prompt = GeminiService.build_prompt_text(reference, image, [UserTurn("[User sent an image]")])

    assert "## Image Data" in prompt
    assert image.to_prompt_json() in prompt
    assert prompt.index("## Image Data") < prompt.index("Conversation so far:")


def test_parse_intent_accepts_valid_payload():
    raw = json.dumps(
        {
            "action": "create_event",
            "message": "✅ Added: Dentist appointment",
            "event": {"title": "Dentist appointment", "start_datetime": "2026-10-19T15:00:00"},
        }
    )

    intent = GeminiService.parse_intent(raw)

    assert intent.action == "create_event"
    assert intent.event.title == "Dentist appointment"
    assert intent.should_materialize


def test_parse_intent_strips_code_fences():
    raw = '```json\n{"action": "chat", "message": "Hi there!"}\n```'

    intent = GeminiService.parse_intent(raw)

    assert intent.action == "chat"
    assert intent.message == "Hi there!"


def test_parse_intent_falls_back_to_chat_for_plain_text():
    intent = GeminiService.parse_intent("Sure, happy to help!")

    assert intent.action == "chat"
    assert intent.message == "Sure, happy to help!"
    assert intent.event is None


def test_parse_intent_falls_back_for_unknown_action():
    intent = GeminiService.parse_intent('{"action": "delete_event", "message": "Deleted"}')

    assert intent.action == "chat"
    assert intent.message == "Deleted"


def test_parse_intent_empty_output_uses_fallback_reply():
    assert GeminiService.parse_intent("").message == FALLBACK_REPLY


def test_create_event_without_start_is_not_materialized():
    intent = GeminiService.parse_intent(
        '{"action": "create_event", "message": "Added", "event": {"title": "Dentist"}}'
    )

    assert not intent.should_materialize


@pytest.mark.asyncio
async def test_resolve_intent_sends_prompt_with_json_schema(settings, reference):
    model = _model_returning('{"action": "ask_clarification", "message": "What time?"}')
    service = _service(settings, model=model)

    intent = await service.resolve_intent(reference, None, [UserTurn("Dentist tomorrow")])

    assert intent.action == "ask_clarification"
    model.generate_content.assert_called_once()
    call = model.generate_content.call_args
    assert "user: Dentist tomorrow" in call.args[0][0]
    config = call.kwargs["generation_config"]
    assert config.response_mime_type == "application/json"
    assert config.response_schema == INTENT_RESPONSE_SCHEMA
    assert call.kwargs["request_options"] == {"timeout": settings.request_timeout}


@pytest.mark.asyncio
async def test_resolve_intent_wraps_provider_errors(settings, reference):
    model = MagicMock()
    model.generate_content.side_effect = ServiceUnavailable("overloaded")
    service = _service(settings, model=model)

    with pytest.raises(IntentResolutionError):
        await service.resolve_intent(reference, None, [UserTurn("hello")])


@pytest.mark.asyncio
async def test_extract_image_data_uploads_then_reads_json(settings, tmp_path):
    image_path = tmp_path / "invite.jpg"
    image_path.write_bytes(b"jpeg")
    uploaded = object()
    uploader = MagicMock(return_value=uploaded)
    vision = _model_returning('{"status": "success", "output": {"event_name": "Wedding"}}')
    service = _service(settings, vision_model=vision, uploader=uploader)

    payload = await service.extract_image_data(image_path, "image/jpeg")

    assert payload == {"status": "success", "output": {"event_name": "Wedding"}}
    uploader.assert_called_once_with(path=str(image_path), mime_type="image/jpeg")
    assert vision.generate_content.call_args.args[0][0] is uploaded


def test_service_builds_without_api_key(settings):
    service = GeminiService(replace(settings, gemini_api_key=""))

    with pytest.raises(GeminiNotConfiguredError):
        service.model


@pytest.mark.asyncio
async def test_missing_api_key_fails_intent_resolution(settings, reference):
    service = GeminiService(replace(settings, gemini_api_key=""))

    with pytest.raises(IntentResolutionError):
        await service.resolve_intent(reference, None, [UserTurn("hello")])
