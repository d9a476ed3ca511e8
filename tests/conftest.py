"""Shared fixtures for the family calendar assistant tests."""

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from family_calendar.bot.context import ServiceContainer
from family_calendar.bot.main import build_application
from family_calendar.bot.pipeline import ConversationPipeline
from family_calendar.config.settings import Settings
from family_calendar.db.base import build_engine, build_session_factory, init_db
from family_calendar.services.conversation_store import ConversationStore
from family_calendar.services.gemini import GeminiService
from family_calendar.services.google_calendar import GoogleCalendarService
from family_calendar.services.image_ingestion import ImageIngestionPipeline
from family_calendar.services.media_storage import MediaStorage
from family_calendar.services.telegram_client import TelegramGateway

# Sunday, 10:00 in Jerusalem.
FIXED_NOW = datetime(2026, 10, 18, 10, 0, tzinfo=ZoneInfo("Asia/Jerusalem"))


class FakeCalendarClient:
    """Stands in for the googleapiclient Calendar v3 resource."""

    def __init__(self):
        self.inserted = []
        self.error = None

    def events(self):
        return self

    def insert(self, calendarId, body):
        self.inserted.append((calendarId, body))
        number = len(self.inserted)

        def execute():
            if self.error is not None:
                raise self.error
            return {
                "id": f"evt{number}",
                "htmlLink": f"https://calendar.google.com/calendar/event?eid=evt{number}",
                **body,
            }

        return SimpleNamespace(execute=execute)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        telegram_bot_token="123456:test-token",
        gemini_api_key="test-key",
        gemini_model="models/test",
        gemini_vision_model="models/test-vision",
        database_url="sqlite://",
        media_dir=str(tmp_path / "media"),
    )


@pytest.fixture
def session_factory(settings):
    engine = build_engine(settings)
    init_db(engine)
    return build_session_factory(engine)


@pytest.fixture
def calendar_client():
    return FakeCalendarClient()


@pytest.fixture
def calendar_service(settings, session_factory, calendar_client):
    return GoogleCalendarService(settings, session_factory, client_factory=lambda: calendar_client)


@pytest.fixture
def telegram():
    gateway = AsyncMock(spec=TelegramGateway)
    gateway.send_message.return_value = True
    return gateway


@pytest.fixture
def gemini():
    service = MagicMock(spec=GeminiService)
    service.resolve_intent = AsyncMock()
    service.extract_image_data = AsyncMock()
    return service


@pytest.fixture
def services(settings, session_factory, telegram, gemini, calendar_service):
    return ServiceContainer(
        settings=settings,
        session_factory=session_factory,
        telegram=telegram,
        gemini=gemini,
        calendar=calendar_service,
        store=ConversationStore(session_factory),
        images=ImageIngestionPipeline(telegram, MediaStorage(settings), gemini),
    )


@pytest.fixture
def pipeline(services):
    return ConversationPipeline(services, clock=lambda: FIXED_NOW)


@pytest.fixture
def client(services, pipeline):
    return TestClient(build_application(services=services, pipeline=pipeline))
