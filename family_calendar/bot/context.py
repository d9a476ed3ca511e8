from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.orm import sessionmaker

from family_calendar.config.settings import Settings
from family_calendar.db.base import build_engine, build_session_factory, init_db
from family_calendar.services.conversation_store import ConversationStore
from family_calendar.services.gemini import GeminiService
from family_calendar.services.google_calendar import GoogleCalendarService
from family_calendar.services.image_ingestion import ImageIngestionPipeline
from family_calendar.services.media_storage import MediaStorage
from family_calendar.services.telegram_client import TelegramGateway


@dataclass(slots=True)
class ServiceContainer:
    settings: Settings
    session_factory: sessionmaker
    telegram: TelegramGateway
    gemini: GeminiService
    calendar: GoogleCalendarService
    store: ConversationStore
    images: ImageIngestionPipeline


def build_services(settings: Settings) -> ServiceContainer:
    engine = build_engine(settings)
    init_db(engine)
    session_factory = build_session_factory(engine)

    telegram = TelegramGateway(settings)
    gemini = GeminiService(settings)
    return ServiceContainer(
        settings=settings,
        session_factory=session_factory,
        telegram=telegram,
        gemini=gemini,
        calendar=GoogleCalendarService(settings, session_factory),
        store=ConversationStore(session_factory),
        images=ImageIngestionPipeline(telegram, MediaStorage(settings), gemini),
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services
