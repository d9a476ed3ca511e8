from __future__ import annotations

from sqlalchemy.orm import sessionmaker

from family_calendar.db.repository import ChatRepository, get_session
from family_calendar.schemas.conversation import ConversationRecord
from family_calendar.services.async_executor import run_in_executor


class ConversationStore:

    def __init__(self, session_factory: sessionmaker, repository: ChatRepository | None = None) -> None:
        self.session_factory = session_factory
        self.repository = repository or ChatRepository()

    async def get_or_create(self, chat_id: str) -> ConversationRecord:
        def _sync() -> ConversationRecord:
            with get_session(self.session_factory) as session:
                chat = self.repository.get_or_create(session, chat_id)
                return ConversationRecord.from_storage(chat.chat_id, chat.messages, chat.status)

        return await run_in_executor(_sync)

    async def save(self, record: ConversationRecord) -> None:
        def _sync() -> None:
            with get_session(self.session_factory) as session:
                self.repository.save(session, record)

        await run_in_executor(_sync)
