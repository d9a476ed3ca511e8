from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from family_calendar.db.models import IntegrationCredential, TelegramChat
from family_calendar.schemas.conversation import ChatStatus, ConversationRecord

logger = logging.getLogger(__name__)


@contextmanager
def get_session(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class ChatRepository:

    def get_by_chat_id(self, session: Session, chat_id: str) -> TelegramChat | None:
        return session.scalar(select(TelegramChat).where(TelegramChat.chat_id == chat_id))

    def get_or_create(self, session: Session, chat_id: str) -> TelegramChat:
        chat = self.get_by_chat_id(session, chat_id)
        if chat is not None:
            return chat
        try:
            with session.begin_nested():
                chat = TelegramChat(chat_id=chat_id, messages=[], status=ChatStatus.IDLE.value)
                session.add(chat)
                session.flush()
            return chat
        except IntegrityError:
            # Another delivery created the row between our select and insert.
            logger.info("Chat %s was created concurrently, reusing existing row", chat_id)
            existing = self.get_by_chat_id(session, chat_id)
            if existing is None:
                raise
            return existing

    def save(self, session: Session, record: ConversationRecord) -> TelegramChat:
        chat = self.get_or_create(session, record.chat_id)
        chat.messages = record.messages_payload()
        chat.status = record.status.value
        session.flush()
        return chat


class CredentialRepository:

    def get(self, session: Session, integration: str) -> IntegrationCredential | None:
        return session.scalar(
            select(IntegrationCredential).where(IntegrationCredential.integration == integration)
        )

    def create_or_update(
        self,
        session: Session,
        integration: str,
        credentials_json: str,
        account_email: str | None = None,
    ) -> IntegrationCredential:
        credential = self.get(session, integration)
        if credential is None:
            credential = IntegrationCredential(
                integration=integration,
                account_email=account_email,
                credentials_json=credentials_json,
            )
            session.add(credential)
        else:
            credential.credentials_json = credentials_json
            if account_email is not None:
                credential.account_email = account_email
        session.flush()
        return credential
