"""Inbound Telegram update envelope (only the fields the pipeline reads)."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class TelegramChatRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str


class TelegramPhotoSize(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file_id: str
    file_size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None


class TelegramDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file_id: str
    mime_type: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None


class InboundMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    chat: TelegramChatRef
    text: Optional[str] = None
    caption: Optional[str] = None
    photo: Optional[list[TelegramPhotoSize]] = None
    document: Optional[TelegramDocument] = None

    @property
    def chat_id(self) -> str:
        return str(self.chat.id)

    @property
    def user_text(self) -> str:
        return self.text or self.caption or ""

    @property
    def has_photo(self) -> bool:
        return bool(self.photo)

    @property
    def has_image_document(self) -> bool:
        mime_type = self.document.mime_type if self.document else None
        return bool(mime_type and mime_type.startswith("image/"))

    @property
    def has_image(self) -> bool:
        return self.has_photo or self.has_image_document

    @property
    def is_supported(self) -> bool:
        return bool(self.text) or self.has_image

    def image_file_id(self) -> str | None:
        """Highest-resolution photo first, then an image document."""
        if self.photo:
            return self.photo[-1].file_id
        if self.has_image_document and self.document is not None:
            return self.document.file_id
        return None


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: Optional[int] = None
    message: Optional[InboundMessage] = None
