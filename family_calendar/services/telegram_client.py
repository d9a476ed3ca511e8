from __future__ import annotations

import logging
from dataclasses import dataclass

from telegram import Bot
from telegram.error import TelegramError
from telegram.request import HTTPXRequest

from family_calendar.config.settings import Settings

logger = logging.getLogger(__name__)


class MediaTooLargeError(Exception):
    def __init__(self, size: int, limit: int):
        super().__init__(f"image is {size} bytes, limit is {limit} bytes")
        self.size = size
        self.limit = limit


@dataclass(slots=True)
class DownloadedFile:
    content: bytes
    file_path: str

    @property
    def extension(self) -> str:
        tail = self.file_path.rsplit("/", 1)[-1]
        if "." in tail:
            return tail.rsplit(".", 1)[-1].lower() or "jpg"
        return "jpg"


class TelegramGateway:
    """Outbound Bot API calls used by the webhook pipeline."""

    def __init__(self, settings: Settings, bot: Bot | None = None) -> None:
        self.settings = settings
        self._bot = bot

    @property
    def bot(self) -> Bot:
        if self._bot is None:
            if not self.settings.telegram_bot_token:
                raise RuntimeError("Bot token not configured")
            timeout = self.settings.request_timeout
            self._bot = Bot(
                self.settings.telegram_bot_token,
                request=HTTPXRequest(connect_timeout=timeout, read_timeout=timeout, write_timeout=timeout),
            )
        return self._bot

    async def initialize(self) -> None:
        if self.settings.telegram_bot_token:
            await self.bot.initialize()

    async def shutdown(self) -> None:
        if self._bot is not None:
            await self._bot.shutdown()

    async def send_message(self, chat_id: str, text: str) -> bool:
        try:
            await self.bot.send_message(chat_id=chat_id, text=text)
            return True
        except TelegramError as exc:
            logger.error("Telegram send error for chat %s: %s", chat_id, exc)
            return False

    async def download_file(self, file_id: str) -> DownloadedFile:
        limit = self.settings.max_image_bytes
        telegram_file = await self.bot.get_file(file_id)
        if telegram_file.file_size and telegram_file.file_size > limit:
            raise MediaTooLargeError(telegram_file.file_size, limit)
        content = bytes(await telegram_file.download_as_bytearray())
        if len(content) > limit:
            raise MediaTooLargeError(len(content), limit)
        return DownloadedFile(content=content, file_path=telegram_file.file_path or "")
