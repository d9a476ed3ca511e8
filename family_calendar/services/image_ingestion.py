"""Photo/document ingestion: Telegram file -> media storage -> Gemini vision extraction."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from pydantic import ValidationError

from family_calendar.schemas.intent import ExtractedImageData, unwrap_extraction_output
from family_calendar.schemas.telegram import InboundMessage
from family_calendar.services.async_executor import run_in_executor
from family_calendar.services.gemini import GeminiService
from family_calendar.services.media_storage import MediaStorage
from family_calendar.services.telegram_client import MediaTooLargeError, TelegramGateway

logger = logging.getLogger(__name__)

PROCESSING_NOTICE = "Processing your image..."


class IngestionStatus(str, Enum):
    EXTRACTED = "extracted"
    FAILED = "failed"


@dataclass(slots=True)
class ImageIngestionResult:
    status: IngestionStatus
    data: ExtractedImageData | None = None
    file_url: str | None = None
    error: str | None = None

    @property
    def prompt_json(self) -> str | None:
        return self.data.to_prompt_json() if self.data is not None else None


def normalize_extraction(payload: object) -> ExtractedImageData | None:
    """Accept both the flat payload and the ``{status, output}`` envelope."""
    payload = unwrap_extraction_output(payload)
    if not isinstance(payload, dict):
        return None
    try:
        return ExtractedImageData.model_validate(payload)
    except ValidationError:
        # Non-string values are still useful evidence for the prompt.
        return ExtractedImageData.model_validate(
            {key: value if value is None or isinstance(value, str) else str(value) for key, value in payload.items()}
        )


def merge_user_text(text: str, extracted_json: str | None) -> str:
    if not text:
        if extracted_json:
            return f"[User sent an image. Extracted content: {extracted_json}]"
        return "[User sent an image but it could not be processed]"
    if extracted_json:
        return f"{text}\n[Image content: {extracted_json}]"
    return text


class ImageIngestionPipeline:

    def __init__(
        self,
        telegram: TelegramGateway,
        storage: MediaStorage,
        gemini: GeminiService,
    ) -> None:
        self.telegram = telegram
        self.storage = storage
        self.gemini = gemini

    async def process(self, message: InboundMessage) -> ImageIngestionResult:
        file_id = message.image_file_id()
        if file_id is None:
            return ImageIngestionResult(status=IngestionStatus.FAILED, error="no_image")

        await self.telegram.send_message(message.chat_id, PROCESSING_NOTICE)

        file_url: str | None = None
        try:
            downloaded = await self.telegram.download_file(file_id)
            stored = await run_in_executor(self.storage.save, downloaded.content, downloaded.extension)
            file_url = stored.url
            raw = await self.gemini.extract_image_data(self.storage.resolve(file_url), stored.mime_type)
        except MediaTooLargeError as exc:
            logger.warning("Skipping image for chat %s: %s", message.chat_id, exc)
            return ImageIngestionResult(status=IngestionStatus.FAILED, error=str(exc))
        except Exception as exc:
            logger.exception("Image processing error for chat %s", message.chat_id)
            return ImageIngestionResult(status=IngestionStatus.FAILED, file_url=file_url, error=str(exc))

        data = normalize_extraction(raw)
        if data is None:
            logger.warning("Extraction for chat %s returned no usable payload", message.chat_id)
            return ImageIngestionResult(status=IngestionStatus.FAILED, file_url=file_url, error="empty_extraction")
        logger.info("Extracted image data for chat %s from %s", message.chat_id, file_url)
        return ImageIngestionResult(status=IngestionStatus.EXTRACTED, data=data, file_url=file_url)
