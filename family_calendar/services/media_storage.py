from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import unquote, urlparse
from uuid import uuid4

from family_calendar.config.settings import BASE_DIR, Settings

logger = logging.getLogger(__name__)

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "heic": "image/heic",
}


@dataclass(frozen=True, slots=True)
class StoredMedia:
    url: str
    path: Path
    mime_type: str


class MediaStorage:
    """Durable on-disk storage for images received from chats."""

    def __init__(self, settings: Settings, root: Path | None = None) -> None:
        media_dir = Path(settings.media_dir)
        self.root = root or (media_dir if media_dir.is_absolute() else BASE_DIR / media_dir)

    def save(self, content: bytes, extension: str = "jpg") -> StoredMedia:
        extension = (extension or "jpg").lower()
        day_dir = self.root / datetime.now(timezone.utc).strftime("%Y/%m/%d")
        day_dir.mkdir(parents=True, exist_ok=True)
        path = day_dir / f"telegram_image_{uuid4().hex}.{extension}"
        path.write_bytes(content)
        logger.debug("Stored %d bytes of media at %s", len(content), path)
        return StoredMedia(
            url=path.resolve().as_uri(),
            path=path,
            mime_type=MIME_TYPES.get(extension, "image/jpeg"),
        )

    def resolve(self, url: str) -> Path:
        parsed = urlparse(url)
        if parsed.scheme != "file":
            raise ValueError(f"unsupported media url: {url}")
        path = Path(unquote(parsed.path))
        if not path.exists():
            raise FileNotFoundError(path)
        return path
