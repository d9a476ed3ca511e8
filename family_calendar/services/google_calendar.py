from __future__ import annotations

import json
import logging
from typing import Any, Callable

import google_auth_httplib2
import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from sqlalchemy.orm import sessionmaker

from family_calendar.config.settings import Settings
from family_calendar.db.repository import CredentialRepository, get_session
from family_calendar.schemas.calendar import CalendarCreationResult, CalendarEvent, EventDraft
from family_calendar.services.async_executor import run_in_executor

logger = logging.getLogger(__name__)

INTEGRATION_NAME = "googlecalendar"
SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
    "openid",
]
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
USERINFO_SERVICE = ("oauth2", "v2")


class CalendarNotConnectedError(Exception):
    """No usable Google credentials are stored for the calendar integration."""


class GoogleCalendarService:

    def __init__(
        self,
        settings: Settings,
        session_factory: sessionmaker,
        credential_repository: CredentialRepository | None = None,
        client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self.credential_repository = credential_repository or CredentialRepository()
        self._client_factory = client_factory

    def ensure_credentials(self) -> Credentials:
        """Load the stored integration credentials, exchanging the refresh token when expired."""
        with get_session(self.session_factory) as session:
            stored = self.credential_repository.get(session, INTEGRATION_NAME)
            credentials = self._load_credentials(stored.credentials_json) if stored else None
            if credentials is None:
                raise CalendarNotConnectedError(
                    "Google Calendar is not connected. Run scripts/google_auth.py first."
                )
            if not credentials.valid:
                if not credentials.refresh_token:
                    raise CalendarNotConnectedError("Stored Google credentials have no refresh token")
                try:
                    credentials.refresh(Request())
                except RefreshError as exc:
                    raise CalendarNotConnectedError(f"Google token refresh failed: {exc}") from exc
                self.credential_repository.create_or_update(
                    session, INTEGRATION_NAME, credentials.to_json()
                )
        return credentials

    def get_calendar_client(self):
        if self._client_factory is not None:
            return self._client_factory()
        credentials = self.ensure_credentials()
        http = google_auth_httplib2.AuthorizedHttp(
            credentials, http=httplib2.Http(timeout=self.settings.request_timeout)
        )
        return build("calendar", "v3", http=http, cache_discovery=False)

    async def materialize(
        self,
        *,
        title: str,
        start_datetime: str,
        end_datetime: str | None = None,
        location: str | None = None,
        description: str | None = None,
        timezone: str | None = None,
    ) -> CalendarCreationResult:
        try:
            draft = EventDraft.from_fields(
                title=title,
                start_datetime=start_datetime,
                end_datetime=end_datetime,
                location=location,
                description=description,
                timezone=timezone or self.settings.timezone,
            )
        except ValueError as exc:
            logger.warning("Rejected event draft %r: %s", title, exc)
            return CalendarCreationResult.invalid(str(exc))
        return await self.create_event(draft)

    async def create_event(self, draft: EventDraft) -> CalendarCreationResult:
        def _sync() -> CalendarCreationResult:
            try:
                service = self.get_calendar_client()
                created_raw = (
                    service.events()
                    .insert(calendarId=self.settings.calendar_id, body=draft.to_api())
                    .execute()
                )
                event = CalendarEvent.from_api(created_raw)
            except CalendarNotConnectedError as exc:
                logger.error("Calendar integration unavailable: %s", exc)
                return CalendarCreationResult.failed(503, str(exc))
            except HttpError as exc:
                error_text = _http_error_text(exc)
                logger.error("Calendar API error (%s): %s", exc.resp.status, error_text)
                return CalendarCreationResult.failed(int(exc.resp.status), error_text)
            except (OSError, httplib2.HttpLib2Error, TransportError) as exc:
                logger.exception("Calendar API transport error")
                return CalendarCreationResult.failed(502, str(exc))
            except Exception as exc:
                logger.exception("Unexpected calendar error")
                return CalendarCreationResult.failed(502, str(exc))
            logger.info("Created calendar event %s (%s)", event.id, event.summary)
            return CalendarCreationResult.created(event)

        return await run_in_executor(_sync)

    def store_credentials(self, credentials: Credentials, account_email: str | None = None) -> None:
        with get_session(self.session_factory) as session:
            self.credential_repository.create_or_update(
                session,
                INTEGRATION_NAME,
                credentials.to_json(),
                account_email=account_email,
            )

    def run_local_oauth_flow(self) -> tuple[Credentials, str]:
        flow = InstalledAppFlow.from_client_config(self._client_config, SCOPES)
        credentials = flow.run_local_server(
            port=self.settings.google_oauth_port,
            prompt="consent",
        )
        email = self._fetch_google_email(credentials)
        return credentials, email

    def _fetch_google_email(self, credentials: Credentials) -> str:
        try:
            service = build(*USERINFO_SERVICE, credentials=credentials, cache_discovery=False)
            profile = service.userinfo().get().execute()
            return profile.get("email", "")
        except HttpError:
            return ""

    def _load_credentials(self, credentials_json: str) -> Credentials | None:
        try:
            data = json.loads(credentials_json)
            return Credentials.from_authorized_user_info(data, scopes=SCOPES)
        except ValueError:
            logger.warning("Stored Google credentials are unreadable")
            return None

    @property
    def _client_config(self) -> dict[str, Any]:
        return {
            "installed": {
                "client_id": self.settings.google_client_id,
                "client_secret": self.settings.google_client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "project_id": self.settings.google_project_id,
                "redirect_uris": [f"http://localhost:{self.settings.google_oauth_port}/"],
            }
        }


def _http_error_text(exc: HttpError) -> str:
    content = exc.content
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return str(content or exc)
