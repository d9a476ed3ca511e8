"""One-off Google consent flow that connects the calendar integration."""
from __future__ import annotations

from family_calendar.config.settings import get_settings
from family_calendar.db.base import build_engine, build_session_factory, init_db
from family_calendar.services.google_calendar import GoogleCalendarService


def main() -> None:
    settings = get_settings()
    if not settings.google_client_id or not settings.google_client_secret:
        raise SystemExit("Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET in .env first")

    engine = build_engine(settings)
    init_db(engine)
    service = GoogleCalendarService(settings, build_session_factory(engine))

    credentials, email = service.run_local_oauth_flow()
    service.store_credentials(credentials, account_email=email or None)
    print("Google authorization completed.")
    print(f"Calendar '{settings.calendar_id}' connected for {email or 'unknown account'}.")


if __name__ == "__main__":
    main()
