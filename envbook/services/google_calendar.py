from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from google.auth.credentials import Credentials as BaseCredentials
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from envbook.config import settings
from envbook.models import Booking, Event
from envbook.services.sqlite_store import CalendarSQLiteStore

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]
TOKEN_PROVIDER = "google_calendar"
EVENT_DESCRIPTION = "Managed by Env Booking Bot"
SUMMARY_SEPARATOR = "|"


def _read_possible_json(source: str) -> str | None:
    if not source:
        return None
    path = Path(source)
    if path.exists():
        return path.read_text(encoding="utf-8")
    candidate = source.strip()
    if candidate.startswith("{") and candidate.endswith("}"):
        return candidate
    return None


def booking_summary(booking: Booking) -> str:
    return f" {SUMMARY_SEPARATOR} ".join(
        [
            booking.env.lower(),
            booking.service.lower(),
            booking.ticket.upper(),
            booking.user,
        ]
    )


def _parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, dict):
        value = value.get("dateTime")
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def event_from_payload(payload: dict[str, Any]) -> Event | None:
    """Turn a Calendar API item into an Event, or None if it is not a booking."""

    summary = payload.get("summary") or ""
    parts = summary.split(SUMMARY_SEPARATOR)
    if len(parts) < 2:
        return None
    start = _parse_datetime(payload.get("start"))
    end = _parse_datetime(payload.get("end"))
    if start is None or end is None:
        return None
    return Event(
        title=summary,
        start=start,
        end=end,
        env=parts[0].strip().lower(),
        service=parts[1].strip().lower(),
    )


class GoogleOAuthManager:
    """Loads Google credentials: service account first, then a user token."""

    def __init__(self, store: CalendarSQLiteStore) -> None:
        self._store = store

    def ensure_credentials(self, *, interactive: bool = False) -> BaseCredentials | None:
        creds = self._load_service_account() or self._load_user_credentials()
        if creds:
            return creds
        if interactive:
            return self._run_interactive_flow()
        return None

    @staticmethod
    def _load_service_account() -> BaseCredentials | None:
        path = settings.google_application_credentials
        if not path:
            return None
        if not Path(path).exists():
            logger.warning("Service account file %s not found", path)
            return None
        logger.info("Using service account authentication")
        return service_account.Credentials.from_service_account_file(
            path, scopes=SCOPES
        )

    def _load_user_credentials(self) -> Credentials | None:
        token_data = self._store.load_token(TOKEN_PROVIDER)
        if not token_data and settings.google_token_json:
            token_data = _read_possible_json(settings.google_token_json)
            if token_data:
                self._store.save_token(TOKEN_PROVIDER, token_data)
        if not token_data:
            return None
        try:
            info = json.loads(token_data)
            creds = Credentials.from_authorized_user_info(info, SCOPES)
        except (ValueError, KeyError) as exc:
            logger.error("Failed to load Google credentials: %s", exc)
            return None

        if creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
                self._store.save_token(TOKEN_PROVIDER, creds.to_json())
            except Exception as exc:  # pragma: no cover - network refresh failure
                logger.warning("Failed to refresh Google token: %s", exc)
        return creds if creds.valid else None

    def _run_interactive_flow(self) -> Credentials | None:
        client_config = self._load_client_config()
        if not client_config:
            logger.warning("Google OAuth config not provided; cannot run flow")
            return None
        flow = InstalledAppFlow.from_client_config(client_config, SCOPES)
        creds = flow.run_local_server(port=0)
        self._store.save_token(TOKEN_PROVIDER, creds.to_json())
        return creds

    @staticmethod
    def _load_client_config() -> dict[str, Any] | None:
        raw = _read_possible_json(settings.google_creds_json)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Invalid GOOGLE_CREDS_JSON payload provided")
            return None


class GoogleCalendarClient:
    """Event source backed by Google Calendar, or SQLite in dry-run mode.

    Errors raised by either backend are not caught here; the caller decides
    what to tell the user.
    """

    def __init__(
        self,
        *,
        store: CalendarSQLiteStore | None = None,
        auth_manager: GoogleOAuthManager | None = None,
    ) -> None:
        self.calendar_id = settings.google_calendar_id
        self.timezone = settings.default_timezone
        self._store = store or CalendarSQLiteStore(settings.sqlite_db_path)
        self._auth = auth_manager or GoogleOAuthManager(self._store)
        self._service = None

        creds = self._auth.ensure_credentials()
        if creds:
            self._initialise_service(creds)
        else:
            logger.info(
                "Google Calendar client in dry-run mode; persisting bookings to %s",
                self._store.path,
            )

    # ----------------------------------------------------------------- helpers
    def _initialise_service(self, creds: BaseCredentials) -> None:
        try:
            self._service = build(
                "calendar", "v3", credentials=creds, cache_discovery=False
            )
        except Exception as exc:  # pragma: no cover - API discovery errors
            logger.error("Failed to initialise Google Calendar service: %s", exc)
            self._service = None

    def authorize(self) -> bool:
        """Trigger interactive OAuth authorisation."""

        creds = self._auth.ensure_credentials(interactive=True)
        if not creds:
            return False
        self._initialise_service(creds)
        return not self.dry_run

    @property
    def dry_run(self) -> bool:
        return self._service is None

    # ---------------------------------------------------------------- operations
    def list_events(self, start: datetime, end: datetime) -> list[Event]:
        if self.dry_run:
            items = self._store.list_between(start.isoformat(), end.isoformat())
        else:
            response = (
                self._service.events()
                .list(
                    calendarId=self.calendar_id,
                    timeMin=start.isoformat(),
                    timeMax=end.isoformat(),
                    showDeleted=False,
                    singleEvents=True,
                    orderBy="startTime",
                )
                .execute()
            )
            items = response.get("items", [])

        events = []
        for item in items:
            event = event_from_payload(item)
            if event is None:
                logger.debug("Skipping non-booking calendar entry %s", item.get("id"))
                continue
            events.append(event)
        return events

    def create_event(self, booking: Booking) -> str:
        payload = self._to_google_payload(booking)
        if self.dry_run:
            event_id = self._store.save_payload(payload)
            logger.info("[DRY-RUN] create_event %s: %s", event_id, payload["summary"])
            return f"dry-run://{event_id}"

        created = (
            self._service.events()
            .insert(calendarId=self.calendar_id, body=payload)
            .execute()
        )
        return created.get("htmlLink") or created.get("id", "")

    # ----------------------------------------------------------------- internal
    def _to_google_payload(self, booking: Booking) -> dict[str, Any]:
        return {
            "summary": booking_summary(booking),
            "description": EVENT_DESCRIPTION,
            "start": {
                "dateTime": booking.start.isoformat(),
                "timeZone": self.timezone,
            },
            "end": {
                "dateTime": booking.end.isoformat(),
                "timeZone": self.timezone,
            },
        }


def _main() -> None:  # pragma: no cover - CLI helper
    parser = argparse.ArgumentParser(description="Google Calendar helper")
    parser.add_argument(
        "--authorize", action="store_true", help="Run the OAuth consent flow"
    )
    parser.add_argument(
        "--list", action="store_true", help="Print bookings for the next 7 days"
    )
    args = parser.parse_args()

    client = GoogleCalendarClient()
    if args.authorize:
        success = client.authorize()
        print("Authorization successful" if success else "Authorization failed")
    if args.list:
        now = datetime.now().astimezone()
        for event in client.list_events(now, now + timedelta(days=7)):
            print(event.model_dump_json())


if __name__ == "__main__":  # pragma: no cover - CLI helper
    _main()
