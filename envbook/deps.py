import logging

from envbook.commands import BookingController
from envbook.config import settings
from envbook.services.google_calendar import GoogleCalendarClient

logger = logging.getLogger(__name__)

_controller: BookingController | None = None


def get_controller() -> BookingController:
    global _controller
    if _controller is None:
        try:
            calendar = GoogleCalendarClient()
        except Exception:
            logger.exception("Failed to create calendar client")
            calendar = None
        _controller = BookingController(calendar, timezone=settings.default_timezone)
    return _controller
