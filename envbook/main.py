from __future__ import annotations
import logging
from fastapi import APIRouter, Depends, FastAPI, Form
from envbook.logging_conf import setup_logging
from envbook.config import settings
from envbook.commands import BookingController
from envbook.deps import get_controller
from envbook.middleware import SlackSignatureMiddleware
from envbook.models import SlackReply

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

slack = APIRouter(prefix="/slack", tags=["slack"])


@slack.post("/book", response_model=SlackReply)
def slack_book(
    text: str = Form(""),
    user_name: str = Form(""),
    ctrl: BookingController = Depends(get_controller),
):
    return ctrl.book(text, user_name)


@slack.post("/next", response_model=SlackReply)
def slack_next(text: str = Form(""), ctrl: BookingController = Depends(get_controller)):
    return ctrl.next_slot(text)


@slack.post("/bookings", response_model=SlackReply)
def slack_bookings(text: str = Form(""), ctrl: BookingController = Depends(get_controller)):
    return ctrl.list_bookings(text)


def create_app(signing_secret: str | None = None) -> FastAPI:
    app = FastAPI(title="Env Booking Bot", version="0.1.0")
    app.add_middleware(
        SlackSignatureMiddleware,
        signing_secret=settings.slack_signing_secret if signing_secret is None else signing_secret,
        path_prefix=slack.prefix,
        max_age=settings.signature_max_age,
    )
    app.include_router(slack)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    logger.info("Starting server on port %s", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
