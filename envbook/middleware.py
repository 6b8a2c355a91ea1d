from __future__ import annotations

import logging

from starlette.datastructures import Headers
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from envbook.errors import AuthenticationError, BodyReadFailure
from envbook.utils.signature import DEFAULT_MAX_AGE, check_headers, check_signature

logger = logging.getLogger(__name__)

TIMESTAMP_HEADER = "X-Slack-Request-Timestamp"
SIGNATURE_HEADER = "X-Slack-Signature"


async def _read_body(receive: Receive) -> bytes:
    chunks: list[bytes] = []
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            raise BodyReadFailure("client disconnected before the body was complete")
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            return b"".join(chunks)


def _replay(body: bytes, receive: Receive) -> Receive:
    sent = False

    async def replay_receive() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay_receive


class SlackSignatureMiddleware:
    """Reject requests under ``path_prefix`` that are not signed by Slack.

    The request body is consumed to verify the HMAC and then replayed, byte
    for byte, to the wrapped application.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        signing_secret: str,
        path_prefix: str = "/slack",
        max_age: int = DEFAULT_MAX_AGE,
    ) -> None:
        self.app = app
        self._secret = signing_secret
        self._prefix = path_prefix
        self._max_age = max_age

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self._guards(scope["path"]):
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        timestamp = headers.get(TIMESTAMP_HEADER)
        signature = headers.get(SIGNATURE_HEADER)
        try:
            check_headers(timestamp, signature, max_age=self._max_age)
            body = await _read_body(receive)
            check_signature(self._secret, timestamp, body, signature)
        except BodyReadFailure as exc:
            logger.error("Failed to read request body: %s", exc)
            await self._reject(exc, scope, receive, send)
            return
        except AuthenticationError as exc:
            logger.warning(
                "Slack signature verification failed: %s (path=%s)",
                exc.detail.lower(),
                scope["path"],
            )
            await self._reject(exc, scope, receive, send)
            return

        logger.debug("Slack signature verified for %s", scope["path"])
        await self.app(scope, _replay(body, receive), send)

    def _guards(self, path: str) -> bool:
        return path == self._prefix or path.startswith(self._prefix + "/")

    @staticmethod
    async def _reject(
        exc: AuthenticationError, scope: Scope, receive: Receive, send: Send
    ) -> None:
        response = PlainTextResponse(exc.detail, status_code=exc.status_code)
        await response(scope, receive, send)
