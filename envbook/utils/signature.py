from __future__ import annotations

import hashlib
import hmac
import re
import time

from envbook.errors import (
    InvalidTimestamp,
    MissingSignature,
    MissingTimestamp,
    SignatureMismatch,
    StaleTimestamp,
)

SIGNATURE_VERSION = "v0"
DEFAULT_MAX_AGE = 60 * 5
_TIMESTAMP = re.compile(r"[+-]?[0-9]+")


def compute_signature(signing_secret: str, timestamp: str, body: bytes) -> str:
    base = b":".join(
        [SIGNATURE_VERSION.encode(), timestamp.encode(), body]
    )
    digest = hmac.new(signing_secret.encode(), base, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def check_timestamp(
    timestamp: str | None,
    *,
    max_age: int = DEFAULT_MAX_AGE,
    now: float | None = None,
) -> int:
    """Return the parsed timestamp or raise if it is missing, malformed or stale.

    Timestamps in the future are accepted.
    """

    if not timestamp:
        raise MissingTimestamp()
    if not _TIMESTAMP.fullmatch(timestamp):
        raise InvalidTimestamp()
    ts = int(timestamp)
    current = int(now if now is not None else time.time())
    if current - ts > max_age:
        raise StaleTimestamp()
    return ts


def check_signature(
    signing_secret: str, timestamp: str, body: bytes, signature: str
) -> None:
    expected = compute_signature(signing_secret, timestamp, body)
    if not hmac.compare_digest(expected.encode(), signature.encode()):
        raise SignatureMismatch()


def check_headers(
    timestamp: str | None,
    signature: str | None,
    *,
    max_age: int = DEFAULT_MAX_AGE,
    now: float | None = None,
) -> None:
    """Header checks that must pass before the body is read."""

    check_timestamp(timestamp, max_age=max_age, now=now)
    if not signature:
        raise MissingSignature()


def verify_request(
    signing_secret: str,
    timestamp: str | None,
    signature: str | None,
    body: bytes,
    *,
    max_age: int = DEFAULT_MAX_AGE,
    now: float | None = None,
) -> None:
    """Run every check in order; the first failure is raised."""

    check_headers(timestamp, signature, max_age=max_age, now=now)
    check_signature(signing_secret, timestamp, body, signature)
