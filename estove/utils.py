from datetime import datetime, timezone

from dateutil import parser as dtparser
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .settings import Settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(ts: datetime) -> datetime:
    # some backends hand stored values back without tzinfo; they are UTC
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_ts(value: str | datetime) -> datetime:
    """Parse an ISO-8601 instant into an aware UTC datetime.

    Instants without an offset are taken as UTC. Raises ValueError (or
    TypeError) when the value is not an instant.
    """
    ts = value if isinstance(value, datetime) else dtparser.isoparse(value)
    return as_utc(ts)


def add_cors(app: FastAPI, settings: Settings):
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "Origin"],
    )
