"""
Telemetry store: append-only log of stove readings.

Readings come either from the device (authoritative) or from an operator
action (optimistic, linked to the command that produced it). Nothing is ever
updated or deleted; "current state" is simply the newest record.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlmodel import func, select

from .db import Database
from .errors import ValidationError, describe_errors, persistence
from .models import MAX_INT, TelemetryRecord
from .schemas import StoveReading
from .utils import parse_ts

log = logging.getLogger("telemetry")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 50
MAX_LIMIT = 1000


@dataclass
class Page:
    records: List[TelemetryRecord] = field(default_factory=list)
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    total: int = 0

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit)


def _newest_first(stmt):
    # id breaks ties between inserts sharing a clock tick
    return stmt.order_by(TelemetryRecord.timestamp.desc(), TelemetryRecord.id.desc())


def _positive(value: Optional[int], default: int) -> int:
    if value is None or value <= 0:
        return default
    return value


class TelemetryStore:
    def __init__(self, db: Database):
        self.db = db

    def append(
        self,
        reading: StoveReading | Mapping[str, Any],
        command_id: Optional[int] = None,
    ) -> TelemetryRecord:
        if not isinstance(reading, StoveReading):
            try:
                reading = StoveReading.model_validate(reading)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid reading: {describe_errors(e.errors())}") from e

        rec = TelemetryRecord(
            temperature=reading.temperature,
            relay=reading.relay,
            manual_mode=reading.manualMode,
            cooking=reading.cooking,
            time_left=reading.timeLeft,
            command_id=command_id,
        )
        with persistence(log, "Failed to save data"):
            with self.db.session() as session:
                session.add(rec)
                session.commit()
                session.refresh(rec)

        log.info(
            "reading saved id=%s temp=%.1f relay=%s manual=%s cooking=%s left=%ss%s",
            rec.id, rec.temperature, rec.relay, rec.manual_mode, rec.cooking, rec.time_left,
            f" (command {command_id})" if command_id is not None else "",
        )
        return rec

    def latest(self) -> Optional[TelemetryRecord]:
        with persistence(log, "Failed to fetch data"):
            with self.db.session() as session:
                return session.exec(_newest_first(select(TelemetryRecord)).limit(1)).first()

    def list(self, page: Optional[int] = None, limit: Optional[int] = None) -> Page:
        page = _positive(page, DEFAULT_PAGE)
        limit = min(_positive(limit, DEFAULT_LIMIT), MAX_LIMIT)
        if page > MAX_INT:
            raise ValidationError("Invalid page")

        with persistence(log, "Failed to fetch data"):
            with self.db.session() as session:
                stmt = _newest_first(select(TelemetryRecord)).offset((page - 1) * limit).limit(limit)
                rows = session.exec(stmt).all()
                total = session.exec(select(func.count()).select_from(TelemetryRecord)).one()

        return Page(records=list(rows), page=page, limit=limit, total=total)

    def range(
        self,
        start: str | datetime | None,
        end: str | datetime | None,
    ) -> List[TelemetryRecord]:
        if start is None or end is None:
            raise ValidationError("Both start and end are required")
        try:
            start_ts = parse_ts(start)
            end_ts = parse_ts(end)
        except (ValueError, TypeError, OverflowError) as e:
            raise ValidationError(f"Invalid time range: {e}") from e
        if start_ts > end_ts:
            raise ValidationError("Invalid time range: start is after end")

        with persistence(log, "Failed to fetch range data"):
            with self.db.session() as session:
                stmt = select(TelemetryRecord).where(
                    TelemetryRecord.timestamp >= start_ts,
                    TelemetryRecord.timestamp <= end_ts,
                )
                return list(session.exec(_newest_first(stmt)).all())
