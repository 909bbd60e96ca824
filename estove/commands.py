"""
Command queue: operator intents waiting for the stove to poll them.

Every enqueued command is paired with an optimistic telemetry record that
shows the state the stove should reach once it executes the command. The
device drains the queue oldest-first and acknowledges each command once.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlmodel import select

from .db import Database
from .errors import NotFoundError, PersistenceError, ValidationError, persistence
from .models import MAX_ID, MAX_INT, Command, CommandKind, TelemetryRecord
from .schemas import StoveReading
from .telemetry import TelemetryStore

log = logging.getLogger("commands")

# kind -> (relay, manualMode, cooking); timeLeft is `seconds` for start, else 0
OPTIMISTIC_STATE = {
    CommandKind.start: (True, False, True),
    CommandKind.stop: (False, False, False),
    CommandKind.manual_on: (True, True, True),
    CommandKind.manual_off: (False, False, False),
}

FAILURE_MESSAGES = {
    CommandKind.start: "Failed to start cooking",
    CommandKind.stop: "Failed to stop cooking",
    CommandKind.manual_on: "Failed to toggle manual mode",
    CommandKind.manual_off: "Failed to toggle manual mode",
}


def optimistic_reading(kind: CommandKind, seconds: int = 0) -> StoveReading:
    relay, manual, cooking = OPTIMISTIC_STATE[kind]
    return StoveReading(
        temperature=0,  # unknown until the device reports
        relay=relay,
        manualMode=manual,
        cooking=cooking,
        timeLeft=seconds if kind is CommandKind.start else 0,
    )


@dataclass
class Enqueued:
    record: TelemetryRecord
    command: Optional[Command] = None


class CommandQueue:
    def __init__(self, db: Database, telemetry: TelemetryStore, enabled: bool = True):
        self.db = db
        self.telemetry = telemetry
        # disabled: no command collection, optimistic telemetry only
        self.enabled = enabled

    def enqueue(self, kind: CommandKind | str, seconds: Optional[int] = 0) -> Enqueued:
        try:
            kind = CommandKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown command: {kind!r}") from None

        if kind is CommandKind.start:
            if not isinstance(seconds, int) or isinstance(seconds, bool) or seconds <= 0 or seconds > MAX_INT:
                raise ValidationError("Invalid cooking time")
        else:
            seconds = 0

        reading = optimistic_reading(kind, seconds)
        if not self.enabled:
            return Enqueued(record=self._append_optimistic(kind, reading, None))

        cmd = Command(command=kind, seconds=seconds)
        with persistence(log, FAILURE_MESSAGES[kind]):
            with self.db.session() as session:
                session.add(cmd)
                session.commit()
                session.refresh(cmd)
        log.info("command queued id=%s %s seconds=%s", cmd.id, kind.value, seconds)

        # separate commit: a failure here leaves the command without its record
        record = self._append_optimistic(kind, reading, cmd.id)
        return Enqueued(record=record, command=cmd)

    def _append_optimistic(self, kind: CommandKind, reading: StoveReading, command_id: Optional[int]):
        try:
            return self.telemetry.append(reading, command_id=command_id)
        except PersistenceError as e:
            log.error("optimistic record for %s (command %s) not written", kind.value, command_id)
            raise PersistenceError(FAILURE_MESSAGES[kind]) from e

    def next_pending(self) -> Optional[Command]:
        if not self.enabled:
            return None
        with persistence(log, "Failed to fetch commands"):
            with self.db.session() as session:
                stmt = (
                    select(Command)
                    .where(Command.processed == False)  # noqa: E712
                    .order_by(Command.timestamp.asc(), Command.id.asc())
                    .limit(1)
                )
                return session.exec(stmt).first()

    def acknowledge(self, command_id: int) -> Command:
        # ids outside the column range cannot exist
        if not self.enabled or not 0 < command_id <= MAX_ID:
            raise NotFoundError("Command not found")
        with persistence(log, "Failed to mark command as processed"):
            with self.db.session() as session:
                cmd = session.get(Command, command_id)
                if not cmd:
                    raise NotFoundError("Command not found")
                if cmd.processed:
                    log.info("command %s already processed", command_id)
                    return cmd
                cmd.processed = True
                session.add(cmd)
                session.commit()
                session.refresh(cmd)
        log.info("command processed id=%s %s", cmd.id, cmd.command.value)
        return cmd
