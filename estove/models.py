from typing import Optional
from datetime import datetime
from enum import Enum
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field

from .utils import utcnow

# column bounds: durations fit a 32-bit int, ids a 64-bit one
MAX_INT = 2**31 - 1
MAX_ID = 2**63 - 1


class CommandKind(str, Enum):
    start = "start"
    stop = "stop"
    manual_on = "manual_on"
    manual_off = "manual_off"


class Command(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    command: CommandKind
    seconds: int = Field(default=0)  # only meaningful for start
    timestamp: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True), index=True)
    processed: bool = Field(default=False, index=True)


class TelemetryRecord(SQLModel, table=True):
    __tablename__ = "stove_data"

    id: Optional[int] = Field(default=None, primary_key=True)
    temperature: float
    relay: bool
    manual_mode: bool
    cooking: bool
    time_left: int
    timestamp: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True), index=True)
    # set on optimistic records written alongside a command
    command_id: Optional[int] = Field(default=None, foreign_key="command.id")
