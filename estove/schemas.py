from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any

from .models import MAX_ID, MAX_INT, CommandKind

class StoveReading(BaseModel):
    temperature: float = Field(allow_inf_nan=False)
    relay: bool
    manualMode: bool
    cooking: bool
    timeLeft: int = Field(ge=0, le=MAX_INT)

class StartCookingRequest(BaseModel):
    seconds: int | None = Field(default=None, le=MAX_INT)
    # informational only, never persisted
    foodType: Any = None
    weight: Any = None

class ToggleManualRequest(BaseModel):
    manualMode: bool = False

class CommandProcessedRequest(BaseModel):
    commandId: int = Field(ge=1, le=MAX_ID)

class TelemetryOut(BaseModel):
    id: int
    temperature: float
    relay: bool
    manualMode: bool
    cooking: bool
    timeLeft: int
    timestamp: datetime
    commandId: int | None = None

class CommandOut(BaseModel):
    id: int
    command: CommandKind
    seconds: int
    timestamp: datetime
    processed: bool

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

class TelemetryPage(BaseModel):
    data: list[TelemetryOut]
    pagination: Pagination

class HealthOut(BaseModel):
    status: str
    timestamp: datetime
