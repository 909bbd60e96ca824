import asyncio
import logging
from datetime import datetime, timezone
from queue import Queue
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from .commands import CommandQueue, Enqueued
from .db import Database, get_database
from .errors import EStoveError, describe_errors
from .models import Command, CommandKind, TelemetryRecord
from .schemas import (
    CommandOut, CommandProcessedRequest, HealthOut, StartCookingRequest, StoveReading,
    TelemetryOut, TelemetryPage, Pagination, ToggleManualRequest,
)
from .settings import Settings, settings as default_settings
from .telemetry import TelemetryStore
from .utils import add_cors, as_utc
from .ws_manager import ConnectionManager, publish, queue_forwarder

log = logging.getLogger("api")

router = APIRouter()


def telemetry_out(r: TelemetryRecord) -> TelemetryOut:
    return TelemetryOut(
        id=r.id, temperature=r.temperature, relay=r.relay, manualMode=r.manual_mode,
        cooking=r.cooking, timeLeft=r.time_left, timestamp=as_utc(r.timestamp), commandId=r.command_id,
    )


def command_out(c: Command) -> CommandOut:
    return CommandOut(id=c.id, command=c.command, seconds=c.seconds, timestamp=as_utc(c.timestamp), processed=c.processed)


def get_telemetry(db: Database = Depends(get_database)) -> TelemetryStore:
    return TelemetryStore(db)


def get_commands(request: Request, telemetry: TelemetryStore = Depends(get_telemetry)) -> CommandQueue:
    return CommandQueue(telemetry.db, telemetry, enabled=request.app.state.settings.command_queue_enabled)


def _broadcast(request: Request, out: TelemetryOut):
    publish(request.app.state.message_queue, "telemetry", out.model_dump(mode="json"))


def _action_response(request: Request, message: str, result: Enqueued) -> dict:
    data = telemetry_out(result.record)
    _broadcast(request, data)
    body = {"message": message, "data": data}
    if result.command is not None:
        body["command"] = command_out(result.command)
    return body


# ---------------- device-facing ----------------

@router.post("/api/stove-data")
def post_stove_data(reading: StoveReading, request: Request, telemetry: TelemetryStore = Depends(get_telemetry)):
    rec = telemetry.append(reading)
    data = telemetry_out(rec)
    _broadcast(request, data)
    return {"message": "Data saved successfully", "data": data}


@router.get("/api/commands/pending")
def pending_command(commands: CommandQueue = Depends(get_commands)):
    cmd = commands.next_pending()
    if cmd is None:
        return {"message": "No pending commands"}
    return command_out(cmd)


@router.post("/api/commands/processed")
def command_processed(body: CommandProcessedRequest, commands: CommandQueue = Depends(get_commands)):
    commands.acknowledge(body.commandId)
    return {"message": "Command marked as processed"}


# ---------------- client-facing ----------------

@router.get("/api/stove-data/latest")
def latest_stove_data(telemetry: TelemetryStore = Depends(get_telemetry)):
    rec = telemetry.latest()
    if rec is None:
        return {"message": "No data available"}
    return telemetry_out(rec)


@router.get("/api/stove-data/range", response_model=List[TelemetryOut])
def stove_data_range(
    start: Optional[str] = None,
    end: Optional[str] = None,
    telemetry: TelemetryStore = Depends(get_telemetry),
):
    return [telemetry_out(r) for r in telemetry.range(start, end)]


@router.get("/api/stove-data", response_model=TelemetryPage)
def list_stove_data(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    telemetry: TelemetryStore = Depends(get_telemetry),
):
    result = telemetry.list(page, limit)
    return TelemetryPage(
        data=[telemetry_out(r) for r in result.records],
        pagination=Pagination(page=result.page, limit=result.limit, total=result.total, pages=result.pages),
    )


@router.post("/api/start-cooking")
def start_cooking(body: StartCookingRequest, request: Request, commands: CommandQueue = Depends(get_commands)):
    result = commands.enqueue(CommandKind.start, body.seconds)
    log.info("cooking started: seconds=%s foodType=%s weight=%s", body.seconds, body.foodType, body.weight)
    return _action_response(request, "Cooking started successfully", result)


@router.post("/api/stop-cooking")
def stop_cooking(request: Request, commands: CommandQueue = Depends(get_commands)):
    result = commands.enqueue(CommandKind.stop)
    log.info("cooking stopped - relay off, cooking off")
    return _action_response(request, "Cooking stopped successfully", result)


@router.post("/api/toggle-manual")
def toggle_manual(
    request: Request,
    body: Optional[ToggleManualRequest] = None,
    commands: CommandQueue = Depends(get_commands),
):
    manual = body.manualMode if body else False
    result = commands.enqueue(CommandKind.manual_on if manual else CommandKind.manual_off)
    log.info("manual mode toggled: %s", manual)
    return _action_response(request, "Manual mode toggled successfully", result)


@router.websocket("/ws/stove-data")
async def stove_data_ws(websocket: WebSocket):
    manager: ConnectionManager = websocket.app.state.manager
    await manager.connect(websocket)
    try:
        while True:
            # clients only listen; reading detects the disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)


# ---------------- misc ----------------

@router.get("/health", response_model=HealthOut)
def health():
    return HealthOut(status="OK", timestamp=datetime.now(timezone.utc))


@router.get("/", response_class=PlainTextResponse)
def root():
    return "Welcome to eStove API!"


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="eStove API", version="0.1.0")
    add_cors(app, settings)

    app.state.settings = settings
    app.state.db = Database(settings.database_url)
    app.state.manager = ConnectionManager()
    app.state.message_queue = Queue()
    app.state.forwarder = None

    @app.exception_handler(EStoveError)
    async def estove_error_handler(request: Request, exc: EStoveError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": describe_errors(exc.errors())})

    @app.on_event("startup")
    async def on_startup():
        app.state.db.init()
        app.state.forwarder = asyncio.create_task(queue_forwarder(app.state.message_queue, app.state.manager))
        log.info("server running on %s", settings.server_url)
        log.info("device can send data to: %s/api/stove-data", settings.server_url)
        log.info("environment: %s, command queue %s", settings.environment,
                 "enabled" if settings.command_queue_enabled else "disabled")

    @app.on_event("shutdown")
    async def on_shutdown():
        if app.state.forwarder is not None:
            app.state.forwarder.cancel()
        app.state.db.close()

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=default_settings.host, port=default_settings.port)
