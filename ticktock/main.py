from __future__ import annotations

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .auth import require_auth
from .config import reload_settings, settings
from .errors import CallbackInvocationError
from .logging_setup import RequestLogMiddleware, init_logging
from .metrics import LAT, REQS, router as metrics_router
from .scheduler import Emitter
from .subscriber import Subscriber


class Health(BaseModel):
    status: str
    time: str


class StopwatchIn(BaseModel):
    name: Optional[str] = None


class StopwatchOut(BaseModel):
    id: str
    name: str
    count: int
    seconds_elapsed: float
    attached: bool


def _stopwatch_out(sw: Subscriber) -> StopwatchOut:
    return StopwatchOut(
        id=sw.id,
        name=sw.name,
        count=sw.counter(),
        seconds_elapsed=sw.seconds_elapsed,
        attached=sw.attached,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    reload_settings()
    emitter = Emitter(
        settings.TICK_INTERVAL_SECONDS,
        name="clock",
        stop_on_error=settings.STOP_ON_CALLBACK_ERROR,
    )
    app.state.emitter = emitter
    app.state.stopwatches = {}
    if settings.EMITTER_AUTOSTART:
        emitter.start()
    try:
        yield
    finally:
        await emitter.stop()
        for sw in app.state.stopwatches.values():
            sw.detach()
        app.state.stopwatches.clear()


init_logging(settings.LOG_LEVEL)

app = FastAPI(title="TickTock", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLogMiddleware)
app.include_router(metrics_router())

origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def _metrics(request: Request, call_next):
    method = request.method
    path = request.url.path
    start = time.time()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        REQS.labels(method, path, str(status_code)).inc()
        LAT.labels(method, path).observe(time.time() - start)


def get_emitter(request: Request) -> Emitter:
    return request.app.state.emitter


def get_stopwatches(request: Request) -> dict[str, Subscriber]:
    return request.app.state.stopwatches


def _status_payload(emitter: Emitter) -> dict:
    state = emitter.state
    return {
        "status": state.status.value,
        "running": state.running,
        "last_started": state.last_started,
        "last_finished": state.last_finished,
        "last_error": state.last_error,
        "total_ticks": state.total_ticks,
        "total_errors": state.total_errors,
        "interval": emitter.interval,
        "subscribers": emitter.subscribers,
        "stop_on_error": emitter.stop_on_error,
    }


@app.get("/health", response_model=Health)
def health():
    return Health(status="ok", time=datetime.now(timezone.utc).isoformat())


@app.get("/emitter/status")
async def emitter_status(emitter: Emitter = Depends(get_emitter)):
    return _status_payload(emitter)


@app.post("/emitter/start")
async def emitter_start(
    emitter: Emitter = Depends(get_emitter), _=Depends(require_auth)
):
    emitter.start()
    return _status_payload(emitter)


@app.post("/emitter/stop")
async def emitter_stop(
    emitter: Emitter = Depends(get_emitter), _=Depends(require_auth)
):
    await emitter.stop()
    return _status_payload(emitter)


@app.post("/emitter/tick")
async def emitter_tick(
    emitter: Emitter = Depends(get_emitter), _=Depends(require_auth)
):
    try:
        called = await emitter.tick()
    except CallbackInvocationError as exc:
        return {"ok": False, "called": exc.total, "error": str(exc)}
    return {"ok": True, "called": called, "error": None}


@app.post("/stopwatches", status_code=201, response_model=StopwatchOut)
async def create_stopwatch(
    payload: Optional[StopwatchIn] = Body(default=None),
    emitter: Emitter = Depends(get_emitter),
    stopwatches: dict[str, Subscriber] = Depends(get_stopwatches),
    _=Depends(require_auth),
):
    if len(stopwatches) >= settings.MAX_SUBSCRIBERS:
        raise HTTPException(status_code=409, detail="too many stopwatches")
    sw = Subscriber(payload.name if payload else None)
    sw.on_created(emitter)
    stopwatches[sw.id] = sw
    return _stopwatch_out(sw)


@app.get("/stopwatches")
async def list_stopwatches(
    stopwatches: dict[str, Subscriber] = Depends(get_stopwatches),
):
    return {"items": [_stopwatch_out(sw) for sw in stopwatches.values()]}


@app.get("/stopwatches/{stopwatch_id}", response_model=StopwatchOut)
async def get_stopwatch(
    stopwatch_id: str,
    stopwatches: dict[str, Subscriber] = Depends(get_stopwatches),
):
    sw = stopwatches.get(stopwatch_id)
    if sw is None:
        raise HTTPException(status_code=404, detail="unknown stopwatch")
    return _stopwatch_out(sw)


@app.delete("/stopwatches/{stopwatch_id}", response_model=StopwatchOut)
async def delete_stopwatch(
    stopwatch_id: str,
    stopwatches: dict[str, Subscriber] = Depends(get_stopwatches),
    _=Depends(require_auth),
):
    sw = stopwatches.pop(stopwatch_id, None)
    if sw is None:
        raise HTTPException(status_code=404, detail="unknown stopwatch")
    sw.detach()
    return _stopwatch_out(sw)
