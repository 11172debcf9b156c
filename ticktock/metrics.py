from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REQS = Counter(
    "ticktock_requests_total",
    "Requests",
    ["method", "path", "status"],
)
LAT = Histogram(
    "ticktock_latency_seconds",
    "Latency",
    ["method", "path"],
)
TICKS = Counter(
    "ticktock_ticks_total",
    "Invocation passes run by emitters",
    ["emitter"],
)
CALLBACK_ERRORS = Counter(
    "ticktock_callback_errors_total",
    "Callbacks that raised during an invocation pass",
    ["emitter"],
)
SUBSCRIBERS = Gauge(
    "ticktock_subscribers",
    "Callbacks currently registered on an emitter",
    ["emitter"],
)
EMITTER_UP = Gauge(
    "ticktock_emitter_running",
    "1 while the emitter tick loop is running",
    ["emitter"],
)


def router() -> APIRouter:
    r = APIRouter()

    @r.get("/metrics", include_in_schema=False)
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return r
