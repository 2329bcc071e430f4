import logging
import os
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from . import config
from .db import engine, init_db
from .logging_config import log_event
from .registers import router as registers_router
from .reporting import router as reporting_router
from .scoring import ScoringContractError


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


openapi_tags = [
    {"name": "Health", "description": "Service status and metrics"},
    {"name": "Risks", "description": "ISO 45001/9001 risk register with ordinal scoring"},
    {"name": "Aspects", "description": "ISO 14001 environmental aspects and significance"},
    {"name": "Incidents", "description": "Incident register"},
    {"name": "Actions", "description": "Corrective and preventive actions"},
    {"name": "Legal", "description": "Legal and other requirements"},
    {"name": "Analyses", "description": "Root-cause analysis results"},
    {"name": "Safety", "description": "Monthly safety figures and year-to-date rates"},
    {"name": "Quality", "description": "Monthly ISO 9001 quality figures, DPMO, yield and sigma"},
    {"name": "Environment", "description": "Carbon footprint and waste diversion calculators"},
    {"name": "Dashboard", "description": "Compliance scores and IMS dashboard"},
]

app = FastAPI(
    title="IMS Compliance API",
    version="0.1.0",
    description="Risk scoring, safety rates and compliance aggregation for an ISO 45001/14001/9001 management system.",
    lifespan=lifespan,
    openapi_tags=openapi_tags,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(registers_router)
app.include_router(reporting_router)


# --- OpenTelemetry (optional) ---
if os.getenv("OTEL_ENABLED", "false").lower() in ("1", "true", "yes"):
    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
    except ImportError as e:
        log_event("otel_unavailable", error=str(e))
    else:
        provider = TracerProvider(resource=Resource(attributes={"service.name": "ims-backend"}))
        endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        exporter = OTLPSpanExporter(endpoint=endpoint) if endpoint else OTLPSpanExporter()
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)
        FastAPIInstrumentor.instrument_app(app)
        SQLAlchemyInstrumentor().instrument(engine=engine)


# --- Request ID + metrics middleware ---
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=("method", "status"),
)
ERROR_COUNT = Counter(
    "http_requests_errors_total",
    "Total HTTP error responses",
    labelnames=("method", "status"),
)
# duration histogram (seconds) with per-route label
REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    labelnames=("method", "route", "status"),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)


def _observe(request: Request, status: int, start: float) -> float:
    duration = time.perf_counter() - start
    REQUEST_COUNT.labels(method=request.method, status=str(status)).inc()
    if status >= 400:
        ERROR_COUNT.labels(method=request.method, status=str(status)).inc()
    route_label = getattr(request.scope.get("route"), "path", request.url.path)
    REQUEST_DURATION.labels(method=request.method, route=route_label, status=str(status)).observe(duration)
    return round(duration * 1000.0, 2)


@app.middleware("http")
async def add_request_id_and_collect_metrics(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = req_id
    start = time.perf_counter()
    context = {
        "request_id": req_id,
        "method": request.method,
        "path": request.url.path,
        "query": request.url.query,
        "client_ip": getattr(request.client, "host", None),
        "user_agent": request.headers.get("user-agent"),
    }
    try:
        response: Response = await call_next(request)
    except Exception as exc:
        duration_ms = _observe(request, 500, start)
        log_event("request_error", logging.ERROR, **context, status=500, duration_ms=duration_ms, error=str(exc))
        raise
    response.headers["X-Request-ID"] = req_id
    duration_ms = _observe(request, response.status_code, start)
    log_event("request", **context, status=response.status_code, duration_ms=duration_ms)
    return response


# Security headers
@app.middleware("http")
async def security_headers(request: Request, call_next):
    response: Response = await call_next(request)
    if config.env_mode() == "prod":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
    return response


@app.exception_handler(ScoringContractError)
async def scoring_contract_error(request: Request, exc: ScoringContractError):
    log_event("scoring_contract_error", request_id=getattr(request.state, "request_id", None), error=str(exc))
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok"}


@app.get("/metrics", tags=["Health"])
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.app.main:app", host="0.0.0.0", port=8000, reload=False)
