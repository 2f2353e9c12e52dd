"""ASGI entry point. Run with ``uvicorn lineage_api.main:app --host 0.0.0.0 --port 8000``."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lineage_api.api.routes import trace
from lineage_api.core.config import settings
from lineage_api.core.errors import register_exception_handlers
from lineage_api.core.security import InMemoryRateLimiterMiddleware, RequestContextMiddleware

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Production Lineage Traceability API",
    version="0.1.0",
    description=(
        "Serial-number traceability for produced units: ancestor lineage back "
        "toward raw materials, immediate consumers, and compact lineage for QR labels."
    ),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)
app.add_middleware(InMemoryRateLimiterMiddleware)
app.add_middleware(RequestContextMiddleware)
register_exception_handlers(app)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


app.include_router(trace.router, prefix="/api/v1/trace", tags=["traceability"])
