from contextlib import asynccontextmanager

from sqlalchemy import text

from stockbook.core.errors import StockError
from stockbook.core.observability import (
    http_exception_handler,
    request_logging_middleware,
    setup_observability,
    stock_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from stockbook.core.config import settings
from stockbook.db.session import SessionLocal, engine
from stockbook.routers import products
from stockbook.services.audit_service import BackgroundAuditSink, SessionAuditSink


@asynccontextmanager
async def lifespan(app: FastAPI):
    audit_sink = BackgroundAuditSink(
        SessionAuditSink(SessionLocal),
        max_workers=settings.audit_worker_threads,
    )
    app.state.audit_sink = audit_sink
    try:
        yield
    finally:
        audit_sink.shutdown(wait=True)


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Stock ledger API.\n\n"
        "Every quantity change is recorded as an immutable stock movement. "
        "Authenticate with a bearer access token issued by the external identity service; "
        "this API verifies tokens but does not issue them."
    ),
    lifespan=lifespan,
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "products", "description": "Products, stock movements and reorder status."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(StockError, stock_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

cors_origins = settings.cors_origins or ["http://localhost:3000"]
allow_all_origins = "*" in cors_origins
env_value = settings.env.lower().strip()
allow_origin_regex = settings.cors_origin_regex

if (
    not allow_origin_regex
    and env_value in {"dev", "development", "staging", "stage"}
):
    # Local tooling uses dynamic localhost ports.
    allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(products.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        return {"ok": False}
    return {"ok": True}
