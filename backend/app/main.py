"""InvoiceFlow backend entrypoint."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.api import clients, dashboard, invoices, login, public, register, reports, settings, webhooks
from backend.app.core.errors import (
    ConflictError,
    DependencyError,
    InvalidStateError,
    InvoiceFlowError,
    NotFoundError,
    ValidationError,
)
from backend.app.core.logging_config import configure_logging
from backend.app.core.settings import get_settings
from backend.app.db.base import Base
from backend.app.db.session import engine

configure_logging()
logger = logging.getLogger(__name__)

app_settings = get_settings()
app = FastAPI(title=app_settings.app_name, version=app_settings.api_version)

origins = [
    app_settings.app_url,
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidStateError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_409_CONFLICT,
    DependencyError: status.HTTP_502_BAD_GATEWAY,
}


@app.exception_handler(InvoiceFlowError)
async def handle_domain_error(request: Request, exc: InvoiceFlowError):
    status_code = status.HTTP_400_BAD_REQUEST
    for error_class, code in ERROR_STATUS.items():
        if isinstance(exc, error_class):
            status_code = code
            break
    detail = exc.message
    if isinstance(exc, DependencyError):
        logger.warning("Dependency failure on %s %s: %s", request.method, request.url.path, exc.message)
        detail = "An external service is temporarily unavailable, please retry"
    return JSONResponse(status_code=status_code, content={"detail": detail})


app.include_router(register.router)
app.include_router(login.router)
app.include_router(settings.router)
app.include_router(clients.router)
app.include_router(invoices.router)
app.include_router(public.router)
app.include_router(webhooks.router)
app.include_router(dashboard.router)
app.include_router(reports.router)


@app.get("/")
def read_root():
    return {"app": app_settings.app_name, "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def create_tables():
    Base.metadata.create_all(bind=engine)
