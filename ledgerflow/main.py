"""
Main FastAPI application - LedgerFlow document lifecycle and posting engine.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ledgerflow.api.dependencies import get_reporting_service
from ledgerflow.api.routers import documents, ledger_setup, reports
from ledgerflow.application.reporting import ReportingService
from ledgerflow.core.config import settings
from ledgerflow.core.logging import configure_logging
from ledgerflow.domain.exceptions import (
    AllocationError,
    ConflictError,
    InfrastructureError,
    LedgerError,
    NotFoundError,
    PeriodClosedError,
    PostingImbalanceError,
    StateError,
    ValidationError,
)
from ledgerflow.infrastructure.database import init_db

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[LedgerError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StateError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
    PostingImbalanceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    AllocationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PeriodClosedError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InfrastructureError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: LedgerError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan - startup and shutdown events."""
    configure_logging(settings)
    init_db()
    logger.info("%s started (%s)", settings.app_name, settings.app_env)
    yield


app = FastAPI(
    title=settings.app_name,
    description="""
## Financial document lifecycle & double-entry posting engine

### Features:
- **Documents**: invoices, payments and manual journals through draft, submitted, approved and posted
- **Posting**: balanced journals generated in base currency on post
- **Allocation**: payments allocated to invoices, balances tracked to partial/paid
- **Audit trail**: one entry per mutating action, successful or not
- **Trial balance**: per-account totals as of a date

### Rules:
- A document is posted at most once
- Closed fiscal periods reject postings
- Every debit has an equal credit
    """,
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ledger_setup.router)
app.include_router(reports.router)
app.include_router(reports.audit_router)
# Last: its /{collection}/{id}/{action} pattern would shadow the fixed routes above.
app.include_router(documents.router)


@app.get("/")
def root():
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "api_version": settings.api_version,
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/ledger")
def ledger_health(service: ReportingService = Depends(get_reporting_service)):
    """Overall ledger balance signal; per-tenant figures live behind /api/v1/reports."""
    return service.ledger_health()


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Map domain errors onto HTTP statuses."""
    code = status_for(exc)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=code,
        content=exc.to_dict(),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
