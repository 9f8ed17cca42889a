"""
API dependencies - identity headers and service wiring.
"""

from functools import partial

from fastapi import Depends, Header
from sqlalchemy.orm import sessionmaker

from ledgerflow.application.documents import DocumentService
from ledgerflow.application.ledger_setup import LedgerSetupService
from ledgerflow.application.lifecycle import LifecycleService
from ledgerflow.application.reporting import ReportingService
from ledgerflow.core.config import Settings, get_settings
from ledgerflow.core.security import IdentityContext
from ledgerflow.domain.audit import AuditTrailRecorder
from ledgerflow.domain.exceptions import ValidationError
from ledgerflow.infrastructure.audit_store import SqlAlchemyAuditLogRepository
from ledgerflow.infrastructure.database import SessionLocal
from ledgerflow.infrastructure.unit_of_work import SqlAlchemyUnitOfWork


def get_session_factory() -> sessionmaker:
    """Overridden in tests to point at an in-memory database."""
    return SessionLocal


def get_identity(
    x_user_id: str | None = Header(None),
    x_tenant_id: str | None = Header(None),
) -> IdentityContext:
    return IdentityContext.from_headers(x_user_id, x_tenant_id)


def get_user_id(x_user_id: str | None = Header(None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise ValidationError("Missing X-User-Id header")
    return x_user_id.strip()


def _service_kwargs(session_factory: sessionmaker, settings: Settings) -> dict:
    store = SqlAlchemyAuditLogRepository(session_factory)
    return {
        "uow_factory": partial(SqlAlchemyUnitOfWork, session_factory),
        "audit": AuditTrailRecorder(store, excluded_fields=settings.audit_excluded_fields),
        "defaults": settings.default_accounts,
    }


def get_lifecycle_service(
    session_factory: sessionmaker = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> LifecycleService:
    return LifecycleService(**_service_kwargs(session_factory, settings))


def get_document_service(
    session_factory: sessionmaker = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> DocumentService:
    return DocumentService(**_service_kwargs(session_factory, settings))


def get_setup_service(
    session_factory: sessionmaker = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> LedgerSetupService:
    return LedgerSetupService(**_service_kwargs(session_factory, settings))


def get_reporting_service(
    session_factory: sessionmaker = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> ReportingService:
    return ReportingService(
        partial(SqlAlchemyUnitOfWork, session_factory),
        SqlAlchemyAuditLogRepository(session_factory),
        settings,
    )
