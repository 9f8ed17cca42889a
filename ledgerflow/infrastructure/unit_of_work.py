"""
Infrastructure - SQLAlchemy unit of work.

One session per lifecycle action. Storage failures roll the whole unit back
and surface as domain errors; the document keeps its prior state.
"""

import logging

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ledgerflow.domain.exceptions import ConflictError, InfrastructureError
from ledgerflow.domain.services import IUnitOfWork
from ledgerflow.infrastructure.repositories import (
    AccountRepository,
    ExchangeRateRepository,
    FiscalPeriodRepository,
    InvoiceRepository,
    JournalRepository,
    PaymentRepository,
    TenantRepository,
)

logger = logging.getLogger(__name__)


def translate_storage_error(exc: SQLAlchemyError) -> Exception:
    """Map a driver error onto the domain taxonomy."""
    if isinstance(exc, IntegrityError):
        # A unique key lost a race: duplicate number or a second journal for one document.
        return ConflictError("Concurrent write conflict; re-fetch and retry", reason=str(exc.orig))
    if isinstance(exc, OperationalError):
        return InfrastructureError("Storage unavailable or timed out", reason=str(exc.orig))
    return InfrastructureError("Storage failure", reason=str(exc))


class SqlAlchemyUnitOfWork(IUnitOfWork):

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self.session: Session | None = None

    def __enter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self.session_factory()
        self.tenants = TenantRepository(self.session)
        self.accounts = AccountRepository(self.session)
        self.periods = FiscalPeriodRepository(self.session)
        self.invoices = InvoiceRepository(self.session)
        self.payments = PaymentRepository(self.session)
        self.journals = JournalRepository(self.session)
        self.exchange_rates = ExchangeRateRepository(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is not None:
                self.rollback()
        finally:
            self.session.close()
        if isinstance(exc, SQLAlchemyError):
            logger.error("Unit of work rolled back after storage error: %s", exc)
            raise translate_storage_error(exc) from exc

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.rollback()
            logger.error("Commit failed, unit of work rolled back: %s", exc)
            raise translate_storage_error(exc) from exc

    def rollback(self) -> None:
        try:
            self.session.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed")
