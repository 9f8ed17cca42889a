"""Infrastructure layer."""

from ledgerflow.infrastructure.audit_store import SqlAlchemyAuditLogRepository
from ledgerflow.infrastructure.database import SessionLocal, init_db, seed_default_accounts
from ledgerflow.infrastructure.unit_of_work import SqlAlchemyUnitOfWork
