"""
Pytest configuration and fixtures.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from functools import partial
from uuid import UUID

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledgerflow.application.documents import DocumentService
from ledgerflow.application.dto.accounting_dto import (
    FiscalPeriodCreateDTO,
    InvoiceCreateDTO,
    InvoiceLineCreateDTO,
    PaymentCreateDTO,
    TenantCreateDTO,
)
from ledgerflow.application.ledger_setup import LedgerSetupService
from ledgerflow.application.lifecycle import LifecycleService
from ledgerflow.application.reporting import ReportingService
from ledgerflow.core.config import Settings
from ledgerflow.core.security import IdentityContext
from ledgerflow.domain.audit import AuditTrailRecorder
from ledgerflow.domain.chart_of_accounts import ChartOfAccounts, default_chart
from ledgerflow.domain.entities import AuditLogEntry, Invoice, InvoiceLine
from ledgerflow.domain.services import AuditLogFilter, IAuditLogRepository
from ledgerflow.domain.value_objects import DocumentKind, InvoiceType, PartyType
from ledgerflow.infrastructure.audit_store import SqlAlchemyAuditLogRepository
from ledgerflow.infrastructure.database import init_db
from ledgerflow.infrastructure.unit_of_work import SqlAlchemyUnitOfWork

FIXED_NOW = datetime(2026, 1, 20, 9, 30, tzinfo=timezone.utc)


class InMemoryAuditLog(IAuditLogRepository):
    """List-backed audit sink for domain tests."""

    def __init__(self, fail: bool = False):
        self.entries: list[AuditLogEntry] = []
        self.fail = fail

    def append(self, entry: AuditLogEntry) -> None:
        if self.fail:
            raise RuntimeError("audit store offline")
        self.entries.append(entry)

    def search(self, filters: AuditLogFilter):
        found = [e for e in self.entries if e.tenant_id == filters.tenant_id]
        return found, len(found)

    def between(self, tenant_id, start, end):
        return [e for e in self.entries if e.tenant_id == tenant_id]


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tenant_id() -> UUID:
    return UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def chart(tenant_id) -> ChartOfAccounts:
    return ChartOfAccounts(default_chart(tenant_id))


@pytest.fixture
def sales_invoice(tenant_id) -> Invoice:
    """10 x 500 at 15% tax, base currency."""
    return Invoice(
        invoice_number="INV-000001",
        invoice_type=InvoiceType.SALES,
        party_type=PartyType.CUSTOMER,
        party_id="CUST-001",
        invoice_date=date(2026, 1, 15),
        currency="QAR",
        tenant_id=tenant_id,
        created_by="alice",
        lines=[
            InvoiceLine(
                line_number=1,
                description="Consulting",
                quantity=Decimal("10"),
                unit_price=Decimal("500"),
                tax_rate=Decimal("15"),
            )
        ],
    )


@pytest.fixture
def audit_sink() -> InMemoryAuditLog:
    return InMemoryAuditLog()


@pytest.fixture
def failing_audit_sink() -> InMemoryAuditLog:
    return InMemoryAuditLog(fail=True)


# ---------------------------------------------------------------------------
# Database fixtures (SQLite in memory, one shared connection)
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(read_retry_backoff=0)


@pytest.fixture
def audit_store(session_factory) -> SqlAlchemyAuditLogRepository:
    return SqlAlchemyAuditLogRepository(session_factory)


@pytest.fixture
def service_kwargs(session_factory, audit_store, test_settings) -> dict:
    return {
        "uow_factory": partial(SqlAlchemyUnitOfWork, session_factory),
        "audit": AuditTrailRecorder(audit_store),
        "defaults": test_settings.default_accounts,
        "clock": lambda: FIXED_NOW,
    }


@pytest.fixture
def setup_service(service_kwargs) -> LedgerSetupService:
    return LedgerSetupService(**service_kwargs)


@pytest.fixture
def document_service(service_kwargs) -> DocumentService:
    return DocumentService(**service_kwargs)


@pytest.fixture
def lifecycle(service_kwargs) -> LifecycleService:
    return LifecycleService(**service_kwargs)


@pytest.fixture
def reporting(session_factory, audit_store, test_settings) -> ReportingService:
    return ReportingService(
        partial(SqlAlchemyUnitOfWork, session_factory),
        audit_store,
        test_settings,
        sleep=lambda _: None,
    )


@pytest.fixture
def tenant(setup_service):
    return setup_service.create_tenant(TenantCreateDTO(name="Acme Trading", base_currency="QAR"), "admin")


@pytest.fixture
def alice(tenant) -> IdentityContext:
    """Document creator."""
    return IdentityContext(user_id="alice", tenant_id=tenant.id)


@pytest.fixture
def bob(tenant) -> IdentityContext:
    """Approver."""
    return IdentityContext(user_id="bob", tenant_id=tenant.id)


@pytest.fixture
def january(setup_service, alice):
    return setup_service.create_fiscal_period(
        FiscalPeriodCreateDTO(name="2026-01", start_date=date(2026, 1, 1), end_date=date(2026, 1, 31)),
        alice,
    )


@pytest.fixture
def accounts(setup_service, alice) -> dict:
    """Chart of accounts keyed by code."""
    return {account.code: account for account in setup_service.list_accounts(alice)}


@pytest.fixture
def make_posted_invoice(document_service, lifecycle, alice, bob, january):
    """Create, submit, approve and post a sales invoice; returns the posted invoice."""

    def make(quantity="10", unit_price="500", tax_rate="15", party_id="CUST-001", **overrides):
        data = InvoiceCreateDTO(
            invoice_type=overrides.pop("invoice_type", InvoiceType.SALES),
            party_id=party_id,
            invoice_date=overrides.pop("invoice_date", date(2026, 1, 15)),
            lines=[
                InvoiceLineCreateDTO(
                    description="Consulting",
                    quantity=Decimal(quantity),
                    unit_price=Decimal(unit_price),
                    tax_rate=Decimal(tax_rate),
                )
            ],
            **overrides,
        )
        invoice = document_service.create_invoice(data, alice)
        lifecycle.submit(DocumentKind.INVOICE, invoice.id, alice)
        lifecycle.approve(DocumentKind.INVOICE, invoice.id, bob)
        return lifecycle.post(DocumentKind.INVOICE, invoice.id, bob)

    return make


@pytest.fixture
def make_receipt(document_service, alice):
    def make(amount="5750", party_id="CUST-001", payment_date=date(2026, 1, 18)):
        return document_service.create_payment(
            PaymentCreateDTO(
                payment_type="receipt",
                party_id=party_id,
                payment_date=payment_date,
                amount=Decimal(amount),
            ),
            alice,
        )

    return make
