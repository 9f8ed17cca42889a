"""Domain layer - Pure Python business logic."""

from ledgerflow.domain.allocation import AllocationTracker
from ledgerflow.domain.audit import AuditStatistics, AuditTrailRecorder, compute_statistics
from ledgerflow.domain.chart_of_accounts import AccountRole, ChartOfAccounts, DefaultAccountCodes
from ledgerflow.domain.entities import (
    Account,
    AuditLogEntry,
    FiscalPeriod,
    Invoice,
    InvoiceLine,
    Journal,
    JournalLine,
    Payment,
    PaymentAllocation,
    Tenant,
)
from ledgerflow.domain.exceptions import (
    AllocationError,
    AllocationMismatchError,
    ConflictError,
    InfrastructureError,
    LedgerError,
    NotFoundError,
    OverAllocationError,
    PeriodClosedError,
    PostingImbalanceError,
    StateError,
    ValidationError,
)
from ledgerflow.domain.posting import PostingEngine
from ledgerflow.domain.services import AuditLogFilter, ExchangeRateService, IUnitOfWork
from ledgerflow.domain.state_machine import DocumentStateMachine, TenantPolicy
from ledgerflow.domain.trial_balance import TrialBalance, TrialBalanceAggregator
from ledgerflow.domain.value_objects import (
    AccountType,
    BalanceType,
    DocumentKind,
    DocumentStatus,
    ExchangeRate,
    InvoiceType,
    LifecycleAction,
    Money,
    PaymentType,
)
