"""
Application layer - read-side reports: trial balance and the audit log.

Reads are idempotent, so transient storage failures are retried with a
bounded backoff before surfacing as InfrastructureError.
"""

import logging
import time
from datetime import date, datetime
from typing import Any, Callable
from uuid import UUID

from ledgerflow.core.config import Settings, get_settings
from ledgerflow.domain.audit import AuditStatistics, compute_statistics
from ledgerflow.domain.chart_of_accounts import ChartOfAccounts
from ledgerflow.domain.entities import AuditLogEntry
from ledgerflow.domain.exceptions import NotFoundError, ValidationError
from ledgerflow.domain.services import AuditLogFilter, IAuditLogRepository, IUnitOfWork
from ledgerflow.domain.trial_balance import TrialBalance, TrialBalanceAggregator
from ledgerflow.infrastructure.retry import retry_read

logger = logging.getLogger(__name__)


class ReportingService:

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        audit_store: IAuditLogRepository,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.uow_factory = uow_factory
        self.audit_store = audit_store
        self.settings = settings or get_settings()
        self.sleep = sleep

    def _read(self, func):
        return retry_read(
            func,
            attempts=self.settings.read_retry_attempts,
            backoff=self.settings.read_retry_backoff,
            sleep=self.sleep,
        )

    def trial_balance(self, tenant_id: UUID, as_of: date) -> TrialBalance:
        def read() -> TrialBalance:
            with self.uow_factory() as uow:
                tenant = uow.tenants.get(tenant_id)
                if tenant is None:
                    raise NotFoundError(f"Tenant {tenant_id} not found")
                chart = ChartOfAccounts(uow.accounts.list(tenant_id), self.settings.default_accounts)
                lines = uow.journals.posted_lines(tenant_id, as_of)
            return TrialBalanceAggregator(chart, tenant.base_currency).aggregate(lines, as_of)

        return self._read(read)

    def audit_log(self, filters: AuditLogFilter) -> tuple[list[AuditLogEntry], int]:
        if filters.page < 1:
            raise ValidationError("page must be 1 or greater")
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError("start_date must not be after end_date")
        filters.limit = max(1, min(filters.limit, self.settings.audit_page_limit_max))
        return self._read(lambda: self.audit_store.search(filters))

    def audit_statistics(
        self,
        tenant_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AuditStatistics:
        if start and end and start > end:
            raise ValidationError("start_date must not be after end_date")
        entries = self._read(lambda: self.audit_store.between(tenant_id, start, end))
        return compute_statistics(entries, slow_threshold_ms=self.settings.audit_slow_threshold_ms)

    def ledger_health(self, as_of: date | None = None) -> dict[str, Any]:
        """
        Trial balance check across every active tenant; never raises on imbalance.

        Served without identity: the result carries counts only and
        unbalanced tenants are named in the server log.
        """
        as_of = as_of or date.today()

        def tenants():
            with self.uow_factory() as uow:
                return uow.tenants.list_active()

        checked = self._read(tenants)
        unbalanced = [tenant for tenant in checked if not self.trial_balance(tenant.id, as_of).is_balanced]
        for tenant in unbalanced:
            logger.error("Ledger for tenant %s is unbalanced as of %s", tenant.id, as_of.isoformat())
        return {
            "status": "healthy" if not unbalanced else "unbalanced",
            "as_of": as_of.isoformat(),
            "tenants_checked": len(checked),
            "unbalanced_tenants": len(unbalanced),
        }
