"""
Application layer - shared plumbing for services that mutate the ledger.
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable, TypeVar
from uuid import UUID

from ledgerflow.core.security import IdentityContext
from ledgerflow.domain.audit import AuditTrailRecorder
from ledgerflow.domain.chart_of_accounts import ChartOfAccounts, DefaultAccountCodes
from ledgerflow.domain.entities import Tenant
from ledgerflow.domain.exceptions import NotFoundError
from ledgerflow.domain.services import IUnitOfWork
from ledgerflow.domain.state_machine import TenantPolicy
from ledgerflow.domain.value_objects import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuditedService:
    """
    Every public operation runs through ``_audited``: exactly one audit entry
    per attempt, written after the outcome is known.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        audit: AuditTrailRecorder,
        *,
        defaults: DefaultAccountCodes | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.uow_factory = uow_factory
        self.audit = audit
        self.defaults = defaults or DefaultAccountCodes()
        self.clock = clock or utc_now

    def _audited(
        self,
        action: str,
        entity: str,
        entity_id: UUID | str | None,
        identity: IdentityContext,
        operation: Callable[[], tuple[Any, Any, T]],
        metadata: dict[str, Any] | None = None,
    ) -> T:
        """
        ``operation`` returns ``(before, after, result)``; the diff of the two
        snapshots becomes the entry's ``changes``.
        """
        started = time.perf_counter()
        try:
            before, after, result = operation()
        except Exception as exc:
            elapsed = int((time.perf_counter() - started) * 1000)
            logger.info(
                "%s %s/%s rejected for user %s: %s",
                action, entity, entity_id, identity.user_id, exc,
            )
            self.audit.record(
                action=action,
                entity=entity,
                entity_id=str(entity_id) if entity_id else None,
                user_id=identity.user_id,
                tenant_id=identity.tenant_id,
                success=False,
                metadata=metadata,
                error=exc,
                execution_time_ms=elapsed,
            )
            raise

        elapsed = int((time.perf_counter() - started) * 1000)
        resolved_id = entity_id or getattr(after, "id", None)
        self.audit.record(
            action=action,
            entity=entity,
            entity_id=str(resolved_id) if resolved_id else None,
            user_id=identity.user_id,
            tenant_id=identity.tenant_id,
            success=True,
            changes=self.audit.changes_between(before, after),
            metadata=metadata,
            execution_time_ms=elapsed,
        )
        logger.info("%s %s/%s by %s", action, entity, resolved_id, identity.user_id)
        return result

    def _tenant(self, uow: IUnitOfWork, tenant_id: UUID) -> Tenant:
        tenant = uow.tenants.get(tenant_id)
        if tenant is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")
        return tenant

    @staticmethod
    def _policy(tenant: Tenant) -> TenantPolicy:
        return TenantPolicy(
            base_currency=tenant.base_currency,
            allow_self_approval=tenant.allow_self_approval,
        )

    def _chart(self, uow: IUnitOfWork, tenant_id: UUID) -> ChartOfAccounts:
        return ChartOfAccounts(uow.accounts.list(tenant_id), self.defaults)
