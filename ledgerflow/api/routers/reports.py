"""
API Routers - trial balance and audit trail reports.
"""

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query

from ledgerflow.api.dependencies import get_identity, get_reporting_service
from ledgerflow.application.dto.accounting_dto import (
    AuditLogPageDTO,
    AuditLogResponseDTO,
    AuditStatisticsDTO,
    TrialBalanceDTO,
    TrialBalanceLineDTO,
    UnknownAccountLineDTO,
)
from ledgerflow.application.reporting import ReportingService
from ledgerflow.core.security import IdentityContext
from ledgerflow.domain.services import AuditLogFilter

router = APIRouter(prefix="/api/v1/reports", tags=["Reports"])
audit_router = APIRouter(prefix="/api/v1/audit-logs", tags=["Audit trail"])


@router.get("/trial-balance", response_model=TrialBalanceDTO)
def get_trial_balance(
    as_of: date | None = Query(None, description="Include journals dated on or before; defaults to today"),
    identity: IdentityContext = Depends(get_identity),
    service: ReportingService = Depends(get_reporting_service),
):
    """
    Trial balance in base currency.

    Only posted journals count. An out-of-balance result is reported through
    `is_balanced` and the ledger health check, not as an error.
    """
    report = service.trial_balance(identity.tenant_id, as_of or date.today())
    return TrialBalanceDTO(
        as_of=report.as_of,
        currency=report.currency,
        entries=[
            TrialBalanceLineDTO(
                account_id=entry.account.id,
                code=entry.account.code,
                name=entry.account.name,
                account_type=entry.account.account_type,
                balance_type=entry.account.balance_type,
                total_debit=entry.total_debit.amount,
                total_credit=entry.total_credit.amount,
                balance=entry.balance.amount,
            )
            for entry in report.entries
        ],
        unknown_accounts=[
            UnknownAccountLineDTO(
                account_id=unknown.account_id,
                total_debit=unknown.total_debit.amount,
                total_credit=unknown.total_credit.amount,
            )
            for unknown in report.unknown_accounts
        ],
        total_debit=report.total_debit.amount,
        total_credit=report.total_credit.amount,
        is_balanced=report.is_balanced,
    )


@audit_router.get("", response_model=AuditLogPageDTO)
def get_audit_logs(
    action: list[str] | None = Query(None),
    entity: list[str] | None = Query(None),
    entity_id: str | None = None,
    user_id: str | None = None,
    success: bool | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    identity: IdentityContext = Depends(get_identity),
    service: ReportingService = Depends(get_reporting_service),
):
    """Search the audit trail of the caller's tenant, newest first by default."""
    filters = AuditLogFilter(
        tenant_id=identity.tenant_id,
        actions=action or [],
        entities=entity or [],
        entity_id=entity_id,
        user_id=user_id,
        success=success,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
        descending=order == "desc",
    )
    entries, total = service.audit_log(filters)
    return AuditLogPageDTO(
        data=[AuditLogResponseDTO.model_validate(entry) for entry in entries],
        total=total,
        page=filters.page,
        limit=filters.limit,
    )


@audit_router.get("/statistics", response_model=AuditStatisticsDTO)
def get_audit_statistics(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    identity: IdentityContext = Depends(get_identity),
    service: ReportingService = Depends(get_reporting_service),
):
    return AuditStatisticsDTO.model_validate(service.audit_statistics(identity.tenant_id, start_date, end_date))
