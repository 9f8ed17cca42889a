"""
API Routers - tenants, chart of accounts, fiscal periods and exchange rates.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from ledgerflow.api.dependencies import get_identity, get_setup_service, get_user_id
from ledgerflow.application.dto.accounting_dto import (
    AccountCreateDTO,
    AccountResponseDTO,
    AccountUpdateDTO,
    ExchangeRateCreateDTO,
    FiscalPeriodCreateDTO,
    FiscalPeriodResponseDTO,
    TenantCreateDTO,
    TenantResponseDTO,
)
from ledgerflow.application.ledger_setup import LedgerSetupService
from ledgerflow.core.security import IdentityContext

router = APIRouter(prefix="/api/v1", tags=["Ledger setup"])


@router.post("/tenants", response_model=TenantResponseDTO, status_code=status.HTTP_201_CREATED)
def create_tenant(
    dto: TenantCreateDTO,
    user_id: str = Depends(get_user_id),
    service: LedgerSetupService = Depends(get_setup_service),
):
    """Create a tenant; the default chart of accounts is seeded unless `seed_chart` is false."""
    return TenantResponseDTO.model_validate(service.create_tenant(dto, user_id))


# ---------------------------------------------------------------------------
# Chart of accounts
# ---------------------------------------------------------------------------


@router.get("/accounts", response_model=list[AccountResponseDTO])
def list_accounts(
    identity: IdentityContext = Depends(get_identity),
    service: LedgerSetupService = Depends(get_setup_service),
):
    return [AccountResponseDTO.model_validate(a) for a in service.list_accounts(identity)]


@router.post("/accounts", response_model=AccountResponseDTO, status_code=status.HTTP_201_CREATED)
def create_account(
    dto: AccountCreateDTO,
    identity: IdentityContext = Depends(get_identity),
    service: LedgerSetupService = Depends(get_setup_service),
):
    return AccountResponseDTO.model_validate(service.create_account(dto, identity))


@router.get("/accounts/{account_id}", response_model=AccountResponseDTO)
def get_account(
    account_id: UUID,
    identity: IdentityContext = Depends(get_identity),
    service: LedgerSetupService = Depends(get_setup_service),
):
    return AccountResponseDTO.model_validate(service.get_account(account_id, identity))


@router.patch("/accounts/{account_id}", response_model=AccountResponseDTO)
def update_account(
    account_id: UUID,
    dto: AccountUpdateDTO,
    identity: IdentityContext = Depends(get_identity),
    service: LedgerSetupService = Depends(get_setup_service),
):
    """Type and balance type can only change while no journal line uses the account."""
    return AccountResponseDTO.model_validate(service.update_account(account_id, dto, identity))


# ---------------------------------------------------------------------------
# Fiscal periods
# ---------------------------------------------------------------------------


@router.get("/fiscal-periods", response_model=list[FiscalPeriodResponseDTO])
def list_fiscal_periods(
    identity: IdentityContext = Depends(get_identity),
    service: LedgerSetupService = Depends(get_setup_service),
):
    return [FiscalPeriodResponseDTO.model_validate(p) for p in service.list_periods(identity)]


@router.post("/fiscal-periods", response_model=FiscalPeriodResponseDTO, status_code=status.HTTP_201_CREATED)
def create_fiscal_period(
    dto: FiscalPeriodCreateDTO,
    identity: IdentityContext = Depends(get_identity),
    service: LedgerSetupService = Depends(get_setup_service),
):
    return FiscalPeriodResponseDTO.model_validate(service.create_fiscal_period(dto, identity))


@router.post("/fiscal-periods/{period_id}/close", response_model=FiscalPeriodResponseDTO)
def close_fiscal_period(
    period_id: UUID,
    identity: IdentityContext = Depends(get_identity),
    service: LedgerSetupService = Depends(get_setup_service),
):
    """After closing, posting and reversing into the period are rejected."""
    return FiscalPeriodResponseDTO.model_validate(service.close_period(period_id, identity))


@router.post("/fiscal-periods/{period_id}/reopen", response_model=FiscalPeriodResponseDTO)
def reopen_fiscal_period(
    period_id: UUID,
    identity: IdentityContext = Depends(get_identity),
    service: LedgerSetupService = Depends(get_setup_service),
):
    return FiscalPeriodResponseDTO.model_validate(service.reopen_period(period_id, identity))


@router.post("/exchange-rates", status_code=status.HTTP_204_NO_CONTENT)
def record_exchange_rate(
    dto: ExchangeRateCreateDTO,
    identity: IdentityContext = Depends(get_identity),
    service: LedgerSetupService = Depends(get_setup_service),
):
    """Record a rate; new foreign-currency documents capture the latest one on or before their date."""
    service.record_exchange_rate(dto, identity)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
