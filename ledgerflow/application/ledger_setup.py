"""
Application layer - chart of accounts and fiscal period administration.
"""

import logging
from dataclasses import replace
from uuid import UUID

from ledgerflow.application.base import AuditedService
from ledgerflow.application.dto.accounting_dto import (
    AccountCreateDTO,
    AccountUpdateDTO,
    ExchangeRateCreateDTO,
    FiscalPeriodCreateDTO,
    TenantCreateDTO,
)
from ledgerflow.core.security import IdentityContext
from ledgerflow.domain.chart_of_accounts import default_chart, ensure_classification_change_allowed
from ledgerflow.domain.entities import Account, FiscalPeriod, Tenant
from ledgerflow.domain.exceptions import NotFoundError, ValidationError
from ledgerflow.domain.value_objects import NORMAL_BALANCE, AuditAction

logger = logging.getLogger(__name__)


class LedgerSetupService(AuditedService):
    """Tenants, accounts, fiscal periods and recorded exchange rates."""

    # -- tenants -------------------------------------------------------------

    def create_tenant(self, data: TenantCreateDTO, user_id: str) -> Tenant:
        tenant = Tenant(
            name=data.name,
            base_currency=data.base_currency.upper(),
            allow_self_approval=data.allow_self_approval,
        )
        identity = IdentityContext(user_id=user_id, tenant_id=tenant.id)

        def operation():
            with self.uow_factory() as uow:
                uow.tenants.add(tenant)
                seeded = 0
                if data.seed_chart:
                    for account in default_chart(tenant.id):
                        uow.accounts.add(account)
                        seeded += 1
                uow.commit()
            logger.info("Created tenant %s with %d default accounts", tenant.name, seeded)
            return None, tenant, tenant

        return self._audited(AuditAction.CREATE.value, "tenant", tenant.id, identity, operation)

    # -- accounts ------------------------------------------------------------

    def list_accounts(self, identity: IdentityContext) -> list[Account]:
        with self.uow_factory() as uow:
            self._tenant(uow, identity.tenant_id)
            return uow.accounts.list(identity.tenant_id)

    def get_account(self, account_id: UUID, identity: IdentityContext) -> Account:
        with self.uow_factory() as uow:
            return self._account(uow, account_id, identity)

    def create_account(self, data: AccountCreateDTO, identity: IdentityContext) -> Account:
        def operation():
            with self.uow_factory() as uow:
                self._tenant(uow, identity.tenant_id)
                if uow.accounts.get_by_code(identity.tenant_id, data.code) is not None:
                    raise ValidationError(f"Account code {data.code} already exists", account_code=data.code)
                account = Account(
                    code=data.code,
                    name=data.name,
                    account_type=data.account_type,
                    balance_type=data.balance_type,
                    is_posting_allowed=data.is_posting_allowed,
                    tenant_id=identity.tenant_id,
                )
                uow.accounts.add(account)
                uow.commit()
            return None, account, account

        return self._audited(AuditAction.CREATE.value, "account", None, identity, operation)

    def update_account(self, account_id: UUID, data: AccountUpdateDTO, identity: IdentityContext) -> Account:
        def operation():
            with self.uow_factory() as uow:
                account = self._account(uow, account_id, identity)
                changes = data.model_dump(exclude_unset=True, exclude_none=True)
                if "account_type" in changes or "balance_type" in changes:
                    ensure_classification_change_allowed(
                        account,
                        data.account_type,
                        data.balance_type,
                        uow.accounts.is_referenced(identity.tenant_id, account.id),
                    )
                    if "account_type" in changes and "balance_type" not in changes:
                        changes["balance_type"] = NORMAL_BALANCE[data.account_type]
                updated = replace(account, **changes)
                uow.accounts.update(updated)
                uow.commit()
            return account, updated, updated

        return self._audited(AuditAction.UPDATE.value, "account", account_id, identity, operation)

    # -- fiscal periods ------------------------------------------------------

    def list_periods(self, identity: IdentityContext) -> list[FiscalPeriod]:
        with self.uow_factory() as uow:
            self._tenant(uow, identity.tenant_id)
            return uow.periods.list(identity.tenant_id)

    def create_fiscal_period(self, data: FiscalPeriodCreateDTO, identity: IdentityContext) -> FiscalPeriod:
        def operation():
            if data.start_date > data.end_date:
                raise ValidationError("Fiscal period start date must not be after its end date")
            with self.uow_factory() as uow:
                self._tenant(uow, identity.tenant_id)
                period = FiscalPeriod(
                    name=data.name,
                    tenant_id=identity.tenant_id,
                    start_date=data.start_date,
                    end_date=data.end_date,
                )
                for existing in uow.periods.list(identity.tenant_id):
                    if existing.overlaps(period):
                        raise ValidationError(
                            f"Fiscal period overlaps {existing.name}",
                            period_id=str(existing.id),
                        )
                uow.periods.add(period)
                uow.commit()
            return None, period, period

        return self._audited(AuditAction.CREATE.value, "fiscal_period", None, identity, operation)

    def close_period(self, period_id: UUID, identity: IdentityContext) -> FiscalPeriod:
        def operation():
            with self.uow_factory() as uow:
                period = self._period(uow, period_id, identity)
                closed = period.close(identity.user_id, self.clock())
                uow.periods.update(closed)
                uow.commit()
            return period, closed, closed

        return self._audited(AuditAction.CLOSE_PERIOD.value, "fiscal_period", period_id, identity, operation)

    def reopen_period(self, period_id: UUID, identity: IdentityContext) -> FiscalPeriod:
        def operation():
            with self.uow_factory() as uow:
                period = self._period(uow, period_id, identity)
                reopened = period.reopen()
                uow.periods.update(reopened)
                uow.commit()
            return period, reopened, reopened

        return self._audited(AuditAction.REOPEN_PERIOD.value, "fiscal_period", period_id, identity, operation)

    # -- exchange rates ------------------------------------------------------

    def record_exchange_rate(self, data: ExchangeRateCreateDTO, identity: IdentityContext) -> None:
        currency = data.currency.upper()

        def operation():
            with self.uow_factory() as uow:
                tenant = self._tenant(uow, identity.tenant_id)
                if currency == tenant.base_currency:
                    raise ValidationError(f"{currency} is the base currency; its rate is always 1")
                uow.exchange_rates.add(tenant.id, currency, data.valuation_date, data.rate)
                uow.commit()
            return None, None, None

        self._audited(
            AuditAction.CREATE.value,
            "exchange_rate",
            currency,
            identity,
            operation,
            metadata={"valuation_date": data.valuation_date.isoformat(), "rate": str(data.rate)},
        )

    # -- helpers -------------------------------------------------------------

    @staticmethod
    def _account(uow, account_id: UUID, identity: IdentityContext) -> Account:
        account = uow.accounts.get(identity.tenant_id, account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    @staticmethod
    def _period(uow, period_id: UUID, identity: IdentityContext) -> FiscalPeriod:
        period = uow.periods.get(identity.tenant_id, period_id)
        if period is None:
            raise NotFoundError(f"Fiscal period {period_id} not found")
        return period
