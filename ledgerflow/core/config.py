"""
LedgerFlow - Configuration Settings

Loaded from environment variables (prefix ``LEDGERFLOW_``) and an optional .env file.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from ledgerflow.domain.audit import DEFAULT_EXCLUDED_FIELDS
from ledgerflow.domain.chart_of_accounts import DefaultAccountCodes


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LEDGERFLOW_",
        case_sensitive=False,
        extra="ignore",
    )

    # ===========================================
    # APPLICATION
    # ===========================================
    app_name: str = "LedgerFlow API"
    app_env: str = "development"
    api_version: str = "v1"
    log_level: str = "INFO"
    log_format: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

    # ===========================================
    # DATABASE
    # ===========================================
    database_url: str = "sqlite:///./data/ledgerflow.db"
    database_echo: bool = False
    database_pool_timeout: int = 30     # seconds waiting for a pooled connection
    database_connect_timeout: int = 10  # seconds

    # Bounded retry for idempotent reads only
    read_retry_attempts: int = 3
    read_retry_backoff: float = 0.2

    # ===========================================
    # ACCOUNTING DEFAULTS
    # ===========================================
    default_base_currency: str = "QAR"
    account_receivable: str = "1130"
    account_payable: str = "2110"
    account_revenue: str = "4100"
    account_expense: str = "5100"
    account_tax_payable: str = "2210"
    account_tax_recoverable: str = "1160"
    account_cash: str = "1120"
    account_sales_returns: str = "4190"
    account_purchase_returns: str = "5190"

    # ===========================================
    # AUDIT TRAIL
    # ===========================================
    audit_excluded_fields: List[str] = list(DEFAULT_EXCLUDED_FIELDS)
    audit_slow_threshold_ms: int = 1000
    audit_page_limit_max: int = 200

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def default_accounts(self) -> DefaultAccountCodes:
        return DefaultAccountCodes(
            receivable=self.account_receivable,
            payable=self.account_payable,
            revenue=self.account_revenue,
            expense=self.account_expense,
            tax_payable=self.account_tax_payable,
            tax_recoverable=self.account_tax_recoverable,
            cash=self.account_cash,
            sales_returns=self.account_sales_returns,
            purchase_returns=self.account_purchase_returns,
        )


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
