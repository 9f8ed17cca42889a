"""
Database initialization and session management.
"""

import logging
from pathlib import Path
from uuid import UUID

from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlmodel import SQLModel

from ledgerflow.core.config import Settings, get_settings
from ledgerflow.domain.chart_of_accounts import DEFAULT_CHART
from ledgerflow.domain.value_objects import NORMAL_BALANCE
from ledgerflow.infrastructure.database import models

logger = logging.getLogger(__name__)


def build_engine(settings: Settings | None = None) -> Engine:
    settings = settings or get_settings()
    if settings.is_sqlite:
        return create_engine(
            settings.database_url,
            echo=settings.database_echo,
            connect_args={"check_same_thread": False, "timeout": settings.database_connect_timeout},
        )
    return create_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        pool_timeout=settings.database_pool_timeout,
        connect_args={"connect_timeout": settings.database_connect_timeout},
    )


engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """Initialize database - create all tables."""
    bind = bind or engine
    if bind.url.get_backend_name() == "sqlite" and bind.url.database not in (None, "", ":memory:"):
        Path(bind.url.database).parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(bind=bind)


def seed_default_accounts(tenant_id: UUID, session: Session | None = None) -> int:
    """Seed the default chart of accounts; existing codes are left alone."""
    db = session or SessionLocal()
    try:
        existing = set(
            db.execute(select(models.Account.code).where(models.Account.tenant_id == tenant_id)).scalars()
        )
        created = 0
        for code, name, account_type, posting in DEFAULT_CHART:
            if code in existing:
                continue
            db.add(
                models.Account(
                    tenant_id=tenant_id,
                    code=code,
                    name=name,
                    account_type=account_type.value,
                    balance_type=NORMAL_BALANCE[account_type].value,
                    is_posting_allowed=posting,
                )
            )
            created += 1
        db.commit()
        logger.info("Seeded %d accounts for tenant %s", created, tenant_id)
        return created
    finally:
        if session is None:
            db.close()


if __name__ == "__main__":
    init_db()
    print("Database initialized successfully!")
