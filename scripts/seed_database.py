#!/usr/bin/env python3
"""
Database Seeding Script - LedgerFlow
Seeds a demo tenant with the default chart, twelve monthly fiscal periods
and, when data/exchange_rates.csv exists, recorded exchange rates.
"""

import calendar
import csv
import os
import sys
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

DEMO_TENANT_NAME = "Demo Trading LLC"


def read_csv(filepath: str) -> list[dict]:
    """Read a CSV file into a list of rows; a missing file yields no rows."""
    if not os.path.exists(filepath):
        return []
    with open(filepath, "r", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def monthly_periods(year: int) -> list[tuple[str, date, date]]:
    return [
        (f"{year}-{month:02d}", date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1]))
        for month in range(1, 13)
    ]


def main():
    """Main function."""
    sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

    from sqlalchemy import select

    from ledgerflow.core.config import settings
    from ledgerflow.core.logging import configure_logging
    from ledgerflow.infrastructure.database import SessionLocal, init_db, seed_default_accounts
    from ledgerflow.infrastructure.database.models import ExchangeRateHistory, FiscalPeriod, Tenant

    configure_logging(settings)

    print("=" * 60)
    print(f"Database Seeding - {settings.app_name}")
    print("=" * 60)

    init_db()
    db = SessionLocal()

    try:
        tenant = db.execute(select(Tenant).where(Tenant.name == DEMO_TENANT_NAME)).scalar_one_or_none()
        if tenant is None:
            tenant = Tenant(name=DEMO_TENANT_NAME, base_currency=settings.default_base_currency)
            db.add(tenant)
            db.commit()
            print(f"✓ Created tenant: {tenant.name}")
        else:
            print(f"✓ Tenant already exists: {tenant.name}")
        tenant_id = tenant.id

        created = seed_default_accounts(tenant_id, db)
        print(f"✓ Seeded {created} accounts")

        year = date.today().year
        existing = set(
            db.execute(select(FiscalPeriod.name).where(FiscalPeriod.tenant_id == tenant_id)).scalars()
        )
        added = 0
        for name, start, end in monthly_periods(year):
            if name in existing:
                continue
            db.add(FiscalPeriod(tenant_id=tenant_id, name=name, start_date=start, end_date=end))
            added += 1
        db.commit()
        print(f"✓ Seeded {added} fiscal periods for {year}")

        rates_file = Path(__file__).resolve().parent.parent / "data" / "exchange_rates.csv"
        rates_data = read_csv(str(rates_file))
        print(f"\n📦 Seeding {len(rates_data)} exchange rates...")
        for row in rates_data:
            try:
                valuation_date = datetime.strptime(row["valuation_date"], "%Y-%m-%d").date()
                rate = Decimal(row["rate"])
            except (KeyError, ValueError, InvalidOperation):
                print(f"⚠️ Skipping malformed rate row: {row}")
                continue
            currency = row.get("currency", "").upper()
            if not currency or currency == tenant.base_currency:
                continue
            db.add(
                ExchangeRateHistory(
                    tenant_id=tenant_id,
                    currency=currency,
                    valuation_date=valuation_date,
                    rate=rate,
                )
            )
        db.commit()

        print("\n" + "=" * 60)
        print("Seeding completed successfully!")
        print(f"Tenant ID: {tenant_id}")
        print("=" * 60)

    except Exception as e:
        print(f"\n❌ Error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
