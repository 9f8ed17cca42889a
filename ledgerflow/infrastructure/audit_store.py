"""
Infrastructure - audit log storage.

Entries are written through their own session so that a rejected action,
whose unit of work was rolled back, still leaves its audit record.
"""

import json
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ledgerflow.domain.entities import AuditLogEntry
from ledgerflow.domain.services import AuditLogFilter, IAuditLogRepository
from ledgerflow.domain.value_objects import as_utc
from ledgerflow.infrastructure.database import models
from ledgerflow.infrastructure.unit_of_work import translate_storage_error


def _to_entity(row: models.AuditLog) -> AuditLogEntry:
    return AuditLogEntry(
        id=row.id,
        action=row.action,
        entity=row.entity,
        entity_id=row.entity_id,
        user_id=row.user_id,
        tenant_id=row.tenant_id,
        timestamp=as_utc(row.created_at),
        success=row.success,
        changes=json.loads(row.changes) if row.changes else {},
        metadata=json.loads(row.metadata_json) if row.metadata_json else {},
        error_message=row.error_message,
        error_code=row.error_code,
        execution_time_ms=row.execution_time_ms,
    )


class SqlAlchemyAuditLogRepository(IAuditLogRepository):

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def append(self, entry: AuditLogEntry) -> None:
        with self.session_factory() as session:
            session.add(
                models.AuditLog(
                    id=entry.id,
                    tenant_id=entry.tenant_id,
                    user_id=entry.user_id,
                    action=entry.action,
                    entity=entry.entity,
                    entity_id=entry.entity_id,
                    changes=json.dumps(entry.changes, default=str) if entry.changes else None,
                    metadata_json=json.dumps(entry.metadata, default=str) if entry.metadata else None,
                    success=entry.success,
                    error_message=entry.error_message,
                    error_code=entry.error_code,
                    execution_time_ms=entry.execution_time_ms,
                    created_at=entry.timestamp,
                )
            )
            session.commit()

    def _filtered(self, filters: AuditLogFilter):
        stmt = select(models.AuditLog).where(models.AuditLog.tenant_id == filters.tenant_id)
        if filters.actions:
            stmt = stmt.where(models.AuditLog.action.in_(filters.actions))
        if filters.entities:
            stmt = stmt.where(models.AuditLog.entity.in_(filters.entities))
        if filters.entity_id:
            stmt = stmt.where(models.AuditLog.entity_id == filters.entity_id)
        if filters.user_id:
            stmt = stmt.where(models.AuditLog.user_id == filters.user_id)
        if filters.success is not None:
            stmt = stmt.where(models.AuditLog.success == filters.success)
        if filters.start_date:
            stmt = stmt.where(models.AuditLog.created_at >= as_utc(filters.start_date))
        if filters.end_date:
            stmt = stmt.where(models.AuditLog.created_at <= as_utc(filters.end_date))
        return stmt

    def search(self, filters: AuditLogFilter) -> tuple[list[AuditLogEntry], int]:
        stmt = self._filtered(filters)
        order = models.AuditLog.created_at.desc() if filters.descending else models.AuditLog.created_at.asc()
        offset = (max(filters.page, 1) - 1) * filters.limit
        try:
            with self.session_factory() as session:
                total = session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
                rows = session.execute(stmt.order_by(order).offset(offset).limit(filters.limit)).scalars()
                return [_to_entity(row) for row in rows], total
        except SQLAlchemyError as exc:
            raise translate_storage_error(exc) from exc

    def between(self, tenant_id: UUID, start: datetime | None, end: datetime | None) -> list[AuditLogEntry]:
        try:
            with self.session_factory() as session:
                stmt = self._filtered(AuditLogFilter(tenant_id=tenant_id, start_date=start, end_date=end))
                rows = session.execute(stmt.order_by(models.AuditLog.created_at)).scalars()
                return [_to_entity(row) for row in rows]
        except SQLAlchemyError as exc:
            raise translate_storage_error(exc) from exc
