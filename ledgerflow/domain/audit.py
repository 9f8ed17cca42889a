"""
Audit Trail Recorder - append-only record of every mutating action.

Recording is best-effort: a failing sink is logged and never breaks the
business operation that produced the entry.
"""

import dataclasses
import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Iterable

from .entities import AuditLogEntry
from .services import IAuditLogRepository
from .value_objects import Money, utc_now

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_FIELDS: tuple[str, ...] = (
    "password",
    "token",
    "secret",
    "api_key",
    "access_token",
    "refresh_token",
    "credit_card",
    "ssn",
)
REDACTED = "[REDACTED]"

# Bookkeeping fields that change on every save and carry no business meaning.
IGNORED_DIFF_FIELDS = frozenset({"version", "lines", "allocations"})


def _plain(value: Any) -> Any:
    """Convert domain values into JSON-friendly data."""
    if isinstance(value, Money):
        return str(value.amount)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    return value


def snapshot(entity: Any) -> dict[str, Any]:
    """Shallow, plain-data view of an entity taken before or after a change."""
    if entity is None:
        return {}
    if isinstance(entity, dict):
        return {k: _plain(v) for k, v in entity.items()}
    return {
        f.name: _plain(getattr(entity, f.name))
        for f in dataclasses.fields(entity)
        if f.name not in IGNORED_DIFF_FIELDS
    }


def diff_snapshots(before: dict[str, Any], after: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Shallow structural diff: ``{field: {"from": old, "to": new}}``."""
    changes: dict[str, dict[str, Any]] = {}
    for key in sorted(set(before) | set(after)):
        old, new = before.get(key), after.get(key)
        if old != new:
            changes[key] = {"from": old, "to": new}
    return changes


@dataclass
class AuditStatistics:
    total_actions: int = 0
    actions_by_type: dict[str, int] = field(default_factory=dict)
    actions_by_entity: dict[str, int] = field(default_factory=dict)
    actions_by_user: list[dict[str, Any]] = field(default_factory=list)
    actions_over_time: list[dict[str, Any]] = field(default_factory=list)
    failed_actions: int = 0
    failure_rate: float = 0.0
    avg_execution_time_ms: float | None = None
    slowest_actions: list[dict[str, Any]] = field(default_factory=list)


def compute_statistics(
    entries: Iterable[AuditLogEntry],
    *,
    slow_threshold_ms: int = 1000,
    top: int = 10,
) -> AuditStatistics:
    """Aggregate a set of entries; reads only, never mutates the log."""
    entries = list(entries)
    by_type: Counter[str] = Counter()
    by_entity: Counter[str] = Counter()
    by_user: Counter[str] = Counter()
    by_day: Counter[str] = Counter()
    failed = 0
    timings: list[int] = []
    slow: list[dict[str, Any]] = []

    for entry in entries:
        by_type[entry.action] += 1
        by_entity[entry.entity] += 1
        by_user[entry.user_id] += 1
        by_day[entry.timestamp.date().isoformat()] += 1
        if not entry.success:
            failed += 1
        if entry.execution_time_ms is not None:
            timings.append(entry.execution_time_ms)
            if entry.execution_time_ms > slow_threshold_ms:
                slow.append(
                    {
                        "action": entry.action,
                        "entity": entry.entity,
                        "execution_time_ms": entry.execution_time_ms,
                        "timestamp": entry.timestamp.isoformat(),
                    }
                )

    total = len(entries)
    return AuditStatistics(
        total_actions=total,
        actions_by_type=dict(by_type),
        actions_by_entity=dict(by_entity),
        actions_by_user=[
            {"user_id": user_id, "action_count": count}
            for user_id, count in by_user.most_common(top)
        ],
        actions_over_time=[{"date": day, "count": by_day[day]} for day in sorted(by_day)],
        failed_actions=failed,
        failure_rate=round(failed / total, 4) if total else 0.0,
        avg_execution_time_ms=(sum(timings) / len(timings)) if timings else None,
        slowest_actions=sorted(slow, key=lambda s: s["execution_time_ms"], reverse=True)[:top],
    )


class AuditTrailRecorder:
    """Sanitizes entries and appends them to an audit sink."""

    def __init__(
        self,
        sink: IAuditLogRepository,
        excluded_fields: Iterable[str] = DEFAULT_EXCLUDED_FIELDS,
        clock: Callable[[], datetime] | None = None,
    ):
        self.sink = sink
        self.excluded_fields = tuple(f.lower() for f in excluded_fields)
        self.clock = clock or utc_now

    def is_sensitive(self, key: str) -> bool:
        lowered = key.lower()
        return any(name in lowered for name in self.excluded_fields)

    def sanitize(self, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key: REDACTED if self.is_sensitive(str(key)) else self.sanitize(value)
                for key, value in data.items()
            }
        if isinstance(data, list):
            return [self.sanitize(item) for item in data]
        return data

    def changes_between(self, before: Any, after: Any) -> dict[str, dict[str, Any]]:
        """Diff two snapshots with excluded fields dropped entirely."""
        changes = diff_snapshots(snapshot(before), snapshot(after))
        return {key: value for key, value in changes.items() if not self.is_sensitive(key)}

    def record(
        self,
        *,
        action: str,
        entity: str,
        entity_id: str | None,
        user_id: str,
        tenant_id: uuid.UUID,
        success: bool = True,
        changes: dict[str, dict[str, Any]] | None = None,
        metadata: dict[str, Any] | None = None,
        error: Exception | None = None,
        execution_time_ms: int | None = None,
    ) -> AuditLogEntry | None:
        """Append one entry. Returns it, or None when the sink failed."""
        error_message = None
        error_code = None
        if not success:
            error_message = (str(error) if error is not None else "") or "Action failed"
            error_code = getattr(error, "code", None) or (type(error).__name__ if error else None)

        entry = AuditLogEntry(
            action=action,
            entity=entity,
            entity_id=entity_id,
            user_id=user_id,
            tenant_id=tenant_id,
            timestamp=self.clock(),
            success=success,
            changes=self.sanitize(_plain(changes or {})),
            metadata=self.sanitize(_plain(metadata or {})),
            error_message=error_message,
            error_code=error_code,
            execution_time_ms=execution_time_ms,
        )
        try:
            self.sink.append(entry)
        except Exception:
            logger.exception(
                "Failed to record audit entry %s %s/%s for user %s",
                action, entity, entity_id, user_id,
            )
            return None
        return entry
