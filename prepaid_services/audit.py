"""
prepaid_services.audit -- Audit hand-off for reconciliation and workflow events.

Responsibility:
    Describe every state change as an ``AuditRecord`` and hand it to an
    injected ``AuditSink``.  Persisting the audit log is the caller's
    concern; the default sink writes one structured log line per record.

Architecture position:
    Services -- the only place audit records are created.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from prepaid_kernel.logging_config import get_logger

logger = get_logger("services.audit")

SYSTEM_ACTOR = "system"


class AuditAction(str, Enum):
    """Action tags emitted by the reconciliation core."""

    RECONCILIATION_CREATED = "RECONCILIATION_CREATED"
    RECONCILIATION_RECOMPUTED = "RECONCILIATION_RECOMPUTED"
    RECONCILIATION_DELETED = "RECONCILIATION_DELETED"
    ADJUSTMENT_PROPOSED = "ADJUSTMENT_PROPOSED"
    ADJUSTMENT_APPROVED = "ADJUSTMENT_APPROVED"
    ADJUSTMENT_REJECTED = "ADJUSTMENT_REJECTED"


@dataclass(frozen=True)
class AuditRecord:
    """One audited state change."""

    action: AuditAction
    actor_id: str
    resource_type: str
    resource_id: str
    occurred_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "actorId": self.actor_id,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "occurredAt": self.occurred_at.isoformat(),
            "metadata": dict(self.metadata),
        }


class AuditSink(Protocol):
    def record(self, entry: AuditRecord) -> None: ...


class LoggingAuditSink:
    """Default sink: one ``audit_event`` log line per record."""

    def record(self, entry: AuditRecord) -> None:
        logger.info(
            "audit_event",
            extra={
                "audit_action": entry.action.value,
                "audit_actor_id": entry.actor_id,
                "resource_type": entry.resource_type,
                "resource_id": entry.resource_id,
                "occurred_at": entry.occurred_at,
                "audit_metadata": entry.metadata,
            },
        )


class InMemoryAuditSink:
    """Keeps records in a list; for tests and single-process tooling."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[AuditRecord] = []

    def record(self, entry: AuditRecord) -> None:
        with self._lock:
            self._records.append(entry)

    @property
    def records(self) -> tuple[AuditRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def actions(self) -> list[AuditAction]:
        return [r.action for r in self.records]
