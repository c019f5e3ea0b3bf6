"""
AuditTrail -- writes AuditRecord rows for ledger state transitions.

Responsibility:
    Single place that turns "actor X did Y to entity Z because R" into an
    append-only AuditRecord in the caller's transaction.

Architecture position:
    Kernel > Services.  Consumed by AccountRegistry and PostingEngine.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.audit import AuditAction, AuditRecord
from ledger_kernel.services.base import BaseService

logger = get_logger("services.audit_trail")


class AuditTrail(BaseService[AuditRecord]):
    """Append-only writer and reader of audit records."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def record(
        self,
        organization_id: UUID,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        reason: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> AuditRecord:
        audit = AuditRecord(
            organization_id=organization_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            reason=reason,
            occurred_at=self._clock.now(),
            payload=payload,
        )
        self.session.add(audit)
        self.session.flush()
        logger.debug(
            "audit_recorded",
            extra={
                "action": action.value,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
            },
        )
        return audit

    def history(self, organization_id: UUID, entity_id: UUID) -> list[AuditRecord]:
        """Audit records for one entity ordered by occurred_at."""
        return list(
            self.session.execute(
                select(AuditRecord)
                .where(
                    AuditRecord.organization_id == organization_id,
                    AuditRecord.entity_id == entity_id,
                )
                .order_by(AuditRecord.occurred_at, AuditRecord.id)
            ).scalars()
        )
