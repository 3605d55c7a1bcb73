from typing import List

from sqlalchemy.orm import Session

from models.AuditTrail import AuditTrail, AuditEntityEnum


class AuditService:
    """Writes audit rows inside the caller's transaction; never commits."""

    def __init__(self, db: Session, clock):
        self.db = db
        self.clock = clock

    def default_log(self,
                    entity_id,
                    entity_type: AuditEntityEnum,
                    description: str,
                    user_name: str) -> AuditTrail:

        audit_entry = AuditTrail(
            entity_id=str(entity_id),
            entity_type=entity_type,
            description=description,
            user_name=user_name or "KOSONGAN",
            timestamp=self.clock.now(),
        )
        self.db.add(audit_entry)
        self.db.flush()
        return audit_entry

    def history(self, entity_type: AuditEntityEnum, entity_id, limit: int = 50) -> List[AuditTrail]:
        """Get complete history for a specific entity"""
        return (
            self.db.query(AuditTrail)
            .filter(
                AuditTrail.entity_type == entity_type,
                AuditTrail.entity_id == str(entity_id),
            )
            .order_by(AuditTrail.timestamp.desc(), AuditTrail.id.desc())
            .limit(limit)
            .all()
        )
