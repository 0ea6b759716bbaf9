import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from modules.audit.models import AuditLog

logger = logging.getLogger(__name__)


class AuditRecorder:
    """Append-only audit trail, written after the primary change has committed.

    A failed audit write never fails the caller; it is rolled back and logged
    with ``alert=True`` so monitoring can pick it up.
    """

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        station: str = "",
        work_order_id: Optional[str] = None,
        details: str = "",
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[AuditLog]:
        entry = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_value=old_value,
            new_value=new_value,
            station=station,
            work_order_id=work_order_id,
            details=details,
            session_id=session_id,
            user_id=user_id,
            ip_address=ip_address,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(
                "Failed to write audit record for %s on %s %s",
                action,
                entity_type,
                entity_id,
                extra={"alert": True, "work_order_id": work_order_id, "station": station},
            )
            return None

        logger.info(
            "Audit log created: %s on %s %s from %s",
            action,
            entity_type,
            entity_id,
            station,
            extra={"work_order_id": work_order_id},
        )
        return entry


def list_work_order_audit(db: Session, work_order_id: str, limit: Optional[int] = None) -> List[AuditLog]:
    query = (
        db.query(AuditLog)
        .filter(AuditLog.work_order_id == work_order_id)
        .order_by(AuditLog.timestamp.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def list_entity_audit(db: Session, entity_type: str, entity_id: str) -> List[AuditLog]:
    return (
        db.query(AuditLog)
        .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
        .order_by(AuditLog.timestamp.desc())
        .all()
    )
