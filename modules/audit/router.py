from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.database import get_db
from modules.audit import schemas, service
from modules.work_orders import service as work_order_service

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/work-orders/{work_order_id}", response_model=schemas.AuditHistoryRead)
def work_order_audit_endpoint(
    work_order_id: str,
    limit: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_db),
):
    work_order_service.get_work_order_model(db, work_order_id)
    entries = service.list_work_order_audit(db, work_order_id, limit=limit)
    return {"success": True, "audit_entries": entries}


@router.get("/{entity_type}/{entity_id}", response_model=schemas.AuditHistoryRead)
def entity_audit_endpoint(entity_type: str, entity_id: str, db: Session = Depends(get_db)):
    return {"success": True, "audit_entries": service.list_entity_audit(db, entity_type, entity_id)}
