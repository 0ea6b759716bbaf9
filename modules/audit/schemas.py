from datetime import datetime
from typing import Any, List, Optional

from core.schemas import CamelModel


class AuditEntryRead(CamelModel):
    id: str
    timestamp: datetime
    action: str
    entity_type: str
    entity_id: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    station: str
    work_order_id: Optional[str] = None
    details: str = ""
    user_id: Optional[str] = None
    session_id: Optional[str] = None


class AuditHistoryRead(CamelModel):
    success: bool = True
    audit_entries: List[AuditEntryRead]
