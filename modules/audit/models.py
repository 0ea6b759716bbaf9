from sqlalchemy import JSON, Column, DateTime, String, Text

from core.models import Base, new_id, utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(64), primary_key=True, default=new_id)
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)
    action = Column(String(64), nullable=False)
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(String(64), nullable=False)
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    user_id = Column(String(128), nullable=True)
    station = Column(String(64), nullable=False, default="")
    # Not a foreign key: the trail outlives deleted work orders
    work_order_id = Column(String(64), nullable=True, index=True)
    details = Column(Text, nullable=False, default="")
    session_id = Column(String(128), nullable=True)
    ip_address = Column(String(64), nullable=True)
