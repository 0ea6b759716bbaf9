from typing import Optional

from pydantic import BaseModel, Field

from core.schemas import CamelModel


class ActorContext(BaseModel):
    """Who is making a change, copied onto the audit record."""

    station: str = "Manual"
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    ip_address: Optional[str] = None


class MutationResult(CamelModel):
    success: bool
    message: str
    items_deleted: int = 0
    items_updated: Optional[int] = None
    # not_found / validation_error; drives the HTTP status, never serialized
    error_code: Optional[str] = Field(None, exclude=True)


class CategoryUpdate(CamelModel):
    part_id: str
    category: str
    work_order_id: str


class StatusUpdate(CamelModel):
    kind: str
    entity_id: str
    status: str
    work_order_id: str


class SubassemblyMove(CamelModel):
    subassembly_id: str
    new_parent_kind: str = Field(..., description="product or subassembly")
    new_parent_id: str
    work_order_id: str
