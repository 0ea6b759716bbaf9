from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.database import get_db
from core.settings import get_settings
from modules.tree.builder import TreeBuilder
from modules.tree.schemas import TreeOptions, TreeResponse

router = APIRouter(prefix="/work-orders", tags=["tree"])


@router.get("/{work_order_id}/tree", response_model=TreeResponse, response_model_exclude_none=True)
def get_tree_endpoint(
    work_order_id: str,
    include_status: bool = False,
    page: Optional[int] = Query(None),
    page_size: Optional[int] = Query(None),
    include_item_numbers: bool = False,
    db: Session = Depends(get_db),
):
    options = TreeOptions(
        include_status=include_status,
        page=page,
        page_size=page_size,
        include_item_numbers=include_item_numbers,
    )
    return TreeBuilder(settings=get_settings()).build(db, work_order_id, options)
