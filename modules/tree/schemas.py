from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from core.schemas import CamelModel


class NodeType(str, Enum):
    CATEGORY = "category"
    PRODUCT = "product"
    PART = "part"
    SUBASSEMBLY = "subassembly"
    HARDWARE = "hardware"
    DETACHED_PRODUCT = "detached_product"
    NEST_SHEET = "nestsheet"


class TreeOptions(BaseModel):
    include_status: bool = False
    page: Optional[int] = None
    page_size: Optional[int] = None
    include_item_numbers: bool = False

    @property
    def paginated(self) -> bool:
        return self.page is not None or self.page_size is not None


class TreeNode(CamelModel):
    id: str
    name: str
    type: NodeType
    quantity: int
    status: Optional[str] = None
    category: Optional[str] = None
    children: List["TreeNode"] = Field(default_factory=list)


class PaginationInfo(CamelModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class NestSheetSummary(CamelModel):
    total_nest_sheets: int = 0
    processed_nest_sheets: int = 0
    pending_nest_sheets: int = 0
    total_parts_on_nest_sheets: int = 0


class TreeResponse(CamelModel):
    work_order_id: str
    work_order_name: str
    items: List[TreeNode] = Field(default_factory=list)
    pagination: Optional[PaginationInfo] = None
    nest_sheet_summary: NestSheetSummary = Field(default_factory=NestSheetSummary)
