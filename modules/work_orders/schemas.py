from datetime import datetime
from typing import Optional

from core.schemas import CamelModel


class WorkOrderSummary(CamelModel):
    id: str
    name: str
    imported_date: datetime
    is_archived: bool = False
    archived_date: Optional[datetime] = None
    product_count: int = 0
    detached_product_count: int = 0
    hardware_count: int = 0
    nest_sheet_count: int = 0


class WorkOrderInfo(CamelModel):
    id: str
    name: str
    imported_date: datetime


class StatusCounts(CamelModel):
    """Item count per production status."""

    total: int = 0
    pending: int = 0
    cut: int = 0
    sorted: int = 0
    assembled: int = 0
    shipped: int = 0


class NestSheetCounts(CamelModel):
    total: int = 0
    processed: int = 0
    pending: int = 0


class WorkOrderStatistics(CamelModel):
    products: StatusCounts
    parts: StatusCounts
    hardware: StatusCounts
    detached_products: StatusCounts
    nest_sheets: NestSheetCounts


class WorkOrderStatisticsRead(CamelModel):
    success: bool = True
    work_order: WorkOrderInfo
    statistics: WorkOrderStatistics
