from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from core.database import get_db
from core.settings import get_settings
from modules.modify.router import get_actor_context, get_modify_service, to_response
from modules.modify.schemas import ActorContext, MutationResult
from modules.modify.service import ModifyService
from modules.reports.excel import build_status_report_excel
from modules.tree.builder import TreeBuilder
from modules.tree.schemas import TreeOptions
from modules.work_orders import schemas, service

router = APIRouter(prefix="/work-orders", tags=["work_orders"])


@router.get("", response_model=List[schemas.WorkOrderSummary])
def list_work_orders_endpoint(search: str = "", include_archived: bool = False, db: Session = Depends(get_db)):
    return service.list_work_orders(db, search=search, include_archived=include_archived)


@router.get("/{work_order_id}/statistics", response_model=schemas.WorkOrderStatisticsRead)
def work_order_statistics_endpoint(work_order_id: str, db: Session = Depends(get_db)):
    return service.get_work_order_statistics(db, work_order_id)


@router.get("/{work_order_id}/report")
def download_status_report(work_order_id: str, db: Session = Depends(get_db)):
    with service.read_boundary("building the status report", work_order_id=work_order_id):
        graph = service.load_work_order_graph(db, work_order_id)
        tree = TreeBuilder(settings=get_settings()).build_from_graph(graph, TreeOptions(include_status=True))
        work_order = {"id": graph.work_order.id, "name": graph.work_order.name,
                      "imported_date": graph.work_order.imported_date}
        stream = build_status_report_excel(work_order, service.compute_statistics(graph), tree)
    filename = f"work_order_status_{work_order_id}.xlsx"
    return StreamingResponse(
        stream,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/{work_order_id}/archive", response_model=MutationResult)
def archive_work_order_endpoint(
    work_order_id: str,
    actor: ActorContext = Depends(get_actor_context),
    modify_service: ModifyService = Depends(get_modify_service),
):
    return to_response(modify_service.set_archived(work_order_id, True, actor))


@router.post("/{work_order_id}/unarchive", response_model=MutationResult)
def unarchive_work_order_endpoint(
    work_order_id: str,
    actor: ActorContext = Depends(get_actor_context),
    modify_service: ModifyService = Depends(get_modify_service),
):
    return to_response(modify_service.set_archived(work_order_id, False, actor))
