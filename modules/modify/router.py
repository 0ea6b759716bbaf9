from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.database import get_db
from core.settings import get_settings
from modules.modify import schemas
from modules.modify.service import NOT_FOUND, ModifyService

router = APIRouter(prefix="/modify", tags=["modify"])

_STATUS_CODES = {
    NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def get_actor_context(
    request: Request,
    x_station: Optional[str] = Header(None),
    x_session_id: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
) -> schemas.ActorContext:
    return schemas.ActorContext(
        station=x_station or get_settings().default_station,
        session_id=x_session_id,
        user_id=x_user_id,
        ip_address=request.client.host if request.client else None,
    )


def get_modify_service(db: Session = Depends(get_db)) -> ModifyService:
    return ModifyService(db, settings=get_settings())


def to_response(result: schemas.MutationResult) -> JSONResponse:
    if result.success:
        code = status.HTTP_200_OK
    else:
        code = _STATUS_CODES.get(result.error_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
    return JSONResponse(status_code=code, content=result.model_dump(by_alias=True, exclude_none=True))


@router.post("/category", response_model=schemas.MutationResult)
def update_category_endpoint(
    update: schemas.CategoryUpdate,
    actor: schemas.ActorContext = Depends(get_actor_context),
    service: ModifyService = Depends(get_modify_service),
):
    return to_response(service.set_part_category(update.part_id, update.category, update.work_order_id, actor))


@router.post("/status", response_model=schemas.MutationResult)
def update_status_endpoint(
    update: schemas.StatusUpdate,
    actor: schemas.ActorContext = Depends(get_actor_context),
    service: ModifyService = Depends(get_modify_service),
):
    result = service.update_status(update.kind, update.entity_id, update.status, update.work_order_id, actor)
    return to_response(result)


@router.post("/move-subassembly", response_model=schemas.MutationResult)
def move_subassembly_endpoint(
    move: schemas.SubassemblyMove,
    actor: schemas.ActorContext = Depends(get_actor_context),
    service: ModifyService = Depends(get_modify_service),
):
    result = service.move_subassembly(
        move.subassembly_id, move.new_parent_kind, move.new_parent_id, move.work_order_id, actor
    )
    return to_response(result)


@router.delete("/{kind}/{entity_id}", response_model=schemas.MutationResult)
def delete_entity_endpoint(
    kind: str,
    entity_id: str,
    work_order_id: str = "",
    actor: schemas.ActorContext = Depends(get_actor_context),
    service: ModifyService = Depends(get_modify_service),
):
    return to_response(service.delete_entity(kind, entity_id, work_order_id, actor))
