"""
Admin-side changes to a work order: part reclassification, manual status
edits, subassembly moves, archiving and cascading deletes.

Expected failures (unknown id, bad input) come back as an unsuccessful
``MutationResult``. Anything unexpected rolls the transaction back, is logged
with full context and surfaces as ``SystemAppException`` with a generic
message. Every successful call writes one audit record after commit.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from core.errors import AppException, SystemAppException
from core.models import utcnow
from core.settings import Settings
from modules.audit.service import AuditRecorder
from modules.modify.schemas import ActorContext, MutationResult
from modules.work_orders import models
from modules.work_orders.service import chunked, resolve_owner_work_order_id
from modules.work_orders.status import effective_status
from modules.work_orders.types import EntityKind, ParentKind, PartCategory, PartStatus

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
VALIDATION_ERROR = "validation_error"

STATUS_KINDS = (
    EntityKind.PART,
    EntityKind.HARDWARE,
    EntityKind.PRODUCT,
    EntityKind.SUBASSEMBLY,
    EntityKind.DETACHED_PRODUCT,
)


@dataclass
class DeletionPlan:
    name: str
    old_value: Dict[str, Any]
    details: str
    # (model, ids) in execution order
    steps: List[Tuple[Any, List[str]]] = field(default_factory=list)

    @property
    def item_count(self) -> int:
        return sum(len(ids) for _, ids in self.steps)


class ModifyService:
    def __init__(self, db: Session, settings: Settings, recorder: Optional[AuditRecorder] = None):
        self.db = db
        self.settings = settings
        self.audit = recorder or AuditRecorder(db)

    # Results

    def _fail(self, message: str, code: str, **context) -> MutationResult:
        logger.warning(message, extra={k: v for k, v in context.items() if v is not None})
        return MutationResult(success=False, message=message, error_code=code)

    def _guarded(self, operation: str, context: Dict[str, Any], fn: Callable[[], MutationResult]) -> MutationResult:
        try:
            return fn()
        except AppException:
            self.db.rollback()
            raise
        except Exception as exc:
            self.db.rollback()
            logger.exception("Error during %s", operation, extra=context)
            raise SystemAppException(f"Error during {operation}") from exc

    def _record(self, action: str, entity_type: str, entity_id: str, actor: ActorContext, work_order_id: str,
                details: str, old_value: Optional[Dict[str, Any]] = None,
                new_value: Optional[Dict[str, Any]] = None) -> None:
        self.audit.log(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_value=old_value,
            new_value=new_value,
            station=actor.station,
            work_order_id=work_order_id,
            details=details,
            session_id=actor.session_id,
            user_id=actor.user_id,
            ip_address=actor.ip_address,
        )

    def _belongs(self, entity: Any, work_order_id: str) -> bool:
        return resolve_owner_work_order_id(self.db, entity) == work_order_id

    # Reclassification

    def set_part_category(self, part_id: str, category: str, work_order_id: str, actor: ActorContext) -> MutationResult:
        if not part_id or not category or not work_order_id:
            return self._fail("PartId, category and workOrderId are required", VALIDATION_ERROR)
        new_category = PartCategory.parse(category)
        if new_category is None:
            return self._fail(f"Invalid category value: {category}", VALIDATION_ERROR, part_id=part_id)

        context = {"part_id": part_id, "work_order_id": work_order_id}
        return self._guarded(
            "category update", context, lambda: self._apply_category(part_id, new_category, work_order_id, actor)
        )

    def _apply_category(self, part_id: str, new_category: PartCategory, work_order_id: str,
                        actor: ActorContext) -> MutationResult:
        part = self.db.get(models.Part, part_id)
        if part is None or not self._belongs(part, work_order_id):
            return self._fail(f"Part '{part_id}' not found.", NOT_FOUND, work_order_id=work_order_id)

        old_category = part.category
        part.category = new_category
        # Category edits count as a touch for "recently updated" views
        part.status_updated_date = utcnow()
        self.db.commit()

        self._record(
            "ManualCategoryChange",
            "Part",
            part_id,
            actor,
            work_order_id,
            f"Manual category change via admin interface. Category: {old_category.value} → {new_category.value}",
            old_value={"category": old_category.value},
            new_value={"category": new_category.value},
        )
        logger.info("Part %s category changed to %s", part_id, new_category.value,
                    extra={"work_order_id": work_order_id, "station": actor.station})
        return MutationResult(success=True, message="Category updated successfully")

    # Manual status changes

    def update_status(self, kind: str, entity_id: str, status: str, work_order_id: str,
                      actor: ActorContext) -> MutationResult:
        if not entity_id or not work_order_id:
            return self._fail("Entity id and workOrderId are required", VALIDATION_ERROR)
        try:
            entity_kind = EntityKind(kind)
        except ValueError:
            return self._fail(f"Unknown entity type: {kind}", VALIDATION_ERROR)
        if entity_kind not in STATUS_KINDS:
            return self._fail(f"Status cannot be set on {entity_kind.value}", VALIDATION_ERROR)
        new_status = PartStatus.parse(status)
        if new_status is None:
            return self._fail(f"Invalid status value: {status}", VALIDATION_ERROR, entity_id=entity_id)

        context = {"entity_type": entity_kind.value, "entity_id": entity_id, "work_order_id": work_order_id}
        return self._guarded(
            "status update",
            context,
            lambda: self._apply_status(entity_kind, entity_id, new_status, work_order_id, actor),
        )

    def _status_targets(self, kind: EntityKind, entity_id: str):
        """The entity and the rows whose persisted status changes with it."""
        if kind is EntityKind.PART:
            part = self.db.get(models.Part, entity_id)
            return part, [part] if part else []
        if kind is EntityKind.HARDWARE:
            item = self.db.get(models.Hardware, entity_id)
            return item, [item] if item else []
        if kind is EntityKind.PRODUCT:
            product = self.db.get(models.Product, entity_id)
            if product is None:
                return None, []
            levels = self._subassembly_levels(self._top_subassembly_ids(product.id))
            return product, self._parts_under(product.id, [sid for level in levels for sid in level])
        if kind is EntityKind.SUBASSEMBLY:
            subassembly = self.db.get(models.Subassembly, entity_id)
            if subassembly is None:
                return None, []
            levels = self._subassembly_levels([subassembly.id])
            return subassembly, self._parts_under(None, [sid for level in levels for sid in level])
        detached = self.db.get(models.DetachedProduct, entity_id)
        if detached is None:
            return None, []
        return detached, self._query_parts(ParentKind.DETACHED_PRODUCT, [detached.id])

    def _apply_status(self, kind: EntityKind, entity_id: str, new_status: PartStatus, work_order_id: str,
                      actor: ActorContext) -> MutationResult:
        entity, targets = self._status_targets(kind, entity_id)
        if entity is None or not self._belongs(entity, work_order_id):
            return self._fail(f"{kind.label} '{entity_id}' not found.", NOT_FOUND, work_order_id=work_order_id)

        old_status = effective_status(targets)
        if self.settings.enforce_forward_status:
            behind = [t for t in targets if t.status.rank > new_status.rank]
            if behind:
                return self._fail(
                    f"Cannot move {len(behind)} item(s) back to {new_status.value}",
                    VALIDATION_ERROR,
                    entity_id=entity_id,
                    work_order_id=work_order_id,
                )

        now = utcnow()
        for target in targets:
            target.status = new_status
            target.status_updated_date = now
            if isinstance(target, models.Hardware):
                target.shipped_date = now if new_status is PartStatus.SHIPPED else None
        self.db.commit()

        self._record(
            "ManualStatusChange",
            kind.label,
            entity_id,
            actor,
            work_order_id,
            f"Manual status change via admin interface. Status: {old_status.value} → {new_status.value} "
            f"({len(targets)} item(s) updated)",
            old_value={"status": old_status.value},
            new_value={"status": new_status.value},
        )
        return MutationResult(
            success=True,
            message=f"{kind.label} status updated to {new_status.value}",
            items_updated=len(targets),
        )

    # Subassembly moves

    def move_subassembly(self, subassembly_id: str, new_parent_kind: str, new_parent_id: str, work_order_id: str,
                         actor: ActorContext) -> MutationResult:
        if not subassembly_id or not new_parent_id or not work_order_id:
            return self._fail("SubassemblyId, new parent id and workOrderId are required", VALIDATION_ERROR)
        try:
            parent_kind = ParentKind(new_parent_kind)
        except ValueError:
            parent_kind = None
        if parent_kind not in (ParentKind.PRODUCT, ParentKind.SUBASSEMBLY):
            return self._fail(f"Invalid parent type: {new_parent_kind}", VALIDATION_ERROR)

        context = {"subassembly_id": subassembly_id, "work_order_id": work_order_id}
        return self._guarded(
            "subassembly move",
            context,
            lambda: self._apply_move(subassembly_id, parent_kind, new_parent_id, work_order_id, actor),
        )

    def _is_ancestor_or_self(self, candidate_id: str, subassembly: models.Subassembly) -> bool:
        current = subassembly
        visited = set()
        while current is not None and current.id not in visited:
            if current.id == candidate_id:
                return True
            visited.add(current.id)
            if current.parent_subassembly_id is None:
                return False
            current = self.db.get(models.Subassembly, current.parent_subassembly_id)
        return current is not None

    def _apply_move(self, subassembly_id: str, parent_kind: ParentKind, new_parent_id: str, work_order_id: str,
                    actor: ActorContext) -> MutationResult:
        subassembly = self.db.get(models.Subassembly, subassembly_id)
        if subassembly is None or not self._belongs(subassembly, work_order_id):
            return self._fail(f"Subassembly '{subassembly_id}' not found.", NOT_FOUND, work_order_id=work_order_id)

        model = models.Product if parent_kind is ParentKind.PRODUCT else models.Subassembly
        target = self.db.get(model, new_parent_id)
        if target is None or not self._belongs(target, work_order_id):
            return self._fail(f"Target '{new_parent_id}' not found.", NOT_FOUND, work_order_id=work_order_id)
        if parent_kind is ParentKind.SUBASSEMBLY and self._is_ancestor_or_self(subassembly.id, target):
            return self._fail(
                f"Subassembly '{subassembly.name}' cannot be moved under itself or its descendants",
                VALIDATION_ERROR,
                work_order_id=work_order_id,
            )

        old_value = {"productId": subassembly.product_id, "parentSubassemblyId": subassembly.parent_subassembly_id}
        if parent_kind is ParentKind.PRODUCT:
            subassembly.product_id, subassembly.parent_subassembly_id = target.id, None
        else:
            subassembly.product_id, subassembly.parent_subassembly_id = None, target.id
        new_value = {"productId": subassembly.product_id, "parentSubassemblyId": subassembly.parent_subassembly_id}
        name = subassembly.name
        self.db.commit()

        self._record(
            "MoveSubassembly",
            "Subassembly",
            subassembly_id,
            actor,
            work_order_id,
            f"Subassembly '{name}' moved under {parent_kind.value} '{target.name}'",
            old_value=old_value,
            new_value=new_value,
        )
        return MutationResult(success=True, message=f"Subassembly '{name}' moved successfully.")

    # Archiving

    def set_archived(self, work_order_id: str, archived: bool, actor: ActorContext) -> MutationResult:
        if not work_order_id:
            return self._fail("Work order ID is required", VALIDATION_ERROR)
        context = {"work_order_id": work_order_id}
        return self._guarded("archive", context, lambda: self._apply_archive(work_order_id, archived, actor))

    def _apply_archive(self, work_order_id: str, archived: bool, actor: ActorContext) -> MutationResult:
        work_order = self.db.get(models.WorkOrder, work_order_id)
        if work_order is None:
            return self._fail(f"Work order '{work_order_id}' not found.", NOT_FOUND)
        verb = "archived" if archived else "unarchived"
        if work_order.is_archived == archived:
            return MutationResult(success=True, message=f"Work order '{work_order.name}' is already {verb}.")

        work_order.is_archived = archived
        work_order.archived_date = utcnow() if archived else None
        name = work_order.name
        self.db.commit()

        self._record(
            "ArchiveWorkOrder" if archived else "UnarchiveWorkOrder",
            "WorkOrder",
            work_order_id,
            actor,
            work_order_id,
            f"Work order '{name}' {verb}",
            old_value={"isArchived": not archived},
            new_value={"isArchived": archived},
        )
        return MutationResult(success=True, message=f"Work order '{name}' {verb} successfully.")

    # Cascading deletes

    def delete_entity(self, kind: str, entity_id: str, work_order_id: str, actor: ActorContext) -> MutationResult:
        try:
            entity_kind = EntityKind(kind)
        except ValueError:
            return self._fail(f"Unknown entity type: {kind}", VALIDATION_ERROR)
        if not entity_id or not work_order_id:
            return self._fail(f"{entity_kind.label} id and workOrderId are required", VALIDATION_ERROR)

        context = {"entity_type": entity_kind.value, "entity_id": entity_id, "work_order_id": work_order_id}
        return self._guarded(
            f"{entity_kind.label} deletion",
            context,
            lambda: self._apply_delete(entity_kind, entity_id, work_order_id, actor),
        )

    def _apply_delete(self, kind: EntityKind, entity_id: str, work_order_id: str,
                      actor: ActorContext) -> MutationResult:
        planners = {
            EntityKind.PART: self._plan_part,
            EntityKind.HARDWARE: self._plan_hardware,
            EntityKind.SUBASSEMBLY: self._plan_subassembly,
            EntityKind.PRODUCT: self._plan_product,
            EntityKind.DETACHED_PRODUCT: self._plan_detached_product,
            EntityKind.NEST_SHEET: self._plan_nest_sheet,
        }
        plan = planners[kind](entity_id, work_order_id)
        if plan is None:
            return self._fail(f"{kind.label} '{entity_id}' not found.", NOT_FOUND, work_order_id=work_order_id)
        if plan.item_count > self.settings.max_cascade_items:
            return self._fail(
                f"Deleting {kind.label} '{plan.name}' would remove {plan.item_count} items, "
                f"more than the limit of {self.settings.max_cascade_items}",
                VALIDATION_ERROR,
                entity_id=entity_id,
                work_order_id=work_order_id,
            )

        for model, ids in plan.steps:
            for chunk in chunked(ids):
                self.db.query(model).filter(model.id.in_(chunk)).delete(synchronize_session=False)
        self.db.commit()

        self._record(
            f"Delete{kind.label}", kind.label, entity_id, actor, work_order_id, plan.details, old_value=plan.old_value
        )
        logger.info(
            "%s %s deleted from work order %s, %d items removed",
            kind.label,
            entity_id,
            work_order_id,
            plan.item_count,
            extra={"station": actor.station},
        )
        message = f"{kind.label} '{plan.name}' deleted successfully."
        if plan.item_count > 1:
            message = f"{kind.label} '{plan.name}' and all children deleted successfully."
        return MutationResult(success=True, message=message, items_deleted=plan.item_count)

    def _plan_part(self, part_id: str, work_order_id: str) -> Optional[DeletionPlan]:
        part = self.db.get(models.Part, part_id)
        if part is None or not self._belongs(part, work_order_id):
            return None
        return DeletionPlan(
            name=part.name,
            old_value={
                "id": part.id,
                "name": part.name,
                "status": part.status.value,
                "category": part.category.value,
                "parentKind": part.parent_kind.value if part.parent_kind else None,
                "parentId": part.parent_id,
                "nestSheetId": part.nest_sheet_id,
            },
            details=f"Part '{part.name}' deleted from work order",
            steps=[(models.Part, [part.id])],
        )

    def _plan_hardware(self, hardware_id: str, work_order_id: str) -> Optional[DeletionPlan]:
        item = self.db.get(models.Hardware, hardware_id)
        if item is None or item.work_order_id != work_order_id:
            return None
        return DeletionPlan(
            name=item.name,
            old_value={"id": item.id, "name": item.name, "status": item.status.value, "productId": item.product_id},
            details=f"Hardware '{item.name}' deleted from work order",
            steps=[(models.Hardware, [item.id])],
        )

    def _plan_subassembly(self, subassembly_id: str, work_order_id: str) -> Optional[DeletionPlan]:
        subassembly = self.db.get(models.Subassembly, subassembly_id)
        if subassembly is None or not self._belongs(subassembly, work_order_id):
            return None
        levels = self._subassembly_levels([subassembly.id])
        subassembly_ids = [sid for level in levels for sid in level]
        part_ids = [p.id for p in self._parts_under(None, subassembly_ids)]
        return DeletionPlan(
            name=subassembly.name,
            old_value={
                "id": subassembly.id,
                "name": subassembly.name,
                "productId": subassembly.product_id,
                "parentSubassemblyId": subassembly.parent_subassembly_id,
                "partsCount": len(part_ids),
                "subassembliesCount": len(subassembly_ids),
            },
            details=(
                f"Subassembly '{subassembly.name}' deleted from work order with {len(subassembly_ids) - 1} "
                f"nested subassemblies and {len(part_ids)} parts"
            ),
            steps=[(models.Part, part_ids)] + [(models.Subassembly, level) for level in reversed(levels)],
        )

    def _plan_product(self, product_id: str, work_order_id: str) -> Optional[DeletionPlan]:
        product = self.db.get(models.Product, product_id)
        if product is None or product.work_order_id != work_order_id:
            return None
        levels = self._subassembly_levels(self._top_subassembly_ids(product.id))
        subassembly_ids = [sid for level in levels for sid in level]
        part_ids = [p.id for p in self._parts_under(product.id, subassembly_ids)]
        hardware_ids = [
            hid for (hid,) in self.db.query(models.Hardware.id).filter(models.Hardware.product_id == product.id).all()
        ]
        return DeletionPlan(
            name=product.name,
            old_value={
                "id": product.id,
                "name": product.name,
                "productNumber": product.product_number,
                "partsCount": len(part_ids),
                "subassembliesCount": len(subassembly_ids),
                "hardwareCount": len(hardware_ids),
            },
            details=(
                f"Product '{product.name}' and all children deleted from work order. "
                f"Parts: {len(part_ids)}, Subassemblies: {len(subassembly_ids)}, Hardware: {len(hardware_ids)}"
            ),
            steps=[(models.Part, part_ids)]
            + [(models.Subassembly, level) for level in reversed(levels)]
            + [(models.Hardware, hardware_ids), (models.Product, [product.id])],
        )

    def _plan_detached_product(self, detached_id: str, work_order_id: str) -> Optional[DeletionPlan]:
        detached = self.db.get(models.DetachedProduct, detached_id)
        if detached is None or detached.work_order_id != work_order_id:
            return None
        part_ids = [p.id for p in self._query_parts(ParentKind.DETACHED_PRODUCT, [detached.id])]
        return DeletionPlan(
            name=detached.name,
            old_value={
                "id": detached.id,
                "name": detached.name,
                "itemNumber": detached.item_number,
                "partsCount": len(part_ids),
            },
            details=f"Detached product '{detached.name}' and {len(part_ids)} parts deleted from work order",
            steps=[(models.Part, part_ids), (models.DetachedProduct, [detached.id])],
        )

    def _plan_nest_sheet(self, nest_sheet_id: str, work_order_id: str) -> Optional[DeletionPlan]:
        sheet = self.db.get(models.NestSheet, nest_sheet_id)
        if sheet is None or sheet.work_order_id != work_order_id:
            return None
        part_ids = [
            pid for (pid,) in self.db.query(models.Part.id).filter(models.Part.nest_sheet_id == sheet.id).all()
        ]
        return DeletionPlan(
            name=sheet.name,
            old_value={
                "id": sheet.id,
                "name": sheet.name,
                "status": sheet.status_label,
                "partsCount": len(part_ids),
            },
            details=f"Nest sheet '{sheet.name}' and {len(part_ids)} parts deleted from work order",
            steps=[(models.Part, part_ids), (models.NestSheet, [sheet.id])],
        )

    # Hierarchy queries

    def _top_subassembly_ids(self, product_id: str) -> List[str]:
        rows = self.db.query(models.Subassembly.id).filter(models.Subassembly.product_id == product_id).all()
        return [sid for (sid,) in rows]

    def _subassembly_levels(self, root_ids: List[str]) -> List[List[str]]:
        """Subtree ids by depth, roots first."""
        levels: List[List[str]] = []
        seen = set()
        frontier = [sid for sid in root_ids if sid not in seen]
        while frontier:
            seen.update(frontier)
            levels.append(frontier)
            children = []
            for chunk in chunked(frontier):
                rows = (
                    self.db.query(models.Subassembly.id)
                    .filter(models.Subassembly.parent_subassembly_id.in_(chunk))
                    .all()
                )
                children.extend(sid for (sid,) in rows if sid not in seen)
            frontier = children
        return levels

    def _query_parts(self, kind: ParentKind, parent_ids: List[str]) -> List[models.Part]:
        parts: List[models.Part] = []
        for chunk in chunked(parent_ids):
            parts.extend(
                self.db.query(models.Part)
                .filter(models.Part.parent_kind == kind, models.Part.parent_id.in_(chunk))
                .all()
            )
        return parts

    def _parts_under(self, product_id: Optional[str], subassembly_ids: List[str]) -> List[models.Part]:
        parts = self._query_parts(ParentKind.PRODUCT, [product_id]) if product_id else []
        parts.extend(self._query_parts(ParentKind.SUBASSEMBLY, subassembly_ids))
        return parts
