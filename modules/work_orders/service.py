import logging
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from core.errors import AppException, NotFoundException, SystemAppException
from modules.work_orders import models
from modules.work_orders.status import effective_status, flatten_product_parts
from modules.work_orders.types import ParentKind, PartStatus

logger = logging.getLogger(__name__)

# Keeps IN (...) lists under the bind-parameter limits of sqlite
IN_CLAUSE_CHUNK_SIZE = 500


def chunked(ids: List[str], size: int = IN_CLAUSE_CHUNK_SIZE) -> Iterable[List[str]]:
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


def escape_like(value: str) -> str:
    """Make ``%`` and ``_`` match literally in a LIKE pattern escaped with a backslash."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@contextmanager
def read_boundary(operation: str, **context) -> Iterator[None]:
    """Turn unexpected failures of a read into a logged SystemAppException."""
    try:
        yield
    except AppException:
        raise
    except Exception as exc:
        logger.exception("Error while %s", operation, extra=context)
        raise SystemAppException(f"An error occurred while {operation}") from exc


@dataclass
class WorkOrderGraph:
    """Every entity of one work order, loaded with a fixed number of queries and indexed by parent."""

    work_order: models.WorkOrder
    products: List[models.Product] = field(default_factory=list)
    detached_products: List[models.DetachedProduct] = field(default_factory=list)
    nest_sheets: List[models.NestSheet] = field(default_factory=list)
    hardware: List[models.Hardware] = field(default_factory=list)
    parts: List[models.Part] = field(default_factory=list)
    top_subassemblies: Dict[str, List[models.Subassembly]] = field(default_factory=lambda: defaultdict(list))
    child_subassemblies: Dict[str, List[models.Subassembly]] = field(default_factory=lambda: defaultdict(list))
    parts_by_parent: Dict[Tuple[ParentKind, str], List[models.Part]] = field(default_factory=lambda: defaultdict(list))
    parts_by_nest_sheet: Dict[str, List[models.Part]] = field(default_factory=lambda: defaultdict(list))
    hardware_by_product: Dict[str, List[models.Hardware]] = field(default_factory=lambda: defaultdict(list))
    child_ids: Dict[str, List[str]] = field(default_factory=dict)
    parts_by_subassembly: Dict[str, List[models.Part]] = field(default_factory=dict)

    def parts_of(self, kind: ParentKind, parent_id: str) -> List[models.Part]:
        return self.parts_by_parent.get((kind, parent_id), [])

    def product_parts(self, product_id: str) -> List[models.Part]:
        """Direct parts plus the parts of the product's whole subassembly subtree."""
        return flatten_product_parts(
            self.parts_of(ParentKind.PRODUCT, product_id),
            [s.id for s in self.top_subassemblies.get(product_id, [])],
            self.child_ids,
            self.parts_by_subassembly,
        )

    def product_status(self, product_id: str) -> PartStatus:
        return effective_status(self.product_parts(product_id))

    def detached_product_status(self, detached_product_id: str) -> PartStatus:
        return effective_status(self.parts_of(ParentKind.DETACHED_PRODUCT, detached_product_id))


def get_work_order_model(db: Session, work_order_id: str) -> models.WorkOrder:
    work_order = db.query(models.WorkOrder).filter(models.WorkOrder.id == work_order_id).first()
    if not work_order:
        raise NotFoundException(f"Work order '{work_order_id}' not found")
    return work_order


def load_subassembly_levels(db: Session, product_ids: List[str]) -> List[List[models.Subassembly]]:
    """Subassemblies under the given products, grouped by depth (top level first)."""
    levels: List[List[models.Subassembly]] = []
    level = _subassemblies_under(db, models.Subassembly.product_id, product_ids)
    seen = set()
    while level:
        level = [s for s in level if s.id not in seen]
        if not level:
            break
        seen.update(s.id for s in level)
        levels.append(level)
        level = _subassemblies_under(db, models.Subassembly.parent_subassembly_id, [s.id for s in level])
    return levels


def _subassemblies_under(db: Session, parent_column, parent_ids: List[str]) -> List[models.Subassembly]:
    found: List[models.Subassembly] = []
    for chunk in chunked(parent_ids):
        found.extend(db.query(models.Subassembly).filter(parent_column.in_(chunk)).all())
    return sorted(found, key=lambda s: (s.name, s.id))


def load_work_order_graph(db: Session, work_order_id: str) -> WorkOrderGraph:
    work_order = get_work_order_model(db, work_order_id)
    graph = WorkOrderGraph(work_order=work_order)

    graph.products = (
        db.query(models.Product)
        .filter(models.Product.work_order_id == work_order_id)
        .order_by(models.Product.product_number, models.Product.name, models.Product.id)
        .all()
    )
    graph.detached_products = (
        db.query(models.DetachedProduct)
        .filter(models.DetachedProduct.work_order_id == work_order_id)
        .order_by(models.DetachedProduct.item_number, models.DetachedProduct.name, models.DetachedProduct.id)
        .all()
    )
    graph.nest_sheets = (
        db.query(models.NestSheet)
        .filter(models.NestSheet.work_order_id == work_order_id)
        .order_by(models.NestSheet.name, models.NestSheet.id)
        .all()
    )
    graph.hardware = (
        db.query(models.Hardware)
        .filter(models.Hardware.work_order_id == work_order_id)
        .order_by(models.Hardware.name, models.Hardware.id)
        .all()
    )
    # Every part hangs off a nest sheet of its own work order
    graph.parts = (
        db.query(models.Part)
        .join(models.NestSheet, models.Part.nest_sheet_id == models.NestSheet.id)
        .filter(models.NestSheet.work_order_id == work_order_id)
        .order_by(models.Part.name, models.Part.id)
        .all()
    )

    for level in load_subassembly_levels(db, [p.id for p in graph.products]):
        for subassembly in level:
            if subassembly.product_id is not None:
                graph.top_subassemblies[subassembly.product_id].append(subassembly)
            else:
                graph.child_subassemblies[subassembly.parent_subassembly_id].append(subassembly)

    for part in graph.parts:
        graph.parts_by_nest_sheet[part.nest_sheet_id].append(part)
        if part.parent_kind is not None:
            graph.parts_by_parent[(part.parent_kind, part.parent_id)].append(part)

    for item in graph.hardware:
        if item.product_id is not None:
            graph.hardware_by_product[item.product_id].append(item)

    graph.child_ids = {parent_id: [s.id for s in subs] for parent_id, subs in graph.child_subassemblies.items()}
    graph.parts_by_subassembly = {
        parent_id: parts for (kind, parent_id), parts in graph.parts_by_parent.items() if kind is ParentKind.SUBASSEMBLY
    }
    return graph


def list_work_orders(db: Session, search: str = "", include_archived: bool = False) -> List[Dict[str, Any]]:
    query = db.query(models.WorkOrder)
    if not include_archived:
        query = query.filter(models.WorkOrder.is_archived.is_(False))
    if search:
        pattern = f"%{escape_like(search.strip().lower())}%"
        query = query.filter(
            or_(
                func.lower(models.WorkOrder.name).like(pattern, escape="\\"),
                func.lower(models.WorkOrder.id).like(pattern, escape="\\"),
            )
        )
    work_orders = query.order_by(models.WorkOrder.imported_date.desc()).all()
    if not work_orders:
        return []

    ids = [wo.id for wo in work_orders]
    product_counts = _count_by_work_order(db, models.Product, ids)
    detached_counts = _count_by_work_order(db, models.DetachedProduct, ids)
    hardware_counts = _count_by_work_order(db, models.Hardware, ids)
    nest_sheet_counts = _count_by_work_order(db, models.NestSheet, ids)

    return [
        {
            "id": wo.id,
            "name": wo.name,
            "imported_date": wo.imported_date,
            "is_archived": wo.is_archived,
            "archived_date": wo.archived_date,
            "product_count": product_counts.get(wo.id, 0),
            "detached_product_count": detached_counts.get(wo.id, 0),
            "hardware_count": hardware_counts.get(wo.id, 0),
            "nest_sheet_count": nest_sheet_counts.get(wo.id, 0),
        }
        for wo in work_orders
    ]


def _count_by_work_order(db: Session, model, work_order_ids: List[str]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for chunk in chunked(work_order_ids):
        rows = (
            db.query(model.work_order_id, func.count(model.id))
            .filter(model.work_order_id.in_(chunk))
            .group_by(model.work_order_id)
            .all()
        )
        counts.update(rows)
    return counts


def _empty_counts() -> Dict[str, int]:
    counts = {"total": 0}
    for status in PartStatus:
        counts[status.value.lower()] = 0
    return counts


def _count(counts: Dict[str, int], status: PartStatus) -> None:
    counts["total"] += 1
    counts[status.value.lower()] += 1


def compute_statistics(graph: WorkOrderGraph) -> Dict[str, Dict[str, int]]:
    products = _empty_counts()
    parts = _empty_counts()
    hardware = _empty_counts()
    detached_products = _empty_counts()
    nest_sheets = {"total": 0, "processed": 0, "pending": 0}

    for product in graph.products:
        _count(products, graph.product_status(product.id))
    for part in graph.parts:
        _count(parts, part.status)
    for item in graph.hardware:
        _count(hardware, item.status)
    for detached in graph.detached_products:
        _count(detached_products, graph.detached_product_status(detached.id))
    for sheet in graph.nest_sheets:
        nest_sheets["total"] += 1
        nest_sheets["processed" if sheet.is_processed else "pending"] += 1

    return {
        "products": products,
        "parts": parts,
        "hardware": hardware,
        "detached_products": detached_products,
        "nest_sheets": nest_sheets,
    }


def get_work_order_statistics(db: Session, work_order_id: str) -> Dict[str, Any]:
    with read_boundary("retrieving work order statistics", work_order_id=work_order_id):
        graph = load_work_order_graph(db, work_order_id)
        statistics = compute_statistics(graph)
    work_order = graph.work_order
    return {
        "success": True,
        "work_order": {"id": work_order.id, "name": work_order.name, "imported_date": work_order.imported_date},
        "statistics": statistics,
    }


def resolve_subassembly_product_id(db: Session, subassembly: models.Subassembly) -> Optional[str]:
    """Walk up the parent chain to the owning product; None on a broken or cyclic chain."""
    visited = set()
    current = subassembly
    while current is not None:
        if current.id in visited:
            logger.error("Subassembly parent chain is cyclic at %s", current.id)
            return None
        visited.add(current.id)
        if current.product_id is not None:
            return current.product_id
        current = db.get(models.Subassembly, current.parent_subassembly_id)
    return None


def resolve_owner_work_order_id(db: Session, entity: Any) -> Optional[str]:
    """Work order an entity belongs to, following parent pointers where needed."""
    if isinstance(entity, models.Part):
        sheet = db.get(models.NestSheet, entity.nest_sheet_id)
        return sheet.work_order_id if sheet else None
    if isinstance(entity, models.Subassembly):
        product_id = resolve_subassembly_product_id(db, entity)
        product = db.get(models.Product, product_id) if product_id else None
        return product.work_order_id if product else None
    return getattr(entity, "work_order_id", None)
