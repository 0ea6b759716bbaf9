"""
Status roll-up for composite entities.

A product, subassembly or detached product has no status of its own; it is
only as advanced as its least advanced part.
"""

from typing import Dict, Iterable, List, Sequence

from modules.work_orders.models import Part
from modules.work_orders.types import PartStatus


def effective_status_of(statuses: Iterable[PartStatus]) -> PartStatus:
    """Minimum status present, or Pending when there is none."""
    lowest = None
    for status in statuses:
        if lowest is None or status.rank < lowest.rank:
            lowest = status
            if lowest is PartStatus.PENDING:
                break
    return lowest if lowest is not None else PartStatus.PENDING


def effective_status(parts: Iterable[Part]) -> PartStatus:
    return effective_status_of(part.status for part in parts)


def collect_subtree_ids(root_ids: Iterable[str], children_by_parent: Dict[str, Sequence[str]]) -> List[str]:
    """Breadth-first walk over a subassembly adjacency map, roots included."""
    seen: List[str] = []
    visited = set()
    frontier = list(root_ids)
    while frontier:
        next_frontier = []
        for node_id in frontier:
            if node_id in visited:
                continue
            visited.add(node_id)
            seen.append(node_id)
            next_frontier.extend(children_by_parent.get(node_id, ()))
        frontier = next_frontier
    return seen


def flatten_product_parts(
    direct_parts: Sequence[Part],
    top_subassembly_ids: Iterable[str],
    children_by_parent: Dict[str, Sequence[str]],
    parts_by_subassembly: Dict[str, Sequence[Part]],
) -> List[Part]:
    """Direct parts of a product plus the parts of every subassembly below it."""
    flattened = list(direct_parts)
    for subassembly_id in collect_subtree_ids(top_subassembly_ids, children_by_parent):
        flattened.extend(parts_by_subassembly.get(subassembly_id, ()))
    return flattened
