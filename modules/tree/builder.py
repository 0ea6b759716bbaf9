"""
Work order status tree.

One builder for every view of the hierarchy: listing views ask for the bare
structure, status views pay for the part roll-ups with ``include_status``.
Category nodes are only emitted when they would have children.
"""

import math
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from core.errors import ValidationAppException
from core.settings import Settings
from modules.tree.schemas import (
    NestSheetSummary,
    NodeType,
    PaginationInfo,
    TreeNode,
    TreeOptions,
    TreeResponse,
)
from modules.work_orders import models
from modules.work_orders.service import WorkOrderGraph, load_work_order_graph, read_boundary
from modules.work_orders.status import effective_status
from modules.work_orders.types import ParentKind


def _category(node_id: str, name: str, children: List[TreeNode]) -> Optional[TreeNode]:
    if not children:
        return None
    return TreeNode(id=node_id, name=name, type=NodeType.CATEGORY, quantity=len(children), children=children)


def _with_number(number: str, name: str) -> str:
    return f"{number} - {name}" if number else name


class TreeBuilder:
    def __init__(self, settings: Settings):
        self.settings = settings

    def build(self, db: Session, work_order_id: str, options: TreeOptions) -> TreeResponse:
        self._validate_options(options)
        with read_boundary("retrieving tree data", work_order_id=work_order_id):
            graph = load_work_order_graph(db, work_order_id)
            return self.build_from_graph(graph, options)

    def build_from_graph(self, graph: WorkOrderGraph, options: TreeOptions) -> TreeResponse:
        products, pagination = self._paginate(graph.products, options)

        items = [
            _category("category_products", "Products", [self._product_node(graph, p, options) for p in products]),
            _category(
                "category_detached_products",
                "Detached Products",
                [self._detached_product_node(graph, d, options) for d in graph.detached_products],
            ),
            _category(
                "category_nestsheets",
                "Nest Sheets",
                [self._nest_sheet_node(graph, s, options) for s in graph.nest_sheets],
            ),
        ]

        processed = sum(1 for sheet in graph.nest_sheets if sheet.is_processed)
        return TreeResponse(
            work_order_id=graph.work_order.id,
            work_order_name=graph.work_order.name,
            items=[item for item in items if item is not None],
            pagination=pagination,
            nest_sheet_summary=NestSheetSummary(
                total_nest_sheets=len(graph.nest_sheets),
                processed_nest_sheets=processed,
                pending_nest_sheets=len(graph.nest_sheets) - processed,
                total_parts_on_nest_sheets=len(graph.parts),
            ),
        )

    def _validate_options(self, options: TreeOptions) -> None:
        if options.page is not None and options.page < 0:
            raise ValidationAppException("Page must be zero or positive")
        if options.page_size is not None and not 0 < options.page_size <= self.settings.max_page_size:
            raise ValidationAppException(f"Page size must be between 1 and {self.settings.max_page_size}")

    def _paginate(self, products: Sequence[models.Product], options: TreeOptions):
        if not options.paginated:
            return list(products), None
        page = options.page or 0
        size = options.page_size or self.settings.default_page_size
        total = len(products)
        pagination = PaginationInfo(
            page=page,
            page_size=size,
            total_items=total,
            total_pages=math.ceil(total / size),
            has_next_page=(page + 1) * size < total,
            has_previous_page=page > 0,
        )
        return list(products[page * size:(page + 1) * size]), pagination

    def _part_node(self, part: models.Part, options: TreeOptions) -> TreeNode:
        return TreeNode(
            id=part.id,
            name=part.name,
            type=NodeType.PART,
            quantity=part.quantity,
            status=part.status.value if options.include_status else None,
            category=part.category.value,
        )

    def _subassembly_node(self, graph: WorkOrderGraph, subassembly: models.Subassembly, options: TreeOptions) -> TreeNode:
        # Status covers direct parts only; nested subassemblies report their own
        parts = graph.parts_of(ParentKind.SUBASSEMBLY, subassembly.id)
        children = [self._part_node(part, options) for part in parts]
        children.extend(
            self._subassembly_node(graph, child, options) for child in graph.child_subassemblies.get(subassembly.id, [])
        )
        return TreeNode(
            id=subassembly.id,
            name=subassembly.name,
            type=NodeType.SUBASSEMBLY,
            quantity=subassembly.quantity,
            status=effective_status(parts).value if options.include_status else None,
            children=children,
        )

    def _product_node(self, graph: WorkOrderGraph, product: models.Product, options: TreeOptions) -> TreeNode:
        parts = graph.parts_of(ParentKind.PRODUCT, product.id)
        subassemblies = graph.top_subassemblies.get(product.id, [])
        hardware = graph.hardware_by_product.get(product.id, [])

        sub_categories = [
            _category(f"category_parts_{product.id}", "Parts", [self._part_node(p, options) for p in parts]),
            _category(
                f"category_subassemblies_{product.id}",
                "Subassemblies",
                [self._subassembly_node(graph, s, options) for s in subassemblies],
            ),
            _category(
                f"category_hardware_{product.id}",
                "Hardware",
                [
                    TreeNode(
                        id=item.id,
                        name=item.name,
                        type=NodeType.HARDWARE,
                        quantity=item.quantity,
                        status=item.status.value if options.include_status else None,
                    )
                    for item in hardware
                ],
            ),
        ]

        return TreeNode(
            id=product.id,
            name=_with_number(product.product_number, product.name) if options.include_item_numbers else product.name,
            type=NodeType.PRODUCT,
            quantity=product.quantity,
            status=graph.product_status(product.id).value if options.include_status else None,
            children=[c for c in sub_categories if c is not None],
        )

    def _detached_product_node(
        self, graph: WorkOrderGraph, detached: models.DetachedProduct, options: TreeOptions
    ) -> TreeNode:
        name = _with_number(detached.item_number, detached.name) if options.include_item_numbers else detached.name
        return TreeNode(
            id=detached.id,
            name=name,
            type=NodeType.DETACHED_PRODUCT,
            quantity=detached.quantity,
            status=graph.detached_product_status(detached.id).value if options.include_status else None,
        )

    def _nest_sheet_node(self, graph: WorkOrderGraph, sheet: models.NestSheet, options: TreeOptions) -> TreeNode:
        return TreeNode(
            id=sheet.id,
            name=sheet.name,
            type=NodeType.NEST_SHEET,
            quantity=1,
            status=sheet.status_label if options.include_status else None,
            children=[self._part_node(part, options) for part in graph.parts_by_nest_sheet.get(sheet.id, [])],
        )
