from datetime import datetime
from io import BytesIO
from typing import Any, Dict, Iterator, List, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from modules.tree.schemas import NodeType, TreeNode, TreeResponse
from modules.work_orders.types import PartStatus

STATUS_COLUMNS = [status.value for status in PartStatus]

SUMMARY_SECTIONS = [
    ("products", "Products"),
    ("parts", "Parts"),
    ("hardware", "Hardware"),
    ("detached_products", "Detached Products"),
]


def _create_styles():
    """Create reusable style definitions."""
    thin_border = Side(style="thin", color="000000")
    return {
        "title_font": Font(bold=True, size=14),
        "section_font": Font(bold=True, size=11),
        "header_font": Font(bold=True, size=10),
        "header_fill": PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid"),
        "category_fill": PatternFill(start_color="EDEDED", end_color="EDEDED", fill_type="solid"),
        "shipped_fill": PatternFill(start_color="E2EFDA", end_color="E2EFDA", fill_type="solid"),
        "subtotal_font": Font(bold=True),
        "border": Border(left=thin_border, right=thin_border, top=thin_border, bottom=thin_border),
        "center_align": Alignment(horizontal="center", vertical="center"),
        "right_align": Alignment(horizontal="right", vertical="center"),
        "left_align": Alignment(horizontal="left", vertical="center"),
    }


def _apply_header_row(ws, row: int, columns: List[str], styles: dict):
    """Apply formatting to a header row."""
    for col_idx, col_name in enumerate(columns, start=1):
        cell = ws.cell(row=row, column=col_idx, value=col_name)
        cell.font = styles["header_font"]
        cell.fill = styles["header_fill"]
        cell.border = styles["border"]
        cell.alignment = styles["center_align"]


def _apply_data_row(ws, row: int, values: List[Any], styles: dict, alignments: List[str] = None):
    """Apply formatting to a data row."""
    for col_idx, value in enumerate(values, start=1):
        cell = ws.cell(row=row, column=col_idx, value=value)
        cell.border = styles["border"]
        if alignments and col_idx <= len(alignments):
            align_type = alignments[col_idx - 1]
            cell.alignment = styles.get(f"{align_type}_align", styles["left_align"])


def _fill_row(ws, row: int, width: int, fill):
    for col in range(1, width + 1):
        ws.cell(row=row, column=col).fill = fill


def _set_column_widths(ws, widths: List[int]):
    """Set column widths."""
    for col_idx, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(col_idx)].width = width


def _format_date(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    return str(value)[:16]


def _walk(nodes: List[TreeNode], depth: int = 0) -> Iterator[Tuple[int, TreeNode]]:
    """Depth-first pre-order, the order the tree is displayed in."""
    for node in nodes:
        yield depth, node
        yield from _walk(node.children, depth + 1)


def _write_summary_sheet(ws, work_order: Dict[str, Any], statistics: Dict[str, Dict[str, int]], styles: dict):
    current_row = 1
    ws.cell(row=current_row, column=1, value="WORK ORDER STATUS REPORT").font = styles["title_font"]
    ws.merge_cells(start_row=current_row, start_column=1, end_row=current_row, end_column=len(STATUS_COLUMNS) + 2)
    current_row += 2

    header_info = [
        ("Work Order:", work_order.get("name", "-")),
        ("Work Order ID:", work_order.get("id", "-")),
        ("Imported:", _format_date(work_order.get("imported_date"))),
        ("Report Date:", _format_date(datetime.now())),
    ]
    for label, value in header_info:
        ws.cell(row=current_row, column=1, value=label).font = Font(bold=True)
        ws.cell(row=current_row, column=2, value=value)
        current_row += 1

    current_row += 1
    ws.cell(row=current_row, column=1, value="STATUS SUMMARY").font = styles["section_font"]
    current_row += 1

    columns = ["Item", "Total"] + STATUS_COLUMNS
    _apply_header_row(ws, current_row, columns, styles)
    current_row += 1

    alignments = ["left"] + ["right"] * (len(columns) - 1)
    for key, label in SUMMARY_SECTIONS:
        counts = statistics.get(key, {})
        row_values = [label, counts.get("total", 0)] + [counts.get(s.lower(), 0) for s in STATUS_COLUMNS]
        _apply_data_row(ws, current_row, row_values, styles, alignments)
        current_row += 1

    current_row += 1
    ws.cell(row=current_row, column=1, value="NEST SHEETS").font = styles["section_font"]
    current_row += 1
    _apply_header_row(ws, current_row, ["Total", "Processed", "Pending"], styles)
    current_row += 1
    sheets = statistics.get("nest_sheets", {})
    _apply_data_row(
        ws,
        current_row,
        [sheets.get("total", 0), sheets.get("processed", 0), sheets.get("pending", 0)],
        styles,
        ["right", "right", "right"],
    )

    _set_column_widths(ws, [22, 38, 12, 12, 12, 12, 12])


def _write_tree_sheet(ws, tree: TreeResponse, styles: dict):
    columns = ["Item", "Type", "Quantity", "Status", "Category"]
    _apply_header_row(ws, 1, columns, styles)
    alignments = ["left", "center", "right", "center", "center"]

    current_row = 2
    for depth, node in _walk(tree.items):
        row_values = [
            node.name,
            node.type.value,
            node.quantity,
            node.status or "",
            node.category or "",
        ]
        _apply_data_row(ws, current_row, row_values, styles, alignments)
        ws.cell(row=current_row, column=1).alignment = Alignment(horizontal="left", indent=depth * 2)
        if node.type is NodeType.CATEGORY:
            ws.cell(row=current_row, column=1).font = styles["subtotal_font"]
            _fill_row(ws, current_row, len(columns), styles["category_fill"])
        elif node.status == PartStatus.SHIPPED.value:
            _fill_row(ws, current_row, len(columns), styles["shipped_fill"])
        current_row += 1

    ws.freeze_panes = "A2"
    _set_column_widths(ws, [60, 18, 10, 14, 22])


def build_status_report_excel(
    work_order: Dict[str, Any], statistics: Dict[str, Dict[str, int]], tree: TreeResponse
) -> BytesIO:
    """Summary sheet with status counts plus the full status tree as indented rows."""
    wb = Workbook()
    styles = _create_styles()

    summary = wb.active
    summary.title = "Summary"
    _write_summary_sheet(summary, work_order, statistics, styles)

    _write_tree_sheet(wb.create_sheet("Status Tree"), tree, styles)

    stream = BytesIO()
    wb.save(stream)
    stream.seek(0)
    return stream
