import pytest
from sqlalchemy import text

from core.errors import NotFoundException, SystemAppException, ValidationAppException
from modules.tree.builder import TreeBuilder
from modules.tree.schemas import NodeType, TreeOptions
from modules.work_orders.types import PartCategory, PartStatus


def _walk(nodes):
    for node in nodes:
        yield node
        yield from _walk(node.children)


def _child(node, name):
    return next(c for c in node.children if c.name == name)


@pytest.fixture
def builder(settings):
    return TreeBuilder(settings=settings)


@pytest.fixture
def kitchen(build):
    wo = build.work_order("Kitchen 42")
    sheet = build.nest_sheet(wo, "Sheet A")
    base = build.product(wo, "Base Cabinet", product_number="101")
    build.part(sheet, "Left Side", parent=base, status=PartStatus.CUT, category=PartCategory.CARCASS)
    build.part(sheet, "Right Side", parent=base, status=PartStatus.SORTED)
    drawer = build.subassembly("Drawer", product=base)
    build.part(sheet, "Drawer Bottom", parent=drawer, status=PartStatus.PENDING)
    build.hardware(wo, "Hinge", product=base, status=PartStatus.SHIPPED)
    wall = build.product(wo, "Wall Cabinet", product_number="102")
    build.part(sheet, "Wall Side", parent=wall, status=PartStatus.ASSEMBLED)
    build.commit()
    return wo


def test_tree_contains_only_populated_categories(db, builder, kitchen):
    tree = builder.build(db, kitchen.id, TreeOptions())

    assert [c.name for c in tree.items] == ["Products", "Nest Sheets"]
    for node in _walk(tree.items):
        if node.type is NodeType.CATEGORY:
            assert node.children
            assert node.quantity == len(node.children)

    wall = _child(tree.items[0], "Wall Cabinet")
    assert [c.name for c in wall.children] == ["Parts"]


def test_statuses_are_omitted_unless_requested(db, builder, kitchen):
    tree = builder.build(db, kitchen.id, TreeOptions())
    assert all(node.status is None for node in _walk(tree.items))


def test_product_status_rolls_up_from_subassembly_parts(db, builder, kitchen):
    tree = builder.build(db, kitchen.id, TreeOptions(include_status=True))
    products = tree.items[0]

    base = _child(products, "Base Cabinet")
    assert base.status == PartStatus.PENDING.value
    assert [c.name for c in base.children] == ["Parts", "Subassemblies", "Hardware"]
    drawer = _child(_child(base, "Subassemblies"), "Drawer")
    assert drawer.status == PartStatus.PENDING.value
    assert _child(_child(base, "Hardware"), "Hinge").status == PartStatus.SHIPPED.value

    assert _child(products, "Wall Cabinet").status == PartStatus.ASSEMBLED.value


def test_subassembly_status_covers_direct_parts_only(db, build, builder):
    wo = build.work_order()
    sheet = build.nest_sheet(wo)
    product = build.product(wo)
    outer = build.subassembly("Outer", product=product)
    build.part(sheet, "Outer Panel", parent=outer, status=PartStatus.SHIPPED)
    inner = build.subassembly("Inner", parent=outer)
    build.part(sheet, "Inner Panel", parent=inner, status=PartStatus.CUT)
    build.commit()

    tree = builder.build(db, wo.id, TreeOptions(include_status=True))
    product_node = _child(tree.items[0], product.name)
    outer_node = _child(_child(product_node, "Subassemblies"), "Outer")

    assert outer_node.status == PartStatus.SHIPPED.value
    assert _child(outer_node, "Inner").status == PartStatus.CUT.value
    assert product_node.status == PartStatus.CUT.value


def test_part_nodes_carry_category(db, builder, kitchen):
    tree = builder.build(db, kitchen.id, TreeOptions())
    parts = [n for n in _walk(tree.items) if n.type is NodeType.PART and n.name == "Left Side"]
    # Once under the product, once under its nest sheet
    assert len(parts) == 2
    assert {p.category for p in parts} == {PartCategory.CARCASS.value}


def test_detached_product_status_is_derived_from_parts(db, build, builder):
    wo = build.work_order()
    sheet = build.nest_sheet(wo)
    shelf = build.detached_product(wo, "Shelf", status=PartStatus.SHIPPED)
    build.part(sheet, "Shelf Board", parent=shelf, status=PartStatus.CUT)
    empty = build.detached_product(wo, "Filler", item_number="D2", status=PartStatus.SHIPPED)
    build.commit()

    tree = builder.build(db, wo.id, TreeOptions(include_status=True, include_item_numbers=True))
    detached = next(c for c in tree.items if c.id == "category_detached_products")

    assert _child(detached, "D1 - Shelf").status == PartStatus.CUT.value
    assert _child(detached, "D2 - Filler").status == PartStatus.PENDING.value
    assert empty.status is PartStatus.SHIPPED


def test_nest_sheet_shows_processed_state_and_parts(db, build, builder):
    wo = build.work_order()
    done = build.nest_sheet(wo, "Sheet 1", is_processed=True)
    todo = build.nest_sheet(wo, "Sheet 2")
    product = build.product(wo)
    build.part(done, "A", parent=product, status=PartStatus.PENDING)
    build.part(todo, "B", parent=product, status=PartStatus.SHIPPED)
    build.part(todo, "C", parent=product, status=PartStatus.SHIPPED)
    build.commit()

    tree = builder.build(db, wo.id, TreeOptions(include_status=True))
    sheets = next(c for c in tree.items if c.id == "category_nestsheets")

    first, second = sheets.children
    assert (first.name, first.status, len(first.children)) == ("Sheet 1", "Processed", 1)
    assert (second.name, second.status, len(second.children)) == ("Sheet 2", "Pending", 2)
    assert tree.nest_sheet_summary.total_nest_sheets == 2
    assert tree.nest_sheet_summary.processed_nest_sheets == 1
    assert tree.nest_sheet_summary.total_parts_on_nest_sheets == 3


def test_pagination_applies_to_products_only(db, build, builder):
    wo = build.work_order()
    for index in range(250):
        build.product(wo, f"Cabinet {index:03d}", product_number=f"{index:03d}")
    build.detached_product(wo)
    build.commit()

    tree = builder.build(db, wo.id, TreeOptions(page=1, page_size=100))
    products = tree.items[0]

    assert [p.name for p in products.children] == [f"Cabinet {i:03d}" for i in range(100, 200)]
    assert tree.pagination.total_items == 250
    assert tree.pagination.total_pages == 3
    assert tree.pagination.has_next_page is True
    assert tree.pagination.has_previous_page is True
    assert next(c for c in tree.items if c.id == "category_detached_products").quantity == 1


def test_last_page_has_no_next_page(db, build, builder):
    wo = build.work_order()
    for index in range(5):
        build.product(wo, f"Cabinet {index}", product_number=str(index))
    build.commit()

    tree = builder.build(db, wo.id, TreeOptions(page=2, page_size=2))
    assert len(tree.items[0].children) == 1
    assert tree.pagination.has_next_page is False
    assert tree.pagination.has_previous_page is True


def test_pagination_metadata_only_when_requested(db, builder, kitchen):
    assert builder.build(db, kitchen.id, TreeOptions()).pagination is None
    paged = builder.build(db, kitchen.id, TreeOptions(page=0))
    assert paged.pagination.page_size == 100
    assert paged.pagination.has_previous_page is False


def test_page_past_the_end_drops_products_category(db, builder, kitchen):
    tree = builder.build(db, kitchen.id, TreeOptions(page=5, page_size=10))
    assert [c.name for c in tree.items] == ["Nest Sheets"]
    assert tree.pagination.total_items == 2


@pytest.mark.parametrize("options", [TreeOptions(page=-1), TreeOptions(page_size=0), TreeOptions(page_size=10_000)])
def test_invalid_pagination_is_rejected(db, builder, kitchen, options):
    with pytest.raises(ValidationAppException):
        builder.build(db, kitchen.id, options)


def test_missing_work_order_raises_not_found(db, builder):
    with pytest.raises(NotFoundException):
        builder.build(db, "missing", TreeOptions())


def test_empty_work_order_has_no_items(db, build, builder):
    wo = build.work_order()
    build.commit()
    tree = builder.build(db, wo.id, TreeOptions(include_status=True))
    assert tree.items == []
    assert tree.work_order_name == "WO-1001"


def test_unreadable_row_surfaces_as_system_error(db, build, builder):
    wo = build.work_order()
    part = build.part(build.nest_sheet(wo), "Side", parent=build.product(wo))
    build.commit()
    db.execute(text("UPDATE parts SET status = 'Painted' WHERE id = :id"), {"id": part.id})
    db.commit()

    with pytest.raises(SystemAppException) as excinfo:
        builder.build(db, wo.id, TreeOptions(include_status=True))
    assert "Painted" not in excinfo.value.message


def test_wide_subassembly_levels_load_completely(db, build, builder):
    wo = build.work_order()
    sheet = build.nest_sheet(wo)
    product = build.product(wo)
    for index in range(520):
        top = build.subassembly(f"Drawer {index:03d}", product=product)
        build.part(sheet, f"Bottom {index:03d}", parent=build.subassembly(f"Box {index:03d}", parent=top))
    build.commit()

    tree = builder.build(db, wo.id, TreeOptions(include_status=True))
    subassemblies = next(c for c in tree.items[0].children[0].children if c.name == "Subassemblies")

    assert subassemblies.quantity == 520
    assert all(len(drawer.children) == 1 for drawer in subassemblies.children)
