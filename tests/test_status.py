import itertools
import random

import pytest

from modules.work_orders.status import collect_subtree_ids, effective_status_of, flatten_product_parts
from modules.work_orders.types import PartCategory, PartStatus


def test_empty_input_is_pending():
    assert effective_status_of([]) is PartStatus.PENDING


@pytest.mark.parametrize("size", [1, 2, 3])
def test_result_is_least_advanced_status(size):
    for statuses in itertools.product(list(PartStatus), repeat=size):
        expected = min(statuses, key=lambda s: s.rank)
        assert effective_status_of(statuses) is expected


def test_all_shipped_is_shipped():
    assert effective_status_of([PartStatus.SHIPPED] * 4) is PartStatus.SHIPPED


def test_order_and_duplicates_do_not_matter():
    statuses = [PartStatus.ASSEMBLED, PartStatus.CUT, PartStatus.SHIPPED, PartStatus.SORTED]
    rng = random.Random(7)
    for _ in range(20):
        shuffled = statuses + rng.sample(statuses, k=2)
        rng.shuffle(shuffled)
        assert effective_status_of(shuffled) is PartStatus.CUT


def test_status_ranks_follow_production_order():
    ranks = [s.rank for s in (PartStatus.PENDING, PartStatus.CUT, PartStatus.SORTED,
                              PartStatus.ASSEMBLED, PartStatus.SHIPPED)]
    assert ranks == sorted(ranks)
    assert len(set(ranks)) == 5


def test_status_parse_is_case_insensitive():
    assert PartStatus.parse("shipped") is PartStatus.SHIPPED
    assert PartStatus.parse(" Cut ") is PartStatus.CUT
    assert PartStatus.parse("Painted") is None
    assert PartStatus.parse(None) is None


def test_category_parse_rejects_unknown_values():
    assert PartCategory.parse("DoorsAndDrawerFronts") is PartCategory.DOORS_AND_DRAWER_FRONTS
    assert PartCategory.parse("NotARealCategory") is None
    assert PartCategory.parse("") is None


def test_subtree_walk_includes_roots_and_skips_revisits():
    children = {"a": ["b", "c"], "b": ["d"], "d": ["a"]}
    assert collect_subtree_ids(["a"], children) == ["a", "b", "c", "d"]


def test_product_roll_up_uses_nested_subassembly_parts(db, build):
    """A pending part two levels down holds the whole product back."""
    wo = build.work_order()
    sheet = build.nest_sheet(wo)
    product = build.product(wo)
    drawer = build.subassembly("Drawer", product=product)
    box = build.subassembly("Drawer Box", parent=drawer)
    build.part(sheet, "Side", parent=product, status=PartStatus.CUT)
    build.part(sheet, "Top", parent=product, status=PartStatus.SORTED)
    build.part(sheet, "Front", parent=drawer, status=PartStatus.ASSEMBLED)
    bottom = build.part(sheet, "Bottom", parent=box, status=PartStatus.PENDING)
    build.commit()

    parts = flatten_product_parts(
        list(product.parts),
        [drawer.id],
        {drawer.id: [box.id]},
        {drawer.id: list(drawer.parts), box.id: list(box.parts)},
    )
    assert bottom in parts
    assert len(parts) == 4
    assert effective_status_of(p.status for p in parts) is PartStatus.PENDING
