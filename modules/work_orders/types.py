from enum import Enum
from typing import Optional


class PartStatus(str, Enum):
    """Production lifecycle, ordered from least to most advanced."""

    PENDING = "Pending"
    CUT = "Cut"
    SORTED = "Sorted"
    ASSEMBLED = "Assembled"
    SHIPPED = "Shipped"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @classmethod
    def parse(cls, value: str) -> Optional["PartStatus"]:
        """Match a status name case-insensitively; None when unknown."""
        if value is None:
            return None
        for member in cls:
            if member.value.lower() == value.strip().lower():
                return member
        return None


_STATUS_ORDER = list(PartStatus)


class PartCategory(str, Enum):
    """Material routing class of a part."""

    STANDARD = "Standard"
    CARCASS = "Carcass"
    DOORS_AND_DRAWER_FRONTS = "DoorsAndDrawerFronts"
    ADJUSTABLE_SHELVES = "AdjustableShelves"
    HARDWARE = "Hardware"

    @classmethod
    def parse(cls, value: str) -> Optional["PartCategory"]:
        if value is None:
            return None
        for member in cls:
            if member.value == value.strip():
                return member
        return None


class ParentKind(str, Enum):
    """What a part's ``parent_id`` points at."""

    PRODUCT = "product"
    SUBASSEMBLY = "subassembly"
    DETACHED_PRODUCT = "detached_product"


class EntityKind(str, Enum):
    PART = "part"
    HARDWARE = "hardware"
    SUBASSEMBLY = "subassembly"
    PRODUCT = "product"
    DETACHED_PRODUCT = "detached_product"
    NEST_SHEET = "nestsheet"

    @property
    def label(self) -> str:
        return _ENTITY_LABELS[self]


_ENTITY_LABELS = {
    EntityKind.PART: "Part",
    EntityKind.HARDWARE: "Hardware",
    EntityKind.SUBASSEMBLY: "Subassembly",
    EntityKind.PRODUCT: "Product",
    EntityKind.DETACHED_PRODUCT: "DetachedProduct",
    EntityKind.NEST_SHEET: "NestSheet",
}
