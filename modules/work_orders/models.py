from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    and_,
)
from sqlalchemy.orm import foreign, relationship

from core.models import Base, TimestampMixin, new_id, utcnow
from modules.work_orders.types import ParentKind, PartCategory, PartStatus


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def status_column(**kwargs) -> Column:
    return Column(
        Enum(PartStatus, native_enum=False, length=16, values_callable=_enum_values, validate_strings=True),
        nullable=False,
        default=PartStatus.PENDING,
        **kwargs,
    )


class WorkOrder(Base, TimestampMixin):
    __tablename__ = "work_orders"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    imported_date = Column(DateTime, nullable=False, default=utcnow)
    is_archived = Column(Boolean, nullable=False, default=False)
    archived_date = Column(DateTime, nullable=True)

    products = relationship(
        "Product", back_populates="work_order", cascade="all, delete-orphan", passive_deletes=True,
        order_by="Product.product_number",
    )
    hardware = relationship("Hardware", back_populates="work_order", cascade="all, delete-orphan", passive_deletes=True)
    detached_products = relationship(
        "DetachedProduct", back_populates="work_order", cascade="all, delete-orphan", passive_deletes=True
    )
    nest_sheets = relationship("NestSheet", back_populates="work_order", cascade="all, delete-orphan", passive_deletes=True)


class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id = Column(String(64), primary_key=True, default=new_id)
    work_order_id = Column(String(64), ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_number = Column(String(64), nullable=False, default="")
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    length = Column(Numeric(12, 3), nullable=True)
    width = Column(Numeric(12, 3), nullable=True)

    work_order = relationship("WorkOrder", back_populates="products")
    subassemblies = relationship("Subassembly", back_populates="product", passive_deletes=True)
    hardware = relationship("Hardware", back_populates="product", passive_deletes=True)
    parts = relationship(
        "Part",
        primaryjoin=lambda: and_(Product.id == foreign(Part.parent_id), Part.parent_kind == ParentKind.PRODUCT),
        viewonly=True,
    )


class Subassembly(Base, TimestampMixin):
    """Owned by a product or by a parent subassembly, never both."""

    __tablename__ = "subassemblies"
    __table_args__ = (
        CheckConstraint(
            "(product_id IS NULL) <> (parent_subassembly_id IS NULL)",
            name="ck_subassembly_single_parent",
        ),
    )

    id = Column(String(64), primary_key=True, default=new_id)
    product_id = Column(String(64), ForeignKey("products.id", ondelete="CASCADE"), nullable=True, index=True)
    parent_subassembly_id = Column(
        String(64), ForeignKey("subassemblies.id", ondelete="CASCADE"), nullable=True, index=True
    )
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    length = Column(Numeric(12, 3), nullable=True)
    width = Column(Numeric(12, 3), nullable=True)

    product = relationship("Product", back_populates="subassemblies")
    parent = relationship("Subassembly", remote_side=[id], back_populates="children")
    children = relationship("Subassembly", back_populates="parent", passive_deletes=True)
    parts = relationship(
        "Part",
        primaryjoin=lambda: and_(Subassembly.id == foreign(Part.parent_id), Part.parent_kind == ParentKind.SUBASSEMBLY),
        viewonly=True,
    )


class Part(Base, TimestampMixin):
    """Leaf item. Its status is set directly and never derived.

    The structural parent is a tagged reference without a foreign key, since
    products and detached products share one id space.
    """

    __tablename__ = "parts"
    __table_args__ = (
        CheckConstraint(
            "(parent_kind IS NULL) = (parent_id IS NULL)",
            name="ck_part_parent_reference",
        ),
    )

    id = Column(String(64), primary_key=True, default=new_id)
    parent_kind = Column(
        Enum(ParentKind, native_enum=False, length=24, values_callable=_enum_values, validate_strings=True),
        nullable=True,
    )
    parent_id = Column(String(64), nullable=True, index=True)
    nest_sheet_id = Column(String(64), ForeignKey("nest_sheets.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    length = Column(Numeric(12, 3), nullable=True)
    width = Column(Numeric(12, 3), nullable=True)
    thickness = Column(Numeric(12, 3), nullable=True)
    material = Column(String(255), nullable=False, default="")
    location = Column(String(200), nullable=True)
    status = status_column()
    status_updated_date = Column(DateTime, nullable=True)
    category = Column(
        Enum(PartCategory, native_enum=False, length=32, values_callable=_enum_values, validate_strings=True),
        nullable=False,
        default=PartCategory.STANDARD,
    )

    nest_sheet = relationship("NestSheet", back_populates="parts")


class Hardware(Base, TimestampMixin):
    __tablename__ = "hardware"

    id = Column(String(64), primary_key=True, default=new_id)
    work_order_id = Column(String(64), ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(64), ForeignKey("products.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    status = status_column()
    status_updated_date = Column(DateTime, nullable=True)
    shipped_date = Column(DateTime, nullable=True)

    work_order = relationship("WorkOrder", back_populates="hardware")
    product = relationship("Product", back_populates="hardware")


class DetachedProduct(Base, TimestampMixin):
    __tablename__ = "detached_products"

    id = Column(String(64), primary_key=True, default=new_id)
    work_order_id = Column(String(64), ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    item_number = Column(String(64), nullable=False, default="")
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    length = Column(Numeric(12, 3), nullable=True)
    width = Column(Numeric(12, 3), nullable=True)
    thickness = Column(Numeric(12, 3), nullable=True)
    material = Column(String(255), nullable=False, default="")
    # Legacy column kept for old rows; displayed status is always derived from parts
    status = status_column()

    work_order = relationship("WorkOrder", back_populates="detached_products")
    parts = relationship(
        "Part",
        primaryjoin=lambda: and_(
            DetachedProduct.id == foreign(Part.parent_id), Part.parent_kind == ParentKind.DETACHED_PRODUCT
        ),
        viewonly=True,
    )


class NestSheet(Base, TimestampMixin):
    __tablename__ = "nest_sheets"

    id = Column(String(64), primary_key=True, default=new_id)
    work_order_id = Column(String(64), ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    material = Column(String(255), nullable=False, default="")
    barcode = Column(String(128), nullable=False, default="")
    length = Column(Numeric(12, 3), nullable=True)
    width = Column(Numeric(12, 3), nullable=True)
    thickness = Column(Numeric(12, 3), nullable=True)
    is_processed = Column(Boolean, nullable=False, default=False)
    processed_date = Column(DateTime, nullable=True)

    work_order = relationship("WorkOrder", back_populates="nest_sheets")
    parts = relationship("Part", back_populates="nest_sheet", passive_deletes=True)

    @property
    def status_label(self) -> str:
        return "Processed" if self.is_processed else "Pending"
