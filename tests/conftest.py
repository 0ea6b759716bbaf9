import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import build_engine, init_db
from core.settings import Settings
from modules.work_orders import models
from modules.work_orders.types import ParentKind, PartCategory, PartStatus


class WorkOrderBuilder:
    """Creates work order hierarchies for tests; call ``commit`` when done."""

    def __init__(self, db):
        self.db = db

    def _add(self, entity):
        self.db.add(entity)
        self.db.flush()
        return entity

    def commit(self):
        self.db.commit()

    def work_order(self, name="WO-1001", **kwargs):
        return self._add(models.WorkOrder(name=name, **kwargs))

    def nest_sheet(self, work_order, name="Sheet 1", **kwargs):
        return self._add(models.NestSheet(work_order_id=work_order.id, name=name, **kwargs))

    def product(self, work_order, name="Base Cabinet", product_number="1", **kwargs):
        return self._add(
            models.Product(work_order_id=work_order.id, name=name, product_number=product_number, **kwargs)
        )

    def subassembly(self, name="Drawer", product=None, parent=None, **kwargs):
        return self._add(
            models.Subassembly(
                name=name,
                product_id=product.id if product is not None else None,
                parent_subassembly_id=parent.id if parent is not None else None,
                **kwargs,
            )
        )

    def detached_product(self, work_order, name="Loose Shelf", item_number="D1", **kwargs):
        return self._add(
            models.DetachedProduct(work_order_id=work_order.id, name=name, item_number=item_number, **kwargs)
        )

    def hardware(self, work_order, name="Hinge", product=None, status=PartStatus.PENDING, **kwargs):
        return self._add(
            models.Hardware(
                work_order_id=work_order.id,
                product_id=product.id if product is not None else None,
                name=name,
                status=status,
                **kwargs,
            )
        )

    def part(self, sheet, name="Side Panel", parent=None, status=PartStatus.PENDING,
             category=PartCategory.STANDARD, **kwargs):
        parent_kind = None
        if isinstance(parent, models.Product):
            parent_kind = ParentKind.PRODUCT
        elif isinstance(parent, models.Subassembly):
            parent_kind = ParentKind.SUBASSEMBLY
        elif isinstance(parent, models.DetachedProduct):
            parent_kind = ParentKind.DETACHED_PRODUCT
        return self._add(
            models.Part(
                nest_sheet_id=sheet.id,
                name=name,
                parent_kind=parent_kind,
                parent_id=parent.id if parent is not None else None,
                status=status,
                category=category,
                **kwargs,
            )
        )


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def build(db):
    return WorkOrderBuilder(db)
