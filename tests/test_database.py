import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from core.database import session_scope
from modules.work_orders import models


def test_sqlite_enforces_foreign_keys(engine):
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1


def test_session_scope_commits(session_factory):
    with session_scope(session_factory) as session:
        session.add(models.WorkOrder(id="wo-1", name="Kitchen"))

    with session_scope(session_factory) as session:
        assert session.get(models.WorkOrder, "wo-1").name == "Kitchen"


def test_session_scope_rolls_back_on_error(session_factory):
    with pytest.raises(IntegrityError):
        with session_scope(session_factory) as session:
            session.add(models.WorkOrder(id="wo-1", name="Kitchen"))
            session.flush()
            session.add(models.NestSheet(work_order_id="missing", name="Orphan"))

    with session_scope(session_factory) as session:
        assert session.query(models.WorkOrder).count() == 0


def test_subassembly_needs_exactly_one_parent(session_factory):
    with pytest.raises(IntegrityError):
        with session_scope(session_factory) as session:
            session.add(models.Subassembly(name="Floating"))
