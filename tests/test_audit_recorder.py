from modules.audit.models import AuditLog
from modules.audit.service import AuditRecorder, list_entity_audit, list_work_order_audit


def test_log_persists_entry_with_json_values(db):
    entry = AuditRecorder(db).log(
        "ManualStatusChange",
        "Part",
        "part-1",
        old_value={"status": "Pending"},
        new_value={"status": "Cut"},
        station="Cutting",
        work_order_id="wo-1",
        details="scan",
        session_id="s-1",
    )

    assert entry is not None
    stored = db.query(AuditLog).one()
    assert stored.new_value == {"status": "Cut"}
    assert (stored.station, stored.session_id, stored.work_order_id) == ("Cutting", "s-1", "wo-1")


def test_log_failure_is_swallowed_and_rolled_back(db, monkeypatch):
    recorder = AuditRecorder(db)

    def failing_commit():
        raise RuntimeError("database is locked")

    monkeypatch.setattr(db, "commit", failing_commit)
    assert recorder.log("DeletePart", "Part", "part-1", station="Admin") is None
    monkeypatch.undo()

    assert db.query(AuditLog).count() == 0


def test_history_queries_filter_by_work_order_and_entity(db):
    recorder = AuditRecorder(db)
    recorder.log("DeletePart", "Part", "p1", work_order_id="wo-1")
    recorder.log("DeleteHardware", "Hardware", "h1", work_order_id="wo-1")
    recorder.log("DeletePart", "Part", "p2", work_order_id="wo-2")

    assert {e.entity_id for e in list_work_order_audit(db, "wo-1")} == {"p1", "h1"}
    assert len(list_work_order_audit(db, "wo-1", limit=1)) == 1
    assert [e.action for e in list_entity_audit(db, "Part", "p2")] == ["DeletePart"]
