from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Query, Session

from fieldops.models.models import ActivityLog, EvidencePair, Notification, ProgressReport, ToolLoan

from conftest import auth_headers, make_pair


def _body(**overrides):
    body = {
        "tanggal_laporan": "2025-03-01",
        "status_progres": "Sedang Dikerjakan",
        "persentase_progres": 40,
        "foto_url": "https://cdn.example.com/progress.jpg",
    }
    body.update(overrides)
    return body


def _post(client, assignment, profile, **overrides):
    return client.post(
        f"/penugasan/{assignment.id}/laporan",
        json=_body(**overrides),
        headers=auth_headers(profile),
    )


def _db_error(*args, **kwargs):
    raise OperationalError("statement", {}, Exception("database is locked"))


def test_report_insert_failure_is_500(client, db, assignment, technician, monkeypatch):
    monkeypatch.setattr(Session, "commit", _db_error)
    resp = _post(client, assignment, technician)
    monkeypatch.undo()

    assert resp.status_code == 500
    assert resp.json() == {"error": "Gagal mengirim laporan"}
    db.expire_all()
    assert db.query(ProgressReport).count() == 0
    assert db.query(Notification).count() == 0


def test_pickup_photo_failure_aborts_but_keeps_report(client, db, assignment, technician, loans, monkeypatch):
    monkeypatch.setattr(Query, "update", _db_error)
    resp = _post(
        client, assignment, technician,
        tool_photos=[{"alat_id": loans["drill"].id, "foto_url": "https://cdn.example.com/ambil-bor.jpg"}],
        pairs=[make_pair()],
    )
    monkeypatch.undo()

    assert resp.status_code == 500
    assert resp.json() == {"error": "Gagal menyimpan foto pengambilan alat"}

    db.expire_all()
    assert db.query(ProgressReport).count() == 1
    assert db.get(ToolLoan, loans["drill_loan"].id).foto_ambil_url is None
    # later steps never ran
    assert db.query(EvidencePair).count() == 0
    assert db.query(ActivityLog).count() == 0


def test_evidence_batch_failure_is_500_and_keeps_report(client, db, assignment, technician, monkeypatch):
    monkeypatch.setattr(Session, "add_all", _db_error)
    resp = _post(
        client, assignment, technician,
        status_progres="Selesai", persentase_progres=100,
        pairs=[make_pair(1), make_pair(2)],
    )
    monkeypatch.undo()

    assert resp.status_code == 500
    assert resp.json() == {"error": "Gagal menyimpan bukti before/after"}
    assert "report" not in resp.json()

    db.expire_all()
    report = db.query(ProgressReport).one()
    assert report.status_progres == "Selesai"
    assert db.query(EvidencePair).count() == 0


def test_non_text_pair_field_is_400_before_anything_is_written(client, db, assignment, technician):
    pair = make_pair(1)
    pair["before"]["taken_at"] = 1740787200000
    resp = _post(client, assignment, technician, status_progres="Selesai", persentase_progres=100, pairs=[pair])

    assert resp.status_code == 400
    assert resp.json() == {"error": "Format bukti foto ke-1 tidak valid"}
    assert db.query(ProgressReport).count() == 0
