from sqlalchemy.exc import OperationalError

from fieldops.models.models import ActivityLog, Tool, ToolLoan
from fieldops.services import tool_lifecycle
from fieldops.services.tool_lifecycle import (
    auto_return_tools,
    restock_tool,
    returned_units,
)

from conftest import auth_headers


def test_auto_return_marks_loans_and_restocks(db, assignment, loans):
    outcomes = auto_return_tools(db, assignment.id, "https://cdn.example.com/fallback.jpg")

    assert [o.returned for o in outcomes] == [True, True]
    assert all(o.restocked for o in outcomes)
    assert returned_units(outcomes) == 3

    db.expire_all()
    assert db.get(Tool, loans["drill"].id).stok_tersedia == 5
    assert db.get(Tool, loans["ladder"].id).stok_tersedia == 3
    assert db.get(ToolLoan, loans["drill_loan"].id).foto_kembali_url == "https://cdn.example.com/fallback.jpg"


def test_auto_return_skips_already_returned_loans(db, assignment, loans):
    auto_return_tools(db, assignment.id, "https://cdn.example.com/first.jpg")
    outcomes = auto_return_tools(db, assignment.id, "https://cdn.example.com/second.jpg")

    assert outcomes == []
    db.expire_all()
    assert db.get(Tool, loans["drill"].id).stok_tersedia == 5


def test_failed_loan_is_skipped_and_others_returned(db, assignment, loans, monkeypatch):
    real_mark = tool_lifecycle.mark_loan_returned
    drill_loan_id = loans["drill_loan"].id

    def flaky_mark(session, loan_id, foto_kembali_url, returned_at):
        if loan_id == drill_loan_id:
            raise OperationalError("UPDATE peminjaman_alat", {}, Exception("database is locked"))
        return real_mark(session, loan_id, foto_kembali_url, returned_at)

    monkeypatch.setattr(tool_lifecycle, "mark_loan_returned", flaky_mark)

    outcomes = auto_return_tools(db, assignment.id, "https://cdn.example.com/fallback.jpg")

    by_loan = {o.loan_id: o for o in outcomes}
    assert by_loan[drill_loan_id].returned is False
    assert by_loan[drill_loan_id].error
    assert by_loan[loans["ladder_loan"].id].returned is True
    assert returned_units(outcomes) == 1

    db.expire_all()
    assert db.get(ToolLoan, drill_loan_id).is_returned is False
    assert db.get(Tool, loans["drill"].id).stok_tersedia == 3
    assert db.get(ToolLoan, loans["ladder_loan"].id).is_returned is True
    assert db.get(Tool, loans["ladder"].id).stok_tersedia == 3


def test_restock_failure_still_counts_returned_units(db, assignment, loans, monkeypatch):
    monkeypatch.setattr(tool_lifecycle, "restock_tool", lambda session, alat_id, quantity: False)

    outcomes = auto_return_tools(db, assignment.id, "https://cdn.example.com/fallback.jpg")

    assert all(o.returned and not o.restocked for o in outcomes)
    assert returned_units(outcomes) == 3
    db.expire_all()
    assert db.get(ToolLoan, loans["drill_loan"].id).is_returned is True
    assert db.get(Tool, loans["drill"].id).stok_tersedia == 3


def test_restock_is_incremental(db, loans):
    drill = loans["drill"]
    assert restock_tool(db, drill.id, 1) is True
    assert restock_tool(db, drill.id, 1) is True
    db.commit()
    db.expire_all()
    assert db.get(Tool, drill.id).stok_tersedia == 5


def test_restock_unknown_tool_reports_false(db):
    assert restock_tool(db, 424242, 1) is False


# ---------- manual return endpoint ----------

def _return(client, assignment, tool, profile, foto_url="https://cdn.example.com/kembali.jpg"):
    return client.post(
        f"/penugasan/{assignment.id}/alat/{tool.id}/return",
        json={"foto_url": foto_url},
        headers=auth_headers(profile),
    )


def test_manual_return(client, db, assignment, technician, loans):
    resp = _return(client, assignment, loans["drill"], technician)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["message"] == "Alat dikembalikan"
    assert data["peminjaman_id"] == loans["drill_loan"].id
    assert data["returned_at"]

    db.expire_all()
    loan = db.get(ToolLoan, loans["drill_loan"].id)
    assert loan.is_returned is True
    assert loan.foto_kembali_url == "https://cdn.example.com/kembali.jpg"
    assert db.get(Tool, loans["drill"].id).stok_tersedia == 5
    assert db.get(ToolLoan, loans["ladder_loan"].id).is_returned is False

    log = db.query(ActivityLog).one()
    assert log.aksi == "Pengembalian Alat"
    assert log.pengguna_id == technician.id


def test_manual_return_twice_is_400(client, db, assignment, technician, loans):
    _return(client, assignment, loans["ladder"], technician)
    resp = _return(client, assignment, loans["ladder"], technician)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Alat sudah dikembalikan"}
    db.expire_all()
    assert db.get(Tool, loans["ladder"].id).stok_tersedia == 3


def test_manual_return_requires_photo(client, assignment, technician, loans):
    resp = _return(client, assignment, loans["drill"], technician, foto_url="")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Foto pengembalian wajib diunggah"}


def test_manual_return_unknown_loan_is_404(client, db, assignment, technician, loans):
    spare = Tool(nama="Multimeter", stok_total=2, stok_tersedia=2)
    db.add(spare)
    db.commit()
    resp = _return(client, assignment, spare, technician)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Peminjaman alat tidak ditemukan"}


def test_manual_return_by_outsider_is_404(client, db, assignment, outsider, loans):
    resp = _return(client, assignment, loans["drill"], outsider)
    assert resp.status_code == 404
    db.expire_all()
    assert db.get(ToolLoan, loans["drill_loan"].id).is_returned is False
