from fieldops.models.models import Notification
from fieldops.services.notifications import create_notification

from conftest import auth_headers


def _seed(db, profile, count=3):
    return [create_notification(db, profile.id, f"Pesan {i}") for i in range(count)]


def test_lists_only_own_notifications(client, db, technician, outsider):
    _seed(db, technician, 2)
    create_notification(db, outsider.id, "Bukan untukmu")

    resp = client.get("/notifikasi", headers=auth_headers(technician))
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 2
    assert {n["pesan"] for n in body["data"]} == {"Pesan 0", "Pesan 1"}
    assert all(n["status"] == "Belum Dibaca" for n in body["data"])


def test_limit_and_status_filter(client, db, technician):
    rows = _seed(db, technician, 3)
    rows[0].status = "Dibaca"
    db.commit()

    resp = client.get("/notifikasi", params={"status": "Belum Dibaca"}, headers=auth_headers(technician))
    assert resp.json()["count"] == 2

    resp = client.get("/notifikasi", params={"limit": 1}, headers=auth_headers(technician))
    assert resp.json()["count"] == 1


def test_invalid_status_filter_is_400(client, technician):
    resp = client.get("/notifikasi", params={"status": "unread"}, headers=auth_headers(technician))
    assert resp.status_code == 400
    assert resp.json() == {"error": "Status notifikasi tidak valid"}


def test_mark_all_read(client, db, technician, outsider):
    _seed(db, technician, 2)
    other = create_notification(db, outsider.id, "Bukan untukmu")

    resp = client.patch("/notifikasi", headers=auth_headers(technician))
    assert resp.status_code == 200
    assert resp.json()["updated"] == 2

    db.expire_all()
    assert db.query(Notification).filter(Notification.penerima_id == technician.id, Notification.status == "Dibaca").count() == 2
    assert db.get(Notification, other.id).status == "Belum Dibaca"


def test_mark_selected_read(client, db, technician):
    rows = _seed(db, technician, 3)
    resp = client.patch("/notifikasi", json={"ids": [rows[1].id]}, headers=auth_headers(technician))
    assert resp.json()["updated"] == 1

    db.expire_all()
    assert [db.get(Notification, r.id).status for r in rows] == ["Belum Dibaca", "Dibaca", "Belum Dibaca"]


def test_notifications_require_auth(client):
    assert client.get("/notifikasi").status_code == 401
