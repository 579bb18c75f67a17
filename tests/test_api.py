from datetime import timedelta

from sqlalchemy import select

from app.main import RateLimiter
from app.models.message import GroupMessage
from app.models.user import User


def _auth_headers(client, email="student@example.com"):
    register = client.post("/auth/register", json={"email": email, "password": "secret123"})
    assert register.status_code == 201, register.text
    login = client.post("/auth/login", json={"email": email, "password": "secret123"})
    assert login.status_code == 200
    token = login.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


def _create_group(client, headers, **overrides):
    payload = {"name": "CSE 3A Networks", "year": 3, "section": "A", "subject": "Networks", **overrides}
    resp = client.post("/groups", headers=headers, json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_group_chat_flow(client, store):
    headers = _auth_headers(client)
    group = _create_group(client, headers)
    group_id = group["id"]
    assert group["member_count"] == 1
    assert group["is_password_protected"] is False

    text_resp = client.post(f"/groups/{group_id}/messages", headers=headers, data={"body": "Lab moved to Friday"})
    assert text_resp.status_code == 201, text_resp.text
    assert text_resp.json()["message_type"] == "text"

    file_resp = client.post(
        f"/groups/{group_id}/messages",
        headers=headers,
        data={"reply_to_id": text_resp.json()["id"]},
        files={"file": ("slides.pdf", b"%PDF-1.4 slides", "application/pdf")},
    )
    assert file_resp.status_code == 201, file_resp.text
    file_message = file_resp.json()
    assert file_message["message_type"] == "file"
    assert file_message["body"] is None
    assert file_message["attachment"]["file_name"] == "slides.pdf"
    assert file_message["attachment"]["file_size"] == len(b"%PDF-1.4 slides")
    assert len(store.blobs) == 1

    history = client.get(f"/groups/{group_id}/messages", headers=headers)
    assert history.status_code == 200
    assert [m["id"] for m in history.json()][0] == file_message["id"]

    receipt = client.post(f"/groups/{group_id}/messages/{file_message['id']}/read", headers=headers)
    assert receipt.status_code == 200
    assert receipt.json()["message_id"] == file_message["id"]


def test_empty_message_rejected(client):
    headers = _auth_headers(client)
    group = _create_group(client, headers)

    resp = client.post(f"/groups/{group['id']}/messages", headers=headers, data={"body": "   "})

    assert resp.status_code == 400


def test_non_members_cannot_read_or_post(client):
    owner = _auth_headers(client, "owner@example.com")
    outsider = _auth_headers(client, "outsider@example.com")
    group = _create_group(client, owner, password="lab-secret")

    assert client.get(f"/groups/{group['id']}/messages", headers=outsider).status_code == 403
    assert client.post(f"/groups/{group['id']}/messages", headers=outsider, data={"body": "hi"}).status_code == 403

    wrong = client.post(f"/groups/{group['id']}/join", headers=outsider, json={"password": "nope"})
    assert wrong.status_code == 403
    joined = client.post(f"/groups/{group['id']}/join", headers=outsider, json={"password": "lab-secret"})
    assert joined.status_code == 200
    assert joined.json()["role"] == "member"
    assert client.get(f"/groups/{group['id']}/messages", headers=outsider).status_code == 200


def test_member_admin_routes(client, db):
    owner = _auth_headers(client, "owner@example.com")
    member = _auth_headers(client, "member@example.com")
    group = _create_group(client, owner)
    member_id = client.post(f"/groups/{group['id']}/join", headers=member, json={}).json()["user_id"]

    assert client.patch(f"/groups/{group['id']}", headers=member, json={"name": "Hijacked"}).status_code == 403
    promoted = client.post(f"/groups/{group['id']}/members/{member_id}/promote", headers=owner)
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "admin"
    renamed = client.patch(f"/groups/{group['id']}", headers=member, json={"name": "CSE 3A Networks Lab"})
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "CSE 3A Networks Lab"

    owner_id = db.scalar(select(User.id).where(User.email == "owner@example.com"))
    assert client.post(f"/groups/{group['id']}/members/{owner_id}/demote", headers=member).status_code == 400
    assert client.delete(f"/groups/{group['id']}", headers=member).status_code == 403
    assert client.delete(f"/groups/{group['id']}/members/{member_id}", headers=owner).status_code == 204
    members = client.get(f"/groups/{group['id']}/members", headers=owner).json()
    assert [m["user_id"] for m in members] == [owner_id]


def test_cleanup_endpoints_require_platform_admin(client, db):
    headers = _auth_headers(client)
    assert client.post("/admin/cleanup", headers=headers).status_code == 403
    assert client.get("/admin/cleanup/runs", headers=headers).status_code == 403

    user = db.scalar(select(User).where(User.email == "student@example.com"))
    user.is_admin = True
    db.commit()

    group = _create_group(client, headers)
    posted = client.post(
        f"/groups/{group['id']}/messages",
        headers=headers,
        files={"file": ("old.txt", b"old notes", "text/plain")},
    ).json()
    message = db.get(GroupMessage, posted["id"])
    message.created_at = message.created_at - timedelta(days=30)
    db.commit()

    preview = client.get("/admin/cleanup/preview", headers=headers)
    assert preview.status_code == 200
    assert preview.json()["will_delete_files"] == 1

    run = client.post("/admin/cleanup", headers=headers)
    assert run.status_code == 200, run.text
    body = run.json()
    assert body["messages_deleted"] == 1
    assert body["attachments_deleted"] == 1
    assert body["error"] is None
    assert body["status"] == "succeeded"

    runs = client.get("/admin/cleanup/runs", headers=headers, params={"limit": 5})
    assert runs.status_code == 200
    assert [r["id"] for r in runs.json()] == [body["run_id"]]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_rate_limiter_forgets_idle_clients():
    ticks = [1000.0]
    limiter = RateLimiter(1, clock=lambda: ticks[0])

    assert limiter.hit("10.0.0.1")
    assert not limiter.hit("10.0.0.1")
    ticks[0] = 1010.0
    assert limiter.hit("10.0.0.2")

    ticks[0] = 1100.0
    assert limiter.hit("10.0.0.3")

    assert set(limiter._hits) == {"10.0.0.3"}
