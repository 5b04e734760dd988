from datetime import datetime

from starlette.datastructures import UploadFile as StarletteUploadFile

from memorylane_backend.config import settings


MEMORY = {"title": "First", "content": "Hello memory", "date": "2024-05-01T10:00:00"}


def create_memory(client, headers, **overrides):
    r = client.post("/api/memories", json={**MEMORY, **overrides}, headers=headers)
    assert r.status_code == 201
    return r.json()

def befriend(client, requester, recipient):
    headers, _ = requester
    _, recipient_id = recipient
    r = client.post(f"/api/friends/request/{recipient_id}", headers=headers)
    assert r.status_code == 201
    r2 = client.post(f"/api/friends/accept/{r.json()['id']}", headers=recipient[0])
    assert r2.status_code == 200
    return r2.json()

def test_health_check(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Healthy"

# -------- AUTH TESTS --------
def test_register_and_login(client, user_data):
    # Register new user
    r = client.post("/api/register", json=user_data)
    assert r.status_code == 201
    resp = r.json()
    assert resp["username"] == user_data["username"]
    assert resp["display_name"] == "Alice"
    assert "id" in resp
    assert "password" not in resp

    # Duplicate username
    r2 = client.post("/api/register", json=user_data)
    assert r2.status_code == 409

    # Login with correct credentials
    r3 = client.post("/api/login", data={
        "username": user_data["username"], "password": user_data["password"]
    })
    assert r3.status_code == 200
    assert "access_token" in r3.json()

    # Login with incorrect password
    r4 = client.post("/api/login", data={
        "username": user_data["username"], "password": "wrongpw"
    })
    assert r4.status_code == 401

    # Login with nonexistent user
    r5 = client.post("/api/login", data={
        "username": "somebody", "password": "pw"
    })
    assert r5.status_code == 401

def test_register_invalid(client):
    r = client.post("/api/register", json={"username": "al", "password": "longenough"})
    assert r.status_code == 400
    r2 = client.post("/api/register", json={"username": "alice"})
    assert r2.status_code == 400

def test_profile_requires_auth(client, auth):
    r = client.get("/api/user")
    assert r.status_code == 401

    r2 = client.get("/api/user", headers={"Authorization": "Bearer not-a-token"})
    assert r2.status_code == 401

    headers, user_id = auth
    r3 = client.get("/api/user", headers=headers)
    assert r3.status_code == 200
    assert r3.json()["id"] == user_id

def test_update_profile(client, auth, second_auth):
    headers, _ = auth
    r = client.put("/api/user", json={"bio": "Collector of moments"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["bio"] == "Collector of moments"
    assert r.json()["username"] == "alice"

    r2 = client.put("/api/user", json={"username": "bob"}, headers=headers)
    assert r2.status_code == 409

def test_users_listing(client, auth, second_auth):
    headers, _ = auth
    _, bob_id = second_auth
    users = client.get("/api/users", headers=headers).json()
    assert {u["username"] for u in users} == {"alice", "bob"}
    assert all("password" not in u for u in users)

    r = client.get(f"/api/users/{bob_id}", headers=headers)
    assert r.status_code == 200
    assert r.json()["username"] == "bob"

    assert client.get("/api/users/999", headers=headers).status_code == 404

# ------- MEMORIES CRUD --------
def test_memories_crud(client, auth):
    headers, user_id = auth
    r = client.get("/api/memories", headers=headers)
    assert r.status_code == 200
    assert r.json() == []

    memory = create_memory(client, headers, images=["http://x/a.png", "http://x/b.png"], location="Lisbon")
    assert memory["user_id"] == user_id
    assert memory["images"] == ["http://x/a.png", "http://x/b.png"]
    assert memory["is_private"] is False
    memory_id = memory["id"]

    r3 = client.get(f"/api/memories/{memory_id}", headers=headers)
    assert r3.status_code == 200
    assert r3.json()["location"] == "Lisbon"

    r4 = client.put(f"/api/memories/{memory_id}", json={"title": "Renamed"}, headers=headers)
    assert r4.status_code == 200
    assert r4.json()["title"] == "Renamed"
    assert r4.json()["content"] == "Hello memory"

    r5 = client.delete(f"/api/memories/{memory_id}", headers=headers)
    assert r5.status_code == 204

    r6 = client.get(f"/api/memories/{memory_id}", headers=headers)
    assert r6.status_code == 404

def test_memories_auth_required(client):
    assert client.get("/api/memories").status_code == 401
    assert client.post("/api/memories", json=MEMORY).status_code == 401
    assert client.get("/api/memories/1").status_code == 401

def test_create_memory_invalid(client, auth):
    headers, _ = auth
    r = client.post("/api/memories", json={"content": "x", "date": "2024-01-01T00:00:00"}, headers=headers)
    assert r.status_code == 400
    r2 = client.post("/api/memories", json={**MEMORY, "title": "x" * 200}, headers=headers)
    assert r2.status_code == 400
    r3 = client.post("/api/memories", json={"title": "t", "content": "c"}, headers=headers)
    assert r3.status_code == 400

def test_memories_newest_event_first(client, auth):
    headers, _ = auth
    create_memory(client, headers, title="old", date="2020-01-01T00:00:00")
    create_memory(client, headers, title="new", date="2024-01-01T00:00:00")
    create_memory(client, headers, title="mid", date="2022-01-01T00:00:00")
    titles = [m["title"] for m in client.get("/api/memories", headers=headers).json()]
    assert titles == ["new", "mid", "old"]

def test_memory_ownership(client, auth, second_auth):
    headers, _ = auth
    other, _ = second_auth
    memory = create_memory(client, headers)
    private = create_memory(client, headers, is_private=True)

    assert client.get(f"/api/memories/{memory['id']}", headers=other).status_code == 200
    assert client.get(f"/api/memories/{private['id']}", headers=other).status_code == 403
    assert client.put(f"/api/memories/{memory['id']}", json={"title": "hax"}, headers=other).status_code == 403
    assert client.delete(f"/api/memories/{memory['id']}", headers=other).status_code == 403
    assert client.put("/api/memories/999", json={"title": "nope"}, headers=headers).status_code == 404
    assert client.delete("/api/memories/999", headers=headers).status_code == 404

def test_user_memories_hide_private_from_others(client, auth, second_auth):
    headers, alice_id = auth
    other, _ = second_auth
    create_memory(client, headers, title="public")
    create_memory(client, headers, title="secret", is_private=True)

    own = client.get(f"/api/memories/user/{alice_id}", headers=headers).json()
    assert {m["title"] for m in own} == {"public", "secret"}
    seen = client.get(f"/api/memories/user/{alice_id}", headers=other).json()
    assert [m["title"] for m in seen] == ["public"]

# ------- FRIENDS --------
def test_friend_request_flow(client, auth, second_auth):
    headers, alice_id = auth
    bob, bob_id = second_auth

    r = client.post(f"/api/friends/request/{bob_id}", headers=headers)
    assert r.status_code == 201
    request = r.json()
    assert request["status"] == "pending"
    assert request["user_id"] == alice_id

    notes = client.get("/api/notifications", headers=bob).json()
    assert len(notes) == 1
    assert notes[0]["type"] == "friend_request"
    assert notes[0]["related_id"] == request["id"]

    # Same pair, reverse direction
    assert client.post(f"/api/friends/request/{alice_id}", headers=bob).status_code == 409
    # Only the recipient may answer
    assert client.post(f"/api/friends/accept/{request['id']}", headers=headers).status_code == 403

    r2 = client.post(f"/api/friends/accept/{request['id']}", headers=bob)
    assert r2.status_code == 200
    assert r2.json()["status"] == "accepted"

    accepted = [n for n in client.get("/api/notifications", headers=headers).json() if n["type"] == "friend_accepted"]
    assert len(accepted) == 1
    assert client.post(f"/api/friends/accept/{request['id']}", headers=bob).status_code == 409

    friends = client.get("/api/friends", headers=bob).json()
    assert [f["id"] for f in friends] == [request["id"]]

    assert client.delete(f"/api/friends/{alice_id}", headers=bob).status_code == 204
    assert client.get("/api/friends", headers=headers).json() == []

def test_friend_request_errors(client, auth, second_auth):
    headers, alice_id = auth
    bob, _ = second_auth
    assert client.post(f"/api/friends/request/{alice_id}", headers=headers).status_code == 400
    assert client.post("/api/friends/request/999", headers=headers).status_code == 404
    assert client.post("/api/friends/accept/999", headers=bob).status_code == 404

def test_reject_friend_request(client, auth, second_auth):
    headers, _ = auth
    bob, bob_id = second_auth
    request = client.post(f"/api/friends/request/{bob_id}", headers=headers).json()
    assert client.post(f"/api/friends/reject/{request['id']}", headers=bob).status_code == 204
    friends = client.get("/api/friends", headers=headers).json()
    assert friends[0]["status"] == "rejected"
    assert [n["type"] for n in client.get("/api/notifications", headers=headers).json()] == []

def test_accessible_memories_visibility(client, auth, second_auth, third_auth):
    alice, _ = auth
    bob, _ = second_auth
    carol, _ = third_auth
    create_memory(client, alice, title="alice public")
    create_memory(client, alice, title="alice private", is_private=True)
    befriend(client, auth, second_auth)

    bob_view = [m["title"] for m in client.get("/api/memories", headers=bob).json()]
    assert bob_view == ["alice public"]
    assert client.get("/api/memories", headers=carol).json() == []

# ------- COMMENTS --------
def test_comments_and_notifications(client, auth, second_auth):
    alice, alice_id = auth
    bob, bob_id = second_auth
    memory = create_memory(client, alice)

    r = client.post(f"/api/memories/{memory['id']}/comments", json={"content": "Lovely"}, headers=bob)
    assert r.status_code == 201
    comment = r.json()
    assert comment["user_id"] == bob_id

    client.post(f"/api/memories/{memory['id']}/comments", json={"content": "Thanks"}, headers=alice)

    comments = client.get(f"/api/memories/{memory['id']}/comments", headers=alice).json()
    assert [c["content"] for c in comments] == ["Lovely", "Thanks"]

    notes = client.get("/api/notifications", headers=alice).json()
    assert [n["type"] for n in notes] == ["new_comment"]
    assert notes[0]["related_id"] == comment["id"]

    # Only the author deletes a comment
    assert client.delete(f"/api/comments/{comment['id']}", headers=alice).status_code == 403
    assert client.delete(f"/api/comments/{comment['id']}", headers=bob).status_code == 204
    assert client.delete(f"/api/comments/{comment['id']}", headers=bob).status_code == 404

def test_comment_on_private_memory_denied(client, auth, second_auth):
    alice, _ = auth
    bob, _ = second_auth
    memory = create_memory(client, alice, is_private=True)
    r = client.post(f"/api/memories/{memory['id']}/comments", json={"content": "peek"}, headers=bob)
    assert r.status_code == 403
    assert client.get(f"/api/memories/{memory['id']}/comments", headers=bob).status_code == 403

def test_delete_memory_removes_comments(client, auth, second_auth):
    alice, _ = auth
    bob, _ = second_auth
    memory = create_memory(client, alice)
    comment = client.post(f"/api/memories/{memory['id']}/comments", json={"content": "hi"}, headers=bob).json()

    assert client.delete(f"/api/memories/{memory['id']}", headers=alice).status_code == 204
    assert client.get(f"/api/memories/{memory['id']}/comments", headers=alice).status_code == 404
    assert client.delete(f"/api/comments/{comment['id']}", headers=bob).status_code == 404

# ------- NOTIFICATIONS --------
def test_mark_notification_read(client, auth, second_auth):
    alice, _ = auth
    bob, bob_id = second_auth
    client.post(f"/api/friends/request/{bob_id}", headers=alice)
    note = client.get("/api/notifications", headers=bob).json()[0]
    assert note["read"] is False

    assert client.put(f"/api/notifications/{note['id']}/read", headers=alice).status_code == 403
    r = client.put(f"/api/notifications/{note['id']}/read", headers=bob)
    assert r.status_code == 200
    assert r.json()["read"] is True
    assert client.put("/api/notifications/999/read", headers=bob).status_code == 404

# ------- GROUPS --------
def test_group_lifecycle(client, auth, second_auth, third_auth):
    alice, alice_id = auth
    bob, bob_id = second_auth
    carol, carol_id = third_auth

    r = client.post("/api/groups", json={"name": "Hikers", "description": "Trails"}, headers=alice)
    assert r.status_code == 201
    group = r.json()
    assert group["created_by"] == alice_id

    members = client.get(f"/api/groups/{group['id']}/members", headers=alice).json()
    assert [(m["user_id"], m["role"]) for m in members] == [(alice_id, "admin")]

    assert client.post(f"/api/groups/{group['id']}/join", headers=bob).status_code == 201
    assert client.post(f"/api/groups/{group['id']}/join", headers=bob).status_code == 409
    assert client.put(f"/api/groups/{group['id']}", json={"name": "Mine"}, headers=bob).status_code == 403

    r2 = client.put(f"/api/groups/{group['id']}", json={"name": "Hill Walkers"}, headers=alice)
    assert r2.status_code == 200
    assert r2.json()["name"] == "Hill Walkers"
    assert r2.json()["description"] == "Trails"

    my_groups = client.get("/api/users/groups", headers=bob).json()
    assert [g["id"] for g in my_groups] == [group["id"]]

    # Admin adds carol; she is notified
    assert client.post(f"/api/groups/{group['id']}/invite/{carol_id}", headers=bob).status_code == 403
    r3 = client.post(f"/api/groups/{group['id']}/invite/{carol_id}", headers=alice)
    assert r3.status_code == 201
    invites = client.get("/api/notifications", headers=carol).json()
    assert [(n["type"], n["related_id"]) for n in invites] == [("group_invite", group["id"])]

    r4 = client.put(f"/api/groups/{group['id']}/members/{carol_id}", json={"role": "admin"}, headers=alice)
    assert r4.status_code == 200
    assert r4.json()["role"] == "admin"

    assert client.delete(f"/api/groups/{group['id']}/members/{bob_id}", headers=carol).status_code == 204
    assert client.post(f"/api/groups/{group['id']}/leave", headers=bob).status_code == 400

    assert client.delete(f"/api/groups/{group['id']}", headers=alice).status_code == 204
    assert client.get(f"/api/groups/{group['id']}", headers=alice).status_code == 404
    assert client.get("/api/users/groups", headers=carol).json() == []

def test_group_memories_members_only(client, auth, second_auth, third_auth):
    alice, _ = auth
    bob, _ = second_auth
    carol, _ = third_auth
    group = client.post("/api/groups", json={"name": "Family"}, headers=alice).json()
    client.post(f"/api/groups/{group['id']}/join", headers=bob)
    create_memory(client, bob, title="bob public")
    create_memory(client, bob, title="bob private", is_private=True)
    create_memory(client, carol, title="carol public")

    r = client.get(f"/api/groups/{group['id']}/memories", headers=alice)
    assert r.status_code == 200
    assert [m["title"] for m in r.json()] == ["bob public"]

    assert client.get(f"/api/groups/{group['id']}/memories", headers=carol).status_code == 403
    assert client.get("/api/groups/999/memories", headers=alice).status_code == 404

    assert client.post(f"/api/groups/{group['id']}/leave", headers=bob).status_code == 204
    assert client.get(f"/api/groups/{group['id']}/memories", headers=alice).json() == []

def test_create_group_invalid(client, auth):
    headers, _ = auth
    assert client.post("/api/groups", json={"description": "no name"}, headers=headers).status_code == 400

# ------- UPLOADS --------
def test_upload_images(client, auth):
    headers, _ = auth
    files = [
        ("files", ("one.png", b"\x89PNG fake", "image/png")),
        ("files", ("two.JPG", b"jpeg bytes", "image/jpeg")),
    ]
    r = client.post("/api/upload", files=files, headers=headers)
    assert r.status_code == 200
    urls = r.json()["urls"]
    assert len(urls) == 2
    assert urls[0].endswith(".png")
    assert urls[1].endswith(".jpg")

    served = client.get(urls[0][urls[0].index("/uploads/"):])
    assert served.status_code == 200
    assert served.content == b"\x89PNG fake"

def test_upload_rejects_bad_files(client, auth):
    headers, _ = auth
    r = client.post("/api/upload", files=[("files", ("notes.txt", b"text", "text/plain"))], headers=headers)
    assert r.status_code == 400

    too_many = [("files", (f"{i}.png", b"x", "image/png")) for i in range(6)]
    assert client.post("/api/upload", files=too_many, headers=headers).status_code == 400

    big = b"x" * (5 * 1024 * 1024 + 1)
    r2 = client.post("/api/upload", files=[("files", ("big.png", big, "image/png"))], headers=headers)
    assert r2.status_code == 400

def test_upload_reads_at_most_one_byte_past_limit(client, auth, monkeypatch):
    headers, _ = auth
    monkeypatch.setattr(settings, "max_upload_bytes", 10)
    sizes = []
    original_read = StarletteUploadFile.read

    async def recording_read(self, size=-1):
        sizes.append(size)
        return await original_read(self, size)

    monkeypatch.setattr(StarletteUploadFile, "read", recording_read)

    exact = client.post("/api/upload", files=[("files", ("ok.png", b"x" * 10, "image/png"))], headers=headers)
    assert exact.status_code == 200
    over = client.post("/api/upload", files=[("files", ("big.png", b"x" * 1000, "image/png"))], headers=headers)
    assert over.status_code == 400
    assert sizes == [11, 11]

def test_upload_requires_auth(client):
    r = client.post("/api/upload", files=[("files", ("a.png", b"x", "image/png"))])
    assert r.status_code == 401

# ------- CALENDAR --------
def test_calendar_grid(client, auth):
    headers, _ = auth
    memory = create_memory(client, headers, date="2024-05-01T10:00:00")

    r = client.get("/api/calendar?day=2024-05-15", headers=headers)
    assert r.status_code == 200
    cells = r.json()
    assert len(cells) == 42
    assert cells[0]["date"] == "2024-04-28"
    assert cells[0]["in_month"] is False

    may_first = next(c for c in cells if c["date"] == "2024-05-01")
    assert may_first["in_month"] is True
    assert may_first["has_memory"] is True
    assert may_first["memory_ids"] == [memory["id"]]
    assert sum(c["in_month"] for c in cells) == 31

def test_calendar_uses_utc_clock(client, auth, monkeypatch):
    headers, _ = auth
    monkeypatch.setattr(
        "memorylane_backend.api.routers.calendar.utcnow", lambda: datetime(2024, 5, 15, 23, 30)
    )
    memory = create_memory(client, headers, date="2024-05-15T23:10:00+00:00")

    cells = client.get("/api/calendar", headers=headers).json()
    today = next(c for c in cells if c["label"] == "Today")
    assert today["date"] == "2024-05-15"
    assert today["memory_ids"] == [memory["id"]]
