"""
Tests for groups: creation, membership, join requests and admin management.
"""
from conftest import auth


def test_create_group_makes_creator_president_member_and_admin(client, make_user, make_group):
    asha, token = make_user("asha")
    group = make_group(token, meetings=[{"date": "Fridays", "time": "18:00", "location": "Coffman"}],
                       meeting_days=["friday"])

    assert group["president"]["id"] == asha["id"]
    assert [m["id"] for m in group["members"]] == [asha["id"]]
    assert [a["id"] for a in group["admins"]] == [asha["id"]]
    assert group["meetings"][0]["location"] == "Coffman"
    assert group["meeting_days"] == ["friday"]


def test_create_group_validation(client, make_user):
    _, token = make_user("asha")
    resp = client.post("/api/groups", headers=auth(token), json={"name": "No description"})
    assert resp.status_code == 400


def test_list_groups_with_filters(client, make_user, make_group):
    _, token = make_user("asha")
    make_group(token, name="Nepali Student Association", category="Cultural")
    make_group(token, name="Chess Club", category="Hobby", description="Weekly blitz")

    body = client.get("/api/groups").get_json()
    assert body["total"] == 2
    assert all(g["member_count"] == 1 for g in body["groups"])

    names = [g["name"] for g in client.get("/api/groups?category=hobby").get_json()["groups"]]
    assert names == ["Chess Club"]

    names = [g["name"] for g in client.get("/api/groups?search=blitz").get_json()["groups"]]
    assert names == ["Chess Club"]


def test_get_group_detail_flags(client, make_user, make_group):
    _, owner_token = make_user("asha")
    _, other_token = make_user("diego")
    group = make_group(owner_token)

    mine = client.get(f"/api/groups/{group['id']}", headers=auth(owner_token)).get_json()
    assert mine["is_member"] and mine["is_admin"] and mine["is_president"]

    theirs = client.get(f"/api/groups/{group['id']}", headers=auth(other_token)).get_json()
    assert not theirs["is_member"] and not theirs["is_admin"] and not theirs["has_pending_request"]

    assert client.get("/api/groups/999", headers=auth(owner_token)).status_code == 404


def test_join_public_group_and_leave(client, make_user, make_group):
    _, owner_token = make_user("asha")
    _, diego_token = make_user("diego")
    group = make_group(owner_token)

    resp = client.post(f"/api/groups/{group['id']}/join", headers=auth(diego_token))
    assert resp.status_code == 201
    assert resp.get_json()["joined"] is True
    assert client.post(f"/api/groups/{group['id']}/join", headers=auth(diego_token)).status_code == 400

    assert client.post(f"/api/groups/{group['id']}/leave", headers=auth(diego_token)).status_code == 200
    assert client.post(f"/api/groups/{group['id']}/leave", headers=auth(diego_token)).status_code == 400
    assert client.post(f"/api/groups/{group['id']}/leave", headers=auth(owner_token)).status_code == 400


def test_join_university_only_group(client, make_user, make_group):
    _, owner_token = make_user("asha")
    _, outsider_token = make_user("diego", university="Stanford University")
    group = make_group(owner_token, university_only=True, allowed_university="University of Minnesota")

    assert client.post(f"/api/groups/{group['id']}/join", headers=auth(outsider_token)).status_code == 403


def test_private_group_request_approval(client, make_user, make_group):
    _, owner_token = make_user("asha")
    diego, diego_token = make_user("diego")
    group = make_group(owner_token, is_public=False)

    resp = client.post(f"/api/groups/{group['id']}/join", headers=auth(diego_token), json={"message": "Hi!"})
    assert resp.status_code == 201
    assert resp.get_json()["joined"] is False
    request_id = resp.get_json()["request"]["id"]

    assert client.post(f"/api/groups/{group['id']}/join", headers=auth(diego_token)).status_code == 400

    notes = client.get("/api/notifications", headers=auth(owner_token)).get_json()["notifications"]
    assert notes[0]["type"] == "group_request"

    # Only admins see or answer requests
    assert client.get(f"/api/groups/{group['id']}/requests", headers=auth(diego_token)).status_code == 403
    pending = client.get(f"/api/groups/{group['id']}/requests", headers=auth(owner_token)).get_json()["requests"]
    assert [r["id"] for r in pending] == [request_id]

    url = f"/api/groups/requests/{request_id}"
    assert client.put(url, headers=auth(diego_token), json={"status": "approved"}).status_code == 403
    assert client.put(url, headers=auth(owner_token), json={"status": "maybe"}).status_code == 400
    assert client.put(url, headers=auth(owner_token), json={"status": "approved"}).status_code == 200
    assert client.put(url, headers=auth(owner_token), json={"status": "rejected"}).status_code == 400

    detail = client.get(f"/api/groups/{group['id']}", headers=auth(diego_token)).get_json()
    assert detail["is_member"] is True

    notes = client.get("/api/notifications", headers=auth(diego_token)).get_json()["notifications"]
    assert notes[0]["type"] == "group_request_response"


def test_admin_management(client, make_user, make_group):
    _, owner_token = make_user("asha")
    diego, diego_token = make_user("diego")
    mei, _ = make_user("mei")
    asha_id = client.get("/api/auth/me", headers=auth(owner_token)).get_json()["id"]
    group = make_group(owner_token)
    client.post(f"/api/groups/{group['id']}/join", headers=auth(diego_token))

    base = f"/api/groups/{group['id']}/admins"
    assert client.post(f"{base}/{mei['id']}", headers=auth(owner_token)).status_code == 400
    assert client.post(f"{base}/{diego['id']}", headers=auth(owner_token)).status_code == 200
    assert client.post(f"{base}/{diego['id']}", headers=auth(owner_token)).status_code == 400

    notes = client.get("/api/notifications", headers=auth(diego_token)).get_json()["notifications"]
    assert notes[0]["type"] == "group_admin_added"

    # Admins can update but not delete the group or remove admins
    resp = client.put(f"/api/groups/{group['id']}", headers=auth(diego_token), json={"location": "Coffman"})
    assert resp.status_code == 200
    assert client.delete(f"{base}/{asha_id}", headers=auth(diego_token)).status_code == 403
    assert client.delete(f"/api/groups/{group['id']}", headers=auth(diego_token)).status_code == 403

    assert client.delete(f"{base}/{asha_id}", headers=auth(owner_token)).status_code == 400
    assert client.delete(f"{base}/{diego['id']}", headers=auth(owner_token)).status_code == 200
    assert client.delete(f"{base}/{diego['id']}", headers=auth(owner_token)).status_code == 400


def test_update_requires_admin_and_delete_requires_president(client, make_user, make_group):
    _, owner_token = make_user("asha")
    _, member_token = make_user("diego")
    group = make_group(owner_token)
    client.post(f"/api/groups/{group['id']}/join", headers=auth(member_token))

    assert client.put(f"/api/groups/{group['id']}", headers=auth(member_token),
                      json={"name": "Taken over"}).status_code == 403
    assert client.delete(f"/api/groups/{group['id']}", headers=auth(owner_token)).status_code == 200
    assert client.get(f"/api/groups/{group['id']}", headers=auth(owner_token)).status_code == 404


def test_rejected_update_leaves_group_untouched(client, make_user, make_group):
    _, token = make_user("asha")
    group = make_group(token)
    url = f"/api/groups/{group['id']}"

    assert client.put(url, headers=auth(token), json={"location": "Coffman", "name": ""}).status_code == 400
    assert client.put(url, headers=auth(token), json={"name": "Renamed", "meetings": "weekly"}).status_code == 400

    # A later good update must not carry the rejected changes along
    resp = client.put(url, headers=auth(token), json={"description": "Momo nights"})
    assert resp.status_code == 200
    updated = resp.get_json()["group"]
    assert updated["description"] == "Momo nights"
    assert updated["location"] is None
    assert updated["name"] == group["name"]


def test_my_groups_media_and_events(client, make_user, make_group):
    _, token = make_user("asha")
    group = make_group(token)

    mine = client.get("/api/groups/mine", headers=auth(token)).get_json()["groups"]
    assert mine[0]["is_president"] is True

    resp = client.post(f"/api/groups/{group['id']}/media", headers=auth(token),
                       json={"url": "https://img.example/1.jpg", "caption": "Dashain"})
    assert resp.status_code == 201
    resp = client.post(f"/api/groups/{group['id']}/social-media", headers=auth(token),
                       json={"platform": "instagram", "link": "https://instagram.com/nsa"})
    assert resp.status_code == 201
    assert client.post(f"/api/groups/{group['id']}/social-media", headers=auth(token),
                       json={"platform": "instagram"}).status_code == 400

    detail = client.get(f"/api/groups/{group['id']}", headers=auth(token)).get_json()
    assert detail["media"][0]["caption"] == "Dashain"
    assert detail["social_media"][0]["platform"] == "instagram"

    assert client.get(f"/api/groups/{group['id']}/events").get_json()["events"] == []
