"""
Tests for event listing, creation, permissions, RSVPs and favourites.
"""
from datetime import date, timedelta

from conftest import auth
from model import Event

FUTURE = (date.today() + timedelta(days=30)).isoformat()
PAST = (date.today() - timedelta(days=30)).isoformat()


def event_payload(group_id, **fields):
    payload = {
        "group_id": group_id,
        "title": "Holi Festival",
        "description": "Colors on the mall",
        "date": FUTURE,
        "time": "14:00",
        "location": "Northrop Mall",
        "category": "Cultural",
    }
    payload.update(fields)
    return payload


def create_event(client, token, group_id, **fields):
    resp = client.post("/api/events", headers=auth(token), json=event_payload(group_id, **fields))
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["event"]


def test_create_event_sets_defaults(client, make_user, make_group):
    _, token = make_user("asha")
    group = make_group(token, allowed_university="University of Minnesota")

    event = create_event(client, token, group["id"])
    assert event["attendees"] == 1
    assert event["category"] == ["Cultural"]
    assert event["organizer"] == group["name"]
    assert event["allowed_university"] == "University of Minnesota"
    assert event["is_rsvped"] is True

    group_after = client.get(f"/api/groups/{group['id']}", headers=auth(token)).get_json()
    assert group_after["upcoming_events"] == 1


def test_create_event_validation_and_permissions(client, make_user, make_group):
    _, owner_token = make_user("asha")
    _, outsider_token = make_user("diego")
    group = make_group(owner_token)

    payload = event_payload(group["id"])
    payload.pop("group_id")
    assert client.post("/api/events", headers=auth(owner_token), json=payload).status_code == 400

    payload = event_payload(group["id"])
    payload.pop("title")
    assert client.post("/api/events", headers=auth(owner_token), json=payload).status_code == 400

    assert client.post("/api/events", headers=auth(owner_token),
                       json=event_payload(999)).status_code == 404
    assert client.post("/api/events", headers=auth(outsider_token),
                       json=event_payload(group["id"])).status_code == 403
    assert client.post("/api/events", headers=auth(owner_token),
                       json=event_payload(group["id"], date="10/10/2030")).status_code == 400
    assert client.post("/api/events", json=event_payload(group["id"])).status_code == 401


def test_list_events_time_window_and_filters(client, make_user, make_group):
    _, token = make_user("asha")
    group = make_group(token)
    create_event(client, token, group["id"], title="Future Night", category=["Music", "Cultural"])
    create_event(client, token, group["id"], title="Old Night", date=PAST, location="Weisman")

    titles = [e["title"] for e in client.get("/api/events").get_json()["events"]]
    assert titles == ["Future Night"]

    titles = [e["title"] for e in client.get("/api/events?past=true").get_json()["events"]]
    assert titles == ["Old Night"]

    titles = [e["title"] for e in client.get(f"/api/events?date={PAST}").get_json()["events"]]
    assert titles == ["Old Night"]

    titles = [e["title"] for e in client.get("/api/events?category=Music").get_json()["events"]]
    assert titles == ["Future Night"]

    titles = [e["title"] for e in client.get("/api/events?upcoming=false&location=weis").get_json()["events"]]
    assert titles == ["Old Night"]

    assert client.get("/api/events?date=yesterday").status_code == 400


def test_list_events_non_ascii_category_and_literal_search(client, make_user, make_group):
    _, token = make_user("asha")
    group = make_group(token)
    create_event(client, token, group["id"], title="Café Night", category=["Café", "Música"])
    create_event(client, token, group["id"], title="Bake Sale", description="100% of proceeds to charity")
    create_event(client, token, group["id"], title="Game Night", description="Board games")

    titles = [e["title"] for e in client.get("/api/events", query_string={"category": "Café"}).get_json()["events"]]
    assert titles == ["Café Night"]
    titles = [e["title"] for e in client.get("/api/events", query_string={"category": "Música"}).get_json()["events"]]
    assert titles == ["Café Night"]

    titles = [e["title"] for e in client.get("/api/events", query_string={"search": "%"}).get_json()["events"]]
    assert titles == ["Bake Sale"]
    assert client.get("/api/events", query_string={"search": "_"}).get_json()["events"] == []


def test_list_events_flags_for_anonymous(client, make_user, make_group):
    _, token = make_user("asha")
    group = make_group(token)
    create_event(client, token, group["id"])

    event = client.get("/api/events").get_json()["events"][0]
    assert event["is_rsvped"] is False
    assert event["is_favorited"] is False


def test_get_event_detail(client, make_user, make_group):
    _, token = make_user("asha")
    group = make_group(token)
    event = create_event(client, token, group["id"])

    resp = client.get(f"/api/events/{event['id']}", headers=auth(token))
    assert resp.status_code == 200
    assert [a["username"] for a in resp.get_json()["attendee_list"]] == ["asha"]
    assert client.get("/api/events/999").status_code == 404


def test_update_and_delete_require_group_admin(client, make_user, make_group):
    _, owner_token = make_user("asha")
    _, member_token = make_user("diego")
    group = make_group(owner_token)
    client.post(f"/api/groups/{group['id']}/join", headers=auth(member_token))
    event = create_event(client, member_token, group["id"])

    resp = client.put(f"/api/events/{event['id']}", headers=auth(member_token), json={"title": "Nope"})
    assert resp.status_code == 403

    resp = client.put(f"/api/events/{event['id']}", headers=auth(owner_token),
                      json={"title": "Holi 2.0", "max_attendees": 50, "category": "Festival"})
    assert resp.status_code == 200
    updated = resp.get_json()["event"]
    assert updated["title"] == "Holi 2.0"
    assert updated["max_attendees"] == 50
    assert updated["category"] == ["Festival"]

    assert client.delete(f"/api/events/{event['id']}", headers=auth(member_token)).status_code == 403
    assert client.delete(f"/api/events/{event['id']}", headers=auth(owner_token)).status_code == 200

    group_after = client.get(f"/api/groups/{group['id']}", headers=auth(owner_token)).get_json()
    assert group_after["upcoming_events"] == 0


def test_rsvp_flow(client, make_user, make_group):
    _, owner_token = make_user("asha")
    diego, diego_token = make_user("diego")
    group = make_group(owner_token)
    event = create_event(client, owner_token, group["id"])

    resp = client.post(f"/api/events/{event['id']}/rsvp", headers=auth(diego_token))
    assert resp.status_code == 200
    assert resp.get_json()["attendees"] == 2
    assert client.post(f"/api/events/{event['id']}/rsvp", headers=auth(diego_token)).status_code == 400

    profile = client.get(f"/api/users/{diego['id']}").get_json()
    assert profile["events_attended"] == 1

    resp = client.delete(f"/api/events/{event['id']}/rsvp", headers=auth(diego_token))
    assert resp.status_code == 200
    assert resp.get_json()["attendees"] == 1
    assert client.delete(f"/api/events/{event['id']}/rsvp", headers=auth(diego_token)).status_code == 400

    profile = client.get(f"/api/users/{diego['id']}").get_json()
    assert profile["events_attended"] == 0


def test_rsvp_full_event(client, make_user, make_group):
    _, owner_token = make_user("asha")
    _, diego_token = make_user("diego")
    group = make_group(owner_token)
    event = create_event(client, owner_token, group["id"], max_attendees=1)

    assert client.post(f"/api/events/{event['id']}/rsvp", headers=auth(diego_token)).status_code == 400


def test_rsvp_capacity_uses_stored_count(client, db, make_user, make_group):
    _, owner_token = make_user("asha")
    diego, diego_token = make_user("diego")
    _, mei_token = make_user("mei")
    group = make_group(owner_token)
    event = create_event(client, owner_token, group["id"], max_attendees=3)

    assert client.post(f"/api/events/{event['id']}/rsvp", headers=auth(diego_token)).status_code == 200

    # Another writer takes the last seat behind this session's back
    Event.query.filter_by(id=event["id"]).update({Event.attendees: 3})
    db.session.commit()

    resp = client.post(f"/api/events/{event['id']}/rsvp", headers=auth(mei_token))
    assert resp.status_code == 400
    assert resp.get_json() == {"message": "Event has reached maximum attendees"}

    detail = client.get(f"/api/events/{event['id']}").get_json()
    assert detail["attendees"] == 3
    assert sorted(a["username"] for a in detail["attendee_list"]) == ["asha", "diego"]

    profile = client.get(f"/api/users/{diego['id']}").get_json()
    assert profile["events_attended"] == 1


def test_rsvp_university_only(client, make_user, make_group):
    _, owner_token = make_user("asha")
    _, outsider_token = make_user("diego", university="Stanford University")
    _, classmate_token = make_user("mei")
    group = make_group(owner_token)
    event = create_event(client, owner_token, group["id"], university_only=True,
                         allowed_university="University of Minnesota")

    assert client.post(f"/api/events/{event['id']}/rsvp", headers=auth(outsider_token)).status_code == 403
    assert client.post(f"/api/events/{event['id']}/rsvp", headers=auth(classmate_token)).status_code == 200


def test_favorite_toggle(client, make_user, make_group):
    _, token = make_user("asha")
    group = make_group(token)
    event = create_event(client, token, group["id"])
    url = f"/api/events/{event['id']}/favorite"

    resp = client.post(url, headers=auth(token), json={"favorite": True})
    assert resp.get_json() == {"message": "Event added to favorites", "is_favorited": True}

    resp = client.post(url, headers=auth(token), json={"favorite": True})
    assert resp.get_json() == {"message": "No change", "is_favorited": True}

    resp = client.post(url, headers=auth(token), json={"favorite": False})
    assert resp.get_json()["is_favorited"] is False

    assert client.post(url, headers=auth(token), json={}).status_code == 400
