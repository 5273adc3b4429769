"""
Tests for activities, preferences, buddy matching and activity requests.
"""
import pytest

from conftest import auth
from seed import seed_activities
from model import Activity


@pytest.fixture
def activities(app):
    seed_activities()
    return {a.name: a.id for a in Activity.query.all()}


def availability(day, *slots):
    return {"day": day, "time_slots": [{"start_time": s, "end_time": e} for s, e in slots]}


def set_preference(client, token, activity_id, **fields):
    return client.post(f"/api/activities/preference/{activity_id}", headers=auth(token), json=fields)


def test_list_and_filter_activities(client, activities):
    body = client.get("/api/activities").get_json()
    names = [a["name"] for a in body["activities"]]
    assert names == sorted(names)
    assert len(names) == 12

    names = [a["name"] for a in client.get("/api/activities?category=cultural").get_json()["activities"]]
    assert names == ["Cultural Cooking", "Language Exchange"]

    outdoor_only = client.get("/api/activities?indoor=false").get_json()["activities"]
    assert all(a["outdoor"] and not a["indoor"] for a in outdoor_only)

    assert client.get("/api/activities?category=extreme").status_code == 400
    assert client.get(f"/api/activities/{activities['Yoga']}").get_json()["icon"] == "🧘"
    assert client.get("/api/activities/999").status_code == 404


def test_seed_is_idempotent(app, activities):
    assert seed_activities() == 0


def test_create_update_and_delete_preference(client, make_user, activities):
    _, token = make_user("asha")
    tennis = activities["Tennis"]

    resp = set_preference(client, token, tennis, skill_level="intermediate",
                          availability=[availability("monday", ("18:00", "20:00"))])
    assert resp.status_code == 201
    preference = resp.get_json()["preference"]
    assert preference["skill_level"] == "intermediate"
    assert preference["equipment"] == "not_needed"
    assert preference["location_radius"] == 10
    assert preference["availability"][0]["time_slots"] == [{"start_time": "18:00", "end_time": "20:00"}]

    # Availability is replaced wholesale on update
    resp = client.put(f"/api/activities/preference/{tennis}", headers=auth(token),
                      json={"availability": [availability("saturday", ("10:00", "12:00"))]})
    assert resp.status_code == 200
    days = [a["day"] for a in resp.get_json()["preference"]["availability"]]
    assert days == ["saturday"]

    prefs = client.get("/api/activities/user/preferences", headers=auth(token)).get_json()["preferences"]
    assert [p["activity"]["name"] for p in prefs] == ["Tennis"]

    assert client.delete(f"/api/activities/preference/{tennis}", headers=auth(token)).status_code == 200
    assert client.delete(f"/api/activities/preference/{tennis}", headers=auth(token)).status_code == 404


def test_preference_validation(client, make_user, activities):
    _, token = make_user("asha")
    yoga = activities["Yoga"]

    assert set_preference(client, token, 999).status_code == 404
    assert set_preference(client, token, yoga, equipment="borrowed").status_code == 400
    assert set_preference(client, token, yoga, location_radius=-1).status_code == 400
    assert set_preference(client, token, yoga,
                          availability=[availability("someday", ("10:00", "11:00"))]).status_code == 400
    assert set_preference(client, token, yoga,
                          availability=[availability("monday", ("10:00", "9:00"))]).status_code == 400
    assert set_preference(client, token, yoga,
                          availability=[availability("monday", ("12:00", "11:00"))]).status_code == 400
    assert set_preference(client, token, yoga,
                          availability=[{"day": "monday", "time_slots": ["18:00-20:00"]}]).status_code == 400
    assert set_preference(client, token, yoga, availability=["monday"]).status_code == 400

    prefs = client.get("/api/activities/user/preferences", headers=auth(token)).get_json()["preferences"]
    assert prefs == []


def test_buddy_matching(client, make_user, activities):
    _, asha_token = make_user("asha")
    diego, diego_token = make_user("diego")
    mei, mei_token = make_user("mei")
    _, kai_token = make_user("kai")
    _, closed_token = make_user("lena")
    tennis = activities["Tennis"]

    set_preference(client, asha_token, tennis, equipment="have", transportation="have_car",
                   availability=[availability("monday", ("18:00", "20:00"))])
    set_preference(client, diego_token, tennis, equipment="need", transportation="need_ride",
                   availability=[availability("monday", ("19:00", "21:00"))])
    set_preference(client, mei_token, tennis, equipment="have", transportation="have_car", skill_level="advanced",
                   availability=[availability("monday", ("18:00", "20:00"))])
    set_preference(client, kai_token, tennis, availability=[availability("tuesday", ("18:00", "20:00"))])
    set_preference(client, closed_token, tennis, is_open=False,
                   availability=[availability("monday", ("18:00", "20:00"))])

    resp = client.get(f"/api/activities/buddies/{tennis}", headers=auth(asha_token))
    assert resp.status_code == 200
    buddies = resp.get_json()["buddies"]
    assert [b["user"]["id"] for b in buddies] == [diego["id"], mei["id"]]
    assert [b["match_score"] for b in buddies] == [55, 34]
    assert buddies[0]["common_availability"] == [
        {"day": "monday", "time_slots": [{"start_time": "19:00", "end_time": "20:00"}]}
    ]


def test_buddy_matching_requires_open_preference(client, make_user, activities):
    _, token = make_user("asha")
    soccer = activities["Soccer"]

    assert client.get(f"/api/activities/buddies/{soccer}", headers=auth(token)).status_code == 400
    set_preference(client, token, soccer, is_open=False)
    assert client.get(f"/api/activities/buddies/{soccer}", headers=auth(token)).status_code == 400
    assert client.get("/api/activities/buddies/999", headers=auth(token)).status_code == 404


def send_request(client, token, user_id, activity_id, **fields):
    payload = {"message": "Want to play Monday?"}
    payload.update(fields)
    return client.post(f"/api/activities/request/{user_id}/{activity_id}", headers=auth(token), json=payload)


def test_request_validation(client, make_user, activities):
    asha, token = make_user("asha")
    diego, _ = make_user("diego")
    tennis = activities["Tennis"]

    assert send_request(client, token, asha["id"], tennis).status_code == 400
    assert send_request(client, token, 999, tennis).status_code == 404
    assert send_request(client, token, diego["id"], 999).status_code == 404
    assert send_request(client, token, diego["id"], tennis, message=" ").status_code == 400
    assert send_request(client, token, diego["id"], tennis, proposed_date_time="soon").status_code == 400


def test_accept_request_creates_match(client, make_user, activities):
    asha, asha_token = make_user("asha")
    diego, diego_token = make_user("diego")
    tennis = activities["Tennis"]
    set_preference(client, asha_token, tennis, availability=[availability("monday", ("18:00", "20:00"))])
    set_preference(client, diego_token, tennis, availability=[availability("monday", ("19:00", "21:00"))])

    resp = send_request(client, asha_token, diego["id"], tennis, proposed_date_time="2030-05-06T19:00:00Z")
    assert resp.status_code == 201
    request_id = resp.get_json()["request"]["id"]
    assert resp.get_json()["request"]["status"] == "pending"

    received = client.get("/api/activities/requests/received", headers=auth(diego_token)).get_json()["requests"]
    assert [r["id"] for r in received] == [request_id]
    sent = client.get("/api/activities/requests/sent", headers=auth(asha_token)).get_json()["requests"]
    assert [r["id"] for r in sent] == [request_id]

    notes = client.get("/api/notifications", headers=auth(diego_token)).get_json()["notifications"]
    assert notes[0]["type"] == "activity_request"
    assert notes[0]["related_id"] == request_id

    url = f"/api/activities/request/{request_id}/respond"
    # Only the recipient accepts; only the requester cancels
    assert client.put(url, headers=auth(asha_token), json={"status": "accepted"}).status_code == 403
    assert client.put(url, headers=auth(diego_token), json={"status": "cancelled"}).status_code == 403
    assert client.put(url, headers=auth(diego_token), json={"status": "maybe"}).status_code == 400

    resp = client.put(url, headers=auth(diego_token), json={"status": "accepted"})
    assert resp.status_code == 200
    match = resp.get_json()["match"]
    assert match["match_score"] == 100
    assert match["common_time_slots"] == [{"day": "monday", "start_time": "19:00", "end_time": "20:00"}]

    assert client.put(url, headers=auth(diego_token), json={"status": "declined"}).status_code == 400

    matches = client.get("/api/activities/matches", headers=auth(asha_token)).get_json()["matches"]
    assert [m["user2"]["id"] for m in matches] == [diego["id"]]
    assert matches[0]["user1"]["id"] == asha["id"]

    notes = client.get("/api/notifications", headers=auth(asha_token)).get_json()["notifications"]
    assert notes[0]["type"] == "activity_request_response"


def test_decline_and_cancel(client, make_user, activities):
    _, asha_token = make_user("asha")
    diego, diego_token = make_user("diego")
    yoga = activities["Yoga"]

    first = send_request(client, asha_token, diego["id"], yoga).get_json()["request"]["id"]
    second = send_request(client, asha_token, diego["id"], yoga).get_json()["request"]["id"]
    _, outsider_token = make_user("mei")

    url = f"/api/activities/request/{first}/respond"
    assert client.put(url, headers=auth(outsider_token), json={"status": "declined"}).status_code == 403
    resp = client.put(url, headers=auth(diego_token), json={"status": "declined"})
    assert resp.status_code == 200
    assert "match" not in resp.get_json()

    resp = client.put(f"/api/activities/request/{second}/respond", headers=auth(asha_token),
                      json={"status": "cancelled"})
    assert resp.get_json()["request"]["status"] == "cancelled"

    assert client.get("/api/activities/matches", headers=auth(asha_token)).get_json()["matches"] == []
