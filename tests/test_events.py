from datetime import datetime, timedelta

from conftest import auth_headers
from gestionale.Models import Event, EventReport, Participant
from gestionale.routes.events import recurrence_dates


def _event_body(**overrides):
    body = {
        "title": "Riunione settimanale",
        "startTime": "2026-11-02T10:00:00Z",
        "endTime": "2026-11-02T11:00:00Z",
    }
    body.update(overrides)
    return body


def _create(client, user, **overrides):
    return client.post("/api/events", headers=auth_headers(user), json=_event_body(**overrides))


def test_create_simple_event(client, socio):
    response = _create(client, socio)
    assert response.status_code == 201
    event = response.json()
    assert event["eventType"] == "generic"
    assert event["isCall"] is False
    assert event["creatorName"] == socio.name
    assert event["participants"] == []
    assert event["version"] == 1


def test_end_must_follow_start(client, socio):
    response = _create(client, socio, endTime="2026-11-02T09:00:00Z")
    assert response.status_code == 400


def test_missing_fields(client, socio):
    response = client.post("/api/events", headers=auth_headers(socio), json={"title": "Senza orari"})
    assert response.status_code == 400


def test_call_flag_sets_type(client, socio):
    event = _create(client, socio, isCall=True, callLink="https://meet.example.com/x").json()
    assert event["eventType"] == "call"
    assert event["isCall"] is True


def test_invitation_rules_create_pending_participants(client, socio, make_user):
    it_one = make_user(name="Ivo Uno", area="IT")
    make_user(name="Ivo Spento", area="IT", is_active=False)

    event = _create(client, socio, invitationRules={"groups": ["it"]}).json()
    assert [(p["userId"], p["status"]) for p in event["participants"]] == [(it_one.user_id, "pending")]


def test_legacy_participant_ids(client, socio, make_user):
    guest = make_user(name="Ospite")
    event = _create(client, socio, participantIds=[guest.user_id, guest.user_id]).json()
    assert [p["userId"] for p in event["participants"]] == [guest.user_id]


def test_weekly_recurrence_creates_one_event_per_week(client, db, socio, make_user):
    guest = make_user(name="Ospite")
    response = _create(
        client,
        socio,
        recurrenceType="weekly",
        recurrenceEndDate="2026-11-23T10:00:00Z",
        participantIds=[guest.user_id],
    )
    assert response.status_code == 201
    body = response.json()
    starts = [e["startTime"] for e in body["events"]]
    assert starts == [
        "2026-11-02T10:00:00",
        "2026-11-09T10:00:00",
        "2026-11-16T10:00:00",
        "2026-11-23T10:00:00",
    ]
    assert db.query(Participant).count() == 4


def test_monthly_recurrence_keeps_month_end():
    start = datetime(2026, 1, 31, 9)
    dates = recurrence_dates(start, start + timedelta(hours=1), "monthly", datetime(2026, 4, 30, 23))
    assert [s.date().isoformat() for s, _ in dates] == ["2026-01-31", "2026-02-28", "2026-03-31", "2026-04-30"]
    assert all(e - s == timedelta(hours=1) for s, e in dates)


def test_training_extras_go_into_description(client, socio):
    event = _create(
        client, socio, eventType="formazione", description="Corso Python", trainerName="Guido", level="Base"
    ).json()
    assert event["description"] == "Corso Python\n\nRelatore: Guido\nLivello: Base"


def test_networking_extras_go_into_description(client, socio):
    event = _create(client, socio, eventType="networking", location="Milano", externalLink="https://example.com").json()
    assert event["description"] == "Location: Milano\nLink: https://example.com"


def test_department_call_for_other_area_is_restricted(client, socio, make_user):
    denied = _create(client, socio, eventSubtype="call_reparto", area="IT")
    assert denied.status_code == 403

    own_area = _create(client, socio, eventSubtype="call_reparto", area="Commerciale")
    assert own_area.status_code == 201

    presidente = make_user(name="Pia Presidente", role="Presidente", area="Commerciale")
    assert _create(client, presidente, eventSubtype="call_reparto", area="IT").status_code == 201


def test_update_is_owner_only_and_versioned(client, socio, manager, admin):
    event = _create(client, socio).json()
    url = f"/api/events/{event['id']}"

    assert client.put(url, headers=auth_headers(manager), json={"title": "X"}).status_code == 403

    ok = client.put(url, headers=auth_headers(socio), json={"title": "Nuovo titolo", "expectedVersion": 1})
    assert ok.status_code == 200
    assert ok.json()["title"] == "Nuovo titolo"
    assert ok.json()["version"] == 2

    stale = client.put(url, headers=auth_headers(admin), json={"title": "Altro", "expectedVersion": 1})
    assert stale.status_code == 409
    assert stale.json()["serverData"]["title"] == "Nuovo titolo"


def test_update_checks_merged_times(client, socio):
    event = _create(client, socio).json()
    response = client.put(
        f"/api/events/{event['id']}", headers=auth_headers(socio), json={"endTime": "2026-11-02T09:00:00Z"}
    )
    assert response.status_code == 400


def test_delete_removes_participants_and_reports(client, db, socio, manager, make_user):
    guest = make_user(name="Ospite")
    event = _create(client, socio, participantIds=[guest.user_id]).json()
    client.post(f"/api/events/{event['id']}/reports", headers=auth_headers(manager), json={"reportContent": "Verbale"})

    assert client.delete(f"/api/events/{event['id']}", headers=auth_headers(manager)).status_code == 403
    assert client.delete(f"/api/events/{event['id']}", headers=auth_headers(socio)).status_code == 200
    assert db.query(Event).count() == 0
    assert db.query(Participant).count() == 0
    assert db.query(EventReport).count() == 0


def test_rsvp_updates_or_creates(client, socio, make_user):
    guest = make_user(name="Ospite")
    event = _create(client, socio, participantIds=[guest.user_id]).json()
    url = f"/api/events/{event['id']}/rsvp"

    updated = client.post(url, headers=auth_headers(guest), json={"status": "accepted"})
    assert updated.status_code == 200
    assert updated.json()["participant"]["status"] == "accepted"

    walk_in = make_user(name="Imbucato")
    created = client.post(url, headers=auth_headers(walk_in), json={"status": "declined"})
    assert created.status_code == 201

    assert client.post(url, headers=auth_headers(guest), json={"status": "maybe"}).status_code == 400
    assert client.post("/api/events/999/rsvp", headers=auth_headers(guest), json={"status": "accepted"}).status_code == 404


def test_filters_and_my_upcoming(client, socio, make_user):
    guest = make_user(name="Ospite")
    future = datetime.utcnow() + timedelta(days=3)
    past = datetime.utcnow() - timedelta(days=3)
    _create(
        client,
        socio,
        title="Futuro",
        isCall=True,
        startTime=future.isoformat(),
        endTime=(future + timedelta(hours=1)).isoformat(),
        participantIds=[guest.user_id],
    )
    _create(
        client,
        socio,
        title="Passato",
        startTime=past.isoformat(),
        endTime=(past + timedelta(hours=1)).isoformat(),
        participantIds=[guest.user_id],
    )

    calls = client.get("/api/events", headers=auth_headers(socio), params={"isCall": "true"}).json()
    assert [e["title"] for e in calls] == ["Futuro"]

    upcoming = client.get("/api/events/my/upcoming", headers=auth_headers(guest)).json()
    assert [(e["title"], e["myStatus"]) for e in upcoming] == [("Futuro", "pending")]


def test_reports(client, socio, manager, admin, make_user):
    event = _create(client, socio).json()
    url = f"/api/events/{event['id']}/reports"

    outsider = make_user(name="Estraneo")
    assert client.post(url, headers=auth_headers(outsider), json={"reportContent": "x"}).status_code == 403
    assert client.post(url, headers=auth_headers(manager), json={"reportContent": "   "}).status_code == 400

    by_creator = client.post(url, headers=auth_headers(socio), json={"reportContent": "Verbale del creatore"})
    assert by_creator.status_code == 201
    report = by_creator.json()
    assert report["creatorName"] == socio.name

    assert client.put(
        f"{url}/{report['id']}", headers=auth_headers(manager), json={"reportContent": "Modifica"}
    ).status_code == 403
    edited = client.put(f"{url}/{report['id']}", headers=auth_headers(admin), json={"reportContent": "Modifica"})
    assert edited.status_code == 200
    assert edited.json()["reportContent"] == "Modifica"

    assert len(client.get(url, headers=auth_headers(outsider)).json()) == 1
    assert client.delete(f"{url}/{report['id']}", headers=auth_headers(socio)).status_code == 200
    assert client.get(url, headers=auth_headers(socio)).json() == []
    assert client.get("/api/events/999/reports", headers=auth_headers(socio)).status_code == 404


def test_date_filters_convert_offsets_to_utc(client, socio):
    _create(client, socio, startTime="2026-02-01T09:00:00Z", endTime="2026-02-01T10:00:00Z")

    # 10:30+02:00 is 08:30 UTC, before the event starts
    with_offset = client.get(
        "/api/events", headers=auth_headers(socio), params={"startDate": "2026-02-01T10:30:00+02:00"}
    )
    assert with_offset.status_code == 200
    assert len(with_offset.json()) == 1

    same_in_utc = client.get("/api/events", headers=auth_headers(socio), params={"startDate": "2026-02-01T08:30:00Z"})
    assert len(same_in_utc.json()) == 1

    # 10:30+01:00 is 09:30 UTC, before the event ends
    too_early = client.get("/api/events", headers=auth_headers(socio), params={"endDate": "2026-02-01T10:30:00+01:00"})
    assert too_early.json() == []


def test_recurrence_is_capped(client, db, socio):
    response = _create(client, socio, recurrenceType="weekly", recurrenceEndDate="2046-11-02T10:00:00Z")
    assert response.status_code == 400
    assert db.query(Event).count() == 0
