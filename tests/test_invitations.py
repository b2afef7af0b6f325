from datetime import datetime

from gestionale.invitations import add_participants, expand_invites
from gestionale.Models import Event, Participant


def test_group_expansion_returns_active_members_only(db, make_user):
    it_one = make_user(name="Ivo Uno", area="IT")
    it_two = make_user(name="Ivo Due", area="IT")
    make_user(name="Ivo Spento", area="IT", is_active=False)
    make_user(name="Mara Marketing", area="Marketing")

    assert set(expand_invites(db, {"groups": ["it"]})) == {it_one.user_id, it_two.user_id}


def test_group_names_are_case_insensitive(db, make_user):
    cda = make_user(name="Carla Cda", role="CDA")
    assert expand_invites(db, {"groups": ["CDA"]}) == [cda.user_id]


def test_manager_group_spans_management_roles(db, make_user):
    ids = {
        make_user(name="A", role="Manager").user_id,
        make_user(name="B", role="Presidente").user_id,
        make_user(name="C", role="Tesoreria").user_id,
    }
    make_user(name="D", role="Socio")
    assert set(expand_invites(db, {"groups": ["manager"]})) == ids


def test_unknown_group_contributes_nothing(db, make_user):
    make_user(name="Ivo Uno", area="IT")
    assert expand_invites(db, {"groups": ["astronauts"]}) == []


def test_individuals_are_filtered_to_active_users(db, make_user):
    active = make_user(name="Attivo")
    inactive = make_user(name="Inattivo", is_active=False)
    assert expand_invites(db, {"individuals": [active.user_id, inactive.user_id, 999]}) == [active.user_id]


def test_union_of_paths_without_duplicates(db, make_user):
    it_user = make_user(name="Ivo", area="IT", role="Socio")
    other = make_user(name="Olga", area="Commerciale")

    result = expand_invites(
        db, {"groups": ["it", "socio"], "individuals": [it_user.user_id], "area": "Commerciale"}
    )
    assert sorted(result) == sorted({it_user.user_id, other.user_id})
    assert len(result) == len(set(result))


def test_empty_rules(db):
    assert expand_invites(db, None) == []
    assert expand_invites(db, {}) == []


def test_add_participants_deduplicates(db, make_user):
    user = make_user(name="Ugo")
    event = Event(title="Call", start_time=datetime(2026, 5, 1, 9), end_time=datetime(2026, 5, 1, 10), creator_id=user.user_id)
    db.add(event)
    db.flush()

    assert add_participants(db, event.event_id, [user.user_id, user.user_id]) == 1
    db.commit()
    rows = db.query(Participant).filter(Participant.event_id == event.event_id).all()
    assert [(p.user_id, p.status) for p in rows] == [(user.user_id, "pending")]
