from conftest import auth_headers


def _create(client, user, **overrides):
    body = {"name": "Giulia Verdi", "email": "giulia@example.com", "areaCompetenza": "Marketing"}
    body.update(overrides)
    return client.post("/api/candidates", headers=auth_headers(user), json=body)


def test_create_candidate(client, manager):
    response = _create(client, manager)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "In attesa"
    assert body["createdByName"] == manager.name


def test_plain_members_cannot_see_candidates(client, socio):
    assert client.get("/api/candidates", headers=auth_headers(socio)).status_code == 403
    assert _create(client, socio).status_code == 403


def test_duplicate_email_rejected(client, manager):
    _create(client, manager)
    assert _create(client, manager, name="Altra").status_code == 400


def test_manager_sees_only_own_area(client, admin, manager):
    _create(client, admin, email="a@example.com", areaCompetenza="Marketing")
    _create(client, admin, email="b@example.com", areaCompetenza="IT")

    mine = client.get("/api/candidates", headers=auth_headers(manager)).json()
    assert [c["email"] for c in mine] == ["a@example.com"]
    assert len(client.get("/api/candidates", headers=auth_headers(admin)).json()) == 2


def test_update_keeps_email_unique(client, manager):
    first = _create(client, manager, email="a@example.com").json()
    _create(client, manager, email="b@example.com")

    clash = client.put(f"/api/candidates/{first['id']}", headers=auth_headers(manager), json={"email": "b@example.com"})
    assert clash.status_code == 400

    same = client.put(
        f"/api/candidates/{first['id']}",
        headers=auth_headers(manager),
        json={"email": "a@example.com", "status": "Accettato"},
    )
    assert same.status_code == 200
    assert same.json()["status"] == "Accettato"


def test_delete_restricted_roles(client, manager, make_user):
    candidate = _create(client, manager).json()
    assert client.delete(f"/api/candidates/{candidate['id']}", headers=auth_headers(manager)).status_code == 403

    presidente = make_user(name="Pia Presidente", role="Presidente")
    assert client.delete(f"/api/candidates/{candidate['id']}", headers=auth_headers(presidente)).status_code == 200
