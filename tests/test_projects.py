import pytest

from conftest import auth_headers
from gestionale.Models import Client, Project, ProjectAssignment, Task, Todo


@pytest.fixture
def acme(db, socio):
    row = Client(name="Acme Srl", email="info@acme.it", created_by=socio.user_id)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def project(client, admin, acme):
    response = client.post(
        "/api/projects", headers=auth_headers(admin), json={"name": "Sito web", "clientId": acme.client_id, "area": "IT"}
    )
    assert response.status_code == 201
    return response.json()


def test_create_project_defaults(project):
    assert project["status"] == "Pianificato"
    assert project["clientName"] == "Acme Srl"
    assert project["todos"] == []
    assert project["version"] == 1


def test_create_project_validation(client, admin):
    assert client.post("/api/projects", headers=auth_headers(admin), json={"name": "X"}).status_code == 400
    missing = client.post("/api/projects", headers=auth_headers(admin), json={"name": "X", "clientId": 999})
    assert missing.status_code == 404


def test_optimistic_update(client, admin, project):
    ok = client.put(
        f"/api/projects/{project['id']}", headers=auth_headers(admin), json={"status": "In Corso", "expectedVersion": 1}
    )
    assert ok.status_code == 200
    assert ok.json()["version"] == 2

    stale = client.put(
        f"/api/projects/{project['id']}", headers=auth_headers(admin), json={"status": "Chiuso", "expectedVersion": 1}
    )
    assert stale.status_code == 409
    assert stale.json()["serverData"]["status"] == "In Corso"


def test_todos_lifecycle(client, admin, project):
    headers = auth_headers(admin)
    base = f"/api/projects/{project['id']}/todos"

    assert client.post(base, headers=headers, json={}).status_code == 400
    todo = client.post(base, headers=headers, json={"text": "Preparare mockup"}).json()
    assert todo["priority"] == "Media"
    assert todo["completed"] is False

    toggled = client.patch(f"{base}/{todo['id']}/toggle", headers=headers).json()
    assert toggled["completed"] is True

    reopened = client.patch(f"{base}/{todo['id']}/status", headers=headers, json={"status": "da fare"}).json()
    assert reopened["completed"] is False

    done = client.patch(f"{base}/{todo['id']}/status", headers=headers, json={"status": "terminato"}).json()
    assert done["completed"] is True

    assert client.delete(f"{base}/{todo['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/projects/{project['id']}", headers=headers).json()["todos"] == []


def test_team_management(client, admin, socio, project):
    headers = auth_headers(admin)
    base = f"/api/projects/{project['id']}/team"

    assert client.post(base, headers=headers, json={"userId": 999}).status_code == 404
    assert client.post(base, headers=headers, json={"userId": socio.user_id}).status_code == 201
    assert client.post(base, headers=headers, json={"userId": socio.user_id}).status_code == 400

    team = client.get(base, headers=headers).json()
    assert [m["userId"] for m in team] == [socio.user_id]

    mine = client.get("/api/projects/my", headers=auth_headers(socio)).json()
    assert [p["id"] for p in mine] == [project["id"]]

    assert client.delete(f"{base}/{socio.user_id}", headers=headers).status_code == 200
    assert client.get(base, headers=headers).json() == []


def test_outsider_cannot_manage_team(client, make_user, socio, project):
    outsider = make_user(name="Paolo Marketing", role="Marketing", area="Marketing")
    response = client.post(
        f"/api/projects/{project['id']}/team", headers=auth_headers(outsider), json={"userId": socio.user_id}
    )
    assert response.status_code == 403


def test_area_manager_can_manage_own_area(client, make_user, socio, project):
    it_lead = make_user(name="Ivo IT", role="IT", area="IT")
    response = client.post(
        f"/api/projects/{project['id']}/tasks",
        headers=auth_headers(it_lead),
        json={"description": "Deploy", "assignedTo": socio.user_id},
    )
    assert response.status_code == 201
    task = response.json()
    assert task["status"] == "Da Fare"
    assert task["priority"] == "Media"
    assert task["assignedToName"] == socio.name


def test_delete_project_removes_children(client, db, admin, socio, project):
    headers = auth_headers(admin)
    client.post(f"/api/projects/{project['id']}/todos", headers=headers, json={"text": "A"})
    client.post(f"/api/projects/{project['id']}/team", headers=headers, json={"userId": socio.user_id})
    client.post(f"/api/projects/{project['id']}/tasks", headers=headers, json={"description": "B"})

    assert client.delete(f"/api/projects/{project['id']}", headers=headers).status_code == 200
    assert db.query(Project).count() == 0
    assert db.query(Todo).count() == 0
    assert db.query(ProjectAssignment).count() == 0
    assert db.query(Task).count() == 0
