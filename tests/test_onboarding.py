import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import auth_headers
from gestionale.Models import Candidate, Project, ProjectAssignment, User
from gestionale.routes import onboarding


@pytest.fixture
def candidate(db, manager):
    row = Candidate(
        name="Giulia Verdi",
        email="giulia@example.com",
        status="Accettato",
        area_competenza="Marketing",
        created_by=manager.user_id,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _start(client, user, candidate_id):
    return client.post("/api/onboarding/start", headers=auth_headers(user), json={"candidateId": candidate_id})


def test_start_onboarding_creates_user_and_trial_project(client, db, manager, candidate):
    response = _start(client, manager, candidate.candidate_id)
    assert response.status_code == 201
    body = response.json()

    assert body["user"]["role"] == "Associato (Prova)"
    assert body["user"]["email"] == "giulia@example.com"
    assert body["user"]["area"] == "Marketing"
    assert len(body["user"]["tempPassword"]) >= 16
    assert body["project"]["name"] == "Periodo di Prova: Giulia Verdi"
    assert body["project"]["status"] == "In Corso"
    assert body["project"]["assignedUserId"] == body["user"]["id"]

    db.expire_all()
    assert db.query(ProjectAssignment).filter(ProjectAssignment.user_id == body["user"]["id"]).count() == 1
    assert db.get(Candidate, candidate.candidate_id).status == "In colloquio"

    login = client.post(
        "/api/auth/login", json={"email": "giulia@example.com", "password": body["user"]["tempPassword"]}
    )
    assert login.status_code == 200


def test_candidate_must_be_accepted(client, db, manager, candidate):
    candidate.status = "In attesa"
    db.commit()

    response = _start(client, manager, candidate.candidate_id)
    assert response.status_code == 400
    assert db.query(User).filter(User.email == "giulia@example.com").count() == 0
    assert db.query(Project).count() == 0


def test_existing_email_blocks_onboarding(client, db, manager, make_user, candidate):
    make_user(name="Giulia Verdi", email="giulia@example.com")

    response = _start(client, manager, candidate.candidate_id)
    assert response.status_code == 400
    assert db.query(Project).count() == 0
    db.expire_all()
    assert db.get(Candidate, candidate.candidate_id).status == "Accettato"


def test_unknown_candidate(client, manager):
    assert _start(client, manager, 999).status_code == 404


def test_requires_candidate_id_and_role(client, manager, socio, candidate):
    assert client.post("/api/onboarding/start", headers=auth_headers(manager), json={}).status_code == 400
    assert _start(client, socio, candidate.candidate_id).status_code == 403


def test_failure_mid_transaction_leaves_no_trace(client, db, manager, candidate, monkeypatch):
    def broken_assign(db, project_id, user_id):
        raise SQLAlchemyError("assignment insert failed")

    monkeypatch.setattr(onboarding, "assign_member", broken_assign)

    response = _start(client, manager, candidate.candidate_id)
    assert response.status_code == 500
    assert db.query(User).filter(User.email == "giulia@example.com").count() == 0
    assert db.query(Project).count() == 0
    db.expire_all()
    assert db.get(Candidate, candidate.candidate_id).status == "Accettato"
