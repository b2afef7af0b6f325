import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from gestionale.authentication import create_access_token, hash_password  # noqa: E402
from gestionale.Database import Base, get_db  # noqa: E402
from gestionale.main import app  # noqa: E402
from gestionale.Models import User  # noqa: E402

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "secret123"
# bcrypt is slow on purpose; hash once for every fixture user
PASSWORD_HASH = hash_password(PASSWORD)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(name="Mario Rossi", email=None, role="Socio", area=None, is_active=True):
        user = User(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.com",
            password_hash=PASSWORD_HASH,
            role=role,
            area=area,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def admin(make_user):
    return make_user(name="Anna Admin", role="Admin", area="IT")


@pytest.fixture
def manager(make_user):
    return make_user(name="Marco Manager", role="Manager", area="Marketing")


@pytest.fixture
def socio(make_user):
    return make_user(name="Sara Socio", role="Socio", area="Commerciale")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}
