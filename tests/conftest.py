"""Pytest fixtures shared across the test suite."""

import os
import re

os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hitbox.db import build_engine, get_db, init_db
from hitbox.main import app
from hitbox.services.igdb import IGDBClient, get_igdb_client

TOKEN_URL = "https://id.example.test/oauth2/token"
API_URL = "https://api.example.test/v4"

_LOOKUP_RE = re.compile(r"where id = (\d+);")


def igdb_row(igdb_id, name, **extra):
    row = {
        "id": igdb_id,
        "name": name,
        "slug": name.lower().replace(" ", "-"),
        "summary": f"{name} summary",
        "cover": {"url": f"//images.igdb.com/igdb/image/upload/t_thumb/co{igdb_id}.jpg"},
        "first_release_date": 1577836800,
        "genres": [{"name": "Role-playing (RPG)"}],
        "platforms": [{"name": "PC (Microsoft Windows)"}],
        "involved_companies": [
            {"company": {"name": "Studio A"}, "developer": True, "publisher": False},
            {"company": {"name": "Publisher B"}, "developer": False, "publisher": True},
        ],
    }
    row.update(extra)
    return row


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeIGDBSession:
    """Stands in for ``requests.Session``; counts token and query posts."""

    def __init__(self, games=None, expires_in=3600):
        self.games = {row["id"]: row for row in games or []}
        self.expires_in = expires_in
        self.token_posts = 0
        self.query_posts = 0
        self.queries = []
        self.token_failures = 0
        self.unauthorized_queries = 0
        self.issued = 0

    def post(self, url, params=None, data=None, headers=None, timeout=None):
        if url == TOKEN_URL:
            self.token_posts += 1
            if self.token_failures:
                self.token_failures -= 1
                raise requests.ConnectionError("token endpoint unreachable")
            self.issued += 1
            payload = {"access_token": f"token-{self.issued}"}
            if self.expires_in is not None:
                payload["expires_in"] = self.expires_in
            return FakeResponse(payload=payload)

        self.query_posts += 1
        body = data.decode("utf-8") if isinstance(data, bytes) else str(data)
        self.queries.append(body)
        if self.unauthorized_queries:
            self.unauthorized_queries -= 1
            return FakeResponse(status_code=401, text="unauthorized")
        match = _LOOKUP_RE.search(body)
        if match:
            row = self.games.get(int(match.group(1)))
            return FakeResponse(payload=[row] if row else [])
        return FakeResponse(payload=list(self.games.values()))


async def no_sleep(_seconds):
    return None


def make_client(session, **kwargs):
    kwargs.setdefault("sleep", no_sleep)
    return IGDBClient(
        "client-id",
        "client-secret",
        token_url=TOKEN_URL,
        api_url=API_URL,
        session=session,
        **kwargs,
    )


@pytest.fixture()
def engine():
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture()
def db_session(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def igdb_session():
    return FakeIGDBSession(
        games=[
            igdb_row(1020, "Grand Theft Auto V"),
            igdb_row(1942, "The Witcher 3"),
            igdb_row(7346, "Zelda Breath of the Wild"),
        ]
    )


@pytest.fixture()
def igdb_client(igdb_session):
    return make_client(igdb_session)


@pytest.fixture()
def client(engine, igdb_client):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_igdb_client] = lambda: igdb_client
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def register(client, username="player1", email=None, password="secret123"):
    response = client.post(
        "/auth/register",
        json={"username": username, "email": email or f"{username}@example.com", "password": password},
    )
    assert response.status_code == 200, response.text
    return response.json()["token"]


def auth_headers(token):
    return {"x-auth-token": token}


@pytest.fixture()
def token(client):
    return register(client)


@pytest.fixture()
def headers(token):
    return auth_headers(token)
