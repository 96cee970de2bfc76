"""API tests for /identify and /health. In-memory store, no Neo4j."""

import pytest
from fastapi.testclient import TestClient

from api.main import app
from identilink.domain import StorageError
from identilink.infrastructure import InMemoryContactStore


@pytest.fixture
def store(monkeypatch):
    store = InMemoryContactStore()
    monkeypatch.setattr(app.state, "store", store, raising=False)
    monkeypatch.delenv("PHONE_DEFAULT_REGION", raising=False)
    return store


@pytest.fixture
def client(store):
    return TestClient(app)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_root_redirects_to_docs(client):
    r = client.get("/", follow_redirects=False)
    assert r.status_code in (302, 307)
    assert r.headers["location"] == "/docs"


def test_identify_new_contact(client, store):
    r = client.post("/identify", json={"email": "doc.brown@flux.com", "phoneNumber": "555-0001"})
    assert r.status_code == 200
    contact = r.json()["contact"]
    assert contact["emails"] == ["doc.brown@flux.com"]
    assert contact["phoneNumbers"] == ["555-0001"]
    assert contact["secondaryContactIds"] == []
    assert contact["primaryContactId"] == store.list_all()[0].id


def test_identify_links_and_merges(client):
    first = client.post("/identify", json={"email": "doc.brown@flux.com", "phoneNumber": "555-0001"})
    client.post("/identify", json={"email": "clara@hillvalley.edu", "phoneNumber": "555-0002"})
    r = client.post("/identify", json={"email": "clara@hillvalley.edu", "phoneNumber": "555-0001"})

    assert r.status_code == 200
    contact = r.json()["contact"]
    assert contact["primaryContactId"] == first.json()["contact"]["primaryContactId"]
    assert contact["emails"] == ["doc.brown@flux.com", "clara@hillvalley.edu"]
    assert contact["phoneNumbers"] == ["555-0001", "555-0002"]
    assert len(contact["secondaryContactIds"]) == 1


def test_identify_numeric_phone_number(client):
    r = client.post("/identify", json={"email": None, "phoneNumber": 123456})
    assert r.status_code == 200
    assert r.json()["contact"]["phoneNumbers"] == ["123456"]


@pytest.mark.parametrize(
    "body",
    [{}, {"email": None, "phoneNumber": None}, {"email": "  ", "phoneNumber": ""}],
)
def test_identify_requires_email_or_phone(client, store, body):
    r = client.post("/identify", json=body)
    assert r.status_code == 400
    assert "Email or phone number must be provided" in r.json()["message"]
    assert store.list_all() == []


def test_identify_storage_failure_is_generic_500(client, store, monkeypatch):
    def broken_unit_of_work():
        raise StorageError("connection refused to db.internal:7687")

    monkeypatch.setattr(store, "unit_of_work", broken_unit_of_work)
    r = client.post("/identify", json={"email": "a@x.com"})
    assert r.status_code == 500
    assert r.json() == {"message": "Internal Server Error"}


def test_identify_allows_cross_origin_callers(client):
    r = client.post(
        "/identify",
        json={"email": "a@x.com"},
        headers={"Origin": "http://shop.example"},
    )
    assert r.status_code == 200
    assert r.headers.get("access-control-allow-origin") == "*"


def test_identify_preflight_is_allowed(client):
    r = client.options(
        "/identify",
        headers={
            "Origin": "http://shop.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type",
        },
    )
    assert r.status_code == 200
    assert r.headers.get("access-control-allow-origin") == "*"


@pytest.mark.parametrize(
    "body",
    [{"email": 5}, {"email": "a@x.com", "phoneNumber": ["111"]}, {"phoneNumber": {"n": 1}}],
)
def test_identify_wrongly_typed_field_is_400_message(client, store, body):
    r = client.post("/identify", json=body)
    assert r.status_code == 400
    assert set(r.json()) == {"message"}
    assert store.list_all() == []
