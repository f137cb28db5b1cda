import pytest
from fastapi.testclient import TestClient

from backend.app.core.cache import read_cache
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app
from backend.app.models.user import User


@pytest.fixture(autouse=True)
def setup_db():
    read_cache.clear()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def register_and_login(client: TestClient, email: str, password: str = "secret", admin: bool = False) -> dict:
    client.post("/auth/register", json={"email": email, "password": password})
    if admin:
        with SessionLocal() as db:
            db.query(User).filter(User.email == email).one().is_admin = True
            db.commit()
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def create_person(client, headers, **payload):
    response = client.post("/people", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def create_profile(client, headers, person_id, **payload):
    response = client.post(f"/people/{person_id}/profiles", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_and_read_person():
    client = TestClient(app)
    headers = register_and_login(client, "office@example.com")
    person = create_person(client, headers, name="Hawa Ali", email="Hawa@Example.com", phone="+1 555 123 4567")
    assert sorted(cp["value"] for cp in person["contact_points"]) == ["5551234567", "hawa@example.com"]

    fetched = client.get(f"/people/{person['id']}", headers=headers)
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Hawa Ali"


def test_person_validation_and_not_found():
    client = TestClient(app)
    headers = register_and_login(client, "office@example.com")

    bad_email = client.post("/people", json={"name": "X", "email": "nope"}, headers=headers)
    assert bad_email.status_code == 422
    assert "email" in bad_email.json()["errors"]

    bad_phone = client.post("/people", json={"name": "X", "phone": "12"}, headers=headers)
    assert bad_phone.status_code == 422
    assert bad_phone.json()["errors"] == {"phone": ["Invalid phone number - cannot be normalized"]}

    missing = client.get("/people/999", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["kind"] == "RECORD_NOT_FOUND"


def test_lookup_reports_duplicate():
    client = TestClient(app)
    headers = register_and_login(client, "office@example.com")
    person = create_person(client, headers, name="Parent", phone="555-222-3333")

    response = client.get(
        "/people/lookup", params={"program": "WEEKEND_SCHOOL", "phone": "(555) 222 3333"}, headers=headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["is_duplicate"] is True
    assert data["duplicate_field"] == "phone"
    assert data["person"]["id"] == person["id"]

    clean = client.get("/people/lookup", params={"program": "WEEKEND_SCHOOL", "email": "x@y.com"}, headers=headers)
    assert clean.json()["is_duplicate"] is False


def test_duplicate_listing_and_resolution():
    client = TestClient(app)
    headers = register_and_login(client, "admin@example.com", admin=True)
    first = create_person(client, headers, name="Amina", phone="5554440000", email="amina@example.com")
    second = create_person(client, headers, name="Amina A.", phone="555 444 0000")
    keep = create_profile(client, headers, first["id"], program="WEEKEND_SCHOOL")
    drop = create_profile(client, headers, second["id"], program="WEEKEND_SCHOOL", grade_level="2")

    clusters = client.get("/people/duplicates", headers=headers).json()
    assert len(clusters) == 1
    assert clusters[0]["size"] == 2

    response = client.post(
        "/people/duplicates/resolve",
        json={"keep_id": keep["id"], "delete_ids": [drop["id"]], "merge_data": True},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["deleted_profile_ids"] == [drop["id"]]
    assert data["deleted_person_ids"] == [second["id"]]
    assert data["fields_filled"] == ["grade_level"]
    assert client.get(f"/people/{second['id']}", headers=headers).status_code == 404
    assert client.get("/people/duplicates", headers=headers).json() == []


def test_cross_program_resolution_is_rejected():
    client = TestClient(app)
    headers = register_and_login(client, "admin@example.com", admin=True)
    person = create_person(client, headers, name="Amina", phone="5554440000")
    other = create_person(client, headers, name="Amina", phone="5554440000")
    keep = create_profile(client, headers, person["id"], program="WEEKEND_SCHOOL")
    drop = create_profile(client, headers, other["id"], program="K12_PROGRAM")

    response = client.post(
        "/people/duplicates/resolve", json={"keep_id": keep["id"], "delete_ids": [drop["id"]]}, headers=headers
    )
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "CROSS_PROGRAM_MERGE"


def test_guardian_and_sibling_links():
    client = TestClient(app)
    headers = register_and_login(client, "admin@example.com", admin=True)
    parent = create_person(client, headers, name="Hawa")
    child_a = create_person(client, headers, name="Bilal")
    child_b = create_person(client, headers, name="Amina")

    link = client.post(
        "/people/guardians",
        json={"guardian_id": parent["id"], "dependent_id": child_a["id"], "is_primary_payer": True},
        headers=headers,
    )
    assert link.status_code == 201
    assert [g["name"] for g in client.get(f"/people/{child_a['id']}/guardians", headers=headers).json()] == ["Hawa"]
    assert [d["name"] for d in client.get(f"/people/{parent['id']}/dependents", headers=headers).json()] == ["Bilal"]

    self_link = client.post(
        "/people/guardians", json={"guardian_id": parent["id"], "dependent_id": parent["id"]}, headers=headers
    )
    assert self_link.status_code == 422

    ended = client.post(f"/people/guardians/{link.json()['id']}/deactivate", json={"reason": "Moved"}, headers=headers)
    assert ended.json()["status"] == "INACTIVE"
    assert client.get(f"/people/{child_a['id']}/guardians", headers=headers).json() == []

    siblings = client.post(
        "/people/siblings", json={"person_a_id": child_b["id"], "person_b_id": child_a["id"]}, headers=headers
    )
    assert siblings.status_code == 201
    assert siblings.json()["person1_id"] == min(child_a["id"], child_b["id"])
    assert [s["name"] for s in client.get(f"/people/{child_a['id']}/siblings", headers=headers).json()] == ["Amina"]

    unlinked = client.post(
        "/people/siblings/unlink",
        json={"person_a_id": child_a["id"], "person_b_id": child_b["id"], "reason": "Cousins"},
        headers=headers,
    )
    assert unlinked.json()["status"] == "INACTIVE"


def test_relationship_writes_need_admin():
    client = TestClient(app)
    headers = register_and_login(client, "office@example.com")
    response = client.post("/people/siblings", json={"person_a_id": 1, "person_b_id": 2}, headers=headers)
    assert response.status_code == 403


def test_sibling_candidates_endpoint():
    client = TestClient(app)
    headers = register_and_login(client, "office@example.com")
    yusuf = create_person(client, headers, name="Yusuf Ali", phone="555-200-3000")
    deqa = create_person(client, headers, name="Deqa Noor", phone="5552003000")

    response = client.get(f"/people/{yusuf['id']}/sibling-candidates", headers=headers)
    assert response.status_code == 200
    assert response.json() == [
        {
            "person": {"id": deqa["id"], "name": "Deqa Noor", "date_of_birth": None},
            "method": "CONTACT_MATCH",
            "confidence": 0.8,
            "reasons": ["Shared phone: 5552003000"],
        }
    ]

    assert client.get("/people/999/sibling-candidates", headers=headers).status_code == 404
