import inspect

import pytest
from fastapi.testclient import TestClient

import main


@pytest.fixture
def client():
    main.SPLIT_SESSIONS.clear()
    return TestClient(main.app)


@pytest.fixture
def split_id(client, members):
    response = client.post("/splits", json={"total_amount": 900, "members": members})
    assert response.status_code == 201
    return response.json()["split_id"]


def computed(body):
    return [p["computed_amount"] for p in body["participants"]]


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_create_split_is_equal(client, members):
    response = client.post("/splits", json={"total_amount": "1200", "members": members})

    body = response.json()
    assert response.status_code == 201
    assert body["strategy"] == "EQUAL"
    assert body["paid_by"] == "C"
    assert computed(body) == ["400.00", "400.00", "400.00"]


def test_create_split_rejects_bad_input(client, members):
    assert client.post("/splits", json={"total_amount": -5, "members": members}).status_code == 400
    assert client.post("/splits", json={"total_amount": 5, "members": [{"name": "no id"}]}).status_code == 400


def test_unknown_split(client):
    assert client.get("/splits/split_missing").status_code == 404


def test_percentage_flow_reports_mismatch(client, split_id):
    client.put(f"/splits/{split_id}/strategy", json={"strategy": "PERCENTAGE"})
    response = client.put(
        f"/splits/{split_id}/participants/A",
        json={"field": "percentage", "value": 50}
    )
    assert computed(response.json()) == ["450.00", "300.00", "300.00"]

    response = client.get(f"/splits/{split_id}/validate")
    assert response.status_code == 422
    assert response.json()["detail"]["sum_amount"] == "1050.00"
    assert response.json()["detail"]["total_amount"] == "900.00"


def test_wrong_field_for_strategy_conflicts(client, split_id):
    response = client.put(f"/splits/{split_id}/participants/A", json={"field": "shares", "value": 2})
    assert response.status_code == 409


def test_toggle_and_validate_preview(client, split_id):
    response = client.post(f"/splits/{split_id}/participants/C/toggle")
    assert computed(response.json()) == ["450.00", "450.00", "0.00"]

    body = client.get(f"/splits/{split_id}/validate").json()
    assert body["allocation"] == [
        {"participant_id": "A", "amount": "450.00"},
        {"participant_id": "B", "amount": "450.00"},
    ]
    assert body["settlements"] == [
        {"from_participant": "A", "to_participant": "C", "amount": 450.0},
        {"from_participant": "B", "to_participant": "C", "amount": 450.0},
    ]


def test_toggle_unknown_participant(client, split_id):
    assert client.post(f"/splits/{split_id}/participants/Z/toggle").status_code == 404


def test_no_participants(client, split_id):
    for pid in ("A", "B", "C"):
        client.post(f"/splits/{split_id}/participants/{pid}/toggle")
    assert client.get(f"/splits/{split_id}/validate").status_code == 422


def test_total_and_paid_by(client, split_id):
    client.put(f"/splits/{split_id}/paid-by", json={"participant_id": "A"})
    body = client.put(f"/splits/{split_id}/total", json={"total_amount": 300}).json()

    assert body["paid_by"] == "A"
    assert body["total_amount"] == "300.00"
    assert computed(body) == ["100.00", "100.00", "100.00"]


def test_explain(client, split_id):
    body = client.get(f"/splits/{split_id}/explain").json()
    assert [e["amount"] for e in body["explanations"]] == ["300.00", "300.00", "300.00"]


def test_group_split_and_commit(client, group, fake_db):
    response = client.post(f"/groups/{group}/splits", json={"total_amount": 400, "current_user_id": "A"})
    assert response.status_code == 201
    body = response.json()
    assert body["paid_by"] == "A"
    assert [p["display_name"] for p in body["participants"]] == ["Raj", "Ajit", "Vishal"]

    split_id = body["split_id"]
    client.put(f"/splits/{split_id}/strategy", json={"strategy": "By Share"})
    client.put(f"/splits/{split_id}/participants/A", json={"field": "shares", "value": 2})

    response = client.post(
        f"/splits/{split_id}/commit",
        json={"group_id": group, "description": "Boat ride", "date": "2025-12-03"}
    )
    assert response.status_code == 201
    assert response.json()["expense"]["splits"] == [
        {"participant_id": "A", "amount": 200.0},
        {"participant_id": "B", "amount": 100.0},
        {"participant_id": "C", "amount": 100.0},
    ]
    assert split_id not in main.SPLIT_SESSIONS
    assert fake_db.doc("groups", group, "expenses", "E001")["split_type"] == "SHARE"


def test_group_split_missing_group(client, fake_db):
    response = client.post("/groups/nope/splits", json={"total_amount": 10})
    assert response.status_code == 404


def test_commit_without_firestore_keeps_session(client, split_id, no_db):
    response = client.post(
        f"/splits/{split_id}/commit",
        json={"group_id": "trip", "description": "Dinner"}
    )
    assert response.status_code == 503
    assert split_id in main.SPLIT_SESSIONS
    assert client.get(f"/splits/{split_id}").status_code == 200


def test_commit_retry_after_failed_write(client, split_id, fake_db):
    fake_db.fail_next_commit = True
    request = {"group_id": "trip", "description": "Dinner", "date": "2025-12-05"}

    assert client.post(f"/splits/{split_id}/commit", json=request).status_code == 503
    assert fake_db.store == {}

    response = client.post(f"/splits/{split_id}/commit", json=request)
    assert response.status_code == 201
    assert response.json()["expense"]["expense_id"] == "E001"
    assert fake_db.doc("groups", "trip", "balances", "C")["net_balance"] == 600.0


def test_firestore_handlers_run_in_threadpool():
    assert not inspect.iscoroutinefunction(main.create_group_split)
    assert not inspect.iscoroutinefunction(main.commit_split_session)
