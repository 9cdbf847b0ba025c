import asyncio
from decimal import Decimal

import pytest

from conftest import FakeAsyncSession, FakeResult, make_user, now_utc
from app.models import SanctionedApplication
from app.services import sanctioned
from app.services.broadcast import hub
from app.services.query_errors import SanctionedNotFound


def _application(app_no="APP-500", branch_code="BR001", status="active", **overrides):
    values = dict(
        app_no=app_no,
        customer_name="Meena Iyer",
        branch_code=branch_code,
        sanctioned_amount=Decimal("250000.00"),
        status=status,
        sanctioned_at=now_utc(),
        created_at=now_utc(),
    )
    values.update(overrides)
    return SanctionedApplication(**values)


def _body(**overrides):
    body = {"appNo": "APP-700", "customerName": "Karan Shah", "branchCode": "BR002", "sanctionedAmount": "150000.50"}
    body.update(overrides)
    return body


def test_create_and_fetch_sanctioned_application(client, fake_db):
    response = client.post("/api/sanctioned-applications", json=_body())

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["appNo"] == "APP-700"
    assert data["status"] == "active"
    assert data["sanctionedAt"] is not None
    assert len(fake_db.rows(SanctionedApplication)) == 1

    fetched = client.get("/api/sanctioned-applications/APP-700")
    assert fetched.status_code == 200
    assert fetched.json()["data"]["customerName"] == "Karan Shah"


def test_duplicate_app_no_conflicts(client, fake_db):
    fake_db.seed(_application(app_no="APP-700"))

    response = client.post("/api/sanctioned-applications", json=_body())

    assert response.status_code == 409
    assert response.json()["code"] == "duplicate_sanctioned"
    assert len(fake_db.rows(SanctionedApplication)) == 1


def test_create_rejects_unknown_status(client, fake_db):
    response = client.post("/api/sanctioned-applications", json=_body(status="paused"))

    assert response.status_code == 400
    assert fake_db.rows(SanctionedApplication) == []


def test_create_requires_operations_or_admin(client, fake_db, act_as):
    act_as(make_user(role="sales"))

    assert client.post("/api/sanctioned-applications", json=_body()).status_code == 403


def test_list_sanctioned_applications(client, fake_db):
    fake_db.seed(_application(app_no="APP-1"), _application(app_no="APP-2", status="expired"))

    response = client.get("/api/sanctioned-applications")

    assert response.status_code == 200
    assert sorted(a["appNo"] for a in response.json()["data"]) == ["APP-1", "APP-2"]


def test_list_with_empty_branch_scope_is_empty(client, fake_db, act_as):
    fake_db.seed(_application())
    act_as(make_user(role="sales", assigned_branches=[]))

    response = client.get("/api/sanctioned-applications")

    assert response.json()["data"] == []
    assert fake_db.executed == []


def test_get_outside_branch_scope_is_not_found(client, fake_db, act_as):
    fake_db.seed(_application(app_no="APP-1", branch_code="BR001"))
    act_as(make_user(role="sales", assigned_branches=["BR009"]))

    assert client.get("/api/sanctioned-applications/APP-1").status_code == 404
    assert client.get("/api/sanctioned-applications/APP-404").status_code == 404


def test_delete_is_admin_only_and_broadcasts(client, fake_db, act_as):
    fake_db.seed(_application(app_no="APP-1"))
    assert client.delete("/api/sanctioned-applications/APP-1").status_code == 403

    act_as(make_user(role="admin"))
    watcher = hub.open()
    response = client.delete("/api/sanctioned-applications/APP-1")

    assert response.status_code == 200
    assert response.json()["data"] == {"deleted": True, "appNo": "APP-1"}
    assert fake_db.rows(SanctionedApplication) == []
    assert watcher.queue.qsize() == 1
    assert client.delete("/api/sanctioned-applications/APP-1").status_code == 404


def test_stats_counts_by_status(client, fake_db):
    fake_db.on_execute(
        lambda stmt: FakeResult(items=[("active", 2), ("utilized", 1)]) if "GROUP BY" in str(stmt) else None
    )

    response = client.get("/api/sanctioned-applications/stats")

    assert response.status_code == 200
    assert response.json()["data"] == {"total": 3, "byStatus": {"active": 2, "expired": 0, "utilized": 1}}


def test_list_filters_by_status_in_sql():
    db = FakeAsyncSession()

    asyncio.run(sanctioned.list_sanctioned(db, status=" Expired ", branch_scope=["br001"]))

    sql = str(db.executed[-1])
    assert "sanctioned_applications.status =" in sql
    assert "lower(sanctioned_applications.branch_code) IN" in sql


def test_get_unknown_sanctioned_raises():
    with pytest.raises(SanctionedNotFound):
        asyncio.run(sanctioned.get_sanctioned(FakeAsyncSession(), "APP-404"))
