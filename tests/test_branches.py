import asyncio

from conftest import FakeAsyncSession
from app.models import Branch
from app.services import branches as branch_service


def test_seed_only_when_empty():
    db = FakeAsyncSession()

    assert asyncio.run(branch_service.seed_branches(db)) == len(branch_service.DEFAULT_BRANCHES)
    assert asyncio.run(branch_service.seed_branches(db)) == 0
    assert len(db.rows(Branch)) == len(branch_service.DEFAULT_BRANCHES)


def test_branch_listing(client, fake_db):
    asyncio.run(branch_service.seed_branches(fake_db))

    response = client.get("/api/branches", params={"active": "true"})

    assert response.status_code == 200
    codes = {b["code"] for b in response.json()["data"]}
    assert {"BR001", "BR010"} <= codes
    assert all(b["isActive"] for b in response.json()["data"])
