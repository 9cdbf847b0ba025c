from uuid import uuid4

from conftest import make_record, make_user
from app.models.query_record import QueryRemark
from app.services.broadcast import hub


def _remark_body(**overrides):
    body = {"text": "Customer called back", "author": "Ravi", "authorRole": "operations", "authorTeam": "Operations"}
    body.update(overrides)
    return body


def _seed_with_remark(fake_db):
    record = make_record()
    remark = QueryRemark(
        id=uuid4(),
        record_id=record.id,
        text="Initial note",
        author="Ravi",
        author_role="operations",
        author_team="Operations",
        is_system=False,
        is_edited=False,
    )
    record.remarks.append(remark)
    fake_db.seed(record)
    return record, remark


def test_add_remark_broadcasts_message(client, fake_db):
    record = make_record()
    fake_db.seed(record)
    watcher = hub.open()

    response = client.post(f"/api/queries/{record.id}/remarks", json=_remark_body())

    assert response.status_code == 201
    assert response.json()["data"]["text"] == "Customer called back"
    assert len(record.remarks) == 1
    assert watcher.queue.qsize() == 1


def test_add_remark_missing_field(client, fake_db):
    record = make_record()
    fake_db.seed(record)

    response = client.post(f"/api/queries/{record.id}/remarks", json={"text": "x", "author": "Ravi"})

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_add_remark_unknown_record(client):
    response = client.post(f"/api/queries/{uuid4()}/remarks", json=_remark_body())

    assert response.status_code == 404
    assert response.json()["code"] == "query_not_found"


def test_edit_remark_marks_edited(client, fake_db):
    record, remark = _seed_with_remark(fake_db)

    response = client.put(
        f"/api/queries/{record.id}/remarks",
        json={"remarkId": str(remark.id), "text": "Corrected note"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["text"] == "Corrected note"
    assert data["isEdited"] is True
    assert remark.edited_at is not None


def test_edit_unknown_remark(client, fake_db):
    record, _ = _seed_with_remark(fake_db)

    response = client.put(f"/api/queries/{record.id}/remarks", json={"remarkId": str(uuid4()), "text": "x"})

    assert response.status_code == 404
    assert response.json()["code"] == "remark_not_found"


def test_delete_remark(client, fake_db):
    record, remark = _seed_with_remark(fake_db)

    response = client.delete(f"/api/queries/{record.id}/remarks", params={"remarkId": str(remark.id)})

    assert response.status_code == 200
    assert record.remarks == []
    assert client.get(f"/api/queries/{record.id}/remarks").json()["data"] == []


def test_remarks_on_hidden_record_are_not_found(client, fake_db, act_as):
    record, remark = _seed_with_remark(fake_db)
    record.marked_for_team = "credit"
    record.visible_to = ["credit"]
    act_as(make_user(role="sales"))

    assert client.get(f"/api/queries/{record.id}/remarks").status_code == 404
    assert client.post(f"/api/queries/{record.id}/remarks", json=_remark_body()).status_code == 404
    edit = client.put(f"/api/queries/{record.id}/remarks", json={"remarkId": str(remark.id), "text": "changed"})
    assert edit.status_code == 404
    assert client.delete(f"/api/queries/{record.id}/remarks", params={"remarkId": str(remark.id)}).status_code == 404
    assert [r.text for r in record.remarks] == ["Initial note"]


def test_remark_outside_branch_scope_is_not_found(client, fake_db, act_as):
    record = make_record(branch_code="BR001")
    fake_db.seed(record)
    act_as(make_user(role="sales", assigned_branches=["ZZZ999"]))

    response = client.post(f"/api/queries/{record.id}/remarks", json=_remark_body())

    assert response.status_code == 404
    assert record.remarks == []
