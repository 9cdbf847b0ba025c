from uuid import uuid4

from conftest import drain_frames, make_record, make_user
from app.services.broadcast import hub


def _seed(fake_db, **kwargs):
    record = make_record(**kwargs)
    fake_db.seed(record)
    return record, record.sub_queries[0]


def test_action_response_uses_success_envelope(client, fake_db):
    _, sub_query = _seed(fake_db)

    response = client.post(
        "/api/query-actions",
        json={"type": "action", "queryId": str(sub_query.id), "action": "approve", "remarks": "Docs verified"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["code"] == "ok"
    data = body["data"]
    assert data["mode"] == "gated"
    assert data["status"] == "waiting for approval"
    assert data["proposedAction"] == "approve"
    assert data["remark"]["isSystem"] is True
    assert data["message"].startswith("Approval requested by Ops User (Operations): APPROVE")


def test_missing_query_id_is_rejected(client):
    response = client.post("/api/query-actions", json={"action": "approve"})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["error"] == "queryId is required"


def test_unknown_action_is_rejected(client, fake_db):
    _, sub_query = _seed(fake_db)

    response = client.post("/api/query-actions", json={"queryId": str(sub_query.id), "action": "teleport"})

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_action"
    assert sub_query.status == "pending"


def test_unknown_query_id_is_not_found(client):
    response = client.post("/api/query-actions", json={"queryId": str(uuid4()), "action": "waiver"})

    assert response.status_code == 404
    assert response.json()["code"] == "query_not_found"


def test_approval_without_decision_is_rejected(client, fake_db):
    _, sub_query = _seed(fake_db, statuses=["waiting for approval"])

    response = client.post("/api/query-actions", json={"type": "approval", "queryId": str(sub_query.id)})

    assert response.status_code == 400


def test_approve_then_confirm_broadcasts_one_message(client, fake_db):
    record, sub_query = _seed(fake_db)
    client.post("/api/query-actions", json={"queryId": str(sub_query.id), "action": "approve"})
    watcher = hub.open()

    response = client.post(
        "/api/query-actions",
        json={"type": "approval", "queryId": str(sub_query.id), "decision": "approve", "remarks": "OK"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "approved"
    assert data["recordStatus"] == "resolved"
    assert sub_query.approved_by == "Ops User"
    assert record.status == "resolved"

    frames = drain_frames(watcher)
    assert [f["action"] for f in frames].count("message_added") == 1
    assert any(f["action"] == "resolved" for f in frames)


def test_sender_connection_is_excluded(client, fake_db):
    _, sub_query = _seed(fake_db)
    sender = hub.open()
    other = hub.open()

    client.post(
        "/api/query-actions",
        json={"queryId": str(sub_query.id), "action": "waiver", "connectionId": sender.id},
    )

    assert drain_frames(sender) == []
    assert len(drain_frames(other)) == 2


def test_non_approver_cannot_confirm(client, fake_db, act_as):
    _, sub_query = _seed(fake_db, statuses=["waiting for approval"])
    sub_query.proposed_action = "otc"
    act_as(make_user(role="sales", full_name="Sales User"))

    response = client.post(
        "/api/query-actions",
        json={"type": "approval", "queryId": str(sub_query.id), "decision": "approve"},
    )

    assert response.status_code == 403
    assert sub_query.status == "waiting for approval"


def test_admin_may_act_for_another_team(client, fake_db, act_as):
    _, sub_query = _seed(fake_db)
    act_as(make_user(role="admin", full_name="Admin User"))

    response = client.post(
        "/api/query-actions",
        json={"queryId": str(sub_query.id), "action": "waiver", "team": "credit", "creditTeamMember": "Kiran"},
    )

    assert response.status_code == 200
    assert sub_query.resolved_by == "Kiran"
    assert sub_query.resolved_by_team == "Credit"


def test_revert_type_requires_remarks(client, fake_db):
    _, sub_query = _seed(fake_db, statuses=["approved"])

    response = client.post("/api/query-actions", json={"type": "revert", "queryId": str(sub_query.id)})

    assert response.status_code == 400
    assert sub_query.status == "approved"


def test_message_type_posts_to_chat(client, fake_db):
    _, sub_query = _seed(fake_db)

    response = client.post(
        "/api/query-actions",
        json={"type": "message", "queryId": str(sub_query.id), "message": "Need bank statement"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["message"] == "Need bank statement"
    assert response.json()["data"]["team"] == "Operations"


def test_sales_patch_acts_as_sales(client, fake_db, act_as):
    _, sub_query = _seed(fake_db, marked_for_team="sales")
    act_as(make_user(role="sales", full_name="Sales User"))

    response = client.patch(
        "/api/queries/sales",
        json={"queryId": str(sub_query.id), "action": "deferral", "teamMember": "Anil"},
    )

    assert response.status_code == 200
    assert sub_query.status == "waiting for approval"
    assert sub_query.proposed_by == "Anil"
    assert sub_query.proposed_by_team == "Sales"


def test_action_outside_branch_scope_is_not_found(client, fake_db, act_as):
    _, sub_query = _seed(fake_db, marked_for_team="credit", branch_code="BR001")
    act_as(make_user(role="sales", full_name="Sales User", assigned_branches=["ZZZ999"]))

    response = client.post("/api/query-actions", json={"queryId": str(sub_query.id), "action": "escalate"})

    assert response.status_code == 404
    assert response.json()["code"] == "query_not_found"
    assert sub_query.status == "pending"
    assert fake_db.commits == 0


def test_action_on_record_hidden_from_team_is_not_found(client, fake_db, act_as):
    record, sub_query = _seed(fake_db, marked_for_team="credit")
    act_as(make_user(role="sales", full_name="Sales User"))

    response = client.post("/api/query-actions", json={"queryId": str(sub_query.id), "action": "escalate"})

    assert response.status_code == 404
    assert record.priority == "medium"


def test_confirm_outside_branch_scope_is_not_found(client, fake_db, act_as):
    _, sub_query = _seed(fake_db, statuses=["waiting for approval"], branch_code="BR001")
    sub_query.proposed_action = "otc"
    act_as(make_user(role="operations", assigned_branches=["BR002"]))

    response = client.post(
        "/api/query-actions",
        json={"type": "approval", "queryId": str(sub_query.id), "decision": "approve"},
    )

    assert response.status_code == 404
    assert sub_query.status == "waiting for approval"


def test_message_to_hidden_query_is_not_found(client, fake_db, act_as):
    _, sub_query = _seed(fake_db, marked_for_team="credit")
    act_as(make_user(role="sales", full_name="Sales User"))

    response = client.post(
        "/api/query-actions",
        json={"type": "message", "queryId": str(sub_query.id), "message": "Ping"},
    )

    assert response.status_code == 404


def test_credit_user_cannot_patch_sales_route(client, fake_db, act_as):
    _, sub_query = _seed(fake_db, statuses=["approved"])
    act_as(make_user(role="credit", full_name="Credit User"))

    response = client.patch(
        "/api/queries/sales",
        json={"queryId": str(sub_query.id), "action": "revert", "remarks": "Reopen"},
    )

    assert response.status_code == 403
    assert sub_query.status == "approved"


def test_sales_patch_respects_sales_visibility(client, fake_db, act_as):
    _, sub_query = _seed(fake_db, marked_for_team="credit")
    act_as(make_user(role="admin", full_name="Admin User"))

    response = client.patch("/api/queries/sales", json={"queryId": str(sub_query.id), "action": "escalate"})

    assert response.status_code == 404


def test_unknown_role_is_forbidden(client, fake_db, act_as):
    _, sub_query = _seed(fake_db)
    act_as(make_user(role="auditor", full_name="Auditor"))

    response = client.post("/api/query-actions", json={"queryId": str(sub_query.id), "action": "waiver"})

    assert response.status_code == 403
    assert sub_query.status == "pending"
