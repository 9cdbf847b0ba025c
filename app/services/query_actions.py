"""Apply actions to sub-queries.

Each successful apply or confirmation commits the sub-query change, the derived
record status, one system remark and one update-log row together. Only after
that does it write the system chat line, broadcast, and check the sanctioned
list. Failures in those follow-up steps are logged and never undo the action.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.query_record import QueryRecord, QueryRemark, SubQuery
from app.schemas.common import Team
from app.services import action_policy, chat_store, query_records, query_scoping, remarks as remark_service, sanctioned, update_log
from app.services.action_policy import ActionMode, ActionRule
from app.services.audit import model_snapshot, record_audit_event
from app.services.query_errors import ApprovalNotAllowed, ApprovalStateConflict, InvalidAction, QueryWorkflowError
from app.services.query_stream import broadcast_update

logger = logging.getLogger(__name__)

_AUDITED_FIELDS = (
    "status",
    "proposed_action",
    "proposed_by",
    "is_resolved",
    "resolved_by",
    "resolved_at",
    "approved_by",
    "assigned_to_branch",
)


@dataclass
class ActionCommand:
    query_id: str
    action: str
    actor: str
    team: Team | str
    remarks: str | None = None
    assigned_to_branch: str | None = None
    response_text: str | None = None
    connection_id: str | None = None
    # Branch codes the caller may touch; None means every branch.
    scope: list[str] | None = None


@dataclass
class ConfirmCommand:
    query_id: str
    decision: str
    approver: str
    team: Team | str
    remarks: str | None = None
    connection_id: str | None = None
    scope: list[str] | None = None


@dataclass
class ActionOutcome:
    sub_query: SubQuery
    record: QueryRecord
    remark: QueryRemark
    action: str
    mode: ActionMode
    previous_status: str
    message: str
    broadcasts: list[dict[str, Any]] = field(default_factory=list)
    sanctioned_removed: bool = False


def _clear_proposal(sub_query: SubQuery) -> None:
    sub_query.proposed_action = None
    sub_query.proposed_by = None
    sub_query.proposed_by_team = None
    sub_query.proposed_at = None


def _stage_proposal(sub_query: SubQuery, rule: ActionRule, actor: str, team: Team, now) -> None:
    sub_query.status = "waiting for approval"
    sub_query.proposed_action = rule.action
    sub_query.proposed_by = actor
    sub_query.proposed_by_team = team.value
    sub_query.proposed_at = now


def _apply_revert(sub_query: SubQuery, actor: str, reason: str, now) -> None:
    sub_query.status = "pending"
    _clear_proposal(sub_query)
    sub_query.is_resolved = False
    sub_query.resolved_by = None
    sub_query.resolved_by_team = None
    sub_query.resolved_at = None
    sub_query.resolution_reason = None
    sub_query.approved_by = None
    sub_query.approved_at = None
    sub_query.reverted_by = actor
    sub_query.reverted_at = now
    sub_query.revert_reason = reason


def _apply_immediate(
    sub_query: SubQuery,
    record: QueryRecord,
    rule: ActionRule,
    command: ActionCommand,
    team: Team,
    now,
) -> str | None:
    extra = None
    if rule.action == "assign-branch":
        branch = (command.assigned_to_branch or "").strip()
        if not branch:
            raise InvalidAction("assignedToBranch is required for assign-branch")
        sub_query.assigned_to_branch = branch
        record.assigned_to_branch = branch
        extra = f"Assigned to branch: {branch}"
    elif rule.action == "escalate":
        record.priority = "high"
    if rule.terminal_status is not None:
        sub_query.status = rule.terminal_status
        _clear_proposal(sub_query)
    if rule.resolves:
        sub_query.is_resolved = True
        sub_query.resolved_by = command.actor
        sub_query.resolved_by_team = team.value
        sub_query.resolved_at = now
        sub_query.resolution_reason = command.response_text or command.remarks or rule.action
        if rule.mode is ActionMode.GATED:
            # Teams outside the gated list apply gated actions directly and count as approver.
            sub_query.approved_by = command.actor
            sub_query.approved_at = now
    if rule.action == "respond" and command.response_text:
        extra = f"Response: {command.response_text}"
    return extra


async def apply_action(db: AsyncSession, command: ActionCommand) -> ActionOutcome:
    rule = action_policy.get_rule(command.action)
    team = action_policy.normalize_team(command.team)
    actor = (command.actor or "").strip() or team.value
    if rule.action == "revert" and not (command.remarks or "").strip():
        raise InvalidAction("Remarks are required for revert action")

    sub_query, record = await query_records.get_sub_query(db, command.query_id)
    query_scoping.ensure_accessible(record, team, command.scope)
    before = model_snapshot(sub_query, include=_AUDITED_FIELDS)
    previous_status = sub_query.status
    now = query_records.utcnow()

    if rule.action == "revert":
        mode = ActionMode.IMMEDIATE
        _apply_revert(sub_query, actor, command.remarks.strip(), now)
        message = action_policy.render_applied(rule, actor, command.remarks)
    else:
        mode = action_policy.classify(rule.action, team)
        if mode is ActionMode.GATED:
            _stage_proposal(sub_query, rule, actor, team, now)
            message = action_policy.render_requested(rule, actor, team, command.remarks)
        else:
            extra = _apply_immediate(sub_query, record, rule, command, team, now)
            message = action_policy.render_applied(rule, actor, command.remarks, extra=extra)

    return await _commit_transition(
        db,
        record=record,
        sub_query=sub_query,
        action=rule.action,
        mode=mode,
        actor=actor,
        team=team,
        message=message,
        previous_status=previous_status,
        before=before,
        connection_id=command.connection_id,
    )


async def confirm_action(db: AsyncSession, command: ConfirmCommand) -> ActionOutcome:
    """Approve or reject the action a gated team proposed."""
    team = action_policy.normalize_team(command.team)
    if not action_policy.can_confirm(team):
        raise ApprovalNotAllowed(
            f"{team.value} cannot confirm proposed actions",
            details={"team": team.value},
        )
    decision = (command.decision or "").strip().lower()
    if decision not in {"approve", "reject"}:
        raise InvalidAction("decision must be 'approve' or 'reject'", details={"decision": command.decision})

    sub_query, record = await query_records.get_sub_query(db, command.query_id)
    query_scoping.ensure_accessible(record, team, command.scope)
    if sub_query.status != "waiting for approval" or not sub_query.proposed_action:
        raise ApprovalStateConflict(
            "Query is not waiting for approval",
            details={"status": sub_query.status},
        )
    rule = action_policy.get_rule(sub_query.proposed_action)
    before = model_snapshot(sub_query, include=_AUDITED_FIELDS)
    previous_status = sub_query.status
    approver = (command.approver or "").strip() or team.value
    now = query_records.utcnow()

    if decision == "approve":
        sub_query.status = rule.terminal_status
        sub_query.is_resolved = True
        sub_query.resolved_by = sub_query.proposed_by or approver
        sub_query.resolved_by_team = sub_query.proposed_by_team or team.value
        sub_query.resolved_at = now
        sub_query.resolution_reason = command.remarks or rule.action
        sub_query.approved_by = approver
        sub_query.approved_at = now
    else:
        sub_query.status = "pending"
    _clear_proposal(sub_query)
    message = action_policy.render_decision(rule, decision, approver, command.remarks)

    return await _commit_transition(
        db,
        record=record,
        sub_query=sub_query,
        action=rule.action if decision == "approve" else f"{rule.action}-rejected",
        mode=ActionMode.IMMEDIATE,
        actor=approver,
        team=team,
        message=message,
        previous_status=previous_status,
        before=before,
        connection_id=command.connection_id,
    )


async def _commit_transition(
    db: AsyncSession,
    *,
    record: QueryRecord,
    sub_query: SubQuery,
    action: str,
    mode: ActionMode,
    actor: str,
    team: Team,
    message: str,
    previous_status: str,
    before: dict[str, Any],
    connection_id: str | None,
) -> ActionOutcome:
    sub_query.updated_at = query_records.utcnow()
    record.status = query_records.derive_record_status(record.sub_queries)
    remark = remark_service.append_remark(
        record,
        text=message,
        author=actor,
        author_role=team.value.lower(),
        author_team=team.value,
        is_system=True,
    )
    db.add(remark)
    db.add(sub_query)
    db.add(record)
    update_action = "resolved" if record.status == "resolved" else "updated"
    update_log.record_update(db, record, query_id=str(sub_query.id), action=update_action, team=team.value)
    await db.commit()

    record_audit_event(
        actor=actor,
        team=team.value,
        action=f"sub_query.{action}",
        resource_type="sub_query",
        resource_id=str(sub_query.id),
        old_value=before,
        new_value=model_snapshot(sub_query, include=_AUDITED_FIELDS),
    )
    logger.info(
        "Query action applied query_id=%s action=%s mode=%s status=%s->%s",
        sub_query.id,
        action,
        mode.value,
        previous_status,
        sub_query.status,
    )

    outcome = ActionOutcome(
        sub_query=sub_query,
        record=record,
        remark=remark,
        action=action,
        mode=mode,
        previous_status=previous_status,
        message=message,
    )
    await _store_system_chat(db, outcome, team)
    await _broadcast(outcome, team, connection_id)
    if sub_query.status in sanctioned.SANCTION_CLEARING_STATUSES:
        outcome.sanctioned_removed = await _clear_sanctioned_case(record, connection_id, db)
    return outcome


async def _store_system_chat(db: AsyncSession, outcome: ActionOutcome, team: Team) -> None:
    try:
        await chat_store.add_message(
            db,
            query_id=str(outcome.sub_query.id),
            message=outcome.message,
            sender=outcome.remark.author,
            sender_role=team.value.lower(),
            team=team.value,
            action_type=outcome.action,
            is_system_message=True,
            details={"mode": outcome.mode.value, "recordId": str(outcome.record.id)},
            timestamp=outcome.remark.created_at,
        )
    except (SQLAlchemyError, QueryWorkflowError) as exc:
        await db.rollback()
        logger.warning("System chat message not stored query_id=%s: %s", outcome.sub_query.id, exc)


def _remark_payload(remark: QueryRemark) -> dict[str, Any]:
    return {
        "id": str(remark.id),
        "text": remark.text,
        "author": remark.author,
        "authorRole": remark.author_role,
        "authorTeam": remark.author_team,
        "isSystem": bool(remark.is_system),
        "timestamp": remark.created_at.isoformat() if remark.created_at else None,
    }


async def _broadcast(outcome: ActionOutcome, team: Team, connection_id: str | None) -> None:
    record = outcome.record
    sub_query = outcome.sub_query
    common = {
        "id": str(record.id),
        "queryId": str(sub_query.id),
        "appNo": record.app_no,
        "customerName": record.customer_name,
        "branch": record.branch,
        "markedForTeam": record.marked_for_team,
        "team": team.value,
    }
    update = await broadcast_update(
        {
            **common,
            "action": "resolved" if record.status == "resolved" else "updated",
            "status": sub_query.status,
            "recordStatus": record.status,
            "queryAction": outcome.action,
            "proposedAction": sub_query.proposed_action,
        },
        exclude_connection_id=connection_id,
    )
    added = await broadcast_update(
        {**common, "action": "message_added", "newMessage": _remark_payload(outcome.remark)},
        exclude_connection_id=connection_id,
    )
    outcome.broadcasts = [b for b in (update, added) if b is not None]


async def _clear_sanctioned_case(record: QueryRecord, connection_id: str | None, db: AsyncSession) -> bool:
    try:
        removed = await sanctioned.remove_if_fully_resolved(db, record.app_no)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Sanctioned case check failed app_no=%s: %s", record.app_no, exc)
        return False
    if removed:
        await broadcast_update(
            {"id": str(record.id), "appNo": record.app_no, "action": "sanctioned_case_removed"},
            exclude_connection_id=connection_id,
        )
    return removed
