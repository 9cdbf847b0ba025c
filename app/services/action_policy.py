from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.core.settings import settings
from app.schemas.common import Team
from app.services.query_errors import InvalidAction


class ActionMode(str, Enum):
    IMMEDIATE = "immediate"
    GATED = "gated"


@dataclass(frozen=True)
class ActionRule:
    action: str
    mode: ActionMode
    # None leaves the sub-query status untouched.
    terminal_status: str | None
    verb: str
    resolves: bool = True


ACTION_RULES: dict[str, ActionRule] = {
    rule.action: rule
    for rule in (
        ActionRule("approve", ActionMode.GATED, "approved", "APPROVED"),
        ActionRule("deferral", ActionMode.GATED, "deferred", "DEFERRED"),
        ActionRule("otc", ActionMode.GATED, "otc", "marked as OTC"),
        ActionRule("waiver", ActionMode.IMMEDIATE, "waived", "WAIVED"),
        ActionRule("revert", ActionMode.IMMEDIATE, "pending", "REVERTED", resolves=False),
        ActionRule("respond", ActionMode.IMMEDIATE, "resolved", "RESPONDED"),
        ActionRule("assign-branch", ActionMode.IMMEDIATE, None, "ASSIGNED TO BRANCH", resolves=False),
        ActionRule("escalate", ActionMode.IMMEDIATE, None, "ESCALATED", resolves=False),
    )
}

ACTION_ALIASES = {
    "approved": "approve",
    "defer": "deferral",
    "deferred": "deferral",
    "waive": "waiver",
    "waived": "waiver",
    "assign_branch": "assign-branch",
    "assign": "assign-branch",
}

TERMINAL_STATUSES = frozenset({"resolved", "approved", "deferred", "otc", "waived"})


def normalize_team(team: str | Team | None) -> Team:
    if isinstance(team, Team):
        return team
    try:
        return Team(team or "")
    except ValueError as exc:
        raise InvalidAction(f"Unknown team '{team}'", details={"team": team}) from exc


def get_rule(action: str | None) -> ActionRule:
    key = (action or "").strip().lower()
    key = ACTION_ALIASES.get(key, key)
    rule = ACTION_RULES.get(key)
    if rule is None:
        raise InvalidAction(
            f"Invalid action '{action}'",
            details={"allowed": sorted(ACTION_RULES)},
        )
    return rule


def classify(action: str, team: str | Team | None) -> ActionMode:
    """Decide whether ``team`` may apply ``action`` directly or must request approval."""
    rule = get_rule(action)
    if rule.mode is ActionMode.IMMEDIATE:
        return ActionMode.IMMEDIATE
    if normalize_team(team).value in settings.gated_action_teams:
        return ActionMode.GATED
    return ActionMode.IMMEDIATE


def can_confirm(team: str | Team | None) -> bool:
    return normalize_team(team).value in settings.approver_teams


def render_applied(rule: ActionRule, actor: str, remarks: str | None, *, extra: str | None = None) -> str:
    lines = [f"Query {rule.verb} by {actor}"]
    if extra:
        lines.append(extra)
    lines.append(f"Remarks: {remarks or 'No additional remarks'}")
    return "\n".join(lines)


def render_requested(rule: ActionRule, actor: str, team: Team, remarks: str | None) -> str:
    return "\n".join(
        [
            f"Approval requested by {actor} ({team.value}): {rule.action.upper()}",
            f"Remarks: {remarks or 'No additional remarks'}",
        ]
    )


def render_decision(rule: ActionRule, decision: str, approver: str, remarks: str | None) -> str:
    outcome = "confirmed" if decision == "approve" else "rejected"
    return "\n".join(
        [
            f"Proposed {rule.action.upper()} {outcome} by {approver}",
            f"Remarks: {remarks or 'No additional remarks'}",
        ]
    )
