import pytest

from app.core.settings import settings
from app.schemas.common import Team
from app.services import action_policy
from app.services.action_policy import ActionMode
from app.services.query_errors import InvalidAction


@pytest.mark.parametrize("team", ["Operations", "Sales", "Credit", "Admin"])
def test_waiver_is_never_gated(team):
    assert action_policy.classify("waiver", team) is ActionMode.IMMEDIATE


@pytest.mark.parametrize("action", ["approve", "deferral", "otc"])
@pytest.mark.parametrize("team", ["Operations", "Sales", "Credit"])
def test_gated_actions_for_gating_teams(action, team):
    assert action_policy.classify(action, team) is ActionMode.GATED


def test_admin_applies_gated_actions_directly():
    assert action_policy.classify("approve", Team.ADMIN) is ActionMode.IMMEDIATE


def test_gating_teams_come_from_settings(monkeypatch):
    monkeypatch.setattr(settings, "gated_action_teams_csv", "Sales")
    assert action_policy.classify("approve", "Operations") is ActionMode.IMMEDIATE
    assert action_policy.classify("approve", "Sales") is ActionMode.GATED


def test_aliases_and_case_resolve_to_rules():
    assert action_policy.get_rule("Waived").action == "waiver"
    assert action_policy.get_rule("defer").action == "deferral"
    assert action_policy.get_rule("assign_branch").action == "assign-branch"


def test_unknown_action_rejected():
    with pytest.raises(InvalidAction) as exc:
        action_policy.get_rule("teleport")
    assert exc.value.status_code == 400
    assert "waiver" in exc.value.details["allowed"]


def test_team_names_normalize():
    assert action_policy.normalize_team("operations") is Team.OPERATIONS
    assert action_policy.normalize_team(" SALES ") is Team.SALES
    with pytest.raises(InvalidAction):
        action_policy.normalize_team("Marketing")


def test_only_approver_teams_confirm():
    assert action_policy.can_confirm("Operations")
    assert action_policy.can_confirm("Admin")
    assert not action_policy.can_confirm("Sales")


def test_messages_fall_back_when_no_remarks():
    rule = action_policy.get_rule("waiver")
    text = action_policy.render_applied(rule, "Ravi", None)
    assert text.startswith("Query WAIVED by Ravi")
    assert "No additional remarks" in text
