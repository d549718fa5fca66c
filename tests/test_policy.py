"""Tier policy and tool cost tables."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from creditgate.config import CreditSettings, TierLimits
from creditgate.services.exceptions import UnknownTool
from creditgate.services.policy import TierPolicyTable, ToolCostTable


def test_policy_lookup_and_fallback(policies):
    pro = policies.policy_for("pro")
    assert (pro.daily_limit, pro.monthly_limit) == (100, 500)

    fallback = policies.policy_for("platinum")
    assert fallback.tier == "free"
    assert fallback.daily_limit == 10

    assert policies.policy_for(None).tier == "free"


def test_enterprise_is_unlimited(policies):
    enterprise = policies.policy_for("enterprise")
    assert enterprise.unlimited is True
    assert policies.policy_for("free").unlimited is False


def test_policy_is_frozen(policies):
    policy = policies.policy_for("free")
    with pytest.raises(ValidationError):
        policy.daily_limit = 1_000


def test_tier_limits_reject_negative_values_other_than_sentinel():
    assert TierLimits(daily=-1, monthly=0).daily == -1
    with pytest.raises(ValidationError):
        TierLimits(daily=-2, monthly=10)


def test_fallback_tier_must_exist():
    with pytest.raises(ValidationError):
        CreditSettings(tiers={"pro": TierLimits(daily=1, monthly=1)}, fallback_tier="free")
    with pytest.raises(ValueError):
        TierPolicyTable({"pro": TierLimits(daily=1, monthly=1)}, fallback_tier="free")


def test_default_settings_match_platform_tables():
    settings = CreditSettings()
    table = TierPolicyTable.from_settings(settings)
    assert table.policy_for("free").daily_limit == 25
    assert table.policy_for("free").monthly_limit == 50
    assert table.policy_for("enterprise").unlimited

    costs = ToolCostTable.from_settings(settings)
    assert costs.cost_for("ai_resume") == 3
    assert costs.cost_for("pdf_merge") == 0


def test_unknown_tool_is_rejected_by_default(costs):
    assert costs.cost_for("ai_chat") == 2
    assert costs.cost_for("json_format") == 0
    with pytest.raises(UnknownTool):
        costs.cost_for("teleport")


def test_unknown_tool_cost_can_be_configured():
    costs = ToolCostTable({"ai_chat": 2}, unknown_cost=1)
    assert costs.cost_for("teleport") == 1


def test_negative_tool_costs_rejected():
    with pytest.raises(ValueError):
        ToolCostTable({"ai_chat": -2})
    with pytest.raises(ValidationError):
        CreditSettings(tool_costs={"ai_chat": -2})
