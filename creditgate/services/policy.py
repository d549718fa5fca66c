"""Tier limits and per-tool costs, resolved once at startup."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from creditgate.config import CreditSettings, TierLimits
from creditgate.domain.models import UNLIMITED, TierPolicy
from creditgate.services.exceptions import UnknownTool


class TierPolicyTable:
    """Read-only mapping from subscription tier to its credit ceilings."""

    def __init__(self, tiers: Mapping[str, TierLimits], fallback_tier: str = "free") -> None:
        if fallback_tier not in tiers:
            raise ValueError(f"fallback tier {fallback_tier!r} is not configured")
        policies = {}
        for tier, limits in tiers.items():
            for value in (limits.daily, limits.monthly):
                if value < 0 and value != UNLIMITED:
                    raise ValueError(f"invalid limit {value} for tier {tier!r}")
            policies[tier] = TierPolicy(
                tier=tier, daily_limit=limits.daily, monthly_limit=limits.monthly
            )
        self._policies = MappingProxyType(policies)
        self.fallback_tier = fallback_tier

    @classmethod
    def from_settings(cls, settings: CreditSettings) -> "TierPolicyTable":
        return cls(settings.tiers, fallback_tier=settings.fallback_tier)

    def policy_for(self, tier: str | None) -> TierPolicy:
        """Unknown tiers get the fallback (most restrictive) policy."""

        if tier is not None and tier in self._policies:
            return self._policies[tier]
        return self._policies[self.fallback_tier]

    @property
    def tiers(self) -> tuple[str, ...]:
        return tuple(self._policies)

    def __contains__(self, tier: object) -> bool:
        return tier in self._policies


class ToolCostTable:
    """Read-only mapping from tool identifier to its credit cost.

    ``unknown_cost`` decides what happens to tools that are not listed: ``None``
    rejects them with :class:`UnknownTool`, an integer charges that amount.
    """

    def __init__(self, costs: Mapping[str, int], unknown_cost: int | None = None) -> None:
        negative = sorted(tool for tool, cost in costs.items() if cost < 0)
        if negative:
            raise ValueError(f"tool costs must be >= 0: {', '.join(negative)}")
        if unknown_cost is not None and unknown_cost < 0:
            raise ValueError("unknown_cost must be >= 0")
        self._costs = MappingProxyType(dict(costs))
        self.unknown_cost = unknown_cost

    @classmethod
    def from_settings(cls, settings: CreditSettings) -> "ToolCostTable":
        return cls(settings.tool_costs, unknown_cost=settings.unknown_tool_cost)

    def cost_for(self, tool_type: str) -> int:
        cost = self._costs.get(tool_type)
        if cost is not None:
            return cost
        if self.unknown_cost is None:
            raise UnknownTool(tool_type)
        return self.unknown_cost

    def __contains__(self, tool_type: object) -> bool:
        return tool_type in self._costs

    @property
    def tools(self) -> tuple[str, ...]:
        return tuple(self._costs)


__all__ = ["TierPolicyTable", "ToolCostTable"]
