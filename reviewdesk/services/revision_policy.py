"""Revision budget decisions.

Both call sites (a new upload on an existing container, and a reviewer asking
for changes) go through `evaluate` so soft and strict containers behave the
same way no matter which route the request came in on.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from reviewdesk.models import Policy


class ReviewEvent(str, enum.Enum):
    upload = "upload"
    request_changes = "request_changes"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    over_budget: bool = False
    reason: Optional[str] = None


def budget_exhausted(used: int, budget: Optional[int]) -> bool:
    if budget is None:
        return False
    return (used or 0) >= budget


def evaluate(policy: Policy, used: int, budget: Optional[int], event: ReviewEvent) -> Decision:
    if budget is None:
        return Decision(allowed=True)

    exhausted = budget_exhausted(used, budget)
    policy = Policy(policy)
    event = ReviewEvent(event)

    if policy is Policy.soft:
        # budget is informational only; the caller still counts usage
        return Decision(allowed=True, over_budget=exhausted)

    if policy is Policy.strict:
        if exhausted:
            return Decision(
                allowed=False,
                over_budget=True,
                reason=f"{event.value} rejected: {used}/{budget} revisions used",
            )
        return Decision(allowed=True)

    raise ValueError(f"unknown review policy: {policy!r}")


__all__ = ["ReviewEvent", "Decision", "budget_exhausted", "evaluate"]
