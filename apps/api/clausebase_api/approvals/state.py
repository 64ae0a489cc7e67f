"""Vote aggregation rules.

Status is a function of counts only. Any approval outranks any number of
rejections, and auto-merge needs every current member to approve. Member
weights are not consulted.
"""

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class VoteTally:
    """Aggregated votes for one version against current membership."""

    approval_count: int
    rejection_count: int
    total_members: int

    @property
    def status(self) -> str:
        if self.approval_count > 0:
            return "approved"
        if self.rejection_count > 0:
            return "rejected"
        return "pending"

    @property
    def should_merge(self) -> bool:
        # Zero members never counts as unanimous
        return self.approval_count > 0 and self.approval_count == self.total_members


def tally_votes(votes: Iterable[str], total_members: int) -> VoteTally:
    """Count approve/reject votes."""
    approvals = 0
    rejections = 0
    for vote in votes:
        if vote == "approve":
            approvals += 1
        else:
            rejections += 1
    return VoteTally(approvals, rejections, total_members)
