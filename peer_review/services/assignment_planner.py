"""
Assignment planning for standard peer review.

Pure allocation: given a contest's submissions and users, decide which reviewer
reviews which submission. Nothing here touches the database.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Any, Dict, Sequence

from peer_review.models.enums import ELIGIBLE_SUBMISSION_STATUSES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedAssignment:
    """One reviewer -> submission pair to be inserted as PENDING"""
    submission_id: int
    reviewer_user_id: int
    assigned_at: datetime
    deadline: datetime

    def as_row(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "reviewer_user_id": self.reviewer_user_id,
            "assigned_at": self.assigned_at,
            "deadline": self.deadline,
        }


@dataclass
class AssignmentPlan:
    """Planner output with the per-submission review counts it produced"""
    assignments: List[PlannedAssignment] = field(default_factory=list)
    reviewer_ids: List[int] = field(default_factory=list)
    submission_ids: List[int] = field(default_factory=list)
    review_counts: Dict[int, int] = field(default_factory=dict)

    @property
    def spread(self) -> int:
        """Max minus min review count across eligible submissions."""
        if not self.review_counts:
            return 0
        counts = self.review_counts.values()
        return max(counts) - min(counts)

    def assignments_by_reviewer(self) -> Dict[int, List[PlannedAssignment]]:
        grouped: Dict[int, List[PlannedAssignment]] = {}
        for assignment in self.assignments:
            grouped.setdefault(assignment.reviewer_user_id, []).append(assignment)
        return grouped


def eligible_submissions(submissions: Iterable[Any]) -> List[Any]:
    """Submissions in SUBMITTED or REINSTATED, in input order."""
    return [s for s in submissions if s.status in ELIGIBLE_SUBMISSION_STATUSES]


def eligible_reviewers(submissions: Sequence[Any], users: Iterable[Any]) -> List[Any]:
    """Non-banned users owning at least one eligible submission, each listed once."""
    owner_ids = {s.user_id for s in eligible_submissions(submissions)}
    reviewers = []
    seen = set()
    for user in users:
        if user.id in seen or user.is_banned or user.id not in owner_ids:
            continue
        seen.add(user.id)
        reviewers.append(user)
    return reviewers


def plan_assignments(
    submissions: Sequence[Any],
    users: Iterable[Any],
    reviews_per_reviewer: int,
    now: datetime,
    deadline_days: int = 7,
) -> AssignmentPlan:
    """
    Give every eligible reviewer up to ``reviews_per_reviewer`` submissions.

    Each reviewer takes the non-self submissions with the lowest running review
    count, ties kept in input order. A reviewer with fewer candidates than
    ``reviews_per_reviewer`` gets all of them. Empty pools give an empty plan.
    """
    pool = eligible_submissions(submissions)
    reviewers = eligible_reviewers(submissions, users)
    plan = AssignmentPlan(
        reviewer_ids=[r.id for r in reviewers],
        submission_ids=[s.id for s in pool],
    )
    if not pool or not reviewers or reviews_per_reviewer <= 0:
        logger.info(
            f"Nothing to plan: {len(pool)} eligible submissions, {len(reviewers)} eligible reviewers"
        )
        return plan

    deadline = now + timedelta(days=deadline_days)
    counts: Counter = Counter({s.id: 0 for s in pool})

    for reviewer in reviewers:
        candidates = [s for s in pool if s.user_id != reviewer.id]
        # sorted() is stable, so equal counts keep input order
        chosen = sorted(candidates, key=lambda s: counts[s.id])[:reviews_per_reviewer]
        for submission in chosen:
            counts[submission.id] += 1
            plan.assignments.append(PlannedAssignment(
                submission_id=submission.id,
                reviewer_user_id=reviewer.id,
                assigned_at=now,
                deadline=deadline,
            ))

    plan.review_counts = dict(counts)
    logger.info(
        f"Planned {len(plan.assignments)} assignments for {len(reviewers)} reviewers "
        f"over {len(pool)} submissions (spread {plan.spread})"
    )
    return plan
