"""
End of the peer review phase: final scores, obligation enforcement and
finalist selection.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from peer_review.config.settings import PeerReviewPolicy
from peer_review.database.base import utcnow
from peer_review.repositories.assignment_repository import PeerReviewAssignmentRepository
from peer_review.repositories.submission_repository import SubmissionRepository
from peer_review.services.results import BatchResult
from peer_review.services.scoring_service import ScoringService

logger = logging.getLogger(__name__)


@dataclass
class Finalist:
    """A ranked finalist"""
    rank: int
    submission_id: int
    submission_code: str
    user_id: int
    score_peer: float


@dataclass
class PhaseEndResult:
    """Outcome of closing the peer review phase"""
    scores: BatchResult
    disqualified: BatchResult
    finalists: List[Finalist] = field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        return self.scores.errors + self.disqualified.errors


class PhaseEndService:
    """
    Closes the peer review phase of a contest
    """

    def __init__(
        self,
        submission_repo: SubmissionRepository,
        assignment_repo: PeerReviewAssignmentRepository,
        scoring_service: ScoringService,
        policy: Optional[PeerReviewPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.submission_repo = submission_repo
        self.assignment_repo = assignment_repo
        self.scoring_service = scoring_service
        self.policy = policy or PeerReviewPolicy()
        self.clock = clock

    async def finalize_all_scores(self, contest_id: int) -> BatchResult:
        """Recompute the score of every eligible submission with a completed review."""
        result = BatchResult()
        eligible = {s.id for s in await self.submission_repo.get_eligible_by_contest(contest_id)}
        reviewed = await self.assignment_repo.get_submission_ids_with_done(contest_id)
        targets = [submission_id for submission_id in reviewed if submission_id in eligible]
        logger.info(f"Finalizing scores for {len(targets)} submissions in contest {contest_id}")

        for submission_id in targets:
            try:
                await self.scoring_service.calculate_peer_score(submission_id)
                result.count += 1
            except Exception as e:
                logger.error(f"Final score for submission {submission_id} failed: {e}")
                result.add_error(f"Scoring error for submission {submission_id}: {e}")
        return result

    async def enforce_review_obligations(self, contest_id: int) -> BatchResult:
        """Disqualify the entries of reviewers who left any assignment unfinished."""
        result = BatchResult()
        offenders = await self.assignment_repo.get_reviewers_with_unfinished_work(contest_id)
        if not offenders:
            return result
        logger.info(f"{len(offenders)} reviewers in contest {contest_id} did not finish their reviews")
        try:
            result.count = await self.submission_repo.disqualify_users(
                contest_id, sorted(offenders), now=self.clock()
            )
        except Exception as e:
            await self.submission_repo.session.rollback()
            logger.error(f"Disqualification in contest {contest_id} failed: {e}")
            result.add_error(f"Disqualification error: {e}")
        return result

    async def select_finalists(self, contest_id: int, limit: Optional[int] = None) -> List[Finalist]:
        """Top eligible submissions by peer score, ranked from 1."""
        limit = limit or self.policy.finalist_count
        top = await self.submission_repo.get_top_scored(contest_id, limit)
        return [
            Finalist(
                rank=index,
                submission_id=s.id,
                submission_code=s.submission_code,
                user_id=s.user_id,
                score_peer=s.score_peer,
            )
            for index, s in enumerate(top, start=1)
        ]

    async def process_phase_end(self, contest_id: int) -> PhaseEndResult:
        """Scores, then disqualifications, then finalists."""
        logger.info(f"Processing peer review phase end for contest {contest_id}")
        scores = await self.finalize_all_scores(contest_id)
        disqualified = await self.enforce_review_obligations(contest_id)
        finalists = await self.select_finalists(contest_id)
        logger.info(
            f"Phase end for contest {contest_id}: {scores.count} scored, "
            f"{disqualified.count} disqualified, {len(finalists)} finalists"
        )
        return PhaseEndResult(scores=scores, disqualified=disqualified, finalists=finalists)
