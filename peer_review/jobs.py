"""
Lifecycle batch jobs, run by an external scheduler through main.py.
"""
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Tuple

from peer_review.services.factory import PeerReviewServices
from peer_review.services.results import BatchResult

logger = logging.getLogger(__name__)

JobRunner = Callable[[PeerReviewServices], Awaitable[BatchResult]]

# Expiry runs before reassignment so a single run both expires and replaces.
JOBS: Dict[str, JobRunner] = {
    "review-expire": lambda s: s.review_deadlines.check_expired_assignments(),
    "review-reassign": lambda s: s.review_deadlines.reassign_expired_assignments(),
    "review-warnings": lambda s: s.review_deadlines.send_deadline_warnings(),
    "review-reminders": lambda s: s.review_deadlines.send_final_reminders(),
    "verification-expire": lambda s: s.verification_deadlines.check_expired_assignments(),
    "verification-reassign": lambda s: s.verification_deadlines.reassign_expired_assignments(),
    "verification-warnings": lambda s: s.verification_deadlines.send_deadline_warnings(),
    "verification-reminders": lambda s: s.verification_deadlines.send_final_reminders(),
    "verification-incomplete": lambda s: s.verification_deadlines.check_incomplete_verifications(),
}


async def run_jobs(services: PeerReviewServices, names: Iterable[str] = ()) -> List[Tuple[str, BatchResult]]:
    """
    Run the named jobs in order (all jobs when ``names`` is empty).

    A job whose initial query fails is logged and reported with the error;
    the remaining jobs still run.
    """
    names = list(names) or list(JOBS)
    unknown = [name for name in names if name not in JOBS]
    if unknown:
        raise ValueError(f"Unknown jobs: {', '.join(unknown)}. Available: {', '.join(JOBS)}")

    results = []
    for name in names:
        logger.info(f"Running job {name}")
        try:
            result = await JOBS[name](services)
        except Exception as e:
            logger.error(f"Job {name} failed: {e}")
            # the session is shared; clear the aborted transaction for the next job
            try:
                await services.session.rollback()
            except Exception as rollback_error:
                logger.error(f"Rollback after job {name} failed: {rollback_error}")
            result = BatchResult(errors=[f"Job failed: {e}"])
        for error in result.errors:
            logger.warning(f"[{name}] {error}")
        logger.info(f"Job {name} finished: count={result.count}, errors={len(result.errors)}")
        results.append((name, result))
    return results
