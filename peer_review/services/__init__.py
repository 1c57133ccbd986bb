# Business logic services package

from .score_aggregator import trimmed_mean, overall_score, aggregate_reviews, CriterionMeans
from .review_validator import validate_review, ValidationResult
from .assignment_planner import plan_assignments, AssignmentPlan, PlannedAssignment
from .retry_policy import RetryPolicy
from .reviewer_cache import ReviewerCache
from .reviewer_lookup import ReviewerLookup
from .results import BatchResult
from .scoring_service import ScoringService
from .review_service import ReviewService, CompletionStatus, ReviewSubmissionResult
from .assignment_service import AssignmentService, AssignmentResult
from .deadline_service import DeadlineService, VerificationDeadlineService
from .verification_results_service import (
    VerificationResultsService, VoteBreakdown, VerificationOutcome, determine_outcome
)
from .phase_end_service import PhaseEndService, PhaseEndResult, Finalist
from .factory import build_services, PeerReviewServices

__all__ = [
    'trimmed_mean',
    'overall_score',
    'aggregate_reviews',
    'CriterionMeans',
    'validate_review',
    'ValidationResult',
    'plan_assignments',
    'AssignmentPlan',
    'PlannedAssignment',
    'RetryPolicy',
    'ReviewerCache',
    'ReviewerLookup',
    'BatchResult',
    'ScoringService',
    'ReviewService',
    'CompletionStatus',
    'ReviewSubmissionResult',
    'AssignmentService',
    'AssignmentResult',
    'DeadlineService',
    'VerificationDeadlineService',
    'VerificationResultsService',
    'VoteBreakdown',
    'VerificationOutcome',
    'determine_outcome',
    'PhaseEndService',
    'PhaseEndResult',
    'Finalist',
    'build_services',
    'PeerReviewServices'
]
