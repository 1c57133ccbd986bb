"""
Database models for the peer review engine.
"""
from .enums import (
    SubmissionStatus,
    AssignmentStatus,
    VerificationDecision,
    PaymentPurpose,
    PaymentStatus,
    ELIGIBLE_SUBMISSION_STATUSES,
    VERIFICATION_PANEL_STATUSES,
)
from .user import User
from .submission import Submission
from .assignment import PeerReviewAssignment, PeerVerificationAssignment
from .review import PeerReviewReview, PeerVerificationReview, CRITERIA
from .payment import Payment

__all__ = [
    "SubmissionStatus",
    "AssignmentStatus",
    "VerificationDecision",
    "PaymentPurpose",
    "PaymentStatus",
    "ELIGIBLE_SUBMISSION_STATUSES",
    "VERIFICATION_PANEL_STATUSES",
    "User",
    "Submission",
    "PeerReviewAssignment",
    "PeerVerificationAssignment",
    "PeerReviewReview",
    "PeerVerificationReview",
    "CRITERIA",
    "Payment",
]
