"""
Repository layer for data access.
"""
from .base_repository import BaseRepository
from .user_repository import UserRepository
from .submission_repository import SubmissionRepository
from .assignment_repository import (
    AssignmentRepository,
    PeerReviewAssignmentRepository,
    VerificationAssignmentRepository,
)
from .review_repository import (
    ReviewRepository,
    PeerReviewReviewRepository,
    VerificationReviewRepository,
)
from .payment_repository import PaymentRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "SubmissionRepository",
    "AssignmentRepository",
    "PeerReviewAssignmentRepository",
    "VerificationAssignmentRepository",
    "ReviewRepository",
    "PeerReviewReviewRepository",
    "VerificationReviewRepository",
    "PaymentRepository",
]
