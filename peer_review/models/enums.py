"""
Enumeration types shared by the peer review models and services.
"""
from enum import Enum


class SubmissionStatus(Enum):
    """Lifecycle status of a contest submission."""
    DRAFT = "DRAFT"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    REINSTATED = "REINSTATED"
    DISQUALIFIED = "DISQUALIFIED"
    ELIMINATED = "ELIMINATED"
    ELIMINATED_ACCEPTED = "ELIMINATED_ACCEPTED"
    PEER_VERIFICATION_PENDING = "PEER_VERIFICATION_PENDING"


# Submissions that take part in peer review, both as reviewable entries and
# as proof that their owner may review others.
ELIGIBLE_SUBMISSION_STATUSES = (SubmissionStatus.SUBMITTED, SubmissionStatus.REINSTATED)

# Owners of these submissions may sit on a peer verification panel.
VERIFICATION_PANEL_STATUSES = (SubmissionStatus.SUBMITTED, SubmissionStatus.ELIMINATED)


class AssignmentStatus(Enum):
    """Status of a review assignment."""
    PENDING = "PENDING"
    DONE = "DONE"
    EXPIRED = "EXPIRED"


class VerificationDecision(Enum):
    """A verification reviewer's vote."""
    ELIMINATE = "ELIMINATE"
    REINSTATE = "REINSTATE"


class PaymentPurpose(Enum):
    """What a payment was made for."""
    ENTRY_FEE = "ENTRY_FEE"
    VOTE_BUNDLE = "VOTE_BUNDLE"
    CERTIFICATION_FEE = "CERTIFICATION_FEE"
    PEER_VERIFICATION = "PEER_VERIFICATION"
    DONATION = "DONATION"
    OTHER = "OTHER"


class PaymentStatus(Enum):
    """Payment bookkeeping status."""
    CREATED = "CREATED"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
