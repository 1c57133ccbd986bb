"""
Assignment models linking one reviewer to one submission.

Standard peer review and peer verification keep their assignments in
separate tables with identical columns.
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship, declared_attr
from peer_review.database.base import Base, utcnow
from peer_review.models.enums import AssignmentStatus


class AssignmentMixin:
    """Columns and behaviour shared by both assignment tables."""

    id = Column(Integer, primary_key=True, index=True)
    status = Column(SQLEnum(AssignmentStatus), default=AssignmentStatus.PENDING, nullable=False, index=True)
    assigned_at = Column(DateTime, default=utcnow, nullable=False)
    deadline = Column(DateTime, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)
    warning_sent_at = Column(DateTime, nullable=True)
    reminder_sent_at = Column(DateTime, nullable=True)

    @declared_attr
    def submission_id(cls):
        return Column(Integer, ForeignKey("submissions.id"), nullable=False, index=True)

    @declared_attr
    def reviewer_user_id(cls):
        return Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    @declared_attr
    def reassigned_from_id(cls):
        # unique: an expired assignment is replaced at most once
        return Column(
            Integer,
            ForeignKey(f"{cls.__tablename__}.id"),
            nullable=True,
            unique=True,
        )

    @declared_attr
    def submission(cls):
        return relationship("Submission")

    @declared_attr
    def reviewer(cls):
        return relationship("User")

    def __repr__(self):
        return (
            f"<{type(self).__name__}(id={self.id}, submission_id={self.submission_id}, "
            f"reviewer={self.reviewer_user_id}, status={getattr(self.status, 'value', self.status)})>"
        )


class PeerReviewAssignment(AssignmentMixin, Base):
    """Standard peer review assignment (scored on four criteria)."""
    __tablename__ = "peer_review_assignments"


class PeerVerificationAssignment(AssignmentMixin, Base):
    """Peer verification assignment (eliminate / reinstate vote)."""
    __tablename__ = "peer_assignments"
