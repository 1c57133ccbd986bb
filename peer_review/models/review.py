"""
Review models: the verdict recorded for one assignment.
"""
from typing import Dict
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from peer_review.database.base import Base, utcnow
from peer_review.models.enums import VerificationDecision

CRITERIA = ("clarity", "argument", "style", "moral_depth")


class PeerReviewReview(Base):
    """
    Scored review for a standard peer review assignment.
    """
    __tablename__ = "peer_review_reviews"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(
        Integer, ForeignKey("peer_review_assignments.id"), nullable=False, unique=True, index=True
    )
    clarity = Column(Integer, nullable=False)
    argument = Column(Integer, nullable=False)
    style = Column(Integer, nullable=False)
    moral_depth = Column(Integer, nullable=False)
    comment_100 = Column(String(100), nullable=False, default="")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    assignment = relationship("PeerReviewAssignment")

    def __repr__(self):
        return f"<PeerReviewReview(id={self.id}, assignment_id={self.assignment_id})>"

    @property
    def scores_dict(self) -> Dict[str, int]:
        """Get all criterion scores as a dictionary."""
        return {criterion: getattr(self, criterion) for criterion in CRITERIA}


class PeerVerificationReview(Base):
    """
    Vote cast on a peer verification assignment.
    """
    __tablename__ = "peer_reviews"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(
        Integer, ForeignKey("peer_assignments.id"), nullable=False, unique=True, index=True
    )
    decision = Column(SQLEnum(VerificationDecision), nullable=False)
    comment_100 = Column(String(100), nullable=False, default="")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    assignment = relationship("PeerVerificationAssignment")

    def __repr__(self):
        return f"<PeerVerificationReview(id={self.id}, decision={getattr(self.decision, 'value', self.decision)})>"
