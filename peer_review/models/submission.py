"""
Submission model for contest entries.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from peer_review.database.base import Base, utcnow
from peer_review.models.enums import SubmissionStatus


class Submission(Base):
    """
    Submission model representing a contest entry.

    ``score_peer`` and ``peer_verification_result`` are written only by the
    scoring and lifecycle services.
    """
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)
    contest_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    submission_code = Column(String(32), unique=True, nullable=False)
    title = Column(String(255), nullable=False, default="")
    status = Column(SQLEnum(SubmissionStatus), default=SubmissionStatus.PENDING, nullable=False, index=True)
    score_peer = Column(Float, nullable=True)
    peer_verification_result = Column(JSON, nullable=True)
    verification_requested_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="submissions")

    def __repr__(self):
        return f"<Submission(id={self.id}, code='{self.submission_code}', status={getattr(self.status, 'value', self.status)})>"
