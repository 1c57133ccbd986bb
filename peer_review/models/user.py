"""
User model for contest participants and reviewers.
"""
from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from peer_review.database.base import Base, utcnow


class User(Base):
    """
    User model representing a contest participant.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    display_id = Column(String(64), unique=True, nullable=False, index=True)
    telegram_id = Column(BigInteger, unique=True, nullable=True, index=True)
    is_banned = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    submissions = relationship("Submission", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, display_id='{self.display_id}', banned={self.is_banned})>"

    @property
    def contact_address(self):
        """Address the notifier delivers to, or None when the user cannot be reached."""
        return self.telegram_id
