"""
Payment model (internal bookkeeping only).
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Enum as SQLEnum
from peer_review.database.base import Base, utcnow
from peer_review.models.enums import PaymentPurpose, PaymentStatus


class Payment(Base):
    """
    Payment record; gateway-side refunds are executed manually outside this system.
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id"), nullable=True, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    purpose = Column(SQLEnum(PaymentPurpose), nullable=False)
    status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.CREATED, nullable=False)
    external_ref = Column(String(255), nullable=True)
    provider = Column(String(32), nullable=False, default="stripe")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Payment(id={self.id}, purpose={getattr(self.purpose, 'value', self.purpose)}, status={getattr(self.status, 'value', self.status)})>"
