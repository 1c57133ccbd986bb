"""
Payment repository (internal bookkeeping only).
"""
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, desc
from peer_review.database.base import utcnow
from peer_review.models.payment import Payment
from peer_review.models.enums import PaymentPurpose, PaymentStatus
from peer_review.repositories.base_repository import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    """
    Repository for Payment model operations.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Payment, session)

    async def get_paid_verification_payment(self, submission_id: int) -> Optional[Payment]:
        """Latest paid peer verification payment for a submission."""
        result = await self.session.execute(
            select(Payment)
            .where(
                Payment.submission_id == submission_id,
                Payment.purpose == PaymentPurpose.PEER_VERIFICATION,
                Payment.status == PaymentStatus.PAID,
            )
            .order_by(desc(Payment.created_at), desc(Payment.id))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def mark_refunded(self, payment_id: int, now: Optional[datetime] = None) -> bool:
        """Flip a PAID payment to REFUNDED; False if it was not PAID."""
        result = await self.session.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == PaymentStatus.PAID)
            .values(status=PaymentStatus.REFUNDED, updated_at=now or utcnow())
        )
        await self.session.commit()
        return result.rowcount > 0
