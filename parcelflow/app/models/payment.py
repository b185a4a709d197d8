"""
Payment database model.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime
from parcelflow.app.db.session import Base
from parcelflow.app.core.timeutils import utcnow


class Payment(Base):
    """
    Settlement record for one gateway payment.

    ``transaction_id`` is the gateway payment intent and is unique, so a
    payment can be recorded at most once however often confirmation runs.
    Never mutated after insert.
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    transaction_id = Column(String(255), unique=True, nullable=False, index=True)

    # Financials
    amount = Column(Float, nullable=False)
    currency = Column(String(10), nullable=False)
    payment_status = Column(String(20), nullable=False)

    # Linkage
    customer_email = Column(String(255), nullable=True, index=True)
    parcel_id = Column(Integer, nullable=False, index=True)
    parcel_name = Column(String(255), nullable=True)
    tracking_id = Column(String(64), nullable=False, index=True)

    paid_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<Payment(id={self.id}, transaction='{self.transaction_id}', amount={self.amount})>"
