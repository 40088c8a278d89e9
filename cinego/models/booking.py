"""
Booking model
"""

from sqlalchemy import Column, String, ForeignKey, Numeric, Boolean, DateTime, Integer, JSON, Uuid
from sqlalchemy.orm import relationship

from cinego.models.base import BaseModel


class Booking(BaseModel):
    """
    One user's hold on a set of seats for a show, unpaid until the payment
    provider confirms it.
    """
    __tablename__ = "bookings"

    user_id = Column(String(255), nullable=False, index=True)  # Identity provider id
    user_email = Column(String(255))
    show_id = Column(Uuid(as_uuid=True), ForeignKey("shows.id"), nullable=False, index=True)
    seat_ids = Column(JSON, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    is_paid = Column(Boolean, default=False, nullable=False, index=True)
    paid_at = Column(DateTime(timezone=True))

    # Checkout session reference, cleared once paid
    payment_link = Column(String(1024))
    checkout_session_id = Column(String(255), index=True)

    # What was actually sent to the payment provider
    charge_amount = Column(Integer)  # Minor units of charge_currency
    charge_currency = Column(String(3))
    exchange_rate = Column(Numeric(12, 6))

    # Relationships
    show = relationship("Show")

    def __repr__(self):
        return f"<Booking(id={self.id}, show_id={self.show_id}, seats={self.seat_ids}, paid={self.is_paid}, amount={self.amount})>"
