"""Booking slot claim satellite table."""

from __future__ import annotations

from sqlalchemy import Column, Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from ..core.ulid_helper import generate_ulid
from ..database import Base


class BookingSlotClaim(Base):
    """
    One row per court hour held by a live booking.

    The unique (booking_date, slot_hour) pair makes overlapping bookings
    impossible to commit, even when two requests pass the conflict
    check at the same time.
    """

    __tablename__ = "booking_slot_claims"
    __table_args__ = (
        UniqueConstraint("booking_date", "slot_hour", name="uq_booking_slot_claims_date_hour"),
    )

    id = Column(String(26), primary_key=True, default=generate_ulid)
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    booking_date = Column(Date, nullable=False)
    slot_hour = Column(Integer, nullable=False)

    booking = relationship("Booking")

    def __repr__(self) -> str:
        return f"<BookingSlotClaim {self.booking_date} {self.slot_hour:02d}:00 booking={self.booking_id}>"
