# clubcourt/models/booking.py
"""
Booking model for the club court.

A booking reserves the court for a contiguous range of hourly slots on
one calendar day. The roster is stored as ordered participant rows that
reference accounts by id only; display data is resolved at read time.

Older rows may carry only ``start_slot`` (the single-slot format); they
occupy exactly one hour.
"""

from datetime import datetime
from enum import Enum
from typing import List

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base
from ..utils.slot_calendar import SlotRange, is_range_completed, legacy_slot_range, slot_range


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "PENDING"  # Reserved for moderation
    CONFIRMED = "CONFIRMED"  # Default - instant booking
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"  # Legacy rows only; completion is derived from the clock


class BookingPaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.COMPLETED.value,
)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("duration_hours > 0", name="ck_bookings_duration_positive"),
        CheckConstraint("coin_cost >= 0", name="ck_bookings_coin_cost_non_negative"),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('PENDING', 'PAID')",
            name="ck_bookings_payment_status",
        ),
        Index("ix_bookings_date_status", "booking_date", "status"),
    )

    id = Column(String(26), primary_key=True, default=generate_ulid)
    owner_id = Column(String(26), ForeignKey("accounts.id"), nullable=False, index=True)
    booking_date = Column(Date, nullable=False)
    start_slot = Column(String(5), nullable=False)
    end_slot = Column(String(5), nullable=True)
    duration_hours = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)
    payment_status = Column(String(20), nullable=False, default=BookingPaymentStatus.PENDING.value)
    coin_cost = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(String(26), ForeignKey("accounts.id"), nullable=True)

    owner = relationship("Account", foreign_keys=[owner_id])
    participants = relationship(
        "BookingParticipant",
        back_populates="booking",
        order_by="BookingParticipant.position",
        cascade="all, delete-orphan",
    )

    @property
    def roster_ids(self) -> List[str]:
        return [participant.account_id for participant in self.participants]

    @property
    def slot_range(self) -> SlotRange:
        if self.end_slot is None:
            return legacy_slot_range(self.start_slot)
        return slot_range(self.start_slot, self.end_slot)

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED.value

    def is_completed(self, now: datetime) -> bool:
        """Derived completion: stored COMPLETED or the session end has passed."""
        if self.is_cancelled:
            return False
        if self.status == BookingStatus.COMPLETED.value:
            return True
        return is_range_completed(self.booking_date, self.slot_range.end_hour, now)

    def includes(self, account_id: str) -> bool:
        return account_id in self.roster_ids

    def __repr__(self) -> str:
        end = self.end_slot or "+1h"
        return (
            f"<Booking {self.id} {self.booking_date} {self.start_slot}-{end} "
            f"status={self.status}>"
        )


class BookingParticipant(Base):
    """Ordered roster entry; the account is referenced, not embedded."""

    __tablename__ = "booking_participants"
    __table_args__ = (
        UniqueConstraint("booking_id", "account_id", name="uq_booking_participants_member"),
    )

    id = Column(String(26), primary_key=True, default=generate_ulid)
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    account_id = Column(String(26), ForeignKey("accounts.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    booking = relationship("Booking", back_populates="participants")

    def __repr__(self) -> str:
        return f"<BookingParticipant booking={self.booking_id} account={self.account_id}>"

