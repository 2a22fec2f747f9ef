# clubcourt/models/payment.py
"""
Cash payment records.

A record is the real-money fee one account owes for one session. The
coin cost of making a booking is tracked separately in the coin ledger.
Reservation payments reference a booking; open-play payments carry the
session date, starting slot and attendee names instead.
"""

from enum import Enum

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REJECTED = "rejected"


class PlayType(str, Enum):
    RESERVATION = "reservation"
    OPEN_PLAY = "open_play"


class PaymentRecord(Base):
    __tablename__ = "payment_records"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payment_records_amount_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'paid', 'rejected')",
            name="ck_payment_records_status",
        ),
        CheckConstraint(
            "hours_played > 0 AND hours_played <= 8",
            name="ck_payment_records_hours_played",
        ),
        CheckConstraint(
            "play_type != 'reservation' OR booking_id IS NOT NULL",
            name="ck_payment_records_reservation_has_booking",
        ),
        UniqueConstraint("account_id", "booking_id", name="uq_payment_records_account_booking"),
        Index(
            "uq_payment_records_open_play_session",
            "account_id",
            "play_date",
            "time_slot",
            "play_type",
            unique=True,
            sqlite_where=text("play_type = 'open_play'"),
            postgresql_where=text("play_type = 'open_play'"),
        ),
        Index("ix_payment_records_account_status", "account_id", "status"),
    )

    id = Column(String(26), primary_key=True, default=generate_ulid)
    account_id = Column(String(26), ForeignKey("accounts.id"), nullable=False)
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=True)
    play_type = Column(String(20), nullable=False, default=PlayType.RESERVATION.value)
    play_date = Column(Date, nullable=False)
    time_slot = Column(String(5), nullable=True)

    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    membership_class = Column(String(20), nullable=False)
    rate_per_hour = Column(Numeric(10, 2), nullable=False)
    hours_played = Column(Numeric(4, 1), nullable=False)
    attendee_names = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    recorded_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    paid_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by_id = Column(String(26), ForeignKey("accounts.id"), nullable=True)

    booking = relationship("Booking")

    def __repr__(self) -> str:
        return (
            f"<PaymentRecord {self.id} {self.play_type} amount={self.amount} "
            f"status={self.status}>"
        )
