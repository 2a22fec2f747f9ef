# clubcourt/repositories/__init__.py
"""
Repository layer for data access, separating business logic from queries.

Usage:
    from clubcourt.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_conflict_checker_repository(db)
    bookings = repository.get_active_bookings_for_date(check_date)
"""

from .account_repository import AccountRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .booking_slot_repository import BookingSlotRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .factory import RepositoryFactory
from .feature_grant_repository import FeatureGrantRepository
from .ledger_repository import LedgerRepository
from .payment_repository import PaymentRepository

__all__ = [
    "AccountRepository",
    "BaseRepository",
    "BookingRepository",
    "BookingSlotRepository",
    "ConflictCheckerRepository",
    "FeatureGrantRepository",
    "LedgerRepository",
    "PaymentRepository",
    "RepositoryFactory",
]
