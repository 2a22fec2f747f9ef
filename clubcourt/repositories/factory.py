# clubcourt/repositories/factory.py
"""
One place to build repositories so services never import their modules directly.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .account_repository import AccountRepository
    from .booking_repository import BookingRepository
    from .booking_slot_repository import BookingSlotRepository
    from .conflict_checker_repository import ConflictCheckerRepository
    from .feature_grant_repository import FeatureGrantRepository
    from .ledger_repository import LedgerRepository
    from .payment_repository import PaymentRepository


class RepositoryFactory:
    """Static constructors, one per repository, each bound to the caller's session."""

    @staticmethod
    def create_account_repository(db: Session) -> "AccountRepository":
        from .account_repository import AccountRepository

        return AccountRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking and roster operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_booking_slot_repository(db: Session) -> "BookingSlotRepository":
        """Create repository for per-hour slot claims."""
        from .booking_slot_repository import BookingSlotRepository

        return BookingSlotRepository(db)

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> "ConflictCheckerRepository":
        """Create repository for conflict checking operations."""
        from .conflict_checker_repository import ConflictCheckerRepository

        return ConflictCheckerRepository(db)

    @staticmethod
    def create_ledger_repository(db: Session) -> "LedgerRepository":
        from .ledger_repository import LedgerRepository

        return LedgerRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)

    @staticmethod
    def create_feature_grant_repository(db: Session) -> "FeatureGrantRepository":
        from .feature_grant_repository import FeatureGrantRepository

        return FeatureGrantRepository(db)
