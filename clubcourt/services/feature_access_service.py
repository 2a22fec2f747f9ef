# clubcourt/services/feature_access_service.py
"""
Feature Access Service

Premium features are bought with coins. A purchase debits the account
and persists a grant in the same transaction; timed grants lapse on
their own, one-time grants are used up through ``consume``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import Callable, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    FeatureAlreadyActiveException,
    NotFoundException,
    ValidationException,
)
from ..models.feature_grant import FeatureGrant
from ..repositories.factory import RepositoryFactory
from ..schemas.account import AccountSnapshot
from .base import BaseService
from .coin_ledger import CoinLedger

logger = logging.getLogger(__name__)


class PremiumFeature(str, Enum):
    ADVANCED_ANALYTICS = "advanced_analytics"
    EXTENDED_WEATHER = "extended_weather"
    PRIORITY_BOOKING = "priority_booking"
    EXPORT_HISTORY = "export_history"
    CUSTOM_NOTIFICATIONS = "custom_notifications"


@dataclass(frozen=True)
class FeatureInfo:
    feature: PremiumFeature
    name: str
    description: str
    duration_hours: Optional[int]  # None for one-time use

    @property
    def is_one_time(self) -> bool:
        return self.duration_hours is None

    @property
    def cost(self) -> int:
        return settings.premium_feature_cost


FEATURE_CATALOG: Dict[PremiumFeature, FeatureInfo] = {
    PremiumFeature.ADVANCED_ANALYTICS: FeatureInfo(
        PremiumFeature.ADVANCED_ANALYTICS,
        "Advanced Analytics Dashboard",
        "Charts and trends about your court usage",
        24,
    ),
    PremiumFeature.EXTENDED_WEATHER: FeatureInfo(
        PremiumFeature.EXTENDED_WEATHER,
        "Extended Weather Forecast",
        "Seven-day hourly forecast for planning sessions",
        168,
    ),
    PremiumFeature.PRIORITY_BOOKING: FeatureInfo(
        PremiumFeature.PRIORITY_BOOKING,
        "Priority Booking Notifications",
        "Alerts when preferred slots open up",
        720,
    ),
    PremiumFeature.EXPORT_HISTORY: FeatureInfo(
        PremiumFeature.EXPORT_HISTORY,
        "Export Reservation History",
        "One export of your reservation and payment history",
        None,
    ),
    PremiumFeature.CUSTOM_NOTIFICATIONS: FeatureInfo(
        PremiumFeature.CUSTOM_NOTIFICATIONS,
        "Custom Notification Settings",
        "Notification timing and filters",
        720,
    ),
}


def _lookup(feature: Union[PremiumFeature, str]) -> FeatureInfo:
    try:
        return FEATURE_CATALOG[PremiumFeature(feature)]
    except ValueError as exc:
        raise ValidationException(
            f"Unknown premium feature: {feature}",
            code="UNKNOWN_FEATURE",
            details={"feature": str(feature)},
        ) from exc


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FeatureAccessService(BaseService):
    """Service for buying and checking premium feature access."""

    def __init__(
        self,
        db: Session,
        coin_ledger: Optional[CoinLedger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_feature_grant_repository(db)
        self.coin_ledger = coin_ledger or CoinLedger(db)
        self._clock = clock or _utc_now

    def catalog(self) -> List[FeatureInfo]:
        return list(FEATURE_CATALOG.values())

    @BaseService.measure_operation("purchase_feature")
    def purchase(self, actor: AccountSnapshot, feature: Union[PremiumFeature, str]) -> FeatureGrant:
        """
        Buy access to a premium feature.

        Raises:
            ValidationException: Unknown feature
            FeatureAlreadyActiveException: A live grant already exists
            InsufficientBalanceException: Not enough coins
        """
        info = _lookup(feature)
        now = self._clock().astimezone(timezone.utc)

        live = self.run_query(
            "find_live_grant",
            lambda: self.repository.get_live(actor.account_id, info.feature.value, now),
        )
        if live is not None:
            raise FeatureAlreadyActiveException(info.feature.value)

        def _purchase() -> FeatureGrant:
            entry = self.coin_ledger.debit(
                actor.account_id,
                info.cost,
                f"Premium feature: {info.name}",
                exempt=actor.is_exempt,
                use_transaction=False,
            )
            return self.repository.create(
                account_id=actor.account_id,
                feature=info.feature.value,
                purchased_at=now,
                expires_at=None if info.is_one_time else now + timedelta(hours=info.duration_hours),
                uses_remaining=1 if info.is_one_time else None,
                ledger_entry_id=entry.id,
            )

        grant = self.run_in_transaction("purchase_feature", _purchase)
        self.log_operation(
            "purchase_feature", account_id=actor.account_id, feature=info.feature.value
        )
        return grant

    def has_access(self, account_id: str, feature: Union[PremiumFeature, str]) -> bool:
        info = _lookup(feature)
        now = self._clock()
        grant = self.run_query(
            "check_feature_access",
            lambda: self.repository.get_live(account_id, info.feature.value, now),
        )
        return grant is not None

    @BaseService.measure_operation("consume_feature")
    def consume(self, account_id: str, feature: Union[PremiumFeature, str]) -> FeatureGrant:
        """Use up a one-time grant. Timed grants are returned untouched."""
        info = _lookup(feature)
        now = self._clock()
        grant = self.run_query(
            "find_live_grant",
            lambda: self.repository.get_live(account_id, info.feature.value, now),
        )
        if grant is None:
            raise NotFoundException(
                f"No active {info.feature.value} access",
                resource="FeatureGrant",
                resource_id=info.feature.value,
            )
        if not info.is_one_time:
            return grant

        def _consume() -> None:
            if not self.repository.consume_use(grant.id):
                raise NotFoundException(
                    f"No active {info.feature.value} access",
                    resource="FeatureGrant",
                    resource_id=grant.id,
                )

        self.run_in_transaction("consume_feature", _consume)
        self.repository.refresh(grant)
        return grant

    def active_features(self, account_id: str) -> List[FeatureGrant]:
        now = self._clock()
        return self.run_query(
            "list_live_grants", lambda: self.repository.list_live_for_account(account_id, now)
        )
