"""Repository for premium feature grants."""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from ..models.feature_grant import FeatureGrant
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class FeatureGrantRepository(BaseRepository[FeatureGrant]):
    def __init__(self, db: Session):
        super().__init__(db, FeatureGrant)

    def list_live_for_account(self, account_id: str, now: datetime) -> List[FeatureGrant]:
        """Grants that have not expired and still have uses left."""
        now_utc = self._db_timestamp(now)
        query = (
            self._build_query()
            .filter(
                FeatureGrant.account_id == account_id,
                or_(FeatureGrant.expires_at.is_(None), FeatureGrant.expires_at > now_utc),
                or_(FeatureGrant.uses_remaining.is_(None), FeatureGrant.uses_remaining > 0),
            )
            .order_by(FeatureGrant.purchased_at.desc())
        )
        return self._execute_query(query)

    def get_live(self, account_id: str, feature: str, now: datetime) -> Optional[FeatureGrant]:
        for grant in self.list_live_for_account(account_id, now):
            if grant.feature == feature:
                return grant
        return None

    def consume_use(self, grant_id: str) -> bool:
        """Take one use from a one-time grant; False if none were left."""
        result = self.db.execute(
            update(FeatureGrant)
            .where(FeatureGrant.id == grant_id, FeatureGrant.uses_remaining > 0)
            .values(uses_remaining=FeatureGrant.uses_remaining - 1)
            .execution_options(synchronize_session=False)
        )
        self._expire_loaded(grant_id, ["uses_remaining"])
        return result.rowcount == 1
