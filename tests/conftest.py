"""
Shared fixtures for the club court test suite.

Every test gets a fresh in-memory SQLite database. Services receive a
controllable clock so "today" and session completion are deterministic.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional

import pytest
import pytz
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from clubcourt.core.config import settings
from clubcourt.database import Base
from clubcourt.events.booking_events import BookingEvents, CourtEvent
from clubcourt.models import Account, AccountRole, MembershipClass
from clubcourt.schemas.account import AccountSnapshot
from clubcourt.services.booking_service import BookingService
from clubcourt.services.coin_ledger import CoinLedger

# Monday 08:30 on the club's wall clock
CLUB_NOW = pytz.timezone(settings.club_timezone).localize(datetime(2031, 3, 3, 8, 30))


class FrozenClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="function")
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Session:
    """Create a new database session for each test."""
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(CLUB_NOW)


@pytest.fixture
def today(clock: FrozenClock):
    return clock.now.date()


@pytest.fixture
def coin_ledger(db: Session) -> CoinLedger:
    return CoinLedger(db)


@pytest.fixture
def booking_service(db: Session, clock: FrozenClock) -> BookingService:
    return BookingService(db, now_provider=clock)


@pytest.fixture
def make_account(db: Session, coin_ledger: CoinLedger) -> Callable[..., Account]:
    """Create an account; starting coins go through the ledger so balances reconcile."""

    counter = {"n": 0}

    def _make(
        display_name: Optional[str] = None,
        *,
        membership_class: MembershipClass = MembershipClass.STANDARD,
        role: AccountRole = AccountRole.MEMBER,
        coins: int = 0,
        fees_paid: bool = True,
        is_active: bool = True,
    ) -> Account:
        counter["n"] += 1
        account = Account(
            display_name=display_name or f"Player {counter['n']}",
            membership_class=membership_class.value,
            role=role.value,
            coin_balance=0,
            is_approved=True,
            is_active=is_active,
            fees_paid=fees_paid,
        )
        db.add(account)
        db.commit()
        if coins:
            coin_ledger.grant(account.id, coins, "Test funding")
        return account

    return _make


@pytest.fixture
def snapshot() -> Callable[[Account], AccountSnapshot]:
    return AccountSnapshot.from_account


@pytest.fixture(autouse=True)
def _isolate_event_listeners():
    BookingEvents.clear()
    yield
    BookingEvents.clear()


@pytest.fixture
def captured_events() -> List[CourtEvent]:
    events: List[CourtEvent] = []
    BookingEvents.register(events.append)
    return events
