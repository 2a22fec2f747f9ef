# clubcourt/repositories/base_repository.py
"""
Generic data access shared by the court repositories.

Repositories flush but never commit; the service layer owns the
transaction boundary. Read failures are wrapped in RepositoryException
with the driver error kept as ``__cause__``.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
import logging
from typing import Any, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session
from sqlalchemy.orm.util import identity_key

from ..core.exceptions import RepositoryException
from ..database.session_utils import get_dialect_name

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Lookup and insert helpers for a single mapped model.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def _guarded(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.logger.error(f"{self.model.__name__} {action} failed: {e}")
            raise RepositoryException(f"Failed to {action} {self.model.__name__}: {e}") from e

    def _db_timestamp(self, value: datetime) -> datetime:
        """UTC timestamp in the form the bound dialect compares correctly."""
        value = value.astimezone(timezone.utc)
        if get_dialect_name(self.db) == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def get_by_id(self, id: str) -> Optional[T]:
        with self._guarded("load"):
            return self.db.get(self.model, id)

    def get_many(self, ids: List[str]) -> List[T]:
        """Load several entities by primary key; missing ids are skipped."""
        if not ids:
            return []
        with self._guarded("load batch of"):
            return self.db.query(self.model).filter(self.model.id.in_(ids)).all()

    def refresh(self, instance: T) -> None:
        self.db.refresh(instance)

    def create(self, **kwargs) -> T:
        """
        Add and flush a new row so its defaults and id are populated.

        Integrity violations propagate unchanged so services can map them
        to domain conflicts.
        """
        entity = self.model(**kwargs)
        self.db.add(entity)
        self.db.flush()
        return entity

    def flush(self) -> None:
        self.db.flush()

    def count(self, **kwargs) -> int:
        with self._guarded("count"):
            return self.db.query(self.model).filter_by(**kwargs).count()

    def find_by(self, **kwargs) -> List[T]:
        with self._guarded("find"):
            return self.db.query(self.model).filter_by(**kwargs).all()

    def find_one_by(self, **kwargs) -> Optional[T]:
        with self._guarded("find"):
            return self.db.query(self.model).filter_by(**kwargs).first()

    def _expire_loaded(self, id: str, attribute_names: List[str]) -> None:
        """Expire attributes of an already-loaded instance after a bulk UPDATE."""
        instance = self.db.identity_map.get(identity_key(self.model, id))
        if instance is not None:
            self.db.expire(instance, attribute_names)

    def _build_query(self) -> Query:
        return self.db.query(self.model)

    def _execute_query(self, query: Query) -> List[Any]:
        with self._guarded("query"):
            return query.all()

    def _execute_scalar(self, query: Query) -> Any:
        with self._guarded("run scalar query on"):
            return query.scalar()
