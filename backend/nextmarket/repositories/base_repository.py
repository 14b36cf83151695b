"""
Base Repository for SQLAlchemy Operations

Provides common CRUD operations and query patterns for the marketplace tables.
Implements consistent error handling, logging, and performance monitoring.
"""

import logging
import time
from datetime import datetime
from typing import Any, Generic, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy.orm import Query, Session

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base repository providing common CRUD operations for one model.

    Features:
    - Generic type support for any declarative model
    - Soft-deleted rows (deleted_at set) hidden unless asked for
    - Consistent error logging; SQLAlchemy errors propagate to the caller
    - Performance monitoring for slow queries
    - Offset/limit pagination

    Example:
        class PluginRepository(BaseRepository[Plugin]):
            def __init__(self, db: Session):
                super().__init__(db, Plugin)
    """

    def __init__(self, db: Session, model: type):
        """
        Initialize repository with a session and a model class.

        Args:
            db: SQLAlchemy session owned by the caller
            model: Declarative model class (e.g., Plugin)
        """
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")
        self._slow_query_threshold = 1.0  # seconds

    def query(self, include_deleted: bool = False) -> Query:
        """Base query for the model, excluding soft-deleted rows by default."""
        q = self.db.query(self.model)
        if not include_deleted and hasattr(self.model, "deleted_at"):
            q = q.filter(self.model.deleted_at.is_(None))
        return q

    def get(self, record_id: int, include_deleted: bool = False) -> Optional[T]:
        """
        Find a record by primary key.

        Returns:
            Record if found, None otherwise
        """
        return self.find_one(self.model.id == record_id, include_deleted=include_deleted)

    def find_one(self, *criteria: Any, include_deleted: bool = False) -> Optional[T]:
        """
        Find a single record matching all criteria.

        Example:
            plugin = repo.find_one(Plugin.npm_package_name == "my-plugin")
        """
        start_time = time.time()
        try:
            result = self.query(include_deleted).filter(*criteria).first()
            self._log_query_performance("find_one", criteria, time.time() - start_time)
            return result
        except Exception as e:
            self.logger.error(f"Error in find_one: {e}")
            raise

    def find_many(
        self,
        *criteria: Any,
        offset: int = 0,
        limit: Optional[int] = None,
        order_by: Sequence[Any] = (),
        include_deleted: bool = False,
    ) -> List[T]:
        """
        Find multiple records with pagination and ordering.

        Args:
            criteria: SQLAlchemy filter expressions
            offset: Number of records to skip
            limit: Maximum number of records to return (None for all)
            order_by: Ordering expressions
            include_deleted: Also return soft-deleted rows

        Returns:
            List of records
        """
        start_time = time.time()
        try:
            q = self.query(include_deleted).filter(*criteria)
            if order_by:
                q = q.order_by(*order_by)
            if offset:
                q = q.offset(offset)
            if limit is not None:
                q = q.limit(limit)
            result = q.all()
            self._log_query_performance(
                "find_many", criteria, time.time() - start_time, result_count=len(result)
            )
            return result
        except Exception as e:
            self.logger.error(f"Error in find_many: {e}")
            raise

    def count(self, *criteria: Any, include_deleted: bool = False) -> int:
        """Count records matching all criteria."""
        start_time = time.time()
        try:
            result = self.query(include_deleted).filter(*criteria).count()
            self._log_query_performance("count", criteria, time.time() - start_time, result_count=result)
            return result
        except Exception as e:
            self.logger.error(f"Error in count: {e}")
            raise

    def find_with_pagination(
        self,
        *criteria: Any,
        page: int = 1,
        per_page: int = 20,
        order_by: Sequence[Any] = (),
    ) -> Tuple[List[T], int]:
        """
        Find records for one page plus the unpaginated total.

        Returns:
            Tuple of (records, total_count)
        """
        total = self.count(*criteria)
        offset = (max(page, 1) - 1) * per_page
        records = self.find_many(*criteria, offset=offset, limit=per_page, order_by=order_by)
        return records, total

    def create(self, record: T) -> T:
        """
        Insert and commit a new record.

        Raises:
            SQLAlchemyError: If the insert fails; the session is rolled back
        """
        start_time = time.time()
        try:
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
            self._log_query_performance("create", (), time.time() - start_time)
            return record
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error creating {self.model.__name__}: {e}")
            raise

    def save(self, record: T) -> T:
        """Commit pending changes on a record."""
        start_time = time.time()
        try:
            self.db.add(record)
            self.db.commit()
            self._log_query_performance("save", (), time.time() - start_time)
            return record
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error saving {self.model.__name__}: {e}")
            raise

    def soft_delete(self, record: T) -> T:
        """Hide a record by setting deleted_at; the row stays in the table."""
        record.deleted_at = datetime.utcnow()
        return self.save(record)

    def delete(self, record: T) -> None:
        """Permanently delete a record."""
        start_time = time.time()
        try:
            self.db.delete(record)
            self.db.commit()
            self._log_query_performance("delete", (), time.time() - start_time)
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error deleting {self.model.__name__}: {e}")
            raise

    def _log_query_performance(
        self,
        operation: str,
        criteria: Sequence[Any],
        duration: float,
        result_count: Optional[int] = None,
    ) -> None:
        """
        Log query performance and warn about slow queries.

        Args:
            operation: Operation name (find_one, find_many, etc.)
            criteria: Filter expressions used
            duration: Query duration in seconds
            result_count: Number of results (if applicable)
        """
        log_msg = f"{operation} completed in {duration:.3f}s"

        if result_count is not None:
            log_msg += f" ({result_count} results)"

        if duration > self._slow_query_threshold:
            filters = ", ".join(str(c) for c in criteria)
            self.logger.warning(f"SLOW QUERY: {log_msg} - Filters: {filters}")
        else:
            self.logger.debug(log_msg)
