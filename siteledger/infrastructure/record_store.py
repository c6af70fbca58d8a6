"""Generic record store used by the notification pipeline.

The pipeline never talks to a storage engine directly. It only needs four
operations, ``query``, ``insert``, ``update`` and ``subscribe``, expressed
over table names and plain row mappings. :class:`SqlRecordStore` implements
them with SQLAlchemy and announces every committed write on a
:class:`~siteledger.infrastructure.notifications.feed.ChangeFeed`.
"""

from __future__ import annotations

import abc
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

import anyio
import anyio.to_thread
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from siteledger.domain.entities import ChangeEvent, ChangeKind
from siteledger.domain.errors import PersistenceError
from siteledger.infrastructure.models import (
    NotificationModel,
    ProfileModel,
    ProjectModel,
    UserModel,
)
from siteledger.infrastructure.notifications.feed import (
    DEFAULT_CHANGE_KINDS,
    ChangeFeed,
    ChangeSubscription,
)
from siteledger.utils import ensure_app_timezone, to_storage_datetime

logger = logging.getLogger(__name__)

Row = dict[str, Any]
T = TypeVar("T")


class StoreAccess(str, Enum):
    """Privilege level of a record store handle."""

    NORMAL = "normal"
    ELEVATED = "elevated"


class RecordStore(abc.ABC):
    """Query/insert/update/subscribe access to named tables."""

    access: StoreAccess = StoreAccess.ELEVATED

    @abc.abstractmethod
    async def query(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        *,
        order: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[Row]:
        """Return rows matching ``filters``; ``-column`` orders descending."""

    @abc.abstractmethod
    async def insert(self, table: str, record: Mapping[str, Any]) -> Row:
        """Insert ``record`` and return the stored row."""

    @abc.abstractmethod
    async def update(
        self, table: str, filters: Mapping[str, Any], patch: Mapping[str, Any]
    ) -> list[Row]:
        """Apply ``patch`` to every row matching ``filters``; return them."""

    @abc.abstractmethod
    async def subscribe(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        kinds: Iterable[ChangeKind | str] = DEFAULT_CHANGE_KINDS,
    ) -> ChangeSubscription:
        """Open a change subscription for rows matching ``filters``."""


class _WorkerPool:
    """Run blocking database calls on worker threads behind one limiter."""

    def __init__(self, max_workers: int) -> None:
        self.max_workers = max_workers
        self._limiter: anyio.CapacityLimiter | None = None

    async def run(self, func: Callable[..., T], *args: Any) -> T:
        if self._limiter is None:
            self._limiter = anyio.CapacityLimiter(self.max_workers)
        return await anyio.to_thread.run_sync(func, *args, limiter=self._limiter)


class SqlRecordStore(RecordStore):
    """SQLAlchemy implementation of :class:`RecordStore`.

    Elevated handles see every row. Normal handles are bound to a viewer and
    only see, update and subscribe to the viewer's own notifications; the
    lookup tables stay readable so names and recipients can be resolved.
    """

    TABLES: dict[str, type] = {
        "notifications": NotificationModel,
        "users": UserModel,
        "profiles": ProfileModel,
        "projects": ProjectModel,
    }
    ROW_POLICIES: dict[str, str] = {"notifications": "recipient_id"}
    IMMUTABLE_COLUMNS: dict[str, frozenset[str]] = {
        "notifications": frozenset({"seq", "id", "recipient_id", "actor_id", "created_at"}),
    }

    def __init__(
        self,
        session_factory: sessionmaker,
        feed: ChangeFeed,
        *,
        access: StoreAccess = StoreAccess.ELEVATED,
        viewer_id: str | None = None,
        max_workers: int = 4,
        _pool: _WorkerPool | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._feed = feed
        self.access = StoreAccess(access)
        self.viewer_id = viewer_id
        self._pool = _pool or _WorkerPool(max_workers)

    def as_viewer(self, viewer_id: str) -> SqlRecordStore:
        """Return a normal-privilege handle acting on behalf of ``viewer_id``."""

        return SqlRecordStore(
            self._session_factory,
            self._feed,
            access=StoreAccess.NORMAL,
            viewer_id=viewer_id,
            _pool=self._pool,
        )

    def elevated(self) -> SqlRecordStore:
        """Return a handle that bypasses row policies."""

        return SqlRecordStore(
            self._session_factory,
            self._feed,
            access=StoreAccess.ELEVATED,
            _pool=self._pool,
        )

    async def query(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        *,
        order: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[Row]:
        model = self._model(table)
        scoped = self._scoped_filters(table, filters)
        if scoped is None:
            return []
        return await self._run(self._query_sync, model, scoped, tuple(order), limit)

    async def insert(self, table: str, record: Mapping[str, Any]) -> Row:
        model = self._model(table)
        row = await self._run(self._insert_sync, model, dict(record))
        self._feed.publish(ChangeEvent(kind=ChangeKind.INSERT, table=table, row=row))
        return row

    async def update(
        self, table: str, filters: Mapping[str, Any], patch: Mapping[str, Any]
    ) -> list[Row]:
        model = self._model(table)
        forbidden = self.IMMUTABLE_COLUMNS.get(table, frozenset()) & set(patch)
        if forbidden:
            raise ValueError(
                f"Columns {sorted(forbidden)} of '{table}' cannot be updated"
            )
        scoped = self._scoped_filters(table, filters)
        if scoped is None:
            return []
        rows = await self._run(self._update_sync, model, scoped, dict(patch))
        for row in rows:
            self._feed.publish(ChangeEvent(kind=ChangeKind.UPDATE, table=table, row=row))
        return rows

    async def subscribe(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        kinds: Iterable[ChangeKind | str] = DEFAULT_CHANGE_KINDS,
    ) -> ChangeSubscription:
        self._model(table)
        scoped = self._scoped_filters(table, filters)
        if scoped is None:
            raise PersistenceError(
                f"Viewer '{self.viewer_id}' cannot subscribe to other recipients' {table}"
            )
        return self._feed.subscribe(table, scoped, kinds)

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        try:
            return await self._pool.run(func, *args)
        except SQLAlchemyError as exc:
            logger.error("Record store operation %s failed: %s", func.__name__, exc)
            raise PersistenceError(str(exc)) from exc

    def _model(self, table: str) -> type:
        try:
            return self.TABLES[table]
        except KeyError:
            raise ValueError(f"Unknown table '{table}'") from None

    def _scoped_filters(
        self, table: str, filters: Mapping[str, Any] | None
    ) -> dict[str, Any] | None:
        """Apply the row policy; ``None`` means no row can match."""

        scoped = dict(filters or {})
        column = self.ROW_POLICIES.get(table)
        if self.access is StoreAccess.ELEVATED or column is None:
            return scoped
        if self.viewer_id is None:
            raise PersistenceError(f"Anonymous access to '{table}' is not permitted")
        requested = scoped.get(column)
        if requested is not None and requested != self.viewer_id:
            return None
        scoped[column] = self.viewer_id
        return scoped

    def _query_sync(
        self,
        model: type,
        filters: dict[str, Any],
        order: tuple[str, ...],
        limit: int | None,
    ) -> list[Row]:
        with self._session_factory() as session:
            query = self._filtered(session.query(model), model, filters)
            for entry in order:
                column = self._column(model, entry.lstrip("-"))
                query = query.order_by(column.desc() if entry.startswith("-") else column.asc())
            if limit is not None:
                query = query.limit(limit)
            return [self._to_row(instance) for instance in query.all()]

    def _insert_sync(self, model: type, record: dict[str, Any]) -> Row:
        with self._session_factory() as session:
            instance = model()
            for name, value in record.items():
                self._column(model, name)
                setattr(instance, name, _to_storage(value))
            session.add(instance)
            session.flush()
            row = self._to_row(instance)
            session.commit()
            return row

    def _update_sync(
        self, model: type, filters: dict[str, Any], patch: dict[str, Any]
    ) -> list[Row]:
        with self._session_factory() as session:
            instances = self._filtered(session.query(model), model, filters).all()
            for instance in instances:
                for name, value in patch.items():
                    self._column(model, name)
                    setattr(instance, name, _to_storage(value))
            session.flush()
            rows = [self._to_row(instance) for instance in instances]
            session.commit()
            return rows

    def _filtered(self, query: Any, model: type, filters: dict[str, Any]) -> Any:
        for name, value in filters.items():
            column = self._column(model, name)
            if value is None:
                query = query.filter(column.is_(None))
            else:
                query = query.filter(column == _to_storage(value))
        return query

    @staticmethod
    def _column(model: type, name: str) -> Any:
        if name not in model.__table__.columns:
            raise ValueError(f"Unknown column '{name}' on '{model.__tablename__}'")
        return getattr(model, name)

    @staticmethod
    def _to_row(instance: Any) -> Row:
        row: Row = {}
        for column in instance.__table__.columns:
            value = getattr(instance, column.key)
            if isinstance(value, datetime):
                value = ensure_app_timezone(value)
            row[column.key] = value
        return row


def _to_storage(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_storage_datetime(value)
    return value


__all__ = ["RecordStore", "Row", "SqlRecordStore", "StoreAccess"]
