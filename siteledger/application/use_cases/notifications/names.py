"""Resolve user and project identifiers into display names."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Literal

from siteledger.domain.errors import NameResolutionFailure, PersistenceError
from siteledger.infrastructure.record_store import RecordStore

logger = logging.getLogger(__name__)

FallbackPolicyName = Literal["sentinel", "truncated_id"]


@dataclass(frozen=True)
class FallbackNames:
    """Names used once every lookup source for an identifier is exhausted."""

    user: Callable[[str], str]
    project: Callable[[str], str]


SENTINEL_FALLBACK = FallbackNames(
    user=lambda _identifier: "Unknown User",
    project=lambda _identifier: "Unknown Project",
)
TRUNCATED_ID_FALLBACK = FallbackNames(
    user=lambda identifier: f"User {identifier[:8]}...",
    project=lambda identifier: f"Project {identifier[:8]}...",
)

_POLICIES: dict[str, FallbackNames] = {
    "sentinel": SENTINEL_FALLBACK,
    "truncated_id": TRUNCATED_ID_FALLBACK,
}


def fallback_names(policy: FallbackPolicyName) -> FallbackNames:
    """Return the fallback naming policy registered under ``policy``."""

    try:
        return _POLICIES[policy]
    except KeyError:
        raise ValueError(f"Unknown name fallback policy '{policy}'") from None


class NameResolver:
    """Turn raw identifiers into the names shown in notifications.

    The same person may exist as an admin-created user linked to an auth
    identity, as the same user addressed by its own id, or as a
    self-registration profile. Sources are tried in that order; a source that
    errors is treated as "not found".
    """

    def __init__(
        self, store: RecordStore, *, fallback: FallbackNames = SENTINEL_FALLBACK
    ) -> None:
        self.store = store
        self.fallback = fallback

    async def resolve_user_name(self, user_id: str) -> str:
        """Return a display name for ``user_id``; never raises."""

        try:
            return await self.lookup_user_name(user_id)
        except NameResolutionFailure as exc:
            logger.warning("%s; using fallback name", exc)
            return self.fallback.user(user_id)

    async def resolve_project_name(self, project_id: str) -> str:
        """Return a display name for ``project_id``; never raises."""

        try:
            return await self.lookup_project_name(project_id)
        except NameResolutionFailure as exc:
            logger.warning("%s; using fallback name", exc)
            return self.fallback.project(project_id)

    async def lookup_user_name(self, user_id: str) -> str:
        """Walk the user fallback chain, raising when every source misses."""

        sources = (
            ("users", "auth_user_id", "name"),
            ("users", "id", "name"),
            ("profiles", "id", "full_name"),
        )
        for table, key, field in sources:
            row = await self._first(table, {key: user_id})
            name = _clean(row, field)
            if name:
                logger.debug("Resolved user %s via %s.%s", user_id, table, key)
                return name
        raise NameResolutionFailure("user", user_id)

    async def lookup_project_name(self, project_id: str) -> str:
        row = await self._first("projects", {"id": project_id})
        name = _clean(row, "name")
        if name:
            return name
        raise NameResolutionFailure("project", project_id)

    async def _first(
        self, table: str, filters: Mapping[str, Any]
    ) -> Mapping[str, Any] | None:
        try:
            rows = await self.store.query(table, filters, limit=1)
        except PersistenceError as exc:
            logger.warning("Lookup on %s %s failed: %s", table, dict(filters), exc)
            return None
        return rows[0] if rows else None


def _clean(row: Mapping[str, Any] | None, field: str) -> str | None:
    if row is None:
        return None
    value = row.get(field)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


__all__ = [
    "FallbackNames",
    "NameResolver",
    "SENTINEL_FALLBACK",
    "TRUNCATED_ID_FALLBACK",
    "fallback_names",
]
