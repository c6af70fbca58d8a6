"""Find the admin responsible for receiving a notification."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from siteledger.domain.errors import PersistenceError
from siteledger.infrastructure.record_store import RecordStore

logger = logging.getLogger(__name__)


class RecipientResolver:
    """Map projects and users to the admin that owns them."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def resolve_recipient(self, project_id: str) -> str | None:
        """Return the admin owning ``project_id`` or ``None``.

        ``None`` means "cannot notify": the project is missing, has no owner
        or could not be read.
        """

        row = await self._first("projects", {"id": project_id})
        owner = _owner(row)
        if owner is None:
            logger.warning("No admin found for project %s", project_id)
        return owner

    async def resolve_user_admin(self, user_id: str) -> str | None:
        """Return the admin who created ``user_id`` or ``None``."""

        for key in ("auth_user_id", "id"):
            owner = _owner(await self._first("users", {key: user_id}))
            if owner is not None:
                return owner
        logger.warning("No admin found for user %s", user_id)
        return None

    async def _first(
        self, table: str, filters: Mapping[str, Any]
    ) -> Mapping[str, Any] | None:
        try:
            rows = await self.store.query(table, filters, limit=1)
        except PersistenceError as exc:
            logger.error("Lookup on %s %s failed: %s", table, dict(filters), exc)
            return None
        return rows[0] if rows else None


def _owner(row: Mapping[str, Any] | None) -> str | None:
    if row is None:
        return None
    owner = row.get("created_by")
    return str(owner) if owner else None


__all__ = ["RecipientResolver"]
