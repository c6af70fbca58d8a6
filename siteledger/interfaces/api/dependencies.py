"""FastAPI dependency utilities."""

from fastapi import Depends, Header, HTTPException, Request, status

from siteledger.application.use_cases.notifications import (
    NotificationDispatcher,
    fallback_names,
)
from siteledger.config import Settings, get_settings
from siteledger.domain.entities import SessionIdentity
from siteledger.infrastructure.record_store import SqlRecordStore


def get_record_store(request: Request) -> SqlRecordStore:
    """Return the record store created for the running application."""

    return request.app.state.record_store


def get_session_identity(
    x_user_id: str = Header(..., min_length=1),
    x_user_role: str = Header(..., min_length=1),
) -> SessionIdentity:
    """Return the identity forwarded by the authentication gateway."""

    return SessionIdentity(user_id=x_user_id, role=x_user_role)


def require_notification_recipient(
    identity: SessionIdentity = Depends(get_session_identity),
    settings: Settings = Depends(get_settings),
) -> SessionIdentity:
    """Ensure the session belongs to a role that receives notifications."""

    if not identity.has_any_role(settings.notification_privileged_roles):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators receive notifications",
        )
    return identity


def get_dispatcher(
    identity: SessionIdentity = Depends(get_session_identity),
    store: SqlRecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_settings),
) -> NotificationDispatcher:
    """Build a dispatcher with the configured privilege and fallback policy."""

    if settings.notification_store_access == "elevated":
        handle = store.elevated()
    else:
        handle = store.as_viewer(identity.user_id)
    return NotificationDispatcher(
        handle,
        fallback=fallback_names(settings.notification_name_fallback),
        currency_symbol=settings.currency_symbol,
    )
