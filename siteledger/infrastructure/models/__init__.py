"""ORM models used by the application infrastructure."""

from .notification import NotificationModel
from .project import ProjectModel
from .user import ProfileModel, UserModel

__all__ = [
    "NotificationModel",
    "ProfileModel",
    "ProjectModel",
    "UserModel",
]
