"""SQLAlchemy models for the sample application.

Importing this package registers every model with the declarative
registry, so string relationship targets resolve.
"""

from .base import Base, SoftDeleteModel, TimestampMixin
from .user import User
from .post import Post, PostStatus
from .billing.invoice import Invoice
from .tag import Tag

__all__ = [
    "Base",
    "SoftDeleteModel",
    "TimestampMixin",
    "User",
    "Post",
    "PostStatus",
    "Invoice",
    "Tag",
]
