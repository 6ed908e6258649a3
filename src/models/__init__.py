"""SQLAlchemy models."""
from models.base import Base, TimestampMixin
from models.bookmark import Bookmark
from models.category import Category
from models.tag import Tag, bookmark_tags
from models.user import User

__all__ = ["Base", "Bookmark", "Category", "Tag", "TimestampMixin", "User", "bookmark_tags"]
