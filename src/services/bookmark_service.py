"""Service layer for bookmark CRUD operations."""
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.tag import Tag, bookmark_tags
from schemas.bookmark import BookmarkCreate, BookmarkUpdate
from services import tag_service
from services.category_service import get_category
from services.exceptions import BookmarkNotFoundError, CategoryNotFoundError

logger = logging.getLogger(__name__)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so search terms match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def _check_category(db: AsyncSession, user_id: int, category_id: int | None) -> None:
    if category_id is not None and await get_category(db, user_id, category_id) is None:
        raise CategoryNotFoundError(category_id)


async def get_bookmark(
    db: AsyncSession,
    user_id: int,
    bookmark_id: int,
) -> Bookmark | None:
    """Get a bookmark by ID, scoped to user. Returns None if not found or wrong user."""
    result = await db.execute(
        select(Bookmark)
        .where(
            Bookmark.id == bookmark_id,
            Bookmark.user_id == user_id,
        )
        .execution_options(populate_existing=True),
    )
    return result.scalar_one_or_none()


async def search_bookmarks(
    db: AsyncSession,
    user_id: int,
    category_id: int | None = None,
    search: str | None = None,
    tags: list[str] | None = None,
    offset: int = 0,
    limit: int = 10,
) -> tuple[list[Bookmark], int]:
    """
    Search a user's bookmarks, newest first.

    Args:
        db: Database session.
        user_id: Owner of the bookmarks.
        category_id: Only bookmarks in this category.
        search: Case-insensitive substring of title, description or url.
        tags: Only bookmarks carrying at least one of these (normalized) tags.
        offset: Pagination offset.
        limit: Page size.

    Returns:
        Tuple of (bookmarks for the page, total matching count).
    """
    filters = [Bookmark.user_id == user_id]
    if category_id is not None:
        filters.append(Bookmark.category_id == category_id)
    if search:
        pattern = f"%{escape_like(search.lower())}%"
        filters.append(
            or_(
                func.lower(Bookmark.title).like(pattern, escape="\\"),
                func.lower(Bookmark.description).like(pattern, escape="\\"),
                func.lower(Bookmark.url).like(pattern, escape="\\"),
            ),
        )
    if tags:
        tagged = (
            select(bookmark_tags.c.bookmark_id)
            .join(Tag, Tag.id == bookmark_tags.c.tag_id)
            .where(Tag.name.in_(tags))
        )
        filters.append(Bookmark.id.in_(tagged))

    total_result = await db.execute(select(func.count(Bookmark.id)).where(*filters))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Bookmark)
        .where(*filters)
        .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        .offset(offset)
        .limit(limit),
    )
    return list(result.scalars().all()), total


async def create_bookmark(
    db: AsyncSession,
    user_id: int,
    data: BookmarkCreate,
) -> Bookmark:
    """
    Create a new bookmark for a user.

    Raises:
        CategoryNotFoundError: If category_id isn't one of the user's categories.

    Note: Does not commit. Caller (session generator) handles commit at request end.
    """
    await _check_category(db, user_id, data.category_id)

    bookmark = Bookmark(
        user_id=user_id,
        category_id=data.category_id,
        url=str(data.url),
        title=data.title,
        description=data.description,
        preview_image=data.preview_image,
    )
    bookmark.tag_objects = await tag_service.get_or_create_tags(db, data.tags)
    db.add(bookmark)
    await db.flush()
    logger.debug("Created bookmark %s for user %s", bookmark.id, user_id)

    # Reload server-generated timestamps and tags
    return await get_bookmark(db, user_id, bookmark.id)


async def update_bookmark(
    db: AsyncSession,
    user_id: int,
    bookmark_id: int,
    data: BookmarkUpdate,
) -> Bookmark:
    """
    Update a bookmark. Only fields present in the request are changed.

    Raises:
        BookmarkNotFoundError: If the bookmark doesn't exist or isn't the user's.
        CategoryNotFoundError: If a new category_id isn't one of the user's.
    """
    bookmark = await get_bookmark(db, user_id, bookmark_id)
    if bookmark is None:
        raise BookmarkNotFoundError(bookmark_id)

    update_data = data.model_dump(exclude_unset=True)
    if "category_id" in update_data:
        await _check_category(db, user_id, update_data["category_id"])

    tags = update_data.pop("tags", None)
    if tags is not None:
        bookmark.tag_objects = await tag_service.get_or_create_tags(db, tags)

    for field, value in update_data.items():
        if field in ("url", "title") and value is None:
            continue  # Required columns can't be cleared
        if field == "url":
            value = str(value)
        setattr(bookmark, field, value)

    await db.flush()
    return await get_bookmark(db, user_id, bookmark_id)


async def delete_bookmark(
    db: AsyncSession,
    user_id: int,
    bookmark_id: int,
) -> None:
    """Delete a bookmark. Raises BookmarkNotFoundError if it isn't the user's."""
    bookmark = await get_bookmark(db, user_id, bookmark_id)
    if bookmark is None:
        raise BookmarkNotFoundError(bookmark_id)

    await db.delete(bookmark)
    await db.flush()
