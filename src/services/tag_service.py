"""Service layer for tag operations."""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.tag import Tag, bookmark_tags
from schemas.tag import TagCount
from schemas.validators import validate_and_normalize_tags


async def get_or_create_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """
    Get existing tags or create new ones.

    Args:
        db: Database session.
        tag_names: Tag names to get or create (normalized here).

    Returns:
        Tag objects in the order of the normalized names.
    """
    normalized = validate_and_normalize_tags(tag_names)
    if not normalized:
        return []

    result = await db.execute(select(Tag).where(Tag.name.in_(normalized)))
    existing_tags = {tag.name: tag for tag in result.scalars()}

    tags = []
    for name in normalized:
        if name in existing_tags:
            tags.append(existing_tags[name])
        else:
            new_tag = Tag(name=name)
            db.add(new_tag)
            tags.append(new_tag)

    await db.flush()
    return tags


async def get_user_tags_with_counts(db: AsyncSession, user_id: int) -> list[TagCount]:
    """
    Get the tags used on a user's bookmarks with how many bookmarks use each.

    Sorted by count desc, then name asc.
    """
    count = func.count(Bookmark.id).label("count")
    result = await db.execute(
        select(Tag.name, count)
        .join(bookmark_tags, Tag.id == bookmark_tags.c.tag_id)
        .join(Bookmark, Bookmark.id == bookmark_tags.c.bookmark_id)
        .where(Bookmark.user_id == user_id)
        .group_by(Tag.id, Tag.name)
        .order_by(count.desc(), Tag.name.asc()),
    )
    return [TagCount(name=name, count=n) for name, n in result.all()]
