"""Service layer for category CRUD operations."""
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.category import Category
from services.exceptions import (
    CategoryAlreadyExistsError,
    CategoryInUseError,
    CategoryNotFoundError,
)


async def get_category(db: AsyncSession, user_id: int, category_id: int) -> Category | None:
    """Get a category by ID, scoped to user. Returns None if not found or wrong user."""
    result = await db.execute(
        select(Category).where(
            Category.id == category_id,
            Category.user_id == user_id,
        ),
    )
    return result.scalar_one_or_none()


async def get_categories_with_counts(
    db: AsyncSession,
    user_id: int,
) -> list[tuple[Category, int]]:
    """Get all of a user's categories ordered by name, each with its bookmark count."""
    result = await db.execute(
        select(Category, func.count(Bookmark.id))
        .outerjoin(Bookmark, Bookmark.category_id == Category.id)
        .where(Category.user_id == user_id)
        .group_by(Category.id)
        .order_by(Category.name),
    )
    return [(category, count) for category, count in result.all()]


async def _ensure_name_available(
    db: AsyncSession,
    user_id: int,
    name: str,
    exclude_id: int | None = None,
) -> None:
    query = select(Category.id).where(Category.user_id == user_id, Category.name == name)
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    result = await db.execute(query)
    if result.first() is not None:
        raise CategoryAlreadyExistsError(name)


async def _flush(db: AsyncSession, name: str) -> None:
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise CategoryAlreadyExistsError(name) from e


async def create_category(db: AsyncSession, user_id: int, name: str) -> Category:
    """
    Create a category for a user.

    Raises:
        CategoryAlreadyExistsError: If the user already has a category with this name.

    Note: Does not commit. Caller (session generator) handles commit at request end.
    """
    await _ensure_name_available(db, user_id, name)
    category = Category(user_id=user_id, name=name)
    db.add(category)
    await _flush(db, name)
    await db.refresh(category)
    return category


async def update_category(
    db: AsyncSession,
    user_id: int,
    category_id: int,
    name: str,
) -> Category:
    """
    Rename a category.

    Raises:
        CategoryNotFoundError: If the category doesn't exist or isn't the user's.
        CategoryAlreadyExistsError: If another category already has this name.
    """
    category = await get_category(db, user_id, category_id)
    if category is None:
        raise CategoryNotFoundError(category_id)

    await _ensure_name_available(db, user_id, name, exclude_id=category_id)
    category.name = name
    await _flush(db, name)
    await db.refresh(category)
    return category


async def delete_category(db: AsyncSession, user_id: int, category_id: int) -> None:
    """
    Delete a category that no bookmarks use.

    Raises:
        CategoryNotFoundError: If the category doesn't exist or isn't the user's.
        CategoryInUseError: If bookmarks are still assigned to it.
    """
    category = await get_category(db, user_id, category_id)
    if category is None:
        raise CategoryNotFoundError(category_id)

    result = await db.execute(
        select(func.count(Bookmark.id)).where(
            Bookmark.category_id == category_id,
            Bookmark.user_id == user_id,
        ),
    )
    bookmark_count = result.scalar_one()
    if bookmark_count > 0:
        raise CategoryInUseError(category_id, bookmark_count)

    await db.delete(category)
    await db.flush()
