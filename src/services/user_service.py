"""Service layer for user lookup and registration."""
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User
from services.exceptions import UserAlreadyExistsError


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Get a user by primary key. Returns None if the account no longer exists."""
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Get a user by email (stored lowercase)."""
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Get a user by exact username."""
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    username: str,
    email: str,
    password_hash: str,
) -> User:
    """
    Create a user from an already-hashed password.

    Checks username and email up front so the conflict can be reported by
    field. The unique constraints still catch a concurrent registration; that
    path rolls back, which is safe because registration does no other work in
    the request.

    Raises:
        UserAlreadyExistsError: If the username or email is taken.

    Note: Uses flush(), not commit. Session generator handles commit at request end.
    """
    email = email.lower()
    if await get_user_by_username(db, username) is not None:
        raise UserAlreadyExistsError("username")
    if await get_user_by_email(db, email) is not None:
        raise UserAlreadyExistsError("email")

    user = User(username=username, email=email, password_hash=password_hash)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        field = "email" if "email" in str(e.orig).lower() else "username"
        raise UserAlreadyExistsError(field) from e
    await db.refresh(user)
    return user
