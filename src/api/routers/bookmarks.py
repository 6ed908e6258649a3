"""Bookmark CRUD endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_identity, rate_limit
from core.auth import AuthenticatedIdentity
from core.rate_limit_config import RouteGroup
from schemas.bookmark import (
    BookmarkCreate,
    BookmarkListResponse,
    BookmarkResponse,
    BookmarkUpdate,
)
from schemas.validators import parse_tag_query
from services import bookmark_service
from services.exceptions import BookmarkNotFoundError, CategoryNotFoundError

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bookmark not found")


def _invalid_category() -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid category ID")


@router.get(
    "/",
    response_model=BookmarkListResponse,
    dependencies=[Depends(rate_limit(RouteGroup.BOOKMARK_LIST))],
)
async def list_bookmarks(
    category_id: int | None = None,
    search: str | None = Query(default=None, max_length=200),
    tags: str | None = Query(default=None, description="Comma-separated tag names"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """
    List the current user's bookmarks, newest first.

    - **category_id**: only bookmarks in this category
    - **search**: case-insensitive match in title, description or url
    - **tags**: bookmarks with any of these tags
    """
    try:
        tag_names = parse_tag_query(tags)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    bookmarks, total = await bookmark_service.search_bookmarks(
        db,
        identity.subject_id,
        category_id=category_id,
        search=search,
        tags=tag_names,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return BookmarkListResponse(
        items=[BookmarkResponse.model_validate(b) for b in bookmarks],
        total=total,
        page=page,
        limit=limit,
    )


@router.post(
    "/",
    response_model=BookmarkResponse,
    status_code=201,
    dependencies=[Depends(rate_limit())],
)
async def create_bookmark(
    data: BookmarkCreate,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Create a new bookmark. Returns 400 if category_id isn't one of the user's."""
    try:
        bookmark = await bookmark_service.create_bookmark(db, identity.subject_id, data)
    except CategoryNotFoundError:
        raise _invalid_category()
    return BookmarkResponse.model_validate(bookmark)


@router.get(
    "/{bookmark_id}",
    response_model=BookmarkResponse,
    dependencies=[Depends(rate_limit())],
)
async def get_bookmark(
    bookmark_id: int,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Get a single bookmark by ID."""
    bookmark = await bookmark_service.get_bookmark(db, identity.subject_id, bookmark_id)
    if bookmark is None:
        raise _not_found()
    return BookmarkResponse.model_validate(bookmark)


@router.put(
    "/{bookmark_id}",
    response_model=BookmarkResponse,
    dependencies=[Depends(rate_limit())],
)
async def update_bookmark(
    bookmark_id: int,
    data: BookmarkUpdate,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Update a bookmark. Omitted fields are unchanged."""
    try:
        bookmark = await bookmark_service.update_bookmark(
            db, identity.subject_id, bookmark_id, data,
        )
    except BookmarkNotFoundError:
        raise _not_found()
    except CategoryNotFoundError:
        raise _invalid_category()
    return BookmarkResponse.model_validate(bookmark)


@router.delete("/{bookmark_id}", status_code=204, dependencies=[Depends(rate_limit())])
async def delete_bookmark(
    bookmark_id: int,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Delete a bookmark."""
    try:
        await bookmark_service.delete_bookmark(db, identity.subject_id, bookmark_id)
    except BookmarkNotFoundError:
        raise _not_found()
