"""Category management endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_identity, rate_limit
from core.auth import AuthenticatedIdentity
from core.rate_limit_config import RouteGroup
from schemas.category import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    CategoryWithCount,
)
from services import category_service
from services.exceptions import (
    CategoryAlreadyExistsError,
    CategoryInUseError,
    CategoryNotFoundError,
)

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get(
    "/",
    response_model=list[CategoryWithCount],
    dependencies=[Depends(rate_limit(RouteGroup.CATEGORY_LIST))],
)
async def list_categories(
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
) -> list[CategoryWithCount]:
    """Get all categories for the current user, ordered by name, with bookmark counts."""
    rows = await category_service.get_categories_with_counts(db, identity.subject_id)
    return [
        CategoryWithCount(
            id=category.id,
            name=category.name,
            created_at=category.created_at,
            updated_at=category.updated_at,
            bookmark_count=count,
        )
        for category, count in rows
    ]


@router.post(
    "/",
    response_model=CategoryResponse,
    status_code=201,
    dependencies=[Depends(rate_limit())],
)
async def create_category(
    data: CategoryCreate,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
) -> CategoryResponse:
    """
    Create a category.

    Returns 409 if the user already has a category with this name.
    """
    try:
        category = await category_service.create_category(db, identity.subject_id, data.name)
    except CategoryAlreadyExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return CategoryResponse.model_validate(category)


@router.put(
    "/{category_id}",
    response_model=CategoryResponse,
    dependencies=[Depends(rate_limit())],
)
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
) -> CategoryResponse:
    """
    Rename a category.

    Returns 404 if the category doesn't exist, 409 if the name is taken.
    """
    try:
        category = await category_service.update_category(
            db, identity.subject_id, category_id, data.name,
        )
    except CategoryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    except CategoryAlreadyExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return CategoryResponse.model_validate(category)


@router.delete("/{category_id}", status_code=204, dependencies=[Depends(rate_limit())])
async def delete_category(
    category_id: int,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """
    Delete a category.

    Returns 404 if the category doesn't exist, 409 if bookmarks still use it.
    """
    try:
        await category_service.delete_category(db, identity.subject_id, category_id)
    except CategoryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    except CategoryInUseError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
