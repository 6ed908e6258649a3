"""Tag listing endpoint."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_identity, rate_limit
from core.auth import AuthenticatedIdentity
from schemas.tag import TagListResponse
from services.tag_service import get_user_tags_with_counts

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("/", response_model=TagListResponse, dependencies=[Depends(rate_limit())])
async def list_tags(
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
) -> TagListResponse:
    """Get the tags on the current user's bookmarks with usage counts."""
    tags = await get_user_tags_with_counts(db, identity.subject_id)
    return TagListResponse(tags=tags)
