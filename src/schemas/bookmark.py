"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from schemas.validators import validate_and_normalize_tags


class BookmarkCreate(BaseModel):
    """Schema for creating a new bookmark."""

    url: HttpUrl
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    preview_image: HttpUrl | None = None
    category_id: int | None = None
    tags: list[str] = []

    @field_validator("tags", mode="after")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        """Normalize tags once pydantic has checked they are a list of strings."""
        return validate_and_normalize_tags(v)

    @field_validator("preview_image", mode="after")
    @classmethod
    def preview_to_str(cls, v: HttpUrl | None) -> str | None:
        """Store preview image URLs as plain strings."""
        return str(v) if v is not None else None


class BookmarkUpdate(BaseModel):
    """
    Schema for updating an existing bookmark.

    Omitted fields are left unchanged. `category_id`, `description` and
    `preview_image` may be set to null explicitly.
    """

    url: HttpUrl | None = None
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    preview_image: HttpUrl | None = None
    category_id: int | None = None
    tags: list[str] | None = None

    @field_validator("tags", mode="after")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str] | None:
        """Normalize tags if provided; null leaves them unchanged."""
        if v is None:
            return None
        return validate_and_normalize_tags(v)

    @field_validator("preview_image", mode="after")
    @classmethod
    def preview_to_str(cls, v: HttpUrl | None) -> str | None:
        """Store preview image URLs as plain strings."""
        return str(v) if v is not None else None


class BookmarkResponse(BaseModel):
    """Schema for bookmark responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    title: str
    description: str | None
    preview_image: str | None
    category_id: int | None
    tags: list[str]
    created_at: datetime
    updated_at: datetime


class BookmarkListResponse(BaseModel):
    """Paginated bookmark list."""

    items: list[BookmarkResponse]
    total: int
    page: int
    limit: int
