"""Pydantic schemas for category endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CategoryCreate(BaseModel):
    """Schema for creating or renaming a category."""

    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Trim whitespace; a blank name is rejected."""
        v = v.strip()
        if not v:
            raise ValueError("Category name cannot be empty")
        return v


class CategoryUpdate(CategoryCreate):
    """Schema for renaming a category."""


class CategoryResponse(BaseModel):
    """Schema for a single category."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime
    updated_at: datetime


class CategoryWithCount(CategoryResponse):
    """Category in list responses, with the number of bookmarks in it."""

    bookmark_count: int
