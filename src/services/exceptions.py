"""Shared exceptions for service layer operations."""


class UserAlreadyExistsError(Exception):
    """Raised when a username or email is already registered."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"{field.capitalize()} already exists")


class CategoryNotFoundError(Exception):
    """Raised when a category doesn't exist or doesn't belong to the user."""

    def __init__(self, category_id: int) -> None:
        self.category_id = category_id
        super().__init__(f"Category {category_id} not found")


class CategoryAlreadyExistsError(Exception):
    """Raised when the user already has a category with this name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Category '{name}' already exists")


class CategoryInUseError(Exception):
    """Raised when deleting a category that still has bookmarks."""

    def __init__(self, category_id: int, bookmark_count: int) -> None:
        self.category_id = category_id
        self.bookmark_count = bookmark_count
        super().__init__(
            f"Cannot delete category with {bookmark_count} bookmarks. "
            "Remove or reassign the bookmarks first.",
        )


class BookmarkNotFoundError(Exception):
    """Raised when a bookmark doesn't exist or doesn't belong to the user."""

    def __init__(self, bookmark_id: int) -> None:
        self.bookmark_id = bookmark_id
        super().__init__(f"Bookmark {bookmark_id} not found")
