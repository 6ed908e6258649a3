"""Tag normalization shared by bookmark schemas, services and query parsing."""
import re

# Lowercase alphanumeric segments joined by single hyphens, e.g. 'web-dev'
TAG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")

MAX_TAG_LENGTH = 100


def validate_and_normalize_tag(tag: str) -> str:
    """
    Lowercase and trim a tag, then check it against TAG_PATTERN.

    Raises:
        ValueError: If the tag is not a string, blank, too long, or malformed.
    """
    if not isinstance(tag, str):
        raise ValueError(f"Tag must be a string, got {type(tag).__name__}")
    name = tag.strip().lower()
    if not name:
        raise ValueError("Tag name cannot be empty")
    if len(name) > MAX_TAG_LENGTH:
        raise ValueError(f"Tag exceeds maximum length of {MAX_TAG_LENGTH} characters")
    if TAG_PATTERN.fullmatch(name) is None:
        raise ValueError(
            f"Invalid tag format: '{name}'. "
            "Use lowercase letters, numbers, and hyphens only (e.g., 'web-dev').",
        )
    return name


def validate_and_normalize_tags(tags: list[str]) -> list[str]:
    """
    Normalize a list of tags for storage.

    Blank entries are dropped and duplicates collapse to their first
    occurrence, so ["Python", " python ", ""] becomes ["python"].

    Raises:
        ValueError: If tags is a bare string or any non-blank tag is invalid.
    """
    if isinstance(tags, str):
        raise ValueError("Tags must be a list of strings")
    names = (
        validate_and_normalize_tag(tag)
        for tag in tags
        if not isinstance(tag, str) or tag.strip()
    )
    return list(dict.fromkeys(names))


def parse_tag_query(value: str | None) -> list[str]:
    """Split a comma-separated ?tags= query value into normalized tags."""
    if not value:
        return []
    return validate_and_normalize_tags(value.split(","))
