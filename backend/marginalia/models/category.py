"""
Category Type Models

Categories tag annotations and supply the tint used when rendering them.
"""

from pydantic import BaseModel, Field

# Muted palette offered when creating a category
PRESET_COLORS: list[dict[str, str]] = [
    {"name": "Purple", "value": "#e9d5ff"},
    {"name": "Pink", "value": "#fae8ff"},
    {"name": "Yellow", "value": "#fef3c7"},
    {"name": "Green", "value": "#d1fae5"},
    {"name": "Blue", "value": "#dbeafe"},
    {"name": "Indigo", "value": "#e0e7ff"},
    {"name": "Rose", "value": "#fce7f3"},
    {"name": "Orange", "value": "#fed7aa"},
    {"name": "Gray", "value": "#d4d4d8"},
    {"name": "Red", "value": "#fca5a5"},
]

DEFAULT_CATEGORY_COLOR = PRESET_COLORS[0]["value"]

# Names longer than this trigger a UI warning but are still accepted
CATEGORY_NAME_SOFT_LIMIT = 40


class CategoryInput(BaseModel):
    """Validated payload for creating or updating a category"""

    name: str = Field(min_length=1, max_length=100)
    notes: str = ""
    color: str = Field(default=DEFAULT_CATEGORY_COLOR, pattern=r"^#[0-9a-fA-F]{6}$")

    @property
    def name_over_soft_limit(self) -> bool:
        return is_name_over_soft_limit(self.name)


class Category(BaseModel):
    """A category as stored in the database"""

    id: int
    name: str
    notes: str | None = None
    color: str
    last_used_at: str | None = None
    created_at: str
    updated_at: str


class CategoryWithUsageCount(Category):
    """Category plus the number of annotations tagged with it"""

    highlight_count: int = 0


def is_name_over_soft_limit(name: str) -> bool:
    return len(name) > CATEGORY_NAME_SOFT_LIMIT
