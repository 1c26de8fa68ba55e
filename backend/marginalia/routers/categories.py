from fastapi import APIRouter, HTTPException

from ..models.annotation_types import AnnotationWithCategory
from ..models.category import (
    PRESET_COLORS,
    Category,
    CategoryInput,
    CategoryWithUsageCount,
)
from ..services.categories_service import DuplicateCategoryError
from ..services.database_service import db_service

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("/", response_model=list[Category])
async def list_categories():
    """All categories, most recently used first."""
    return db_service.categories.list_sorted_by_recent()


@router.get("/presets")
async def get_preset_colors() -> list[dict[str, str]]:
    return PRESET_COLORS


@router.post("/", response_model=Category)
async def create_category(payload: CategoryInput):
    try:
        category = db_service.categories.create(payload)
    except DuplicateCategoryError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if category is None:
        raise HTTPException(status_code=500, detail="Failed to create category")
    return category


@router.get("/{category_id:int}", response_model=Category)
async def get_category(category_id: int):
    category = db_service.categories.get_by_id(category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.get("/{category_id:int}/usage", response_model=CategoryWithUsageCount)
async def get_category_usage(category_id: int):
    """Category with the number of annotations that would lose their tag on delete."""
    category = db_service.categories.get_with_usage_count(category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.get(
    "/{category_id:int}/annotations", response_model=list[AnnotationWithCategory]
)
async def get_category_annotations(category_id: int):
    """Every passage tagged with the category, grouped by document."""
    if not db_service.categories.get_by_id(category_id):
        raise HTTPException(status_code=404, detail="Category not found")
    return db_service.annotations.list_by_category(category_id)


@router.put("/{category_id:int}", response_model=Category)
async def update_category(category_id: int, payload: CategoryInput):
    try:
        category = db_service.categories.update(category_id, payload)
    except DuplicateCategoryError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.delete("/{category_id:int}")
async def delete_category(category_id: int) -> dict[str, str]:
    success = db_service.categories.delete(category_id)
    if not success:
        raise HTTPException(status_code=404, detail="Category not found")
    return {"message": "Category deleted successfully"}
