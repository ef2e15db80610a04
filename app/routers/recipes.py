from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from cookin.core import recipes as recipes_core
from app.dependencies import get_session_user

router = APIRouter(prefix="/api/recipes", tags=["recipes"])


@router.get("")
def list_recipes(q: str = "", favorites: bool = False, user_id: str = Depends(get_session_user)):
    saved = recipes_core.get_all(user_id)
    if q:
        needle = q.lower()
        saved = [r for r in saved if needle in r.name.lower() or needle in (r.cuisine or "").lower()]
    if favorites:
        saved = [r for r in saved if r.is_favorite]
    return {"recipes": [asdict(r) for r in saved]}


@router.get("/{recipe_id}")
def get_recipe(recipe_id: int, user_id: str = Depends(get_session_user)):
    recipe = recipes_core.get(recipe_id)
    if not recipe or recipe.user_id != user_id:
        raise HTTPException(status_code=404, detail="Recipe not found")
    return asdict(recipe)


@router.post("/{recipe_id}/favorite")
def toggle_favorite(recipe_id: int, user_id: str = Depends(get_session_user)):
    recipe = recipes_core.get(recipe_id)
    if not recipe or recipe.user_id != user_id:
        raise HTTPException(status_code=404, detail="Recipe not found")
    return {"id": recipe_id, "is_favorite": recipes_core.toggle_favorite(recipe_id)}
