from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException

from cookin.core import meal_plan as mp_core
from app.dependencies import get_session_user

router = APIRouter(prefix="/api/meal-plan", tags=["meal_plan"])


def _owned_meal(meal_id: int, user_id: str) -> int:
    if mp_core.get_meal_owner(meal_id) != user_id:
        raise HTTPException(status_code=404, detail="Meal not found")
    return meal_id


@router.get("")
def current_plan(user_id: str = Depends(get_session_user)):
    plan = mp_core.get_current_plan(user_id)
    if not plan:
        return {"plan": None}
    grocery_list = mp_core.get_grocery_list(plan.id)
    return {
        "plan": asdict(plan),
        "grocery_list": asdict(grocery_list) if grocery_list else None,
    }


@router.post("/meals/{meal_id}/status")
def set_status(meal_id: int, status: str = Form(...), rating: Optional[int] = Form(None),
               user_id: str = Depends(get_session_user)):
    _owned_meal(meal_id, user_id)
    try:
        mp_core.update_meal_status(meal_id, status, rating)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return asdict(mp_core.get_planned_meal(meal_id))


@router.post("/meals/{meal_id}/rating")
def set_rating(meal_id: int, rating: int = Form(...), user_id: str = Depends(get_session_user)):
    _owned_meal(meal_id, user_id)
    try:
        mp_core.update_meal_rating(meal_id, rating)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return asdict(mp_core.get_planned_meal(meal_id))


@router.post("/meals/{meal_id}/comment")
def set_comment(meal_id: int, comment: str = Form(""), user_id: str = Depends(get_session_user)):
    _owned_meal(meal_id, user_id)
    mp_core.update_meal_comment(meal_id, comment.strip())
    return asdict(mp_core.get_planned_meal(meal_id))


@router.post("/meals/{meal_id}/favorite")
def toggle_favorite(meal_id: int, user_id: str = Depends(get_session_user)):
    _owned_meal(meal_id, user_id)
    return {"id": meal_id, "is_favorite": mp_core.toggle_meal_favorite(meal_id)}
