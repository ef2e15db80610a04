import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request

from cookin.conversation.states import is_onboarding
from cookin.core import users
from app.dependencies import get_session_user

router = APIRouter(prefix="/api/preferences", tags=["preferences"])


def _profile(user) -> dict:
    return {
        "name": user.name,
        "cuisine_preferences": user.cuisine_preferences,
        "dietary_restrictions": user.dietary_restrictions,
        "household_size": user.household_size,
        "skill_level": user.skill_level,
        "cook_days": user.cook_days,
        "grocery_day": user.grocery_day,
        "grocery_time": user.grocery_time,
        "cook_reminder_time": user.cook_reminder_time,
        "timezone": user.timezone,
        "max_messages_per_day": user.max_messages_per_day,
        "conversation_state": user.conversation_state,
    }


@router.get("")
def get_preferences(user_id: str = Depends(get_session_user)):
    return _profile(users.get_or_create(user_id))


@router.post("")
async def update_preferences(
    request: Request,
    name: Optional[str] = Form(None),
    cuisine_preferences: Optional[str] = Form(None),
    dietary_restrictions: Optional[str] = Form(None),
    household_size: Optional[str] = Form(None),
    skill_level: Optional[str] = Form(None),
    cook_days: Optional[str] = Form(None),
    grocery_day: Optional[str] = Form(None),
    grocery_time: Optional[str] = Form(None),
    cook_reminder_time: Optional[str] = Form(None),
    timezone: Optional[str] = Form(None),
    max_messages_per_day: Optional[str] = Form(None),
    user_id: str = Depends(get_session_user),
):
    submitted = {
        "name": name,
        "cuisine_preferences": cuisine_preferences,
        "dietary_restrictions": dietary_restrictions,
        "household_size": household_size,
        "skill_level": skill_level,
        "cook_days": cook_days,
        "grocery_day": grocery_day,
        "grocery_time": grocery_time,
        "cook_reminder_time": cook_reminder_time,
        "timezone": timezone,
        "max_messages_per_day": max_messages_per_day,
    }
    fields = {k: v for k, v in submitted.items() if v is not None}
    await asyncio.to_thread(users.get_or_create, user_id)
    try:
        user = await asyncio.to_thread(users.update_user, user_id, fields)
    except users.InvalidFieldError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if any(k in users.SCHEDULE_FIELDS for k in fields) and not is_onboarding(user.conversation_state):
        request.app.state.scheduler.schedule_user(user)
    return _profile(user)
