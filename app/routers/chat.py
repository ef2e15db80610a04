import asyncio
from pathlib import Path

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from cookin.core import messages, users
from app.delivery import converse
from app.dependencies import get_session_user

router = APIRouter(tags=["chat"])
templates = Jinja2Templates(directory=Path(__file__).parent.parent / "templates")

MAX_CHAT_MESSAGE_LENGTH = 2000


@router.get("/chat", response_class=HTMLResponse)
def chat_page(request: Request, user_id: str = Depends(get_session_user)):
    user = users.get_or_create(user_id)
    return templates.TemplateResponse(request, "chat.html", {
        "active_tab": "chat",
        "user": user,
        "history": messages.get_history(user_id),
    })


@router.post("/api/chat")
async def send_chat(request: Request, message: str = Form(...), user_id: str = Depends(get_session_user)):
    text = message.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Message is required")
    if len(text) > MAX_CHAT_MESSAGE_LENGTH:
        raise HTTPException(status_code=400, detail=f"Message is too long (max {MAX_CHAT_MESSAGE_LENGTH} characters)")
    replies = await converse(user_id, text, request.app.state.sender, request.app.state.scheduler)
    user = await asyncio.to_thread(users.get, user_id)
    return {"replies": replies, "state": user.conversation_state}


@router.get("/api/chat/history")
def chat_history(limit: int = 50, user_id: str = Depends(get_session_user)):
    return {"messages": messages.get_history(user_id, min(max(limit, 1), 200))}
