from contextlib import asynccontextmanager
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from cookin.core import users
from cookin.db.database import init_db
from cookin.log import setup_logging
from cookin.scheduler.registry import SchedulerRegistry
from cookin.sender import Sender
from app.dependencies import verify_session_token, is_public, SESSION_COOKIE
from app.routers import auth, chat, webhook, meal_plan, recipes, preferences, settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = setup_logging()
    init_db()
    sender = Sender()
    scheduler = SchedulerRegistry(sender)
    scheduler.boot(users.get_onboarded())
    app.state.sender = sender
    app.state.scheduler = scheduler
    logger.info("Cookin server started")
    yield
    await scheduler.shutdown()
    await sender.aclose()


app = FastAPI(lifespan=lifespan)


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    if not is_public(request.url.path):
        token = request.cookies.get(SESSION_COOKIE)
        if not token or not verify_session_token(token):
            if request.url.path.startswith("/api/"):
                return JSONResponse({"detail": "Not signed in"}, status_code=401)
            return RedirectResponse(url="/login", status_code=302)
    return await call_next(request)


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(auth.router)
app.include_router(chat.router)
app.include_router(webhook.router)
app.include_router(meal_plan.router)
app.include_router(recipes.router)
app.include_router(preferences.router)
app.include_router(settings.router)
