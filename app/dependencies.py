import os
from typing import Optional

from fastapi import HTTPException, Request
from itsdangerous import BadSignature, URLSafeTimedSerializer

SESSION_COOKIE = "cookin_session"
SESSION_MAX_AGE = 60 * 60 * 24 * 7  # 7 days

WEB_USER_PREFIX = "web:"


def _get_signer() -> URLSafeTimedSerializer:
    key = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")
    return URLSafeTimedSerializer(key)


def web_user_id(email: str) -> str:
    return WEB_USER_PREFIX + email.strip().lower()


def create_session_token(user_id: str) -> str:
    return _get_signer().dumps(user_id)


def verify_session_token(token: str) -> Optional[str]:
    """Return the user id carried by a valid token, else None."""
    try:
        user_id = _get_signer().loads(token, max_age=SESSION_MAX_AGE)
    except BadSignature:
        return None
    return user_id if isinstance(user_id, str) else None


def get_session_user(request: Request) -> str:
    """FastAPI dependency: the signed-in user's id."""
    token = request.cookies.get(SESSION_COOKIE)
    user_id = verify_session_token(token) if token else None
    if not user_id:
        raise HTTPException(status_code=401, detail="Not signed in")
    return user_id


# Paths that don't require auth
_PUBLIC_PREFIXES = ("/login", "/webhook", "/health")


def is_public(path: str) -> bool:
    return any(path.startswith(p) for p in _PUBLIC_PREFIXES)
