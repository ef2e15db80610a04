"""User profiles, schedules and conversation state.

A user row is created on first contact (state 'new') and never deleted.
Profile updates go through update_user(), which only accepts the closed set of
fields in FIELD_SETTERS; each setter validates and normalizes its value before
anything is written.
"""

import json
import re
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cookin.db.database import get_connection
from cookin.db.models import SKILL_LEVELS, WEEKDAYS, User


class InvalidFieldError(ValueError):
    """Raised when a profile update names an unknown field or carries a bad value."""


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        name=row["name"],
        cuisine_preferences=json.loads(row["cuisine_preferences"] or "[]"),
        dietary_restrictions=json.loads(row["dietary_restrictions"] or "[]"),
        household_size=row["household_size"],
        skill_level=row["skill_level"],
        cook_days=json.loads(row["cook_days"] or "[]"),
        grocery_day=row["grocery_day"],
        grocery_time=row["grocery_time"],
        cook_reminder_time=row["cook_reminder_time"],
        timezone=row["timezone"],
        max_messages_per_day=row["max_messages_per_day"],
        conversation_state=row["conversation_state"],
        state_context=json.loads(row["state_context"] or "{}"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def get(user_id: str) -> Optional[User]:
    """Return the user with this id, or None."""
    conn = get_connection()
    try:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_user(row) if row else None
    finally:
        conn.close()


def get_or_create(user_id: str) -> User:
    """Return the user, inserting a fresh 'new' row on first contact."""
    conn = get_connection()
    try:
        conn.execute("INSERT OR IGNORE INTO users (id) VALUES (?)", (user_id,))
        conn.commit()
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_user(row)
    finally:
        conn.close()


def get_onboarded() -> list[User]:
    """Return every user who has finished onboarding."""
    conn = get_connection()
    try:
        rows = conn.execute(
            "SELECT * FROM users WHERE conversation_state NOT LIKE 'onboarding_%' "
            "AND conversation_state != 'new' ORDER BY id"
        ).fetchall()
        return [_row_to_user(r) for r in rows]
    finally:
        conn.close()


# -- Normalizers --------------------------------------------------------------

_DAY_ABBREVIATIONS = {d[:3].lower(): d for d in WEEKDAYS}
_DAY_ABBREVIATIONS.update({"tues": "Tuesday", "wed": "Wednesday", "thur": "Thursday", "thurs": "Thursday"})


def normalize_weekday(value: str) -> Optional[str]:
    """Return the full capitalized weekday name for 'mon', 'Monday', 'MONDAYS' etc., or None."""
    if not isinstance(value, str):
        return None
    v = value.strip().lower().rstrip(".")
    if v.endswith("s") and v[:-1].capitalize() in WEEKDAYS:
        v = v[:-1]
    if v.capitalize() in WEEKDAYS:
        return v.capitalize()
    return _DAY_ABBREVIATIONS.get(v)


_TIME_RE = re.compile(r"^\s*(\d{1,2})(?::(\d{2}))?\s*([ap]\.?m\.?)?\s*$", re.IGNORECASE)


def normalize_time(value: str) -> Optional[str]:
    """Parse '5:30pm', '17:30', '9 am' into 24-hour 'HH:MM'. Returns None if unparseable."""
    if not isinstance(value, str):
        return None
    m = _TIME_RE.match(value)
    if not m:
        return None
    hour = int(m.group(1))
    minute = int(m.group(2) or 0)
    suffix = (m.group(3) or "").lower().replace(".", "")
    if suffix:
        if hour < 1 or hour > 12:
            return None
        if suffix == "pm" and hour != 12:
            hour += 12
        elif suffix == "am" and hour == 12:
            hour = 0
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def _string_list(value) -> list[str]:
    if isinstance(value, str):
        value = re.split(r"[,;]", value)
    if not isinstance(value, (list, tuple)):
        raise InvalidFieldError("expected a list of strings")
    return [str(v).strip() for v in value if str(v).strip()]


def _set_name(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidFieldError("name must be a non-empty string")
    return value.strip()


def _set_household_size(value) -> int:
    try:
        size = int(value)
    except (TypeError, ValueError):
        raise InvalidFieldError(f"household_size must be a positive integer, got {value!r}")
    if size < 1:
        raise InvalidFieldError("household_size must be at least 1")
    return size


def _set_skill_level(value) -> str:
    level = str(value).strip().lower()
    if level not in SKILL_LEVELS:
        raise InvalidFieldError(f"skill_level must be one of {', '.join(SKILL_LEVELS)}")
    return level


def _set_cook_days(value) -> list[str]:
    days = []
    for raw in _string_list(value):
        day = normalize_weekday(raw)
        if day is None:
            raise InvalidFieldError(f"not a weekday: {raw!r}")
        if day not in days:
            days.append(day)
    return sorted(days, key=WEEKDAYS.index)


def _set_grocery_day(value) -> Optional[str]:
    if value is None or (isinstance(value, str) and value.strip().lower() in ("", "none", "null")):
        return None
    day = normalize_weekday(value)
    if day is None:
        raise InvalidFieldError(f"not a weekday: {value!r}")
    return day


def _set_time(value) -> str:
    t = normalize_time(value) if isinstance(value, str) else None
    if t is None:
        raise InvalidFieldError(f"not a time of day: {value!r}")
    return t


def _set_timezone(value) -> str:
    try:
        ZoneInfo(str(value))
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidFieldError(f"unknown timezone: {value!r}")
    return str(value)


def _set_max_messages(value) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise InvalidFieldError(f"max_messages_per_day must be a positive integer, got {value!r}")
    if n < 1:
        raise InvalidFieldError("max_messages_per_day must be at least 1")
    return n


FIELD_SETTERS = {
    "name": _set_name,
    "cuisine_preferences": _string_list,
    "dietary_restrictions": _string_list,
    "household_size": _set_household_size,
    "skill_level": _set_skill_level,
    "cook_days": _set_cook_days,
    "grocery_day": _set_grocery_day,
    "grocery_time": _set_time,
    "cook_reminder_time": _set_time,
    "timezone": _set_timezone,
    "max_messages_per_day": _set_max_messages,
}

SCHEDULE_FIELDS = ("cook_days", "grocery_day", "grocery_time", "cook_reminder_time", "timezone")


def validate_fields(fields: dict) -> dict:
    """Return the normalized column values for fields, or raise InvalidFieldError."""
    cleaned = {}
    for key, value in fields.items():
        setter = FIELD_SETTERS.get(key)
        if setter is None:
            raise InvalidFieldError(f"unknown field: {key}")
        cleaned[key] = setter(value)
    return cleaned


def update_user(user_id: str, fields: dict) -> User:
    """Validate and apply a partial profile update. Returns the updated user."""
    cleaned = validate_fields(fields)
    if cleaned:
        sets = []
        values = []
        for key, value in cleaned.items():
            sets.append(f"{key} = ?")
            values.append(json.dumps(value) if isinstance(value, list) else value)
        values.append(user_id)
        conn = get_connection()
        try:
            conn.execute(
                f"UPDATE users SET {', '.join(sets)}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                values,
            )
            conn.commit()
        finally:
            conn.close()
    return get(user_id)


def set_conversation_state(user_id: str, state: str, context: dict = None) -> None:
    """Move the user to state, replacing the whole context."""
    conn = get_connection()
    try:
        conn.execute(
            "UPDATE users SET conversation_state = ?, state_context = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (getattr(state, "value", state), json.dumps(context or {}), user_id),
        )
        conn.commit()
    finally:
        conn.close()
