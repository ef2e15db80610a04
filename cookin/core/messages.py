"""Message log: every inbound and outbound message, per user.

The log feeds the recent-history replay in idle conversation, the web chat
history view, and the daily outbound limit for scheduled messages.
"""

from datetime import datetime, timezone

from cookin.db.database import get_connection

INBOUND = "inbound"
OUTBOUND = "outbound"


def log_message(user_id: str, direction: str, content: str) -> None:
    if direction not in (INBOUND, OUTBOUND):
        raise ValueError(f"direction must be inbound or outbound, got {direction!r}")
    conn = get_connection()
    try:
        conn.execute(
            "INSERT INTO message_log (user_id, direction, content) VALUES (?, ?, ?)",
            (user_id, direction, content),
        )
        conn.commit()
    finally:
        conn.close()


def get_recent(user_id: str, limit: int = 10, skip: int = 0) -> list[dict]:
    """Return up to `limit` messages, oldest first, as {"role", "content"} dicts.

    skip drops that many of the very newest messages first (e.g. the inbound
    message of the turn in progress).
    """
    conn = get_connection()
    try:
        rows = conn.execute(
            "SELECT direction, content FROM message_log WHERE user_id = ? "
            "ORDER BY id DESC LIMIT ? OFFSET ?",
            (user_id, limit, skip),
        ).fetchall()
    finally:
        conn.close()
    return [
        {"role": "user" if r["direction"] == INBOUND else "assistant", "content": r["content"]}
        for r in reversed(rows)
    ]


def get_history(user_id: str, limit: int = 50) -> list[dict]:
    """Return the last `limit` messages with direction and timestamp, oldest first."""
    conn = get_connection()
    try:
        rows = conn.execute(
            "SELECT id, direction, content, sent_at FROM message_log WHERE user_id = ? "
            "ORDER BY id DESC LIMIT ?",
            (user_id, limit),
        ).fetchall()
        return [dict(r) for r in reversed(rows)]
    finally:
        conn.close()


def count_outbound_today(user_id: str, now: datetime = None) -> int:
    """Count outbound messages since UTC midnight (sent_at is stored in UTC)."""
    now = now or datetime.now(timezone.utc)
    day_start = now.astimezone(timezone.utc).strftime("%Y-%m-%d 00:00:00")
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT COUNT(*) AS cnt FROM message_log WHERE user_id = ? AND direction = ? AND sent_at >= ?",
            (user_id, OUTBOUND, day_start),
        ).fetchone()
        return row["cnt"]
    finally:
        conn.close()


def can_send(user_id: str, max_per_day: int, now: datetime = None) -> bool:
    return count_outbound_today(user_id, now) < max_per_day
