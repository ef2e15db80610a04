"""SQLite database connection management and schema initialization.

Provides a single-file database at ~/.cookin/cookin.db (or DB_PATH).
Every public function that needs a connection should call get_connection(),
use it, and close it in a finally block.
"""

import os
import sqlite3
from pathlib import Path


def get_db_path() -> Path:
    """Return the active DB path.

    Priority order:
    1. DB_PATH environment variable (used by Docker / tests)
    2. Default ~/.cookin/cookin.db
    """
    env_url = os.environ.get("DB_PATH")
    if env_url:
        p = Path(env_url)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    db_dir = Path.home() / ".cookin"
    db_dir.mkdir(exist_ok=True)
    return db_dir / "cookin.db"


def get_connection(db_path: Path = None) -> sqlite3.Connection:
    """Return a new SQLite connection with Row factory and foreign keys enabled.

    Callers are responsible for closing the connection when done.
    """
    if db_path is None:
        db_path = get_db_path()
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: Path = None) -> None:
    """Create all tables if they don't already exist.

    Called once at application startup from app/main.py.
    Tables: users, inventory_items, meal_plans, planned_meals, grocery_lists,
    saved_recipes, message_log, settings.
    """
    conn = get_connection(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                id                   TEXT PRIMARY KEY,
                name                 TEXT,
                cuisine_preferences  TEXT NOT NULL DEFAULT '[]',
                dietary_restrictions TEXT NOT NULL DEFAULT '[]',
                household_size       INTEGER NOT NULL DEFAULT 1,
                skill_level          TEXT NOT NULL DEFAULT 'beginner',
                cook_days            TEXT NOT NULL DEFAULT '[]',
                grocery_day          TEXT,
                grocery_time         TEXT NOT NULL DEFAULT '10:00',
                cook_reminder_time   TEXT NOT NULL DEFAULT '17:30',
                timezone             TEXT NOT NULL DEFAULT 'America/Los_Angeles',
                max_messages_per_day INTEGER NOT NULL DEFAULT 5,
                conversation_state   TEXT NOT NULL DEFAULT 'new',
                state_context        TEXT NOT NULL DEFAULT '{}',
                created_at           TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at           TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS inventory_items (
                id           INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id      TEXT NOT NULL REFERENCES users(id),
                name         TEXT NOT NULL,
                category     TEXT,
                quantity     TEXT,
                is_staple    INTEGER NOT NULL DEFAULT 0,
                last_updated TEXT DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (user_id, name)
            );

            CREATE TABLE IF NOT EXISTS meal_plans (
                id         INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id    TEXT NOT NULL REFERENCES users(id),
                week_start TEXT NOT NULL,
                status     TEXT NOT NULL DEFAULT 'draft',
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE UNIQUE INDEX IF NOT EXISTS idx_meal_plans_one_active
                ON meal_plans (user_id) WHERE status IN ('draft', 'confirmed');

            CREATE TABLE IF NOT EXISTS planned_meals (
                id            INTEGER PRIMARY KEY AUTOINCREMENT,
                meal_plan_id  INTEGER NOT NULL REFERENCES meal_plans(id) ON DELETE CASCADE,
                day           TEXT NOT NULL,
                meal_type     TEXT NOT NULL DEFAULT 'dinner',
                recipe_name   TEXT NOT NULL,
                steps         TEXT,
                ingredients   TEXT NOT NULL DEFAULT '[]',
                cook_time_min INTEGER,
                status        TEXT NOT NULL DEFAULT 'pending',
                rating        INTEGER,
                comment       TEXT,
                is_favorite   INTEGER NOT NULL DEFAULT 0,
                created_at    TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS grocery_lists (
                id           INTEGER PRIMARY KEY AUTOINCREMENT,
                meal_plan_id INTEGER NOT NULL REFERENCES meal_plans(id) ON DELETE CASCADE,
                items        TEXT NOT NULL DEFAULT '[]',
                sent_at      TEXT,
                fulfilled    INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS saved_recipes (
                id             INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id        TEXT NOT NULL REFERENCES users(id),
                name           TEXT NOT NULL,
                original_steps TEXT,
                modified_steps TEXT,
                ingredients    TEXT NOT NULL DEFAULT '[]',
                cook_time_min  INTEGER,
                cuisine        TEXT,
                rating         INTEGER,
                notes          TEXT,
                times_cooked   INTEGER NOT NULL DEFAULT 0,
                last_cooked    TEXT,
                is_favorite    INTEGER NOT NULL DEFAULT 0,
                created_at     TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE UNIQUE INDEX IF NOT EXISTS idx_saved_recipes_name
                ON saved_recipes (user_id, LOWER(name));

            CREATE TABLE IF NOT EXISTS message_log (
                id        INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id   TEXT NOT NULL,
                direction TEXT NOT NULL,
                content   TEXT NOT NULL,
                sent_at   TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS settings (
                key   TEXT PRIMARY KEY,
                value TEXT
            );
        """)
        conn.commit()
    finally:
        conn.close()
