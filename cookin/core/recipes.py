"""Saved recipe library: recipes a user chose to keep, with ratings and history.

Names are unique per user, case-insensitively.  save() raises
DuplicateRecipeError instead of inserting a second row with the same name;
callers that want merge behaviour look the recipe up with find_by_name() first.
"""

import json
import sqlite3
from typing import Optional

from cookin.db.database import get_connection
from cookin.db.models import SavedRecipe


class DuplicateRecipeError(ValueError):
    """A recipe with the same (case-insensitive) name already exists for this user."""


def _row_to_recipe(row) -> SavedRecipe:
    return SavedRecipe(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        original_steps=row["original_steps"],
        modified_steps=row["modified_steps"],
        ingredients=json.loads(row["ingredients"] or "[]"),
        cook_time_min=row["cook_time_min"],
        cuisine=row["cuisine"],
        rating=row["rating"],
        notes=row["notes"],
        times_cooked=row["times_cooked"],
        last_cooked=row["last_cooked"],
        is_favorite=bool(row["is_favorite"]),
        created_at=row["created_at"],
    )


def get_all(user_id: str) -> list[SavedRecipe]:
    """Return the user's recipes, best rated and most cooked first."""
    conn = get_connection()
    try:
        rows = conn.execute(
            "SELECT * FROM saved_recipes WHERE user_id = ? "
            "ORDER BY rating IS NULL, rating DESC, times_cooked DESC, name",
            (user_id,),
        ).fetchall()
        return [_row_to_recipe(r) for r in rows]
    finally:
        conn.close()


def get(recipe_id: int) -> Optional[SavedRecipe]:
    conn = get_connection()
    try:
        row = conn.execute("SELECT * FROM saved_recipes WHERE id = ?", (recipe_id,)).fetchone()
        return _row_to_recipe(row) if row else None
    finally:
        conn.close()


def find_by_name(user_id: str, name: str) -> Optional[SavedRecipe]:
    """Case-insensitive exact-name lookup."""
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT * FROM saved_recipes WHERE user_id = ? AND LOWER(name) = LOWER(?)",
            (user_id, name.strip()),
        ).fetchone()
        return _row_to_recipe(row) if row else None
    finally:
        conn.close()


def save(user_id: str, name: str, original_steps: str = None, ingredients: list = None,
         modified_steps: str = None, cook_time_min: int = None, cuisine: str = None,
         rating: int = None, notes: str = None) -> int:
    """Insert a new saved recipe and return its id.

    Raises DuplicateRecipeError if the user already has a recipe with this name.
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Recipe name is required")
    if rating is not None and not 1 <= int(rating) <= 5:
        raise ValueError("Rating must be between 1 and 5")
    conn = get_connection()
    try:
        cursor = conn.execute(
            """INSERT INTO saved_recipes
               (user_id, name, original_steps, modified_steps, ingredients,
                cook_time_min, cuisine, rating, notes)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                user_id, name, original_steps, modified_steps, json.dumps(ingredients or []),
                cook_time_min, cuisine, int(rating) if rating is not None else None, notes,
            ),
        )
        conn.commit()
        return cursor.lastrowid
    except sqlite3.IntegrityError as e:
        raise DuplicateRecipeError(f"Recipe '{name}' already exists") from e
    finally:
        conn.close()


def update_rating(recipe_id: int, rating: int, notes: str = None) -> None:
    """Set the rating (1-5), and the notes when given."""
    if not 1 <= int(rating) <= 5:
        raise ValueError("Rating must be between 1 and 5")
    conn = get_connection()
    try:
        if notes is not None:
            conn.execute(
                "UPDATE saved_recipes SET rating = ?, notes = ? WHERE id = ?",
                (int(rating), notes, recipe_id),
            )
        else:
            conn.execute("UPDATE saved_recipes SET rating = ? WHERE id = ?", (int(rating), recipe_id))
        conn.commit()
    finally:
        conn.close()


def update_modifications(recipe_id: int, modified_steps: str, notes: str = None) -> None:
    conn = get_connection()
    try:
        if notes is not None:
            conn.execute(
                "UPDATE saved_recipes SET modified_steps = ?, notes = ? WHERE id = ?",
                (modified_steps, notes, recipe_id),
            )
        else:
            conn.execute(
                "UPDATE saved_recipes SET modified_steps = ? WHERE id = ?",
                (modified_steps, recipe_id),
            )
        conn.commit()
    finally:
        conn.close()


def increment_times_cooked(recipe_id: int) -> None:
    conn = get_connection()
    try:
        conn.execute(
            "UPDATE saved_recipes SET times_cooked = times_cooked + 1, last_cooked = date('now') WHERE id = ?",
            (recipe_id,),
        )
        conn.commit()
    finally:
        conn.close()


def toggle_favorite(recipe_id: int) -> bool:
    """Flip is_favorite and return the new value. Raises LookupError if the recipe doesn't exist."""
    conn = get_connection()
    try:
        row = conn.execute("SELECT is_favorite FROM saved_recipes WHERE id = ?", (recipe_id,)).fetchone()
        if not row:
            raise LookupError(f"Recipe {recipe_id} not found")
        new_value = 0 if row["is_favorite"] else 1
        conn.execute("UPDATE saved_recipes SET is_favorite = ? WHERE id = ?", (new_value, recipe_id))
        conn.commit()
        return bool(new_value)
    finally:
        conn.close()
