"""Weekly meal plans, their planned meals, and grocery lists.

A user has at most one active plan (status draft or confirmed).  create_plan()
completes any other active plan before inserting the new draft, and a partial
unique index on meal_plans backs that up.  A plan whose week started 7 or more
days ago is stale: get_current_plan() marks it completed and returns None.
"""

import json
from datetime import date, timedelta
from typing import Optional

from cookin.db.database import get_connection
from cookin.db.models import MEAL_TYPES, WEEKDAYS, GroceryList, MealPlan, PlannedMeal

ACTIVE_STATUSES = ("draft", "confirmed")
MEAL_STATUSES = ("pending", "cooked", "skipped")


def get_week_start(for_date: date = None) -> date:
    """Returns the Monday of the week containing for_date."""
    if for_date is None:
        for_date = date.today()
    return for_date - timedelta(days=for_date.weekday())


def _meal_sort_key(meal: PlannedMeal):
    day = WEEKDAYS.index(meal.day) if meal.day in WEEKDAYS else len(WEEKDAYS)
    mt = MEAL_TYPES.index(meal.meal_type) if meal.meal_type in MEAL_TYPES else len(MEAL_TYPES)
    return (day, mt, meal.id or 0)


def _row_to_meal(row) -> PlannedMeal:
    return PlannedMeal(
        id=row["id"],
        meal_plan_id=row["meal_plan_id"],
        day=row["day"],
        meal_type=row["meal_type"] or "dinner",
        recipe_name=row["recipe_name"],
        steps=row["steps"],
        ingredients=json.loads(row["ingredients"] or "[]"),
        cook_time_min=row["cook_time_min"],
        status=row["status"],
        rating=row["rating"],
        comment=row["comment"],
        is_favorite=bool(row["is_favorite"]),
    )


def _load_meals(conn, plan_id: int) -> list[PlannedMeal]:
    rows = conn.execute("SELECT * FROM planned_meals WHERE meal_plan_id = ?", (plan_id,)).fetchall()
    return sorted((_row_to_meal(r) for r in rows), key=_meal_sort_key)


def _row_to_plan(row, conn) -> MealPlan:
    return MealPlan(
        id=row["id"],
        user_id=row["user_id"],
        week_start=row["week_start"],
        status=row["status"],
        created_at=row["created_at"],
        meals=_load_meals(conn, row["id"]),
    )


def get_plan(plan_id: int) -> Optional[MealPlan]:
    conn = get_connection()
    try:
        row = conn.execute("SELECT * FROM meal_plans WHERE id = ?", (plan_id,)).fetchone()
        return _row_to_plan(row, conn) if row else None
    finally:
        conn.close()


def get_current_plan(user_id: str, today: date = None) -> Optional[MealPlan]:
    """Return the user's active plan with its meals, or None.

    A plan whose week_start is 7+ days before today is marked completed and
    treated as absent.
    """
    today = today or date.today()
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT * FROM meal_plans WHERE user_id = ? AND status IN ('draft', 'confirmed') "
            "ORDER BY week_start DESC, id DESC LIMIT 1",
            (user_id,),
        ).fetchone()
        if not row:
            return None
        if (today - date.fromisoformat(row["week_start"])).days >= 7:
            conn.execute("UPDATE meal_plans SET status = 'completed' WHERE id = ?", (row["id"],))
            conn.commit()
            return None
        return _row_to_plan(row, conn)
    finally:
        conn.close()


def create_plan(user_id: str, week_start: date = None) -> int:
    """Create a new draft plan, completing any other active plan first. Returns the plan id."""
    week_start = week_start or get_week_start()
    conn = get_connection()
    try:
        conn.execute(
            "UPDATE meal_plans SET status = 'completed' WHERE user_id = ? AND status IN ('draft', 'confirmed')",
            (user_id,),
        )
        cursor = conn.execute(
            "INSERT INTO meal_plans (user_id, week_start) VALUES (?, ?)",
            (user_id, week_start.isoformat()),
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def count_plans_created_today(user_id: str) -> int:
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT COUNT(*) AS cnt FROM meal_plans WHERE user_id = ? AND created_at >= date('now')",
            (user_id,),
        ).fetchone()
        return row["cnt"]
    finally:
        conn.close()


def add_meal(plan_id: int, day: str, recipe_name: str, meal_type: str = "dinner", steps: str = None,
             ingredients: list = None, cook_time_min: int = None) -> int:
    """Insert a planned meal and return its id."""
    if meal_type not in MEAL_TYPES:
        meal_type = "dinner"
    conn = get_connection()
    try:
        cursor = conn.execute(
            """INSERT INTO planned_meals
               (meal_plan_id, day, meal_type, recipe_name, steps, ingredients, cook_time_min)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (plan_id, day, meal_type, recipe_name, steps, json.dumps(ingredients or []), cook_time_min),
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def remove_meal(meal_id: int) -> None:
    conn = get_connection()
    try:
        conn.execute("DELETE FROM planned_meals WHERE id = ?", (meal_id,))
        conn.commit()
    finally:
        conn.close()


def clear_meals(plan_id: int) -> None:
    conn = get_connection()
    try:
        conn.execute("DELETE FROM planned_meals WHERE meal_plan_id = ?", (plan_id,))
        conn.commit()
    finally:
        conn.close()


def confirm_plan(plan_id: int) -> None:
    conn = get_connection()
    try:
        conn.execute("UPDATE meal_plans SET status = 'confirmed' WHERE id = ?", (plan_id,))
        conn.commit()
    finally:
        conn.close()


def get_planned_meal(meal_id: int) -> Optional[PlannedMeal]:
    conn = get_connection()
    try:
        row = conn.execute("SELECT * FROM planned_meals WHERE id = ?", (meal_id,)).fetchone()
        return _row_to_meal(row) if row else None
    finally:
        conn.close()


def get_meal_owner(meal_id: int) -> Optional[str]:
    """Return the user id owning the plan this meal belongs to."""
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT mp.user_id FROM planned_meals pm JOIN meal_plans mp ON pm.meal_plan_id = mp.id WHERE pm.id = ?",
            (meal_id,),
        ).fetchone()
        return row["user_id"] if row else None
    finally:
        conn.close()


def get_meal_for_day(user_id: str, day: str, meal_type: str = None, today: date = None) -> Optional[PlannedMeal]:
    """Return the pending meal for day in the current plan.

    Without meal_type, dinner is preferred, then the latest other meal of the day.
    """
    plan = get_current_plan(user_id, today)
    if not plan:
        return None
    pending = [m for m in plan.meals if m.day == day and m.status == "pending"]
    if meal_type:
        pending = [m for m in pending if m.meal_type == meal_type]
    if not pending:
        return None
    dinners = [m for m in pending if m.meal_type == "dinner"]
    return dinners[0] if dinners else pending[-1]


def update_meal_status(meal_id: int, status: str, rating: int = None) -> None:
    if status not in MEAL_STATUSES:
        raise ValueError(f"Invalid meal status: {status}")
    if rating is not None and not 1 <= int(rating) <= 5:
        raise ValueError("Rating must be between 1 and 5")
    conn = get_connection()
    try:
        if rating is not None:
            conn.execute(
                "UPDATE planned_meals SET status = ?, rating = ? WHERE id = ?",
                (status, int(rating), meal_id),
            )
        else:
            conn.execute("UPDATE planned_meals SET status = ? WHERE id = ?", (status, meal_id))
        conn.commit()
    finally:
        conn.close()


def update_meal_rating(meal_id: int, rating: int) -> None:
    if not 1 <= int(rating) <= 5:
        raise ValueError("Rating must be between 1 and 5")
    conn = get_connection()
    try:
        conn.execute("UPDATE planned_meals SET rating = ? WHERE id = ?", (int(rating), meal_id))
        conn.commit()
    finally:
        conn.close()


def update_meal_comment(meal_id: int, comment: Optional[str]) -> None:
    conn = get_connection()
    try:
        conn.execute("UPDATE planned_meals SET comment = ? WHERE id = ?", (comment or None, meal_id))
        conn.commit()
    finally:
        conn.close()


def toggle_meal_favorite(meal_id: int) -> bool:
    """Flip is_favorite and return the new value. Raises LookupError if the meal doesn't exist."""
    conn = get_connection()
    try:
        row = conn.execute("SELECT is_favorite FROM planned_meals WHERE id = ?", (meal_id,)).fetchone()
        if not row:
            raise LookupError(f"Meal {meal_id} not found")
        new_value = 0 if row["is_favorite"] else 1
        conn.execute("UPDATE planned_meals SET is_favorite = ? WHERE id = ?", (new_value, meal_id))
        conn.commit()
        return bool(new_value)
    finally:
        conn.close()


# -- Grocery lists ------------------------------------------------------------

def create_grocery_list(plan_id: int, items: list[dict]) -> int:
    conn = get_connection()
    try:
        cursor = conn.execute(
            "INSERT INTO grocery_lists (meal_plan_id, items, sent_at) VALUES (?, ?, CURRENT_TIMESTAMP)",
            (plan_id, json.dumps(items)),
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def get_grocery_list(plan_id: int) -> Optional[GroceryList]:
    """Return the latest grocery list for the plan, or None."""
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT * FROM grocery_lists WHERE meal_plan_id = ? ORDER BY id DESC LIMIT 1",
            (plan_id,),
        ).fetchone()
        if not row:
            return None
        return GroceryList(
            id=row["id"],
            meal_plan_id=row["meal_plan_id"],
            items=json.loads(row["items"] or "[]"),
            sent_at=row["sent_at"],
            fulfilled=bool(row["fulfilled"]),
        )
    finally:
        conn.close()


def fulfill_grocery_list(grocery_list_id: int) -> None:
    conn = get_connection()
    try:
        conn.execute("UPDATE grocery_lists SET fulfilled = 1 WHERE id = ?", (grocery_list_id,))
        conn.commit()
    finally:
        conn.close()
