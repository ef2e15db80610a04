"""Kitchen inventory: what each user currently has on hand.

Names are lowercased on the way in, so (user_id, name) is unique and adding
an item that already exists updates it instead of creating a second row.
"""

from typing import Optional

from cookin.db.database import get_connection
from cookin.db.models import InventoryItem


def _row_to_item(row) -> InventoryItem:
    return InventoryItem(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        category=row["category"],
        quantity=row["quantity"],
        is_staple=bool(row["is_staple"]),
        last_updated=row["last_updated"],
    )


def get_all(user_id: str) -> list[InventoryItem]:
    """Return the user's inventory, staples first, then alphabetical."""
    conn = get_connection()
    try:
        rows = conn.execute(
            "SELECT * FROM inventory_items WHERE user_id = ? ORDER BY is_staple DESC, name ASC",
            (user_id,),
        ).fetchall()
        return [_row_to_item(r) for r in rows]
    finally:
        conn.close()


def _upsert(conn, user_id: str, name: str, category: Optional[str], quantity: Optional[str], is_staple: bool) -> None:
    conn.execute(
        """INSERT INTO inventory_items (user_id, name, category, quantity, is_staple)
           VALUES (?, ?, ?, ?, ?)
           ON CONFLICT(user_id, name) DO UPDATE SET
               category = COALESCE(excluded.category, category),
               quantity = COALESCE(excluded.quantity, quantity),
               is_staple = excluded.is_staple,
               last_updated = CURRENT_TIMESTAMP""",
        (user_id, name.strip().lower(), category, quantity, 1 if is_staple else 0),
    )


def add_item(user_id: str, name: str, category: str = None, quantity: str = None, is_staple: bool = False) -> None:
    """Insert an item, or refresh category/quantity/timestamp if the name already exists."""
    if not name or not name.strip():
        raise ValueError("Item name is required")
    conn = get_connection()
    try:
        _upsert(conn, user_id, name, category, quantity, is_staple)
        conn.commit()
    finally:
        conn.close()


def add_items(user_id: str, items: list[dict]) -> int:
    """Upsert many items in one transaction. Each dict needs 'name'; blanks are skipped.

    Returns the number of items written.
    """
    written = 0
    conn = get_connection()
    try:
        for item in items:
            name = str(item.get("name") or item.get("item_name") or "").strip()
            if not name:
                continue
            quantity = item.get("quantity")
            _upsert(
                conn,
                user_id,
                name,
                item.get("category"),
                str(quantity) if quantity is not None else None,
                bool(item.get("is_staple", False)),
            )
            written += 1
        conn.commit()
    finally:
        conn.close()
    return written


def remove_item(user_id: str, name: str) -> None:
    conn = get_connection()
    try:
        conn.execute(
            "DELETE FROM inventory_items WHERE user_id = ? AND name = ?",
            (user_id, name.strip().lower()),
        )
        conn.commit()
    finally:
        conn.close()


def keep_only_ids(user_id: str, ids_to_keep) -> None:
    """Delete every item of this user whose id is not in ids_to_keep.

    Repeating the call with the same ids leaves the inventory unchanged.
    """
    ids = sorted(set(ids_to_keep))
    conn = get_connection()
    try:
        if not ids:
            conn.execute("DELETE FROM inventory_items WHERE user_id = ?", (user_id,))
        else:
            placeholders = ",".join("?" * len(ids))
            conn.execute(
                f"DELETE FROM inventory_items WHERE user_id = ? AND id NOT IN ({placeholders})",
                [user_id, *ids],
            )
        conn.commit()
    finally:
        conn.close()
