"""Weekly inventory check: the user says which checklist items they still have."""

import logging
import re
from typing import Optional

from cookin.conversation.states import ConversationState as S
from cookin.conversation.turn import Turn
from cookin.core import inventory

logger = logging.getLogger(__name__)


def _indices_from_text(text: str, count: int) -> Optional[list[int]]:
    """Read 'all', 'none' or 1-based numbers straight from the message. None if it's none of those."""
    lower = text.strip().lower()
    if lower in ("all", "everything", "all of them"):
        return list(range(count))
    if lower in ("none", "nothing", "none of them"):
        return []
    numbers = re.findall(r"\d+", lower)
    if numbers and not re.sub(r"\band\b|[\d\s,;.]", "", lower):
        return [int(n) - 1 for n in numbers]
    return None


async def _keep_indices(turn: Turn, text: str, count: int) -> list[int]:
    parsed = await turn.classify(text, S.AWAITING_INVENTORY_CONFIRM)
    raw = parsed.data.get("keep_indices")
    if parsed.intent == "inventory_confirm" and isinstance(raw, list):
        indices = []
        for i in raw:
            try:
                indices.append(int(i))
            except (TypeError, ValueError):
                continue
        return indices
    from_text = _indices_from_text(text, count)
    if from_text is not None:
        return from_text
    logger.warning("Could not read inventory reply from %s, keeping everything", turn.user.id)
    return list(range(count))


async def handle(turn: Turn, text: str) -> str:
    checklist_ids = list(turn.user.state_context.get("inventory_checklist") or [])
    indices = await _keep_indices(turn, text, len(checklist_ids))

    keep = {checklist_ids[i] for i in indices if 0 <= i < len(checklist_ids)}
    checklist_set = set(checklist_ids)
    # Items added after the checklist went out are never deleted here.
    keep.update(item.id for item in inventory.get_all(turn.user.id) if item.id not in checklist_set)
    inventory.keep_only_ids(turn.user.id, keep)

    kept = len(keep & checklist_set)
    removed = len(checklist_set) - kept
    turn.move_to(S.IDLE, {"trigger_meal_plan": True})

    if removed == 0:
        return "Great, you still have everything! Let me put together your meal plan..."
    return f"Updated! Kept {kept} items, removed {removed}. Let me put together your meal plan..."
