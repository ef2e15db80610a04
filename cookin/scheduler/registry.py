"""Per-user recurring triggers.

SchedulerRegistry owns one asyncio task per (user, trigger).  Each task sleeps
until the trigger's next weekly wall-clock time in the user's timezone, runs
the job, and loops.  schedule_user() always cancels the user's whole set
before recreating it, so calling it repeatedly is safe.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from cookin.db.models import WEEKDAYS, User
from cookin.llm.gateway import get_gateway
from cookin.scheduler import jobs

logger = logging.getLogger(__name__)

POST_COOK_DELAY_HOURS = 2
GROCERY_CHECKIN_DELAY_HOURS = 4

INVENTORY_CONFIRM = "inventory_confirm"
GROCERY_CHECKIN = "grocery_checkin"
COOK_REMINDER = "cook_reminder"
POST_COOK = "post_cook"


@dataclass(frozen=True)
class Trigger:
    name: str
    kind: str
    weekday: str  # the weekday the trigger fires on
    time: str  # HH:MM, user local time
    day: Optional[str] = None  # the cook day the trigger belongs to


def add_hours(weekday: str, time: str, hours: int) -> tuple[str, str]:
    """Shift a weekday + HH:MM by whole hours, rolling over into the next weekday."""
    h, m = (int(part) for part in time.split(":"))
    total = h + hours
    day_index = (WEEKDAYS.index(weekday) + total // 24) % 7
    return WEEKDAYS[day_index], f"{total % 24:02d}:{m:02d}"


def build_triggers(user: User) -> list[Trigger]:
    triggers = []
    if user.grocery_day:
        triggers.append(Trigger(INVENTORY_CONFIRM, INVENTORY_CONFIRM, user.grocery_day, user.grocery_time))
        day, time = add_hours(user.grocery_day, user.grocery_time, GROCERY_CHECKIN_DELAY_HOURS)
        triggers.append(Trigger(GROCERY_CHECKIN, GROCERY_CHECKIN, day, time))
    else:
        logger.warning("No grocery day set for %s, skipping inventory triggers", user.id)

    for cook_day in user.cook_days:
        triggers.append(Trigger(f"{COOK_REMINDER}_{cook_day}", COOK_REMINDER, cook_day, user.cook_reminder_time, cook_day))
        day, time = add_hours(cook_day, user.cook_reminder_time, POST_COOK_DELAY_HOURS)
        triggers.append(Trigger(f"{POST_COOK}_{cook_day}", POST_COOK, day, time, cook_day))
    return triggers


def next_fire_time(weekday: str, time: str, tz: str, now: datetime) -> datetime:
    """Return the next moment strictly after now that is weekday at time in tz."""
    zone = ZoneInfo(tz)
    local_now = now.astimezone(zone)
    h, m = (int(part) for part in time.split(":"))
    days_ahead = (WEEKDAYS.index(weekday) - local_now.weekday()) % 7
    target_date = local_now.date() + timedelta(days=days_ahead)
    candidate = datetime(target_date.year, target_date.month, target_date.day, h, m, tzinfo=zone)
    if candidate <= local_now:
        target_date += timedelta(days=7)
        candidate = datetime(target_date.year, target_date.month, target_date.day, h, m, tzinfo=zone)
    return candidate


class SchedulerRegistry:
    """Trigger tasks keyed by user id. Owned by the app lifespan, not a global."""

    def __init__(self, sender, gateway_factory: Callable = get_gateway):
        self.sender = sender
        self.gateway_factory = gateway_factory
        self._tasks: dict[str, dict[str, asyncio.Task]] = {}

    def job_names(self, user_id: str) -> list[str]:
        return sorted(self._tasks.get(user_id, {}))

    def schedule_user(self, user: User) -> None:
        self.cancel_user(user.id)
        triggers = build_triggers(user)
        if not triggers:
            return
        self._tasks[user.id] = {
            t.name: asyncio.create_task(self._loop(user.id, user.timezone, t), name=f"{user.id}:{t.name}")
            for t in triggers
        }
        logger.info("Scheduled %d jobs for %s", len(triggers), user.id)

    def cancel_user(self, user_id: str) -> None:
        for task in self._tasks.pop(user_id, {}).values():
            task.cancel()

    def boot(self, users: list[User]) -> None:
        logger.info("Booting scheduler for %d onboarded user(s)", len(users))
        for user in users:
            self.schedule_user(user)

    async def shutdown(self) -> None:
        tasks = [t for user_tasks in self._tasks.values() for t in user_tasks.values()]
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def run_trigger(self, user_id: str, trigger: Trigger) -> None:
        """Run the job behind a trigger once."""
        if trigger.kind == INVENTORY_CONFIRM:
            await jobs.trigger_inventory_confirmation(user_id, self.sender, self.gateway_factory, self)
        elif trigger.kind == GROCERY_CHECKIN:
            await jobs.trigger_grocery_checkin(user_id, self.sender)
        elif trigger.kind == COOK_REMINDER:
            await jobs.trigger_cook_reminder(user_id, trigger.day, self.sender)
        elif trigger.kind == POST_COOK:
            await jobs.trigger_post_cook_checkin(user_id, self.sender)
        else:
            raise ValueError(f"Unknown trigger kind: {trigger.kind}")

    async def _loop(self, user_id: str, tz: str, trigger: Trigger) -> None:
        after = datetime.now(timezone.utc)
        while True:
            fire_at = next_fire_time(trigger.weekday, trigger.time, tz, max(after, datetime.now(timezone.utc)))
            await asyncio.sleep((fire_at - datetime.now(timezone.utc)).total_seconds())
            after = fire_at
            try:
                await self.run_trigger(user_id, trigger)
            except Exception:
                logger.exception("Scheduled job %s failed for %s", trigger.name, user_id)
