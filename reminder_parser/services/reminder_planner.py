from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo

from reminder_parser.core.settings import get_settings
from reminder_parser.schemas.notifications import Notification
from reminder_parser.services.llm_service import NotificationParser
from reminder_parser.services.schedule import (
    OneShotRun,
    RecurringSlot,
    expand_notification,
    next_occurrence,
    to_local,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PlannedRun:
    run_at: datetime
    run_at_utc: datetime


@dataclass(slots=True)
class ReminderPlan:
    text: str
    notification: Notification
    runs: list[PlannedRun] = field(default_factory=list)
    recurring: list[RecurringSlot] = field(default_factory=list)
    skipped_past: list[datetime] = field(default_factory=list)
    tz: ZoneInfo | None = None

    @property
    def is_recurring(self) -> bool:
        return bool(self.recurring)

    def next_fire_at(self, now: datetime) -> datetime | None:
        if self.tz is not None:
            now = to_local(now, self.tz)
        candidates = [run.run_at for run in self.runs if run.run_at > now]
        candidates.extend(next_occurrence(slot, now) for slot in self.recurring)
        return min(candidates, default=None)


class ReminderPlanner:
    def __init__(self, parser: NotificationParser) -> None:
        self._parser = parser

    async def plan(self, query: str, now: datetime | None = None) -> ReminderPlan:
        settings = get_settings()
        local_tz = ZoneInfo(settings.app_timezone)
        now = to_local(now or datetime.now(local_tz), local_tz)

        notification = await self._parser.parse(query, now=now)
        return build_plan(notification, now=now, tz=local_tz)


def build_plan(notification: Notification, now: datetime, tz: ZoneInfo) -> ReminderPlan:
    now = to_local(now, tz)
    plan = ReminderPlan(text=notification.text, notification=notification, tz=tz)
    for entry in expand_notification(notification, now=now, tz=tz):
        if isinstance(entry, RecurringSlot):
            plan.recurring.append(entry)
            continue
        if isinstance(entry, OneShotRun) and entry.run_at <= now:
            plan.skipped_past.append(entry.run_at)
            continue
        plan.runs.append(PlannedRun(run_at=entry.run_at, run_at_utc=entry.run_at_utc))

    if plan.skipped_past:
        logger.warning(
            "Dropped reminder runs in the past: text=%s count=%s",
            plan.text,
            len(plan.skipped_past),
        )
    return plan
