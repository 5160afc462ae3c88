from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from reminder_parser.core.settings import get_settings
from reminder_parser.schemas.notifications import (
    AbsoluteNotification,
    RecurrentNotification,
    RelativeNotification,
)


@dataclass(frozen=True, slots=True)
class OneShotRun:
    run_at: datetime

    @property
    def run_at_utc(self) -> datetime:
        return self.run_at.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class RecurringSlot:
    hour: int
    minute: int
    second: int = 0
    days: tuple[int, ...] | None = None

    def matches_day(self, moment: datetime) -> bool:
        return self.days is None or moment.isoweekday() in self.days


ScheduleEntry = OneShotRun | RecurringSlot


def to_local(moment: datetime, tz: ZoneInfo) -> datetime:
    """Naive values are wall-clock time in ``tz``; aware ones are converted."""
    return moment.replace(tzinfo=tz) if moment.tzinfo is None else moment.astimezone(tz)


def start_of_week(moment: datetime) -> datetime:
    """Midnight of the Monday of the week containing ``moment``."""
    monday = moment - timedelta(days=moment.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def resolve_relative_week(notification: RelativeNotification, now: datetime) -> int:
    today = now.isoweekday()
    if notification.week == 0 and any(day <= today for day in notification.days):
        return 1
    return notification.week


def expand_notification(
    notification: AbsoluteNotification | RelativeNotification | RecurrentNotification,
    now: datetime | None = None,
    tz: ZoneInfo | None = None,
) -> list[ScheduleEntry]:
    tz = tz or ZoneInfo(get_settings().app_timezone)
    now = to_local(now or datetime.now(tz), tz)

    if isinstance(notification, AbsoluteNotification):
        return [OneShotRun(run_at=item.astimezone(tz)) for item in notification.times]

    if isinstance(notification, RelativeNotification):
        week = resolve_relative_week(notification, now)
        monday = start_of_week(now) + timedelta(weeks=week)
        runs: list[ScheduleEntry] = []
        for day in notification.days:
            day_date = (monday + timedelta(days=day - 1)).date()
            for time_value in notification.times:
                run_at = datetime.combine(day_date, time_value, tzinfo=tz)
                runs.append(OneShotRun(run_at=run_at))
        return runs

    if isinstance(notification, RecurrentNotification):
        days = tuple(notification.days) if notification.days is not None else None
        return [
            RecurringSlot(hour=item.hour, minute=item.minute, second=item.second, days=days)
            for item in notification.times
        ]

    raise ValueError(f"Unsupported notification kind: {notification.kind}")


def next_occurrence(slot: RecurringSlot, after: datetime) -> datetime:
    """First moment strictly after ``after`` at which the slot fires."""
    candidate = after.replace(hour=slot.hour, minute=slot.minute, second=slot.second, microsecond=0)
    for _ in range(8):
        if candidate > after and slot.matches_day(candidate):
            return candidate
        candidate += timedelta(days=1)
    raise ValueError("Recurring slot has no matching day")
