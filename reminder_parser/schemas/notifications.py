from __future__ import annotations

import json
from datetime import datetime, time
from enum import Enum
from typing import Annotated, Any, Literal
from zoneinfo import ZoneInfo

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, ValidationInfo, field_validator, model_validator

from reminder_parser.core.settings import get_settings
from reminder_parser.llm.prompts import PromptDialect

TIMESTAMP_FORMATS = ("%d.%m.%Y %H:%M:%S", "%d.%m.%Y %H:%M")
TIMESTAMP_OUTPUT_FORMAT = "%d.%m.%Y %H:%M:%S"


class NotificationKind(str, Enum):
    absolute = "absolute"
    relative = "relative"
    recurrent = "recurrent"


KIND_ALIASES: dict[str, NotificationKind] = {
    "absolute": NotificationKind.absolute,
    "abs": NotificationKind.absolute,
    "relative": NotificationKind.relative,
    "rel": NotificationKind.relative,
    "recurrent": NotificationKind.recurrent,
    "rec": NotificationKind.recurrent,
}

SHORT_KIND_NAMES: dict[NotificationKind, str] = {
    NotificationKind.absolute: "abs",
    NotificationKind.relative: "rel",
    NotificationKind.recurrent: "rec",
}

# 1 = Monday ... 7 = Sunday, as in the few-shot examples (Friday is 5).
WeekdayNumber = Annotated[int, Field(ge=1, le=7)]


def normalize_notification_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Fold both naming schemes into the canonical one.

    Accepts abs/rel/rec discriminators, a singular "time" key (string or
    list) and a bare integer for "days".
    """
    normalized = dict(payload)
    kind = normalized.get("kind")
    if isinstance(kind, str):
        canonical = KIND_ALIASES.get(kind.strip().lower())
        if canonical is not None:
            normalized["kind"] = canonical.value

    if "time" in normalized:
        single = normalized.pop("time")
        if "times" not in normalized:
            normalized["times"] = single
    if isinstance(normalized.get("times"), str):
        normalized["times"] = [normalized["times"]]

    if isinstance(normalized.get("days"), int) and not isinstance(normalized.get("days"), bool):
        normalized["days"] = [normalized["days"]]
    return normalized


def parse_timestamp(value: str, tz: ZoneInfo) -> datetime:
    raw = value.strip()
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(raw, fmt).replace(tzinfo=tz)
        except ValueError:
            continue
    raise ValueError(f"Timestamp must look like DD.MM.YYYY HH:MM[:SS], got {value!r}")


def parse_time_of_day(value: str) -> time:
    raw = value.strip().replace(".", ":").replace("-", ":")
    parts = raw.split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Time of day must look like HH:MM[:SS], got {value!r}")
    try:
        numbers = [int(part) for part in parts]
    except ValueError as exc:
        raise ValueError(f"Time of day must look like HH:MM[:SS], got {value!r}") from exc
    hours, minutes = numbers[0], numbers[1]
    seconds = numbers[2] if len(numbers) == 3 else 0
    if not (0 <= hours <= 23 and 0 <= minutes <= 59 and 0 <= seconds <= 59):
        raise ValueError(f"Time of day is out of range: {value!r}")
    return time(hour=hours, minute=minutes, second=seconds)


def format_time_of_day(value: time) -> str:
    if value.second:
        return value.strftime("%H:%M:%S")
    return value.strftime("%H:%M")


def _context_tz(info: ValidationInfo) -> ZoneInfo:
    context = info.context or {}
    tz = context.get("tz")
    if tz is None:
        tz = ZoneInfo(get_settings().app_timezone)
    return tz


class _NotificationBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str = Field(min_length=1, max_length=1000)

    @model_validator(mode="before")
    @classmethod
    def normalize_aliases(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return normalize_notification_payload(data)
        return data

    @field_validator("text")
    @classmethod
    def strip_text(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("text must not be blank")
        return stripped


class _TimesOfDayMixin(BaseModel):
    times: list[time] = Field(min_length=1, max_length=24)

    @field_validator("times", mode="before")
    @classmethod
    def parse_times(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [parse_time_of_day(item) if isinstance(item, str) else item for item in value]


class AbsoluteNotification(_NotificationBase):
    kind: Literal[NotificationKind.absolute]
    times: list[datetime] = Field(min_length=1, max_length=30)

    @field_validator("times", mode="before")
    @classmethod
    def parse_timestamps(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, list):
            return value
        tz = _context_tz(info)
        parsed = []
        for item in value:
            if isinstance(item, str):
                item = parse_timestamp(item, tz)
            elif isinstance(item, datetime) and item.tzinfo is None:
                item = item.replace(tzinfo=tz)
            parsed.append(item)
        return parsed


class RelativeNotification(_TimesOfDayMixin, _NotificationBase):
    kind: Literal[NotificationKind.relative]
    week: int = Field(ge=0, le=52)
    days: list[WeekdayNumber] = Field(min_length=1, max_length=7)

    @field_validator("days")
    @classmethod
    def unique_days(cls, value: list[int]) -> list[int]:
        if len(set(value)) != len(value):
            raise ValueError("days must not repeat")
        return value

    @property
    def weekday_indices(self) -> list[int]:
        """Days as 0=Monday..6=Sunday, the numbering of datetime.weekday()."""
        return [day - 1 for day in self.days]


class RecurrentNotification(_TimesOfDayMixin, _NotificationBase):
    kind: Literal[NotificationKind.recurrent]
    days: Annotated[list[WeekdayNumber], Field(min_length=1, max_length=7)] | None = None

    @field_validator("days")
    @classmethod
    def unique_days(cls, value: list[int] | None) -> list[int] | None:
        if value is not None and len(set(value)) != len(value):
            raise ValueError("days must not repeat")
        return value

    @property
    def weekday_indices(self) -> list[int] | None:
        if self.days is None:
            return None
        return [day - 1 for day in self.days]


def _normalize_if_dict(data: Any) -> Any:
    if isinstance(data, dict):
        return normalize_notification_payload(data)
    return data


Notification = Annotated[
    Annotated[
        AbsoluteNotification | RelativeNotification | RecurrentNotification,
        Field(discriminator="kind"),
    ],
    BeforeValidator(_normalize_if_dict),
]

notification_adapter = TypeAdapter(Notification)


def notification_to_payload(
    notification: AbsoluteNotification | RelativeNotification | RecurrentNotification,
    dialect: PromptDialect | str = PromptDialect.short,
    tz: ZoneInfo | None = None,
) -> dict[str, Any]:
    dialect = PromptDialect(dialect)
    kind = notification.kind
    kind_name = SHORT_KIND_NAMES[kind] if dialect == PromptDialect.short else kind.value
    payload: dict[str, Any] = {"kind": kind_name, "text": notification.text}

    if isinstance(notification, AbsoluteNotification):
        tz = tz or ZoneInfo(get_settings().app_timezone)
        payload["times"] = [item.astimezone(tz).strftime(TIMESTAMP_OUTPUT_FORMAT) for item in notification.times]
        return payload

    if isinstance(notification, RelativeNotification):
        payload["week"] = notification.week
    if notification.days is not None:
        payload["days"] = list(notification.days)
    payload["times"] = [format_time_of_day(item) for item in notification.times]
    return payload


def dump_notification(
    notification: AbsoluteNotification | RelativeNotification | RecurrentNotification,
    dialect: PromptDialect | str = PromptDialect.short,
    tz: ZoneInfo | None = None,
) -> str:
    return json.dumps(notification_to_payload(notification, dialect, tz), ensure_ascii=False)
