import json
from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from reminder_parser.schemas.notifications import (
    AbsoluteNotification,
    NotificationKind,
    RecurrentNotification,
    RelativeNotification,
    dump_notification,
    notification_adapter,
    notification_to_payload,
)
from reminder_parser.services.llm_service import NotificationValidationError, parse_notification

ISRAEL = ZoneInfo("Asia/Jerusalem")


def test_parse_absolute_completion() -> None:
    raw = (
        '{"kind": "absolute", "text": "проверить почту", '
        '"times": ["27.01.2023 12:00:00", "27.01.2023 15:00:00"]}'
    )
    notification = parse_notification(raw, tz=ISRAEL)
    assert isinstance(notification, AbsoluteNotification)
    assert notification.text == "проверить почту"
    assert notification.times == [
        datetime.fromisoformat("2023-01-27T12:00:00+02:00"),
        datetime.fromisoformat("2023-01-27T15:00:00+02:00"),
    ]


def test_parse_relative_completion() -> None:
    raw = '{"kind": "relative", "text": "проверить почту", "week": 0, "days": [5], "times": ["12:00", "15:00"]}'
    notification = parse_notification(raw, tz=ISRAEL)
    assert isinstance(notification, RelativeNotification)
    assert notification.week == 0
    assert notification.days == [5]
    assert notification.weekday_indices == [4]
    assert notification.times == [time(12, 0), time(15, 0)]


def test_parse_accepts_short_discriminators() -> None:
    absolute = parse_notification({"kind": "abs", "text": "a", "times": ["24.07.2022 16:33"]}, tz=ISRAEL)
    relative = parse_notification({"kind": "rel", "text": "b", "week": 1, "days": [1], "times": ["09:30"]}, tz=ISRAEL)
    assert absolute.kind == NotificationKind.absolute
    assert absolute.times == [datetime(2022, 7, 24, 16, 33, tzinfo=ISRAEL)]
    assert relative.kind == NotificationKind.relative


def test_parse_accepts_singular_time_field() -> None:
    notification = parse_notification(
        '{"kind": "relative", "text": "собеседование", "week": 1, "days": [5], "time": "12:00"}',
        tz=ISRAEL,
    )
    assert notification.times == [time(12, 0)]


def test_parse_accepts_bare_day_and_seconds() -> None:
    notification = parse_notification(
        {"kind": "rel", "text": "x", "week": 0, "days": 6, "times": ["12:00:30"]},
        tz=ISRAEL,
    )
    assert notification.days == [6]
    assert notification.times == [time(12, 0, 30)]


def test_parse_recurrent_without_days_means_every_day() -> None:
    notification = parse_notification({"kind": "rec", "text": "water plants", "times": ["08:00", "20:00"]})
    assert isinstance(notification, RecurrentNotification)
    assert notification.days is None
    assert notification.weekday_indices is None


def test_parse_strips_code_fence_and_answer_prefix() -> None:
    raw = '```json\n{"kind": "abs", "text": "t", "times": ["01.02.2023 10:00:00"]}\n```'
    assert parse_notification(raw, tz=ISRAEL).text == "t"
    raw = 'Answer: {"kind": "abs", "text": "t", "times": ["01.02.2023 10:00:00"]}'
    assert parse_notification(raw, tz=ISRAEL).text == "t"


@pytest.mark.parametrize(
    "raw",
    [
        "not-json",
        "[1, 2]",
        '{"kind": "weekly", "text": "x", "times": ["12:00"]}',
        '{"kind": "abs", "text": "x", "times": []}',
        '{"kind": "abs", "text": "x", "times": ["2023-01-27 12:00"]}',
        '{"kind": "abs", "text": "x", "week": 0, "times": ["27.01.2023 12:00"]}',
        '{"kind": "rel", "text": "x", "week": 0, "days": [0], "times": ["12:00"]}',
        '{"kind": "rel", "text": "x", "week": 0, "days": [5, 5], "times": ["12:00"]}',
        '{"kind": "rel", "text": "x", "week": -1, "days": [5], "times": ["12:00"]}',
        '{"kind": "rel", "text": "x", "week": 0, "days": [5], "times": ["25:00"]}',
        '{"kind": "rec", "text": "   ", "times": ["12:00"]}',
    ],
)
def test_parse_rejects_unknown_shapes(raw: str) -> None:
    with pytest.raises(NotificationValidationError):
        parse_notification(raw, tz=ISRAEL)


def test_dump_uses_requested_dialect() -> None:
    notification = parse_notification(
        {"kind": "relative", "text": "x", "week": 1, "days": [2, 4], "time": "07:05"},
        tz=ISRAEL,
    )
    assert notification_to_payload(notification, "short") == {
        "kind": "rel",
        "text": "x",
        "week": 1,
        "days": [2, 4],
        "times": ["07:05"],
    }
    assert notification_to_payload(notification, "verbose")["kind"] == "relative"


def test_dump_converts_absolute_times_to_local_zone() -> None:
    notification = parse_notification(
        {"kind": "abs", "text": "x", "times": ["27.01.2023 12:00:00"]},
        tz=ISRAEL,
    )
    assert notification.times[0].astimezone(timezone.utc) == datetime(2023, 1, 27, 10, 0, tzinfo=timezone.utc)
    payload = json.loads(dump_notification(notification, "short", tz=ISRAEL))
    assert payload == {"kind": "abs", "text": "x", "times": ["27.01.2023 12:00:00"]}


@pytest.mark.parametrize(
    "payload",
    [
        {"kind": "absolute", "text": "проверить плиту", "times": ["25.02.2023 20:00:00", "25.02.2023 21:00:00"]},
        {"kind": "rel", "text": "позвонить Алексу", "week": 0, "days": [6], "times": ["12:00"]},
        {"kind": "rec", "text": "выпить витамины", "days": [1, 3], "times": ["09:00:15"]},
    ],
)
def test_reserialized_notification_parses_back_to_same_value(payload: dict) -> None:
    original = parse_notification(payload, tz=ISRAEL)
    for dialect in ("short", "verbose"):
        again = parse_notification(dump_notification(original, dialect, tz=ISRAEL), tz=ISRAEL)
        assert again == original


@pytest.mark.parametrize(
    ("payload", "expected_type"),
    [
        ({"kind": "abs", "text": "a", "times": ["24.07.2022 16:33"]}, AbsoluteNotification),
        ({"kind": "rel", "text": "b", "week": 1, "days": 5, "time": "12:00"}, RelativeNotification),
        ({"kind": "rec", "text": "c", "times": "08:00"}, RecurrentNotification),
    ],
)
def test_adapter_accepts_short_discriminators_directly(payload: dict, expected_type: type) -> None:
    notification = notification_adapter.validate_python(payload, context={"tz": ISRAEL})
    assert isinstance(notification, expected_type)
    assert notification.kind.value in ("absolute", "relative", "recurrent")


def test_adapter_accepts_short_json_string() -> None:
    notification = notification_adapter.validate_json(
        '{"kind": "abs", "text": "a", "times": ["24.07.2022 16:33"]}',
        context={"tz": ISRAEL},
    )
    assert notification.times == [datetime(2022, 7, 24, 16, 33, tzinfo=ISRAEL)]
