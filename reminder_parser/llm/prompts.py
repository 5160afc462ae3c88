from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from zoneinfo import ZoneInfo


class PromptDialect(str, Enum):
    verbose = "verbose"
    short = "short"


WEEKDAY_NAMES_EN = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

CURRENT_TIME_FORMAT = "%d.%m.%Y %H:%M:%S"


SYSTEM_PROMPT_VERBOSE = """
You are an assistant tasked with converting user queries into json formatted notifications. You shouldn't comment on the query, just output the json. 

Examples of how notifications should be parsed into two possible types:
Type 1: absolute date and time of format {"kind": "absolute", "text": "string", "times": ["22.07.2022 03:37:01"]}
Type 2: relative to current date and time of format {"kind": "relative", "text": "string", "week": 0, "days": [5], "time": "12:00"}

Examples of queries:

Current time is "21.07.2022 22:37:01, Thursday"
Remind me about "собеседование" in five hours

Answer: {"kind": "absolute", "text": "собеседование", "times": ["22.07.2022 03:37:01"]}

Current time is "21.07.2022 22:37:01, Thursday"
Remind me about "собеседование" next friday at 12:00

Answer: {"kind": "relative", "text": "собеседование", "week": 1, "days": [5], "times": ["12:00"]}

Current time is "24.01.2023 14:00:00, Tuesday"
Напомни мне позвонить Алексу в субботу днём;

Answer: {"kind": "relative", "text": "позвонить Алексу", "week": 0, "days": [6], "times": ["12:00"]}

Current time is "25.02.2023 18:00:00, Tuesday"
'Через два и три часа напомни мне проверить плиту'

Answer: {"kind": "absolute", "text": "проверить плиту", "times": ["25.02.2023 20:00:00", "25.02.2023 21:00:00"]}
""".strip()


SYSTEM_PROMPT_SHORT = """
You are an assistant tasked with converting user queries into json formatted notifications. You shouldn't comment on the query, just output the json.

Examples of how notifications should be parsed into three possible types:
Type 1: absolute date and time of format {"kind": "abs", "text": "string", "times": ["22.07.2022 03:37:01"]}
Type 2: relative to current date and time of format {"kind": "rel", "text": "string", "week": 0, "days": [5], "times": ["12:00"]}
Type 3: recurrent every given day of week of format {"kind": "rec", "text": "string", "days": [1, 3], "times": ["09:00"]}, omit "days" if it repeats every day

Days of week are numbered from 1 (Monday) to 7 (Sunday). Week 0 is the current week, week 1 is the next one.

Examples of queries:

Current time is "21.07.2022 22:37:01, Thursday"
Remind me about "собеседование" in five hours

Answer: {"kind": "abs", "text": "собеседование", "times": ["22.07.2022 03:37:01"]}

Current time is "21.07.2022 22:37:01, Thursday"
Remind me about "собеседование" next friday at 12:00

Answer: {"kind": "rel", "text": "собеседование", "week": 1, "days": [5], "times": ["12:00"]}

Current time is "24.01.2023 14:00:00, Tuesday"
Напомни мне позвонить Алексу в субботу днём;

Answer: {"kind": "rel", "text": "позвонить Алексу", "week": 0, "days": [6], "times": ["12:00"]}

Current time is "25.02.2023 18:00:00, Tuesday"
'Через два и три часа напомни мне проверить плиту'

Answer: {"kind": "abs", "text": "проверить плиту", "times": ["25.02.2023 20:00:00", "25.02.2023 21:00:00"]}

Current time is "26.01.2023 14:40:00, Thursday"
Каждый понедельник и среду в 9 утра напоминай выпить витамины

Answer: {"kind": "rec", "text": "выпить витамины", "days": [1, 3], "times": ["09:00"]}

Current time is "26.01.2023 14:40:00, Thursday"
Remind me to water the plants every day at 8:00 and 20:00

Answer: {"kind": "rec", "text": "water the plants", "times": ["08:00", "20:00"]}
""".strip()


RECOVERY_PROMPT = (
    "Fix the previous model answer so that it becomes exactly one valid JSON notification "
    "in the same format as the examples. Allowed kinds: {kinds}. "
    "No markdown, no comments, only JSON."
)


@dataclass(frozen=True, slots=True)
class PromptTemplate:
    dialect: PromptDialect
    system_prompt: str
    kinds: tuple[str, ...]

    def render_user_message(self, query: str, now: datetime, tz: ZoneInfo | None = None) -> str:
        return f'Current time is "{format_current_time(now, tz)}"\n{query}\n'

    def render_messages(self, query: str, now: datetime, tz: ZoneInfo | None = None) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": self.render_user_message(query, now, tz)},
        ]

    def render_text(self, query: str, now: datetime, tz: ZoneInfo | None = None) -> str:
        """Single-string form for plain completion endpoints."""
        return f"{self.system_prompt}\n\n{self.render_user_message(query, now, tz)}"

    def recovery_messages(self, query: str, raw_output: str, now: datetime, tz: ZoneInfo | None = None) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "system", "content": RECOVERY_PROMPT.format(kinds=", ".join(self.kinds))},
            {
                "role": "user",
                "content": (
                    f"{self.render_user_message(query, now, tz)}"
                    f"Invalid answer: {raw_output}"
                ),
            },
        ]


TEMPLATES: dict[PromptDialect, PromptTemplate] = {
    PromptDialect.verbose: PromptTemplate(
        dialect=PromptDialect.verbose,
        system_prompt=SYSTEM_PROMPT_VERBOSE,
        kinds=("absolute", "relative"),
    ),
    PromptDialect.short: PromptTemplate(
        dialect=PromptDialect.short,
        system_prompt=SYSTEM_PROMPT_SHORT,
        kinds=("abs", "rel", "rec"),
    ),
}


def get_template(dialect: PromptDialect | str) -> PromptTemplate:
    return TEMPLATES[PromptDialect(dialect)]


def format_current_time(now: datetime, tz: ZoneInfo | None = None) -> str:
    # Weekday comes from a fixed table so the output never depends on locale.
    if tz is not None:
        now = now.astimezone(tz)
    return f"{now.strftime(CURRENT_TIME_FORMAT)}, {WEEKDAY_NAMES_EN[now.weekday()]}"
