from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


@dataclass
class CircuitState:
    consecutive_failures: int = 0
    opened_until: datetime | None = None


class LLMCircuitBreaker:
    """Stops calling the model for a while after repeated failures."""

    def __init__(self, failure_threshold: int = 3, open_seconds: int = 60) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be positive")
        self._failure_threshold = failure_threshold
        self._open_for = timedelta(seconds=open_seconds)
        self._state = CircuitState()

    @property
    def consecutive_failures(self) -> int:
        return self._state.consecutive_failures

    def is_open(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self._state.opened_until is not None and now < self._state.opened_until

    def register_failure(self, now: datetime | None = None) -> None:
        now = now or datetime.now(timezone.utc)
        self._state.consecutive_failures += 1
        if self._state.consecutive_failures >= self._failure_threshold:
            self._state.opened_until = now + self._open_for

    def register_success(self) -> None:
        self._state = CircuitState()
