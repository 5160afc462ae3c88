from dataclasses import dataclass, field
from datetime import datetime, timezone

ALERT_THRESHOLDS_PCT = (50, 80, 100)


@dataclass
class UsageSnapshot:
    month_key: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_usd: float = 0.0
    alerted: set[int] = field(default_factory=set)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class MonthlyCostGuard:
    """Tracks estimated model spend per calendar month."""

    def __init__(
        self,
        monthly_usd_limit: float = 10.0,
        estimated_input_cost_per_1k: float = 0.0003,
        estimated_output_cost_per_1k: float = 0.0012,
        alert_thresholds: tuple[int, ...] = ALERT_THRESHOLDS_PCT,
    ) -> None:
        self.monthly_usd_limit = monthly_usd_limit
        self.estimated_input_cost_per_1k = estimated_input_cost_per_1k
        self.estimated_output_cost_per_1k = estimated_output_cost_per_1k
        self._alert_thresholds = tuple(sorted(alert_thresholds))
        self._usage: dict[str, UsageSnapshot] = {}

    @staticmethod
    def _month_key(now: datetime | None = None) -> str:
        now = now or datetime.now(timezone.utc)
        return f"{now.year:04d}-{now.month:02d}"

    def snapshot(self, now: datetime | None = None) -> UsageSnapshot:
        key = self._month_key(now)
        return self._usage.setdefault(key, UsageSnapshot(key))

    def estimate_usd(self, input_tokens: int, output_tokens: int) -> float:
        usd = (input_tokens / 1000.0) * self.estimated_input_cost_per_1k
        usd += (output_tokens / 1000.0) * self.estimated_output_cost_per_1k
        return usd

    def can_spend(self, estimated_usd: float, now: datetime | None = None) -> bool:
        return self.snapshot(now).total_usd + estimated_usd <= self.monthly_usd_limit

    def register_tokens(self, input_tokens: int, output_tokens: int, now: datetime | None = None) -> UsageSnapshot:
        snapshot = self.snapshot(now)
        snapshot.input_tokens += input_tokens
        snapshot.output_tokens += output_tokens
        snapshot.total_usd += self.estimate_usd(input_tokens, output_tokens)
        return snapshot

    def get_new_alert_thresholds(self, now: datetime | None = None) -> list[int]:
        snapshot = self.snapshot(now)
        if self.monthly_usd_limit > 0:
            used_pct = snapshot.total_usd / self.monthly_usd_limit * 100.0
        else:
            used_pct = 100.0
        crossed = [t for t in self._alert_thresholds if used_pct >= t and t not in snapshot.alerted]
        snapshot.alerted.update(crossed)
        return crossed
