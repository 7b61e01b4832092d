"""FunnelSync — Cache Freshness Policy."""

from datetime import datetime, timedelta

from funnelsync.core.clock import as_utc


class FreshnessPolicy:
    """A cached value is fresh while its age is at most `threshold`.

    Staleness only means "refresh before serving"; it is never an error.
    """

    def __init__(self, threshold: timedelta = timedelta(hours=3)):
        self.threshold = threshold

    @classmethod
    def from_hours(cls, hours: float) -> "FreshnessPolicy":
        return cls(timedelta(hours=hours))

    def age(self, last_updated: datetime, now: datetime) -> timedelta:
        return as_utc(now) - as_utc(last_updated)

    def is_fresh(self, last_updated: datetime, now: datetime) -> bool:
        return self.age(last_updated, now) <= self.threshold

    def __repr__(self) -> str:
        return f"<FreshnessPolicy {self.threshold}>"
