from datetime import datetime, timedelta
from typing import Callable, List, Optional
import pytz


class DayClock:
    """Calendar days as YYYY-MM-DD strings in one fixed timezone."""

    def __init__(self, timezone_name: str, now: Optional[Callable[[], datetime]] = None):
        self.tz = pytz.timezone(timezone_name)
        self._now = now or (lambda: datetime.now(pytz.utc))

    def now(self) -> datetime:
        value = self._now()
        if value.tzinfo is None:
            value = pytz.utc.localize(value)
        return value.astimezone(pytz.utc)

    def local_date(self):
        return self.now().astimezone(self.tz).date()

    def today(self) -> str:
        return self.local_date().isoformat()

    def tomorrow(self) -> str:
        return (self.local_date() + timedelta(days=1)).isoformat()

    def days_ago(self, days: int) -> str:
        return (self.local_date() - timedelta(days=days)).isoformat()

    def last_n_days(self, n: int) -> List[str]:
        return [self.days_ago(i) for i in range(n)]
