"""
Current instant and tenant timezone, injectable for tests.
"""

from datetime import date, datetime
from zoneinfo import ZoneInfo


class Clock:
    """Wall clock of the salon."""

    def __init__(self, tz: str | ZoneInfo):
        self.tz = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().astimezone(self.tz).date()
