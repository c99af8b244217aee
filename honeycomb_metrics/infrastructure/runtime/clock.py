"""Clock implementation."""

from datetime import datetime, timezone

from honeycomb_metrics.domain.ports import ClockPort
from honeycomb_metrics.domain.types import Timestamp


class SystemClock(ClockPort):
    """System clock implementation."""

    def now(self) -> Timestamp:
        """Get current UTC timestamp."""
        return datetime.now(timezone.utc)
