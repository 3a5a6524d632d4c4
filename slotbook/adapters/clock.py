"""
Clock implementations.
"""

import pendulum
from pendulum import DateTime


class SystemClock:
    """Wall clock in the configured timezone."""

    def __init__(self, timezone: str = "UTC"):
        self.timezone = timezone

    def now(self) -> DateTime:
        return pendulum.now(self.timezone)


class FixedClock:
    """
    Clock frozen at a given instant, for deterministic runs and tests.

    ``advance`` moves it forward explicitly.
    """

    def __init__(self, instant: DateTime):
        self._instant = instant

    def now(self) -> DateTime:
        return self._instant

    def advance(self, **kwargs) -> DateTime:
        self._instant = self._instant.add(**kwargs)
        return self._instant
