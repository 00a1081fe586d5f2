from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class Settings:
    """
    Defaults shared by the session, the playback controller and the CLI.
    """

    quantum: int = 2
    # Seconds of wall-clock time between two playback ticks.
    tick_interval: float = 1.0
    default_arrival: int = 0
    default_burst: int = 5
    default_priority: int = 1

    def with_overrides(self, **overrides: Optional[object]) -> "Settings":
        """
        Return a copy with every non-None override applied.
        """
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)


DEFAULT_SETTINGS = Settings()
