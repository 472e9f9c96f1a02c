"""Counter models held by the admission store."""

from dataclasses import dataclass


@dataclass
class WindowCounter:
    count: int = 0
    reset_at: int = 0  # epoch milliseconds at which the window closes

    def is_stale(self, now_ms: int) -> bool:
        """A window is stale strictly after its reset instant."""
        return now_ms > self.reset_at
