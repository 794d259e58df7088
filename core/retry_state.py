from __future__ import annotations

"""Per-camera reconnection state with a park-and-cooldown breaker."""

import time  # noqa: E402
from dataclasses import dataclass  # noqa: E402

STABLE = "stable"
RETRYING = "retrying"
PARKED = "parked"


@dataclass
class RetryState:
    """Track reconnection status for a camera.

    Attributes
    ----------
    state:
        One of ``"stable"``, ``"retrying"`` or ``"parked"``.
    attempts:
        Reconnection attempts made since the camera was last stable.
    parked_at:
        When the camera was last parked.
    retry_at:
        Unix timestamp of the deferred retry while parked.
    """

    state: str = STABLE
    attempts: int = 0
    parked_at: float = 0.0
    retry_at: float = 0.0

    def should_park(self, failures: int, max_retries: int) -> bool:
        """Return ``True`` once ``failures`` exceeds the retry ceiling."""
        return failures > max_retries

    def record_retry(self) -> None:
        self.state = RETRYING
        self.attempts += 1

    def record_park(self, cooldown: float) -> None:
        now = time.time()
        self.state = PARKED
        self.parked_at = now
        self.retry_at = now + cooldown

    def record_stable(self) -> None:
        """Reset state after a confirmed-healthy check or a fresh start."""
        self.state = STABLE
        self.attempts = 0
        self.parked_at = 0.0
        self.retry_at = 0.0

    @property
    def parked(self) -> bool:
        return self.state == PARKED

    def as_dict(self) -> dict:
        return {
            "state": self.state,
            "attempts": self.attempts,
            "retry_at": int(self.retry_at),
        }
