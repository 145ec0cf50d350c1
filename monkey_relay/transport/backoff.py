"""
Reconnect Backoff

Capped exponential backoff: delay = min(base * 2**attempt, cap).
The attempt counter resets whenever a connection is established.
"""

from dataclasses import dataclass


@dataclass
class ExponentialBackoff:
    base: float = 1.0
    cap: float = 30.0
    attempt: int = 0

    def peek(self) -> float:
        """Delay the next call to next_delay() would return."""
        # Exponent clamped to keep the float finite
        return min(self.base * (2 ** min(self.attempt, 32)), self.cap)

    def next_delay(self) -> float:
        """Return the delay for the current attempt and advance the counter."""
        delay = self.peek()
        self.attempt += 1
        return delay

    def reset(self) -> None:
        self.attempt = 0
