"""Time source abstraction, injectable for deterministic tests."""

from __future__ import annotations

from typing import Callable

# Returns seconds as float. Wall-clock (time.time) for health state,
# monotonic (time.monotonic) for rate limiting.
Clock = Callable[[], float]
