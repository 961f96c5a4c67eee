"""
Load sequencing and debounced loading indicators.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_SPINNER_DELAY = 0.2


class RequestSequencer:
    """
    Monotonic generation tags for overlapping loads.

    Every load takes a new tag; a response is applied only if its tag is still
    the latest one, so the newest request wins regardless of arrival order.
    """

    def __init__(self):
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def next_tag(self) -> int:
        self._generation += 1
        return self._generation

    def is_current(self, tag: int) -> bool:
        return tag == self._generation


@dataclass
class LoadingFlag:
    """
    Loading state with a timer-gated spinner.

    The spinner becomes visible only once a load has been running for
    ``delay`` seconds, so fast responses never flash it.
    """

    delay: float = DEFAULT_SPINNER_DELAY
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    started_at: Optional[float] = None

    @property
    def loading(self) -> bool:
        return self.started_at is not None

    def start(self) -> None:
        self.started_at = self.clock()

    def finish(self) -> None:
        self.started_at = None

    def elapsed(self, now: Optional[float] = None) -> float:
        if self.started_at is None:
            return 0.0
        current = self.clock() if now is None else now
        return max(0.0, current - self.started_at)

    def spinner_visible(self, now: Optional[float] = None) -> bool:
        return self.loading and self.elapsed(now) >= self.delay
