"""Predicate-driven retry loop, independent of the I/O it wraps.

:class:`RetryPolicy` knows nothing about HTTP. It calls an operation, checks
the result against a predicate, and calls again after a fixed delay until the
predicate holds or the retries run out. The sync engine uses it to re-fetch
the newest pages while the site's index catches up with the totals it just
reported, and the unit tests drive it with plain lambdas.

Unlike the transport-level retries of an HTTP client this never raises on
exhaustion: the last result is the best one available and is returned.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from presscache.output import get_output

T = TypeVar("T")


class RetryPolicy(BaseModel, Generic[T]):
    """How often and how patiently to repeat an operation.

    Args:
        max_retries: Extra attempts after the first one.
        delay: Seconds to wait before each extra attempt.
        predicate: Accepts a result; ``None`` accepts everything.
        failure_message: Warning logged when retries are exhausted and the
            predicate still fails.

    Example::

        policy = RetryPolicy(max_retries=3, delay=2, predicate=lambda batch: bool(batch))
        batch = policy.run(lambda: fetch(links))
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    max_retries: int = Field(default=3, ge=0)
    delay: float = Field(default=2.0, ge=0)
    predicate: Optional[Callable[[Any], bool]] = None
    failure_message: str = "Retries exceeded"

    def accepts(self, result: T) -> bool:
        return self.predicate is None or bool(self.predicate(result))

    def run(
        self,
        operation: Callable[[], T],
        cancel_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> T:
        """Run *operation* until its result satisfies the predicate.

        The wait between attempts happens on *cancel_event* when one is
        given: setting the event from another thread ends the wait early,
        stops the loop, and the best result so far is returned with the
        event left set so the caller can see it was interrupted. *sleep*
        overrides the wait entirely (tests pass a no-op).

        Returns:
            The first accepted result, or the last result obtained.
        """
        output = get_output()
        result = operation()
        attempt = 0
        while not self.accepts(result) and attempt < self.max_retries:
            if not self._wait(cancel_event, sleep):
                output.warning(
                    f"Retry interrupted after {attempt}/{self.max_retries} attempts; "
                    "keeping the best result so far"
                )
                return result
            attempt += 1
            output.info(f"Retrying the last batch of links. Attempt: {attempt}/{self.max_retries}")
            result = operation()

        if not self.accepts(result):
            output.warning(self.failure_message)
        return result

    def _wait(
        self,
        cancel_event: Optional[threading.Event],
        sleep: Optional[Callable[[float], Any]],
    ) -> bool:
        """Wait out the delay. ``False`` means the wait was interrupted."""
        if sleep is not None:
            sleep(self.delay)
            return cancel_event is None or not cancel_event.is_set()
        event = cancel_event if cancel_event is not None else threading.Event()
        return not event.wait(self.delay)
