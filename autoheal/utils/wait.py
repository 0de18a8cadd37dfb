from __future__ import annotations

import time


def wait_until(predicate, timeout: float, interval: float = 0.2):
    """Polls a predicate until it returns a truthy value or the timeout expires.

    The predicate is always evaluated at least once, so a zero timeout is a
    single immediate check.
    """

    deadline = time.monotonic() + max(timeout, 0.0)
    while time.monotonic() < deadline:
        result = predicate()
        if result:
            return result
        time.sleep(interval)
    return predicate()
