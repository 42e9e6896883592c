from __future__ import annotations

import datetime
from collections.abc import Callable

# Services take a Clock so tests can pin "now" to exact expiry boundaries.
Clock = Callable[[], int]


def utc_now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())
