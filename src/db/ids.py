# timestamp-based record ids

import time
from typing import Callable, Collection


class IdGenerator:
    """
    Hands out ids shaped like ``prod-1718000000123`` (prefix + epoch millis).

    Stamps are strictly increasing for the lifetime of the generator, so two
    records created in the same millisecond still get distinct ids. Ids already
    present in the target collection are skipped.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0

    def next(self, prefix: str, taken: Collection[str] = ()) -> str:
        stamp = max(int(self._clock() * 1000), self._last + 1)
        while f"{prefix}-{stamp}" in taken:
            stamp += 1
        self._last = stamp
        return f"{prefix}-{stamp}"
