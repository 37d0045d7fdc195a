from __future__ import annotations

import threading
import time
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> int:
        """Current UNIX time in whole seconds."""
        ...

    def sleep(self, seconds: float, cancel: Optional[threading.Event] = None) -> bool:
        """Block for `seconds`. Returns True if `cancel` was set while waiting."""
        ...


class SystemClock:
    def now(self) -> int:
        return int(time.time())

    def sleep(self, seconds: float, cancel: Optional[threading.Event] = None) -> bool:
        if cancel is None:
            time.sleep(seconds)
            return False
        return cancel.wait(seconds)
