from __future__ import annotations

from time import time
from domain.ports import Clock

# epoch seconds (float)
class SystemClock(Clock):
    def now_epoch(self) -> float:
        return time()


class ManualClock(Clock):
    """
    Relógio controlado à mão (testes / console em tempo simulado).
    Só anda com advance().
    """
    def __init__(self, start_epoch: float | None = None):
        self._now = float(time() if start_epoch is None else start_epoch)

    def now_epoch(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("ManualClock não volta no tempo")
        self._now += float(seconds)
        return self._now
