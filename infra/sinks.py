from __future__ import annotations
from datetime import datetime, timezone
from typing import Callable, List, Optional, TextIO
import sys

from domain.models import AdvisoryType, EventToEmit
from domain.ports import AdvisorySink

_ICON = {
    AdvisoryType.WARNING: "!",
    AdvisoryType.REMINDER: "~",
    AdvisoryType.POSITIVE_REINFORCEMENT: "+",
}


def fmt_epoch(epoch: float) -> str:
    dt = datetime.fromtimestamp(epoch, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S")


class PrintAdvisorySink(AdvisorySink):
    """Banner no console (colaborador de notificação)."""

    def __init__(self, out: Optional[TextIO] = None, *, enabled: bool = True):
        self._out = out
        self.enabled = enabled

    def publish(self, session_id: str, t_epoch: float, event: EventToEmit) -> None:
        if not self.enabled:
            return
        icon = _ICON.get(event.event_type, "?")
        line = (
            f"[{fmt_epoch(t_epoch)}] [{icon}] {event.message} "
            f"(code={event.code.value} severity={event.severity} session={session_id[:8]})"
        )
        print(line, file=self._out or sys.stdout, flush=True)


class FanoutAdvisorySink(AdvisorySink):
    """Repassa para vários sinks; falha de um não impede os outros."""

    def __init__(self, sinks: List[AdvisorySink], on_error: Optional[Callable[[Exception], None]] = None):
        self._sinks = list(sinks)
        self._on_error = on_error

    def publish(self, session_id: str, t_epoch: float, event: EventToEmit) -> None:
        for s in self._sinks:
            try:
                s.publish(session_id, t_epoch, event)
            except Exception as e:
                if self._on_error is None:
                    raise
                self._on_error(e)

