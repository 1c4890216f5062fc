from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from domain.ports import DrinkLogStore, PacingEventStore, SessionStore


@dataclass(frozen=True)
class SessionStats:
    session_id: str
    started_epoch: float
    drink_count: int  # só alcoólicas
    total_units: float
    duration_min: Optional[int]
    warning_count: int  # todos os advisories da sessão


@dataclass
class Insights:
    stats: List[SessionStats] = field(default_factory=list)
    avg_duration_min: Optional[float] = None
    total_warnings: int = 0
    most_common_drink_type: Optional[str] = None
    drink_type_counts: Dict[str, int] = field(default_factory=dict)
    # hora do dia (UTC, 0-23) em que os avisos mais aparecem
    typical_warning_hour: Optional[int] = None


def build_insights(
    sessions: SessionStore,
    logs: DrinkLogStore,
    events: PacingEventStore,
    *,
    limit: int = 500,
) -> Insights:
    stats: List[SessionStats] = []
    type_counts: Counter[str] = Counter()
    warning_hours: Counter[int] = Counter()

    for s in sessions.ended(limit):
        drinks = logs.for_session(s.id)
        advisories = events.for_session(s.id)

        duration = None
        if s.ended_epoch is not None:
            duration = int((s.ended_epoch - s.started_epoch) // 60)

        stats.append(SessionStats(
            session_id=s.id,
            started_epoch=s.started_epoch,
            drink_count=sum(1 for d in drinks if d.is_alcoholic),
            total_units=sum((d.standard_units for d in drinks), 0.0),
            duration_min=duration,
            warning_count=len(advisories),
        ))

        type_counts.update(d.drink_type_id for d in drinks if d.is_alcoholic)
        warning_hours.update(
            datetime.fromtimestamp(a.t_epoch, tz=timezone.utc).hour for a in advisories
        )

    durations = [st.duration_min for st in stats if st.duration_min is not None and st.duration_min > 0]

    return Insights(
        stats=stats,
        avg_duration_min=(sum(durations) / len(durations)) if durations else None,
        total_warnings=sum(st.warning_count for st in stats),
        most_common_drink_type=type_counts.most_common(1)[0][0] if type_counts else None,
        drink_type_counts=dict(type_counts),
        typical_warning_hour=warning_hours.most_common(1)[0][0] if warning_hours else None,
    )
