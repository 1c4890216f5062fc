"""
Agregações em janela móvel sobre os eventos de consumo de uma sessão.

- Janela = [as_of - window_min*60, as_of] (limites inclusivos)
- Eventos com t_epoch > as_of (relógio adiantado, etc.) nunca entram
- A ordem da coleção não importa: filtra por tempo, não por posição
"""
from __future__ import annotations

from typing import Iterable, Optional

from .models import ConsumptionEvent


def _in_window(ev: ConsumptionEvent, window_min: float, as_of: float) -> bool:
    cutoff = as_of - float(window_min) * 60.0
    return cutoff <= ev.t_epoch <= as_of


def count_alcoholic(window_min: float, as_of: float, events: Iterable[ConsumptionEvent]) -> int:
    return sum(1 for ev in events if ev.is_alcoholic and _in_window(ev, window_min, as_of))


def sum_units(window_min: float, as_of: float, events: Iterable[ConsumptionEvent]) -> float:
    # todas as bebidas, alcoólicas ou não
    return sum(
        (float(ev.standard_units) for ev in events if _in_window(ev, window_min, as_of)),
        0.0,
    )


def count_by_type(
    drink_type_id: str,
    window_min: float,
    as_of: float,
    events: Iterable[ConsumptionEvent],
) -> int:
    return sum(
        1 for ev in events
        if ev.drink_type_id == drink_type_id and _in_window(ev, window_min, as_of)
    )


def time_since_last_alcoholic(as_of: float, events: Iterable[ConsumptionEvent]) -> Optional[float]:
    """Segundos desde a última bebida alcoólica (<= as_of); None se não houver."""
    last: Optional[float] = None
    for ev in events:
        if not ev.is_alcoholic or ev.t_epoch > as_of:
            continue
        if last is None or ev.t_epoch > last:
            last = ev.t_epoch
    if last is None:
        return None
    return as_of - last


def total_alcoholic_count(as_of: float, events: Iterable[ConsumptionEvent]) -> int:
    # janela ilimitada: total da sessão até as_of
    return sum(1 for ev in events if ev.is_alcoholic and ev.t_epoch <= as_of)
