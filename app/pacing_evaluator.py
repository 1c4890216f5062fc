from __future__ import annotations

from typing import Iterable, List, Sequence

from domain import rolling_window as rw
from domain.models import (
    AdvisoryCode,
    AdvisoryEvent,
    AdvisoryType,
    ConsumptionEvent,
    DrinkTypeId,
    EvaluationResult,
    EvaluationSettings,
    EventToEmit,
    PaceStatus,
    WARNING_CODES,
)
from domain.presets import preset_for


WARNING_COOLDOWN_MIN = 15
HYDRATION_COOLDOWN_MIN = 20
POSITIVE_LOOKBACK_MIN = 60
POSITIVE_QUIET_MIN = 20
POSITIVE_COOLDOWN_MIN = 60
NEXT_CHECK_INTERVAL_SEC = 60.0

MSG_RAPID_REPEAT = "Two drinks close together. Slow it down."
MSG_FAST_PACE = "You're pacing fast. Take a 20 min break."
MSG_ESCALATION = "Slow down and drink some water."
MSG_SHOT_STACKING = "Two shots close together. Take a break for 20 min."
MSG_HYDRATE = "Water check"
MSG_POSITIVE = "Nice reset. You've slowed the pace."


def fired_within(
    code: AdvisoryCode,
    window_min: float,
    now_epoch: float,
    recent: Iterable[AdvisoryEvent],
) -> bool:
    """True se o código já foi emitido em [now - window_min*60, +inf)."""
    cutoff = now_epoch - float(window_min) * 60.0
    return any(a.code == code.value and a.t_epoch >= cutoff for a in recent)


def _hydrate_reminder() -> EventToEmit:
    return EventToEmit(
        event_type=AdvisoryType.REMINDER,
        code=AdvisoryCode.HYDRATE,
        message=MSG_HYDRATE,
        severity=1,
    )


def evaluate(
    events: Sequence[ConsumptionEvent],
    settings: EvaluationSettings,
    current_epoch: float,
    recent_advisories: Sequence[AdvisoryEvent] = (),
) -> EvaluationResult:
    """
    Avalia o ritmo da sessão em current_epoch.

    Função pura: não lê relógio, não guarda estado. O chamador persiste os
    eventos emitidos e os devolve em recent_advisories na próxima chamada.
    As regras são independentes e avaliadas em ordem fixa.
    """
    events = tuple(events)
    recent = tuple(recent_advisories)
    now = float(current_epoch)

    preset = preset_for(settings.sensitivity_mode)
    out: List[EventToEmit] = []
    pace = PaceStatus.GOOD

    def recently(code: AdvisoryCode, window_min: float) -> bool:
        return fired_within(code, window_min, now, recent)

    def hydrate_due() -> bool:
        if not settings.hydration_reminders_enabled:
            return False
        # no máximo 1 lembrete de água por chamada
        if any(e.code == AdvisoryCode.HYDRATE for e in out):
            return False
        return not recently(AdvisoryCode.HYDRATE, HYDRATION_COOLDOWN_MIN)

    # 1) rapid repeat: 2+ alcoólicas na janela do preset
    rapid = rw.count_alcoholic(preset.rapid_repeat_window_min, now, events)
    if rapid >= 2 and not recently(AdvisoryCode.RAPID_REPEAT, WARNING_COOLDOWN_MIN):
        out.append(EventToEmit(AdvisoryType.WARNING, AdvisoryCode.RAPID_REPEAT, MSG_RAPID_REPEAT, 1))
        pace = pace.raised_to(PaceStatus.CAUTION)

    # 2) fast pace: > X unidades em 60 min
    units_60 = rw.sum_units(60, now, events)
    if units_60 > preset.fast_pace_units_per_60_min and not recently(AdvisoryCode.FAST_PACE, WARNING_COOLDOWN_MIN):
        out.append(EventToEmit(AdvisoryType.WARNING, AdvisoryCode.FAST_PACE, MSG_FAST_PACE, 2))
        pace = PaceStatus.SLOW_DOWN

    # 3) escalation: >= Y unidades em 90 min (+ água, se habilitado)
    units_90 = rw.sum_units(90, now, events)
    if units_90 >= preset.escalation_units_per_90_min and not recently(AdvisoryCode.ESCALATION, WARNING_COOLDOWN_MIN):
        out.append(EventToEmit(AdvisoryType.WARNING, AdvisoryCode.ESCALATION, MSG_ESCALATION, 3))
        pace = PaceStatus.SLOW_DOWN
        if hydrate_due():
            out.append(_hydrate_reminder())

    # 4) shot stacking: 2+ shots na janela do preset
    shots = rw.count_by_type(DrinkTypeId.SHOT, preset.shot_stack_window_min, now, events)
    if shots >= 2 and not recently(AdvisoryCode.SHOT_STACKING, WARNING_COOLDOWN_MIN):
        out.append(EventToEmit(AdvisoryType.WARNING, AdvisoryCode.SHOT_STACKING, MSG_SHOT_STACKING, 2))
        pace = pace.raised_to(PaceStatus.CAUTION)

    # 5) água a cada N alcoólicas da sessão
    cadence = int(settings.hydration_cadence)
    if cadence > 0 and hydrate_due():
        total = rw.total_alcoholic_count(now, events)
        if total > 0 and total % cadence == 0:
            out.append(_hydrate_reminder())

    # 6) reforço positivo: houve aviso na última hora e 20 min sem álcool
    warned = any(
        fired_within(code, POSITIVE_LOOKBACK_MIN, now, recent) for code in WARNING_CODES
    )
    since_last = rw.time_since_last_alcoholic(now, events)
    # sem bebida alcoólica registrada não conta como "pausa"
    quiet = since_last is not None and since_last >= POSITIVE_QUIET_MIN * 60.0
    if warned and quiet and not recently(AdvisoryCode.POSITIVE_REINFORCEMENT, POSITIVE_COOLDOWN_MIN):
        out.append(EventToEmit(
            AdvisoryType.POSITIVE_REINFORCEMENT,
            AdvisoryCode.POSITIVE_REINFORCEMENT,
            MSG_POSITIVE,
            1,
        ))

    return EvaluationResult(
        events_to_emit=out,
        pace_status=pace,
        next_check_interval_sec=NEXT_CHECK_INTERVAL_SEC,
    )
