from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class PaceStatus(str, Enum):
    GOOD = "good"
    CAUTION = "caution"
    SLOW_DOWN = "slowDown"

    @property
    def rank(self) -> int:
        return _PACE_RANK[self]

    def raised_to(self, other: "PaceStatus") -> "PaceStatus":
        # nunca rebaixa dentro de uma avaliação
        return other if other.rank > self.rank else self


_PACE_RANK = {
    PaceStatus.GOOD: 0,
    PaceStatus.CAUTION: 1,
    PaceStatus.SLOW_DOWN: 2,
}


class AdvisoryType(str, Enum):
    WARNING = "warning"
    REMINDER = "reminder"
    POSITIVE_REINFORCEMENT = "positive_reinforcement"


class AdvisoryCode(str, Enum):
    RAPID_REPEAT = "rapid_repeat"
    FAST_PACE = "fast_pace"
    ESCALATION = "escalation"
    SHOT_STACKING = "shot_stacking"
    HYDRATE = "hydrate"
    POSITIVE_REINFORCEMENT = "positive_reinforcement"


WARNING_CODES = (
    AdvisoryCode.RAPID_REPEAT,
    AdvisoryCode.FAST_PACE,
    AdvisoryCode.ESCALATION,
    AdvisoryCode.SHOT_STACKING,
)


class DrinkTypeId:
    SHOT = "shot"
    BEER = "beer"
    COCKTAIL = "cocktail"
    WINE = "wine"
    WATER = "water"

    ALL = (SHOT, BEER, COCKTAIL, WINE, WATER)


@dataclass(frozen=True)
class ConsumptionEvent:
    t_epoch: float
    drink_type_id: str
    standard_units: float  # >= 0
    is_alcoholic: bool


@dataclass(frozen=True)
class AdvisoryEvent:
    """Advisory já emitido (só usado para dedupe por cooldown)."""
    t_epoch: float
    code: str
    severity: int = 1


@dataclass(frozen=True)
class EvaluationSettings:
    sensitivity_mode: str = "balanced"
    hydration_reminders_enabled: bool = True
    hydration_cadence: int = 2  # <= 0 desliga o lembrete por cadência


@dataclass(frozen=True)
class EventToEmit:
    event_type: AdvisoryType
    code: AdvisoryCode
    message: str
    severity: int


@dataclass(frozen=True)
class EvaluationResult:
    events_to_emit: List[EventToEmit] = field(default_factory=list)
    pace_status: PaceStatus = PaceStatus.GOOD
    next_check_interval_sec: Optional[float] = None

    def codes(self) -> List[str]:
        return [e.code.value for e in self.events_to_emit]
