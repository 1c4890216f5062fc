from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .models import AdvisoryEvent, ConsumptionEvent, DrinkTypeId, EvaluationSettings
from .presets import DEFAULT_MODE


def new_id() -> str:
    return uuid.uuid4().hex


class SourceDevice(str, Enum):
    WATCH = "watch"
    PHONE = "phone"


DEFAULT_HYDRATION_CADENCE = 2
DEFAULT_AUTO_END_TIMEOUT_MIN = 180


@dataclass
class Session:
    started_epoch: float
    sensitivity_mode: str = DEFAULT_MODE.value
    hydration_cadence: int = DEFAULT_HYDRATION_CADENCE
    auto_end_timeout_min: int = DEFAULT_AUTO_END_TIMEOUT_MIN
    ended_epoch: Optional[float] = None
    id: str = field(default_factory=new_id)

    @property
    def is_active(self) -> bool:
        return self.ended_epoch is None


@dataclass(frozen=True)
class DrinkLog:
    session_id: str
    t_epoch: float
    drink_type_id: str
    standard_units: float
    is_alcoholic: bool
    source_device: str = SourceDevice.PHONE.value
    id: str = field(default_factory=new_id)

    def snapshot(self) -> ConsumptionEvent:
        return ConsumptionEvent(
            t_epoch=self.t_epoch,
            drink_type_id=self.drink_type_id,
            standard_units=self.standard_units,
            is_alcoholic=self.is_alcoholic,
        )


@dataclass(frozen=True)
class PacingEvent:
    """Advisory persistido (histórico + dedupe)."""
    session_id: str
    t_epoch: float
    event_type: str
    code: str
    message: str
    severity: int
    id: str = field(default_factory=new_id)

    def snapshot(self) -> AdvisoryEvent:
        return AdvisoryEvent(t_epoch=self.t_epoch, code=self.code, severity=self.severity)


@dataclass
class DrinkTypeConfig:
    id: str
    display_name: str
    default_standard_units: float
    is_alcoholic: bool
    is_enabled: bool = True
    sort_order: int = 0


@dataclass
class UserSettings:
    display_name: Optional[str] = None
    weight: Optional[float] = None
    sensitivity_mode: str = DEFAULT_MODE.value
    hydration_reminders_enabled: bool = True
    hydration_cadence: int = DEFAULT_HYDRATION_CADENCE
    notifications_enabled: bool = True
    auto_end_timeout_min: int = DEFAULT_AUTO_END_TIMEOUT_MIN
    disclaimer_accepted_epoch: Optional[float] = None

    def snapshot(self) -> EvaluationSettings:
        return EvaluationSettings(
            sensitivity_mode=self.sensitivity_mode,
            hydration_reminders_enabled=self.hydration_reminders_enabled,
            hydration_cadence=self.hydration_cadence,
        )


# (id, nome, unidades padrão, alcoólica, ordem)
DEFAULT_DRINK_TYPES: Tuple[Tuple[str, str, float, bool, int], ...] = (
    (DrinkTypeId.SHOT, "Shot", 1.0, True, 0),
    (DrinkTypeId.BEER, "Beer", 1.0, True, 1),
    (DrinkTypeId.COCKTAIL, "Cocktail", 1.5, True, 2),
    (DrinkTypeId.WINE, "Wine", 1.0, True, 3),
    (DrinkTypeId.WATER, "Water", 0.0, False, 4),
)


def default_drink_types() -> list[DrinkTypeConfig]:
    return [
        DrinkTypeConfig(
            id=type_id,
            display_name=name,
            default_standard_units=units,
            is_alcoholic=alcoholic,
            is_enabled=True,
            sort_order=order,
        )
        for type_id, name, units, alcoholic, order in DEFAULT_DRINK_TYPES
    ]
