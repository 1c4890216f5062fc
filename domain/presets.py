from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Union


class SensitivityMode(str, Enum):
    RELAXED = "relaxed"
    BALANCED = "balanced"
    STRICT = "strict"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class SensitivityPreset:
    """Limiares das regras de ritmo; janelas em minutos."""
    fast_pace_units_per_60_min: float
    escalation_units_per_90_min: float
    rapid_repeat_window_min: int
    shot_stack_window_min: int


RELAXED = SensitivityPreset(
    fast_pace_units_per_60_min=3.0,
    escalation_units_per_90_min=5.0,
    rapid_repeat_window_min=8,
    shot_stack_window_min=12,
)

BALANCED = SensitivityPreset(
    fast_pace_units_per_60_min=2.0,
    escalation_units_per_90_min=4.0,
    rapid_repeat_window_min=10,
    shot_stack_window_min=15,
)

STRICT = SensitivityPreset(
    fast_pace_units_per_60_min=1.5,
    escalation_units_per_90_min=3.0,
    rapid_repeat_window_min=12,
    shot_stack_window_min=20,
)

PRESETS: Mapping[SensitivityMode, SensitivityPreset] = MappingProxyType({
    SensitivityMode.RELAXED: RELAXED,
    SensitivityMode.BALANCED: BALANCED,
    SensitivityMode.STRICT: STRICT,
})

DEFAULT_MODE = SensitivityMode.BALANCED


def parse_mode(raw: Union[SensitivityMode, str, None]) -> SensitivityMode:
    """Só o valor exato vale; qualquer outra coisa cai em balanced (não é erro)."""
    if isinstance(raw, SensitivityMode):
        return raw
    if not isinstance(raw, str):
        return DEFAULT_MODE
    try:
        return SensitivityMode(raw)
    except ValueError:
        return DEFAULT_MODE


def preset_for(mode: Union[SensitivityMode, str, None]) -> SensitivityPreset:
    return PRESETS[parse_mode(mode)]


def mode_label(mode: Optional[str]) -> str:
    return parse_mode(mode).display_name
