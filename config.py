from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from domain.presets import parse_mode
from domain.records import (
    DEFAULT_AUTO_END_TIMEOUT_MIN,
    DEFAULT_HYDRATION_CADENCE,
    DrinkTypeConfig,
    SourceDevice,
    UserSettings,
)


@dataclass(frozen=True)
class JournalConfig:
    enabled: bool = False

    csv_path: str = "advisories.csv"
    queue_max: int = 20000
    drop_on_full: bool = True
    flush_every_n: int = 200
    flush_every_sec: float = 2.0


@dataclass(frozen=True)
class SyncConfig:
    enabled: bool = False

    url: str = ""
    queue_max: int = 5000
    timeout_sec: float = 2.0
    max_retries: int = 3
    backoff_sec: float = 0.25
    drop_on_full: bool = False


@dataclass(frozen=True)
class AppConfig:
    settings: UserSettings = field(default_factory=UserSettings)
    # vazio = tipos padrão (shot, beer, cocktail, wine, water)
    drink_types: tuple[DrinkTypeConfig, ...] = ()

    recent_advisories_cap: int = 50
    source_device: str = SourceDevice.PHONE.value
    simulated_clock: bool = False

    log_level: str = "INFO"
    log_file: Optional[str] = None

    journal: JournalConfig = field(default_factory=JournalConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)


def _req(d: Mapping[str, Any], path: str) -> Any:
    cur: Any = d
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            raise ValueError(f"Config inválida: campo obrigatório '{path}' ausente.")
        cur = cur[part]
    return cur


def _opt(d: Mapping[str, Any], path: str, default: Any) -> Any:
    cur: Any = d
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            return default
        cur = cur[part]
    return default if cur is None else cur


def _to_bool(x: Any, path: str) -> bool:
    if isinstance(x, bool):
        return x
    raise ValueError(f"Config inválida: '{path}' deve ser true/false.")


def _to_int(x: Any, path: str) -> int:
    try:
        return int(x)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Config inválida: '{path}' deve ser inteiro: {x!r}") from e


def _to_float(x: Any, path: str) -> float:
    try:
        return float(x)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Config inválida: '{path}' deve ser número: {x!r}") from e


def _to_settings(x: Any, path: str) -> UserSettings:
    """
    Espera:
      settings:
        sensitivity_mode: balanced   # relaxed | balanced | strict
        hydration_reminders_enabled: true
        hydration_cadence: 2         # <= 0 desliga
        notifications_enabled: true
        auto_end_timeout_min: 180
    """
    if x is None:
        return UserSettings()
    if not isinstance(x, Mapping):
        raise ValueError(f"Config inválida: '{path}' deve ser um mapa (dict).")

    weight = _opt(x, "weight", None)
    name = _opt(x, "display_name", None)

    return UserSettings(
        display_name=str(name) if name is not None else None,
        weight=_to_float(weight, f"{path}.weight") if weight is not None else None,
        # modo desconhecido não é erro: normaliza para balanced
        sensitivity_mode=parse_mode(_opt(x, "sensitivity_mode", None)).value,
        hydration_reminders_enabled=_to_bool(
            _opt(x, "hydration_reminders_enabled", True), f"{path}.hydration_reminders_enabled"
        ),
        hydration_cadence=_to_int(
            _opt(x, "hydration_cadence", DEFAULT_HYDRATION_CADENCE), f"{path}.hydration_cadence"
        ),
        notifications_enabled=_to_bool(
            _opt(x, "notifications_enabled", True), f"{path}.notifications_enabled"
        ),
        auto_end_timeout_min=_to_int(
            _opt(x, "auto_end_timeout_min", DEFAULT_AUTO_END_TIMEOUT_MIN), f"{path}.auto_end_timeout_min"
        ),
    )


def _to_drink_types(x: Any, path: str) -> tuple[DrinkTypeConfig, ...]:
    """
    Espera:
      drink_types:
        - id: shot
          display_name: Shot
          default_standard_units: 1.0
          is_alcoholic: true
          is_enabled: true   # opcional
          sort_order: 0      # opcional (posição na lista)
    """
    if x is None:
        return ()
    if not isinstance(x, list):
        raise ValueError(f"Config inválida: '{path}' deve ser uma lista.")

    out: list[DrinkTypeConfig] = []
    seen: set[str] = set()
    for i, item in enumerate(x):
        p = f"{path}[{i}]"
        if not isinstance(item, Mapping):
            raise ValueError(f"Config inválida: '{p}' deve ser um objeto.")

        type_id = str(_req(item, "id"))
        if type_id in seen:
            raise ValueError(f"Config inválida: '{p}.id' repetido: {type_id}")
        seen.add(type_id)

        units = _to_float(_req(item, "default_standard_units"), f"{p}.default_standard_units")
        if units < 0:
            raise ValueError(f"Config inválida: '{p}.default_standard_units' não pode ser negativo.")

        out.append(DrinkTypeConfig(
            id=type_id,
            display_name=str(_opt(item, "display_name", type_id.capitalize())),
            default_standard_units=units,
            is_alcoholic=_to_bool(_req(item, "is_alcoholic"), f"{p}.is_alcoholic"),
            is_enabled=_to_bool(_opt(item, "is_enabled", True), f"{p}.is_enabled"),
            sort_order=_to_int(_opt(item, "sort_order", i), f"{p}.sort_order"),
        ))

    return tuple(out)


def parse_config(data: Mapping[str, Any]) -> AppConfig:
    if not isinstance(data, Mapping):
        raise ValueError("Config inválida: raiz deve ser um mapa (dict).")

    settings = _to_settings(_opt(data, "settings", None), "settings")
    drink_types = _to_drink_types(_opt(data, "drink_types", None), "drink_types")

    cap = _to_int(_opt(data, "recent_advisories_cap", 50), "recent_advisories_cap")
    if cap < 1:
        raise ValueError("Config inválida: 'recent_advisories_cap' deve ser >= 1.")

    source_device = str(_opt(data, "source_device", SourceDevice.PHONE.value))
    try:
        SourceDevice(source_device)
    except ValueError as e:
        raise ValueError(f"Config inválida: 'source_device' desconhecido: {source_device}") from e

    log_file = _opt(data, "log_file", None)

    # ---- journal (opcional) ----
    jr_raw = _opt(data, "journal", None)
    journal = JournalConfig()
    if isinstance(jr_raw, Mapping):
        journal = JournalConfig(
            enabled=_to_bool(_opt(jr_raw, "enabled", True), "journal.enabled"),
            csv_path=str(_opt(jr_raw, "csv_path", "advisories.csv")),
            queue_max=_to_int(_opt(jr_raw, "queue_max", 20000), "journal.queue_max"),
            drop_on_full=_to_bool(_opt(jr_raw, "drop_on_full", True), "journal.drop_on_full"),
            flush_every_n=_to_int(_opt(jr_raw, "flush_every_n", 200), "journal.flush_every_n"),
            flush_every_sec=_to_float(_opt(jr_raw, "flush_every_sec", 2.0), "journal.flush_every_sec"),
        )

    # ---- sync (opcional) ----
    sy_raw = _opt(data, "sync", None)
    sync = SyncConfig()
    if isinstance(sy_raw, Mapping):
        sy_enabled = _to_bool(_opt(sy_raw, "enabled", True), "sync.enabled")
        if sy_enabled:
            sync = SyncConfig(
                enabled=True,
                url=str(_req(sy_raw, "url")),
                queue_max=_to_int(_opt(sy_raw, "queue_max", 5000), "sync.queue_max"),
                timeout_sec=_to_float(_opt(sy_raw, "timeout_sec", 2.0), "sync.timeout_sec"),
                max_retries=_to_int(_opt(sy_raw, "max_retries", 3), "sync.max_retries"),
                backoff_sec=_to_float(_opt(sy_raw, "backoff_sec", 0.25), "sync.backoff_sec"),
                drop_on_full=_to_bool(_opt(sy_raw, "drop_on_full", False), "sync.drop_on_full"),
            )

    return AppConfig(
        settings=settings,
        drink_types=drink_types,
        recent_advisories_cap=cap,
        source_device=source_device,
        simulated_clock=_to_bool(_opt(data, "simulated_clock", False), "simulated_clock"),
        log_level=str(_opt(data, "log_level", "INFO")).upper(),
        log_file=str(log_file) if log_file is not None else None,
        journal=journal,
        sync=sync,
    )


def load_config(path: str = "config.yaml", *, missing_ok: bool = False) -> AppConfig:
    p = Path(path)
    if missing_ok and not p.exists():
        return AppConfig()
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    return parse_config(data)
