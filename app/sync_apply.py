from __future__ import annotations

from typing import Any, Mapping, Optional

from domain.records import (
    DEFAULT_AUTO_END_TIMEOUT_MIN,
    DEFAULT_HYDRATION_CADENCE,
    DrinkLog,
    DrinkTypeConfig,
    Session,
    UserSettings,
)
from domain.presets import DEFAULT_MODE
from domain.sync_messages import (
    DrinkLogged,
    DrinkTypesChanged,
    SessionEnded,
    SessionStarted,
    SettingsChanged,
    SyncMessage,
    decode,
)
from domain.ports import DrinkLogStore, DrinkTypeStore, SessionStore, SettingsStore


class SyncApplier:
    """
    Aplica mensagens recebidas do outro cliente nos repositórios locais.

    Idempotente: reaplicar a mesma mensagem não duplica nada.
    Retorna True quando o estado local mudou.
    """

    def __init__(
        self,
        *,
        sessions: SessionStore,
        logs: DrinkLogStore,
        settings: SettingsStore,
        drink_types: DrinkTypeStore,
    ):
        self.sessions = sessions
        self.logs = logs
        self.settings = settings
        self.drink_types = drink_types

    def apply_payload(self, payload: Any) -> bool:
        msg = decode(payload)
        if msg is None:
            return False
        return self.apply(msg)

    def apply(self, msg: SyncMessage) -> bool:
        if isinstance(msg, SessionStarted):
            return self._apply_session(msg)
        if isinstance(msg, DrinkLogged):
            return self._apply_log(msg)
        if isinstance(msg, SessionEnded):
            return self._apply_end(msg)
        if isinstance(msg, SettingsChanged):
            return self._apply_settings(msg)
        if isinstance(msg, DrinkTypesChanged):
            return self._apply_drink_types(msg)
        return False

    def _apply_session(self, msg: SessionStarted) -> bool:
        if self.sessions.get(msg.session_id) is not None:
            return False
        self.sessions.add(Session(
            id=msg.session_id,
            started_epoch=msg.started_epoch,
            sensitivity_mode=msg.sensitivity_mode,
            hydration_cadence=msg.hydration_cadence,
            auto_end_timeout_min=msg.auto_end_timeout_min,
        ))
        return True

    def _apply_log(self, msg: DrinkLogged) -> bool:
        if self.logs.get(msg.log_id) is not None:
            return False
        if self.sessions.get(msg.session_id) is None:
            # log chegou antes da sessão: cria uma com os padrões
            self.sessions.add(Session(
                id=msg.session_id,
                started_epoch=msg.t_epoch,
                sensitivity_mode=DEFAULT_MODE.value,
                hydration_cadence=DEFAULT_HYDRATION_CADENCE,
                auto_end_timeout_min=DEFAULT_AUTO_END_TIMEOUT_MIN,
            ))
        self.logs.add(DrinkLog(
            id=msg.log_id,
            session_id=msg.session_id,
            t_epoch=msg.t_epoch,
            drink_type_id=msg.drink_type_id,
            standard_units=msg.standard_units,
            is_alcoholic=msg.is_alcoholic,
            source_device=msg.source_device,
        ))
        return True

    def _apply_end(self, msg: SessionEnded) -> bool:
        session = self.sessions.get(msg.session_id)
        if session is None:
            return False
        self.sessions.end(msg.session_id, msg.ended_epoch)
        return True

    def _apply_settings(self, msg: SettingsChanged) -> bool:
        current = self.settings.fetch() or UserSettings()
        f = msg.fields

        current.sensitivity_mode = msg.sensitivity_mode
        current.display_name = _typed(f, "display_name", str)
        current.weight = _number(f, "weight")
        v = _typed(f, "hydration_reminders_enabled", bool)
        if v is not None:
            current.hydration_reminders_enabled = v
        v = _integer(f, "hydration_cadence")
        if v is not None:
            current.hydration_cadence = v
        v = _typed(f, "notifications_enabled", bool)
        if v is not None:
            current.notifications_enabled = v
        v = _integer(f, "auto_end_timeout_min")
        if v is not None:
            current.auto_end_timeout_min = v
        ts = _number(f, "disclaimer_accepted_epoch")
        if ts is not None:
            current.disclaimer_accepted_epoch = ts

        self.settings.save(current)
        return True

    def _apply_drink_types(self, msg: DrinkTypesChanged) -> bool:
        changed = False
        for item in msg.items:
            cfg = _drink_type_from(item)
            if cfg is None:
                continue
            self.drink_types.upsert(cfg)
            changed = True
        return changed


def _typed(d: Mapping[str, Any], k: str, t: type) -> Optional[Any]:
    v = d.get(k)
    return v if isinstance(v, t) else None


def _number(d: Mapping[str, Any], k: str) -> Optional[float]:
    v = d.get(k)
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    return float(v)


def _integer(d: Mapping[str, Any], k: str) -> Optional[int]:
    v = d.get(k)
    if isinstance(v, bool) or not isinstance(v, int):
        return None
    return v


def _drink_type_from(item: Mapping[str, Any]) -> Optional[DrinkTypeConfig]:
    type_id = _typed(item, "id", str)
    name = _typed(item, "display_name", str)
    units = _number(item, "default_standard_units")
    alcoholic = _typed(item, "is_alcoholic", bool)
    enabled = _typed(item, "is_enabled", bool)
    order = _integer(item, "sort_order")
    if type_id is None or name is None or units is None or alcoholic is None or enabled is None or order is None:
        return None
    return DrinkTypeConfig(
        id=type_id,
        display_name=name,
        default_standard_units=units,
        is_alcoholic=alcoholic,
        is_enabled=enabled,
        sort_order=order,
    )
