"""
Mensagens tipadas da fronteira de sincronização entre dois clientes
(ex.: relógio <-> telefone).

encode() gera um dict compatível com JSON (chave "type").
decode() nunca levanta: payload incompleto/inválido -> None.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union


class MessageType:
    SESSION_STARTED = "session_started"
    DRINK_LOGGED = "drink_logged"
    SESSION_ENDED = "session_ended"
    SETTINGS_CHANGED = "settings_changed"
    DRINK_TYPES_CHANGED = "drink_types_changed"


@dataclass(frozen=True)
class SessionStarted:
    session_id: str
    started_epoch: float
    sensitivity_mode: str
    hydration_cadence: int
    auto_end_timeout_min: int


@dataclass(frozen=True)
class DrinkLogged:
    log_id: str
    session_id: str
    t_epoch: float
    drink_type_id: str
    standard_units: float
    is_alcoholic: bool
    source_device: str


@dataclass(frozen=True)
class SessionEnded:
    session_id: str
    ended_epoch: float


@dataclass(frozen=True)
class SettingsChanged:
    # só sensitivity_mode é obrigatório; o resto é aplicado se vier
    sensitivity_mode: str
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DrinkTypesChanged:
    items: Tuple[Mapping[str, Any], ...] = ()


SyncMessage = Union[SessionStarted, DrinkLogged, SessionEnded, SettingsChanged, DrinkTypesChanged]

SETTINGS_FIELDS = (
    "display_name",
    "weight",
    "hydration_reminders_enabled",
    "hydration_cadence",
    "notifications_enabled",
    "auto_end_timeout_min",
    "disclaimer_accepted_epoch",
)


def encode(msg: SyncMessage) -> Dict[str, Any]:
    if isinstance(msg, SessionStarted):
        return {
            "type": MessageType.SESSION_STARTED,
            "session_id": msg.session_id,
            "started_epoch": float(msg.started_epoch),
            "sensitivity_mode": msg.sensitivity_mode,
            "hydration_cadence": int(msg.hydration_cadence),
            "auto_end_timeout_min": int(msg.auto_end_timeout_min),
        }
    if isinstance(msg, DrinkLogged):
        return {
            "type": MessageType.DRINK_LOGGED,
            "log_id": msg.log_id,
            "session_id": msg.session_id,
            "t_epoch": float(msg.t_epoch),
            "drink_type_id": msg.drink_type_id,
            "standard_units": float(msg.standard_units),
            "is_alcoholic": bool(msg.is_alcoholic),
            "source_device": msg.source_device,
        }
    if isinstance(msg, SessionEnded):
        return {
            "type": MessageType.SESSION_ENDED,
            "session_id": msg.session_id,
            "ended_epoch": float(msg.ended_epoch),
        }
    if isinstance(msg, SettingsChanged):
        out: Dict[str, Any] = {
            "type": MessageType.SETTINGS_CHANGED,
            "sensitivity_mode": msg.sensitivity_mode,
        }
        for k in SETTINGS_FIELDS:
            v = msg.fields.get(k)
            if v is not None:
                out[k] = v
        return out
    if isinstance(msg, DrinkTypesChanged):
        return {
            "type": MessageType.DRINK_TYPES_CHANGED,
            "items": [dict(it) for it in msg.items],
        }
    raise TypeError(f"mensagem de sync desconhecida: {type(msg).__name__}")


# -----------------------------
# decode
# -----------------------------

def _str(d: Mapping[str, Any], k: str) -> Optional[str]:
    v = d.get(k)
    return v if isinstance(v, str) and v else None


def _num(d: Mapping[str, Any], k: str) -> Optional[float]:
    v = d.get(k)
    # bool é subclasse de int: não aceitar
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    return float(v)


def _int(d: Mapping[str, Any], k: str) -> Optional[int]:
    v = d.get(k)
    if isinstance(v, bool) or not isinstance(v, int):
        return None
    return v


def _bool(d: Mapping[str, Any], k: str) -> Optional[bool]:
    v = d.get(k)
    return v if isinstance(v, bool) else None


def _decode_session_started(d: Mapping[str, Any]) -> Optional[SessionStarted]:
    sid = _str(d, "session_id")
    started = _num(d, "started_epoch")
    mode = _str(d, "sensitivity_mode")
    cadence = _int(d, "hydration_cadence")
    timeout = _int(d, "auto_end_timeout_min")
    if sid is None or started is None or mode is None or cadence is None or timeout is None:
        return None
    return SessionStarted(sid, started, mode, cadence, timeout)


def _decode_drink_logged(d: Mapping[str, Any]) -> Optional[DrinkLogged]:
    vals = (
        _str(d, "log_id"),
        _str(d, "session_id"),
        _num(d, "t_epoch"),
        _str(d, "drink_type_id"),
        _num(d, "standard_units"),
        _bool(d, "is_alcoholic"),
        _str(d, "source_device"),
    )
    if any(v is None for v in vals):
        return None
    return DrinkLogged(*vals)  # type: ignore[arg-type]


def _decode_session_ended(d: Mapping[str, Any]) -> Optional[SessionEnded]:
    sid = _str(d, "session_id")
    ended = _num(d, "ended_epoch")
    if sid is None or ended is None:
        return None
    return SessionEnded(sid, ended)


def _decode_settings(d: Mapping[str, Any]) -> Optional[SettingsChanged]:
    mode = _str(d, "sensitivity_mode")
    if mode is None:
        return None
    fields = {k: d[k] for k in SETTINGS_FIELDS if d.get(k) is not None}
    return SettingsChanged(sensitivity_mode=mode, fields=fields)


def _decode_drink_types(d: Mapping[str, Any]) -> Optional[DrinkTypesChanged]:
    items = d.get("items")
    if not isinstance(items, list):
        return None
    # validação item a item fica com quem aplica
    return DrinkTypesChanged(items=tuple(it for it in items if isinstance(it, Mapping)))


_DECODERS = {
    MessageType.SESSION_STARTED: _decode_session_started,
    MessageType.DRINK_LOGGED: _decode_drink_logged,
    MessageType.SESSION_ENDED: _decode_session_ended,
    MessageType.SETTINGS_CHANGED: _decode_settings,
    MessageType.DRINK_TYPES_CHANGED: _decode_drink_types,
}


def decode(payload: Any) -> Optional[SyncMessage]:
    if not isinstance(payload, Mapping):
        return None
    kind = payload.get("type")
    fn = _DECODERS.get(kind) if isinstance(kind, str) else None
    if fn is None:
        return None
    return fn(payload)
