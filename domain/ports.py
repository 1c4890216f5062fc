from __future__ import annotations

from typing import List, Optional, Protocol

from .models import EventToEmit
from .records import DrinkLog, DrinkTypeConfig, PacingEvent, Session, UserSettings
from .sync_messages import SyncMessage


class Clock(Protocol):
    def now_epoch(self) -> float: ...


# -----------------------------
# Persistência (colaborador externo ao motor)
# -----------------------------

class SessionStore(Protocol):
    def current(self) -> Optional[Session]: ...
    def add(self, session: Session) -> None: ...
    def get(self, session_id: str) -> Optional[Session]: ...
    def end(self, session_id: str, ended_epoch: float) -> Optional[Session]: ...
    def in_range(self, start_epoch: float, end_epoch: float) -> List[Session]: ...
    def ended(self, limit: Optional[int] = None) -> List[Session]: ...


class DrinkLogStore(Protocol):
    def add(self, log: DrinkLog) -> None: ...
    def get(self, log_id: str) -> Optional[DrinkLog]: ...
    def for_session(self, session_id: str) -> List[DrinkLog]: ...
    def last_for_session(self, session_id: str) -> Optional[DrinkLog]: ...
    def delete(self, log_id: str) -> bool: ...


class PacingEventStore(Protocol):
    def add(self, event: PacingEvent) -> None: ...
    def for_session(self, session_id: str) -> List[PacingEvent]: ...
    def recent(self, session_id: str, limit: int) -> List[PacingEvent]: ...


class SettingsStore(Protocol):
    def fetch(self) -> Optional[UserSettings]: ...
    def save(self, settings: UserSettings) -> None: ...


class DrinkTypeStore(Protocol):
    def all(self) -> List[DrinkTypeConfig]: ...
    def get(self, type_id: str) -> Optional[DrinkTypeConfig]: ...
    def upsert(self, config: DrinkTypeConfig) -> None: ...
    def seed_defaults_if_needed(self) -> None: ...


# -----------------------------
# Saídas (notificação / sync)
# -----------------------------

class AdvisorySink(Protocol):
    def publish(self, session_id: str, t_epoch: float, event: EventToEmit) -> None: ...


class SyncSink(Protocol):
    def publish(self, message: SyncMessage) -> None: ...
