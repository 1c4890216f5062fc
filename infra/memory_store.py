from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, List, Optional

from domain.records import (
    DrinkLog,
    DrinkTypeConfig,
    PacingEvent,
    Session,
    UserSettings,
    default_drink_types,
)


class MemorySessionStore:
    def __init__(self, lock: threading.RLock):
        self._lock = lock
        self._by_id: Dict[str, Session] = {}

    def current(self) -> Optional[Session]:
        with self._lock:
            active = [s for s in self._by_id.values() if s.is_active]
            if not active:
                return None
            return max(active, key=lambda s: s.started_epoch)

    def add(self, session: Session) -> None:
        with self._lock:
            self._by_id[session.id] = session

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._by_id.get(session_id)

    def end(self, session_id: str, ended_epoch: float) -> Optional[Session]:
        with self._lock:
            s = self._by_id.get(session_id)
            if s is None:
                return None
            s.ended_epoch = float(ended_epoch)
            return s

    def in_range(self, start_epoch: float, end_epoch: float) -> List[Session]:
        with self._lock:
            out = [s for s in self._by_id.values() if start_epoch <= s.started_epoch <= end_epoch]
        out.sort(key=lambda s: s.started_epoch, reverse=True)
        return out

    def ended(self, limit: Optional[int] = None) -> List[Session]:
        """Sessões encerradas, mais recente primeiro. limit=None -> todas."""
        with self._lock:
            out = [s for s in self._by_id.values() if not s.is_active]
        out.sort(key=lambda s: s.started_epoch, reverse=True)
        return out if limit is None else out[:limit]


class MemoryDrinkLogStore:
    def __init__(self, lock: threading.RLock):
        self._lock = lock
        self._by_id: Dict[str, DrinkLog] = {}

    def add(self, log: DrinkLog) -> None:
        with self._lock:
            self._by_id[log.id] = log

    def get(self, log_id: str) -> Optional[DrinkLog]:
        with self._lock:
            return self._by_id.get(log_id)

    def for_session(self, session_id: str) -> List[DrinkLog]:
        with self._lock:
            out = [lg for lg in self._by_id.values() if lg.session_id == session_id]
        out.sort(key=lambda lg: lg.t_epoch)
        return out

    def last_for_session(self, session_id: str) -> Optional[DrinkLog]:
        logs = self.for_session(session_id)
        return logs[-1] if logs else None

    def delete(self, log_id: str) -> bool:
        with self._lock:
            return self._by_id.pop(log_id, None) is not None


class MemoryPacingEventStore:
    def __init__(self, lock: threading.RLock):
        self._lock = lock
        self._events: List[PacingEvent] = []

    def add(self, event: PacingEvent) -> None:
        with self._lock:
            self._events.append(event)

    def for_session(self, session_id: str) -> List[PacingEvent]:
        with self._lock:
            out = [e for e in self._events if e.session_id == session_id]
        out.sort(key=lambda e: e.t_epoch)
        return out

    def recent(self, session_id: str, limit: int) -> List[PacingEvent]:
        if limit <= 0:
            return []
        return self.for_session(session_id)[-limit:]


class MemorySettingsStore:
    def __init__(self, lock: threading.RLock, initial: Optional[UserSettings] = None):
        self._lock = lock
        self._settings = initial

    def fetch(self) -> Optional[UserSettings]:
        with self._lock:
            # cópia: quem lê não altera o armazenado sem save()
            return replace(self._settings) if self._settings is not None else None

    def save(self, settings: UserSettings) -> None:
        with self._lock:
            self._settings = replace(settings)


class MemoryDrinkTypeStore:
    def __init__(self, lock: threading.RLock):
        self._lock = lock
        self._by_id: Dict[str, DrinkTypeConfig] = {}

    def all(self) -> List[DrinkTypeConfig]:
        with self._lock:
            out = list(self._by_id.values())
        out.sort(key=lambda c: (c.sort_order, c.id))
        return out

    def get(self, type_id: str) -> Optional[DrinkTypeConfig]:
        with self._lock:
            return self._by_id.get(type_id)

    def upsert(self, config: DrinkTypeConfig) -> None:
        with self._lock:
            self._by_id[config.id] = config

    def seed_defaults_if_needed(self) -> None:
        with self._lock:
            if self._by_id:
                return
            for c in default_drink_types():
                self._by_id[c.id] = c


class MemoryStore:
    """Todos os repositórios em memória, com um lock só."""

    def __init__(self, settings: Optional[UserSettings] = None):
        self._lock = threading.RLock()
        self.sessions = MemorySessionStore(self._lock)
        self.logs = MemoryDrinkLogStore(self._lock)
        self.events = MemoryPacingEventStore(self._lock)
        self.settings = MemorySettingsStore(self._lock, settings)
        self.drink_types = MemoryDrinkTypeStore(self._lock)
