from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from domain import rolling_window as rw
from domain.models import DrinkTypeId, EvaluationResult, PaceStatus
from domain.ports import (
    AdvisorySink,
    Clock,
    DrinkLogStore,
    DrinkTypeStore,
    PacingEventStore,
    SessionStore,
    SettingsStore,
    SyncSink,
)
from domain.records import DrinkLog, PacingEvent, Session, SourceDevice, UserSettings
from domain.sync_messages import DrinkLogged, SessionEnded, SessionStarted
from infra.logger_config import get_logger

from .pacing_evaluator import evaluate

log = get_logger("coordinator")


class UnknownDrinkTypeError(LookupError):
    pass


class UnknownSessionError(LookupError):
    pass


@dataclass
class CoordinatorPolicy:
    # só importam cooldowns de até 60 min; 50 eventos sobram
    recent_advisories_cap: int = 50
    source_device: str = SourceDevice.PHONE.value


@dataclass(frozen=True)
class LogDrinkOutcome:
    session: Session
    log: DrinkLog
    result: EvaluationResult


@dataclass(frozen=True)
class UndoOutcome:
    removed: Optional[DrinkLog]
    pace_status: PaceStatus


@dataclass(frozen=True)
class SessionStatus:
    session_id: str
    is_active: bool
    pace_status: PaceStatus
    total_alcoholic: int
    total_water: int
    total_units: float
    since_last_alcoholic_sec: Optional[float]
    last_message: Optional[str]


class SessionCoordinator:
    """
    Ciclo ler -> avaliar -> persistir -> notificar, por sessão.

    - O motor (evaluate) é puro; o estado de cooldown vem do PacingEventStore
    - Cada ciclo roda sob o lock da sessão (um escritor por sessão), senão
      dois chamadores veriam "não disparou" e emitiriam em dobro
    - Advisories são persistidos antes de ir para o sink de notificação
    """

    def __init__(
        self,
        clock: Clock,
        *,
        sessions: SessionStore,
        logs: DrinkLogStore,
        events: PacingEventStore,
        settings: SettingsStore,
        drink_types: DrinkTypeStore,
        advisory_sink: AdvisorySink,
        sync_sink: Optional[SyncSink] = None,
        policy: Optional[CoordinatorPolicy] = None,
    ):
        self.clock = clock
        self.sessions = sessions
        self.logs = logs
        self.events = events
        self.settings = settings
        self.drink_types = drink_types
        self.advisory_sink = advisory_sink
        self.sync_sink = sync_sink
        self.policy = policy or CoordinatorPolicy()

        self._start_lock = threading.Lock()
        self._locks_guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

        self.drink_types.seed_defaults_if_needed()

    # -----------------------------
    # helpers
    # -----------------------------
    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lk = self._locks.get(session_id)
            if lk is None:
                lk = threading.Lock()
                self._locks[session_id] = lk
            return lk

    def _user_settings(self) -> UserSettings:
        st = self.settings.fetch()
        if st is None:
            st = UserSettings()
            self.settings.save(st)
        return st

    def _resolve(self, session_id: Optional[str]) -> Session:
        session = self.sessions.current() if session_id is None else self.sessions.get(session_id)
        if session is None:
            raise UnknownSessionError(session_id or "<nenhuma sessão ativa>")
        return session

    def _still_active(self, session_id: str) -> bool:
        s = self.sessions.get(session_id)
        return s is not None and s.is_active

    def _pace(self, session: Session, now: float) -> PaceStatus:
        """Ritmo recalculado com o histórico salvo; não persiste nada."""
        if not session.is_active:
            return PaceStatus.GOOD
        snapshots = [lg.snapshot() for lg in self.logs.for_session(session.id)]
        history = self.events.recent(session.id, self.policy.recent_advisories_cap)
        st = self._user_settings()
        return evaluate(snapshots, st.snapshot(), now, [h.snapshot() for h in history]).pace_status

    def _publish_sync(self, message) -> None:
        if self.sync_sink is not None:
            self.sync_sink.publish(message)

    # -----------------------------
    # ciclo de avaliação
    # -----------------------------
    def _run_cycle(self, session: Session, now: float) -> EvaluationResult:
        """Chamar com o lock da sessão."""
        st = self._user_settings()
        snapshots = [lg.snapshot() for lg in self.logs.for_session(session.id)]
        recent = [
            ev.snapshot()
            for ev in self.events.recent(session.id, self.policy.recent_advisories_cap)
        ]

        result = evaluate(snapshots, st.snapshot(), now, recent)

        # persiste tudo antes de notificar
        persisted: List[PacingEvent] = []
        for e in result.events_to_emit:
            pe = PacingEvent(
                session_id=session.id,
                t_epoch=now,
                event_type=e.event_type.value,
                code=e.code.value,
                message=e.message,
                severity=e.severity,
            )
            self.events.add(pe)
            persisted.append(pe)

        if persisted:
            log.info(
                "session=%s pace=%s emitted=%s",
                session.id[:8], result.pace_status.value, [p.code for p in persisted],
            )

        if st.notifications_enabled:
            for e in result.events_to_emit:
                try:
                    self.advisory_sink.publish(session.id, now, e)
                except Exception:
                    # entrega é downstream: não desfaz o que já foi persistido
                    log.exception("advisory sink failed for %s", e.code.value)

        return result

    def evaluate_session(self, session_id: Optional[str] = None) -> EvaluationResult:
        session = self._resolve(session_id)
        with self._lock_for(session.id):
            return self._run_cycle(session, self.clock.now_epoch())

    def tick(self) -> Optional[EvaluationResult]:
        """Checagem periódica da sessão ativa (None se não houver)."""
        session = self.sessions.current()
        if session is None:
            return None
        return self.evaluate_session(session.id)

    # -----------------------------
    # ciclo de vida
    # -----------------------------
    def start_session(self) -> Session:
        with self._start_lock:
            current = self.sessions.current()
            if current is not None:
                return current

            st = self._user_settings()
            session = Session(
                started_epoch=self.clock.now_epoch(),
                sensitivity_mode=st.sensitivity_mode,
                hydration_cadence=st.hydration_cadence,
                auto_end_timeout_min=st.auto_end_timeout_min,
            )
            self.sessions.add(session)

        self._publish_sync(SessionStarted(
            session_id=session.id,
            started_epoch=session.started_epoch,
            sensitivity_mode=session.sensitivity_mode,
            hydration_cadence=session.hydration_cadence,
            auto_end_timeout_min=session.auto_end_timeout_min,
        ))
        return session

    def log_drink(self, drink_type_id: str, *, source_device: Optional[str] = None) -> LogDrinkOutcome:
        cfg = self.drink_types.get(drink_type_id)
        if cfg is None or not cfg.is_enabled:
            raise UnknownDrinkTypeError(drink_type_id)

        while True:
            session = self.start_session()
            with self._lock_for(session.id):
                # encerrada entre start_session() e o lock: vai para uma sessão nova
                if not self._still_active(session.id):
                    continue
                now = self.clock.now_epoch()
                drink = DrinkLog(
                    session_id=session.id,
                    t_epoch=now,
                    drink_type_id=cfg.id,
                    standard_units=cfg.default_standard_units,
                    is_alcoholic=cfg.is_alcoholic,
                    source_device=source_device or self.policy.source_device,
                )
                self.logs.add(drink)
                result = self._run_cycle(session, now)
            break

        self._publish_sync(DrinkLogged(
            log_id=drink.id,
            session_id=drink.session_id,
            t_epoch=drink.t_epoch,
            drink_type_id=drink.drink_type_id,
            standard_units=drink.standard_units,
            is_alcoholic=drink.is_alcoholic,
            source_device=drink.source_device,
        ))
        return LogDrinkOutcome(session=session, log=drink, result=result)

    def undo_last(self, session_id: Optional[str] = None) -> UndoOutcome:
        """Remove a última bebida e recalcula o ritmo, sem persistir advisories."""
        session = self._resolve(session_id)
        with self._lock_for(session.id):
            last = self.logs.last_for_session(session.id)
            if last is not None:
                self.logs.delete(last.id)
            return UndoOutcome(removed=last, pace_status=self._pace(session, self.clock.now_epoch()))

    def end_session(self, session_id: Optional[str] = None) -> Session:
        session = self._resolve(session_id)
        with self._lock_for(session.id):
            ended = self.clock.now_epoch()
            self.sessions.end(session.id, ended)
        self._publish_sync(SessionEnded(session_id=session.id, ended_epoch=ended))
        return session

    def auto_end_if_needed(self, timeout_min: Optional[int] = None) -> bool:
        """
        Encerra a sessão ativa se a última bebida alcoólica foi há
        timeout_min ou mais. Sem bebida alcoólica: não encerra.
        """
        session = self.sessions.current()
        if session is None:
            return False
        if timeout_min is None:
            timeout_min = self._user_settings().auto_end_timeout_min

        now = self.clock.now_epoch()
        snapshots = [lg.snapshot() for lg in self.logs.for_session(session.id)]
        since = rw.time_since_last_alcoholic(now, snapshots)
        if since is None or since < float(timeout_min) * 60.0:
            return False

        self.end_session(session.id)
        return True

    # -----------------------------
    # leitura
    # -----------------------------
    def status(self, session_id: Optional[str] = None) -> SessionStatus:
        """Ritmo atual sem persistir nada (reavaliação idempotente)."""
        session = self._resolve(session_id)
        now = self.clock.now_epoch()

        drinks = self.logs.for_session(session.id)
        snapshots = [lg.snapshot() for lg in drinks]
        history = self.events.recent(session.id, self.policy.recent_advisories_cap)

        return SessionStatus(
            session_id=session.id,
            is_active=session.is_active,
            pace_status=self._pace(session, now),
            total_alcoholic=rw.total_alcoholic_count(now, snapshots),
            total_water=sum(1 for lg in drinks if lg.drink_type_id == DrinkTypeId.WATER),
            total_units=sum((lg.standard_units for lg in drinks), 0.0),
            since_last_alcoholic_sec=rw.time_since_last_alcoholic(now, snapshots),
            last_message=history[-1].message if history else None,
        )
