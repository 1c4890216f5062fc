import threading
import time

import pytest

from app.coordinator import (
    CoordinatorPolicy,
    SessionCoordinator,
    UnknownDrinkTypeError,
    UnknownSessionError,
)
from app.sync_apply import SyncApplier
from domain.models import DrinkTypeId, PaceStatus
from domain.records import DrinkLog, DrinkTypeConfig, UserSettings
from infra.clock import ManualClock
from infra.memory_store import MemoryStore
from infra.memory_sync import QueueSyncChannel

T0 = 1_700_000_000.0


def make_coordinator(clock, store, sink, **kw):
    return SessionCoordinator(
        clock,
        sessions=store.sessions,
        logs=store.logs,
        events=store.events,
        settings=store.settings,
        drink_types=store.drink_types,
        advisory_sink=sink,
        **kw,
    )


class ExplodingSink:
    def publish(self, session_id, t_epoch, event):
        raise RuntimeError("notification service down")


def test_seeds_default_drink_types(clock, store, sink):
    make_coordinator(clock, store, sink)
    assert [c.id for c in store.drink_types.all()] == list(DrinkTypeId.ALL)


def test_log_drink_starts_a_session(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    outcome = co.log_drink("beer")

    assert outcome.session.is_active
    assert store.sessions.current() is outcome.session
    assert outcome.log.standard_units == 1.0
    assert outcome.log.source_device == "phone"
    assert outcome.result.events_to_emit == []
    assert co.start_session() is outcome.session


def test_session_copies_user_settings(clock, store, sink):
    store.settings.save(UserSettings(sensitivity_mode="strict", hydration_cadence=3, auto_end_timeout_min=90))
    co = make_coordinator(clock, store, sink)
    s = co.start_session()
    assert (s.sensitivity_mode, s.hydration_cadence, s.auto_end_timeout_min) == ("strict", 3, 90)


def test_advisories_are_persisted_and_published(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    co.log_drink("shot")
    clock.advance(60)
    outcome = co.log_drink("shot")

    assert outcome.result.codes() == ["rapid_repeat", "shot_stacking", "hydrate"]
    assert outcome.result.pace_status is PaceStatus.CAUTION

    persisted = store.events.for_session(outcome.session.id)
    assert [e.code for e in persisted] == ["rapid_repeat", "shot_stacking", "hydrate"]
    assert all(e.t_epoch == clock.now_epoch() for e in persisted)
    assert sink.codes() == ["rapid_repeat", "shot_stacking", "hydrate"]


def test_persisted_advisories_suppress_repeats(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    co.log_drink("shot")
    clock.advance(60)
    co.log_drink("shot")

    # mesmo instante: nada de novo
    assert co.tick().events_to_emit == []

    clock.advance(60)
    outcome = co.log_drink("beer")
    assert outcome.result.codes() == ["fast_pace"]
    assert sink.codes().count("rapid_repeat") == 1
    assert sink.codes().count("shot_stacking") == 1


def test_positive_reinforcement_after_a_break(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    co.log_drink("shot")
    clock.advance(60)
    co.log_drink("shot")

    clock.advance(19 * 60)
    assert co.tick().events_to_emit == []
    clock.advance(60)
    assert co.tick().codes() == ["positive_reinforcement"]
    clock.advance(60)
    assert "positive_reinforcement" not in co.tick().codes()


def test_notifications_disabled_still_persists(clock, store, sink):
    store.settings.save(UserSettings(notifications_enabled=False))
    co = make_coordinator(clock, store, sink)
    co.log_drink("shot")
    clock.advance(60)
    outcome = co.log_drink("shot")

    assert sink.published == []
    assert len(store.events.for_session(outcome.session.id)) == 3


def test_failing_sink_does_not_lose_advisories(clock, store):
    co = make_coordinator(clock, store, ExplodingSink())
    co.log_drink("shot")
    clock.advance(60)
    outcome = co.log_drink("shot")

    assert outcome.result.pace_status is PaceStatus.CAUTION
    assert len(store.events.for_session(outcome.session.id)) == 3


def test_unknown_or_disabled_drink_type(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    with pytest.raises(UnknownDrinkTypeError):
        co.log_drink("mead")

    store.drink_types.upsert(DrinkTypeConfig("cider", "Cider", 1.0, True, is_enabled=False))
    with pytest.raises(UnknownDrinkTypeError):
        co.log_drink("cider")
    assert store.sessions.current() is None


def test_operations_without_session(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    assert co.tick() is None
    assert co.auto_end_if_needed() is False
    with pytest.raises(UnknownSessionError):
        co.status()
    with pytest.raises(UnknownSessionError):
        co.end_session()
    with pytest.raises(UnknownSessionError):
        co.undo_last()


def test_undo_last_removes_latest_drink(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    co.log_drink("beer")
    clock.advance(60)
    co.log_drink("water")

    undone = co.undo_last()
    assert undone.removed.drink_type_id == "water"
    assert [lg.drink_type_id for lg in store.logs.for_session(undone.removed.session_id)] == ["beer"]

    assert co.undo_last().removed.drink_type_id == "beer"
    empty = co.undo_last()
    assert empty.removed is None
    assert empty.pace_status is PaceStatus.GOOD


def test_undo_recomputes_pace_without_persisting(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    co.log_drink("beer")
    clock.advance(60)
    co.log_drink("beer")
    clock.advance(60)
    outcome = co.log_drink("beer")
    assert outcome.result.pace_status is PaceStatus.SLOW_DOWN
    persisted = len(store.events.for_session(outcome.session.id))

    undone = co.undo_last()
    assert undone.removed.id == outcome.log.id
    assert undone.pace_status is PaceStatus.GOOD
    assert len(store.events.for_session(outcome.session.id)) == persisted
    assert sink.codes().count("fast_pace") == 1


def test_end_session(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    s = co.start_session()
    clock.advance(600)
    co.end_session()

    assert store.sessions.current() is None
    assert s.ended_epoch == clock.now_epoch()
    st = co.status(s.id)
    assert st.is_active is False
    assert st.pace_status is PaceStatus.GOOD
    assert co.start_session().id != s.id


def test_auto_end_after_timeout(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    co.log_drink("beer")
    co.log_drink("water")

    clock.advance(179 * 60)
    assert co.auto_end_if_needed() is False
    clock.advance(60)
    assert co.auto_end_if_needed() is True
    assert store.sessions.current() is None


def test_auto_end_ignores_sessions_without_alcohol(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    co.log_drink("water")
    clock.advance(600 * 60)
    assert co.auto_end_if_needed(timeout_min=1) is False


def test_status_totals(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    co.log_drink("cocktail")
    clock.advance(60)
    co.log_drink("water")
    clock.advance(60)
    co.log_drink("beer")
    clock.advance(120)

    st = co.status()
    assert st.is_active
    assert st.total_alcoholic == 2
    assert st.total_water == 1
    assert st.total_units == 2.5
    assert st.since_last_alcoholic_sec == 120
    assert st.last_message == "Water check"

    # status não persiste nada
    before = len(store.events.for_session(st.session_id))
    co.status()
    assert len(store.events.for_session(st.session_id)) == before


def test_recent_advisories_cap_limits_dedupe_history(clock, store, sink):
    co = make_coordinator(clock, store, sink, policy=CoordinatorPolicy(recent_advisories_cap=1))
    co.log_drink("shot")
    clock.advance(60)
    co.log_drink("shot")
    # só o último (hydrate) é lembrado: shot stacking volta a disparar
    assert "shot_stacking" in co.tick().codes()


def test_concurrent_evaluations_emit_once(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    s = co.start_session()
    now = clock.now_epoch()
    store.logs.add(DrinkLog(s.id, now - 120, "shot", 1.0, True))
    store.logs.add(DrinkLog(s.id, now - 60, "shot", 1.0, True))

    barrier = threading.Barrier(8)

    def run():
        barrier.wait()
        co.evaluate_session(s.id)

    threads = [threading.Thread(target=run) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    codes = [e.code for e in store.events.for_session(s.id)]
    assert codes.count("shot_stacking") == 1
    assert codes.count("rapid_repeat") == 1
    assert codes.count("hydrate") == 1


def test_lifecycle_is_mirrored_to_peer(clock, store, sink):
    peer = MemoryStore()
    applier = SyncApplier(
        sessions=peer.sessions,
        logs=peer.logs,
        settings=peer.settings,
        drink_types=peer.drink_types,
    )
    channel = QueueSyncChannel(applier.apply)
    co = make_coordinator(clock, store, sink, sync_sink=channel)

    co.log_drink("beer", source_device="watch")
    clock.advance(60)
    co.log_drink("wine")
    session = co.end_session()

    assert channel.drain() == 4
    mirrored = peer.sessions.get(session.id)
    assert mirrored is not None
    assert mirrored.ended_epoch == clock.now_epoch()
    logs = peer.logs.for_session(session.id)
    assert [(lg.drink_type_id, lg.source_device) for lg in logs] == [("beer", "watch"), ("wine", "phone")]


class GatedClock(ManualClock):
    """Segura a próxima leitura do relógio até gate.set()."""

    def __init__(self, start_epoch):
        super().__init__(start_epoch)
        self.armed = False
        self.entered = threading.Event()
        self.gate = threading.Event()

    def now_epoch(self):
        if self.armed:
            self.armed = False
            self.entered.set()
            self.gate.wait(5)
        return super().now_epoch()


def test_drink_logged_while_session_ends_goes_to_a_new_session(store, sink):
    clock = GatedClock(T0)
    co = make_coordinator(clock, store, sink)
    first = co.start_session()

    # end_session fica parado dentro do lock da sessão
    clock.armed = True
    ender = threading.Thread(target=co.end_session)
    ender.start()
    assert clock.entered.wait(5)

    logged = []
    drinker = threading.Thread(target=lambda: logged.append(co.log_drink("beer")))
    drinker.start()
    time.sleep(0.2)
    clock.gate.set()
    ender.join(5)
    drinker.join(5)

    outcome = logged[0]
    assert first.is_active is False
    assert outcome.log.session_id != first.id
    assert outcome.session.is_active
    assert store.sessions.current() is outcome.session
    assert store.logs.for_session(first.id) == []


def test_session_lock_survives_end(clock, store, sink):
    co = make_coordinator(clock, store, sink)
    s = co.start_session()
    lock = co._lock_for(s.id)
    co.end_session()
    assert co._lock_for(s.id) is lock
