from app.insights import build_insights
from domain.records import DrinkLog, PacingEvent, Session
from infra.memory_store import MemoryStore

# 2023-11-14 22:13:20 UTC
T0 = 1_700_000_000.0
DAY = 24 * 3600.0


def add_session(store, started, ended, drinks, advisories):
    s = Session(started_epoch=started, ended_epoch=ended)
    store.sessions.add(s)
    for offset_min, type_id, units, alcoholic in drinks:
        store.logs.add(DrinkLog(s.id, started + offset_min * 60, type_id, units, alcoholic))
    for offset_min, code in advisories:
        store.events.add(PacingEvent(s.id, started + offset_min * 60, "warning", code, "msg", 1))
    return s


def test_empty_history():
    ins = build_insights(MemoryStore().sessions, MemoryStore().logs, MemoryStore().events)
    assert ins.stats == []
    assert ins.avg_duration_min is None
    assert ins.most_common_drink_type is None
    assert ins.typical_warning_hour is None
    assert ins.total_warnings == 0


def test_insights_over_ended_sessions():
    store = MemoryStore()
    first = add_session(
        store, T0, T0 + 120 * 60,
        [(0, "beer", 1.0, True), (30, "water", 0.0, False), (40, "beer", 1.0, True)],
        [(10, "rapid_repeat"), (41, "fast_pace")],
    )
    second = add_session(
        store, T0 + DAY, T0 + DAY + 60 * 60,
        [(0, "shot", 1.0, True)],
        [(5, "hydrate")],
    )
    # sessão ativa fica de fora
    add_session(store, T0 + 2 * DAY, None, [(0, "wine", 1.0, True)], [(1, "rapid_repeat")])

    ins = build_insights(store.sessions, store.logs, store.events)

    assert [s.session_id for s in ins.stats] == [second.id, first.id]
    assert ins.stats[1].drink_count == 2
    assert ins.stats[1].total_units == 2.0
    assert ins.stats[1].duration_min == 120
    assert ins.stats[1].warning_count == 2
    assert ins.avg_duration_min == 90.0
    assert ins.total_warnings == 3
    assert ins.most_common_drink_type == "beer"
    assert ins.drink_type_counts == {"beer": 2, "shot": 1}
    assert ins.typical_warning_hour == 22


def test_zero_length_sessions_do_not_pull_the_average_down():
    store = MemoryStore()
    add_session(store, T0, T0 + 30, [], [])
    add_session(store, T0 + DAY, T0 + DAY + 45 * 60, [], [])

    ins = build_insights(store.sessions, store.logs, store.events)
    assert [s.duration_min for s in ins.stats] == [45, 0]
    assert ins.avg_duration_min == 45.0


def test_limit_keeps_most_recent_sessions():
    store = MemoryStore()
    for day in range(5):
        add_session(store, T0 + day * DAY, T0 + day * DAY + 3600, [], [])

    ins = build_insights(store.sessions, store.logs, store.events, limit=2)
    assert [s.started_epoch for s in ins.stats] == [T0 + 4 * DAY, T0 + 3 * DAY]
