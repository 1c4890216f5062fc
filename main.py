from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Iterable, List, Optional, TextIO

from config import AppConfig, load_config
from app.coordinator import (
    CoordinatorPolicy,
    SessionCoordinator,
    UnknownDrinkTypeError,
    UnknownSessionError,
)
from app.insights import build_insights
from domain.ports import AdvisorySink, Clock, SyncSink
from domain.presets import mode_label
from infra.advisories_csv_sink import AsyncCsvAdvisoryWriter
from infra.clock import ManualClock, SystemClock
from infra.http_sync_sink import HttpSyncSink
from infra.logger_config import setup_logger
from infra.memory_store import MemoryStore
from infra.sinks import FanoutAdvisorySink, PrintAdvisorySink, fmt_epoch

HELP = """commands:
  start            start a session (or show the active one)
  drink <type>     log a drink (see: types)
  undo             remove the last drink
  tick             periodic pace check
  wait <minutes>   advance the simulated clock, then tick
  status           current pace and totals
  autoend          end the session if idle past the timeout
  end              end the session
  types            list drink types
  report           insights over ended sessions
  quit"""


@dataclass
class App:
    cfg: AppConfig
    clock: Clock
    store: MemoryStore
    coordinator: SessionCoordinator
    journal: Optional[AsyncCsvAdvisoryWriter] = None
    sync_sink: Optional[HttpSyncSink] = None

    def stop(self) -> None:
        try:
            if self.sync_sink is not None:
                self.sync_sink.stop()
        finally:
            if self.journal is not None:
                self.journal.stop()


def build_app(cfg: AppConfig, *, out: Optional[TextIO] = None) -> App:
    clock: Clock = ManualClock() if cfg.simulated_clock else SystemClock()

    store = MemoryStore(settings=cfg.settings)
    for dt in cfg.drink_types:
        store.drink_types.upsert(dt)
    store.drink_types.seed_defaults_if_needed()

    logger = logging.getLogger("pacing")

    # ---- journal de advisories (opcional) ----
    journal = None
    sinks: List[AdvisorySink] = [PrintAdvisorySink(out)]
    if cfg.journal.enabled:
        journal = AsyncCsvAdvisoryWriter(
            cfg.journal.csv_path,
            queue_max=cfg.journal.queue_max,
            drop_on_full=cfg.journal.drop_on_full,
            flush_every_n=cfg.journal.flush_every_n,
            flush_every_sec=cfg.journal.flush_every_sec,
        )
        journal.start()
        sinks.append(journal)
        print(f"[journal] enabled=True csv={cfg.journal.csv_path}", file=out)
    else:
        print("[journal] enabled=False", file=out)

    # ---- sync com o outro cliente (opcional) ----
    sync_sink: Optional[HttpSyncSink] = None
    if cfg.sync.enabled:
        sync_sink = HttpSyncSink(
            cfg.sync.url,
            source_device=cfg.source_device,
            queue_max=cfg.sync.queue_max,
            timeout_sec=cfg.sync.timeout_sec,
            max_retries=cfg.sync.max_retries,
            backoff_sec=cfg.sync.backoff_sec,
            drop_on_full=cfg.sync.drop_on_full,
        )
        sync_sink.start()
        print(f"[sync] enabled=True url={cfg.sync.url}", file=out)
    else:
        print("[sync] enabled=False", file=out)

    coordinator = SessionCoordinator(
        clock,
        sessions=store.sessions,
        logs=store.logs,
        events=store.events,
        settings=store.settings,
        drink_types=store.drink_types,
        advisory_sink=FanoutAdvisorySink(sinks, on_error=lambda e: logger.error("advisory sink: %s", e)),
        sync_sink=sync_sink,
        policy=CoordinatorPolicy(
            recent_advisories_cap=cfg.recent_advisories_cap,
            source_device=cfg.source_device,
        ),
    )

    st = cfg.settings
    print(
        f"[settings] mode={mode_label(st.sensitivity_mode)} hydration={st.hydration_reminders_enabled} "
        f"cadence={st.hydration_cadence} auto_end={st.auto_end_timeout_min}min "
        f"clock={'simulated' if cfg.simulated_clock else 'system'}",
        file=out,
    )

    return App(cfg=cfg, clock=clock, store=store, coordinator=coordinator, journal=journal, sync_sink=sync_sink)


def _fmt_minutes(sec: Optional[float]) -> str:
    if sec is None:
        return "-"
    return f"{int(sec // 60)}min"


def handle_command(app: App, line: str, out: Optional[TextIO] = None) -> bool:
    """Executa um comando do console. Retorna False para sair."""
    parts = line.strip().split()
    if not parts:
        return True
    cmd, args = parts[0].lower(), parts[1:]
    co = app.coordinator

    def say(text: str) -> None:
        print(text, file=out)

    try:
        if cmd in ("quit", "exit", "q"):
            return False

        if cmd == "help":
            say(HELP)

        elif cmd == "start":
            s = co.start_session()
            say(f"session {s.id[:8]} started at {fmt_epoch(s.started_epoch)}")

        elif cmd == "drink":
            if not args:
                say("usage: drink <type>")
                return True
            outcome = co.log_drink(args[0].lower())
            say(
                f"logged {outcome.log.drink_type_id} ({outcome.log.standard_units:g} units) "
                f"pace={outcome.result.pace_status.value}"
            )

        elif cmd == "undo":
            undone = co.undo_last()
            if undone.removed is None:
                say("nothing to undo")
            else:
                say(f"removed {undone.removed.drink_type_id} pace={undone.pace_status.value}")

        elif cmd == "tick":
            result = co.tick()
            say("no active session" if result is None else f"pace={result.pace_status.value}")

        elif cmd == "wait":
            if not isinstance(app.clock, ManualClock):
                say("wait needs simulated_clock: true")
                return True
            minutes = float(args[0]) if args else 1.0
            app.clock.advance(minutes * 60.0)
            result = co.tick()
            say(f"now {fmt_epoch(app.clock.now_epoch())}" + ("" if result is None else f" pace={result.pace_status.value}"))

        elif cmd == "status":
            st = co.status()
            say(
                f"session {st.session_id[:8]} pace={st.pace_status.value} alcoholic={st.total_alcoholic} "
                f"water={st.total_water} units={st.total_units:g} "
                f"since_last={_fmt_minutes(st.since_last_alcoholic_sec)}"
                + (f" last=\"{st.last_message}\"" if st.last_message else "")
            )

        elif cmd == "autoend":
            say("session ended" if co.auto_end_if_needed() else "session kept")

        elif cmd == "end":
            s = co.end_session()
            say(f"session {s.id[:8]} ended")

        elif cmd == "types":
            for c in app.store.drink_types.all():
                flag = "" if c.is_enabled else " (disabled)"
                kind = "alcoholic" if c.is_alcoholic else "non-alcoholic"
                say(f"  {c.id:<10} {c.display_name:<10} {c.default_standard_units:g} units {kind}{flag}")

        elif cmd == "report":
            ins = build_insights(app.store.sessions, app.store.logs, app.store.events)
            say(
                f"sessions={len(ins.stats)} warnings={ins.total_warnings} "
                f"avg_duration={'-' if ins.avg_duration_min is None else f'{ins.avg_duration_min:.0f}min'} "
                f"top_drink={ins.most_common_drink_type or '-'} "
                f"warning_hour={'-' if ins.typical_warning_hour is None else ins.typical_warning_hour}"
            )
            for s in ins.stats:
                say(
                    f"  {fmt_epoch(s.started_epoch)} drinks={s.drink_count} units={s.total_units:g} "
                    f"duration={'-' if s.duration_min is None else f'{s.duration_min}min'} advisories={s.warning_count}"
                )

        else:
            say(f"unknown command: {cmd} (try: help)")

    except UnknownDrinkTypeError as e:
        say(f"unknown or disabled drink type: {e.args[0]}")
    except UnknownSessionError:
        say("no active session (try: start)")
    except ValueError as e:
        say(f"invalid argument: {e}")

    return True


def run_console(app: App, lines: Iterable[str], out: Optional[TextIO] = None) -> None:
    for line in lines:
        if not handle_command(app, line, out):
            break


def main(argv: Optional[List[str]] = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    cfg = load_config(argv[0] if argv else "config.yaml", missing_ok=not argv)
    setup_logger(level=getattr(logging, cfg.log_level, logging.INFO), log_file=cfg.log_file)

    app = build_app(cfg)
    print("Ready. Type 'help' for commands.")
    try:
        run_console(app, sys.stdin)
    finally:
        app.stop()


if __name__ == "__main__":
    main()
