import io

from config import AppConfig, JournalConfig
from main import build_app, run_console


def run(lines, cfg=None):
    out = io.StringIO()
    app = build_app(cfg or AppConfig(simulated_clock=True), out=out)
    try:
        run_console(app, lines, out)
    finally:
        app.stop()
    return app, out.getvalue()


def test_startup_banner():
    _, text = run([])
    assert "[journal] enabled=False" in text
    assert "[sync] enabled=False" in text
    assert "mode=Balanced" in text
    assert "clock=simulated" in text


def test_drinking_session_from_the_console():
    app, text = run([
        "drink shot",
        "wait 1",
        "drink shot",
        "status",
        "end",
        "report",
        "quit",
        "drink beer",
    ])
    assert "logged shot (1 units) pace=good" in text
    assert "Two shots close together. Take a break for 20 min." in text
    assert "(code=hydrate" in text
    assert "alcoholic=2 water=0 units=2" in text
    assert "sessions=1 warnings=3" in text
    # nada depois de quit
    assert app.store.sessions.current() is None


def test_console_errors_are_reported():
    _, text = run(["status", "drink", "drink mead", "wait soon", "dance"])
    assert "no active session (try: start)" in text
    assert "usage: drink <type>" in text
    assert "unknown or disabled drink type: mead" in text
    assert "invalid argument:" in text
    assert "unknown command: dance" in text


def test_wait_needs_simulated_clock():
    _, text = run(["start", "wait 5"], AppConfig())
    assert "wait needs simulated_clock: true" in text


def test_undo_and_types():
    _, text = run(["drink wine", "undo", "undo", "types"])
    assert "removed wine pace=good" in text
    assert "nothing to undo" in text
    assert "cocktail" in text and "1.5 units alcoholic" in text


def test_journal_enabled(tmp_path):
    path = tmp_path / "adv.csv"
    cfg = AppConfig(simulated_clock=True, journal=JournalConfig(enabled=True, csv_path=str(path)))
    _, text = run(["drink shot", "drink shot"], cfg)
    assert f"[journal] enabled=True csv={path}" in text
    assert "shot_stacking" in path.read_text(encoding="utf-8")
