import os
from datetime import date, datetime

from planner_app import main as cli
from planner_app.planner.controllers import AppConfig, TaskCompletionController
from planner_app.planner.models import TestResult
from planner_app.planner.storage import MemoryBlobStore
from planner_app.planner.timers import FocusSessionManager

from conftest import FixedClock


def _controller(tmp_path):
    controller = cli.build_controller(AppConfig(storage_backend="memory", export_path=str(tmp_path / "out.xlsx")))
    controller.clock = FixedClock(datetime(2024, 1, 17, 9, 0))
    return controller


def _run(controller, *argv):
    return cli.run(controller, cli.build_parser().parse_args(list(argv)))


def test_build_controller_picks_backend(tmp_path):
    controller = cli.build_controller(AppConfig(storage_backend="memory"))
    assert isinstance(controller.gateway.backend, MemoryBlobStore)
    sqlite = cli.build_controller(AppConfig(storage_backend="sqlite", data_path=str(tmp_path / "p.db")))
    assert (tmp_path / "p.db").exists()
    assert sqlite.config.storage_backend == "sqlite"


def test_add_toggle_and_log_flow(tmp_path, capsys):
    controller = _controller(tmp_path)
    assert _run(controller, "add", "Electrostatics", "--subject", "physics") == 0
    task_id = controller.today.items[0].id

    assert _run(controller, "toggle", task_id) == 1
    assert "--start" in capsys.readouterr().err
    assert controller.today.items[0].done is False

    assert _run(controller, "toggle", task_id, "--start", "10:00", "--end", "09:00") == 1
    assert "End time must be after start time." in capsys.readouterr().err
    assert controller.current_week_logs() == []

    assert _run(controller, "toggle", task_id, "--start", "08:00", "--end", "09:30") == 0
    assert "1h 30m" in capsys.readouterr().out
    assert controller.today.items[0].done is True

    assert _run(controller, "week") == 0
    out = capsys.readouterr().out
    assert "Study Sessions" in out
    assert "Exam in 6 months and 24 days" in out


def test_unknown_ids_and_history(tmp_path, capsys):
    controller = _controller(tmp_path)
    assert _run(controller, "delete-log", "nope") == 1
    assert "Unknown id" in capsys.readouterr().err
    assert _run(controller, "history") == 0
    assert "No weekly summaries yet." in capsys.readouterr().out


def test_backup_unsupported_on_memory(tmp_path, capsys):
    controller = _controller(tmp_path)
    assert _run(controller, "backup") == 1
    assert "sqlite" in capsys.readouterr().err


def test_load_api_keys(tmp_path, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("FIREBASE_CREDENTIALS", "already-set.json")
    (tmp_path / "api_keys.toml").write_text(
        'gemini_api_key = "abc"\nfirebase_credentials = "other.json"\n', encoding="utf-8"
    )
    cli._load_api_keys(tmp_path)
    assert os.environ["GEMINI_API_KEY"] == "abc"
    assert os.environ["FIREBASE_CREDENTIALS"] == "already-set.json"


def test_week_shows_average_scores(tmp_path, capsys):
    controller = _controller(tmp_path)
    controller.start_session()
    controller.replace_tests([TestResult("x1", "Unit test", "physics", date(2024, 1, 10), 42, 50)])
    assert _run(controller, "week") == 0
    assert "Average scores: Physics 84.0%" in capsys.readouterr().out


def test_tick_and_syllabus_commands(tmp_path, capsys):
    controller = _controller(tmp_path)
    assert _run(controller, "tick", "physics", "phy-1", "phy-1-1", "tute") == 0
    assert "7% complete" in capsys.readouterr().out
    physics = next(s for s in controller.syllabi() if s.subject_id == "physics")
    assert physics.units[0].subunits[0].tute_done is True

    assert _run(controller, "syllabus", "physics") == 0
    out = capsys.readouterr().out
    assert "Physics: 7% complete" in out
    assert "[x] tute [ ] past  phy-1-1" in out

    assert _run(controller, "tick", "physics", "phy-1", "phy-1-1", "tute", "--undo") == 0
    assert "0% complete" in capsys.readouterr().out
    assert _run(controller, "tick", "physics", "phy-1", "nope", "past") == 1
    assert "Unknown id: nope" in capsys.readouterr().err


def test_focus_logs_time_and_completes_task(tmp_path, capsys):
    controller = _controller(tmp_path)
    controller.focus = FocusSessionManager(tick_seconds=0.05, clock=controller.clock)
    assert _run(controller, "add", "Titration", "--subject", "chemistry") == 0
    task_id = controller.today.items[0].id
    capsys.readouterr()

    assert _run(controller, "focus", task_id, "--minutes", "0.005") == 0
    assert "time logged and task done" in capsys.readouterr().out
    [entry] = controller.task_logs(task_id)
    assert (entry.start_time, entry.end_time) == ("09:00", "09:01")
    assert controller.today.find(task_id).done is True


def test_focus_reports_failure_when_logging_fails(tmp_path, capsys, monkeypatch):
    controller = _controller(tmp_path)
    controller.focus = FocusSessionManager(tick_seconds=0.05, clock=controller.clock)
    assert _run(controller, "add", "Titration", "--subject", "chemistry") == 0
    task_id = controller.today.items[0].id
    capsys.readouterr()

    def _fail(self, *args):
        raise RuntimeError("disk full")

    monkeypatch.setattr(TaskCompletionController, "log_focus_session", _fail)
    assert _run(controller, "focus", task_id, "--minutes", "0.005") == 1
    captured = capsys.readouterr()
    assert "could not be logged" in captured.err
    assert "time logged" not in captured.out
    assert controller.today.find(task_id).done is False
