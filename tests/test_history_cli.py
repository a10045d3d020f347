from __future__ import annotations

import argparse
import importlib.util
import json
from pathlib import Path


def _load_module():
    module_path = Path(__file__).resolve().parents[1] / "scripts" / "ccmonitor_history.py"
    spec = importlib.util.spec_from_file_location("ccmonitor_history_test_module", module_path)
    assert spec and spec.loader
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _write_history(path: Path) -> None:
    path.write_text(
        json.dumps(
            [
                {
                    "id": "late",
                    "workingDirectory": "/b",
                    "status": "running",
                    "createdAt": "2025-01-02T00:00:00+00:00",
                    "outputSize": 5,
                },
                {
                    "id": "early",
                    "workingDirectory": "/a",
                    "status": "completed",
                    "createdAt": "2025-01-01T00:00:00+00:00",
                    "endedAt": "2025-01-01T01:00:00+00:00",
                    "outputSize": 12,
                },
            ]
        ),
        encoding="utf-8",
    )


def _args(**overrides) -> argparse.Namespace:
    values = {"path": None, "status": None, "format": "json", "output": None, "limit": None}
    values.update(overrides)
    return argparse.Namespace(**values)


def test_report_history_prints_sorted_json(tmp_path: Path, capsys) -> None:
    module = _load_module()
    history = tmp_path / "sessions.json"
    _write_history(history)

    exit_code = module.report_history(_args(path=str(history)))

    assert exit_code == 0
    data = json.loads(capsys.readouterr().out)
    assert [item["id"] for item in data] == ["early", "late"]


def test_report_history_filters_and_writes_text(tmp_path: Path) -> None:
    module = _load_module()
    history = tmp_path / "sessions.json"
    _write_history(history)
    output = tmp_path / "report.txt"

    exit_code = module.report_history(
        _args(path=str(history), status="completed", format="text", output=str(output))
    )

    assert exit_code == 0
    text = output.read_text(encoding="utf-8")
    assert "session=early" in text
    assert "status=completed" in text
    assert "late" not in text


def test_report_history_limit_keeps_latest(tmp_path: Path, capsys) -> None:
    module = _load_module()
    history = tmp_path / "sessions.json"
    _write_history(history)

    module.report_history(_args(path=str(history), limit=1))

    assert [item["id"] for item in json.loads(capsys.readouterr().out)] == ["late"]


def test_report_history_missing_file(tmp_path: Path, capsys) -> None:
    module = _load_module()

    exit_code = module.report_history(_args(path=str(tmp_path / "absent.json")))

    assert exit_code == 1
    assert "History file not found" in capsys.readouterr().err


def test_report_history_rejects_corrupt_file(tmp_path: Path, capsys) -> None:
    module = _load_module()
    history = tmp_path / "sessions.json"
    history.write_text("{}", encoding="utf-8")

    assert module.report_history(_args(path=str(history))) == 1
    assert "History unreadable" in capsys.readouterr().err


def test_report_history_rejects_non_string_timestamps(tmp_path: Path, capsys) -> None:
    module = _load_module()
    history = tmp_path / "sessions.json"
    history.write_text(
        json.dumps([{"id": "a", "workingDirectory": "/x", "status": "completed", "createdAt": 1700000000}]),
        encoding="utf-8",
    )

    assert module.report_history(_args(path=str(history))) == 1
    assert "History unreadable" in capsys.readouterr().err
