from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from log_incident_analyzer import cli


@pytest.fixture
def run_cli(monkeypatch, tmp_path: Path):
    for name in ("LOG_ANALYZER_CLASSIFIER", "LOG_ANALYZER_CACHE_DIR", "LOG_ANALYZER_MAX_LOG_BYTES"):
        monkeypatch.delenv(name, raising=False)

    def _run(*args: str) -> None:
        argv = ["log-incident-analyzer", *args, "--rules-only", "--cache-dir", str(tmp_path / "cache")]
        monkeypatch.setattr(sys, "argv", argv)
        cli.main()

    return _run


def test_cli_prints_summary(run_cli, tmp_path: Path, capsys) -> None:
    log = tmp_path / "app.log"
    log.write_text("2024-01-01 10:00:00 ECONNREFUSED connecting to postgres database\n", encoding="utf-8")

    run_cli(str(log))

    out = capsys.readouterr().out
    assert "Issue:       Database connection failure" in out
    assert "Severity:    Critical" in out
    assert "1. Verify the database server is running" in out


def test_cli_json_output_and_cache(run_cli, tmp_path: Path, capsys) -> None:
    log = tmp_path / "app.log"
    log.write_text("HTTP/1.1 502 Bad Gateway\n", encoding="utf-8")

    run_cli(str(log), "--json")
    first = json.loads(capsys.readouterr().out)
    run_cli(str(log), "--json")
    second = json.loads(capsys.readouterr().out)

    assert first["success"] is True
    assert first["analysis"]["category"] == "application"
    assert first["cached"] is False
    assert second["cached"] is True


def test_cli_empty_file_exits_2(run_cli, tmp_path: Path, capsys) -> None:
    log = tmp_path / "empty.log"
    log.write_text("", encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        run_cli(str(log))

    assert exc.value.code == 2
    assert "Log content is empty or invalid" in capsys.readouterr().err


def test_cli_missing_file_exits_2(run_cli, tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc:
        run_cli(str(tmp_path / "nope.log"))
    assert exc.value.code == 2
