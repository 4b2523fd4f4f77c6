"""Tests for CLI parsing and dispatch."""

from __future__ import annotations

import builtins
from pathlib import Path
import sys
import threading
from typing import Optional

import pytest

from clio_radio import cli
from clio_radio.config import AppConfig


@pytest.fixture(autouse=True)
def isolate_main(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "init_logging", lambda: tmp_path / "app.log")
    monkeypatch.setattr(cli, "load_config", lambda: AppConfig())
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)


def test_parse_query_argument() -> None:
    args = cli.build_parser().parse_args(["soma fm"])
    assert args.query == "soma fm"
    assert args.limit is None
    assert args.mpv_path is None


def test_parse_options() -> None:
    args = cli.build_parser().parse_args(
        ["tag:ambient", "--limit", "5", "--mpv", "/opt/mpv", "--server", "https://x"]
    )
    assert args.query == "tag:ambient"
    assert args.limit == 5
    assert args.mpv_path == "/opt/mpv"
    assert args.api_base_url == "https://x"


def test_apply_overrides() -> None:
    args = cli.build_parser().parse_args(["--limit", "9999", "--mpv", "/opt/mpv"])
    config = cli.apply_overrides(AppConfig(), args)
    assert config.search_limit == 500
    assert config.mpv_path == "/opt/mpv"
    assert config.api_base_url is None


def test_apply_overrides_without_changes_keeps_config() -> None:
    original = AppConfig(last_query="jazz")
    args = cli.build_parser().parse_args([])
    assert cli.apply_overrides(original, args) is original


def test_main_requires_mpv(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.setattr(cli.shutil, "which", lambda _name: None)
    called = {"tui": False}

    def fake_run(config: AppConfig, query: Optional[str]) -> int:
        called["tui"] = True
        return 0

    monkeypatch.setattr(cli, "_run_tui", fake_run)
    assert cli.main(["--mpv", "/nope/mpv"]) == 1
    assert "mpv not found: /nope/mpv" in capsys.readouterr().err
    assert called["tui"] is False


def test_main_runs_tui(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli.shutil, "which", lambda name: f"/usr/bin/{name}")
    seen: list[tuple[AppConfig, Optional[str]]] = []

    def fake_run(config: AppConfig, query: Optional[str]) -> int:
        seen.append((config, query))
        return 0

    monkeypatch.setattr(cli, "_run_tui", fake_run)
    assert cli.main(["groove", "--limit", "7"]) == 0
    config, query = seen[0]
    assert query == "groove"
    assert config.search_limit == 7


def test_main_installs_exception_hooks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli.shutil, "which", lambda name: name)
    monkeypatch.setattr(cli, "_run_tui", lambda config, query: 0)
    original = sys.excepthook
    cli.main([])
    assert sys.excepthook is not original


def test_run_tui_handles_import_error(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    original_import = builtins.__import__

    def fake_import(name, *args, **kwargs):
        if name == "clio_radio.tui":
            raise ImportError("boom")
        return original_import(name, *args, **kwargs)

    monkeypatch.setattr(builtins, "__import__", fake_import)
    assert cli._run_tui(AppConfig(), None) == 1
    assert "boom" in capsys.readouterr().err
