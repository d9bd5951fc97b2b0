"""CLI (application.cli) のテスト"""

import io
import json

import pytest

from application.cli import build_parser, main
from shared.constants import CONFIG_ENV_VAR
from shared.version import __version__


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """HOMEを一時ディレクトリにし、実ユーザーの設定・DBに触れない"""
    monkeypatch.setenv("HOME", str(tmp_path))
    config = tmp_path / "diary.yaml"
    config.write_text(f"logging:\n  log_file: {tmp_path / 'hook.log'}\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config))
    return tmp_path


def feed_stdin(monkeypatch, *events):
    monkeypatch.setattr("sys.stdin", io.StringIO("".join(json.dumps(e) + "\n" for e in events)))


class TestParser:
    def test_dry_run_alias(self):
        assert build_parser().parse_args(["--dry-run"]).test is True
        assert build_parser().parse_args(["--test"]).test is True

    @pytest.mark.parametrize("limit", ["0", "-1"])
    def test_limit_below_one_rejected(self, limit, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--show-recent", "--limit", limit])
        assert exc_info.value.code == 2
        assert "--limit must be 1 or greater" in capsys.readouterr().err

    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.test is False
        assert args.show_recent is False
        assert args.limit is None


class TestMain:
    """main() の分岐"""

    def test_version(self, capsys):
        assert main(["--version"]) == 0
        assert capsys.readouterr().out.strip() == f"claude-diary-hook v{__version__}"

    def test_hook_writes_default_location(self, isolated_home, monkeypatch):
        feed_stdin(
            monkeypatch,
            {"event_type": "user_prompt", "user_prompt": "Fix the bug in parser.go"},
            {"event_type": "session_end"},
        )
        assert main([]) == 0
        assert (isolated_home / ".claude" / "diary.db").exists()

    def test_diary_dir_option(self, tmp_path, monkeypatch):
        feed_stdin(monkeypatch, {"event_type": "session_end"})
        assert main(["--diary-dir", str(tmp_path / "custom")]) == 0
        assert (tmp_path / "custom" / "diary.db").exists()

    def test_dry_run_prints_report(self, isolated_home, monkeypatch, capsys):
        feed_stdin(monkeypatch, {"event_type": "user_prompt", "user_prompt": "write docs for the parser"})
        assert main(["--test"]) == 0
        assert "=== DIARY ENTRY FOR " in capsys.readouterr().out
        assert not (isolated_home / ".claude" / "diary.db").exists()

    def test_show_recent(self, tmp_path, monkeypatch, capsys):
        diary_dir = tmp_path / "d"
        for prompt in ("first task for the day", "second task for the day"):
            feed_stdin(monkeypatch, {"event_type": "user_prompt", "user_prompt": prompt})
            assert main(["--diary-dir", str(diary_dir)]) == 0
        capsys.readouterr()

        assert main(["--diary-dir", str(diary_dir), "--show-recent", "--limit", "1"]) == 0

        out = capsys.readouterr().out
        assert "=== RECENT DIARY ENTRIES ===" in out
        assert out.count("## Session ") == 1

    def test_show_recent_in_test_mode(self, capsys):
        assert main(["--show-recent", "--test"]) == 0
        assert capsys.readouterr().out.strip() == "Recent entries not available in test mode"

    def test_show_recent_storage_error(self, tmp_path, capsys):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        assert main(["--diary-dir", str(blocker / "d"), "--show-recent"]) == 1
        assert "Storage initialization failed" in capsys.readouterr().err
