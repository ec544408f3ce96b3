"""
Tests for bot_base module.

Covers:
    - truncate()            — text truncation for Telegram messages
    - utc_now()             — timestamp format
    - markdown_to_html()    — reply dialect → Telegram HTML
    - AuditLogger           — structured JSON audit trail
    - BotConfig             — config loading, env overrides, error handling
    - confirmation flow     — hold / confirm / cancel of destructive commands
"""

import json

import pytest
import yaml

from bot_base import (
    AuditLogger,
    BotBase,
    BotConfig,
    ConfigError,
    markdown_to_html,
    reply_html,
    truncate,
    utc_now,
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Utility functions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestTruncate:

    def test_short_text_unchanged(self):
        assert truncate("hello", 100) == "hello"

    def test_over_limit_truncated(self):
        result = truncate("x" * 200, 100)
        assert len(result) < 200
        assert "100 chars omitted" in result

    def test_default_limit_is_3500(self):
        assert "truncated" in truncate("x" * 4000)


class TestUtcNow:

    def test_format(self):
        ts = utc_now()
        assert ts.endswith("Z")
        assert len(ts) == 20  # 2024-01-15T10:30:00Z


class TestMarkdownToHtml:

    def test_bold_and_code(self):
        assert markdown_to_html("**Done** with `ui`") == "<b>Done</b> with <code>ui</code>"

    def test_escapes_html(self):
        assert markdown_to_html("a < b & **c>d**") == "a &lt; b &amp; <b>c&gt;d</b>"

    def test_quotes_left_alone(self):
        assert markdown_to_html('"Create task: x"') == '"Create task: x"'

    def test_multiline(self):
        assert markdown_to_html("**A**\n• **B**") == "<b>A</b>\n• <b>B</b>"


class TestReplyHtml:

    def test_short_reply_converted(self):
        assert reply_html("**Done**") == "<b>Done</b>"

    def test_cut_inside_bold_leaves_no_open_tag(self):
        result = reply_html("x" * 95 + "**bold text**", 100)
        assert "<b>" not in result
        assert "x" * 95 + "**bol" in result
        assert "8 chars omitted" in result

    def test_cut_never_splits_an_entity(self):
        result = reply_html("&" * 200, 100)
        body = result.split("\n")[0]
        assert body == "&amp;" * 100


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# AuditLogger
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestAuditLogger:

    def test_writes_json_line(self, tmp_path):
        log_path = tmp_path / "audit.jsonl"
        logger = AuditLogger(log_path)
        logger.log(
            user_id=12345, username="alice", bot="board_bot",
            command="chat", task_id="task-1-abc", status="ok",
        )
        entry = json.loads(log_path.read_text().strip())
        assert entry["user_id"] == 12345
        assert entry["command"] == "chat"
        assert entry["status"] == "ok"
        assert "ts" in entry

    def test_extras_merged_and_none_filtered(self, tmp_path):
        log_path = tmp_path / "audit.jsonl"
        AuditLogger(log_path).log(
            user_id=1, username="u", bot="b", command="chat", task_id="",
            status="ok", intent="create", action=None,
        )
        entry = json.loads(log_path.read_text().strip())
        assert entry["intent"] == "create"
        assert "action" not in entry

    def test_appends(self, tmp_path):
        log_path = tmp_path / "audit.jsonl"
        logger = AuditLogger(log_path)
        for i in range(3):
            logger.log(user_id=i, username="", bot="b", command="undo", task_id="", status="ok")
        assert len(log_path.read_text().strip().split("\n")) == 3

    def test_unwritable_path_does_not_raise(self, tmp_path):
        AuditLogger(tmp_path / "missing" / "audit.jsonl").log(
            user_id=1, username="", bot="b", command="x", task_id="", status="ok",
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BotConfig
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestBotConfig:

    def _write_config(self, tmp_path, config_dict):
        path = tmp_path / "flowboard.yaml"
        path.write_text(yaml.dump(config_dict))
        return str(path)

    def _base(self, tmp_path, **global_overrides):
        cfg = {
            "global": {
                "db_path": str(tmp_path / "board.db"),
                "audit_log": str(tmp_path / "audit.jsonl"),
            },
            "bots": {
                "board_bot": {
                    "token_env": "TEST_FLOWBOARD_TOKEN",
                    "allowed_users": [12345, "67890"],
                },
            },
        }
        cfg["global"].update(global_overrides)
        return cfg

    def test_loads_valid_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_FLOWBOARD_TOKEN", "fake-token-123")
        monkeypatch.delenv("FLOWBOARD_DB", raising=False)
        cfg = BotConfig(self._write_config(tmp_path, self._base(tmp_path)), "board_bot")
        assert cfg.token == "fake-token-123"
        assert cfg.allowed_users == ["12345", "67890"]
        assert cfg.db_path == str(tmp_path / "board.db")
        assert cfg.storage_key == "flowboard-data"
        assert cfg.history_limit == 50
        assert cfg.autosave_delay == 0.3
        assert cfg.typing_delay == (0.4, 1.0)
        assert cfg.audit_log.exists()

    def test_is_authorized(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_FLOWBOARD_TOKEN", "t")
        cfg = BotConfig(self._write_config(tmp_path, self._base(tmp_path)), "board_bot")
        assert cfg.is_authorized(12345)
        assert cfg.is_authorized(67890)
        assert not cfg.is_authorized(99999)

    def test_global_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_FLOWBOARD_TOKEN", "t")
        path = self._write_config(tmp_path, self._base(
            tmp_path, storage_key="team-board", history_limit=10,
            autosave_delay=None, typing_delay=[0, 0],
        ))
        cfg = BotConfig(path, "board_bot")
        assert cfg.storage_key == "team-board"
        assert cfg.history_limit == 10
        assert cfg.autosave_delay is None
        assert cfg.typing_delay == (0.0, 0.0)

    def test_env_db_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_FLOWBOARD_TOKEN", "t")
        monkeypatch.setenv("FLOWBOARD_DB", str(tmp_path / "elsewhere.db"))
        cfg = BotConfig(self._write_config(tmp_path, self._base(tmp_path)), "board_bot")
        assert cfg.db_path == str(tmp_path / "elsewhere.db")

    def test_missing_bot_raises(self, tmp_path):
        path = self._write_config(tmp_path, {"global": {}, "bots": {}})
        with pytest.raises(ConfigError, match="not found in config"):
            BotConfig(path, "board_bot")

    def test_missing_token_env_raises(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TEST_FLOWBOARD_TOKEN", raising=False)
        path = self._write_config(tmp_path, self._base(tmp_path))
        with pytest.raises(ConfigError, match="not set"):
            BotConfig(path, "board_bot")

    def test_no_token_env_configured(self, tmp_path):
        path = self._write_config(tmp_path, {"bots": {"board_bot": {"allowed_users": []}}})
        with pytest.raises(ConfigError, match="no token_env"):
            BotConfig(path, "board_bot")

    @pytest.mark.parametrize("limit", [0, -5])
    def test_history_limit_must_be_positive(self, tmp_path, monkeypatch, limit):
        monkeypatch.setenv("TEST_FLOWBOARD_TOKEN", "t")
        path = self._write_config(tmp_path, self._base(tmp_path, history_limit=limit))
        with pytest.raises(ConfigError, match="history_limit"):
            BotConfig(path, "board_bot")

    @pytest.mark.parametrize("delay", [[1.0, 0.5], [-1, 1], "fast", [1]])
    def test_bad_typing_delay(self, tmp_path, monkeypatch, delay):
        monkeypatch.setenv("TEST_FLOWBOARD_TOKEN", "t")
        path = self._write_config(tmp_path, self._base(tmp_path, typing_delay=delay))
        with pytest.raises(ConfigError, match="typing_delay"):
            BotConfig(path, "board_bot")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Confirmation flow
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestConfirmation:

    def setup_method(self):
        self.calls = []

    def _bot(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_FLOWBOARD_TOKEN", "t")
        cfg = TestBotConfig()._base(tmp_path)
        path = tmp_path / "flowboard.yaml"
        path.write_text(yaml.dump(cfg))
        return BotBase(str(path), "board_bot")

    def _run(self):
        self.calls.append("ran")
        return "done"

    def test_held_until_confirmed(self, tmp_path, monkeypatch):
        bot = self._bot(tmp_path, monkeypatch)
        confirm_id = bot.hold_for_confirmation(1, "clear", self._run)
        assert confirm_id.startswith("task-")
        assert self.calls == []
        pending = bot.confirm_pending(1)
        assert pending["command"] == "clear"
        assert pending["reply"] == "done"
        assert self.calls == ["ran"]
        assert bot.confirm_pending(1) is None

    def test_cancel_discards(self, tmp_path, monkeypatch):
        bot = self._bot(tmp_path, monkeypatch)
        bot.hold_for_confirmation(1, "reset", self._run)
        assert bot.cancel_pending(1)["command"] == "reset"
        assert bot.confirm_pending(1) is None
        assert self.calls == []

    def test_pending_is_per_user(self, tmp_path, monkeypatch):
        bot = self._bot(tmp_path, monkeypatch)
        bot.hold_for_confirmation(1, "reset", self._run)
        assert bot.confirm_pending(2) is None
        assert self.calls == []

    def test_newer_request_replaces_older(self, tmp_path, monkeypatch):
        bot = self._bot(tmp_path, monkeypatch)
        bot.hold_for_confirmation(1, "reset", self._run)
        bot.hold_for_confirmation(1, "clear", self._run)
        assert bot.confirm_pending(1)["command"] == "clear"

    def test_help_lists_commands(self, tmp_path, monkeypatch):
        bot = self._bot(tmp_path, monkeypatch)
        bot.commands = {"undo": "Revert the last change"}
        text = bot.help_text()
        assert "/undo" in text
        assert "/confirm" in text
