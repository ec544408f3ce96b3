#!/usr/bin/env python3
"""
FlowBoard Bot Base
──────────────────
Shared logic for FlowBoard Telegram bots.
A bot subclasses BotBase and registers its handlers.

Components:
    BotConfig       — loads YAML config, resolves token, sets up paths
    AuditLogger     — appends structured JSON lines to audit log
    BotBase         — base class with auth, confirmation flow, help

Dependencies:
    pip install python-telegram-bot==20.* pyyaml

Usage:
    See board_bot.py
"""

import html
import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

import yaml
from telegram import Update, BotCommand
from telegram.ext import Application, CommandHandler, ContextTypes

sys.path.insert(0, str(Path(__file__).parent.parent))
from flowboard.persistence import DEFAULT_DB_PATH, DEFAULT_KEY
from flowboard.schema import make_task_id

logger = logging.getLogger(__name__)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Utilities
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def utc_now() -> str:
    """ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def truncate(text: str, max_chars: int = 3500) -> str:
    """Truncate text to fit in a single Telegram message (4096 char limit)."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + f"\n…[truncated, {len(text) - max_chars} chars omitted]"


_BOLD = re.compile(r"\*\*(.+?)\*\*")
_CODE = re.compile(r"`([^`]+)`")


def markdown_to_html(text: str) -> str:
    """
    Convert the reply dialect used by the board (**bold**, `code`) to
    Telegram HTML. Everything else is escaped.
    """
    escaped = html.escape(text, quote=False)
    escaped = _BOLD.sub(r"<b>\1</b>", escaped)
    return _CODE.sub(r"<code>\1</code>", escaped)


def reply_html(text: str, max_chars: int = 3500) -> str:
    """Truncate the markdown reply, then convert, so no tag or entity is cut."""
    return markdown_to_html(truncate(text, max_chars))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Exceptions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BotConfig: configuration loader
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BotConfig:
    """
    Loads and exposes config for a single bot.

    Reads flowboard.yaml, resolves the bot token from environment variables,
    sets up the board database and audit paths, and builds the user allowlist.
    """

    def __init__(self, config_path: str, bot_name: str):
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        self.global_cfg = raw.get("global", {}) or {}
        self.bot_name = bot_name

        bots = raw.get("bots", {}) or {}
        if bot_name not in bots:
            raise ConfigError(
                f"Bot '{bot_name}' not found in config. "
                f"Available: {list(bots.keys())}"
            )

        self.bot_cfg = bots[bot_name] or {}

        # ── Resolve token from environment ──
        token_env = self.bot_cfg.get("token_env")
        if not token_env:
            raise ConfigError(f"Bot '{bot_name}' has no token_env configured")
        self.token = os.environ.get(token_env)
        if not self.token:
            raise ConfigError(
                f"Environment variable {token_env} is not set.\n"
                f"Set it:  export {token_env}=your_bot_token\n"
                f"Get a token from @BotFather on Telegram."
            )

        # ── Allowlist (numeric Telegram user IDs as strings for comparison) ──
        self.allowed_users = [
            str(uid) for uid in self.bot_cfg.get("allowed_users", []) or []
        ]

        # ── Board storage ──
        db_path = os.environ.get("FLOWBOARD_DB") or self.global_cfg.get("db_path", DEFAULT_DB_PATH)
        self.db_path = str(Path(db_path).expanduser())
        self.storage_key = self.global_cfg.get("storage_key", DEFAULT_KEY)
        self.history_limit = int(self.global_cfg.get("history_limit", 50))
        if self.history_limit < 1:
            raise ConfigError(f"history_limit must be at least 1, got: {self.history_limit}")
        autosave = self.global_cfg.get("autosave_delay", 0.3)
        self.autosave_delay = None if autosave is None else float(autosave)

        # ── Reply pacing (seconds, min/max) ──
        delay = self.global_cfg.get("typing_delay", [0.4, 1.0])
        try:
            low, high = (float(d) for d in delay)
        except (TypeError, ValueError):
            raise ConfigError(f"typing_delay must be a [min, max] pair, got: {delay!r}")
        if low < 0 or high < low:
            raise ConfigError(f"typing_delay must satisfy 0 <= min <= max, got: {delay!r}")
        self.typing_delay = (low, high)

        # ── Audit log path ──
        audit_path_str = self.global_cfg.get(
            "audit_log", "~/.local/share/flowboard/audit.jsonl"
        )
        self.audit_log = Path(audit_path_str).expanduser()
        try:
            self.audit_log.parent.mkdir(parents=True, exist_ok=True)
            self.audit_log.touch(exist_ok=True)
        except PermissionError:
            fallback = Path(__file__).parent.parent / "logs" / "audit.jsonl"
            fallback.parent.mkdir(parents=True, exist_ok=True)
            fallback.touch(exist_ok=True)
            self.audit_log = fallback
            logger.warning(
                f"Cannot write to {audit_path_str}, using {fallback}"
            )

    def is_authorized(self, user_id: int) -> bool:
        """Check if a Telegram user ID is in the allowlist."""
        return str(user_id) in self.allowed_users


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# AuditLogger: structured JSON audit trail
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class AuditLogger:
    """
    Appends structured JSON audit entries to a .jsonl file.
    Every chat message, command, confirmation and cancellation
    is recorded.
    """

    def __init__(self, log_path: Path):
        self.log_path = log_path

    def log(
        self,
        user_id: int,
        username: str,
        bot: str,
        command: str,
        task_id: str,
        status: str,
        **extra,
    ):
        """Append one audit entry. Extra kwargs are merged in."""
        entry = {
            "ts": utc_now(),
            "user_id": user_id,
            "username": username,
            "bot": bot,
            "command": command,
            "task_id": task_id,
            "status": status,
        }
        # Merge extras, filtering None values for cleanliness
        for k, v in extra.items():
            if v is not None:
                entry[k] = v

        try:
            with open(self.log_path, "a") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit log: {e}")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BotBase: base class for FlowBoard bots
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BotBase:
    """
    Base class for FlowBoard bots.

    Subclass contract:
        1. Call super().__init__(config_path, bot_name)
        2. Fill self.commands (name → description) for /help and the menu
        3. Override register_handlers() — call super() then add own handlers
        4. Call self.run() to start the bot

    Provides:
        - User authorization (numeric Telegram ID allowlist)
        - Confirmation flow for destructive commands
        - Help command generated from self.commands
        - Structured audit logging
    """

    def __init__(self, config_path: str, bot_name: str):
        self.cfg = BotConfig(config_path, bot_name)
        self.audit = AuditLogger(self.cfg.audit_log)
        self.commands: Dict[str, str] = {}

        # user_id → {confirm_id, command, run}
        self._pending_confirms: Dict[int, dict] = {}

        logging.basicConfig(
            level=logging.INFO,
            format=f"%(asctime)s [{bot_name}] %(levelname)s: %(message)s",
            handlers=[logging.StreamHandler(sys.stdout)],
        )

    # ──────────────────────────────────────────
    # Auth helpers
    # ──────────────────────────────────────────

    def _is_authorized(self, update: Update) -> bool:
        """Check if the message sender is in the allowlist."""
        return self.cfg.is_authorized(update.effective_user.id)

    async def _reject_unauthorized(self, update: Update):
        """Log and reply to unauthorized access attempts."""
        user = update.effective_user
        logger.warning(
            f"Unauthorized access attempt: user_id={user.id}, "
            f"username={user.username}, name={user.full_name}"
        )
        self.audit.log(
            user_id=user.id,
            username=user.username or "",
            bot=self.cfg.bot_name,
            command="UNAUTHORIZED",
            task_id="",
            status="rejected",
        )
        await update.message.reply_text(
            "⛔ Unauthorized. This incident has been logged."
        )

    def _audit(self, update: Update, command: str, status: str, task_id: str = "", **extra):
        user = update.effective_user
        self.audit.log(
            user_id=user.id,
            username=user.username or "",
            bot=self.cfg.bot_name,
            command=command,
            task_id=task_id or "",
            status=status,
            **extra,
        )

    # ──────────────────────────────────────────
    # Confirmation flow
    # ──────────────────────────────────────────

    def hold_for_confirmation(self, user_id: int, command: str, run: Callable[[], str]) -> str:
        """
        Park a destructive command until the user sends /confirm.

        `run` performs the command and returns the reply text.
        Returns the confirmation id.
        """
        confirm_id = make_task_id()
        self._pending_confirms[user_id] = {
            "confirm_id": confirm_id,
            "command": command,
            "run": run,
        }
        return confirm_id

    def confirm_pending(self, user_id: int) -> Optional[dict]:
        """Pop and run the held command. Returns the pending entry with its reply, or None."""
        pending = self._pending_confirms.pop(user_id, None)
        if pending is None:
            return None
        pending["reply"] = pending["run"]()
        return pending

    def cancel_pending(self, user_id: int) -> Optional[dict]:
        return self._pending_confirms.pop(user_id, None)

    async def ask_confirmation(self, update: Update, command: str, summary: str, run: Callable[[], str]):
        confirm_id = self.hold_for_confirmation(update.effective_user.id, command, run)
        self._audit(update, command, "awaiting_confirmation", confirm_id)
        await update.message.reply_text(
            f"⚠️ <b>Confirmation required</b>\n\n{html.escape(summary)}\n\n"
            "Reply /confirm to proceed or /cancel to abort.",
            parse_mode="HTML",
        )

    async def handle_confirm(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ):
        """Handle /confirm — execute a previously-held command."""
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return

        pending = self.confirm_pending(update.effective_user.id)
        if not pending:
            await update.message.reply_text(
                "ℹ️ Nothing pending confirmation."
            )
            return

        self._audit(update, pending["command"], "confirmed", pending["confirm_id"])
        await update.message.reply_text(reply_html(pending["reply"]), parse_mode="HTML")

    async def handle_cancel(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ):
        """Handle /cancel — discard a confirmation-held command."""
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return

        pending = self.cancel_pending(update.effective_user.id)
        if not pending:
            await update.message.reply_text(
                "ℹ️ Nothing pending to cancel."
            )
            return

        self._audit(update, pending["command"], "cancelled", pending["confirm_id"])
        await update.message.reply_text(
            f"❌ Cancelled <code>/{html.escape(pending['command'])}</code>.",
            parse_mode="HTML",
        )

    # ──────────────────────────────────────────
    # Help handler
    # ──────────────────────────────────────────

    def help_text(self) -> str:
        lines = [f"<b>{html.escape(self.cfg.bot_name)} — Commands</b>\n"]
        for cmd_name, desc in self.commands.items():
            lines.append(f"/{cmd_name}")
            lines.append(f"  ↳ {html.escape(desc)}\n")
        lines.append("/confirm — confirm a pending action")
        lines.append("/cancel — cancel a pending action")
        lines.append("/help — show this message")
        return "\n".join(lines)

    async def handle_help(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ):
        """Handle /help — list commands."""
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return
        await update.message.reply_text(self.help_text(), parse_mode="HTML")

    # ──────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────

    def register_handlers(self, app: Application):
        """
        Register base command handlers.
        Subclasses MUST call super().register_handlers(app)
        before adding their own handlers.
        """
        app.add_handler(CommandHandler("help", self.handle_help))
        app.add_handler(CommandHandler("confirm", self.handle_confirm))
        app.add_handler(CommandHandler("cancel", self.handle_cancel))

    async def set_bot_commands(self, app: Application):
        """Set command suggestions in Telegram UI (autocomplete menu)."""
        commands = [BotCommand(name, desc[:256]) for name, desc in self.commands.items()]
        commands.append(BotCommand("help", "Show available commands"))
        await app.bot.set_my_commands(commands)

    async def post_shutdown(self, app: Application):
        """Hook for subclasses to flush state when polling stops."""
        pass

    def run(self):
        """Build Telegram Application, register handlers, and start polling."""
        app = Application.builder().token(self.cfg.token).build()
        self.register_handlers(app)

        async def post_init(application):
            await self.set_bot_commands(application)

        app.post_init = post_init
        app.post_shutdown = self.post_shutdown
        logger.info(f"Starting {self.cfg.bot_name}…")
        app.run_polling(drop_pending_updates=True)
