#!/usr/bin/env python3
"""
FlowBoard Chat Bot
------------------
Telegram front end for the FlowBoard assistant. Plain messages go to the
conversation driver ("create task: Fix login bug", "move API docs to done",
"what should I focus on?"); slash commands cover the board-level actions:

  /undo                  — Revert the last board change
  /redo                  — Re-apply the last undone change
  /board                 — Show every task grouped by column
  /save                  — Write the board to disk now
  /export                — Send the board as a CSV file
  /reset                 — Replace the board with sample data (needs /confirm)
  /clear                 — Delete every task (needs /confirm)

Setup:
    export FLOWBOARD_BOT_TOKEN=your_token
    Add your Telegram user id to config/flowboard.yaml under bots: board_bot
"""

import asyncio
import io
import logging
import random
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from telegram import Update
from telegram.constants import ChatAction
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(0, str(Path(__file__).parent.parent))
from bot_base import BotBase, reply_html
from flowboard.driver import ConversationDriver, WELCOME_TEXT
from flowboard.export import export_csv, export_filename
from flowboard.insights import BoardSnapshot, summary_text, task_list_text
from flowboard.persistence import SqliteStorage
from flowboard.store import BoardStore

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).parent.parent / "config" / "flowboard.yaml"


# ── Reply builders (sync, no Telegram objects) ───────────────────────────────

def board_text(store: BoardStore, today: Optional[date] = None) -> str:
    snap = BoardSnapshot.of(store.board, today)
    return summary_text(snap) + "\n\n" + task_list_text(snap)


def undo_text(store: BoardStore) -> str:
    if store.undo():
        return "↩️ Undone. Send /redo to put it back."
    return "ℹ️ Nothing to undo."


def redo_text(store: BoardStore) -> str:
    if store.redo():
        return "↪️ Redone."
    return "ℹ️ Nothing to redo."


def save_text(store: BoardStore) -> str:
    if store.save():
        return "💾 Board saved."
    return "❌ Save failed. Your changes are still in memory; try again shortly."


def reset_text(store: BoardStore) -> str:
    store.reset_board()
    return "🔄 Board reset to the sample tasks. Send /undo to get your old board back."


def clear_text(store: BoardStore) -> str:
    store.clear_board()
    return "🧹 All tasks removed. Send /undo to get them back."


# ── Bot ──────────────────────────────────────────────────────────────────────

class BoardBot(BotBase):
    """
    Single-board chat bot. One BoardStore is shared by every allowed user;
    each message is applied in arrival order.
    """

    def __init__(self, config_path: Path = CONFIG_PATH, store: Optional[BoardStore] = None):
        super().__init__(str(config_path), "board_bot")
        if store is None:
            store = BoardStore(
                SqliteStorage(self.cfg.db_path),
                key=self.cfg.storage_key,
                history_limit=self.cfg.history_limit,
                autosave_delay=self.cfg.autosave_delay,
            )
        self.store = store
        self.driver = ConversationDriver(store)
        self.commands = {
            "undo": "Revert the last board change",
            "redo": "Re-apply the last undone change",
            "board": "Show all tasks by column",
            "save": "Save the board now",
            "export": "Download the board as CSV",
            "reset": "Restore the sample board (asks to confirm)",
            "clear": "Delete every task (asks to confirm)",
        }

    def register_handlers(self, app: Application):
        super().register_handlers(app)
        app.add_handler(CommandHandler("start", self.cmd_start))
        app.add_handler(CommandHandler("undo", self.cmd_undo))
        app.add_handler(CommandHandler("redo", self.cmd_redo))
        app.add_handler(CommandHandler("board", self.cmd_board))
        app.add_handler(CommandHandler("save", self.cmd_save))
        app.add_handler(CommandHandler("export", self.cmd_export))
        app.add_handler(CommandHandler("reset", self.cmd_reset))
        app.add_handler(CommandHandler("clear", self.cmd_clear))
        app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, self.cmd_chat))

    async def post_shutdown(self, app: Application):
        self.store.close()
        logger.info("Board flushed on shutdown")

    async def _reply(self, update: Update, text: str):
        await update.message.reply_text(reply_html(text), parse_mode="HTML")

    async def _simple(self, update: Update, command: str, text: str):
        self._audit(update, command, "ok")
        await self._reply(update, text)

    # ── /start ───────────────────────────────────────────────────────────────

    async def cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return
        await self._reply(update, WELCOME_TEXT)

    # ── chat ─────────────────────────────────────────────────────────────────

    async def cmd_chat(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Run a free-text message through the assistant."""
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return

        text = update.message.text or ""
        if not text.strip():
            return

        await update.effective_chat.send_action(ChatAction.TYPING)
        await asyncio.sleep(random.uniform(*self.cfg.typing_delay))

        response = self.driver.handle(text)
        self._audit(
            update, "chat", "ok", self.driver.last_task_id,
            intent=response.intent.value,
            action=type(response.action).__name__ if response.action else None,
        )
        await self._reply(update, response.text)

    # ── history ──────────────────────────────────────────────────────────────

    async def cmd_undo(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return
        await self._simple(update, "undo", undo_text(self.store))

    async def cmd_redo(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return
        await self._simple(update, "redo", redo_text(self.store))

    # ── board ────────────────────────────────────────────────────────────────

    async def cmd_board(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Show the board grouped by column."""
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return
        await self._simple(update, "board", board_text(self.store))

    async def cmd_save(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return
        await self._simple(update, "save", save_text(self.store))

    async def cmd_export(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Send the board as a CSV attachment."""
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return

        payload = io.BytesIO(export_csv(self.store.board).encode("utf-8"))
        filename = export_filename()
        self._audit(update, "export", "ok", filename=filename)
        await update.message.reply_document(document=payload, filename=filename)

    # ── destructive ──────────────────────────────────────────────────────────

    async def cmd_reset(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return
        await self.ask_confirmation(
            update, "reset",
            "This replaces the whole board with the sample tasks.",
            lambda: reset_text(self.store),
        )

    async def cmd_clear(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_authorized(update):
            await self._reject_unauthorized(update)
            return
        count = len(self.store.board.tasks)
        await self.ask_confirmation(
            update, "clear",
            f"This deletes all {count} tasks.",
            lambda: clear_text(self.store),
        )


if __name__ == "__main__":
    BoardBot().run()
