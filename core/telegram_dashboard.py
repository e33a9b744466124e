import asyncio
from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes, filters
from models import DeployStatus, Settlement, SessionLocal
from sqlalchemy import func, desc
from config.settings import settings
from core.errors import OracleError
import structlog

logger = structlog.get_logger()

SETTLE_USAGE = "Usage: /settle <call_id> <token_address> <pair_id> <target_price>"

def status_counts(db) -> dict:
    rows = db.query(Settlement.status, func.count(Settlement.id)).group_by(Settlement.status).all()
    counts = {s: 0 for s in DeployStatus}
    for status, n in rows:
        counts[status] = n
    return counts

def status_text(public_key, contract, counts) -> str:
    return (
        f"BackIT Oracle\n\n"
        f"Public key: {public_key or 'NOT CONFIGURED'}\n"
        f"OutcomeManager: {contract or 'NOT CONFIGURED'}\n"
        f"Chain: {settings.CASPER_CHAIN_NAME}\n\n"
        f"Pending: {counts.get(DeployStatus.PENDING, 0)} | Unknown: {counts.get(DeployStatus.UNKNOWN, 0)}\n"
        f"Success: {counts.get(DeployStatus.SUCCESS, 0)} | Failed: {counts.get(DeployStatus.FAILED, 0)}"
    )

def pending_text(rows) -> str:
    if not rows:
        return "No pending settlements"
    text = "PENDING SETTLEMENTS\n\n"
    for s in rows:
        text += f"Call #{s.call_id} | {'YES' if s.outcome else 'NO'} | price {s.final_price}\n"
        text += f"   {s.status.value} | {s.deploy_hash[:16]}...\n"
    return text

def parse_settle_args(args):
    if len(args) != 4:
        raise ValueError(SETTLE_USAGE)
    call_id, token_address, pair_id, target = args
    return int(call_id), token_address, pair_id, float(target)

class TelegramDashboard:
    def __init__(self, resolver, session_factory=SessionLocal, token=None, chat_id=None):
        self.resolver = resolver
        self.session_factory = session_factory
        chat_id = chat_id or settings.TELEGRAM_CHAT_ID
        self.chat_id = int(chat_id) if chat_id else None
        if self.chat_id is None:
            logger.warning("TELEGRAM_CHAT_ID not set, dashboard commands are disabled")
        self.app = Application.builder().token(token or settings.TELEGRAM_TOKEN).build()
        self._register_handlers()

    def _register_handlers(self):
        # no chat id: handlers stay registered but authorized() refuses every update
        chat = filters.Chat(chat_id=self.chat_id) if self.chat_id is not None else None
        self.app.add_handler(CommandHandler("status", self.status, filters=chat))
        self.app.add_handler(CommandHandler("pending", self.pending, filters=chat))
        self.app.add_handler(CommandHandler("settle", self.settle, filters=chat))
        self.app.add_handler(CommandHandler("price", self.price, filters=chat))

    def authorized(self, update: Update) -> bool:
        chat = update.effective_chat
        if self.chat_id is not None and chat is not None and chat.id == self.chat_id:
            return True
        logger.warning("Refused command from unauthorized chat", chat_id=chat.id if chat else None)
        return False

    async def status(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self.authorized(update):
            return
        with self.session_factory() as db:
            counts = status_counts(db)
        text = status_text(self.resolver.signer.account_hex, self.resolver.submitter.outcome_manager_hash, counts)
        await update.message.reply_text(text)

    async def pending(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self.authorized(update):
            return
        with self.session_factory() as db:
            rows = db.query(Settlement).filter(
                Settlement.status.in_([DeployStatus.PENDING, DeployStatus.UNKNOWN])
            ).order_by(desc(Settlement.created_at)).limit(15).all()
            text = pending_text(rows)
        await update.message.reply_text(text)

    async def settle(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self.authorized(update):
            return
        try:
            call_id, token_address, pair_id, target = parse_settle_args(context.args or [])
        except ValueError:
            await update.message.reply_text(SETTLE_USAGE)
            return
        try:
            row = await asyncio.to_thread(self.resolver.settle_call, call_id, token_address, pair_id, target)
        except OracleError as e:
            logger.error("Settle command failed", call_id=call_id, error=str(e))
            await update.message.reply_text(f"Settlement failed: {e}")
            return
        if row is None:
            await update.message.reply_text(f"Call #{call_id} not settled (see logs)")
            return
        await update.message.reply_text(
            f"Call #{call_id} submitted: {'YES' if row.outcome else 'NO'} @ {row.final_price}\nDeploy: {row.deploy_hash}"
        )

    async def price(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self.authorized(update):
            return
        if len(context.args or []) != 2:
            await update.message.reply_text("Usage: /price <token_address> <pair_id>")
            return
        quote = await asyncio.to_thread(self.resolver.price_feed.quote, *context.args)
        suffix = "" if quote.fresh else f" (STALE: {quote.reason})"
        await update.message.reply_text(f"Price: ${quote.value}{suffix}")
