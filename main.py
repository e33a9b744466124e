import structlog
import threading
import asyncio
import nest_asyncio
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config.settings import settings
from core.signer import OutcomeSigner
from core.rpc import CasperRpcClient
from core.submitter import SettlementSubmitter
from core.price_feed import PriceFeed
from core.resolver import Resolver
from core.events import EventListener
from models import init_db

logger = structlog.get_logger()

def build_resolver() -> Resolver:
    signer = OutcomeSigner.initialize(settings.ORACLE_SECRET_KEY_PATH, allow_ephemeral=settings.ALLOW_EPHEMERAL_KEY)
    submitter = SettlementSubmitter(
        signer,
        CasperRpcClient(settings.CASPER_NODE_URL),
        outcome_manager_hash=settings.OUTCOME_MANAGER_HASH,
        chain_name=settings.CASPER_CHAIN_NAME,
    )
    return Resolver(signer, submitter, PriceFeed())

def start_telegram(resolver: Resolver):
    try:
        from core.telegram_dashboard import TelegramDashboard

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        nest_asyncio.apply(loop)

        dashboard = TelegramDashboard(resolver)
        logger.info("Telegram polling started")

        async def send_startup():
            if not settings.TELEGRAM_CHAT_ID:
                return
            try:
                async with dashboard.app.bot as bot:
                    await bot.send_message(
                        chat_id=settings.TELEGRAM_CHAT_ID,
                        text="BackIT oracle started\n"
                             f"Chain: {settings.CASPER_CHAIN_NAME}\n"
                             f"Oracle key: {resolver.signer.account_hex or 'NOT CONFIGURED'}"
                    )
            except Exception as e:
                logger.warning("Cannot send startup message", error=str(e))

        loop.run_until_complete(send_startup())
        # signal handlers can only be installed from the main thread
        dashboard.app.run_polling(stop_signals=None, close_loop=False)

    except Exception as e:
        logger.error("Telegram thread crashed", error=str(e))

def main():
    init_db()
    resolver = build_resolver()
    logger.info("BackIT oracle started", chain=settings.CASPER_CHAIN_NAME,
                oracle_key=resolver.signer.account_hex, outcome_manager=settings.OUTCOME_MANAGER_HASH)

    if settings.EVENT_LISTENER_ENABLED:
        listener = EventListener(settings.CASPER_EVENTS_URL)
        threading.Thread(target=listener.run_forever, name="event-listener", daemon=True).start()

    if settings.TELEGRAM_TOKEN:
        threading.Thread(target=start_telegram, args=(resolver,), daemon=True).start()

    scheduler = BlockingScheduler()
    scheduler.add_job(resolver.check_pending, IntervalTrigger(minutes=settings.STATUS_POLL_MINUTES))
    scheduler.start()

if __name__ == "__main__":
    main()
