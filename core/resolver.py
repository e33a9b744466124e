import time
from decimal import Decimal
from typing import Dict, Optional

import requests
import structlog

from config.settings import settings
from core.errors import RpcError
from core.price_feed import PriceFeed
from core.signer import OutcomeSigner
from core.submitter import SettlementSubmitter
from models import DeployStatus, SessionLocal, Settlement

logger = structlog.get_logger()


def to_u256_price(price: float, decimals: int) -> int:
    """Scale a float price into the contract's fixed-point integer, truncating."""
    return int(Decimal(str(price)) * (10 ** decimals))


class Resolver:
    def __init__(self, signer: OutcomeSigner, submitter: SettlementSubmitter, price_feed: Optional[PriceFeed] = None,
                 session_factory=SessionLocal, price_decimals: Optional[int] = None,
                 settle_on_stale: Optional[bool] = None):
        self.signer = signer
        self.submitter = submitter
        self.price_feed = price_feed or PriceFeed()
        self.session_factory = session_factory
        self.price_decimals = settings.PRICE_DECIMALS if price_decimals is None else price_decimals
        self.settle_on_stale = settings.SETTLE_ON_STALE_PRICE if settle_on_stale is None else settle_on_stale

    def settle_call(self, call_id: int, token_address: str, pair_id: str, target_price: float,
                    timestamp: Optional[int] = None) -> Optional[Settlement]:
        """Resolve a call against its target price and submit the outcome.

        Returns the recorded settlement, or None when the call was skipped
        (already settled, stale price, submission error). Missing key or
        contract configuration raises.
        """
        with self.session_factory() as db:
            if db.query(Settlement).filter(Settlement.call_id == call_id).first():
                logger.info("Call already settled", call_id=call_id)
                return None

        quote = self.price_feed.quote(token_address, pair_id)
        if not quote.fresh and not self.settle_on_stale:
            logger.warning("Stale price, settlement skipped", call_id=call_id, reason=quote.reason)
            return None

        outcome = quote.value >= target_price
        final_price = to_u256_price(quote.value, self.price_decimals)
        timestamp = timestamp if timestamp is not None else int(time.time())

        signature = self.signer.sign_outcome(call_id, outcome, final_price, timestamp)
        try:
            deploy_hash = self.submitter.submit_outcome(call_id, outcome, final_price, timestamp)
        except (requests.RequestException, RpcError) as e:
            logger.error("Outcome submission failed", call_id=call_id, error=str(e))
            return None

        with self.session_factory() as db:
            row = Settlement(
                call_id=call_id,
                token_address=token_address,
                pair_id=pair_id,
                outcome=outcome,
                final_price=str(final_price),
                price_fresh=quote.fresh,
                outcome_timestamp=timestamp,
                signature=signature.hex(),
                deploy_hash=deploy_hash,
                status=DeployStatus.PENDING,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            db.expunge(row)

        logger.info("Call settlement submitted", call_id=call_id, outcome=outcome,
                    final_price=str(final_price), deploy_hash=deploy_hash)
        return row

    def check_pending(self) -> Dict[int, DeployStatus]:
        """Re-poll every unfinished settlement. Returns call_id -> new status for changed rows."""
        changed = {}
        with self.session_factory() as db:
            open_rows = db.query(Settlement).filter(
                Settlement.status.in_([DeployStatus.PENDING, DeployStatus.UNKNOWN])
            ).all()
            for s in open_rows:
                status = self.submitter.get_deploy_status(s.deploy_hash)
                if status == s.status:
                    continue
                s.status = status
                changed[s.call_id] = status
                if status.terminal:
                    logger.info("Settlement finalized", call_id=s.call_id, status=status.value,
                                deploy_hash=s.deploy_hash)
            db.commit()
        return changed
