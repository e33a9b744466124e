import json
from pathlib import Path
from typing import Optional

import structlog

from core.errors import KeyLoadFailure, SignerUnconfigured
from core.keys import Ed25519KeyPair, KeyPair, load_key_pair

logger = structlog.get_logger()


def outcome_message(call_id: int, outcome: bool, final_price: int, timestamp: int) -> bytes:
    """Canonical outcome attestation: compact JSON, fixed key order, UTF-8."""
    message = json.dumps(
        {
            "callId": call_id,
            "outcome": outcome,
            "finalPrice": str(final_price),
            "timestamp": timestamp,
        },
        separators=(",", ":"),
    )
    return message.encode("utf-8")


class OutcomeSigner:
    """Holds the oracle key pair. Built once at startup and passed around."""

    def __init__(self, key_pair: Optional[KeyPair] = None):
        self.key_pair = key_pair

    @classmethod
    def initialize(cls, secret_key_path: Optional[str] = None, allow_ephemeral: bool = True) -> "OutcomeSigner":
        if secret_key_path:
            if not Path(secret_key_path).exists():
                logger.error("Oracle secret key file not found", path=secret_key_path)
                return cls(None)
            try:
                key_pair = load_key_pair(secret_key_path)
            except (KeyLoadFailure, OSError) as e:
                logger.error("Failed to load oracle key from file", path=secret_key_path, error=str(e))
                return cls(None)
            logger.info("Oracle key loaded", path=secret_key_path, algorithm=key_pair.algorithm,
                        public_key=key_pair.account_hex)
            return cls(key_pair)

        if not allow_ephemeral:
            raise SignerUnconfigured("ORACLE_SECRET_KEY_PATH is not set and ephemeral keys are disabled")

        key_pair = Ed25519KeyPair.generate()
        logger.warning("No secret key provided, using random key")
        logger.info("Dev oracle public key", public_key=key_pair.account_hex)
        return cls(key_pair)

    @property
    def configured(self) -> bool:
        return self.key_pair is not None

    def require_key_pair(self) -> KeyPair:
        if self.key_pair is None:
            raise SignerUnconfigured()
        return self.key_pair

    def get_public_key(self) -> Optional[str]:
        return self.key_pair.public_key_hex if self.key_pair else None

    @property
    def account_hex(self) -> Optional[str]:
        return self.key_pair.account_hex if self.key_pair else None

    def sign_outcome(self, call_id: int, outcome: bool, final_price: int, timestamp: int) -> bytes:
        key_pair = self.require_key_pair()
        signature = key_pair.sign(outcome_message(call_id, outcome, final_price, timestamp))
        logger.info("Signed outcome", call_id=call_id, outcome=outcome, final_price=str(final_price))
        return signature

    def verify_outcome(self, signature: bytes, call_id: int, outcome: bool, final_price: int,
                       timestamp: int) -> bool:
        key_pair = self.require_key_pair()
        return key_pair.verify(signature, outcome_message(call_id, outcome, final_price, timestamp))
