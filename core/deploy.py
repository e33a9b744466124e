"""
Deploy construction for the BackIT contracts.

Serialization, hashing and approvals are pycspr's. This module owns what is
BackIT-specific: the entry points, their argument maps and the gas surcharge
added on top of each stake. Builders return unsigned deploys; `sign_deploy`
returns a copy with one more approval.
"""
import dataclasses
import math
from decimal import Decimal
from typing import Any, Dict, Optional, Union

import pycspr
from pycspr import KeyAlgorithm, PublicKey
from pycspr.types.cl import CLV_Bool, CLV_String, CLV_U64, CLV_U256, CLV_Value
from pycspr.types.node.rpc import Deploy, DeployOfStoredContractByHash

from config.settings import settings
from core.errors import ContractNotConfigured
from core.keys import KeyPair

MOTES_PER_CSPR = 1_000_000_000

GAS_PRICE = 1
DEFAULT_TTL = "30m"

CREATE_CALL_GAS = 5 * MOTES_PER_CSPR
STAKE_ON_CALL_GAS = 3 * MOTES_PER_CSPR
WITHDRAW_PAYOUT_GAS = 3 * MOTES_PER_CSPR
SUBMIT_OUTCOME_GAS = 5 * MOTES_PER_CSPR

CONTRACT_HASH_PREFIX = "hash-"

Sender = Union[KeyPair, PublicKey, str, bytes]


def cspr_to_motes(cspr: Union[float, str, Decimal]) -> int:
    return int(math.floor(Decimal(str(cspr)) * MOTES_PER_CSPR))


def motes_to_cspr(motes: int) -> float:
    return motes / MOTES_PER_CSPR


def parse_contract_hash(contract_hash: Optional[str], contract: str = "contract") -> bytes:
    if not contract_hash:
        raise ContractNotConfigured(contract)
    raw = contract_hash
    if raw.startswith(CONTRACT_HASH_PREFIX):
        raw = raw[len(CONTRACT_HASH_PREFIX):]
    value = bytes.fromhex(raw)
    if len(value) != 32:
        raise ValueError(f"{contract} hash must be 32 bytes, got {len(value)}")
    return value


def public_key_of(sender: Sender) -> PublicKey:
    """Accepts a key pair, a pycspr public key, a raw Ed25519 key or a tagged account key."""
    if isinstance(sender, KeyPair):
        return sender.public_key
    if isinstance(sender, PublicKey):
        return sender
    raw = bytes.fromhex(sender) if isinstance(sender, str) else bytes(sender)
    if len(raw) == 32:
        return pycspr.parse_public_key_bytes(raw, KeyAlgorithm.ED25519)
    if len(raw) == 33 and raw[0] == KeyAlgorithm.ED25519.value:
        return pycspr.parse_public_key_bytes(raw[1:], KeyAlgorithm.ED25519)
    if len(raw) == 34 and raw[0] == KeyAlgorithm.SECP256K1.value:
        return pycspr.parse_public_key_bytes(raw[1:], KeyAlgorithm.SECP256K1)
    raise ValueError(f"unrecognized public key of {len(raw)} bytes")


def session_args(deploy: Deploy) -> Dict[str, Any]:
    return {arg.name: arg.value.value for arg in deploy.session.arguments}


def payment_amount(deploy: Deploy) -> int:
    return {arg.name: arg.value.value for arg in deploy.payment.arguments}["amount"]


def make_deploy(
    sender: Sender,
    contract_hash: bytes,
    entry_point: str,
    args: Dict[str, CLV_Value],
    amount: int,
    chain_name: Optional[str] = None,
    timestamp: Optional[float] = None,
    ttl: str = DEFAULT_TTL,
) -> Deploy:
    """`timestamp` is in seconds since epoch (pycspr keeps millisecond precision)."""
    params = pycspr.create_deploy_parameters(
        account=public_key_of(sender),
        chain_name=chain_name or settings.CASPER_CHAIN_NAME,
        gas_price=GAS_PRICE,
        timestamp=timestamp,
        ttl=ttl,
    )
    session = DeployOfStoredContractByHash(
        args=pycspr.create_deploy_arguments(args),
        entry_point=entry_point,
        hash=contract_hash,
    )
    return pycspr.create_deploy(params, pycspr.create_standard_payment(amount), session)


def build_create_call_deploy(sender: Sender, end_ts: int, token_address: str, pair_id: str, ipfs_cid: str,
                             stake_amount: int, contract_hash: Optional[str] = None, **header) -> Deploy:
    args = {
        "end_ts": CLV_U64(end_ts),
        "token_address": CLV_String(token_address),
        "pair_id": CLV_String(pair_id),
        "ipfs_cid": CLV_String(ipfs_cid),
    }
    registry = parse_contract_hash(contract_hash or settings.CALL_REGISTRY_HASH, "CallRegistry")
    return make_deploy(sender, registry, "create_call", args, stake_amount + CREATE_CALL_GAS, **header)


def build_stake_on_call_deploy(sender: Sender, call_id: int, position: bool, stake_amount: int,
                               contract_hash: Optional[str] = None, **header) -> Deploy:
    """position: True = YES, False = NO."""
    args = {
        "call_id": CLV_U64(call_id),
        "position": CLV_Bool(position),
    }
    registry = parse_contract_hash(contract_hash or settings.CALL_REGISTRY_HASH, "CallRegistry")
    return make_deploy(sender, registry, "stake_on_call", args, stake_amount + STAKE_ON_CALL_GAS, **header)


def build_withdraw_payout_deploy(sender: Sender, call_id: int, contract_hash: Optional[str] = None,
                                 **header) -> Deploy:
    args = {"call_id": CLV_U64(call_id)}
    manager = parse_contract_hash(contract_hash or settings.OUTCOME_MANAGER_HASH, "OutcomeManager")
    return make_deploy(sender, manager, "withdraw_payout", args, WITHDRAW_PAYOUT_GAS, **header)


def build_submit_outcome_deploy(sender: Sender, call_id: int, outcome: bool, final_price: int,
                                contract_hash: Optional[str] = None, **header) -> Deploy:
    args = {
        "call_id": CLV_U64(call_id),
        "outcome": CLV_Bool(outcome),
        "final_price": CLV_U256(final_price),
    }
    manager = parse_contract_hash(contract_hash or settings.OUTCOME_MANAGER_HASH, "OutcomeManager")
    return make_deploy(sender, manager, "submit_outcome", args, SUBMIT_OUTCOME_GAS, **header)


def sign_deploy(deploy: Deploy, key_pair: KeyPair) -> Deploy:
    approval = pycspr.create_deploy_approval(deploy, key_pair.private_key)
    return dataclasses.replace(deploy, approvals=deploy.approvals + [approval])
