import pytest
import requests

from core.deploy import session_args
from core.errors import ContractNotConfigured, RpcError
from core.resolver import Resolver, to_u256_price
from core.submitter import SettlementSubmitter
from models import DeployStatus, Settlement
from fakes import MANAGER_HASH, FakePriceFeed, FakeRpc, failure_info, success_info


def make_resolver(signer, session_factory, rpc=None, feed=None, contract=MANAGER_HASH, **kwargs):
    rpc = rpc or FakeRpc()
    submitter = SettlementSubmitter(signer, rpc, outcome_manager_hash=contract)
    return Resolver(signer, submitter, feed or FakePriceFeed(2.5), session_factory=session_factory,
                    price_decimals=18, **kwargs)


def test_to_u256_price():
    assert to_u256_price(1.5, 18) == 1_500_000_000_000_000_000
    assert to_u256_price(0.1, 2) == 10
    assert to_u256_price(2.999, 0) == 2


def test_settle_call_records_settlement(signer, session_factory):
    rpc = FakeRpc()
    resolver = make_resolver(signer, session_factory, rpc=rpc)

    row = resolver.settle_call(7, "0xtoken", "0xpair", target_price=2.0, timestamp=1700000000)

    assert row.outcome is True
    assert row.final_price == "2500000000000000000"
    assert row.status == DeployStatus.PENDING
    assert row.deploy_hash == rpc.deploys[0].hash.hex()
    assert row.price_fresh
    assert signer.verify_outcome(bytes.fromhex(row.signature), 7, True, 2_500_000_000_000_000_000, 1700000000)
    assert session_args(rpc.deploys[0])["call_id"] == 7

    with session_factory() as db:
        assert db.query(Settlement).count() == 1


def test_settle_call_below_target(signer, session_factory):
    resolver = make_resolver(signer, session_factory, feed=FakePriceFeed(0.8))
    row = resolver.settle_call(1, "t", "p", target_price=1.0)
    assert row.outcome is False
    assert row.final_price == "800000000000000000"


def test_settle_call_only_once(signer, session_factory):
    rpc = FakeRpc()
    resolver = make_resolver(signer, session_factory, rpc=rpc)
    assert resolver.settle_call(1, "t", "p", 1.0) is not None
    assert resolver.settle_call(1, "t", "p", 1.0) is None
    assert len(rpc.deploys) == 1


def test_stale_price_skips_settlement(signer, session_factory):
    rpc = FakeRpc()
    resolver = make_resolver(signer, session_factory, rpc=rpc, feed=FakePriceFeed(1.0, fresh=False),
                             settle_on_stale=False)
    assert resolver.settle_call(1, "t", "p", 0.5) is None
    assert rpc.deploys == []
    with session_factory() as db:
        assert db.query(Settlement).count() == 0


def test_stale_price_allowed(signer, session_factory):
    resolver = make_resolver(signer, session_factory, feed=FakePriceFeed(1.0, fresh=False), settle_on_stale=True)
    row = resolver.settle_call(1, "t", "p", 0.5)
    assert row is not None
    assert row.price_fresh is False


@pytest.mark.parametrize("error", [requests.ConnectionError("down"), RpcError("account_put_deploy", -1, "nope")])
def test_submission_failure_is_not_recorded(signer, session_factory, error):
    resolver = make_resolver(signer, session_factory, rpc=FakeRpc(put_error=error))
    assert resolver.settle_call(1, "t", "p", 1.0) is None
    with session_factory() as db:
        assert db.query(Settlement).count() == 0


def test_missing_contract_raises(signer, session_factory):
    resolver = make_resolver(signer, session_factory, contract=None)
    with pytest.raises(ContractNotConfigured):
        resolver.settle_call(1, "t", "p", 1.0)


def test_check_pending_updates_statuses(signer, session_factory):
    rpc = FakeRpc()
    resolver = make_resolver(signer, session_factory, rpc=rpc)
    a = resolver.settle_call(1, "t", "p", 1.0)
    b = resolver.settle_call(2, "t", "p", 1.0)
    c = resolver.settle_call(3, "t", "p", 1.0)
    rpc.infos = {a.deploy_hash: success_info(), b.deploy_hash: failure_info()}

    changed = resolver.check_pending()

    assert changed == {1: DeployStatus.SUCCESS, 2: DeployStatus.FAILED}
    with session_factory() as db:
        statuses = {s.call_id: s.status for s in db.query(Settlement).all()}
    assert statuses == {1: DeployStatus.SUCCESS, 2: DeployStatus.FAILED, 3: DeployStatus.PENDING}

    rpc.queried.clear()
    resolver.check_pending()
    assert rpc.queried == [c.deploy_hash]


def test_check_pending_keeps_polling_unknown(signer, session_factory):
    rpc = FakeRpc()
    resolver = make_resolver(signer, session_factory, rpc=rpc)
    row = resolver.settle_call(1, "t", "p", 1.0)

    rpc.error = requests.ConnectionError("down")
    assert resolver.check_pending() == {1: DeployStatus.UNKNOWN}

    rpc.error = None
    rpc.infos = {row.deploy_hash: success_info()}
    assert resolver.check_pending() == {1: DeployStatus.SUCCESS}
