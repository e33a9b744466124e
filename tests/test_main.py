import main
from config.settings import settings
from core.price_feed import PriceFeed
from core.rpc import CasperRpcClient
from fakes import MANAGER_HASH


def test_build_resolver_wiring(monkeypatch):
    monkeypatch.setattr(settings, "ORACLE_SECRET_KEY_PATH", None)
    monkeypatch.setattr(settings, "ALLOW_EPHEMERAL_KEY", True)
    monkeypatch.setattr(settings, "OUTCOME_MANAGER_HASH", MANAGER_HASH)
    monkeypatch.setattr(settings, "CASPER_NODE_URL", "http://node.test:7777/rpc")
    monkeypatch.setattr(settings, "CASPER_CHAIN_NAME", "casper-net-1")

    resolver = main.build_resolver()

    assert resolver.signer.configured
    assert resolver.submitter.signer is resolver.signer
    assert resolver.submitter.outcome_manager_hash == MANAGER_HASH
    assert resolver.submitter.chain_name == "casper-net-1"
    assert isinstance(resolver.submitter.rpc, CasperRpcClient)
    assert resolver.submitter.rpc.node_url == "http://node.test:7777/rpc"
    assert isinstance(resolver.price_feed, PriceFeed)


def test_build_resolver_without_key(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "ORACLE_SECRET_KEY_PATH", str(tmp_path / "missing.pem"))
    resolver = main.build_resolver()
    assert not resolver.signer.configured
    assert resolver.signer.get_public_key() is None
