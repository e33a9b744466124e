import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.keys import Ed25519KeyPair, Secp256k1KeyPair
from core.signer import OutcomeSigner
from models import Base


@pytest.fixture()
def session_factory():
    """
    In-memory SQLite shared across sessions of one test.
    """
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture()
def ed_key():
    return Ed25519KeyPair.generate()


@pytest.fixture()
def secp_key():
    return Secp256k1KeyPair.generate()


@pytest.fixture()
def signer(ed_key):
    return OutcomeSigner(ed_key)
