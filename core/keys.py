"""
Casper key pairs (Ed25519 and Secp256k1) on top of pycspr.

Casper prefixes public keys and signatures with an algorithm tag byte:
01 for Ed25519, 02 for Secp256k1. pycspr's `PrivateKey.account_key` is that
tagged form.
"""
import abc
from pathlib import Path
from typing import Dict, Type, Union

import ecdsa
import pycspr
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from pycspr import KeyAlgorithm, PrivateKey, PublicKey

from core.errors import KeyLoadFailure


class KeyPair(abc.ABC):
    algo: KeyAlgorithm

    def __init__(self, private_key: PrivateKey):
        if private_key.algo != self.algo:
            raise KeyLoadFailure(f"expected a {self.algorithm} key, got {private_key.algo.name.lower()}")
        self.private_key = private_key

    @classmethod
    def generate(cls) -> "KeyPair":
        pvk, _ = pycspr.get_key_pair(cls.algo)
        return cls(pycspr.parse_private_key_bytes(pvk, cls.algo))

    @abc.abstractmethod
    def sign(self, message: bytes) -> bytes:
        """Raw signature, without the algorithm tag."""

    @abc.abstractmethod
    def verify(self, signature: bytes, message: bytes) -> bool:
        ...

    @property
    def algorithm(self) -> str:
        return self.algo.name.lower()

    @property
    def tag(self) -> int:
        return self.algo.value

    @property
    def public_key(self) -> PublicKey:
        return self.private_key.to_public_key()

    @property
    def public_key_bytes(self) -> bytes:
        return self.private_key.pbk

    @property
    def public_key_hex(self) -> str:
        return self.public_key_bytes.hex()

    @property
    def account_bytes(self) -> bytes:
        return self.private_key.account_key

    @property
    def account_hex(self) -> str:
        return self.account_bytes.hex()

    def to_pem(self) -> bytes:
        return pycspr.get_pvk_pem_from_bytes(self.private_key.pvk, self.algo)


class Ed25519KeyPair(KeyPair):
    algo = KeyAlgorithm.ED25519

    def sign(self, message: bytes) -> bytes:
        return pycspr.get_signature(message, self.private_key.pvk, self.algo)

    def verify(self, signature: bytes, message: bytes) -> bool:
        if len(signature) != 64:
            return False
        return pycspr.is_signature_valid(message, signature, self.public_key_bytes, self.algo)


class Secp256k1KeyPair(KeyPair):
    """Signatures are compact r||s over SHA-256 of the message."""

    algo = KeyAlgorithm.SECP256K1

    def sign(self, message: bytes) -> bytes:
        return pycspr.get_signature(message, self.private_key.pvk, self.algo)

    def verify(self, signature: bytes, message: bytes) -> bool:
        # ecdsa raises on a bad signature instead of returning False
        try:
            return pycspr.is_signature_valid(message, signature, self.public_key_bytes, self.algo)
        except ecdsa.BadSignatureError:
            return False


KEY_PAIR_TYPES: Dict[KeyAlgorithm, Type[KeyPair]] = {
    KeyAlgorithm.ED25519: Ed25519KeyPair,
    KeyAlgorithm.SECP256K1: Secp256k1KeyPair,
}


def detect_algorithm(pem: bytes) -> KeyAlgorithm:
    """Tell Ed25519 from Secp256k1 before handing the file to pycspr.

    pycspr's Ed25519 PEM reader slices raw bytes and would accept a Secp256k1
    file as a (wrong) Ed25519 key.
    """
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError) as e:
        raise KeyLoadFailure(f"unreadable PEM: {e}") from e
    except UnsupportedAlgorithm as e:
        raise KeyLoadFailure(f"unsupported key: {e}") from e

    if isinstance(key, ed25519.Ed25519PrivateKey):
        return KeyAlgorithm.ED25519
    if isinstance(key, ec.EllipticCurvePrivateKey) and isinstance(key.curve, ec.SECP256K1):
        return KeyAlgorithm.SECP256K1
    raise KeyLoadFailure(f"not an Ed25519 or Secp256k1 key: {type(key).__name__}")


def load_key_pair(path: Union[str, Path]) -> KeyPair:
    algo = detect_algorithm(Path(path).read_bytes())
    try:
        private_key = pycspr.parse_private_key(str(path), algo)
    except (ValueError, IndexError) as e:
        raise KeyLoadFailure(f"{path}: {e}") from e
    return KEY_PAIR_TYPES[algo](private_key)
