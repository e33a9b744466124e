class OracleError(Exception):
    """Base class for oracle service errors."""


class SignerUnconfigured(OracleError):
    def __init__(self, message: str = "Oracle signer not configured"):
        super().__init__(message)


class ContractNotConfigured(OracleError):
    def __init__(self, contract: str = "OutcomeManager"):
        self.contract = contract
        super().__init__(f"{contract} contract hash not configured")


class KeyLoadFailure(OracleError):
    """Secret key file exists but is not a usable Ed25519 or Secp256k1 key."""


class RpcError(OracleError):
    def __init__(self, method: str, code, message: str):
        self.method = method
        self.code = code
        super().__init__(f"{method} failed ({code}): {message}")
