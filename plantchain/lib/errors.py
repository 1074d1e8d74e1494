"""
Error kinds for the confidential points client.

Every cryptographic, relayer and ledger failure has its own class so callers
branch on type, never on message text.
"""
from typing import Optional


class PlantChainError(Exception):
    """Base class for all client errors."""


class LoadError(PlantChainError):
    """The cryptosystem runtime could not be fetched, installed or initialized."""


class ProbeError(PlantChainError):
    """An environment probe failed. Never escapes the detector."""


class AccessDenied(PlantChainError):
    """The ACL does not allow public decryption of this handle."""

    def __init__(self, handle: str, contract_address: Optional[str] = None):
        self.handle = handle
        self.contract_address = contract_address
        super().__init__(f"Public decryption not allowed for handle {handle}")


class UserDecryptFailed(PlantChainError):
    """A step of the signed user-decrypt protocol failed."""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"User decryption failed at {step}: {cause}")


class RelayerError(PlantChainError):
    """The relayer answered with an error or an unreadable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class JsonRpcError(PlantChainError):
    """The wallet / node JSON-RPC endpoint returned an error object or bad status."""

    def __init__(self, method: str, message: str, code: Optional[int] = None):
        self.method = method
        self.code = code
        super().__init__(f"{method}: {message}")


class TransactionFailed(PlantChainError):
    """The transaction could not be submitted or confirmed."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{operation} failed{detail}")


class TransactionReverted(TransactionFailed):
    """The transaction was included but reverted (receipt status 0)."""

    def __init__(self, operation: str, tx_hash: str):
        self.tx_hash = tx_hash
        super().__init__(operation)
        self.args = (f"{operation} reverted in transaction {tx_hash}",)


class NetworkMismatch(PlantChainError):
    """No ledger deployment exists for the active chain."""

    def __init__(self, chain_id: int):
        self.chain_id = chain_id
        super().__init__(f"Ledger contract is not deployed on chain {chain_id}")


class InputAlreadyEncrypted(PlantChainError):
    """An encrypted-input builder was asked to encrypt a second time."""


class InputScopeError(PlantChainError):
    """An encrypted input was reused or submitted outside its (contract, user, chain) scope."""


class LedgerReadFailed(PlantChainError):
    """A contract read was rejected (e.g. point logs requested without paying)."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{operation} rejected{detail}")
