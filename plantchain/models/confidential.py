from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from ..lib.errors import InputScopeError
from .network import NetworkContext

SECONDS_PER_DAY = 86400


class CryptosystemMode(str, Enum):
    MOCK = "mock"
    RELAY = "relay"


class DecryptionKeypair(BaseModel):
    """Ephemeral keypair for one user-decrypt attempt. Never reused."""
    public_key: str
    private_key: str = Field(..., repr=False)
    issued_at: int
    validity_days: int = 365

    @property
    def expires_at(self) -> int:
        return self.issued_at + self.validity_days * SECONDS_PER_DAY


class EIP712AuthorizationMessage(BaseModel):
    """
    Typed structured-data request authorizing a user decryption.

    Must be signed verbatim: the relayer rebuilds the same encoding and any
    changed field produces a different digest.
    """
    domain: Dict[str, Any]
    types: Dict[str, List[Dict[str, str]]]
    primary_type: str
    message: Dict[str, Any]

    def signing_types(self) -> Dict[str, List[Dict[str, str]]]:
        """Types without EIP712Domain, the shape wallets expect for sign_typed_data."""
        return {self.primary_type: self.types[self.primary_type]}


class EncryptedInput(BaseModel):
    """
    Ciphertext handle + proof of well-formedness for exactly one contract call.

    Scoped to (contract_address, user_address, chain_id) and consumed on
    submission; it is never persisted or replayed.
    """
    handle: str
    proof: str
    contract_address: str
    user_address: str
    chain_id: int

    _consumed: bool = PrivateAttr(default=False)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self, contract_address: str, user_address: str, chain_id: int) -> None:
        """Mark the input as used by a call; reject reuse and out-of-scope use."""
        if self._consumed:
            raise InputScopeError(f"Encrypted input {self.handle} was already submitted")
        if contract_address.lower() != self.contract_address.lower():
            raise InputScopeError(
                f"Encrypted input bound to contract {self.contract_address}, not {contract_address}"
            )
        if user_address.lower() != self.user_address.lower():
            raise InputScopeError(
                f"Encrypted input bound to user {self.user_address}, not {user_address}"
            )
        if chain_id != self.chain_id:
            raise InputScopeError(
                f"Encrypted input bound to chain {self.chain_id}, not {chain_id}"
            )
        self._consumed = True


class ConfidentialInstance(BaseModel):
    """A cryptosystem instance bound to one network and wallet transport."""
    network: NetworkContext
    mode: CryptosystemMode
    initialized: bool = False
    cryptosystem: Any = Field(..., repr=False)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def create_encrypted_input(self, contract_address: str, user_address: str):
        from ..services.encrypted_input import EncryptedInputBuilder

        raw = self.cryptosystem.create_encrypted_input(contract_address, user_address)
        return EncryptedInputBuilder(
            raw,
            contract_address=contract_address,
            user_address=user_address,
            chain_id=self.network.chain_id,
        )
