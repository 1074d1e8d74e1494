"""
Single-shot encrypted input builder.

    builder = instance.create_encrypted_input(contract, user)
    enc = await builder.add_value(1).encrypt()

One builder -> one 32-bit value -> one EncryptedInput (one handle, one proof).
"""
import logging
from typing import Any

from ..lib.errors import InputAlreadyEncrypted, RelayerError
from ..lib.runtime import RawEncryptedInput
from ..models.confidential import EncryptedInput

logger = logging.getLogger("encrypted_input")

MAX_UINT32 = 2**32 - 1


def _as_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    value = str(value)
    return value if value.startswith("0x") else f"0x{value}"


class EncryptedInputBuilder:

    def __init__(self, raw: RawEncryptedInput, contract_address: str, user_address: str, chain_id: int):
        self._raw = raw
        self.contract_address = contract_address
        self.user_address = user_address
        self.chain_id = chain_id
        self._value = None
        self._encrypted = False

    @property
    def encrypted(self) -> bool:
        return self._encrypted

    def add_value(self, value: int) -> "EncryptedInputBuilder":
        if self._encrypted:
            raise InputAlreadyEncrypted("Builder already produced an encrypted input")
        if self._value is not None:
            raise ValueError("An encrypted input carries exactly one value")
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_UINT32:
            raise ValueError(f"Value must be an unsigned 32-bit integer, got {value!r}")
        self._raw.add32(value)
        self._value = value
        return self

    async def encrypt(self) -> EncryptedInput:
        if self._encrypted:
            raise InputAlreadyEncrypted("Builder already produced an encrypted input")
        if self._value is None:
            raise ValueError("No value added to the encrypted input")

        # Marked before awaiting so a concurrent second call cannot slip through
        self._encrypted = True
        result = await self._raw.encrypt()

        handles = result.get("handles") or []
        if len(handles) != 1:
            raise RelayerError(f"Expected exactly one ciphertext handle, got {len(handles)}")
        if not result.get("inputProof"):
            raise RelayerError("Encrypted input came back without an input proof")

        encrypted = EncryptedInput(
            handle=_as_hex(handles[0]),
            proof=_as_hex(result["inputProof"]),
            contract_address=self.contract_address,
            user_address=self.user_address,
            chain_id=self.chain_id,
        )
        logger.info(f"Encrypted input {encrypted.handle} for {self.contract_address}")
        return encrypted
