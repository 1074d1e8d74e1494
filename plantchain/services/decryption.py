"""
Decryption coordinator.

Two strategies, never chained automatically:
- public_decrypt: no wallet interaction; raises AccessDenied when the ACL
  keeps the value private.
- user_decrypt: fresh keypair -> EIP-712 authorization -> typed-data
  signature (wallet prompt) -> relayer re-encryption -> lookup by handle.

Callers try public_decrypt first and offer user_decrypt as an explicit,
separate action on AccessDenied.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..config import USER_DECRYPT_VALIDITY_DAYS
from ..lib.errors import AccessDenied, UserDecryptFailed
from ..lib.transport import WalletTransport
from ..models.confidential import ConfidentialInstance, DecryptionKeypair

logger = logging.getLogger("decryption")


class DecryptStatus(str, Enum):
    DECRYPTED = "decrypted"
    ACCESS_DENIED = "access_denied"
    FAILED = "failed"


class DecryptMethod(str, Enum):
    PUBLIC = "public"
    USER = "user"


@dataclass
class DecryptResult:
    status: DecryptStatus
    handle: str
    method: DecryptMethod
    value: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == DecryptStatus.DECRYPTED

    def to_dict(self) -> dict:
        d = {"status": self.status.value, "handle": self.handle, "method": self.method.value}
        if self.value is not None:
            d["value"] = self.value
        if self.error:
            d["error"] = self.error
        return d


class DecryptionCoordinator:

    def __init__(
        self,
        instance: ConfidentialInstance,
        validity_days: int = USER_DECRYPT_VALIDITY_DAYS,
        clock: Callable[[], float] = time.time,
    ):
        self.instance = instance
        self.validity_days = validity_days
        self._clock = clock

    @property
    def cryptosystem(self):
        return self.instance.cryptosystem

    async def public_decrypt(self, contract_address: str, handle: str) -> int:
        """
        Decrypt a publicly decryptable handle.

        Raises:
            AccessDenied: the ACL does not mark the value public. Not retried.
        """
        try:
            value = await self.cryptosystem.decrypt_public(contract_address, handle)
        except AccessDenied:
            logger.info(f"Public decryption denied for {handle}")
            raise
        return int(value)

    def new_keypair(self) -> DecryptionKeypair:
        raw = self.cryptosystem.generate_keypair()
        return DecryptionKeypair(
            public_key=raw["publicKey"],
            private_key=raw["privateKey"],
            issued_at=int(self._clock()),
            validity_days=self.validity_days,
        )

    async def user_decrypt(self, handle: str, contract_address: str, signer: WalletTransport) -> int:
        """
        Decrypt `handle` for the signer's address. Prompts for a typed-data signature.

        Raises:
            UserDecryptFailed: any step failed; `cause` holds the original error.
        """
        step = "keypair"
        try:
            keypair = self.new_keypair()

            step = "authorization"
            auth = self.cryptosystem.create_eip712(
                keypair.public_key,
                [contract_address],
                keypair.issued_at,
                keypair.validity_days,
            )

            step = "signature"
            signature = await signer.sign_typed_data(auth.domain, auth.signing_types(), auth.message)
            user_address = await signer.get_address()

            step = "relayer"
            results = await self.cryptosystem.user_decrypt(
                [{"handle": handle, "contractAddress": contract_address}],
                keypair.private_key,
                keypair.public_key,
                signature,
                [contract_address],
                user_address,
                keypair.issued_at,
                keypair.validity_days,
            )

            step = "lookup"
            value = results[handle]

        except Exception as e:
            logger.error(f"User decryption of {handle} failed at {step}: {e}")
            raise UserDecryptFailed(step, e) from e

        return int(value)
