"""
Points session: the displayed balance handle and cleartext for one target.

The target is (chain id, wallet address). Every refresh / decrypt / mutation
captures a ticket when it starts; if the wallet account or chain changed (or
the session was closed) by the time the result arrives, the result is
dropped instead of overwriting the newer state.

Decryption policy: decrypt_public() first. An AccessDenied becomes a
DecryptResult with status ACCESS_DENIED and the caller decides whether to
ask the user for a signature via decrypt_user().
"""
import logging
from typing import Optional

from ..lib.errors import AccessDenied, RelayerError, UserDecryptFailed
from ..lib.staleness import StaleResultGuard, Ticket
from .decryption import DecryptMethod, DecryptResult, DecryptStatus
from .points import PointsLedgerClient

logger = logging.getLogger("session")

# Balance of an address that never received points
ZERO_HANDLE = "0x" + "00" * 32


class PointsSession:

    def __init__(self, client: PointsLedgerClient):
        self.client = client
        self.guard = StaleResultGuard()
        self.handle: Optional[str] = None
        self.value: Optional[int] = None

    def _clear(self) -> None:
        self.handle = None
        self.value = None

    async def _ticket(self) -> Ticket:
        address = await self.client.transport.get_address()
        target = (self.client.chain_id, address.lower())
        if target != self.guard.target:
            self.guard.retarget(target)
            self._clear()
        return self.guard.begin()

    def switch_chain(self, chain_id: int) -> None:
        """Follow a wallet chain switch. In-flight results become stale."""
        previous = self.client.chain_id
        self.client.switch_chain(chain_id)
        self.client.instances.invalidate(previous)
        self.guard.retarget((chain_id, None))
        self._clear()

    def close(self) -> None:
        self.guard.close()
        self._clear()

    def _apply_handle(self, ticket: Ticket, handle: str) -> Optional[str]:
        if not self.guard.accept(ticket, handle):
            return None
        if handle != self.handle:
            self.value = None
        self.handle = handle
        return handle

    def _apply_result(self, ticket: Ticket, result: DecryptResult) -> DecryptResult:
        if self.guard.accept(ticket, result) and result.ok and result.handle == self.handle:
            self.value = result.value
        return result

    async def refresh(self) -> Optional[str]:
        """Re-read the balance handle. Returns None if the result went stale."""
        ticket = await self._ticket()
        handle = await self.client.refresh_handle()
        return self._apply_handle(ticket, handle)

    async def _handle_for(self, ticket: Ticket) -> str:
        if self.handle is None:
            handle = await self.client.refresh_handle()
            self._apply_handle(ticket, handle)
            return handle
        return self.handle

    async def decrypt_public(self) -> DecryptResult:
        ticket = await self._ticket()
        handle = await self._handle_for(ticket)
        if handle == ZERO_HANDLE:
            return self._apply_result(ticket, DecryptResult(DecryptStatus.DECRYPTED, handle, DecryptMethod.PUBLIC, 0))

        try:
            value = await self.client.decrypt_public(handle)
        except AccessDenied as e:
            result = DecryptResult(DecryptStatus.ACCESS_DENIED, handle, DecryptMethod.PUBLIC, error=str(e))
        except RelayerError as e:
            logger.error(f"Public decryption failed: {e}")
            result = DecryptResult(DecryptStatus.FAILED, handle, DecryptMethod.PUBLIC, error=str(e))
        else:
            result = DecryptResult(DecryptStatus.DECRYPTED, handle, DecryptMethod.PUBLIC, value)
        return self._apply_result(ticket, result)

    async def decrypt_user(self) -> DecryptResult:
        """Signed decryption. Prompts the wallet for a typed-data signature."""
        ticket = await self._ticket()
        handle = await self._handle_for(ticket)
        if handle == ZERO_HANDLE:
            return self._apply_result(ticket, DecryptResult(DecryptStatus.DECRYPTED, handle, DecryptMethod.USER, 0))

        try:
            value = await self.client.decrypt_user(handle)
        except UserDecryptFailed as e:
            result = DecryptResult(DecryptStatus.FAILED, handle, DecryptMethod.USER, error=str(e))
        else:
            result = DecryptResult(DecryptStatus.DECRYPTED, handle, DecryptMethod.USER, value)
        return self._apply_result(ticket, result)

    async def add_point(self) -> Optional[str]:
        ticket = await self._ticket()
        handle = await self.client.add_point()
        return self._apply_handle(ticket, handle)

    async def tip_point(self, plant_id: int) -> Optional[str]:
        ticket = await self._ticket()
        handle = await self.client.tip_point(plant_id)
        return self._apply_handle(ticket, handle)
