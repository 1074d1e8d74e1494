"""
Points ledger client.

Encrypted eco-point mutations:
1. resolve the deployment (NetworkMismatch before any network call)
2. encrypt the constant 1 scoped to (ledger, wallet address)
3. consume the input, submit, wait for inclusion
4. read the new balance handle back from the contract

Balances are never updated locally; the contract owns them.
"""
import logging
from typing import List, Optional

from ..config import POINT_LOG_FEE_WEI
from ..lib.errors import LedgerReadFailed
from ..lib.transport import WalletTransport, get_chain_id
from ..models.confidential import ConfidentialInstance, EncryptedInput
from ..models.ledger import PointsLedgerEntry
from ..models.network import NetworkContext
from .decryption import DecryptionCoordinator
from .deployments import DeploymentRegistry
from .instance import ConfidentialInstanceFactory, default_factory
from .ledger import LedgerBinding, LedgerFactory, Web3LedgerContract

logger = logging.getLogger("points")

POINT_INCREMENT = 1


class PointsLedgerClient(LedgerBinding):

    def __init__(
        self,
        transport: WalletTransport,
        chain_id: int,
        deployments: DeploymentRegistry,
        instances: Optional[ConfidentialInstanceFactory] = None,
        ledger_factory: LedgerFactory = Web3LedgerContract.for_wallet,
        point_log_fee_wei: int = POINT_LOG_FEE_WEI,
    ):
        super().__init__(transport, chain_id, deployments, ledger_factory)
        self.instances = instances or default_factory
        self.point_log_fee_wei = point_log_fee_wei

    @classmethod
    async def connect(cls, transport: WalletTransport, deployments: DeploymentRegistry, **kwargs) -> "PointsLedgerClient":
        """Ask the wallet for its chain id and bind to it."""
        chain_id = await get_chain_id(transport)
        return cls(transport, chain_id, deployments, **kwargs)

    async def instance(self, network: Optional[NetworkContext] = None) -> ConfidentialInstance:
        network = network or self.network()
        return await self.instances.create_instance(self.transport, network)

    async def coordinator(self, network: Optional[NetworkContext] = None) -> DecryptionCoordinator:
        return DecryptionCoordinator(await self.instance(network))

    async def encrypt_increment(self, network: Optional[NetworkContext] = None) -> EncryptedInput:
        """Encrypt the constant point increment for (ledger, wallet address)."""
        network = network or self.network()
        user = await self.transport.get_address()
        instance = await self.instance(network)
        builder = instance.create_encrypted_input(network.contract_address, user)
        return await builder.add_value(POINT_INCREMENT).encrypt()

    async def _prepare(self, network: NetworkContext, encrypted: Optional[EncryptedInput]) -> EncryptedInput:
        user = await self.transport.get_address()
        if encrypted is None:
            encrypted = await self.encrypt_increment(network)
        encrypted.consume(network.contract_address, user, network.chain_id)
        return encrypted

    async def add_point(self, encrypted: Optional[EncryptedInput] = None) -> str:
        """Add one encrypted point to the wallet's balance. Returns the new handle."""
        network = self.network()
        ledger = self.ledger(network)
        encrypted = await self._prepare(network, encrypted)

        pending = await ledger.add_eco_points(encrypted.handle, encrypted.proof)
        await pending.wait()
        logger.info(f"Eco point added: {pending.tx_hash}")
        return await self.refresh_handle()

    async def tip_point(self, plant_id: int, encrypted: Optional[EncryptedInput] = None) -> str:
        """Tip one encrypted point to a plant's owner. Returns the caller's balance handle."""
        network = self.network()
        ledger = self.ledger(network)
        encrypted = await self._prepare(network, encrypted)

        pending = await ledger.tip_eco_point_one(plant_id, encrypted.handle, encrypted.proof)
        await pending.wait()
        logger.info(f"Plant {plant_id} tipped: {pending.tx_hash}")
        return await self.refresh_handle()

    async def refresh_handle(self, address: Optional[str] = None) -> str:
        """Read the current balance handle. Pure read, no state change."""
        network = self.network()
        ledger = self.ledger(network)
        address = address or await self.transport.get_address()
        return await ledger.get_eco_points(address)

    async def get_point_logs(self, plant_id: int) -> List[PointsLedgerEntry]:
        """Read a plant's point log. Rejected for an unpaid non-owner."""
        network = self.network()
        ledger = self.ledger(network)
        raw = await ledger.get_plant_point_logs(plant_id)
        return [PointsLedgerEntry.from_contract(entry) for entry in raw]

    async def load_point_logs(self, plant_id: int, fee_wei: Optional[int] = None) -> List[PointsLedgerEntry]:
        """Pay the view fee, wait for inclusion, then read the point log."""
        network = self.network()
        ledger = self.ledger(network)
        fee = self.point_log_fee_wei if fee_wei is None else fee_wei

        pending = await ledger.pay_to_view_point_logs(plant_id, fee)
        await pending.wait()
        logger.info(f"Paid {fee} wei to view point logs of plant {plant_id}")

        try:
            return await self.get_point_logs(plant_id)
        except LedgerReadFailed:
            logger.error(f"Point logs of plant {plant_id} still locked after payment")
            raise

    async def decrypt_public(self, handle: str) -> int:
        network = self.network()
        coordinator = await self.coordinator(network)
        return await coordinator.public_decrypt(network.contract_address, handle)

    async def decrypt_user(self, handle: str) -> int:
        network = self.network()
        coordinator = await self.coordinator(network)
        return await coordinator.user_decrypt(handle, network.contract_address, self.transport)
