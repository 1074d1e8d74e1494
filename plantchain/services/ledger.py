"""
Ledger contract interface and its web3 adapter.

Mutations return a PendingTransaction; callers always wait() for inclusion
before reading state back. Reads are sent with `from` set to the wallet
address because some getters (point logs) depend on the caller.
"""
import logging
from typing import Any, Callable, List, Optional, Protocol

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError
from web3.providers import AsyncHTTPProvider

from ..config import HTTP_TIMEOUT
from ..lib.crypto import strip_0x
from ..lib.errors import LedgerReadFailed, TransactionFailed, TransactionReverted
from ..lib.transport import WalletTransport
from ..models.network import NetworkContext
from .deployments import DeploymentRegistry

logger = logging.getLogger("ledger")

RECEIPT_TIMEOUT = 180

_PLANT_COMPONENTS = [
    {"internalType": "uint256", "name": "id", "type": "uint256"},
    {"internalType": "address", "name": "owner", "type": "address"},
    {"internalType": "string", "name": "name", "type": "string"},
    {"internalType": "string", "name": "species", "type": "string"},
    {"internalType": "string", "name": "description", "type": "string"},
    {"internalType": "string", "name": "imageCID", "type": "string"},
    {"internalType": "uint256", "name": "createdAt", "type": "uint256"},
]

_GROWTH_LOG_COMPONENTS = [
    {"internalType": "uint256", "name": "logId", "type": "uint256"},
    {"internalType": "string", "name": "description", "type": "string"},
    {"internalType": "string", "name": "imageCID", "type": "string"},
    {"internalType": "uint256", "name": "timestamp", "type": "uint256"},
]

_POINT_LOG_COMPONENTS = [
    {"internalType": "address", "name": "from", "type": "address"},
    {"internalType": "uint32", "name": "amount", "type": "uint32"},
    {"internalType": "uint8", "name": "reason", "type": "uint8"},
    {"internalType": "uint256", "name": "timestamp", "type": "uint256"},
]


def _fn(name, inputs, outputs=(), mutability="nonpayable"):
    return {
        "inputs": list(inputs),
        "name": name,
        "outputs": list(outputs),
        "stateMutability": mutability,
        "type": "function",
    }


def _arg(name, type_, internal=None):
    return {"internalType": internal or type_, "name": name, "type": type_}


_PLANT_ID = _arg("plantId", "uint256")

LEDGER_ABI = [
    _fn("createPlant", [_arg("name", "string"), _arg("species", "string"),
                        _arg("description", "string"), _arg("imageCID", "string")],
        [_arg("", "uint256")]),
    _fn("addGrowthLog", [_PLANT_ID, _arg("description", "string"), _arg("imageCID", "string")]),
    _fn("mintPlantNFT", [_PLANT_ID]),
    _fn("getPlant", [_PLANT_ID],
        [{"components": _PLANT_COMPONENTS, "internalType": "struct PlantChain.Plant",
          "name": "", "type": "tuple"}], "view"),
    _fn("getGrowthLogs", [_PLANT_ID],
        [{"components": _GROWTH_LOG_COMPONENTS, "internalType": "struct PlantChain.GrowthLog[]",
          "name": "", "type": "tuple[]"}], "view"),
    _fn("getMyPlants", [_arg("owner", "address")], [_arg("", "uint256[]")], "view"),
    _fn("plantMinted", [_arg("", "uint256")], [_arg("", "bool")], "view"),
    _fn("getEcoPoints", [_arg("user", "address")], [_arg("", "bytes32", "euint32")], "view"),
    _fn("addEcoPoints", [_arg("inputEuint32", "bytes32", "externalEuint32"), _arg("inputProof", "bytes")]),
    _fn("tipEcoPointOne", [_PLANT_ID, _arg("inputEuint32", "bytes32", "externalEuint32"),
                           _arg("inputProof", "bytes")]),
    _fn("getPlantPointLogs", [_PLANT_ID],
        [{"components": _POINT_LOG_COMPONENTS, "internalType": "struct PlantChain.PointLog[]",
          "name": "", "type": "tuple[]"}], "view"),
    _fn("payToViewPointLogs", [_PLANT_ID], mutability="payable"),
]


class PendingTransaction(Protocol):
    tx_hash: str

    async def wait(self) -> Any:
        """Wait for inclusion. Raises TransactionReverted on receipt status 0."""
        ...


class LedgerContract(Protocol):
    """The subset of the PlantChain contract this client calls."""

    address: str

    async def create_plant(self, name: str, species: str, description: str, image_cid: str) -> PendingTransaction: ...

    async def add_growth_log(self, plant_id: int, description: str, image_cid: str) -> PendingTransaction: ...

    async def mint_plant_nft(self, plant_id: int) -> PendingTransaction: ...

    async def get_plant(self, plant_id: int) -> Any: ...

    async def get_growth_logs(self, plant_id: int) -> List[Any]: ...

    async def get_my_plants(self, owner: str) -> List[int]: ...

    async def plant_minted(self, plant_id: int) -> bool: ...

    async def get_eco_points(self, user: str) -> str: ...

    async def add_eco_points(self, handle: str, proof: str) -> PendingTransaction: ...

    async def tip_eco_point_one(self, plant_id: int, handle: str, proof: str) -> PendingTransaction: ...

    async def get_plant_point_logs(self, plant_id: int) -> List[Any]: ...

    async def pay_to_view_point_logs(self, plant_id: int, value: int) -> PendingTransaction: ...


def _to_bytes(value: str) -> bytes:
    return bytes.fromhex(strip_0x(value))


def _to_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value if str(value).startswith("0x") else f"0x{value}"


class Web3PendingTransaction:

    def __init__(self, w3: AsyncWeb3, operation: str, tx_hash: str, timeout: float = RECEIPT_TIMEOUT):
        self._w3 = w3
        self.operation = operation
        self.tx_hash = tx_hash
        self.timeout = timeout

    async def wait(self) -> dict:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(self.tx_hash, timeout=self.timeout)
        except Exception as e:
            logger.error(f"{self.operation} {self.tx_hash} not confirmed: {e}")
            raise TransactionFailed(self.operation, e) from e

        if receipt["status"] == 0:
            logger.error(f"{self.operation} reverted: {self.tx_hash}")
            raise TransactionReverted(self.operation, self.tx_hash)

        logger.info(f"{self.operation} confirmed in block {receipt['blockNumber']}: {self.tx_hash}")
        return dict(receipt)


class Web3LedgerContract:
    """LedgerContract over web3's AsyncWeb3, signing locally with eth-account."""

    def __init__(self, network: NetworkContext, account: LocalAccount, w3: Optional[AsyncWeb3] = None):
        self.network = network
        self.account = account
        self._w3 = w3 or AsyncWeb3(
            AsyncHTTPProvider(network.rpc_endpoint, request_kwargs={"timeout": HTTP_TIMEOUT})
        )
        self.address = AsyncWeb3.to_checksum_address(network.contract_address)
        self._contract = self._w3.eth.contract(address=self.address, abi=LEDGER_ABI)

    @classmethod
    def for_wallet(cls, network: NetworkContext, wallet) -> "Web3LedgerContract":
        """Build from a wallet that exposes a local signing account (JsonRpcWallet)."""
        return cls(network, wallet.account)

    async def _call(self, name: str, *args) -> Any:
        fn = getattr(self._contract.functions, name)(*args)
        try:
            return await fn.call({"from": self.account.address})
        except ContractLogicError as e:
            raise LedgerReadFailed(name, e) from e

    async def _transact(self, operation: str, *args, value: int = 0) -> Web3PendingTransaction:
        try:
            fn = getattr(self._contract.functions, operation)(*args)
            tx = await fn.build_transaction({
                "from": self.account.address,
                "nonce": await self._w3.eth.get_transaction_count(self.account.address),
                "chainId": self.network.chain_id,
                "value": value,
            })
            signed = self.account.sign_transaction(tx)
            raw_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            logger.error(f"{operation} submission failed: {e}")
            raise TransactionFailed(operation, e) from e

        tx_hash = _to_hex(raw_hash)
        logger.info(f"{operation} submitted: {tx_hash}")
        return Web3PendingTransaction(self._w3, operation, tx_hash)

    # --- plants ---

    async def create_plant(self, name: str, species: str, description: str, image_cid: str):
        return await self._transact("createPlant", name, species, description, image_cid)

    async def add_growth_log(self, plant_id: int, description: str, image_cid: str):
        return await self._transact("addGrowthLog", plant_id, description, image_cid)

    async def mint_plant_nft(self, plant_id: int):
        return await self._transact("mintPlantNFT", plant_id)

    async def get_plant(self, plant_id: int):
        return await self._call("getPlant", plant_id)

    async def get_growth_logs(self, plant_id: int):
        return list(await self._call("getGrowthLogs", plant_id))

    async def get_my_plants(self, owner: str):
        return [int(i) for i in await self._call("getMyPlants", AsyncWeb3.to_checksum_address(owner))]

    async def plant_minted(self, plant_id: int):
        return bool(await self._call("plantMinted", plant_id))

    # --- eco points ---

    async def get_eco_points(self, user: str) -> str:
        return _to_hex(await self._call("getEcoPoints", AsyncWeb3.to_checksum_address(user)))

    async def add_eco_points(self, handle: str, proof: str):
        return await self._transact("addEcoPoints", _to_bytes(handle), _to_bytes(proof))

    async def tip_eco_point_one(self, plant_id: int, handle: str, proof: str):
        return await self._transact("tipEcoPointOne", plant_id, _to_bytes(handle), _to_bytes(proof))

    async def get_plant_point_logs(self, plant_id: int):
        return list(await self._call("getPlantPointLogs", plant_id))

    async def pay_to_view_point_logs(self, plant_id: int, value: int):
        return await self._transact("payToViewPointLogs", plant_id, value=value)


LedgerFactory = Callable[[NetworkContext, WalletTransport], LedgerContract]


class LedgerBinding:
    """
    Wallet + chain id + deployment registry -> ledger contract.

    network() is a pure registry lookup, so NetworkMismatch is raised before
    any RPC or relayer traffic.
    """

    def __init__(
        self,
        transport: WalletTransport,
        chain_id: int,
        deployments: DeploymentRegistry,
        ledger_factory: LedgerFactory = Web3LedgerContract.for_wallet,
    ):
        self.transport = transport
        self.chain_id = chain_id
        self.deployments = deployments
        self._ledger_factory = ledger_factory
        self._ledger: Optional[LedgerContract] = None
        self._ledger_network: Optional[NetworkContext] = None

    def network(self) -> NetworkContext:
        return self.deployments.resolve(self.chain_id, self.transport.rpc_url)

    def ledger(self, network: NetworkContext) -> LedgerContract:
        if self._ledger is None or self._ledger_network != network:
            self._ledger = self._ledger_factory(network, self.transport)
            self._ledger_network = network
        return self._ledger

    def switch_chain(self, chain_id: int) -> None:
        """Rebind to another chain; the next operation re-resolves the deployment."""
        self.chain_id = chain_id
        self._ledger = None
        self._ledger_network = None
