"""
In-memory collaborators for the points client tests.

FakeWallet answers the JSON-RPC probes a local hardhat node with the FHE
mock plugin would answer and signs typed data with a real eth-account key.
FakeChain is a PlantChain ledger whose encrypted balances live in a
MockCoprocessor: creating a plant credits 1 point, encrypted inputs are
verified once and added homomorphically, and point logs are pay-to-view for
non-owners.
"""
import asyncio
import time
from typing import Any, Dict, List, Optional, Set, Tuple

from eth_account import Account
from eth_utils import to_hex

from plantchain.config import POINT_LOG_FEE_WEI
from plantchain.lib.errors import JsonRpcError, LedgerReadFailed, TransactionReverted
from plantchain.models.ledger import ReasonCode
from plantchain.services.mock import MockCoprocessor

ALICE_KEY = "0x" + "11" * 32
BOB_KEY = "0x" + "22" * 32

LOCAL_CHAIN_ID = 31337
LEDGER_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
HARDHAT_VERSION = "HardhatNetwork/2.22.0/@nomicfoundation/edr/0.6.0"
RELAYER_METADATA = {
    "ACLAddress": "0x50157CFfD6bBFA2DECe204a89ec419c23ef5755D",
    "InputVerifierAddress": "0x901F8942346f7AB3a01F6D7613119Bca447Bb030",
    "KMSVerifierAddress": "0x1364cBBf2cDF5032C47d8226a6f6FBD2AFCDacAC",
}
ZERO_HANDLE = "0x" + "00" * 32


class FakeWallet:
    """WalletTransport over a local key; records every RPC method it is asked for."""

    def __init__(
        self,
        private_key: str = ALICE_KEY,
        chain_id: int = LOCAL_CHAIN_ID,
        client_version: Optional[str] = HARDHAT_VERSION,
        metadata: Optional[Dict[str, Any]] = RELAYER_METADATA,
        failing: Tuple[str, ...] = (),
    ):
        self.account = Account.from_key(private_key)
        self.rpc_url = "http://127.0.0.1:8545"
        self.chain_id = chain_id
        self.client_version = client_version
        self.metadata = metadata
        self.failing = failing
        self.calls: List[str] = []
        self.signatures = 0

    @property
    def address(self) -> str:
        return self.account.address

    async def request(self, method: str, params=None) -> Any:
        self.calls.append(method)
        if method in self.failing:
            raise JsonRpcError(method, "connection refused")
        if method == "eth_chainId":
            return hex(self.chain_id)
        if method in ("eth_accounts", "eth_requestAccounts"):
            return [self.address]
        if method == "web3_clientVersion" and self.client_version is not None:
            return self.client_version
        if method == "fhevm_relayer_metadata" and self.metadata is not None:
            return self.metadata
        raise JsonRpcError(method, "the method does not exist/is not available", -32601)

    async def get_address(self) -> str:
        return self.address

    async def sign_typed_data(self, domain, types, message) -> str:
        self.signatures += 1
        signed = self.account.sign_typed_data(domain_data=domain, message_types=types, message_data=message)
        return to_hex(signed.signature)


class FakePendingTransaction:

    def __init__(self, operation: str, tx_hash: str, error: Optional[Exception] = None):
        self.operation = operation
        self.tx_hash = tx_hash
        self.error = error

    async def wait(self) -> dict:
        if self.error is not None:
            raise TransactionReverted(self.operation, self.tx_hash)
        return {"status": 1, "transactionHash": self.tx_hash}


class FakeChain:
    """Ledger state shared by every wallet connected to it."""

    def __init__(
        self,
        chain_id: int = LOCAL_CHAIN_ID,
        address: str = LEDGER_ADDRESS,
        fee_wei: int = POINT_LOG_FEE_WEI,
        public_balances: bool = True,
    ):
        self.chain_id = chain_id
        self.address = address
        self.fee_wei = fee_wei
        self.public_balances = public_balances
        self.coprocessor = MockCoprocessor(chain_id)
        self.plants: Dict[int, dict] = {}
        self.growth_logs: Dict[int, List[dict]] = {}
        self.point_logs: Dict[int, List[dict]] = {}
        self.minted: Set[int] = set()
        self.balances: Dict[str, str] = {}
        self.paid: Set[Tuple[int, str]] = set()
        self.calls: List[str] = []
        # When set, balance reads block until the event fires
        self.read_gate: Optional[asyncio.Event] = None

    def connect(self, network, transport) -> "FakeLedger":
        """LedgerFactory: one connection per signing wallet."""
        return FakeLedger(self, transport.account.address)

    def coprocessor_for(self, transport, chain_id: int) -> MockCoprocessor:
        """Stands in for the dev node's co-processor in the instance factory."""
        return self.coprocessor

    def credit(self, owner: str, amount_handle: str) -> str:
        key = owner.lower()
        current = self.balances.get(key)
        new = amount_handle if current is None else self.coprocessor.add(current, amount_handle)
        self.coprocessor.allow(new, owner)
        self.coprocessor.allow(new, self.address)
        if self.public_balances:
            self.coprocessor.make_publicly_decryptable(new)
        self.balances[key] = new
        return new

    def plant(self, plant_id: int) -> dict:
        if plant_id not in self.plants:
            raise ValueError(f"plant {plant_id} does not exist")
        return self.plants[plant_id]


class FakeLedger:
    """LedgerContract as seen by one sender."""

    def __init__(self, chain: FakeChain, sender: str):
        self.chain = chain
        self.sender = sender
        self.address = chain.address

    def _submit(self, operation: str, effect) -> FakePendingTransaction:
        self.chain.calls.append(operation)
        tx_hash = f"0x{len(self.chain.calls):064x}"
        try:
            effect()
        except ValueError as e:
            return FakePendingTransaction(operation, tx_hash, error=e)
        return FakePendingTransaction(operation, tx_hash)

    def _read(self, operation: str) -> None:
        self.chain.calls.append(operation)

    # --- plants ---

    async def create_plant(self, name, species, description, image_cid):
        def effect():
            plant_id = len(self.chain.plants) + 1
            now = int(time.time())
            self.chain.plants[plant_id] = {
                "id": plant_id, "owner": self.sender, "name": name, "species": species,
                "description": description, "imageCID": image_cid, "createdAt": now,
            }
            self.chain.growth_logs[plant_id] = []
            self.chain.point_logs[plant_id] = [
                {"from": self.sender, "amount": 1, "reason": int(ReasonCode.CREATE), "timestamp": now},
            ]
            self.chain.credit(self.sender, self.chain.coprocessor.trivial_encrypt(1))
        return self._submit("createPlant", effect)

    async def add_growth_log(self, plant_id, description, image_cid):
        def effect():
            plant = self.chain.plant(plant_id)
            if plant["owner"].lower() != self.sender.lower():
                raise ValueError("not the plant owner")
            logs = self.chain.growth_logs[plant_id]
            logs.append({
                "logId": len(logs) + 1, "description": description,
                "imageCID": image_cid, "timestamp": int(time.time()),
            })
        return self._submit("addGrowthLog", effect)

    async def mint_plant_nft(self, plant_id):
        def effect():
            plant = self.chain.plant(plant_id)
            if plant["owner"].lower() != self.sender.lower() or plant_id in self.chain.minted:
                raise ValueError("cannot mint")
            self.chain.minted.add(plant_id)
        return self._submit("mintPlantNFT", effect)

    async def get_plant(self, plant_id):
        self._read("getPlant")
        p = self.chain.plant(plant_id)
        return (p["id"], p["owner"], p["name"], p["species"], p["description"], p["imageCID"], p["createdAt"])

    async def get_growth_logs(self, plant_id):
        self._read("getGrowthLogs")
        return list(self.chain.growth_logs.get(plant_id, []))

    async def get_my_plants(self, owner):
        self._read("getMyPlants")
        return [pid for pid, p in self.chain.plants.items() if p["owner"].lower() == owner.lower()]

    async def plant_minted(self, plant_id):
        self._read("plantMinted")
        return plant_id in self.chain.minted

    # --- eco points ---

    async def get_eco_points(self, user):
        self._read("getEcoPoints")
        if self.chain.read_gate is not None:
            await self.chain.read_gate.wait()
        return self.chain.balances.get(user.lower(), ZERO_HANDLE)

    async def add_eco_points(self, handle, proof):
        def effect():
            self.chain.coprocessor.verify_input(handle, proof, self.address, self.sender)
            self.chain.credit(self.sender, handle)
        return self._submit("addEcoPoints", effect)

    async def tip_eco_point_one(self, plant_id, handle, proof):
        def effect():
            plant = self.chain.plant(plant_id)
            self.chain.coprocessor.verify_input(handle, proof, self.address, self.sender)
            self.chain.credit(plant["owner"], handle)
            self.chain.point_logs[plant_id].append({
                "from": self.sender, "amount": 1,
                "reason": int(ReasonCode.TIP), "timestamp": int(time.time()),
            })
        return self._submit("tipEcoPointOne", effect)

    async def get_plant_point_logs(self, plant_id):
        self._read("getPlantPointLogs")
        plant = self.chain.plant(plant_id)
        is_owner = plant["owner"].lower() == self.sender.lower()
        if not is_owner and (plant_id, self.sender.lower()) not in self.chain.paid:
            raise LedgerReadFailed("getPlantPointLogs", ValueError("pay to view point logs"))
        return [dict(entry) for entry in self.chain.point_logs[plant_id]]

    async def pay_to_view_point_logs(self, plant_id, value):
        def effect():
            self.chain.plant(plant_id)
            if value < self.chain.fee_wei:
                raise ValueError("insufficient fee")
            self.chain.paid.add((plant_id, self.sender.lower()))
        return self._submit("payToViewPointLogs", effect)
