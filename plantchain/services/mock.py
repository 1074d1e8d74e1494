"""
Mock cryptosystem for local development chains.

NOT a cryptosystem: no homomorphic math happens on the client. Selected only
on a dev chain whose node answers fhevm_relayer_metadata; that node runs the
FHE mock plugin, which plays the co-processor, the ACL and the KMS and
exposes them as fhevm_relayer_v1_* JSON-RPC methods.

- NodeCoprocessor: forwards input proofs and decryptions to the dev node.
- MockCoprocessor: the same role in-process, with a cleartext table and a
  signer derived from the chain id. Used by the in-memory test ledger.
- MockCryptosystem: the client-side instance, parameterized by either one.
"""
import itertools
import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set, Tuple

from ..lib.crypto import (
    generate_x25519_keypair,
    new_secp256k1_key,
    open_sealed,
    seal_for_public_key,
    sha256_hex,
    sign_secp256k1,
    strip_0x,
    verify_secp256k1_signature,
)
from ..lib.eip712 import build_user_decrypt_eip712, verify_user_decrypt_signature
from ..lib.errors import AccessDenied, JsonRpcError, RelayerError
from ..lib.transport import JsonRpcNode, RpcEndpoint
from ..models.confidential import SECONDS_PER_DAY, EIP712AuthorizationMessage
from .relayer import ACL_DENIED_LABELS

logger = logging.getLogger("mock")

UINT32_MOD = 2**32
MOCK_DECRYPTION_VERIFIER = "0x5ffdaAB0373E62E2ea2944776209aEf29E631A64"

INPUT_PROOF_METHOD = "fhevm_relayer_v1_input_proof"
PUBLIC_DECRYPT_METHOD = "fhevm_relayer_v1_public_decrypt"
USER_DECRYPT_METHOD = "fhevm_relayer_v1_user_decrypt"


class Coprocessor(Protocol):
    """What MockCryptosystem needs from whoever holds the cleartexts."""

    async def encrypt_input(self, contract_address: str, user_address: str, values: List[int]) -> Dict[str, Any]: ...

    async def public_decrypt(self, handle: str, contract_address: Optional[str] = None) -> int: ...

    async def user_decrypt(
        self,
        requests: List[Dict[str, str]],
        auth: EIP712AuthorizationMessage,
        signature: str,
        user_address: str,
    ) -> Dict[str, str]: ...


class NodeCoprocessor:
    """The dev node's mock co-processor, reached over the wallet's JSON-RPC."""

    def __init__(self, node: RpcEndpoint, chain_id: int):
        self.node = node
        self.chain_id = chain_id

    async def _call(self, method: str, payload: Dict[str, Any]) -> Any:
        try:
            return await self.node.request(method, [payload])
        except JsonRpcError as e:
            logger.error(f"Dev node {method} failed: {e}")
            raise RelayerError(str(e), e.code) from e

    async def encrypt_input(self, contract_address: str, user_address: str, values: List[int]) -> Dict[str, Any]:
        data = await self._call(INPUT_PROOF_METHOD, {
            "contractAddress": contract_address,
            "userAddress": user_address,
            "contractChainId": hex(self.chain_id),
            "values": [str(v) for v in values],
            "bits": [32] * len(values),
        })
        try:
            handles = ["0x" + strip_0x(h) for h in data["handles"]]
            return {"handles": handles, "inputProof": "0x" + strip_0x(data["inputProof"])}
        except (KeyError, TypeError, AttributeError) as e:
            raise RelayerError(f"Malformed {INPUT_PROOF_METHOD} response") from e

    async def public_decrypt(self, handle: str, contract_address: Optional[str] = None) -> int:
        payload = {"ciphertextHandles": [handle], "contractAddress": contract_address, "extraData": "0x00"}
        try:
            data = await self.node.request(PUBLIC_DECRYPT_METHOD, [payload])
        except JsonRpcError as e:
            if any(label in str(e) for label in ACL_DENIED_LABELS):
                raise AccessDenied(handle, contract_address) from e
            logger.error(f"Dev node {PUBLIC_DECRYPT_METHOD} failed: {e}")
            raise RelayerError(str(e), e.code) from e
        try:
            return int(data[0]["decrypted_value"], 16)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise RelayerError("Malformed public-decrypt response") from e

    async def user_decrypt(
        self,
        requests: List[Dict[str, str]],
        auth: EIP712AuthorizationMessage,
        signature: str,
        user_address: str,
    ) -> Dict[str, str]:
        message = auth.message
        data = await self._call(USER_DECRYPT_METHOD, {
            "handleContractPairs": requests,
            "requestValidity": {
                "startTimestamp": str(message["startTimestamp"]),
                "durationDays": str(message["durationDays"]),
            },
            "contractsChainId": str(message["contractsChainId"]),
            "contractAddresses": list(message["contractAddresses"]),
            "userAddress": user_address,
            "signature": strip_0x(signature),
            "publicKey": strip_0x(message["publicKey"]),
            "extraData": "0x00",
        })
        if not isinstance(data, dict):
            raise RelayerError(f"Malformed {USER_DECRYPT_METHOD} response")
        return data


class MockCoprocessor:
    """Cleartext-backed stand-in for the FHE executor, ACL and KMS of one chain."""

    def __init__(self, chain_id: int):
        self.chain_id = chain_id
        self._signer = new_secp256k1_key(f"plantchain:mock-coprocessor:{chain_id}".encode())
        self.signer_public_key = self._signer.public_key.format().hex()
        self._cleartexts: Dict[str, int] = {}
        self._allowed: Set[Tuple[str, str]] = set()
        self._public: Set[str] = set()
        self._spent_inputs: Set[str] = set()
        self._counter = itertools.count(1)

    def _new_handle(self, *scope: str) -> str:
        return "0x" + sha256_hex(f"{self.chain_id}:{next(self._counter)}:{':'.join(scope)}")

    def _attestation(self, handles: Iterable[str], contract_address: str, user_address: str) -> bytes:
        body = ",".join(h.lower() for h in handles)
        return f"{self.chain_id}|{contract_address.lower()}|{user_address.lower()}|{body}".encode()

    # --- client side (input encryption) ---

    async def encrypt_input(self, contract_address: str, user_address: str, values: List[int]) -> Dict[str, Any]:
        handles = []
        for value in values:
            handle = self._new_handle(contract_address.lower(), user_address.lower())
            self._cleartexts[handle] = value % UINT32_MOD
            handles.append(handle)
        proof = sign_secp256k1(self._signer, self._attestation(handles, contract_address, user_address))
        return {"handles": handles, "inputProof": "0x" + proof}

    # --- ledger side (executor + ACL) ---

    def verify_input(self, handle: str, proof: str, contract_address: str, user_address: str) -> str:
        """Accept an external input once, for the contract and user it was made for."""
        if handle in self._spent_inputs:
            raise ValueError(f"Input {handle} already used")
        ok, msg = verify_secp256k1_signature(
            self._attestation([handle], contract_address, user_address),
            self.signer_public_key,
            proof,
        )
        if not ok:
            raise ValueError(f"Invalid input proof: {msg}")
        self._spent_inputs.add(handle)
        return handle

    def trivial_encrypt(self, value: int) -> str:
        handle = self._new_handle("trivial")
        self._cleartexts[handle] = value % UINT32_MOD
        return handle

    def add(self, lhs: str, rhs: str) -> str:
        handle = self._new_handle("add", lhs, rhs)
        self._cleartexts[handle] = (self._cleartexts[lhs] + self._cleartexts[rhs]) % UINT32_MOD
        return handle

    def allow(self, handle: str, address: str) -> None:
        self._allowed.add((handle, address.lower()))

    def is_allowed(self, handle: str, address: str) -> bool:
        return (handle, address.lower()) in self._allowed

    def make_publicly_decryptable(self, handle: str) -> None:
        self._public.add(handle)

    # --- KMS side ---

    async def public_decrypt(self, handle: str, contract_address: Optional[str] = None) -> int:
        if handle not in self._cleartexts:
            raise RelayerError(f"Unknown ciphertext handle {handle}")
        if handle not in self._public:
            raise AccessDenied(handle, contract_address)
        return self._cleartexts[handle]

    async def user_decrypt(
        self,
        requests: List[Dict[str, str]],
        auth: EIP712AuthorizationMessage,
        signature: str,
        user_address: str,
    ) -> Dict[str, str]:
        """Return {handle: cleartext sealed to the request's public key}."""
        if not verify_user_decrypt_signature(auth, signature, user_address):
            raise PermissionError("Typed-data signature does not match user address")

        start = int(auth.message["startTimestamp"])
        end = start + int(auth.message["durationDays"]) * SECONDS_PER_DAY
        now = int(time.time())
        if not start <= now < end:
            raise PermissionError("Decryption request outside its validity window")

        authorized = {a.lower() for a in auth.message["contractAddresses"]}
        results = {}
        for pair in requests:
            handle, contract = pair["handle"], pair["contractAddress"]
            if contract.lower() not in authorized:
                raise PermissionError(f"Contract {contract} not covered by the signature")
            if not (self.is_allowed(handle, user_address) and self.is_allowed(handle, contract)):
                raise PermissionError(f"User {user_address} may not decrypt {handle}")
            cleartext = self._cleartexts[handle].to_bytes(32, "big")
            results[handle] = seal_for_public_key(auth.message["publicKey"], cleartext)
        return results


class MockEncryptedInput:

    def __init__(self, coprocessor: Coprocessor, contract_address: str, user_address: str):
        self._coprocessor = coprocessor
        self._contract_address = contract_address
        self._user_address = user_address
        self._values: List[int] = []

    def add32(self, value: int) -> None:
        self._values.append(value)

    async def encrypt(self) -> Dict[str, Any]:
        return await self._coprocessor.encrypt_input(self._contract_address, self._user_address, self._values)


class MockCryptosystem:
    """
    Client-side instance for a dev chain. Without an explicit co-processor it
    talks to the node at rpc_url.
    """

    def __init__(
        self,
        rpc_url: str,
        chain_id: int,
        metadata: Dict[str, Any],
        coprocessor: Optional[Coprocessor] = None,
    ):
        self.rpc_url = rpc_url
        self.chain_id = chain_id
        self.metadata = metadata
        self.coprocessor = coprocessor or NodeCoprocessor(JsonRpcNode(rpc_url), chain_id)

    def create_encrypted_input(self, contract_address: str, user_address: str) -> MockEncryptedInput:
        return MockEncryptedInput(self.coprocessor, contract_address, user_address)

    async def decrypt_public(self, contract_address: str, handle: str) -> int:
        return await self.coprocessor.public_decrypt(handle, contract_address)

    def generate_keypair(self) -> Dict[str, str]:
        public_key, private_key = generate_x25519_keypair()
        return {"publicKey": public_key, "privateKey": private_key}

    def create_eip712(
        self,
        public_key: str,
        contract_addresses: List[str],
        start_timestamp: int,
        duration_days: int,
    ) -> EIP712AuthorizationMessage:
        return build_user_decrypt_eip712(
            public_key=public_key,
            contract_addresses=contract_addresses,
            contracts_chain_id=self.chain_id,
            start_timestamp=start_timestamp,
            duration_days=duration_days,
            verifying_contract=self.metadata.get("verifyingContractAddressDecryption", MOCK_DECRYPTION_VERIFIER),
            gateway_chain_id=int(self.metadata.get("gatewayChainId", self.chain_id)),
        )

    async def user_decrypt(
        self,
        requests: List[Dict[str, str]],
        private_key: str,
        public_key: str,
        signature: str,
        contract_addresses: List[str],
        user_address: str,
        start_timestamp: int,
        duration_days: int,
    ) -> Dict[str, int]:
        auth = self.create_eip712(public_key, contract_addresses, start_timestamp, duration_days)
        sealed = await self.coprocessor.user_decrypt(requests, auth, signature, user_address)
        return {
            handle: int.from_bytes(open_sealed(private_key, payload), "big")
            for handle, payload in sealed.items()
        }
