"""
Relayer-backed cryptosystem (production networks).

Relayer HTTP API:
1. GET  /v1/keyurl         - FHE public key + CRS locations (runtime asset)
2. POST /v1/input-proof    - co-processor attestation for a client ciphertext
3. POST /v1/public-decrypt - KMS decryption of publicly decryptable handles
4. POST /v1/user-decrypt   - KMS re-encryption to an ephemeral user key

Client-side TFHE encryption is an opaque backend loaded from
PLANTCHAIN_TFHE_ENCRYPTOR ("module:callable"). Without it, decryption still
works and encryption fails closed with LoadError.
"""
import importlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..config import HTTP_TIMEOUT, RELAYER_URL, SEPOLIA_CONFIG, TFHE_ENCRYPTOR
from ..lib.crypto import generate_x25519_keypair, open_sealed, strip_0x
from ..lib.eip712 import build_user_decrypt_eip712
from ..lib.errors import AccessDenied, LoadError, RelayerError
from ..models.confidential import EIP712AuthorizationMessage

logger = logging.getLogger("relayer")

ACL_DENIED_LABELS = ("not_allowed_on_host_acl", "not_allowed_for_public_decryption")
HANDLE_BYTES = 32
SIGNATURE_BYTES = 65


@dataclass
class RelayerKeyMaterial:
    public_key_id: str
    public_key: bytes
    crs_id: str
    crs: bytes


async def fetch_relayer_runtime(
    relayer_url: str = RELAYER_URL,
    timeout: float = HTTP_TIMEOUT,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> "RelayerRuntime":
    """
    Fetch the runtime asset (FHE public key and CRS) from the relayer.

    Raises LoadError on any transport or format failure.
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=http_transport) as client:
            key_response = await client.get(f"{relayer_url}/v1/keyurl")
            if key_response.status_code != 200:
                raise LoadError(f"Key URL request failed: {key_response.status_code} - {key_response.text}")

            info = key_response.json()["response"]
            pk_info = info["fhe_key_info"][0]["fhe_public_key"]
            crs_info = info["crs"]["2048"]

            pk_response = await client.get(pk_info["urls"][0])
            crs_response = await client.get(crs_info["urls"][0])
            for name, response in (("public key", pk_response), ("CRS", crs_response)):
                if response.status_code != 200:
                    raise LoadError(f"Fetching {name} failed: {response.status_code}")

    except httpx.HTTPError as e:
        raise LoadError(f"Relayer unreachable: {e}") from e
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise LoadError(f"Malformed key URL response: {e}") from e

    logger.info(f"Fetched FHE public key {pk_info['data_id']} from {relayer_url}")
    material = RelayerKeyMaterial(
        public_key_id=pk_info["data_id"],
        public_key=pk_response.content,
        crs_id=crs_info["data_id"],
        crs=crs_response.content,
    )
    return RelayerRuntime(material, relayer_url=relayer_url, http_transport=http_transport)


def load_encryptor(path: str) -> Callable[..., bytes]:
    """Resolve a "module:callable" TFHE encryption backend."""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise LoadError(f"Invalid encryptor path '{path}' (expected module:callable)")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise LoadError(f"Cannot load TFHE encryptor '{path}': {e}") from e


class RelayerRuntime:

    def __init__(
        self,
        key_material: RelayerKeyMaterial,
        relayer_url: str = RELAYER_URL,
        encryptor_path: str = TFHE_ENCRYPTOR,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_material = key_material
        self.encryptor_path = encryptor_path
        self.encryptor: Optional[Callable[..., bytes]] = None
        self.http_transport = http_transport
        self.default_config: Dict[str, Any] = {**SEPOLIA_CONFIG, "relayerUrl": relayer_url}

    async def init_sdk(self) -> None:
        if not self.key_material.public_key or not self.key_material.crs:
            raise LoadError("FHE public key material is empty")
        if self.encryptor_path:
            self.encryptor = load_encryptor(self.encryptor_path)
        else:
            logger.warning("No TFHE encryptor configured - encrypted inputs unavailable")

    async def create_instance(self, config: Dict[str, Any]) -> "RelayerCryptosystem":
        return RelayerCryptosystem(config, self)


def encode_input_proof(handles: List[str], signatures: List[str], extra_data: str = "00") -> str:
    """numHandles[1] || numSigners[1] || handles[32*n] || signatures[65*m] || extraData"""
    raw = bytes([len(handles), len(signatures)])
    for handle in handles:
        raw += bytes.fromhex(strip_0x(handle)).rjust(HANDLE_BYTES, b"\x00")
    for signature in signatures:
        sig = bytes.fromhex(strip_0x(signature))
        if len(sig) != SIGNATURE_BYTES:
            raise RelayerError(f"Unexpected co-processor signature length {len(sig)}")
        raw += sig
    raw += bytes.fromhex(strip_0x(extra_data))
    return "0x" + raw.hex()


class RelayerEncryptedInput:

    def __init__(self, cryptosystem: "RelayerCryptosystem", contract_address: str, user_address: str):
        self._cryptosystem = cryptosystem
        self._contract_address = contract_address
        self._user_address = user_address
        self._values: List[int] = []

    def add32(self, value: int) -> None:
        self._values.append(value)

    async def encrypt(self) -> Dict[str, Any]:
        return await self._cryptosystem.encrypt_values(self._contract_address, self._user_address, self._values)


class RelayerCryptosystem:
    """Cryptosystem instance whose KMS and co-processor sit behind the relayer."""

    def __init__(self, config: Dict[str, Any], runtime: RelayerRuntime):
        self.config = config
        self.runtime = runtime
        self.relayer_url = config["relayerUrl"].rstrip("/")
        self.chain_id = int(config["chainId"])

    async def _post(self, path: str, payload: Dict[str, Any], handle: Optional[str] = None) -> Any:
        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=self.runtime.http_transport) as client:
                response = await client.post(
                    f"{self.relayer_url}{path}",
                    headers={"Content-Type": "application/json"},
                    json=payload,
                )
        except httpx.TimeoutException as e:
            raise RelayerError(f"Relayer timeout on {path}") from e
        except httpx.HTTPError as e:
            raise RelayerError(f"Relayer unreachable on {path}: {e}") from e

        if response.status_code != 200:
            label = None
            try:
                label = response.json().get("label")
            except (ValueError, AttributeError):
                pass
            if handle is not None and (response.status_code == 403 or label in ACL_DENIED_LABELS):
                raise AccessDenied(handle, payload.get("contractAddress"))
            logger.error(f"Relayer {path} failed: {response.status_code} - {response.text}")
            raise RelayerError(f"{path} failed: {response.status_code} - {response.text}", response.status_code)

        try:
            return response.json()["response"]
        except (ValueError, KeyError) as e:
            raise RelayerError(f"Malformed relayer response on {path}") from e

    def create_encrypted_input(self, contract_address: str, user_address: str) -> RelayerEncryptedInput:
        return RelayerEncryptedInput(self, contract_address, user_address)

    async def encrypt_values(self, contract_address: str, user_address: str, values: List[int]) -> Dict[str, Any]:
        if self.runtime.encryptor is None:
            raise LoadError("TFHE encryptor not available - set PLANTCHAIN_TFHE_ENCRYPTOR")

        ciphertext = self.runtime.encryptor(
            public_key=self.runtime.key_material.public_key,
            crs=self.runtime.key_material.crs,
            values=values,
            bits=[32] * len(values),
            contract_address=contract_address,
            user_address=user_address,
            chain_id=self.chain_id,
        )
        data = await self._post("/v1/input-proof", {
            "contractAddress": contract_address,
            "userAddress": user_address,
            "ciphertextWithInputVerification": ciphertext.hex(),
            "contractChainId": hex(self.chain_id),
            "extraData": "0x00",
        })

        handles = ["0x" + strip_0x(h) for h in data["handles"]]
        if len(handles) != len(values):
            raise RelayerError(f"Relayer returned {len(handles)} handles for {len(values)} values")
        return {"handles": handles, "inputProof": encode_input_proof(handles, data["signatures"])}

    async def decrypt_public(self, contract_address: str, handle: str) -> int:
        data = await self._post(
            "/v1/public-decrypt",
            {"ciphertextHandles": [handle], "contractAddress": contract_address, "extraData": "0x00"},
            handle=handle,
        )
        try:
            return int(data[0]["decrypted_value"], 16)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise RelayerError("Malformed public-decrypt response") from e

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
            verifying_contract=self.config["verifyingContractAddressDecryption"],
            gateway_chain_id=int(self.config["gatewayChainId"]),
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
        data = await self._post("/v1/user-decrypt", {
            "handleContractPairs": requests,
            "requestValidity": {
                "startTimestamp": str(start_timestamp),
                "durationDays": str(duration_days),
            },
            "contractsChainId": str(self.chain_id),
            "contractAddresses": contract_addresses,
            "userAddress": user_address,
            "signature": strip_0x(signature),
            "publicKey": strip_0x(public_key),
            "extraData": "0x00",
        })
        return {
            handle: int.from_bytes(open_sealed(private_key, sealed), "big")
            for handle, sealed in data.items()
        }
