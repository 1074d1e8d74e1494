"""
Mock vs relay environment detection.

Two best-effort probes run concurrently against the wallet transport:
- web3_clientVersion: a local development node reports its name here
- fhevm_relayer_metadata: only nodes running the FHE mock plugin answer

Both signals present -> MockEnvironment, otherwise RelayEnvironment.
Probe failures count as "signal absent" and are never raised.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Union

from ..models.confidential import CryptosystemMode
from .errors import ProbeError
from .transport import WalletTransport

logger = logging.getLogger("environment")

DEV_CHAIN_MARKERS = ("hardhat",)
CLIENT_VERSION_METHOD = "web3_clientVersion"
RELAYER_METADATA_METHOD = "fhevm_relayer_metadata"


@dataclass(frozen=True)
class MockEnvironment:
    metadata: Dict[str, Any] = field(default_factory=dict)
    client_version: str = ""
    mode: ClassVar[CryptosystemMode] = CryptosystemMode.MOCK


@dataclass(frozen=True)
class RelayEnvironment:
    client_version: Optional[str] = None
    mode: ClassVar[CryptosystemMode] = CryptosystemMode.RELAY


Environment = Union[MockEnvironment, RelayEnvironment]


def is_dev_chain(client_version: Optional[str]) -> bool:
    if not isinstance(client_version, str):
        return False
    version = client_version.lower()
    return any(marker in version for marker in DEV_CHAIN_MARKERS)


async def _probe(transport: WalletTransport, method: str) -> Any:
    try:
        return await transport.request(method)
    except Exception as e:
        raise ProbeError(f"{method} probe failed: {e}") from e


async def probe_client_version(transport: WalletTransport) -> Optional[str]:
    try:
        version = await _probe(transport, CLIENT_VERSION_METHOD)
    except ProbeError as e:
        logger.warning(f"{e} - assuming non-dev chain")
        return None
    return version if isinstance(version, str) else None


async def probe_relayer_metadata(transport: WalletTransport) -> Optional[Dict[str, Any]]:
    try:
        metadata = await _probe(transport, RELAYER_METADATA_METHOD)
    except ProbeError as e:
        logger.warning(f"{e} - assuming no local relayer")
        return None
    return metadata or None


async def detect_mode(transport: WalletTransport) -> Environment:
    """Classify the active network. Never raises on transport errors."""
    client_version, metadata = await asyncio.gather(
        probe_client_version(transport),
        probe_relayer_metadata(transport),
    )

    if is_dev_chain(client_version) and metadata:
        logger.info(f"Mock cryptosystem selected (client {client_version})")
        return MockEnvironment(metadata=dict(metadata), client_version=client_version)

    logger.info("Relayer cryptosystem selected")
    return RelayEnvironment(client_version=client_version)
