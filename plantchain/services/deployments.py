"""
Ledger deployment registry: chain id -> contract address.

Two sources:
- a generated JSON map {"<chainId>": {"address", "chainId", "chainName"}}
- a hardhat deployments tree (<root>/<network>/PlantChain.json), which is
  what the JSON map is generated from
"""
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from ..config import DEPLOYMENTS_PATH, LOCAL_CHAIN_ID, SEPOLIA_CONFIG
from ..lib.errors import NetworkMismatch
from ..models.network import Deployment, NetworkContext

logger = logging.getLogger("deployments")

CONTRACT_ARTIFACT = "PlantChain.json"

# Network directories whose artifacts may omit chainId
KNOWN_NETWORKS = {
    "sepolia": SEPOLIA_CONFIG["chainId"],
    "localhost": LOCAL_CHAIN_ID,
    "hardhat": LOCAL_CHAIN_ID,
}


class DeploymentRegistry:

    def __init__(self, deployments: Iterable[Deployment] = ()):
        self._by_chain: Dict[int, Deployment] = {d.chain_id: d for d in deployments}

    def __len__(self) -> int:
        return len(self._by_chain)

    def __contains__(self, chain_id: int) -> bool:
        return chain_id in self._by_chain

    @property
    def chain_ids(self) -> list:
        return sorted(self._by_chain)

    def get(self, chain_id: int) -> Optional[Deployment]:
        return self._by_chain.get(chain_id)

    def resolve(self, chain_id: int, rpc_endpoint: str) -> NetworkContext:
        """
        Bind the active chain to its ledger deployment.

        Raises:
            NetworkMismatch: no deployment for `chain_id`. Callers check this
            before touching the network.
        """
        deployment = self._by_chain.get(chain_id)
        if deployment is None or not deployment.address:
            raise NetworkMismatch(chain_id)
        return NetworkContext(
            chain_id=chain_id,
            rpc_endpoint=rpc_endpoint,
            contract_address=deployment.address,
        )

    def to_dict(self) -> Dict[str, dict]:
        return {
            str(chain_id): d.model_dump(by_alias=True)
            for chain_id, d in sorted(self._by_chain.items())
        }

    def save(self, path: Union[str, Path]) -> None:
        Path(path).write_text(json.dumps(self.to_dict(), indent=2) + "\n")

    @classmethod
    def from_mapping(cls, data: Dict[str, dict]) -> "DeploymentRegistry":
        deployments = []
        for key, entry in data.items():
            entry = dict(entry)
            entry.setdefault("chainId", int(key))
            deployments.append(Deployment.model_validate(entry))
        return cls(deployments)

    @classmethod
    def from_file(cls, path: Union[str, Path] = DEPLOYMENTS_PATH) -> "DeploymentRegistry":
        """Load the generated JSON map. A missing file yields an empty registry."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"No deployments file at {path}")
            return cls()
        return cls.from_mapping(json.loads(path.read_text()))

    @classmethod
    def from_deployments_dir(cls, root: Union[str, Path]) -> "DeploymentRegistry":
        """Scan <root>/<network>/PlantChain.json artifacts. Unreadable ones are skipped."""
        root = Path(root)
        if not root.is_dir():
            logger.warning(f"No deployments directory at {root}")
            return cls()

        deployments = []
        for network_dir in sorted(p for p in root.iterdir() if p.is_dir()):
            artifact = network_dir / CONTRACT_ARTIFACT
            if not artifact.exists():
                continue
            try:
                data = json.loads(artifact.read_text())
                chain_id = data.get("chainId") or KNOWN_NETWORKS.get(network_dir.name) or network_dir.name
                deployments.append(Deployment(
                    chain_id=int(chain_id),
                    address=data["address"],
                    chain_name=network_dir.name,
                ))
            except (ValueError, KeyError) as e:
                logger.warning(f"Skipping deployment {artifact}: {e}")
                continue
        logger.info(f"Found {len(deployments)} ledger deployment(s) under {root}")
        return cls(deployments)
