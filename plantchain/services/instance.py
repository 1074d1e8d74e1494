"""
Confidential instance factory.

create_instance(transport, network):
1. detect mock vs relay on the wallet transport
2. mock  -> MockCryptosystem against the dev node's co-processor (JSON-RPC)
   relay -> load + init the global runtime once, then runtime.create_instance
3. cache the instance for the chain id (a new chain id replaces it);
   concurrent calls for the same network share one build
"""
import asyncio
import logging
from typing import Callable, Dict, Optional

from ..config import RPC_URL
from ..lib.environment import Environment, MockEnvironment, detect_mode
from ..lib.runtime import RuntimeBootstrapper
from ..lib.transport import WalletTransport
from ..models.confidential import ConfidentialInstance, CryptosystemMode
from ..models.network import NetworkContext
from .mock import Coprocessor, MockCryptosystem, NodeCoprocessor
from .relayer import fetch_relayer_runtime

logger = logging.getLogger("instance")

default_bootstrapper = RuntimeBootstrapper(fetch_relayer_runtime)


class ConfidentialInstanceFactory:

    def __init__(
        self,
        bootstrapper: Optional[RuntimeBootstrapper] = None,
        coprocessor_for: Callable[[WalletTransport, int], Coprocessor] = NodeCoprocessor,
    ):
        self.bootstrapper = bootstrapper or default_bootstrapper
        self._coprocessor_for = coprocessor_for
        self._instances: Dict[int, ConfidentialInstance] = {}
        self._pending: Dict[NetworkContext, asyncio.Future] = {}

    def cached(self, chain_id: int) -> Optional[ConfidentialInstance]:
        return self._instances.get(chain_id)

    def invalidate(self, chain_id: Optional[int] = None) -> None:
        if chain_id is None:
            self._instances.clear()
        else:
            self._instances.pop(chain_id, None)

    async def create_instance(self, transport: WalletTransport, network: NetworkContext) -> ConfidentialInstance:
        """Return the instance for `network`; concurrent calls for one network share a build."""
        cached = self._instances.get(network.chain_id)
        if cached is not None and cached.network == network:
            return cached

        if network not in self._pending:
            self._pending[network] = asyncio.ensure_future(self._build(transport, network))
        try:
            instance = await asyncio.shield(self._pending[network])
        finally:
            self._pending.pop(network, None)

        # One live instance: switching chains drops the previous one
        self._instances = {network.chain_id: instance}
        return instance

    async def _build(self, transport: WalletTransport, network: NetworkContext) -> ConfidentialInstance:
        environment: Environment = await detect_mode(transport)

        if isinstance(environment, MockEnvironment):
            cryptosystem = MockCryptosystem(
                rpc_url=getattr(transport, "rpc_url", None) or RPC_URL,
                chain_id=network.chain_id,
                metadata=environment.metadata,
                coprocessor=self._coprocessor_for(transport, network.chain_id),
            )
            logger.info(f"Mock confidential instance created for chain {network.chain_id}")
            return ConfidentialInstance(
                network=network,
                mode=CryptosystemMode.MOCK,
                initialized=False,
                cryptosystem=cryptosystem,
            )

        runtime = await self.bootstrapper.ensure_initialized()
        cryptosystem = await runtime.create_instance({**runtime.default_config, "network": transport})
        logger.info(f"Relayer confidential instance created for chain {network.chain_id}")
        return ConfidentialInstance(
            network=network,
            mode=CryptosystemMode.RELAY,
            initialized=self.bootstrapper.initialized,
            cryptosystem=cryptosystem,
        )


default_factory = ConfidentialInstanceFactory()
