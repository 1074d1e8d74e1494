"""
Cryptosystem runtime interfaces and the process-wide bootstrapper.

The homomorphic math lives behind CryptosystemRuntime / Cryptosystem. This
module only guarantees that the runtime is fetched once and initialized once
per process, however many coroutines ask for it at the same time.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from ..models.confidential import EIP712AuthorizationMessage
from .errors import LoadError

logger = logging.getLogger("runtime")


class RawEncryptedInput(Protocol):
    """Runtime-level input buffer returned by Cryptosystem.create_encrypted_input."""

    def add32(self, value: int) -> None: ...

    async def encrypt(self) -> Dict[str, Any]:
        """Return {"handles": [handle, ...], "inputProof": proof}."""
        ...


class Cryptosystem(Protocol):
    """Capabilities of a cryptosystem instance, exactly what the client uses."""

    def create_encrypted_input(self, contract_address: str, user_address: str) -> RawEncryptedInput: ...

    async def decrypt_public(self, contract_address: str, handle: str) -> int: ...

    def generate_keypair(self) -> Dict[str, str]: ...

    def create_eip712(
        self,
        public_key: str,
        contract_addresses: List[str],
        start_timestamp: int,
        duration_days: int,
    ) -> EIP712AuthorizationMessage: ...

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
    ) -> Dict[str, int]: ...


class CryptosystemRuntime(Protocol):
    default_config: Dict[str, Any]

    async def init_sdk(self) -> None: ...

    async def create_instance(self, config: Dict[str, Any]) -> Cryptosystem: ...


RuntimeLoader = Callable[[], Awaitable[CryptosystemRuntime]]


class RuntimeBootstrapper:
    """
    Holds the loaded runtime handle and the initialized flag.

    Concurrent callers of ensure_loaded() / ensure_initialized() await the
    same in-flight task. A failed attempt is forgotten so a later call can
    try again; nothing is retried automatically.
    """

    def __init__(self, loader: RuntimeLoader):
        self._loader = loader
        self._runtime: Optional[CryptosystemRuntime] = None
        self._loading: Optional[asyncio.Future] = None
        self._initialized = False
        self._initializing: Optional[asyncio.Future] = None

    @property
    def loaded(self) -> bool:
        return self._runtime is not None

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def ensure_loaded(self) -> CryptosystemRuntime:
        if self._runtime is not None:
            return self._runtime
        if self._loading is None:
            self._loading = asyncio.ensure_future(self._load())
        return await asyncio.shield(self._loading)

    async def ensure_initialized(self) -> CryptosystemRuntime:
        runtime = await self.ensure_loaded()
        if self._initialized:
            return runtime
        if self._initializing is None:
            self._initializing = asyncio.ensure_future(self._initialize(runtime))
        await asyncio.shield(self._initializing)
        return runtime

    async def _load(self) -> CryptosystemRuntime:
        logger.info("Loading cryptosystem runtime")
        try:
            runtime = await self._loader()
        except Exception as e:
            self._loading = None
            logger.error(f"Cryptosystem runtime load failed: {e}")
            if isinstance(e, LoadError):
                raise
            raise LoadError(f"Failed to load cryptosystem runtime: {e}") from e

        self._runtime = runtime
        logger.info("Cryptosystem runtime ready")
        return runtime

    async def _initialize(self, runtime: CryptosystemRuntime) -> None:
        try:
            await runtime.init_sdk()
        except Exception as e:
            self._initializing = None
            logger.error(f"Cryptosystem initialization failed: {e}")
            if isinstance(e, LoadError):
                raise
            raise LoadError(f"Failed to initialize cryptosystem: {e}") from e

        self._initialized = True
        logger.info("Cryptosystem initialized")

    def reset(self) -> None:
        """Forget the runtime and the initialized flag (for testing)."""
        self._runtime = None
        self._loading = None
        self._initialized = False
        self._initializing = None
