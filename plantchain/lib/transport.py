"""
Wallet / execution transport.

The rest of the client talks to the wallet only through WalletTransport:
account request, chain id, client version, generic RPC passthrough and
typed-data signing. JsonRpcWallet is the production implementation: a
local eth-account key plus JSON-RPC over httpx. JsonRpcNode is the same
JSON-RPC client without a key.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx
from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_hex

from ..config import HTTP_TIMEOUT
from .errors import JsonRpcError

logger = logging.getLogger("transport")

ACCOUNT_METHODS = ("eth_requestAccounts", "eth_accounts")


class RpcEndpoint(Protocol):
    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any: ...


class WalletTransport(RpcEndpoint, Protocol):
    rpc_url: str

    async def get_address(self) -> str: ...

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, List[Dict[str, str]]],
        message: Dict[str, Any],
    ) -> str: ...


async def get_chain_id(transport: WalletTransport) -> int:
    """Query eth_chainId and return it as an int."""
    raw = await transport.request("eth_chainId")
    return int(raw, 16) if isinstance(raw, str) else int(raw)


class JsonRpcNode:
    """Plain JSON-RPC client for one node endpoint."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = HTTP_TIMEOUT,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._http_transport = http_transport
        self._request_id = 0

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._http_transport) as client:
                response = await client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as e:
            raise JsonRpcError(method, f"transport error: {e}") from e

        if response.status_code != 200:
            raise JsonRpcError(method, f"HTTP {response.status_code} - {response.text}")

        body = response.json()
        error = body.get("error")
        if error:
            raise JsonRpcError(method, error.get("message", "unknown error"), error.get("code"))

        return body.get("result")


class JsonRpcWallet(JsonRpcNode):
    """
    Wallet backed by a local private key, forwarding everything else to a
    JSON-RPC node.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        timeout: float = HTTP_TIMEOUT,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(rpc_url, timeout, http_transport)
        self._account: LocalAccount = Account.from_key(private_key)

    @property
    def account(self) -> LocalAccount:
        return self._account

    async def get_address(self) -> str:
        return self._account.address

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Send one JSON-RPC call. Account requests are answered by the local key."""
        if method in ACCOUNT_METHODS:
            return [self._account.address]
        return await super().request(method, params)

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, List[Dict[str, str]]],
        message: Dict[str, Any],
    ) -> str:
        """Sign typed structured data (EIP-712) and return the 65-byte signature as hex."""
        signed = self._account.sign_typed_data(
            domain_data=domain,
            message_types=types,
            message_data=message,
        )
        logger.info(f"Typed data signed by {self._account.address}")
        return to_hex(signed.signature)
