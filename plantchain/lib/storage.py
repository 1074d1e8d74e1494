"""
Content-addressed storage interface (plant photos).

Uploading is owned by an external service; this client only needs the
interface and gateway URL resolution for stored content ids.
"""
from typing import Optional, Protocol

from ..config import IPFS_GATEWAY


class ContentStore(Protocol):
    async def upload(self, data: bytes, filename: str) -> str: ...

    def resolve(self, content_id: str) -> str: ...


def gateway_url(content_id: Optional[str], gateway: str = IPFS_GATEWAY) -> Optional[str]:
    """Map a content id (bare CID or ipfs:// URI) to an HTTP gateway URL."""
    if not content_id:
        return None
    if content_id.startswith(("http://", "https://")):
        return content_id
    cid = content_id[len("ipfs://"):] if content_id.startswith("ipfs://") else content_id
    return f"{gateway.rstrip('/')}/{cid}"
