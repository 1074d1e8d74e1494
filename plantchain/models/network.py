from pydantic import BaseModel, ConfigDict, Field


class Deployment(BaseModel):
    """One ledger deployment entry (generated from the contract deployments)."""
    chain_id: int = Field(..., alias="chainId")
    address: str
    chain_name: str = Field("", alias="chainName")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class NetworkContext(BaseModel):
    """Active network for a session. Immutable once resolved."""
    chain_id: int
    rpc_endpoint: str
    contract_address: str = Field(..., description="Ledger contract address on this chain")

    model_config = ConfigDict(frozen=True)
