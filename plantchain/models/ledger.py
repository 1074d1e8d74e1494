from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ReasonCode(IntEnum):
    """Why points were credited (stored on-chain with each log entry)."""
    CREATE = 1
    LOG = 2
    TIP = 3

    @property
    def label(self) -> str:
        return REASON_LABELS[self]


REASON_LABELS = {
    ReasonCode.CREATE: "plant created",
    ReasonCode.LOG: "growth log added",
    ReasonCode.TIP: "tipped by another user",
}


def _field(raw: Any, name: str, index: int) -> Any:
    """Read a struct field from a web3 result (named attribute, mapping or tuple)."""
    if isinstance(raw, dict):
        return raw[name]
    if hasattr(raw, name):
        return getattr(raw, name)
    return raw[index]


class PointsLedgerEntry(BaseModel):
    """One append-only points log entry. Amounts are computed by the contract."""
    from_address: str
    amount: int
    reason: ReasonCode
    timestamp: int

    @classmethod
    def from_contract(cls, raw: Any) -> "PointsLedgerEntry":
        return cls(
            from_address=_field(raw, "from", 0),
            amount=int(_field(raw, "amount", 1)),
            reason=ReasonCode(int(_field(raw, "reason", 2))),
            timestamp=int(_field(raw, "timestamp", 3)),
        )


class PlantRecord(BaseModel):
    id: int
    owner: str
    name: str
    species: str
    description: str = ""
    image_cid: str = Field("", description="Content id of the plant photo")
    created_at: int

    @classmethod
    def from_contract(cls, plant_id: int, raw: Any) -> "PlantRecord":
        return cls(
            id=plant_id,
            owner=_field(raw, "owner", 1),
            name=_field(raw, "name", 2),
            species=_field(raw, "species", 3),
            description=_field(raw, "description", 4),
            image_cid=_field(raw, "imageCID", 5),
            created_at=int(_field(raw, "createdAt", 6)),
        )


class GrowthLogEntry(BaseModel):
    log_id: int
    description: str
    image_cid: Optional[str] = None
    timestamp: int

    @classmethod
    def from_contract(cls, raw: Any) -> "GrowthLogEntry":
        return cls(
            log_id=int(_field(raw, "logId", 0)),
            description=_field(raw, "description", 1),
            image_cid=_field(raw, "imageCID", 2) or None,
            timestamp=int(_field(raw, "timestamp", 3)),
        )
