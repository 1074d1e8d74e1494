"""
Plant records: creation, growth logs, NFT minting and typed reads.
"""
import logging
from typing import List, Optional

from ..lib.storage import gateway_url
from ..models.ledger import GrowthLogEntry, PlantRecord
from .ledger import LedgerBinding

logger = logging.getLogger("plants")


class PlantClient(LedgerBinding):

    async def create_plant(self, name: str, species: str, description: str = "", image_cid: str = "") -> str:
        if not name or not species:
            raise ValueError("Plant name and species are required")
        network = self.network()
        pending = await self.ledger(network).create_plant(name, species, description, image_cid)
        await pending.wait()
        logger.info(f"Plant '{name}' created: {pending.tx_hash}")
        return pending.tx_hash

    async def add_growth_log(self, plant_id: int, description: str, image_cid: str = "") -> str:
        if not description:
            raise ValueError("Growth log description is required")
        network = self.network()
        pending = await self.ledger(network).add_growth_log(plant_id, description, image_cid)
        await pending.wait()
        logger.info(f"Growth log added to plant {plant_id}: {pending.tx_hash}")
        return pending.tx_hash

    async def mint_plant_nft(self, plant_id: int) -> str:
        network = self.network()
        pending = await self.ledger(network).mint_plant_nft(plant_id)
        await pending.wait()
        logger.info(f"Plant {plant_id} minted: {pending.tx_hash}")
        return pending.tx_hash

    async def get_plant(self, plant_id: int) -> PlantRecord:
        raw = await self.ledger(self.network()).get_plant(plant_id)
        return PlantRecord.from_contract(plant_id, raw)

    async def get_growth_logs(self, plant_id: int) -> List[GrowthLogEntry]:
        raw = await self.ledger(self.network()).get_growth_logs(plant_id)
        return [GrowthLogEntry.from_contract(entry) for entry in raw]

    async def get_my_plants(self, owner: Optional[str] = None) -> List[int]:
        network = self.network()
        owner = owner or await self.transport.get_address()
        return list(await self.ledger(network).get_my_plants(owner))

    async def plant_minted(self, plant_id: int) -> bool:
        return await self.ledger(self.network()).plant_minted(plant_id)

    @staticmethod
    def image_url(record: PlantRecord) -> Optional[str]:
        return gateway_url(record.image_cid)
