# ==============================================================================
# REPOSITORIO DE REPARTOS (modo offline)
# ==============================================================================
# Encapsula todo el acceso a deliveries.json
# ==============================================================================

import os
from typing import Any, Dict, List

from dairy_pos.repositories.base import OwnedListRepository


class DeliveryRepository(OwnedListRepository):
    """Repositorio de repartos de leche a domicilio."""

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'deliveries.json'))

    def get_deliveries(self, owner: str) -> List[Dict[str, Any]]:
        return self.list_for(owner)

    def create_delivery(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.insert(owner, data)

    def replace_all(self, owner: str, records: List[Dict[str, Any]]) -> int:
        return self.replace_for(owner, records)
