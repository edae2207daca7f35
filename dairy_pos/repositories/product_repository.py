# ==============================================================================
# REPOSITORIO DE PRODUCTOS (modo offline)
# ==============================================================================
# Encapsula todo el acceso a products.json
# Los productos se almacenan como lista etiquetada por dueño (user_id).
# ==============================================================================

import os
from typing import Any, Dict, List, Optional

from dairy_pos.repositories.base import OwnedListRepository, DuplicateRecordError


class ProductRepository(OwnedListRepository):
    """
    Repositorio para el catálogo de productos.

    Formato de datos en products.json:
    [
        {
            "id": "a1b2c3d4e5f6",
            "user_id": "local",
            "name": "Pure Desi Ghee",
            "category": "Ghee",
            "qty": 20,
            "low_at": 5,
            "price": null,
            "unit_type": "Kg",
            "unit_price": 900,
            ...
        }
    ]
    """

    def __init__(self, base_path: str):
        """
        Args:
            base_path: Directorio de datos
        """
        super().__init__(os.path.join(base_path, 'products.json'))

    def _check_unique(self, owner: str, record: Dict[str, Any], exclude_id: str = None) -> None:
        name = (record.get('name') or '').strip().lower()
        for other in self.list_for(owner):
            if other.get('id') in (exclude_id, record.get('id')):
                continue
            if (other.get('name') or '').strip().lower() == name:
                raise DuplicateRecordError(f"A product named '{record.get('name')}' already exists.")

    def get_products(self, owner: str) -> List[Dict[str, Any]]:
        return self.list_for(owner)

    def get_product(self, owner: str, product_id: str) -> Optional[Dict[str, Any]]:
        return self.get_for(owner, product_id)

    def create_product(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.insert(owner, data)

    def update_product(self, owner: str, product_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.modify(owner, product_id, data)

    def delete_product(self, owner: str, product_id: str) -> None:
        self.remove(owner, product_id)

    def replace_all(self, owner: str, records: List[Dict[str, Any]]) -> int:
        return self.replace_for(owner, records)
