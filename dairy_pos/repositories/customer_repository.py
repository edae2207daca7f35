# ==============================================================================
# REPOSITORIO DE CLIENTES (modo offline)
# ==============================================================================
# Encapsula todo el acceso a customers.json
# ==============================================================================

import os
from typing import Any, Dict, List, Optional

from dairy_pos.repositories.base import OwnedListRepository, DuplicateRecordError


class CustomerRepository(OwnedListRepository):
    """
    Repositorio de clientes.
    El teléfono (cuando no es vacío) es único por dueño.
    """

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'customers.json'))

    def _check_unique(self, owner: str, record: Dict[str, Any], exclude_id: str = None) -> None:
        phone = (record.get('phone') or '').strip()
        if not phone:
            return
        for other in self.list_for(owner):
            if other.get('id') in (exclude_id, record.get('id')):
                continue
            if (other.get('phone') or '').strip() == phone:
                raise DuplicateRecordError('Customer with this phone already exists.')

    def get_customers(self, owner: str) -> List[Dict[str, Any]]:
        return self.list_for(owner)

    def find_by_phone(self, owner: str, phone: str) -> Optional[Dict[str, Any]]:
        """
        Busca un cliente por teléfono.

        Returns:
            Cliente o None (un teléfono vacío nunca coincide)
        """
        if not phone:
            return None
        for record in self.list_for(owner):
            if record.get('phone') == phone:
                return record
        return None

    def create_customer(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.insert(owner, data)

    def update_customer(self, owner: str, customer_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.modify(owner, customer_id, data)

    def delete_customer(self, owner: str, customer_id: str) -> None:
        self.remove(owner, customer_id)

    def replace_all(self, owner: str, records: List[Dict[str, Any]]) -> int:
        return self.replace_for(owner, records)
