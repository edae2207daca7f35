# ==============================================================================
# REPOSITORIO DE FACTURAS (modo offline)
# ==============================================================================
# Encapsula todo el acceso a bills.json
# Las líneas de cada factura se guardan anidadas en `items`.
# ==============================================================================

import os
from typing import Any, Dict, List, Optional

from dairy_pos.repositories.base import OwnedListRepository, new_id


class BillRepository(OwnedListRepository):
    """
    Repositorio de facturas.

    Formato de datos en bills.json:
    [
        {
            "id": "...",
            "user_id": "local",
            "invoice_no": "GD-2410-0001",
            "customer_id": "...",
            "customer_name": "Walk-in",
            "status": "Paid",
            "subtotal": 90.0,
            "discount": 10.0,
            "total": 80.0,
            "due_date": null,
            "items": [{"product_id": "...", "name": "...", "price": 30, "qty": 3, "total": 90}],
            "created_at": "..."
        }
    ]
    """

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'bills.json'))

    def get_bills(self, owner: str) -> List[Dict[str, Any]]:
        return self.list_for(owner)

    def get_by_invoice_no(self, owner: str, invoice_no: str) -> Optional[Dict[str, Any]]:
        for bill in self.list_for(owner):
            if bill.get('invoice_no') == invoice_no:
                return bill
        return None

    def count_bills(self, owner: str) -> int:
        return len(self.list_for(owner))

    def create_bill(self, owner: str, header: Dict[str, Any], items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Crea una factura con sus líneas (una sola escritura en modo offline).

        Returns:
            Factura persistida con `items`
        """
        record = dict(header)
        record['items'] = [dict(item, id=item.get('id') or new_id()) for item in items]
        return self.insert(owner, record)

    def delete_bill(self, owner: str, bill_id: str) -> None:
        self.remove(owner, bill_id)

    def replace_all(self, owner: str, records: List[Dict[str, Any]]) -> int:
        return self.replace_for(owner, records)
