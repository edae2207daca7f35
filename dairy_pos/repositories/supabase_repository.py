# ==============================================================================
# REPOSITORIOS SUPABASE (modo online)
# ==============================================================================
# Implementan las mismas interfaces que los repositorios JSON usando el
# cliente de Supabase. Tablas: products, customers, bills, bill_items,
# shops, deliveries; todas con columna user_id.
#
# Los repositorios no guardan un cliente: lo piden en cada consulta, y el
# contenedor entrega uno por petición con el token del usuario de la sesión.
#
# NOTA: create_bill hace dos llamadas (factura, luego líneas). No es una
# transacción: si la segunda falla la cabecera queda guardada.
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from dairy_pos.models import ShopProfile
from dairy_pos.repositories.base import RepositoryError, DuplicateRecordError, new_id, now_iso


# Código de Postgres para violación de unicidad
UNIQUE_VIOLATION = '23505'


def build_client(url: str, key: str, access_token: str = None) -> Client:
    """
    Crea un cliente de Supabase nuevo. Con access_token las consultas a
    tablas van autenticadas como ese usuario (row level security).
    """
    client = create_client(url, key)
    if access_token:
        client.postgrest.auth(access_token)
    return client


class SupabaseTable:
    """Base común: ejecuta consultas y traduce errores del cliente."""

    TABLE = ''

    def __init__(self, client_provider: Callable[[], Client]):
        """
        Args:
            client_provider: Devuelve el cliente de la petición en curso,
                autenticado con el token del usuario
        """
        self._client_provider = client_provider

    @property
    def client(self) -> Client:
        return self._client_provider()

    def _table(self, name: str = None):
        return self.client.table(name or self.TABLE)

    def _execute(self, query):
        try:
            return query.execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateRecordError(e.message or str(e)) from e
            raise RepositoryError(e.message or str(e)) from e
        except httpx.HTTPError as e:
            raise RepositoryError(f"Supabase unreachable: {e}") from e

    def _list(self, owner: str) -> List[Dict[str, Any]]:
        resp = self._execute(
            self._table()
            .select('*')
            .eq('user_id', owner)
            .order('created_at', desc=True)
        )
        return resp.data or []

    def _get(self, owner: str, record_id: str) -> Optional[Dict[str, Any]]:
        resp = self._execute(
            self._table()
            .select('*')
            .eq('user_id', owner)
            .eq('id', record_id)
            .limit(1)
        )
        return resp.data[0] if resp.data else None

    def _insert(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ts = now_iso()
        row = dict(data)
        row['id'] = row.get('id') or new_id()
        row['user_id'] = owner
        row.setdefault('created_at', ts)
        row['updated_at'] = ts
        resp = self._execute(self._table().insert(row))
        if not resp.data:
            raise RepositoryError(f"Insert into {self.TABLE} returned no data")
        return resp.data[0]

    def _update(self, owner: str, record_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        changes = {k: v for k, v in data.items() if k not in ('id', 'user_id')}
        changes['updated_at'] = now_iso()
        resp = self._execute(
            self._table()
            .update(changes)
            .eq('id', record_id)
            .eq('user_id', owner)
        )
        if not resp.data:
            raise RepositoryError(f"Record {record_id} not found")
        return resp.data[0]

    def _delete(self, owner: str, record_id: str) -> None:
        self._execute(
            self._table()
            .delete()
            .eq('id', record_id)
            .eq('user_id', owner)
        )


class SupabaseProductRepository(SupabaseTable):
    TABLE = 'products'

    def get_products(self, owner: str) -> List[Dict[str, Any]]:
        return self._list(owner)

    def get_product(self, owner: str, product_id: str) -> Optional[Dict[str, Any]]:
        return self._get(owner, product_id)

    def create_product(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert(owner, data)

    def create_products(self, owner: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Inserción masiva (catálogo por defecto de un dueño nuevo)."""
        ts = now_iso()
        payload = [
            dict(r, id=r.get('id') or new_id(), user_id=owner, created_at=ts, updated_at=ts)
            for r in rows
        ]
        resp = self._execute(self._table().insert(payload))
        return resp.data or []

    def update_product(self, owner: str, product_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._update(owner, product_id, data)

    def delete_product(self, owner: str, product_id: str) -> None:
        self._delete(owner, product_id)


class SupabaseCustomerRepository(SupabaseTable):
    TABLE = 'customers'

    def get_customers(self, owner: str) -> List[Dict[str, Any]]:
        return self._list(owner)

    def find_by_phone(self, owner: str, phone: str) -> Optional[Dict[str, Any]]:
        if not phone:
            return None
        resp = self._execute(
            self._table()
            .select('*')
            .eq('user_id', owner)
            .eq('phone', phone)
            .limit(1)
        )
        return resp.data[0] if resp.data else None

    def create_customer(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert(owner, data)

    def update_customer(self, owner: str, customer_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._update(owner, customer_id, data)

    def delete_customer(self, owner: str, customer_id: str) -> None:
        self._delete(owner, customer_id)


class SupabaseBillRepository(SupabaseTable):
    TABLE = 'bills'
    ITEMS_TABLE = 'bill_items'

    @staticmethod
    def _with_items(bill: Dict[str, Any]) -> Dict[str, Any]:
        bill = dict(bill)
        bill['items'] = bill.pop('bill_items', None) or bill.get('items') or []
        return bill

    def get_bills(self, owner: str) -> List[Dict[str, Any]]:
        resp = self._execute(
            self._table()
            .select('*, bill_items(*)')
            .eq('user_id', owner)
            .order('created_at', desc=True)
        )
        return [self._with_items(b) for b in (resp.data or [])]

    def get_by_invoice_no(self, owner: str, invoice_no: str) -> Optional[Dict[str, Any]]:
        resp = self._execute(
            self._table()
            .select('*, bill_items(*)')
            .eq('user_id', owner)
            .eq('invoice_no', invoice_no)
            .limit(1)
        )
        return self._with_items(resp.data[0]) if resp.data else None

    def count_bills(self, owner: str) -> int:
        resp = self._execute(
            self._table()
            .select('id', count='exact')
            .eq('user_id', owner)
        )
        if resp.count is not None:
            return resp.count
        return len(resp.data or [])

    def create_bill(self, owner: str, header: Dict[str, Any], items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Inserta la cabecera y luego las líneas (dos llamadas).

        Returns:
            Factura persistida con `items`
        """
        bill = self._insert(owner, header)
        ts = now_iso()
        rows = [
            dict(item, id=item.get('id') or new_id(), bill_id=bill['id'], user_id=owner, created_at=ts)
            for item in items
        ]
        created_items = []
        if rows:
            resp = self._execute(self._table(self.ITEMS_TABLE).insert(rows))
            created_items = resp.data or []
        bill['items'] = created_items
        return bill

    def delete_bill(self, owner: str, bill_id: str) -> None:
        # Primero las líneas (llave foránea)
        self._execute(
            self._table(self.ITEMS_TABLE)
            .delete()
            .eq('bill_id', bill_id)
            .eq('user_id', owner)
        )
        self._delete(owner, bill_id)


class SupabaseShopRepository(SupabaseTable):
    TABLE = 'shops'

    def get_shop(self, owner: str) -> Dict[str, Any]:
        resp = self._execute(
            self._table()
            .select('*')
            .eq('user_id', owner)
            .limit(1)
        )
        return resp.data[0] if resp.data else ShopProfile().to_dict()

    def update_shop(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        row = ShopProfile.from_dict(data).to_dict()
        row['user_id'] = owner
        row['updated_at'] = now_iso()
        resp = self._execute(self._table().upsert(row, on_conflict='user_id'))
        return resp.data[0] if resp.data else row


class SupabaseDeliveryRepository(SupabaseTable):
    TABLE = 'deliveries'

    def get_deliveries(self, owner: str) -> List[Dict[str, Any]]:
        return self._list(owner)

    def create_delivery(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert(owner, data)
