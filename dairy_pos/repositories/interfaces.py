# ==============================================================================
# INTERFACES DE REPOSITORIOS - PUERTO DE PERSISTENCIA
# ==============================================================================
#
# Este archivo define las interfaces (protocolos) que todos los repositorios
# deben implementar. Esto permite:
#
# 1. INDEPENDENCIA DE ALMACENAMIENTO
#    - Los servicios dependen de interfaces, NO de implementaciones concretas
#    - Archivos JSON (offline) o Supabase (online) con la misma lógica
#
# 2. TESTING
#    - Fácil crear fakes que implementen estas interfaces
#    - Tests de fallos parciales sin tocar la red
#
# 3. AISLAMIENTO POR DUEÑO
#    - Toda operación recibe `owner` (el usuario autenticado o 'local')
#
# Cada escritura devuelve el registro persistido (con id y timestamps)
# para que los servicios puedan reconciliar su estado.
# ==============================================================================

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class IProductRepository(Protocol):
    """Catálogo de productos. Restricción: (owner, name) único."""

    def get_products(self, owner: str) -> List[Dict[str, Any]]:
        ...

    def get_product(self, owner: str, product_id: str) -> Optional[Dict[str, Any]]:
        ...

    def create_product(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update_product(self, owner: str, product_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete_product(self, owner: str, product_id: str) -> None:
        ...


@runtime_checkable
class ICustomerRepository(Protocol):
    """Clientes. Restricción: (owner, phone) único cuando phone no es vacío."""

    def get_customers(self, owner: str) -> List[Dict[str, Any]]:
        ...

    def find_by_phone(self, owner: str, phone: str) -> Optional[Dict[str, Any]]:
        ...

    def create_customer(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update_customer(self, owner: str, customer_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete_customer(self, owner: str, customer_id: str) -> None:
        ...


@runtime_checkable
class IBillRepository(Protocol):
    """Facturas con sus líneas anidadas en `items`."""

    def get_bills(self, owner: str) -> List[Dict[str, Any]]:
        ...

    def get_by_invoice_no(self, owner: str, invoice_no: str) -> Optional[Dict[str, Any]]:
        ...

    def count_bills(self, owner: str) -> int:
        ...

    def create_bill(self, owner: str, header: Dict[str, Any], items: List[Dict[str, Any]]) -> Dict[str, Any]:
        ...

    def delete_bill(self, owner: str, bill_id: str) -> None:
        ...


@runtime_checkable
class IShopRepository(Protocol):
    """Perfil de tienda (uno por dueño)."""

    def get_shop(self, owner: str) -> Dict[str, Any]:
        ...

    def update_shop(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...


@runtime_checkable
class IDeliveryRepository(Protocol):
    """Repartos a domicilio."""

    def get_deliveries(self, owner: str) -> List[Dict[str, Any]]:
        ...

    def create_delivery(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...


@runtime_checkable
class IAuditRepository(Protocol):
    """Registro de actividad."""

    def load(self, owner: str = None) -> List[Dict[str, Any]]:
        ...

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str,
        details: Dict[str, Any]
    ) -> None:
        ...
