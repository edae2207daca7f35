# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la persistencia. Dos backends con
# las mismas interfaces:
#   - Archivos JSON (modo offline, dueño implícito 'local')
#   - Supabase (modo online, un dueño por usuario autenticado)
#
# ESTRUCTURA:
# ├── interfaces.py            → Protocolos (contratos de ambos backends)
# ├── base.py                  → Clases base JSON y errores de persistencia
# ├── product_repository.py    → products.json
# ├── customer_repository.py   → customers.json
# ├── bill_repository.py       → bills.json (líneas anidadas)
# ├── shop_repository.py       → shops.json
# ├── delivery_repository.py   → deliveries.json
# ├── audit_repository.py      → audit.json (siempre local)
# └── supabase_repository.py   → Tablas de Supabase
# ==============================================================================

from .interfaces import (
    IProductRepository,
    ICustomerRepository,
    IBillRepository,
    IShopRepository,
    IDeliveryRepository,
    IAuditRepository,
)

from .base import (
    RepositoryError,
    DuplicateRecordError,
    BaseRepository,
    ListRepository,
    OwnedListRepository,
)
from .product_repository import ProductRepository
from .customer_repository import CustomerRepository
from .bill_repository import BillRepository
from .shop_repository import ShopRepository
from .delivery_repository import DeliveryRepository
from .audit_repository import AuditRepository

__all__ = [
    # Interfaces
    'IProductRepository',
    'ICustomerRepository',
    'IBillRepository',
    'IShopRepository',
    'IDeliveryRepository',
    'IAuditRepository',

    # Errores y clases base
    'RepositoryError',
    'DuplicateRecordError',
    'BaseRepository',
    'ListRepository',
    'OwnedListRepository',

    # Implementaciones JSON
    'ProductRepository',
    'CustomerRepository',
    'BillRepository',
    'ShopRepository',
    'DeliveryRepository',
    'AuditRepository',
]
