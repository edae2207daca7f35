# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio de la aplicación.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Aplican reglas de negocio y validaciones
# 3. Las rutas solo llaman a servicios
# 4. Los servicios NO conocen el tipo de almacenamiento (JSON/Supabase)
#
# ESTRUCTURA:
# ├── units.py             → Parseo y conversión de cantidades (g/kg, ml/l)
# ├── inventory_service.py → Productos, stock, catálogo por defecto
# ├── customer_service.py  → Clientes (teléfono único por dueño)
# ├── cart_service.py      → Carrito en sesión
# ├── bill_service.py      → Facturas y numeración
# ├── checkout_service.py  → Carrito -> factura -> stock
# ├── invoice_pdf.py       → PDF de la factura (reportlab)
# ├── messaging_service.py → Enlaces de WhatsApp
# ├── stats_service.py     → Panel principal
# ├── delivery_service.py  → Repartos
# ├── shop_service.py      → Perfil de tienda
# ├── backup_service.py    → Backups ZIP y exportar/importar
# ├── migration_service.py → Datos locales -> Supabase
# ├── auth_service.py      → Supabase Auth
# └── audit_service.py     → Logs de actividad
# ==============================================================================

from dairy_pos.services.audit_service import AuditService
from dairy_pos.services.inventory_service import InventoryService
from dairy_pos.services.customer_service import CustomerService
from dairy_pos.services.cart_service import CartService
from dairy_pos.services.bill_service import BillService, gen_invoice_number
from dairy_pos.services.checkout_service import CheckoutService
from dairy_pos.services.messaging_service import MessagingService
from dairy_pos.services.stats_service import StatsService
from dairy_pos.services.delivery_service import DeliveryService
from dairy_pos.services.shop_service import ShopService
from dairy_pos.services.backup_service import BackupService, run_startup_backup
from dairy_pos.services.migration_service import MigrationService
from dairy_pos.services.auth_service import AuthService

__all__ = [
    'AuditService',
    'InventoryService',
    'CustomerService',
    'CartService',
    'BillService',
    'gen_invoice_number',
    'CheckoutService',
    'MessagingService',
    'StatsService',
    'DeliveryService',
    'ShopService',
    'BackupService',
    'run_startup_backup',
    'MigrationService',
    'AuthService',
]
