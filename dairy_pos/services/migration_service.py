# ==============================================================================
# MIGRACIÓN DE DATOS LOCALES A SUPABASE
# ==============================================================================
# Se ejecuta una sola vez por dueño, la primera vez que inicia sesión en
# modo online. La marca migrations/<owner>.done se escribe solo si todo
# salió bien; si algo falla se reintenta en el próximo inicio de sesión.
#
#   - Sin datos locales: el dueño remoto recibe el catálogo por defecto
#   - Con datos locales: tienda -> productos -> clientes -> facturas
#
# Los ids nuevos de productos y clientes se propagan a las facturas
# migradas (product_id de cada línea, customer_id de la cabecera).
# ==============================================================================

import os
from datetime import datetime
from typing import Any, Dict

from dairy_pos.config import LOCAL_OWNER
from dairy_pos.models import Bill, Customer, Product, ShopProfile
from dairy_pos.repositories.base import RepositoryError
from dairy_pos.services.inventory_service import DEFAULT_PRODUCTS
from dairy_pos.performance_logger import log_error


class MigrationService:
    """
    Copia los datos del modo offline (dueño `local`) a un dueño remoto.

    Uso:
        migration = MigrationService(data_dir, local_repos, remote_repos)
        migration.migrate_local_to_remote(user_id)
    """

    MARKER_DIR_NAME = 'migrations'

    def __init__(
        self,
        data_dir: str,
        local_repos: Dict[str, Any],
        remote_repos: Dict[str, Any],
        audit_service=None,
        local_owner: str = LOCAL_OWNER
    ):
        """
        Args:
            data_dir: Carpeta de datos (donde vive la carpeta de marcas)
            local_repos: Repositorios JSON (shop, products, customers, bills)
            remote_repos: Repositorios Supabase con las mismas claves
            audit_service: Servicio de auditoría (opcional)
            local_owner: Dueño de los datos locales
        """
        self.marker_dir = os.path.join(data_dir, self.MARKER_DIR_NAME)
        self.local = local_repos
        self.remote = remote_repos
        self.audit_service = audit_service
        self.local_owner = local_owner

    def _marker_path(self, owner: str) -> str:
        safe = ''.join(ch for ch in owner if ch.isalnum() or ch in '-_')
        return os.path.join(self.marker_dir, f"{safe}.done")

    def is_migrated(self, owner: str) -> bool:
        return os.path.exists(self._marker_path(owner))

    def _mark_done(self, owner: str) -> None:
        os.makedirs(self.marker_dir, exist_ok=True)
        with open(self._marker_path(owner), 'w', encoding='utf-8') as f:
            f.write(datetime.now().isoformat())

    def migrate_local_to_remote(self, owner: str) -> Dict[str, Any]:
        """
        Migra los datos locales al dueño remoto (una sola vez).

        Returns:
            Dict con ok y message (o error si falló)
        """
        if self.is_migrated(owner):
            # Un catálogo remoto vacío es decisión del dueño: no se vuelve a sembrar
            return {'ok': True, 'message': 'Data already migrated'}

        try:
            products = self.local['products'].get_products(self.local_owner)
            customers = self.local['customers'].get_customers(self.local_owner)
            bills = self.local['bills'].get_bills(self.local_owner)

            if not products and not customers and not bills:
                self.remote['products'].create_products(owner, [dict(p) for p in reversed(DEFAULT_PRODUCTS)])
                self._mark_done(owner)
                return {'ok': True, 'message': 'Initialized with default products'}

            counts = self._copy(owner, products, customers, bills)
            self._mark_done(owner)
        except (RepositoryError, OSError) as e:
            log_error('migration', e, owner)
            return {'ok': False, 'error': str(e)}

        if self.audit_service:
            self.audit_service.log_migration(owner, counts)
        return {'ok': True, 'message': 'Migration completed successfully', 'counts': counts}

    def _copy(self, owner: str, products, customers, bills) -> Dict[str, int]:
        """Copia en orden: tienda, productos, clientes, facturas."""
        shop = ShopProfile.from_dict(self.local['shop'].get_shop(self.local_owner))
        self.remote['shop'].update_shop(owner, shop.to_dict())

        # Se insertan del más antiguo al más reciente para conservar el orden
        product_ids = {}
        for raw in reversed(products):
            data = Product.from_dict(raw).to_dict()
            old_id = data.pop('id')
            product_ids[old_id] = self.remote['products'].create_product(owner, data)['id']

        customer_ids = {}
        for raw in reversed(customers):
            data = Customer.from_dict(raw).to_dict()
            old_id = data.pop('id')
            if not data.get('created_at'):
                data.pop('created_at')
            customer_ids[old_id] = self.remote['customers'].create_customer(owner, data)['id']

        for raw in reversed(bills):
            bill = Bill.from_dict(raw)
            header = bill.header_dict()
            header.pop('id')
            if not header.get('created_at'):
                header.pop('created_at')
            header['customer_id'] = customer_ids.get(header['customer_id'], header['customer_id'])
            items = []
            for item in bill.items:
                row = item.to_dict()
                row['product_id'] = product_ids.get(row['product_id'], row['product_id'])
                items.append(row)
            self.remote['bills'].create_bill(owner, header, items)

        return {
            'products': len(products),
            'customers': len(customers),
            'bills': len(bills),
        }
