# ==============================================================================
# SERVICIO DE INVENTARIO
# ==============================================================================
# Centraliza toda la lógica de negocio relacionada con productos y stock.
# Cada producto tiene exactamente un modo de precio: fijo por pieza o por
# unidad (Kg | Litre). El stock de los productos por unidad está en la
# unidad base (kg o litros).
# ==============================================================================

from typing import Any, Dict, List, Optional, Tuple

from dairy_pos.models import Product, UnitType, DEFAULT_LOW_AT, parse_num, with_stock
from dairy_pos.repositories.base import RepositoryError, DuplicateRecordError
from dairy_pos.repositories.interfaces import IProductRepository
from dairy_pos.services.audit_service import AuditService
from dairy_pos.performance_logger import log_error


# Catálogo inicial de un dueño nuevo
DEFAULT_PRODUCTS = [
    {'name': 'Fresh Milk', 'category': 'Milk', 'description': 'Farm fresh cow milk',
     'unit_type': 'Litre', 'unit_price': 60, 'qty': 80, 'low_at': 10},
    {'name': 'Pure Desi Ghee', 'category': 'Ghee', 'description': 'Traditional bilona ghee',
     'unit_type': 'Kg', 'unit_price': 900, 'qty': 20, 'low_at': 5},
    {'name': 'Fresh Paneer', 'category': 'Paneer', 'description': 'Soft malai paneer',
     'unit_type': 'Kg', 'unit_price': 450, 'qty': 30, 'low_at': 6},
    {'name': 'Rasgulla (tin)', 'category': 'Sweets', 'description': '1 kg tin',
     'price': 180, 'qty': 15, 'low_at': 4},
    {'name': 'Milk Packet (500ml)', 'category': 'Milk', 'description': 'Toned milk packet',
     'price': 30, 'qty': 100, 'low_at': 10},
]


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def low_stock(products: List[Product]) -> List[Product]:
    """Productos con stock en o bajo su umbral."""
    return [p for p in products if p.is_low_stock]


def search(products: List[Product], query: str) -> List[Product]:
    """Búsqueda sin distinguir mayúsculas en nombre, categoría y descripción."""
    q = (query or '').strip().lower()
    if not q:
        return list(products)
    return [
        p for p in products
        if q in p.name.lower() or q in p.category.lower() or q in p.description.lower()
    ]


class InventoryService:
    """
    Servicio para gestión del catálogo.

    Responsabilidades:
    - CRUD de productos (con validación del modo de precio)
    - Actualización de stock en el checkout
    - Stock bajo y búsqueda
    - Catálogo por defecto
    """

    def __init__(self, product_repo: IProductRepository, audit_service: AuditService = None):
        """
        Args:
            product_repo: Repositorio de productos
            audit_service: Servicio de auditoría (opcional)
        """
        self.product_repo = product_repo
        self.audit_service = audit_service

    # =========================================================================
    # LECTURA
    # =========================================================================

    def list_products(self, owner: str) -> List[Product]:
        return [Product.from_dict(p) for p in self.product_repo.get_products(owner)]

    def get_product(self, owner: str, product_id: str) -> Optional[Product]:
        """
        Obtiene un producto por su ID.

        Returns:
            Producto o None si no existe
        """
        data = self.product_repo.get_product(owner, product_id)
        return Product.from_dict(data) if data else None

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    def validate_form(self, form: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """
        Valida los datos del formulario de producto.

        Args:
            form: name, category, description, qty, low_at, y price o
                  unit_type + unit_price

        Returns:
            Tupla (datos normalizados, None) o (None, mensaje de error)
        """
        name = (form.get('name') or '').strip()
        if not name:
            return None, 'Product name is required.'

        qty = parse_num(form.get('qty', 0))
        if qty < 0:
            return None, 'Stock cannot be negative.'

        low_raw = form.get('low_at', form.get('lowAt'))
        low_at = DEFAULT_LOW_AT if _blank(low_raw) else parse_num(low_raw)

        unit_type_raw = form.get('unit_type', form.get('unitType'))
        price_raw = form.get('price')

        data = {
            'name': name,
            'category': (form.get('category') or '').strip(),
            'description': (form.get('description') or '').strip(),
            'qty': qty,
            'low_at': low_at,
        }

        if not _blank(unit_type_raw):
            try:
                unit_type = UnitType(str(unit_type_raw).strip())
            except ValueError:
                return None, 'Unit type must be Kg or Litre.'
            if not _blank(price_raw) and _blank(form.get('unit_price', form.get('unitPrice'))):
                # Formulario antiguo: el precio era el precio por unidad
                unit_price = parse_num(price_raw)
            elif not _blank(price_raw):
                return None, 'A product has either a fixed price or a unit price, not both.'
            else:
                unit_price = parse_num(form.get('unit_price', form.get('unitPrice')))
            if unit_price <= 0:
                return None, 'Unit price must be greater than 0.'
            data.update(price=None, unit_type=unit_type.value, unit_price=unit_price)
        else:
            price = parse_num(price_raw)
            if price < 0:
                return None, 'Price cannot be negative.'
            data.update(price=price, unit_type=None, unit_price=None)

        return data, None

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def save_product(self, owner: str, form: Dict[str, Any], product_id: str = None) -> Dict[str, Any]:
        """
        Crea o actualiza un producto.

        Args:
            owner: Dueño del catálogo
            form: Datos del formulario
            product_id: ID a actualizar (None = crear)

        Returns:
            Dict con ok, product o error
        """
        data, error = self.validate_form(form)
        if error:
            return {'ok': False, 'error': error}

        try:
            if product_id:
                saved = self.product_repo.update_product(owner, product_id, data)
            else:
                saved = self.product_repo.create_product(owner, data)
        except DuplicateRecordError as e:
            return {'ok': False, 'error': str(e)}
        except RepositoryError as e:
            log_error('product:save', e, owner)
            return {'ok': False, 'error': str(e), 'error_type': 'persistence'}

        product = Product.from_dict(saved)
        if self.audit_service:
            self.audit_service.log_product_saved(owner, product.id, product.name, created=not product_id)
        return {'ok': True, 'product': product.to_dict()}

    def delete_product(self, owner: str, product_id: str) -> Dict[str, Any]:
        product = self.get_product(owner, product_id)
        if product is None:
            return {'ok': False, 'error': 'Product not found'}
        try:
            self.product_repo.delete_product(owner, product_id)
        except RepositoryError as e:
            log_error('product:delete', e, owner)
            return {'ok': False, 'error': str(e), 'error_type': 'persistence'}
        if self.audit_service:
            self.audit_service.log_product_deleted(owner, product_id, product.name)
        return {'ok': True}

    def set_stock(self, owner: str, product: Product, new_qty: float) -> Product:
        """
        Guarda el nuevo stock de un producto (nunca negativo).

        Raises:
            RepositoryError: Si la escritura falla
        """
        updated = with_stock(product, new_qty)
        saved = self.product_repo.update_product(owner, product.id, {'qty': updated.qty})
        return Product.from_dict(saved)

    def seed_defaults(self, owner: str) -> List[Product]:
        """
        Carga el catálogo por defecto.

        Raises:
            RepositoryError: Si la escritura falla
        """
        return [
            Product.from_dict(self.product_repo.create_product(owner, dict(p)))
            for p in reversed(DEFAULT_PRODUCTS)
        ]

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_low_stock_products(self, owner: str) -> List[Product]:
        return low_stock(self.list_products(owner))

    def search_products(self, owner: str, query: str) -> List[Product]:
        return search(self.list_products(owner), query)
