# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio de la lechería.
# Diseñadas para ser independientes del mecanismo de persistencia
# (archivos JSON en modo offline, Supabase en modo online).
#
# Las claves de persistencia siguen las columnas de Supabase (snake_case).
# from_dict() acepta también las claves camelCase del formato antiguo
# (respaldo JSON del navegador) para poder importar datos legacy.
# ==============================================================================

from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Any, Union
from enum import Enum


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class UnitType(str, Enum):
    """Tipo de unidad base de un producto vendido por peso/volumen."""
    KG = "Kg"
    LITRE = "Litre"


class BillStatus(str, Enum):
    """Estados posibles de una factura."""
    PAID = "Paid"
    PENDING = "Pending"


# Unidad base y sub-unidad de cada tipo
BASE_UNITS = {UnitType.KG: 'kg', UnitType.LITRE: 'l'}
SUB_UNITS = {UnitType.KG: 'g', UnitType.LITRE: 'ml'}

# Etiquetas de religión ofrecidas en el formulario de clientes
RELIGION_TAGS = ('Hindu', 'Muslim', 'Christian', 'Sikh', 'Other')

DEFAULT_LOW_AT = 5
WALK_IN_NAME = 'Walk-in'


def parse_num(value: Any) -> float:
    """Convierte a número; cualquier valor no numérico vale 0."""
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0.0
    if num != num or num in (float('inf'), float('-inf')):
        return 0.0
    return num


def _unit_type_or_none(value: Any) -> Optional[UnitType]:
    if not value:
        return None
    try:
        return UnitType(value)
    except ValueError:
        return None


# ==============================================================================
# PRODUCTOS
# ==============================================================================

@dataclass
class Product:
    """
    Producto del catálogo.

    Modo de precio (exactamente uno):
    - Precio fijo: `price` por pieza, `unit_type` y `unit_price` vacíos.
    - Precio por unidad: `unit_type` (Kg | Litre) y `unit_price` por kg/litro.

    Attributes:
        id: Identificador único
        name: Nombre (único por dueño)
        category: Categoría libre (Milk, Ghee, Paneer, ...)
        description: Descripción
        qty: Stock (en unidades base para productos por peso/volumen)
        low_at: Umbral de stock bajo
    """
    id: str
    name: str
    category: str = ''
    description: str = ''
    qty: float = 0
    low_at: float = DEFAULT_LOW_AT
    price: Optional[float] = None
    unit_type: Optional[UnitType] = None
    unit_price: Optional[float] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self):
        if self.unit_type is not None and self.price is not None:
            raise ValueError(f"Product '{self.name}' cannot have both a fixed price and a unit price")
        if self.unit_type is not None and self.unit_price is None:
            raise ValueError(f"Product '{self.name}' needs a unit price")

    @property
    def is_unit_based(self) -> bool:
        return self.unit_type is not None

    @property
    def is_low_stock(self) -> bool:
        return self.qty <= self.low_at

    @property
    def display_price(self) -> float:
        """Precio mostrado en catálogo (por pieza o por unidad base)."""
        return self.unit_price if self.is_unit_based else (self.price or 0.0)

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia."""
        d = {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'description': self.description,
            'qty': self.qty,
            'low_at': self.low_at,
            'price': self.price,
            'unit_type': self.unit_type.value if self.unit_type else None,
            'unit_price': self.unit_price,
        }
        if self.created_at:
            d['created_at'] = self.created_at
        if self.updated_at:
            d['updated_at'] = self.updated_at
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        """
        Crea instancia desde diccionario.
        Registros legacy con `price` y `unitType` a la vez se leen como
        productos por unidad (el `price` era solo compatibilidad).
        """
        unit_type = _unit_type_or_none(data.get('unit_type') or data.get('unitType'))
        unit_price = data.get('unit_price', data.get('unitPrice'))
        low_at = data.get('low_at', data.get('lowAt'))
        if unit_type is not None:
            price = None
            if unit_price is None:
                unit_price = data.get('price', 0)
            unit_price = parse_num(unit_price)
        else:
            price = parse_num(data.get('price', 0))
            unit_price = None
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', ''),
            category=data.get('category') or '',
            description=data.get('description') or '',
            qty=parse_num(data.get('qty', 0)),
            low_at=parse_num(low_at) if low_at is not None else DEFAULT_LOW_AT,
            price=price,
            unit_type=unit_type,
            unit_price=unit_price,
            created_at=data.get('created_at', data.get('createdAt')),
            updated_at=data.get('updated_at', data.get('updatedAt')),
        )


# ==============================================================================
# CLIENTES
# ==============================================================================

@dataclass
class Customer:
    """
    Cliente de la tienda. El teléfono (opcional) es la clave natural
    para evitar duplicados.
    """
    id: str
    name: str
    phone: str = ''
    religion: str = ''
    general: bool = True
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'religion': self.religion,
            'general': self.general,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Customer':
        general = data.get('general', True)
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name') or '',
            phone=data.get('phone') or '',
            religion=data.get('religion') or '',
            general=bool(general) if general is not None else True,
            created_at=data.get('created_at', data.get('createdAt')),
        )


@dataclass(frozen=True)
class CustomerSnapshot:
    """Copia de los datos del cliente al momento de la venta."""
    id: Optional[str]
    name: str
    phone: str = ''
    religion: str = ''
    general: bool = True

    @classmethod
    def from_customer(cls, customer: Customer) -> 'CustomerSnapshot':
        return cls(
            id=customer.id,
            name=customer.name,
            phone=customer.phone,
            religion=customer.religion,
            general=customer.general,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'religion': self.religion,
            'general': self.general,
        }


# ==============================================================================
# CARRITO - Unión etiquetada de dos tipos de línea
# ==============================================================================

@dataclass(frozen=True)
class FixedPriceLine:
    """
    Línea de precio fijo: `price` es el precio unitario copiado del producto,
    `qty` la cantidad de piezas.
    """
    product_id: str
    name: str
    price: float
    qty: int = 1
    kind: str = field(default='fixed', init=False)

    @property
    def line_total(self) -> float:
        return round(self.price * self.qty, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'product_id': self.product_id,
            'name': self.name,
            'price': self.price,
            'qty': self.qty,
        }


@dataclass(frozen=True)
class UnitPriceLine:
    """
    Línea por peso/volumen: `price` es el precio ya calculado de la línea,
    `purchase_quantity` + `purchase_unit` la cantidad comprada.
    La cantidad (`qty`) es siempre 1.
    """
    product_id: str
    name: str
    price: float
    unit_price: float
    unit_type: UnitType
    purchase_quantity: float
    purchase_unit: str
    kind: str = field(default='unit', init=False)

    @property
    def qty(self) -> int:
        return 1

    @property
    def line_total(self) -> float:
        return round(self.price, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'product_id': self.product_id,
            'name': self.name,
            'price': self.price,
            'qty': 1,
            'unit_price': self.unit_price,
            'unit_type': self.unit_type.value,
            'purchase_quantity': self.purchase_quantity,
            'purchase_unit': self.purchase_unit,
        }


CartLine = Union[FixedPriceLine, UnitPriceLine]


def cart_line_from_dict(data: Dict[str, Any]) -> CartLine:
    """Reconstruye una línea del carrito según su `kind`."""
    kind = data.get('kind')
    if kind == 'fixed':
        return FixedPriceLine(
            product_id=str(data['product_id']),
            name=data.get('name', ''),
            price=parse_num(data.get('price')),
            qty=int(data.get('qty', 1)),
        )
    if kind == 'unit':
        return UnitPriceLine(
            product_id=str(data['product_id']),
            name=data.get('name', ''),
            price=parse_num(data.get('price')),
            unit_price=parse_num(data.get('unit_price')),
            unit_type=UnitType(data['unit_type']),
            purchase_quantity=parse_num(data.get('purchase_quantity')),
            purchase_unit=data.get('purchase_unit', ''),
        )
    raise ValueError(f"Unknown cart line kind: {kind!r}")


# ==============================================================================
# FACTURAS
# ==============================================================================

@dataclass(frozen=True)
class BillItem:
    """Línea inmutable de una factura."""
    product_id: Optional[str]
    name: str
    price: float
    qty: float
    total: float

    @classmethod
    def from_cart_line(cls, line: CartLine) -> 'BillItem':
        if isinstance(line, FixedPriceLine):
            return cls(line.product_id, line.name, line.price, line.qty, line.line_total)
        if isinstance(line, UnitPriceLine):
            return cls(line.product_id, line.name, line.price, 1, line.line_total)
        raise TypeError(f"Unsupported cart line: {line!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'name': self.name,
            'price': self.price,
            'qty': self.qty,
            'total': self.total,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BillItem':
        price = parse_num(data.get('price'))
        qty = parse_num(data.get('qty', 1))
        total = data.get('total')
        return cls(
            product_id=data.get('product_id', data.get('id')),
            name=data.get('name', ''),
            price=price,
            qty=int(qty) if float(qty).is_integer() else qty,
            total=parse_num(total) if total is not None else round(price * qty, 2),
        )


@dataclass(frozen=True)
class Bill:
    """
    Factura. Inmutable una vez creada.
    total = max(0, subtotal - discount)
    """
    id: str
    invoice_no: str
    created_at: str
    customer: CustomerSnapshot
    items: List[BillItem]
    subtotal: float
    discount: float
    total: float
    status: BillStatus = BillStatus.PAID
    due_date: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == BillStatus.PENDING

    def header_dict(self) -> Dict[str, Any]:
        """Cabecera plana (columnas de la tabla `bills`)."""
        return {
            'id': self.id,
            'invoice_no': self.invoice_no,
            'customer_id': self.customer.id,
            'customer_name': self.customer.name,
            'customer_phone': self.customer.phone,
            'customer_religion': self.customer.religion,
            'customer_general': self.customer.general,
            'status': self.status.value,
            'subtotal': self.subtotal,
            'discount': self.discount,
            'total': self.total,
            'due_date': self.due_date,
            'created_at': self.created_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        d = self.header_dict()
        d['customer'] = self.customer.to_dict()
        d['items'] = [i.to_dict() for i in self.items]
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Bill':
        """
        Acepta tanto el formato plano de Supabase (customer_* + bill_items)
        como el formato anidado del respaldo local (customer + items).
        """
        cust = data.get('customer') or {}
        snapshot = CustomerSnapshot(
            id=cust.get('id', data.get('customer_id')),
            name=cust.get('name', data.get('customer_name')) or '',
            phone=cust.get('phone', data.get('customer_phone')) or '',
            religion=cust.get('religion', data.get('customer_religion')) or '',
            general=bool(cust.get('general', data.get('customer_general', True))),
        )
        raw_items = data.get('items')
        if raw_items is None:
            raw_items = data.get('bill_items') or []
        try:
            status = BillStatus(data.get('status') or BillStatus.PAID.value)
        except ValueError:
            status = BillStatus.PAID
        return cls(
            id=str(data.get('id', '')),
            invoice_no=data.get('invoice_no', data.get('invoiceNo', '')),
            created_at=data.get('created_at', data.get('createdAt', '')),
            customer=snapshot,
            items=[BillItem.from_dict(i) for i in raw_items],
            subtotal=parse_num(data.get('subtotal')),
            discount=parse_num(data.get('discount')),
            total=parse_num(data.get('total')),
            status=status,
            due_date=data.get('due_date', data.get('dueDate')),
        )


# ==============================================================================
# PERFIL DE TIENDA Y ENTREGAS
# ==============================================================================

@dataclass
class ShopProfile:
    """Perfil de la tienda (uno por dueño)."""
    name: str = 'Govinda Dughdalay'
    phone: str = '+91 90000 00000'
    addr: str = 'Near Temple Road, Mumbai'

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'phone': self.phone, 'addr': self.addr}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ShopProfile':
        default = cls()
        data = data or {}
        return cls(
            name=data.get('name') or default.name,
            phone=data.get('phone') or default.phone,
            addr=data.get('addr') or default.addr,
        )


@dataclass
class Delivery:
    """Registro de reparto de leche a domicilio (no afecta el stock)."""
    id: str
    customer_name: str
    customer_phone: str
    products: List[Dict[str, Any]]
    total: float
    date: str
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'products': self.products,
            'total': self.total,
            'date': self.date,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Delivery':
        return cls(
            id=str(data.get('id', '')),
            customer_name=data.get('customer_name', data.get('customerName', '')),
            customer_phone=data.get('customer_phone', data.get('customerPhone', '')) or '',
            products=list(data.get('products') or []),
            total=parse_num(data.get('total')),
            date=data.get('date', ''),
            created_at=data.get('created_at', data.get('createdAt')),
        )


def with_stock(product: Product, qty: float) -> Product:
    """Copia del producto con nuevo stock (nunca negativo)."""
    return replace(product, qty=max(0, round(qty, 3)))
