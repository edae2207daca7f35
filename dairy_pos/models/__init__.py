# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Este módulo define todas las entidades del dominio usando dataclasses.
# Beneficios:
#   - Type hints para mejor documentación y autocompletado
#   - Las líneas del carrito son una unión etiquetada (fixed | unit)
#   - Fácil serialización/deserialización para JSON o Supabase
# ==============================================================================

from .entities import (
    # Enumeraciones y constantes
    UnitType,
    BillStatus,
    BASE_UNITS,
    SUB_UNITS,
    RELIGION_TAGS,
    DEFAULT_LOW_AT,
    WALK_IN_NAME,
    parse_num,

    # Catálogo
    Product,
    with_stock,

    # Clientes
    Customer,
    CustomerSnapshot,

    # Carrito
    FixedPriceLine,
    UnitPriceLine,
    CartLine,
    cart_line_from_dict,

    # Facturas
    Bill,
    BillItem,

    # Tienda y entregas
    ShopProfile,
    Delivery,
)

__all__ = [
    'UnitType',
    'BillStatus',
    'BASE_UNITS',
    'SUB_UNITS',
    'RELIGION_TAGS',
    'DEFAULT_LOW_AT',
    'WALK_IN_NAME',
    'parse_num',
    'Product',
    'with_stock',
    'Customer',
    'CustomerSnapshot',
    'FixedPriceLine',
    'UnitPriceLine',
    'CartLine',
    'cart_line_from_dict',
    'Bill',
    'BillItem',
    'ShopProfile',
    'Delivery',
]
