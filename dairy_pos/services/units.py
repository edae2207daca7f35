# ==============================================================================
# CANTIDADES Y PRECIOS POR UNIDAD
# ==============================================================================
# Convierte cantidades escritas a mano ("250gm", "0.5L", "2") a la unidad
# base del producto (kg para Kg, litros para Litre) y calcula el precio de
# una línea a partir del precio por unidad base.
#
# Ninguna función de este módulo lanza excepciones: una entrada inválida
# devuelve is_valid=False con cantidad 1 en la unidad base. Quien llama
# debe revisar is_valid antes de usar el resultado para cobrar.
# ==============================================================================

import math
import re
from decimal import Decimal
from typing import Any, NamedTuple, Optional

from dairy_pos.models import UnitType, BASE_UNITS, SUB_UNITS, parse_num


# Sufijos reconocidos por tipo de unidad → unidad normalizada
UNIT_ALIASES = {
    UnitType.KG: {
        '': 'kg',
        'kg': 'kg', 'kgs': 'kg', 'kilogram': 'kg', 'kilograms': 'kg',
        'g': 'g', 'gm': 'g', 'gms': 'g', 'gram': 'g', 'grams': 'g',
    },
    UnitType.LITRE: {
        '': 'l',
        'l': 'l', 'ltr': 'l', 'ltrs': 'l',
        'litre': 'l', 'litres': 'l', 'liter': 'l', 'liters': 'l',
        'ml': 'ml',
        'millilitre': 'ml', 'millilitres': 'ml',
        'milliliter': 'ml', 'milliliters': 'ml',
        'millililiter': 'ml', 'millililiters': 'ml',
    },
}

_QUANTITY_RE = re.compile(r'^\s*([+-]?(?:\d+\.?\d*|\.\d+))\s*([a-z]*)\s*$', re.IGNORECASE)


def plain_number(value: float) -> str:
    """
    Número en notación decimal, sin exponente ni ceros sobrantes.
    1e-05 → "0.00001", 1234567.0 → "1234567", 0.25 → "0.25".
    """
    text = format(Decimal(repr(float(value))), 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


class ParsedQuantity(NamedTuple):
    """Resultado del parseo: cantidad, unidad normalizada y validez."""
    quantity: float
    unit: str
    is_valid: bool

    def render(self) -> str:
        """Forma canónica "<cantidad><unidad>" (re-parseable)."""
        return f"{plain_number(self.quantity)}{self.unit}"


def _as_unit_type(unit_type: Any) -> Optional[UnitType]:
    try:
        return UnitType(unit_type)
    except ValueError:
        return None


def normalize_unit(unit: str, unit_type: Any) -> Optional[str]:
    """
    Normaliza un sufijo de unidad ("gm" → "g", "Ltr" → "l").

    Returns:
        Unidad normalizada o None si el sufijo no aplica a ese tipo
    """
    utype = _as_unit_type(unit_type)
    if utype is None:
        return None
    return UNIT_ALIASES[utype].get((unit or '').strip().lower())


def convert_to_base_unit(quantity: float, unit: str, unit_type: Any) -> float:
    """
    Convierte una cantidad a la unidad base del tipo.

    Kg: g → /1000, kg → igual. Litre: ml → /1000, l → igual.
    Una unidad desconocida se deja pasar sin convertir.
    """
    normalized = normalize_unit(unit, unit_type)
    utype = _as_unit_type(unit_type)
    if utype is not None and normalized == SUB_UNITS[utype]:
        return quantity / 1000
    return quantity


def base_fallback(unit_type: Any) -> ParsedQuantity:
    utype = _as_unit_type(unit_type)
    return ParsedQuantity(1.0, BASE_UNITS.get(utype, ''), False)


def parse_smart_quantity(text: Any, unit_type: Any) -> ParsedQuantity:
    """
    Parsea texto libre tipo "250gm", "0.5L", "500 ml" o "2".

    Args:
        text: Texto ingresado por el cajero
        unit_type: Tipo de unidad del producto (Kg | Litre)

    Returns:
        ParsedQuantity en la unidad base del producto. Si el número no es
        positivo, no es numérico o el sufijo no se reconoce, is_valid=False
        y la cantidad es 1 en la unidad base.
    """
    utype = _as_unit_type(unit_type)
    if utype is None or text is None:
        return base_fallback(unit_type)

    match = _QUANTITY_RE.match(str(text))
    if not match:
        return base_fallback(utype)

    value = float(match.group(1))
    unit = normalize_unit(match.group(2), utype)
    if unit is None or value <= 0 or not math.isfinite(value):
        return base_fallback(utype)

    return ParsedQuantity(convert_to_base_unit(value, unit, utype), BASE_UNITS[utype], True)


def parse_quantity_pair(value: Any, unit: str, unit_type: Any) -> ParsedQuantity:
    """
    Valida una pareja explícita (valor, unidad) sin convertirla.
    La unidad se conserva tal como la eligió el cajero (250 g queda en g).
    """
    utype = _as_unit_type(unit_type)
    normalized = normalize_unit(unit, utype) if utype else None
    qty = parse_num(value)
    if utype is None or normalized is None or qty <= 0:
        return base_fallback(unit_type)
    return ParsedQuantity(qty, normalized, True)


def calculate_unit_price(unit_price: float, quantity: float, unit: str, unit_type: Any) -> float:
    """Precio de línea = precio por unidad base × cantidad en unidad base."""
    return unit_price * convert_to_base_unit(quantity, unit, unit_type)


def format_quantity(quantity: float, unit: str, unit_type: Any) -> str:
    """
    Texto legible de una cantidad para el nombre de la línea.

    Ejemplos: (0.25, kg) → "250g", (0.5, l) → "500ml", (2, kg) → "2kg",
    (1.5, l) → "1.5L", (250, g) → "250g".
    """
    utype = _as_unit_type(unit_type)
    normalized = normalize_unit(unit, utype) if utype else None
    if utype is None or normalized is None:
        return f"{plain_number(quantity)}{unit}"

    base = convert_to_base_unit(quantity, normalized, utype)
    if base < 1:
        return f"{plain_number(round(base * 1000, 3))}{SUB_UNITS[utype]}"
    suffix = 'kg' if utype == UnitType.KG else 'L'
    return f"{plain_number(round(base, 3))}{suffix}"
