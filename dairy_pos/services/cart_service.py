# ==============================================================================
# SERVICIO DE CARRITO
# ==============================================================================
# Centraliza toda la lógica de negocio relacionada con el carrito de compras.
#
# Dos capas:
#   - Funciones puras (add_fixed_item, add_unit_item, update_quantity,
#     remove_line, subtotal): reciben una lista de líneas y devuelven una
#     lista NUEVA, nunca modifican la recibida.
#   - CartService: guarda el resultado en la sesión de Flask (session['cart']).
#
# Las líneas se identifican por el id de producto; las líneas por peso/volumen
# además por la unidad de compra (250 g y 1 kg del mismo producto conviven).
# ==============================================================================

from dataclasses import replace
from typing import Any, Dict, List

from flask import session

from dairy_pos.models import (
    Product,
    FixedPriceLine,
    UnitPriceLine,
    CartLine,
    cart_line_from_dict,
    parse_num,
)
from dairy_pos.services.units import (
    ParsedQuantity,
    parse_smart_quantity,
    parse_quantity_pair,
    calculate_unit_price,
    convert_to_base_unit,
    format_quantity,
)


# ==============================================================================
# AGREGADOR PURO
# ==============================================================================

def subtotal(lines: List[CartLine]) -> float:
    """Suma de precio × cantidad (cantidad 1 en líneas por unidad)."""
    return round(sum(line.price * line.qty for line in lines), 2)


def unit_line_name(product: Product, quantity: float, unit: str) -> str:
    """Nombre visible de una línea por peso/volumen, p. ej. "Paneer (250g)"."""
    return f"{product.name} ({format_quantity(quantity, unit, product.unit_type)})"


def add_fixed_item(lines: List[CartLine], product: Product, qty: int = 1) -> List[CartLine]:
    """
    Agrega un producto de precio fijo.

    La cantidad se ajusta a [1, stock]. Si el producto ya está en el carrito
    se suma a su línea sin superar el stock; si no, la línea nueva va primero.
    Sin stock no se agrega nada.
    """
    stock = int(product.qty)
    if stock < 1:
        return list(lines)
    qty = max(1, min(int(qty), stock))

    for i, line in enumerate(lines):
        if isinstance(line, FixedPriceLine) and line.product_id == product.id:
            updated = replace(line, qty=min(line.qty + qty, stock))
            return lines[:i] + [updated] + lines[i + 1:]

    new_line = FixedPriceLine(product_id=product.id, name=product.name, price=product.price or 0.0, qty=qty)
    return [new_line] + list(lines)


def add_unit_item(lines: List[CartLine], product: Product, parsed: ParsedQuantity) -> List[CartLine]:
    """
    Agrega un producto por peso/volumen.

    Si ya hay una línea del mismo producto con la misma unidad de compra se
    acumula la cantidad y se recalculan nombre y precio. Una cantidad
    inválida no cambia el carrito (quien llama debe avisar el error).
    """
    if not parsed.is_valid or not product.is_unit_based:
        return list(lines)

    for i, line in enumerate(lines):
        if (isinstance(line, UnitPriceLine)
                and line.product_id == product.id
                and line.purchase_unit == parsed.unit):
            quantity = round(line.purchase_quantity + parsed.quantity, 6)
            updated = replace(
                line,
                name=unit_line_name(product, quantity, parsed.unit),
                price=round(calculate_unit_price(line.unit_price, quantity, parsed.unit, line.unit_type), 2),
                purchase_quantity=quantity,
            )
            return lines[:i] + [updated] + lines[i + 1:]

    new_line = UnitPriceLine(
        product_id=product.id,
        name=unit_line_name(product, parsed.quantity, parsed.unit),
        price=round(calculate_unit_price(product.unit_price, parsed.quantity, parsed.unit, product.unit_type), 2),
        unit_price=product.unit_price,
        unit_type=product.unit_type,
        purchase_quantity=parsed.quantity,
        purchase_unit=parsed.unit,
    )
    return [new_line] + list(lines)


def update_quantity(lines: List[CartLine], product_id: str, qty: int) -> List[CartLine]:
    """Cambia la cantidad de una línea de precio fijo (mínimo 1)."""
    qty = max(1, int(qty))
    return [
        replace(line, qty=qty)
        if isinstance(line, FixedPriceLine) and line.product_id == product_id
        else line
        for line in lines
    ]


def remove_line(lines: List[CartLine], product_id: str, purchase_unit: str = None) -> List[CartLine]:
    """
    Quita líneas del producto. Con `purchase_unit` solo se quita la línea
    por unidad que coincide en producto y unidad.
    """
    kept = []
    for line in lines:
        if purchase_unit and isinstance(line, UnitPriceLine):
            if line.product_id == product_id and line.purchase_unit == purchase_unit:
                continue
        elif line.product_id == product_id:
            continue
        kept.append(line)
    return kept


def purchased_amounts(lines: List[CartLine]) -> Dict[str, float]:
    """
    Cantidad comprada por producto, en la unidad de stock del producto
    (piezas o unidad base). Varias líneas del mismo producto se suman.
    """
    amounts: Dict[str, float] = {}
    for line in lines:
        if isinstance(line, UnitPriceLine):
            amount = convert_to_base_unit(line.purchase_quantity, line.purchase_unit, line.unit_type)
        elif isinstance(line, FixedPriceLine):
            amount = line.qty
        else:
            raise TypeError(f"Unsupported cart line: {line!r}")
        amounts[line.product_id] = round(amounts.get(line.product_id, 0) + amount, 6)
    return amounts


def summarize(lines: List[CartLine]) -> Dict[str, Any]:
    """Vista del carrito para las respuestas JSON."""
    items = []
    for line in lines:
        item = line.to_dict()
        item['line_total'] = line.line_total
        items.append(item)
    return {
        'items': items,
        'subtotal': subtotal(lines),
        'items_count': len(lines),
    }


# ==============================================================================
# CARRITO EN SESIÓN
# ==============================================================================

class CartService:
    """
    Servicio para gestión del carrito de compras.

    Responsabilidades:
    - Agregar/eliminar líneas del carrito
    - Parsear cantidades de productos por peso/volumen
    - Calcular subtotal
    - Limpiar carrito

    El carrito se almacena en session['cart'] como lista de dicts.
    """

    SESSION_KEY = 'cart'

    def __init__(self, inventory_service):
        """
        Args:
            inventory_service: Servicio de inventario
        """
        self.inventory_service = inventory_service

    def _get_lines(self) -> List[CartLine]:
        return [cart_line_from_dict(d) for d in session.get(self.SESSION_KEY, [])]

    def _save_lines(self, lines: List[CartLine]) -> None:
        session[self.SESSION_KEY] = [line.to_dict() for line in lines]
        session.modified = True

    def get_lines(self) -> List[CartLine]:
        """Líneas actuales del carrito."""
        return self._get_lines()

    def get_cart(self) -> Dict[str, Any]:
        """
        Obtiene el carrito con subtotal calculado.

        Returns:
            Dict con items, subtotal, items_count
        """
        return summarize(self._get_lines())

    def add_item(
        self,
        owner: str,
        product_id: str,
        qty: Any = 1,
        quantity_text: str = None,
        value: Any = None,
        unit: str = None
    ) -> Dict[str, Any]:
        """
        Agrega un producto al carrito.

        Args:
            owner: Dueño del catálogo
            product_id: ID del producto
            qty: Piezas (solo productos de precio fijo)
            quantity_text: Texto libre tipo "250gm" (productos por unidad)
            value: Valor explícito (productos por unidad, junto con `unit`)
            unit: Unidad explícita (g, kg, ml, l)

        Returns:
            Dict con resultado (ok, error, cart)
        """
        if not product_id:
            return {'ok': False, 'error': 'Invalid product id'}

        product = self.inventory_service.get_product(owner, product_id)
        if product is None:
            return {'ok': False, 'error': 'Product not found'}

        lines = self._get_lines()

        if product.is_unit_based:
            if value is not None and unit:
                parsed = parse_quantity_pair(value, unit, product.unit_type)
            else:
                parsed = parse_smart_quantity(quantity_text if quantity_text is not None else value,
                                              product.unit_type)
            if not parsed.is_valid:
                return {
                    'ok': False,
                    'error': f"Invalid quantity for {product.name}. Try values like 250g, 0.5kg or 500ml."
                }
            new_lines = add_unit_item(lines, product, parsed)
        else:
            if product.qty < 1:
                return {'ok': False, 'error': f"{product.name} is out of stock"}
            pieces = parse_num(qty) or 1
            new_lines = add_fixed_item(lines, product, int(pieces))

        self._save_lines(new_lines)
        return {'ok': True, 'message': 'Added to cart', 'cart': summarize(new_lines)}

    def update_quantity(self, owner: str, product_id: str, qty: Any) -> Dict[str, Any]:
        """
        Cambia la cantidad de una línea de precio fijo.

        Returns:
            Dict con resultado
        """
        lines = self._get_lines()
        target = next(
            (l for l in lines if isinstance(l, FixedPriceLine) and l.product_id == product_id),
            None
        )
        if target is None:
            return {'ok': False, 'error': 'Item not in cart'}

        new_qty = max(1, int(parse_num(qty)))
        product = self.inventory_service.get_product(owner, product_id)
        if product is not None and new_qty > product.qty:
            return {
                'ok': False,
                'error': f"Not enough stock. Available: {product.qty:g}",
                'available': product.qty
            }

        new_lines = update_quantity(lines, product_id, new_qty)
        self._save_lines(new_lines)
        return {'ok': True, 'message': 'Quantity updated', 'cart': summarize(new_lines)}

    def remove_item(self, product_id: str, purchase_unit: str = None) -> Dict[str, Any]:
        """Elimina una línea (o la variante de unidad indicada)."""
        if not product_id:
            return {'ok': False, 'error': 'Invalid product id'}
        new_lines = remove_line(self._get_lines(), product_id, purchase_unit)
        self._save_lines(new_lines)
        return {'ok': True, 'message': 'Removed from cart', 'cart': summarize(new_lines)}

    def clear_cart(self) -> Dict[str, Any]:
        """Vacía el carrito completamente."""
        self._save_lines([])
        return {'ok': True, 'message': 'Cart cleared', 'cart': summarize([])}
