# ==============================================================================
# SERVICIO DE REPARTOS
# ==============================================================================
# Registro de repartos de leche a domicilio. No descuenta stock.
# ==============================================================================

from datetime import datetime
from typing import Any, Dict, List

from dairy_pos.models import Delivery, parse_num
from dairy_pos.repositories.base import RepositoryError
from dairy_pos.repositories.interfaces import IDeliveryRepository
from dairy_pos.services.inventory_service import InventoryService
from dairy_pos.services.audit_service import AuditService
from dairy_pos.performance_logger import log_error


class DeliveryService:
    """
    Servicio de repartos.

    Cada producto del reparto se cobra a su precio por unidad (o precio
    fijo) multiplicado por la cantidad entregada.
    """

    def __init__(
        self,
        delivery_repo: IDeliveryRepository,
        inventory_service: InventoryService,
        audit_service: AuditService = None
    ):
        self.delivery_repo = delivery_repo
        self.inventory_service = inventory_service
        self.audit_service = audit_service

    def list_deliveries(self, owner: str) -> List[Delivery]:
        return [Delivery.from_dict(d) for d in self.delivery_repo.get_deliveries(owner)]

    def record_delivery(
        self,
        owner: str,
        customer_name: str,
        customer_phone: str,
        products: List[Dict[str, Any]],
        date: str = None
    ) -> Dict[str, Any]:
        """
        Registra un reparto.

        Args:
            owner: Dueño
            customer_name: Nombre del cliente (obligatorio)
            customer_phone: Teléfono (opcional)
            products: [{id, quantity}, ...]
            date: Fecha del reparto YYYY-MM-DD (por defecto hoy)

        Returns:
            Dict con ok, delivery o error
        """
        name = (customer_name or '').strip()
        if not name:
            return {'ok': False, 'error': 'Please enter customer name'}

        catalog = {p.id: p for p in self.inventory_service.list_products(owner)}
        lines = []
        for entry in products or []:
            product = catalog.get(str(entry.get('id', '')))
            quantity = parse_num(entry.get('quantity', 1))
            if product is None or quantity <= 0:
                continue
            unit_price = product.display_price
            lines.append({
                'id': product.id,
                'name': product.name,
                'unit_price': unit_price,
                'unit_type': product.unit_type.value if product.unit_type else None,
                'quantity': quantity,
                'price': round(unit_price * quantity, 2),
            })

        if not lines:
            return {'ok': False, 'error': 'Please add at least one product to the delivery'}

        total = round(sum(line['price'] for line in lines), 2)
        data = {
            'customer_name': name,
            'customer_phone': (customer_phone or '').strip(),
            'products': lines,
            'total': total,
            'date': date or datetime.now().date().isoformat(),
        }

        try:
            saved = Delivery.from_dict(self.delivery_repo.create_delivery(owner, data))
        except RepositoryError as e:
            log_error('delivery:create', e, owner)
            return {'ok': False, 'error': str(e), 'error_type': 'persistence'}

        if self.audit_service:
            self.audit_service.log_delivery(owner, saved.id, saved.customer_name, saved.total)
        return {
            'ok': True,
            'message': f"Delivery recorded successfully! Total: ₹ {total:.2f}",
            'delivery': saved.to_dict(),
        }
