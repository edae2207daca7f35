# ==============================================================================
# SERVICIO DE ESTADÍSTICAS (panel principal)
# ==============================================================================
# Ventas totales, clientes, facturas pendientes, stock bajo y ventas de los
# últimos 7 días (fechas locales).
# ==============================================================================

from datetime import date, datetime, timedelta
from typing import Any, Dict, List

from dairy_pos.models import Bill
from dairy_pos.services.bill_service import BillService
from dairy_pos.services.customer_service import CustomerService
from dairy_pos.services.inventory_service import InventoryService, low_stock
from dairy_pos.services.formatting import parse_iso


CHART_DAYS = 7


def _local_date(value: str):
    parsed = parse_iso(value)
    if parsed is None:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.date()


def sales_by_day(bills: List[Bill], today: date = None, days: int = CHART_DAYS) -> List[Dict[str, Any]]:
    """
    Ventas por día de los últimos `days` días, del más antiguo a hoy.

    Returns:
        [{'date': 'YYYY-MM-DD', 'total': float}, ...]
    """
    today = today or datetime.now().date()
    totals = {today - timedelta(days=i): 0.0 for i in range(days - 1, -1, -1)}
    for bill in bills:
        day = _local_date(bill.created_at)
        if day in totals:
            totals[day] += bill.total
    return [{'date': d.isoformat(), 'total': round(t, 2)} for d, t in totals.items()]


class StatsService:
    """Resumen del negocio para el panel."""

    def __init__(
        self,
        bill_service: BillService,
        customer_service: CustomerService,
        inventory_service: InventoryService
    ):
        self.bill_service = bill_service
        self.customer_service = customer_service
        self.inventory_service = inventory_service

    def dashboard(self, owner: str, today: date = None) -> Dict[str, Any]:
        """
        Datos del panel principal.

        Returns:
            Dict con total_sales, total_customers, pending_bills,
            low_stock_count, low_stock y sales_last_7_days
        """
        bills = self.bill_service.list_bills(owner)
        customers = self.customer_service.list_customers(owner)
        low = low_stock(self.inventory_service.list_products(owner))

        return {
            'total_sales': round(sum(b.total for b in bills), 2),
            'total_customers': len(customers),
            'pending_bills': sum(1 for b in bills if b.is_pending),
            'low_stock_count': len(low),
            'low_stock': [p.to_dict() for p in low],
            'sales_last_7_days': sales_by_day(bills, today),
        }
