# ==============================================================================
# SERVICIO DE CHECKOUT
# ==============================================================================
# Convierte un carrito no vacío en una factura persistida:
#
#   1. Validar (carrito no vacío, estado válido)
#   2. Resolver cliente (buscar por teléfono o crear)
#   3. Calcular totales: total = max(0, subtotal - descuento)
#   4. Asignar número de factura (facturas existentes + 1)
#   5. Construir la factura (copia inmutable del cliente y las líneas)
#   6. Guardar la factura con sus líneas
#   7. Descontar stock por producto (nunca por debajo de 0)
#
# La persistencia NO es transaccional: si falla el paso 7 la factura queda
# guardada. El resultado indica en qué paso se detuvo (`failed_step`) y qué
# productos quedaron sin descontar (`unreconciled_products`); el fallo se
# registra en errors.log y en la auditoría para reconciliar a mano.
#
# El PDF y el enlace de WhatsApp son pasos aparte (render_pdf,
# MessagingService.invoice_share_link) que se invocan después.
# ==============================================================================

from datetime import datetime, timezone
from typing import Any, Dict, List

from dairy_pos.models import (
    Bill,
    BillItem,
    BillStatus,
    CartLine,
    CustomerSnapshot,
    ShopProfile,
    WALK_IN_NAME,
    parse_num,
)
from dairy_pos.repositories.base import RepositoryError
from dairy_pos.services.cart_service import subtotal, purchased_amounts
from dairy_pos.services.inventory_service import InventoryService
from dairy_pos.services.customer_service import CustomerService
from dairy_pos.services.bill_service import BillService, gen_invoice_number
from dairy_pos.services.audit_service import AuditService
from dairy_pos.services import invoice_pdf
from dairy_pos.performance_logger import profile_function, log_error


STEP_CUSTOMER = 'customer'
STEP_BILL = 'bill'
STEP_STOCK = 'stock'


class CheckoutService:
    """
    Orquestador del checkout.

    Responsabilidades:
    - Crear la factura desde las líneas del carrito
    - Descontar stock
    - Informar fallos parciales sin rollback
    """

    def __init__(
        self,
        inventory_service: InventoryService,
        customer_service: CustomerService,
        bill_service: BillService,
        audit_service: AuditService = None
    ):
        """
        Args:
            inventory_service: Servicio de inventario
            customer_service: Servicio de clientes
            bill_service: Servicio de facturas
            audit_service: Servicio de auditoría (opcional)
        """
        self.inventory_service = inventory_service
        self.customer_service = customer_service
        self.bill_service = bill_service
        self.audit_service = audit_service

    def _failure(self, owner: str, step: str, error: Exception, bill: Bill = None,
                 unreconciled: List[str] = None) -> Dict[str, Any]:
        log_error(f"checkout:{step}", error, owner)
        if self.audit_service:
            self.audit_service.log_checkout_incomplete(
                owner, step, str(error),
                invoice_no=bill.invoice_no if bill else '',
                unreconciled=unreconciled
            )
        result = {
            'ok': False,
            'error': str(error),
            'error_type': 'persistence',
            'failed_step': step,
        }
        if bill is not None:
            result['bill'] = bill.to_dict()
            result['unreconciled_products'] = unreconciled or []
        return result

    @profile_function(name="Checkout del carrito")
    def checkout(
        self,
        owner: str,
        lines: List[CartLine],
        customer_name: str = '',
        customer_phone: str = '',
        status: str = BillStatus.PAID.value,
        due_date: str = None,
        discount: Any = 0,
        religion: str = '',
        general: bool = True,
        now: datetime = None
    ) -> Dict[str, Any]:
        """
        Ejecuta el checkout completo.

        Args:
            owner: Dueño de los datos
            lines: Líneas del carrito
            customer_name: Nombre (vacío = "Walk-in")
            customer_phone: Teléfono (opcional)
            status: Paid | Pending
            due_date: Vencimiento explícito (solo Pending)
            discount: Descuento (no numérico = 0)
            religion: Religión del cliente nuevo
            general: Flag de marketing del cliente nuevo
            now: Momento de la venta (por defecto, ahora)

        Returns:
            Dict con resultado:
            - ok: True/False
            - error: mensaje si falló
            - bill: factura creada (también en fallos posteriores al paso 6)
            - failed_step: customer | bill | stock (solo fallos de persistencia)
            - unreconciled_products: ids sin stock descontado
        """
        # 1. Validar
        if not lines:
            return {'ok': False, 'error': 'Cart is empty.'}
        try:
            bill_status = BillStatus(status or BillStatus.PAID.value)
        except ValueError:
            return {'ok': False, 'error': f"Invalid status: {status}"}

        now = now or datetime.now(timezone.utc)

        # 2. Resolver cliente
        name = (customer_name or '').strip() or WALK_IN_NAME
        phone = (customer_phone or '').strip()
        try:
            customer = self.customer_service.ensure_customer(owner, name, phone, religion, general)
        except RepositoryError as e:
            return self._failure(owner, STEP_CUSTOMER, e)

        # 3. Totales
        sub = subtotal(lines)
        disc = parse_num(discount)
        total = round(max(0, sub - disc), 2)

        created_at = now.isoformat()
        if bill_status == BillStatus.PENDING:
            due = due_date or created_at[:10]
        else:
            due = None

        try:
            # 4. Número de factura y catálogo actual
            invoice_no = gen_invoice_number(self.bill_service.count_bills(owner), now)
            catalog = {p.id: p for p in self.inventory_service.list_products(owner)}

            # 5. Construir
            draft = Bill(
                id='',
                invoice_no=invoice_no,
                created_at=created_at,
                customer=CustomerSnapshot.from_customer(customer),
                items=[BillItem.from_cart_line(line) for line in lines],
                subtotal=sub,
                discount=disc,
                total=total,
                status=bill_status,
                due_date=due,
            )

            # 6. Guardar
            bill = self.bill_service.create_bill(owner, draft)
        except RepositoryError as e:
            return self._failure(owner, STEP_BILL, e)

        # 7. Descontar stock
        amounts = purchased_amounts(lines)
        pending = [pid for pid in amounts if pid in catalog]
        updated = []
        for i, product_id in enumerate(pending):
            product = catalog[product_id]
            try:
                updated.append(
                    self.inventory_service.set_stock(owner, product, product.qty - amounts[product_id])
                )
            except RepositoryError as e:
                return self._failure(owner, STEP_STOCK, e, bill=bill, unreconciled=pending[i:])

        if self.audit_service:
            self.audit_service.log_bill_created(
                owner, bill.invoice_no, bill.total, bill.status.value, len(bill.items)
            )

        return {
            'ok': True,
            'message': f"Invoice created: {bill.invoice_no}",
            'bill': bill.to_dict(),
            'invoice_no': bill.invoice_no,
            'total': bill.total,
            'products': [p.to_dict() for p in updated],
        }

    @staticmethod
    @profile_function(name="Generar PDF de factura")
    def render_pdf(bill: Bill, shop: ShopProfile) -> bytes:
        """Genera el PDF de la factura (paso aparte, reintentable)."""
        return invoice_pdf.gen_pdf(bill, shop)
