# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Centraliza el registro de actividad (audit.json).
# Formatea mensajes humanizados y categoriza eventos.
# No es un historial de errores: los errores van a logs/errors.log.
# Registrar es best-effort: si audit.json no se puede escribir, la
# operación que lo pidió ya está hecha y no se revierte ni falla.
# ==============================================================================

from typing import Any, Dict, List

from dairy_pos.repositories.base import RepositoryError
from dairy_pos.repositories.interfaces import IAuditRepository
from dairy_pos.performance_logger import log_error


class AuditService:
    """
    Servicio para registro y consulta de actividad.

    Centraliza:
    - Registro de eventos con mensajes humanizados
    - Categorización de eventos (FACTURA, PRODUCTO, CLIENTE, REPARTO, SISTEMA)
    """

    # Tipos de eventos de auditoría
    TYPE_FACTURA = 'FACTURA'
    TYPE_PRODUCTO = 'PRODUCTO'
    TYPE_CLIENTE = 'CLIENTE'
    TYPE_REPARTO = 'REPARTO'
    TYPE_SISTEMA = 'SISTEMA'

    def __init__(self, audit_repo: IAuditRepository):
        """
        Args:
            audit_repo: Repositorio de auditoría
        """
        self.audit_repo = audit_repo

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        log_type: str,
        owner: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> bool:
        """
        Registra un evento genérico. Devuelve False si no se pudo guardar
        (el fallo queda en errors.log).

        Args:
            log_type: Tipo de evento (FACTURA, PRODUCTO, ...)
            owner: Dueño de los datos
            message: Mensaje descriptivo humanizado
            related_id: ID relacionado (número de factura, id de producto...)
            details: Detalles adicionales
        """
        try:
            self.audit_repo.log(log_type, owner, message, related_id, details or {})
        except RepositoryError as e:
            log_error(f"audit:{log_type}", e, owner)
            return False
        return True

    def log_bill_created(self, owner: str, invoice_no: str, total: float, status: str, items_count: int) -> None:
        """
        Registra la creación de una factura.

        Args:
            owner: Dueño
            invoice_no: Número de factura
            total: Total cobrado
            status: Paid | Pending
            items_count: Cantidad de líneas
        """
        message = f"Bill {invoice_no} created - Total: ₹ {total:.2f} - {items_count} items - Status: {status}"
        self.log(
            self.TYPE_FACTURA,
            owner,
            message,
            invoice_no,
            {'total': total, 'status': status, 'items_count': items_count}
        )

    def log_checkout_incomplete(
        self,
        owner: str,
        failed_step: str,
        error: str,
        invoice_no: str = '',
        unreconciled: List[str] = None
    ) -> None:
        """
        Registra un checkout que falló a mitad de camino.
        Sirve para reconciliar a mano el stock de los productos pendientes.
        """
        message = f"Checkout stopped at step '{failed_step}': {error}"
        if unreconciled:
            message += f" - Stock not updated for {len(unreconciled)} product(s)"
        self.log(
            self.TYPE_FACTURA,
            owner,
            message,
            invoice_no,
            {'failed_step': failed_step, 'error': error, 'unreconciled_products': unreconciled or []}
        )

    def log_product_saved(self, owner: str, product_id: str, name: str, created: bool) -> None:
        action = 'created' if created else 'updated'
        self.log(self.TYPE_PRODUCTO, owner, f"Product {action}: {name}", product_id, {'name': name})

    def log_product_deleted(self, owner: str, product_id: str, name: str) -> None:
        self.log(self.TYPE_PRODUCTO, owner, f"Product deleted: {name}", product_id, {'name': name})

    def log_customer_saved(self, owner: str, customer_id: str, name: str, created: bool) -> None:
        action = 'created' if created else 'updated'
        self.log(self.TYPE_CLIENTE, owner, f"Customer {action}: {name}", customer_id, {'name': name})

    def log_customer_deleted(self, owner: str, customer_id: str) -> None:
        self.log(self.TYPE_CLIENTE, owner, "Customer deleted", customer_id)

    def log_delivery(self, owner: str, delivery_id: str, customer_name: str, total: float) -> None:
        message = f"Delivery recorded for {customer_name} - Total: ₹ {total:.2f}"
        self.log(self.TYPE_REPARTO, owner, message, delivery_id, {'total': total})

    def log_restore(self, owner: str, counts: Dict[str, int]) -> None:
        summary = ", ".join(f"{v} {k}" for k, v in counts.items())
        self.log(self.TYPE_SISTEMA, owner, f"Backup restored: {summary}", details=counts)

    def log_migration(self, owner: str, counts: Dict[str, int]) -> None:
        summary = ", ".join(f"{v} {k}" for k, v in counts.items())
        self.log(self.TYPE_SISTEMA, owner, f"Local data migrated: {summary}", details=counts)

    def log_user_login(self, owner: str) -> None:
        """Registra un inicio de sesión."""
        self.log(self.TYPE_SISTEMA, owner, f"Signed in: {owner}")

    def log_user_logout(self, owner: str) -> None:
        """Registra un cierre de sesión."""
        self.log(self.TYPE_SISTEMA, owner, f"Signed out: {owner}")

    # =========================================================================
    # CONSULTA
    # =========================================================================

    def get_logs(self, owner: str = None) -> List[Dict[str, Any]]:
        """Logs (más recientes primero), opcionalmente de un solo dueño."""
        return self.audit_repo.load(owner)
