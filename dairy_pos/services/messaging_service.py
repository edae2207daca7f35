# ==============================================================================
# SERVICIO DE MENSAJERÍA (WhatsApp)
# ==============================================================================
# Construye enlaces https://wa.me/<dígitos>?text=<mensaje> para compartir
# facturas, recordar pagos y enviar mensajes de marketing por segmento.
# Solo arma los enlaces: abrirlos es tarea del navegador.
# ==============================================================================

import re
from typing import Any, Dict, List
from urllib.parse import quote

from dairy_pos.models import Bill, BillStatus, Customer
from dairy_pos.services.customer_service import CustomerService
from dairy_pos.services.formatting import currency, format_date, format_qty


WA_HOST = 'https://wa.me'
GENERAL_TAG = 'general'

# Caracteres que encodeURIComponent deja sin escapar
_URI_SAFE = "-_.!~*'()"


def phone_digits(phone: str) -> str:
    return re.sub(r'\D', '', phone or '')


def wa_link(phone: str, text: str) -> str:
    """Enlace de WhatsApp con el mensaje pre-cargado."""
    return f"{WA_HOST}/{phone_digits(phone)}?text={quote(text, safe=_URI_SAFE)}"


def invoice_link(origin: str, invoice_no: str) -> str:
    return f"{(origin or '').rstrip('/')}/invoice/{invoice_no}"


def invoice_message(bill: Bill, origin: str) -> str:
    """
    Resumen de la factura para WhatsApp.

    Formato:
        Invoice GD-2410-0001
        Customer: Ravi (98200 00000)
        Total: ₹ 80.00
        Status: Paid
        Items:
        - Rasgulla (tin) x 3 = ₹ 90.00

        View Invoice: https://.../invoice/GD-2410-0001
        Note: Attach the downloaded PDF when sending.
    """
    customer = bill.customer
    who = customer.name or '-'
    if customer.phone:
        who += f" ({customer.phone})"
    status = bill.status.value
    if bill.status == BillStatus.PENDING and bill.due_date:
        status += f" (Due: {format_date(bill.due_date)})"

    lines = [
        f"Invoice {bill.invoice_no}",
        f"Customer: {who}",
        f"Total: {currency(bill.total)}",
        f"Status: {status}",
        "Items:",
    ]
    lines += [f"- {item.name} x {format_qty(item.qty)} = {currency(item.total)}" for item in bill.items]
    lines += [
        "",
        f"View Invoice: {invoice_link(origin, bill.invoice_no)}",
        "Note: Attach the downloaded PDF when sending.",
    ]
    return "\n".join(lines)


def invoice_share_link(bill: Bill, origin: str) -> str:
    return wa_link(bill.customer.phone, invoice_message(bill, origin))


def religion_tags(customers: List[Customer]) -> List[str]:
    """Etiquetas de religión presentes, en orden de aparición."""
    tags = []
    for c in customers:
        if c.religion and c.religion not in tags:
            tags.append(c.religion)
    return tags


def recipients(customers: List[Customer], tag: str = GENERAL_TAG) -> List[Customer]:
    """
    Clientes de un segmento con teléfono.
    `general` = clientes con el flag general; otro valor = religión exacta.
    """
    tag = tag or GENERAL_TAG
    if tag == GENERAL_TAG:
        return [c for c in customers if c.general and c.phone]
    return [c for c in customers if c.religion == tag and c.phone]


class MessagingService:
    """Enlaces de WhatsApp para facturas y marketing."""

    def __init__(self, customer_service: CustomerService):
        self.customer_service = customer_service

    def invoice_share_link(self, bill: Bill, origin: str) -> str:
        return invoice_share_link(bill, origin)

    def payment_reminder_link(self, bill: Bill, origin: str) -> Dict[str, Any]:
        """
        Recordatorio de pago de una factura pendiente.

        Returns:
            Dict con ok, link o error
        """
        if not bill.is_pending:
            return {'ok': False, 'error': f"Bill {bill.invoice_no} is already paid."}
        if not phone_digits(bill.customer.phone):
            return {'ok': False, 'error': 'Customer has no phone number.'}
        return {'ok': True, 'link': invoice_share_link(bill, origin)}

    def segment(self, owner: str, tag: str = GENERAL_TAG) -> Dict[str, Any]:
        customers = self.customer_service.list_customers(owner)
        selected = recipients(customers, tag)
        return {
            'tag': tag or GENERAL_TAG,
            'tags': [GENERAL_TAG] + religion_tags(customers),
            'recipients': [{'id': c.id, 'name': c.name, 'phone': c.phone} for c in selected],
        }

    def marketing_links(self, owner: str, tag: str, message: str) -> Dict[str, Any]:
        """
        Un enlace por destinatario del segmento.

        Returns:
            Dict con ok, links ([{name, phone, link}]) o error
        """
        message = (message or '').strip()
        if not message:
            return {'ok': False, 'error': 'Message is required.'}
        selected = recipients(self.customer_service.list_customers(owner), tag)
        if not selected:
            return {'ok': False, 'error': 'No recipients for selected tag.'}
        links = [{'name': c.name, 'phone': c.phone, 'link': wa_link(c.phone, message)} for c in selected]
        return {'ok': True, 'message': f"Sent to {len(links)} customers.", 'links': links}
