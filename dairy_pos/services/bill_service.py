# ==============================================================================
# SERVICIO DE FACTURAS
# ==============================================================================
# Numeración, creación y consulta de facturas.
#
# NOTA: la secuencia es "facturas existentes + 1" sin importar el mes, así
# que el prefijo YYMM puede no coincidir con la continuidad de la secuencia
# al cambiar de mes. Se mantiene así a propósito (ver DESIGN.md).
# ==============================================================================

from datetime import datetime
from typing import List, Optional

from dairy_pos.models import Bill
from dairy_pos.repositories.interfaces import IBillRepository


INVOICE_PREFIX = 'GD'


def gen_invoice_number(existing_bills_count: int, now: datetime = None) -> str:
    """
    Genera el número de factura GD-YYMM-SSSS.

    Args:
        existing_bills_count: Facturas ya registradas del dueño
        now: Momento de creación (por defecto, ahora)

    Returns:
        Número de factura, p. ej. "GD-2410-0042"
    """
    now = now or datetime.now()
    seq = max(0, int(existing_bills_count)) + 1
    return f"{INVOICE_PREFIX}-{now.strftime('%y%m')}-{seq:04d}"


class BillService:
    """Acceso a facturas con sus líneas."""

    def __init__(self, bill_repo: IBillRepository):
        self.bill_repo = bill_repo

    def list_bills(self, owner: str) -> List[Bill]:
        return [Bill.from_dict(b) for b in self.bill_repo.get_bills(owner)]

    def get_bill(self, owner: str, invoice_no: str) -> Optional[Bill]:
        data = self.bill_repo.get_by_invoice_no(owner, invoice_no)
        return Bill.from_dict(data) if data else None

    def count_bills(self, owner: str) -> int:
        return self.bill_repo.count_bills(owner)

    def next_invoice_number(self, owner: str, now: datetime = None) -> str:
        return gen_invoice_number(self.count_bills(owner), now)

    def create_bill(self, owner: str, bill: Bill) -> Bill:
        """
        Persiste la factura y sus líneas.

        Returns:
            Factura tal como quedó guardada (id y timestamps del backend)

        Raises:
            RepositoryError: Si la escritura falla
        """
        header = bill.header_dict()
        if not header.get('id'):
            header.pop('id')
        saved = self.bill_repo.create_bill(owner, header, [i.to_dict() for i in bill.items])
        return Bill.from_dict(saved)
