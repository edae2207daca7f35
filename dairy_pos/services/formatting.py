# ==============================================================================
# FORMATO DE MONEDA Y FECHAS
# ==============================================================================

from datetime import datetime
from typing import Any, Optional

from dairy_pos.models import parse_num


def currency(amount: Any) -> str:
    """Moneda para mensajes: "₹ 1234.50"."""
    return f"₹ {parse_num(amount):.2f}"


def pdf_currency(amount: Any) -> str:
    """Moneda para el PDF (las fuentes base no tienen el glifo ₹)."""
    return f"Rs. {parse_num(amount):.2f}"


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None


def format_date(value: Optional[str], with_time: bool = False) -> str:
    """
    Fecha legible dd/mm/YYYY (con hora si with_time).
    Un texto que no es fecha ISO se devuelve tal cual.
    """
    parsed = parse_iso(value)
    if parsed is None:
        return value or ''
    return parsed.strftime('%d/%m/%Y %H:%M' if with_time else '%d/%m/%Y')


def format_qty(qty: Any) -> str:
    """Cantidad sin decimales sobrantes: 3 → "3", 0.5 → "0.5"."""
    return f"{parse_num(qty):g}"
