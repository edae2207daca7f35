# ==============================================================================
# REPOSITORIO DE AUDITORÍA
# ==============================================================================
# Historial de actividad en audit.json, una lista con el evento más nuevo
# primero. Es local en ambos modos: con Supabase también se escribe aquí.
# ==============================================================================

import os
from datetime import datetime
from typing import Any, Dict, List

from .base import ListRepository


class AuditRepository(ListRepository):
    """
    Eventos de actividad por dueño.

    Cada evento:
        {
            "type": "FACTURA",
            "user": "local",
            "message": "Invoice GD-2410-0001 created - Total: ₹ 80.00",
            "timestamp": "2024-10-05 10:30:00",
            "related_id": "GD-2410-0001",
            "details": {...}
        }
    """

    # Tope del archivo; se descartan los eventos más viejos
    MAX_LOGS = 10000

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'audit.json'))

    def load(self, owner: str = None) -> List[Dict[str, Any]]:
        """Eventos (de un dueño, si se indica), del más nuevo al más viejo."""
        entries = self.get_all()
        if owner is not None:
            entries = [e for e in entries if e.get('user') == owner]
        return sorted(entries, key=lambda e: e.get('timestamp', ''), reverse=True)

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """
        Agrega un evento al inicio del historial.

        Args:
            log_type: FACTURA, PRODUCTO, CLIENTE, REPARTO o SISTEMA
            user: Dueño que realizó la acción
            message: Texto para mostrar
            related_id: Número de factura, id de producto, etc.
            details: Datos extra del evento
        """
        entry = {
            'type': log_type,
            'user': user or 'sistema',
            'message': message,
            'timestamp': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            'related_id': related_id,
            'details': details or {},
        }
        with self._file_lock:
            self.save_all(([entry] + self.get_all())[:self.MAX_LOGS])
