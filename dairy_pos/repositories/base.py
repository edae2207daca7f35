# ==============================================================================
# REPOSITORIO BASE - Funcionalidad común para acceso a archivos JSON
# ==============================================================================

import json
import os
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional


class RepositoryError(Exception):
    """Error de persistencia (archivo, red o restricción del backend)."""


class DuplicateRecordError(RepositoryError):
    """Violación de una restricción de unicidad por dueño."""


def new_id() -> str:
    """Genera un ID opaco para un registro nuevo."""
    return uuid.uuid4().hex[:12]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseRepository(ABC):
    """
    Clase base abstracta para los repositorios de archivo.
    Proporciona lectura/escritura de archivos JSON con manejo de
    concurrencia básico mediante locks.

    En modo online los repositorios de Supabase reemplazan a estas clases
    (ver supabase_repository.py); los servicios no cambian.
    """

    # Lock global para evitar escrituras concurrentes a archivos
    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        """
        Inicializa el repositorio con la ruta al archivo JSON.

        Args:
            file_path: Ruta absoluta al archivo JSON de datos
        """
        self.file_path = file_path
        os.makedirs(os.path.dirname(file_path) or '.', exist_ok=True)
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        """Crea el archivo con datos vacíos si no existe."""
        if not os.path.exists(self.file_path):
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Estructura de datos vacía para este repositorio."""

    def _read_raw(self) -> Any:
        """
        Lee los datos crudos del archivo JSON.

        Returns:
            Datos parseados del JSON (vacíos si el archivo está corrupto)
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (json.JSONDecodeError, FileNotFoundError):
                return self._empty_data()

    def _write_raw(self, data: Any) -> None:
        """
        Escribe datos al archivo JSON.

        Raises:
            RepositoryError: Si hay error de escritura
        """
        with self._file_lock:
            # Escribir a archivo temporal primero para atomicidad
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except OSError as e:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise RepositoryError(f"Could not write {os.path.basename(self.file_path)}: {e}") from e


class ListRepository(BaseRepository):
    """
    Repositorio base para datos almacenados como lista.

    Ejemplo: bills.json -> [{...}, {...}]
    """

    def _empty_data(self) -> List:
        return []

    def get_all(self) -> List[Dict[str, Any]]:
        data = self._read_raw()
        return data if isinstance(data, list) else []

    def save_all(self, data: List[Dict[str, Any]]) -> None:
        self._write_raw(data)

    def find_all_by(self, field: str, value: Any) -> List[Dict[str, Any]]:
        return [r for r in self.get_all() if r.get(field) == value]


class OwnedListRepository(ListRepository):
    """
    Lista de registros etiquetados con `user_id` (el dueño).
    Todas las operaciones filtran por dueño; el orden es más reciente primero,
    igual que las consultas de Supabase (`order created_at desc`).
    """

    OWNER_FIELD = 'user_id'

    def list_for(self, owner: str) -> List[Dict[str, Any]]:
        """Registros del dueño, más recientes primero."""
        return self.find_all_by(self.OWNER_FIELD, owner)

    def get_for(self, owner: str, record_id: str) -> Optional[Dict[str, Any]]:
        for record in self.list_for(owner):
            if record.get('id') == record_id:
                return record
        return None

    def _check_unique(self, owner: str, record: Dict[str, Any], exclude_id: str = None) -> None:
        """Las subclases validan sus restricciones de unicidad aquí."""

    def insert(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Inserta un registro nuevo al inicio.

        Returns:
            Registro persistido con id, user_id y timestamps
        """
        with self._file_lock:
            ts = now_iso()
            record = dict(data)
            record['id'] = record.get('id') or new_id()
            record[self.OWNER_FIELD] = owner
            record.setdefault('created_at', ts)
            record['updated_at'] = ts
            self._check_unique(owner, record)
            rows = self.get_all()
            rows.insert(0, record)
            self.save_all(rows)
            return dict(record)

    def modify(self, owner: str, record_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Aplica cambios a un registro existente del dueño.

        Raises:
            RepositoryError: Si el registro no existe
        """
        with self._file_lock:
            rows = self.get_all()
            for row in rows:
                if row.get('id') == record_id and row.get(self.OWNER_FIELD) == owner:
                    merged = dict(row)
                    merged.update({k: v for k, v in updates.items() if k not in ('id', self.OWNER_FIELD)})
                    merged['updated_at'] = now_iso()
                    self._check_unique(owner, merged, exclude_id=record_id)
                    row.clear()
                    row.update(merged)
                    self.save_all(rows)
                    return dict(merged)
        raise RepositoryError(f"Record {record_id} not found")

    def remove(self, owner: str, record_id: str) -> bool:
        with self._file_lock:
            rows = self.get_all()
            kept = [r for r in rows if not (r.get('id') == record_id and r.get(self.OWNER_FIELD) == owner)]
            if len(kept) == len(rows):
                return False
            self.save_all(kept)
            return True

    def replace_for(self, owner: str, records: List[Dict[str, Any]],
                    prepare: Callable[[Dict[str, Any]], Dict[str, Any]] = None) -> int:
        """
        Reemplaza todos los registros del dueño (restauración de respaldo).

        Returns:
            Cantidad de registros escritos
        """
        with self._file_lock:
            others = [r for r in self.get_all() if r.get(self.OWNER_FIELD) != owner]
            fresh = []
            for rec in records:
                row = prepare(rec) if prepare else dict(rec)
                row['id'] = str(row.get('id') or new_id())
                row[self.OWNER_FIELD] = owner
                row.setdefault('created_at', now_iso())
                fresh.append(row)
            self.save_all(fresh + others)
            return len(fresh)
