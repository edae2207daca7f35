# ==============================================================================
# SERVICIO DE BACKUPS
# ==============================================================================
# Dos mecanismos (solo modo offline):
#
# 1. Backups diarios automáticos de los archivos JSON en formato ZIP,
#    manteniendo solo los últimos N (rotación automática).
#    FORMATO: backup_YYYY-MM-DD.zip
#
# 2. Exportar / importar el estado de un dueño como un documento JSON:
#    {shop, products, customers, bills, deliveries}
#    La importación reemplaza todos los datos del dueño. Un archivo inválido
#    se rechaza sin tocar nada.
# ==============================================================================

import json
import os
import zipfile
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from dairy_pos.models import Bill, Customer, Delivery, Product, ShopProfile
from dairy_pos.repositories.base import RepositoryError
from dairy_pos.performance_logger import log_error


COLLECTIONS = ('products', 'customers', 'bills', 'deliveries')

INVALID_BACKUP = 'Invalid backup file.'


def _clean(record: Dict[str, Any]) -> Dict[str, Any]:
    """Quita timestamps vacíos para que el repositorio asigne los suyos."""
    return {k: v for k, v in record.items() if not (k in ('created_at', 'updated_at') and not v)}


def parse_backup(raw: Any) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """
    Parsea y valida un documento de respaldo.

    Claves ausentes se leen como colecciones vacías; una clave presente
    con tipo incorrecto invalida el archivo.

    Args:
        raw: Texto/bytes JSON o dict ya parseado

    Returns:
        Tupla (estado normalizado, None) o (None, mensaje de error)
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None, INVALID_BACKUP
    if not isinstance(raw, dict):
        return None, INVALID_BACKUP

    shop = raw.get('shop')
    if shop is not None and not isinstance(shop, dict):
        return None, f"{INVALID_BACKUP} 'shop' must be an object."

    state = {'shop': ShopProfile.from_dict(shop).to_dict()}
    for key in COLLECTIONS:
        value = raw.get(key, [])
        if value is None:
            value = []
        if not isinstance(value, list) or not all(isinstance(r, dict) for r in value):
            return None, f"{INVALID_BACKUP} '{key}' must be a list of records."
        state[key] = value

    try:
        state['products'] = [_clean(Product.from_dict(p).to_dict()) for p in state['products']]
        state['customers'] = [_clean(Customer.from_dict(c).to_dict()) for c in state['customers']]
        state['bills'] = [_clean(Bill.from_dict(b).to_dict()) for b in state['bills']]
        state['deliveries'] = [_clean(Delivery.from_dict(d).to_dict()) for d in state['deliveries']]
    except (TypeError, ValueError) as e:
        return None, f"{INVALID_BACKUP} {e}"
    return state, None


class BackupService:
    """
    Respaldo de los datos.

    - ZIP diario de los archivos JSON (backup_YYYY-MM-DD.zip), con rotación
    - Exportar / importar el estado de un dueño como documento JSON

    Uso:
        backups = BackupService(data_dir, repos=container.local_repos)
        backups.run_daily_backup()
    """

    DATA_FILES = (
        'products.json',
        'customers.json',
        'bills.json',
        'shops.json',
        'deliveries.json',
        'audit.json',
    )

    # ZIPs diarios que se conservan
    MAX_BACKUPS = 7

    BACKUP_DIR_NAME = 'backups'
    ZIP_PREFIX = 'backup_'

    def __init__(self, base_path: str, repos: Dict[str, Any] = None, audit_service=None):
        """
        Args:
            base_path: Carpeta de datos (donde están los JSON)
            repos: Repositorios locales por clave (shop, products, customers,
                   bills, deliveries); necesarios para exportar/importar
            audit_service: Servicio de auditoría (opcional)
        """
        self.base_path = base_path
        self.backup_root = os.path.join(base_path, self.BACKUP_DIR_NAME)
        self.repos = repos or {}
        self.audit_service = audit_service
        os.makedirs(self.backup_root, exist_ok=True)

    # =========================================================================
    # ZIP DIARIO
    # =========================================================================

    def _zip_name(self, day: datetime = None) -> str:
        return f"{self.ZIP_PREFIX}{(day or datetime.now()):%Y-%m-%d}.zip"

    def _zip_date(self, filename: str) -> Optional[str]:
        """Fecha YYYY-MM-DD de un nombre de backup válido, o None."""
        if not (filename.startswith(self.ZIP_PREFIX) and filename.endswith('.zip')):
            return None
        stamp = filename[len(self.ZIP_PREFIX):-len('.zip')]
        try:
            datetime.strptime(stamp, '%Y-%m-%d')
        except ValueError:
            return None
        return stamp

    def list_backups(self) -> List[str]:
        """Nombres de los ZIP de backup, el más reciente primero."""
        names = [
            name for name in os.listdir(self.backup_root)
            if os.path.isfile(os.path.join(self.backup_root, name)) and self._zip_date(name)
        ]
        return sorted(names, reverse=True)

    def _today_path(self) -> str:
        return os.path.join(self.backup_root, self._zip_name())

    def has_today_backup(self) -> bool:
        path = self._today_path()
        return os.path.isfile(path) and os.path.getsize(path) > 0

    def create_backup(self, force: bool = False) -> Dict[str, Any]:
        """
        Comprime los archivos de datos existentes en el ZIP del día.

        Args:
            force: Rehacer el ZIP aunque ya exista el de hoy

        Returns:
            {success, message, files_added, errors, backup_path}
        """
        path = self._today_path()
        if self.has_today_backup() and not force:
            return {'success': True, 'message': 'Backup del día ya existe',
                    'files_added': 0, 'errors': [], 'backup_path': path}

        present = [n for n in self.DATA_FILES if os.path.exists(os.path.join(self.base_path, n))]
        errors = []
        added = 0
        if present:
            try:
                with zipfile.ZipFile(path, 'w', zipfile.ZIP_DEFLATED) as archive:
                    for name in present:
                        try:
                            archive.write(os.path.join(self.base_path, name), name)
                            added += 1
                        except OSError as e:
                            errors.append(f"{name}: {e}")
            except (OSError, zipfile.BadZipFile) as e:
                errors.append(f"ZIP: {e}")
                added = 0

        if not added:
            if os.path.exists(path):
                os.remove(path)
            return {'success': False, 'message': 'No se encontraron archivos para respaldar',
                    'files_added': 0, 'errors': errors, 'backup_path': None}

        size_kb = round(os.path.getsize(path) / 1024, 2)
        print(f"[BACKUP] {os.path.basename(path)}: {added} archivos, {size_kb} KB")
        return {'success': True, 'message': f'Backup creado: {added} archivos ({size_kb} KB)',
                'files_added': added, 'errors': errors, 'backup_path': path}

    def rotate_backups(self) -> Dict[str, int]:
        """Borra los ZIP más viejos dejando los últimos MAX_BACKUPS."""
        deleted = 0
        for name in self.list_backups()[self.MAX_BACKUPS:]:
            try:
                os.remove(os.path.join(self.backup_root, name))
                deleted += 1
            except OSError as e:
                print(f"[BACKUP ERROR] {name}: {e}")
        return {'deleted_count': deleted, 'remaining_count': len(self.list_backups())}

    def run_daily_backup(self) -> Dict[str, Any]:
        return {'backup': self.create_backup(), 'rotation': self.rotate_backups()}

    def get_backup_status(self) -> Dict[str, Any]:
        """Resumen de los ZIP guardados (fecha, archivos, tamaño)."""
        backups = []
        for name in self.list_backups():
            path = os.path.join(self.backup_root, name)
            try:
                with zipfile.ZipFile(path) as archive:
                    files = len(archive.namelist())
            except (OSError, zipfile.BadZipFile):
                files = 0
            backups.append({
                'filename': name,
                'date': self._zip_date(name),
                'files': files,
                'size_kb': round(os.path.getsize(path) / 1024, 2),
            })
        return {
            'total_backups': len(backups),
            'max_backups': self.MAX_BACKUPS,
            'backups': backups,
            'today_exists': self.has_today_backup(),
        }

    # =========================================================================
    # EXPORTAR / IMPORTAR
    # =========================================================================

    def export_state(self, owner: str) -> Dict[str, Any]:
        """
        Estado completo de un dueño como documento de respaldo.

        Returns:
            {shop, products, customers, bills, deliveries}
        """
        return {
            'shop': ShopProfile.from_dict(self.repos['shop'].get_shop(owner)).to_dict(),
            'products': self.repos['products'].get_products(owner),
            'customers': self.repos['customers'].get_customers(owner),
            'bills': self.repos['bills'].get_bills(owner),
            'deliveries': self.repos['deliveries'].get_deliveries(owner),
        }

    def import_state(self, owner: str, raw: Any) -> Dict[str, Any]:
        """
        Reemplaza todos los datos del dueño con los del respaldo.

        Args:
            owner: Dueño
            raw: Documento JSON (texto, bytes o dict)

        Returns:
            Dict con ok, counts o error
        """
        state, error = parse_backup(raw)
        if error:
            return {'ok': False, 'error': error}

        try:
            self.repos['shop'].update_shop(owner, state['shop'])
            counts = {key: self.repos[key].replace_all(owner, state[key]) for key in COLLECTIONS}
        except RepositoryError as e:
            log_error('backup:import', e, owner)
            return {'ok': False, 'error': str(e), 'error_type': 'persistence'}

        if self.audit_service:
            self.audit_service.log_restore(owner, counts)
        return {'ok': True, 'message': 'Backup imported successfully.', 'counts': counts}


def run_startup_backup(base_path: str) -> None:
    """Backup diario al arrancar. Un fallo se informa y la app sigue."""
    try:
        backup = BackupService(base_path).run_daily_backup()['backup']
    except OSError as e:
        print(f"[BACKUP ERROR] No se pudo ejecutar backup: {e}")
        return
    if backup['files_added']:
        print("[BACKUP] ✓ Backup diario completado")
    elif backup['errors']:
        print(f"[BACKUP] ⚠ Errores: {backup['errors']}")
