# ==============================================================================
# REPOSITORIO DEL PERFIL DE TIENDA (modo offline)
# ==============================================================================
# Encapsula todo el acceso a shops.json: {owner: {name, phone, addr}}
# ==============================================================================

import os
from typing import Any, Dict

from dairy_pos.models import ShopProfile
from dairy_pos.repositories.base import BaseRepository, now_iso


class ShopRepository(BaseRepository):
    """
    Repositorio del perfil de tienda, guardado como diccionario por dueño.
    Si el dueño no tiene perfil se devuelve el perfil por defecto.
    """

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'shops.json'))

    def _empty_data(self) -> Dict:
        return {}

    def get_shop(self, owner: str) -> Dict[str, Any]:
        data = self._read_raw()
        stored = data.get(owner) if isinstance(data, dict) else None
        return stored or ShopProfile().to_dict()

    def update_shop(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._file_lock:
            all_shops = self._read_raw()
            if not isinstance(all_shops, dict):
                all_shops = {}
            record = ShopProfile.from_dict(data).to_dict()
            record['updated_at'] = now_iso()
            all_shops[owner] = record
            self._write_raw(all_shops)
            return dict(record)
