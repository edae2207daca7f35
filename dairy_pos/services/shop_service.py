# ==============================================================================
# SERVICIO DEL PERFIL DE TIENDA
# ==============================================================================

from typing import Any, Dict

from dairy_pos.models import ShopProfile
from dairy_pos.repositories.base import RepositoryError
from dairy_pos.repositories.interfaces import IShopRepository
from dairy_pos.performance_logger import log_error


class ShopService:
    """Nombre, teléfono y dirección de la tienda (uno por dueño)."""

    def __init__(self, shop_repo: IShopRepository):
        self.shop_repo = shop_repo

    def get_shop(self, owner: str) -> ShopProfile:
        return ShopProfile.from_dict(self.shop_repo.get_shop(owner))

    def update_shop(self, owner: str, form: Dict[str, Any]) -> Dict[str, Any]:
        """
        Guarda el perfil. Campos vacíos toman el valor por defecto.

        Returns:
            Dict con ok, shop o error
        """
        profile = ShopProfile.from_dict({
            'name': (form.get('name') or '').strip(),
            'phone': (form.get('phone') or '').strip(),
            'addr': (form.get('addr') or form.get('address') or '').strip(),
        })
        try:
            saved = self.shop_repo.update_shop(owner, profile.to_dict())
        except RepositoryError as e:
            log_error('shop:update', e, owner)
            return {'ok': False, 'error': str(e), 'error_type': 'persistence'}
        return {'ok': True, 'shop': ShopProfile.from_dict(saved).to_dict()}
