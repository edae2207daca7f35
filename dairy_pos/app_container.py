# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Este módulo proporciona una forma centralizada de obtener instancias
# de repositorios y servicios. Facilita:
#   - Inyección de dependencias
#   - Testing (se pueden reemplazar los repositorios por fakes)
#   - Elegir el backend de persistencia sin tocar los servicios
#
# BACKENDS:
#   local     → Archivos JSON en la carpeta de datos, dueño implícito 'local'
#   supabase  → Tablas de Supabase, un dueño por usuario autenticado
#
# Si se pide Supabase sin credenciales el contenedor queda con
# `setup_error` y las rutas responden 503 con ese mensaje.
#
# La auditoría siempre se guarda en audit.json, en ambos modos.
#
# En modo online no hay un cliente de Supabase compartido: cada petición
# crea el suyo con el access_token de su sesión (request_client), así un
# usuario nunca consulta con el token de otro.
# ==============================================================================

import os
from typing import Any, Dict, Optional

from flask import g, has_request_context, session

from dairy_pos import config
from dairy_pos.repositories import (
    ProductRepository,
    CustomerRepository,
    BillRepository,
    ShopRepository,
    DeliveryRepository,
    AuditRepository,
)
from dairy_pos.repositories.supabase_repository import (
    build_client,
    SupabaseProductRepository,
    SupabaseCustomerRepository,
    SupabaseBillRepository,
    SupabaseShopRepository,
    SupabaseDeliveryRepository,
)
from dairy_pos.services import (
    AuditService,
    InventoryService,
    CustomerService,
    CartService,
    BillService,
    CheckoutService,
    MessagingService,
    StatsService,
    DeliveryService,
    ShopService,
    BackupService,
    MigrationService,
    AuthService,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(data_dir='/path/to/data', backend='local')
        inventory_service = container.inventory_service
        checkout_service = container.checkout_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, data_dir: str = None, backend: str = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, data_dir: str = None, backend: str = None):
        """
        Inicializa el contenedor.

        Args:
            data_dir: Carpeta de los JSON (por defecto config.get_data_dir())
            backend: local | supabase (por defecto config.get_backend())
        """
        if self._initialized:
            return

        self._data_dir = data_dir or config.get_data_dir()
        self.backend = backend or config.get_backend()
        self.setup_error = None
        if self.backend == config.BACKEND_SUPABASE:
            self.setup_error = config.get_supabase_config_error()

        os.makedirs(self._data_dir, exist_ok=True)
        # Instalación nueva = todavía no hay catálogo local
        self.is_new_install = not os.path.exists(os.path.join(self._data_dir, 'products.json'))

        self._reset_attributes()
        self._initialized = True

    def _reset_attributes(self) -> None:
        # Repositorios JSON
        self._product_repo: Optional[ProductRepository] = None
        self._customer_repo: Optional[CustomerRepository] = None
        self._bill_repo: Optional[BillRepository] = None
        self._shop_repo: Optional[ShopRepository] = None
        self._delivery_repo: Optional[DeliveryRepository] = None
        self._audit_repo: Optional[AuditRepository] = None

        # Repositorios Supabase
        self._remote_repos: Optional[Dict[str, Any]] = None

        # Servicios
        self._audit_service: Optional[AuditService] = None
        self._inventory_service: Optional[InventoryService] = None
        self._customer_service: Optional[CustomerService] = None
        self._cart_service: Optional[CartService] = None
        self._bill_service: Optional[BillService] = None
        self._checkout_service: Optional[CheckoutService] = None
        self._messaging_service: Optional[MessagingService] = None
        self._stats_service: Optional[StatsService] = None
        self._delivery_service: Optional[DeliveryService] = None
        self._shop_service: Optional[ShopService] = None
        self._backup_service: Optional[BackupService] = None
        self._migration_service: Optional[MigrationService] = None
        self._auth_service: Optional[AuthService] = None

    @property
    def data_dir(self) -> str:
        return self._data_dir

    @property
    def is_online(self) -> bool:
        return self.backend == config.BACKEND_SUPABASE

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    def _require_online(self) -> None:
        if not self.is_online or self.setup_error:
            raise RuntimeError(self.setup_error or 'Supabase backend is not enabled')

    def new_client(self, access_token: str = None):
        """Cliente de Supabase nuevo (solo modo online con credenciales)."""
        self._require_online()
        return build_client(config.get_supabase_url(), config.get_supabase_key(), access_token)

    def request_client(self):
        """
        Cliente de la petición en curso, autenticado con el access_token
        guardado en la sesión de Flask. Se crea una vez por petición.
        Fuera de una petición devuelve un cliente anónimo.
        """
        if not has_request_context():
            return self.new_client()
        client = g.get('supabase_client')
        if client is None:
            client = self.new_client(session.get('access_token'))
            g.supabase_client = client
        return client

    @property
    def local_repos(self) -> Dict[str, Any]:
        """Repositorios JSON por clave (backup y migración)."""
        if self._product_repo is None:
            self._product_repo = ProductRepository(self._data_dir)
            self._customer_repo = CustomerRepository(self._data_dir)
            self._bill_repo = BillRepository(self._data_dir)
            self._shop_repo = ShopRepository(self._data_dir)
            self._delivery_repo = DeliveryRepository(self._data_dir)
        return {
            'products': self._product_repo,
            'customers': self._customer_repo,
            'bills': self._bill_repo,
            'shop': self._shop_repo,
            'deliveries': self._delivery_repo,
        }

    @property
    def remote_repos(self) -> Dict[str, Any]:
        """Repositorios Supabase por clave."""
        if self._remote_repos is None:
            self._require_online()
            provider = self.request_client
            self._remote_repos = {
                'products': SupabaseProductRepository(provider),
                'customers': SupabaseCustomerRepository(provider),
                'bills': SupabaseBillRepository(provider),
                'shop': SupabaseShopRepository(provider),
                'deliveries': SupabaseDeliveryRepository(provider),
            }
        return self._remote_repos

    @property
    def repositories(self) -> Dict[str, Any]:
        """Repositorios del backend activo."""
        return self.remote_repos if self.is_online else self.local_repos

    @property
    def audit_repo(self) -> AuditRepository:
        """Repositorio de auditoría (siempre local)."""
        if self._audit_repo is None:
            self._audit_repo = AuditRepository(self._data_dir)
        return self._audit_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def audit_service(self) -> AuditService:
        if self._audit_service is None:
            self._audit_service = AuditService(self.audit_repo)
        return self._audit_service

    @property
    def inventory_service(self) -> InventoryService:
        """Servicio de inventario (singleton)."""
        if self._inventory_service is None:
            self._inventory_service = InventoryService(
                self.repositories['products'],
                self.audit_service
            )
        return self._inventory_service

    @property
    def customer_service(self) -> CustomerService:
        if self._customer_service is None:
            self._customer_service = CustomerService(
                self.repositories['customers'],
                self.audit_service
            )
        return self._customer_service

    @property
    def cart_service(self) -> CartService:
        if self._cart_service is None:
            self._cart_service = CartService(self.inventory_service)
        return self._cart_service

    @property
    def bill_service(self) -> BillService:
        if self._bill_service is None:
            self._bill_service = BillService(self.repositories['bills'])
        return self._bill_service

    @property
    def checkout_service(self) -> CheckoutService:
        """Servicio de checkout (singleton)."""
        if self._checkout_service is None:
            self._checkout_service = CheckoutService(
                self.inventory_service,
                self.customer_service,
                self.bill_service,
                self.audit_service
            )
        return self._checkout_service

    @property
    def messaging_service(self) -> MessagingService:
        if self._messaging_service is None:
            self._messaging_service = MessagingService(self.customer_service)
        return self._messaging_service

    @property
    def stats_service(self) -> StatsService:
        if self._stats_service is None:
            self._stats_service = StatsService(
                self.bill_service,
                self.customer_service,
                self.inventory_service
            )
        return self._stats_service

    @property
    def delivery_service(self) -> DeliveryService:
        if self._delivery_service is None:
            self._delivery_service = DeliveryService(
                self.repositories['deliveries'],
                self.inventory_service,
                self.audit_service
            )
        return self._delivery_service

    @property
    def shop_service(self) -> ShopService:
        if self._shop_service is None:
            self._shop_service = ShopService(self.repositories['shop'])
        return self._shop_service

    @property
    def backup_service(self) -> BackupService:
        """Servicio de backup (opera sobre los archivos locales)."""
        if self._backup_service is None:
            self._backup_service = BackupService(
                self._data_dir,
                self.local_repos,
                self.audit_service
            )
        return self._backup_service

    @property
    def migration_service(self) -> MigrationService:
        if self._migration_service is None:
            self._migration_service = MigrationService(
                self._data_dir,
                self.local_repos,
                self.remote_repos,
                self.audit_service
            )
        return self._migration_service

    @property
    def auth_service(self) -> AuthService:
        if self._auth_service is None:
            self._require_online()
            self._auth_service = AuthService(self.new_client, self.audit_service)
        return self._auth_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias.
        Útil para testing o para recargar datos.
        """
        self._reset_attributes()

    @classmethod
    def get_instance(cls, data_dir: str = None, backend: str = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            data_dir: Carpeta de datos (solo se usa en primera llamada)
            backend: Backend (solo se usa en primera llamada)
        """
        if cls._instance is None:
            return cls(data_dir, backend)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


def get_container(data_dir: str = None, backend: str = None) -> AppContainer:
    """
    Obtiene el contenedor de dependencias global.

    Returns:
        Instancia del contenedor
    """
    return AppContainer.get_instance(data_dir, backend)
