import os
import tempfile

import pytest

# Las rutas de logs y datos se calculan al importar el paquete
_SANDBOX = tempfile.mkdtemp(prefix='dairy_pos_tests_')
os.environ['POS_DATA_DIR'] = os.path.join(_SANDBOX, 'data')
os.environ['POS_LOGS_DIR'] = os.path.join(_SANDBOX, 'logs')
os.environ['POS_BACKEND'] = 'local'
os.environ['POS_PRODUCTION_MODE'] = '0'
os.environ['POS_SECRET_KEY'] = 'test-secret'

from dairy_pos.config import LOCAL_OWNER
from dairy_pos.app_container import AppContainer, get_container
from dairy_pos.repositories import (
    ProductRepository,
    CustomerRepository,
    BillRepository,
    ShopRepository,
    DeliveryRepository,
    AuditRepository,
)
from dairy_pos.services import (
    AuditService,
    InventoryService,
    CustomerService,
    BillService,
    CheckoutService,
)


OWNER = LOCAL_OWNER


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / 'data'
    path.mkdir()
    return str(path)


@pytest.fixture
def repos(data_dir):
    return {
        'products': ProductRepository(data_dir),
        'customers': CustomerRepository(data_dir),
        'bills': BillRepository(data_dir),
        'shop': ShopRepository(data_dir),
        'deliveries': DeliveryRepository(data_dir),
        'audit': AuditRepository(data_dir),
    }


@pytest.fixture
def audit(repos):
    return AuditService(repos['audit'])


@pytest.fixture
def inventory(repos, audit):
    return InventoryService(repos['products'], audit)


@pytest.fixture
def customers(repos, audit):
    return CustomerService(repos['customers'], audit)


@pytest.fixture
def bills(repos):
    return BillService(repos['bills'])


@pytest.fixture
def checkout(inventory, customers, bills, audit):
    return CheckoutService(inventory, customers, bills, audit)


@pytest.fixture
def make_product(inventory):
    """Crea un producto y devuelve la entidad guardada."""
    def _make(**form):
        result = inventory.save_product(OWNER, form)
        assert result['ok'], result
        return inventory.get_product(OWNER, result['product']['id'])
    return _make


@pytest.fixture
def client(data_dir):
    from dairy_pos.main import app

    AppContainer.reset_instance()
    get_container(data_dir, 'local')
    app.config['TESTING'] = True
    yield app.test_client()
    AppContainer.reset_instance()


@pytest.fixture
def csrf_token(client):
    r = client.get('/api/session')
    assert r.status_code == 200
    return r.get_json()['csrf_token']
