import os

import pytest

from dairy_pos.repositories import (
    RepositoryError,
    ProductRepository,
    CustomerRepository,
    BillRepository,
    ShopRepository,
)
from dairy_pos.services import MigrationService
from dairy_pos.services.cart_service import add_fixed_item
from dairy_pos.services.inventory_service import DEFAULT_PRODUCTS


REMOTE_OWNER = 'user-123'


class RemoteProducts(ProductRepository):
    """Productos "remotos" con alta en bloque, como la tabla de Supabase."""

    def create_products(self, owner, rows):
        return [self.create_product(owner, row) for row in rows]


class FailingBills(BillRepository):
    def create_bill(self, owner, header, items):
        raise RepositoryError('remote bills unavailable')


@pytest.fixture
def remote(tmp_path):
    base = str(tmp_path / 'remote')
    return {
        'products': RemoteProducts(base),
        'customers': CustomerRepository(base),
        'bills': BillRepository(base),
        'shop': ShopRepository(base),
    }


@pytest.fixture
def migration(data_dir, repos, remote, audit):
    return MigrationService(data_dir, repos, remote, audit)


def test_empty_local_data_seeds_default_catalog(migration, remote):
    result = migration.migrate_local_to_remote(REMOTE_OWNER)

    assert result == {'ok': True, 'message': 'Initialized with default products'}
    names = [p['name'] for p in remote['products'].get_products(REMOTE_OWNER)]
    assert names == [p['name'] for p in DEFAULT_PRODUCTS]
    assert migration.is_migrated(REMOTE_OWNER)

    # Segunda vez: no se vuelve a sembrar
    for product in remote['products'].get_products(REMOTE_OWNER):
        remote['products'].delete_product(REMOTE_OWNER, product['id'])
    assert migration.migrate_local_to_remote(REMOTE_OWNER)['message'] == 'Data already migrated'
    assert remote['products'].get_products(REMOTE_OWNER) == []


def test_local_data_is_copied_with_remapped_ids(migration, remote, repos, checkout, make_product):
    tin = make_product(name='Rasgulla (tin)', price=30, qty=10)
    make_product(name='Curd', price=40, qty=5)
    checkout.checkout('local', add_fixed_item([], tin, 2), customer_name='Ravi', customer_phone='9820000000')
    repos['shop'].update_shop('local', {'name': 'My Dairy', 'phone': '1', 'addr': 'Main St'})

    result = migration.migrate_local_to_remote(REMOTE_OWNER)

    assert result['ok']
    assert result['message'] == 'Migration completed successfully'
    assert result['counts'] == {'products': 2, 'customers': 1, 'bills': 1}

    remote_products = remote['products'].get_products(REMOTE_OWNER)
    assert [p['name'] for p in remote_products] == ['Curd', 'Rasgulla (tin)']
    new_tin = next(p for p in remote_products if p['name'] == 'Rasgulla (tin)')
    assert new_tin['qty'] == 8

    remote_customer = remote['customers'].get_customers(REMOTE_OWNER)[0]
    bill = remote['bills'].get_bills(REMOTE_OWNER)[0]
    assert bill['customer_id'] == remote_customer['id']
    assert bill['items'][0]['product_id'] == new_tin['id']
    assert remote['shop'].get_shop(REMOTE_OWNER)['name'] == 'My Dairy'

    # Los datos locales no se tocan
    assert len(repos['products'].get_products('local')) == 2


def test_failed_migration_is_retried(data_dir, repos, remote, audit, checkout, make_product):
    tin = make_product(name='Rasgulla (tin)', price=30, qty=10)
    checkout.checkout('local', add_fixed_item([], tin, 1))
    remote['bills'] = FailingBills(os.path.join(data_dir, '..', 'remote'))
    migration = MigrationService(data_dir, repos, remote, audit)

    result = migration.migrate_local_to_remote(REMOTE_OWNER)

    assert result == {'ok': False, 'error': 'remote bills unavailable'}
    assert migration.is_migrated(REMOTE_OWNER) is False


def test_marker_name_is_sanitized(migration):
    assert os.path.basename(migration._marker_path('../evil/owner')).startswith('evilowner')
