import json
import os
import zipfile

import pytest

from dairy_pos.services import BackupService
from dairy_pos.services.backup_service import parse_backup, INVALID_BACKUP
from dairy_pos.services.cart_service import add_fixed_item


OWNER = 'local'


@pytest.fixture
def backups(data_dir, repos, audit):
    return BackupService(data_dir, repos=repos, audit_service=audit)


# ==============================================================================
# BACKUPS DIARIOS (ZIP)
# ==============================================================================

def test_daily_backup_zips_data_files_once_per_day(backups, make_product):
    make_product(name='Curd', price=40, qty=5)

    first = backups.create_backup()
    assert first['success']
    assert first['files_added'] >= 1
    with zipfile.ZipFile(first['backup_path']) as zf:
        assert 'products.json' in zf.namelist()

    again = backups.create_backup()
    assert again['message'] == 'Backup del día ya existe'
    assert backups.get_backup_status()['today_exists'] is True


def test_backup_without_data_files_is_not_kept(tmp_path):
    backups = BackupService(str(tmp_path / 'empty'))
    result = backups.create_backup()
    assert result['success'] is False
    assert result['backup_path'] is None
    assert backups.get_backup_status()['total_backups'] == 0


def test_rotation_keeps_latest_backups(backups):
    for day in range(1, 10):
        with open(os.path.join(backups.backup_root, f'backup_2024-01-0{day}.zip'), 'wb') as f:
            f.write(b'')
    with open(os.path.join(backups.backup_root, 'notes.txt'), 'w') as f:
        f.write('not a backup')

    result = backups.rotate_backups()

    assert result == {'deleted_count': 2, 'remaining_count': BackupService.MAX_BACKUPS}
    remaining = sorted(os.listdir(backups.backup_root))
    assert 'backup_2024-01-01.zip' not in remaining
    assert 'backup_2024-01-09.zip' in remaining
    assert 'notes.txt' in remaining


# ==============================================================================
# EXPORTAR / IMPORTAR
# ==============================================================================

def test_export_then_import_restores_state(backups, checkout, inventory, customers, repos, make_product):
    tin = make_product(name='Rasgulla (tin)', price=30, qty=10)
    checkout.checkout(OWNER, add_fixed_item([], tin, 2), customer_name='Ravi', customer_phone='9820000000')
    repos['shop'].update_shop(OWNER, {'name': 'My Dairy', 'phone': '1', 'addr': 'Main St'})

    exported = json.dumps(backups.export_state(OWNER))

    inventory.delete_product(OWNER, tin.id)
    customers.save_customer(OWNER, {'name': 'Extra'})

    result = backups.import_state(OWNER, exported)

    assert result['ok']
    assert result['message'] == 'Backup imported successfully.'
    assert result['counts'] == {'products': 1, 'customers': 1, 'bills': 1, 'deliveries': 0}
    assert [p.name for p in inventory.list_products(OWNER)] == ['Rasgulla (tin)']
    assert inventory.get_product(OWNER, tin.id).qty == 8
    assert [c.name for c in customers.list_customers(OWNER)] == ['Ravi']
    assert repos['shop'].get_shop(OWNER)['name'] == 'My Dairy'
    assert 'SISTEMA' in [entry['type'] for entry in repos['audit'].load(OWNER)]


def test_invalid_json_changes_nothing(backups, inventory, make_product):
    make_product(name='Curd', price=40, qty=5)
    assert backups.import_state(OWNER, b'{not json') == {'ok': False, 'error': INVALID_BACKUP}
    assert [p.name for p in inventory.list_products(OWNER)] == ['Curd']


def test_wrong_collection_type_changes_nothing(backups, inventory, make_product):
    make_product(name='Curd', price=40, qty=5)
    result = backups.import_state(OWNER, {'products': {'name': 'Milk'}})
    assert result['ok'] is False
    assert "'products' must be a list" in result['error']
    assert len(inventory.list_products(OWNER)) == 1


def test_missing_collections_are_empty():
    state, error = parse_backup('{"products": [{"id": "p1", "name": "Curd", "price": 40, "qty": 2}]}')
    assert error is None
    assert state['customers'] == [] and state['bills'] == [] and state['deliveries'] == []
    assert state['products'][0]['name'] == 'Curd'
    assert state['shop']['name'] == 'Govinda Dughdalay'


@pytest.mark.parametrize('raw', ['[]', '"text"', '{"shop": "nope"}'])
def test_non_object_documents_are_rejected(raw):
    state, error = parse_backup(raw)
    assert state is None
    assert error.startswith(INVALID_BACKUP)
