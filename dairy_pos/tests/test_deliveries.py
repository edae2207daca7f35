import pytest

from dairy_pos.services import DeliveryService


OWNER = 'local'


@pytest.fixture
def deliveries(repos, inventory, audit):
    return DeliveryService(repos['deliveries'], inventory, audit)


def test_delivery_requires_customer_name(deliveries):
    result = deliveries.record_delivery(OWNER, ' ', '', [{'id': 'x', 'quantity': 1}])
    assert result == {'ok': False, 'error': 'Please enter customer name'}


def test_delivery_requires_known_products(deliveries):
    result = deliveries.record_delivery(OWNER, 'Ravi', '', [{'id': 'missing', 'quantity': 2}])
    assert result == {'ok': False, 'error': 'Please add at least one product to the delivery'}


def test_record_delivery_prices_lines_without_touching_stock(deliveries, inventory, make_product, repos):
    milk = make_product(name='Fresh Milk', unit_type='Litre', unit_price=60, qty=80)
    tin = make_product(name='Rasgulla (tin)', price=30, qty=10)

    result = deliveries.record_delivery(
        OWNER, 'Ravi', '9820000000',
        [{'id': milk.id, 'quantity': 2.5}, {'id': tin.id, 'quantity': '2'}, {'id': tin.id, 'quantity': 0}],
        date='2024-10-05',
    )

    assert result['ok']
    assert result['message'] == 'Delivery recorded successfully! Total: ₹ 210.00'
    delivery = result['delivery']
    assert delivery['date'] == '2024-10-05'
    assert delivery['total'] == 210
    assert [line['price'] for line in delivery['products']] == [150, 60]
    assert delivery['products'][0]['unit_type'] == 'Litre'

    assert inventory.get_product(OWNER, milk.id).qty == 80
    assert inventory.get_product(OWNER, tin.id).qty == 10

    listed = deliveries.list_deliveries(OWNER)
    assert [d.customer_name for d in listed] == ['Ravi']
    assert 'REPARTO' in [entry['type'] for entry in repos['audit'].load(OWNER)]
