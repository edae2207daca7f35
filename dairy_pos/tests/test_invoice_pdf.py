from reportlab import rl_config

from dairy_pos.models import Bill, BillItem, BillStatus, CustomerSnapshot, ShopProfile
from dairy_pos.services import invoice_pdf


def make_bill(items_count=1, status=BillStatus.PAID, due_date=None):
    items = [BillItem(f'p{i}', f'Item {i}', 30, 1, 30) for i in range(items_count)]
    subtotal = 30 * items_count
    return Bill(
        id='b1',
        invoice_no='GD-2410-0001',
        created_at='2024-10-05T10:30:00+00:00',
        customer=CustomerSnapshot(id='c1', name='Ravi', phone='9820000000'),
        items=items,
        subtotal=subtotal,
        discount=0,
        total=subtotal,
        status=status,
        due_date=due_date,
    )


def count_pages(monkeypatch):
    calls = []
    original = invoice_pdf._Page.new_page

    def counting(self):
        calls.append(1)
        original(self)

    monkeypatch.setattr(invoice_pdf._Page, 'new_page', counting)
    return calls


def test_pdf_bytes():
    pdf = invoice_pdf.gen_pdf(make_bill(), ShopProfile())
    assert pdf.startswith(b'%PDF')
    assert len(pdf) > 500


def test_pending_bill_renders(monkeypatch):
    calls = count_pages(monkeypatch)
    pdf = invoice_pdf.gen_pdf(make_bill(status=BillStatus.PENDING, due_date='2024-10-20'), ShopProfile())
    assert pdf.startswith(b'%PDF')
    assert calls == []


def test_long_bill_continues_on_new_pages(monkeypatch):
    calls = count_pages(monkeypatch)
    pdf = invoice_pdf.gen_pdf(make_bill(items_count=120), ShopProfile())
    assert pdf.startswith(b'%PDF')
    assert len(calls) >= 2


def test_long_item_names_are_truncated():
    name = 'Extra Creamy Buffalo Milk Malai Paneer Family Pack ' * 3
    fitted = invoice_pdf._fit(name, invoice_pdf.COL_QTY - invoice_pdf.COL_ITEM - 2, 11)
    assert fitted.endswith('...')
    assert len(fitted) < len(name)
    assert invoice_pdf._fit('Curd', 100, 11) == 'Curd'


def drawn_text(monkeypatch):
    texts = []
    original = invoice_pdf._Page.text

    def recording(self, value, x, size=10, bold=False):
        texts.append(str(value))
        original(self, value, x, size, bold)

    monkeypatch.setattr(invoice_pdf._Page, 'text', recording)
    return texts


def dairy_bill(status=BillStatus.PENDING, due_date='2024-10-20'):
    return Bill(
        id='b1',
        invoice_no='GD-2410-0001',
        created_at='2024-10-05T10:30:00+00:00',
        customer=CustomerSnapshot(id='c1', name='Ravi', phone='9820000000'),
        items=[
            BillItem('p1', 'Rasgulla (tin)', 30, 3, 90),
            BillItem('p2', 'Pure Desi Ghee (500g)', 450, 1, 450),
        ],
        subtotal=540,
        discount=40,
        total=500,
        status=status,
        due_date=due_date,
    )


def test_invoice_layout(monkeypatch):
    texts = drawn_text(monkeypatch)
    shop = ShopProfile(name='Govinda Dughdalay', phone='+91 98200 00000', addr='Station Road, Thane')

    invoice_pdf.gen_pdf(dairy_bill(), shop)

    assert texts == [
        'Govinda Dughdalay',
        'Station Road, Thane',
        'Phone: +91 98200 00000',
        'Invoice: GD-2410-0001',
        'Date: 05/10/2024 10:30',
        'Customer: Ravi',
        'Status: Pending (Due: 20/10/2024)',
        'Item', 'Qty', 'Price', 'Total',
        'Rasgulla (tin)', '3', 'Rs. 30.00', 'Rs. 90.00',
        'Pure Desi Ghee (500g)', '1', 'Rs. 450.00', 'Rs. 450.00',
        'Subtotal:', 'Rs. 540.00',
        'Discount:', 'Rs. 40.00',
        'Grand Total:', 'Rs. 500.00',
        'Thank you for your purchase!',
    ]


def test_paid_bill_status_has_no_due_date(monkeypatch):
    texts = drawn_text(monkeypatch)
    invoice_pdf.gen_pdf(dairy_bill(status=BillStatus.PAID, due_date='2024-10-20'), ShopProfile())
    assert 'Status: Paid' in texts
    assert not any('Due:' in t for t in texts)


def test_one_row_per_item_and_header_on_every_page(monkeypatch):
    pages = count_pages(monkeypatch)
    texts = drawn_text(monkeypatch)

    invoice_pdf.gen_pdf(make_bill(items_count=120), ShopProfile())

    assert [t for t in texts if t.startswith('Item ')] == [f'Item {i}' for i in range(120)]
    # Cabecera en la primera página y en cada página con filas
    assert 2 <= texts.count('Item') <= len(pages) + 1
    assert texts[-1] == 'Thank you for your purchase!'


def test_text_is_written_into_the_document(monkeypatch):
    monkeypatch.setattr(rl_config, 'pageCompression', 0)

    pdf = invoice_pdf.gen_pdf(dairy_bill(), ShopProfile())

    for text in (b'(Invoice: GD-2410-0001)', b'(Customer: Ravi)', b'(Rs. 500.00)',
                 b'(Thank you for your purchase!)'):
        assert text in pdf
