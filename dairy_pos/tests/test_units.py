import pytest

from dairy_pos.models import UnitType
from dairy_pos.services.units import (
    parse_smart_quantity,
    parse_quantity_pair,
    convert_to_base_unit,
    calculate_unit_price,
    format_quantity,
    normalize_unit,
)


@pytest.mark.parametrize('text, unit_type, expected', [
    ('250gm', UnitType.KG, 0.25),
    ('0.5L', UnitType.LITRE, 0.5),
    ('500ml', UnitType.LITRE, 0.5),
    ('2', UnitType.KG, 2.0),
    ('1.5 kg', UnitType.KG, 1.5),
    ('750 Millilitres', UnitType.LITRE, 0.75),
])
def test_smart_quantity_converts_to_base_unit(text, unit_type, expected):
    parsed = parse_smart_quantity(text, unit_type)
    assert parsed.is_valid
    assert parsed.quantity == pytest.approx(expected)
    assert parsed.unit == ('kg' if unit_type == UnitType.KG else 'l')


@pytest.mark.parametrize('text', ['0', '-3kg', 'abc', '', '250ml', '2 boxes', None])
def test_invalid_kg_input_falls_back_to_one_base_unit(text):
    parsed = parse_smart_quantity(text, UnitType.KG)
    assert parsed.is_valid is False
    assert parsed.quantity == 1
    assert parsed.unit == 'kg'


def test_unknown_unit_type_is_invalid():
    assert parse_smart_quantity('250g', 'Dozen').is_valid is False


@pytest.mark.parametrize('text, unit_type', [
    ('250gm', UnitType.KG),
    ('0.01g', UnitType.KG),
    ('0.5ml', UnitType.LITRE),
    ('1', UnitType.KG),
    ('1234567.5', UnitType.KG),
    ('98765432100ml', UnitType.LITRE),
    ('0.333', UnitType.LITRE),
])
def test_rendered_quantity_parses_back_to_same_value(text, unit_type):
    parsed = parse_smart_quantity(text, unit_type)
    rendered = parsed.render()
    again = parse_smart_quantity(rendered, unit_type)
    assert 'e' not in rendered.rstrip('kgl')
    assert again == parsed
    assert again.render() == rendered


def test_small_and_large_quantities_render_in_decimal_notation():
    assert parse_smart_quantity('0.01g', UnitType.KG).render() == '0.00001kg'
    assert parse_smart_quantity('1234567.5', UnitType.KG).render() == '1234567.5kg'


def test_overflowing_number_is_invalid():
    assert parse_smart_quantity('9' * 400, UnitType.KG).is_valid is False


def test_explicit_pair_keeps_the_chosen_unit():
    parsed = parse_quantity_pair(250, 'g', UnitType.KG)
    assert parsed == (250.0, 'g', True)
    assert parse_quantity_pair(0, 'g', UnitType.KG).is_valid is False
    assert parse_quantity_pair(1, 'ml', UnitType.KG).is_valid is False


def test_convert_and_price():
    assert convert_to_base_unit(500, 'ml', UnitType.LITRE) == 0.5
    assert convert_to_base_unit(3, 'kg', UnitType.KG) == 3
    # unidad desconocida: sin conversión
    assert convert_to_base_unit(3, 'oz', UnitType.KG) == 3
    assert calculate_unit_price(900, 250, 'g', UnitType.KG) == pytest.approx(225.0)
    assert calculate_unit_price(60, 0.5, 'l', UnitType.LITRE) == pytest.approx(30.0)


def test_normalize_unit_aliases():
    assert normalize_unit('GMS', UnitType.KG) == 'g'
    assert normalize_unit('Ltr', UnitType.LITRE) == 'l'
    assert normalize_unit('ml', UnitType.KG) is None


@pytest.mark.parametrize('quantity, unit, unit_type, expected', [
    (0.25, 'kg', UnitType.KG, '250g'),
    (0.5, 'l', UnitType.LITRE, '500ml'),
    (2, 'kg', UnitType.KG, '2kg'),
    (1.5, 'l', UnitType.LITRE, '1.5L'),
    (250, 'g', UnitType.KG, '250g'),
])
def test_format_quantity(quantity, unit, unit_type, expected):
    assert format_quantity(quantity, unit, unit_type) == expected
