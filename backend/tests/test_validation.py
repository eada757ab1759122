import pytest
from erp.utils.validation import validate_fuel_quantity, coerce_positive_number, require_fields, is_blank


@pytest.mark.parametrize('raw,expected', [
    ('100', None),
    ('0.125', None),
    (49999.999, None),
    ('', 'Debe ser un número válido'),
    ('diez', 'Debe ser un número válido'),
    ('nan', 'Debe ser un número válido'),
    ('1e400', 'Debe ser un número válido'),
    ('0', 'Debe ser mayor a 0'),
    ('-1', 'Debe ser mayor a 0'),
    ('50000.5', 'Cantidad demasiado alta'),
    ('1.0001', 'Máximo 3 decimales'),
])
def test_validate_fuel_quantity(raw, expected):
    assert validate_fuel_quantity(raw) == expected


def test_coerce_positive_number():
    assert coerce_positive_number('2.5') == 2.5
    assert coerce_positive_number('1e400') is None
    assert coerce_positive_number(float('inf')) is None
    assert coerce_positive_number('nan') is None
    assert coerce_positive_number(0) is None
    assert coerce_positive_number(None) is None


def test_require_fields_collects_blank_values():
    errors = require_fields({'a': ' ', 'b': 0, 'c': 'x'}, {'a': 'A', 'b': 'B', 'c': 'C', 'd': 'D'})
    assert errors == {'a': 'A', 'd': 'D'}
    assert is_blank(None) and is_blank('  ') and not is_blank(0)
