# tests/utils/test_validators.py
import pytest

from checkout.utils.validators import (
    is_valid_cpf,
    is_valid_email,
    normalize_boleto_address,
    normalize_coupon_code,
    normalize_federal_unit,
    normalize_name,
    normalize_order_id,
    normalize_payment_id,
    normalize_revision,
    split_name,
)


@pytest.mark.parametrize("value,expected", [
    ("52998224725", True),
    ("529.982.247-25", True),
    ("52998224724", False),
    ("11111111111", False),
    ("123", False),
    ("", False),
])
def test_cpf(value, expected):
    assert is_valid_cpf(value) is expected


@pytest.mark.parametrize("value,expected", [
    ("buyer@example.com", True),
    ("buyer@example.c", False),
    ("buyer example@example.com", False),
    ("no-at-sign.com", False),
    ("a@" + "b" * 180 + ".com", False),
])
def test_email(value, expected):
    assert is_valid_email(value) is expected


@pytest.mark.parametrize("value,expected", [
    (" black-friday_24 ", "BLACK-FRIDAY_24"),
    ("pro 10%", "PRO10"),
    (None, ""),
    ("x" * 50, "X" * 32),
])
def test_coupon_code(value, expected):
    assert normalize_coupon_code(value) == expected


@pytest.mark.parametrize("value,expected", [
    ("order_1-a", "order_1-a"),
    ("order 1", None),
    ("a" * 65, None),
    (123, None),
    ("", None),
])
def test_order_id(value, expected):
    assert normalize_order_id(value) == expected


@pytest.mark.parametrize("value,expected", [
    (3, 3),
    ("7", 7),
    (2.9, 2),
    (-4, 0),
    (True, 0),
    ("abc", 0),
    (float("nan"), 0),
    (10 ** 9, 1_000_000),
])
def test_revision(value, expected):
    assert normalize_revision(value) == expected


@pytest.mark.parametrize("value,expected", [
    (12345, "12345"),
    (" 12a34 ", "1234"),
    (True, ""),
    (None, ""),
    ({"id": 1}, ""),
])
def test_payment_id(value, expected):
    assert normalize_payment_id(value) == expected


def test_names():
    assert normalize_name("  Ana \t Maria\x00  Souza ") == "Ana Maria Souza"
    assert split_name("Ana Maria Souza") == ("Ana", "Maria Souza")
    assert split_name("Ana") == ("Ana", "")
    assert split_name("") == ("", "")


@pytest.mark.parametrize("value,expected", [
    ("sp", "SP"),
    ("São Paulo", "SP"),
    ("  rio grande do sul ", "RS"),
    ("Paraná", "PR"),
    ("XX", ""),
    (None, ""),
])
def test_federal_unit(value, expected):
    assert normalize_federal_unit(value) == expected


def test_complete_boleto_address():
    address, missing = normalize_boleto_address({
        "zip": "01310-100",
        "street_name": "Av. Paulista",
        "street_number": 1000,
        "neighborhood": "Bela Vista",
        "city": "São Paulo",
        "federal_unit": "SP",
    })
    assert missing == []
    assert address["zip_code"] == "01310100"
    assert address["street_number"] == "1000"


def test_incomplete_boleto_address():
    address, missing = normalize_boleto_address("not a dict")
    assert address is None
    assert len(missing) == 6
