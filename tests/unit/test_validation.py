from utils.validation import validate_shipping_fields, validate_card_fields, is_valid_email
from datetime import date
import pytest

VALID_SHIPPING = dict(
    full_name="Anna Schmidt",
    email="anna@example.com",
    phone="+49 30 1234567",
    address="Hauptstrasse 1",
    city="Berlin",
    zip_code="10115",
    country="Germany",
)
TODAY = date(2026, 10, 19)


@pytest.mark.parametrize("email,valid", [
    ("anna@example.com", True),
    ("a.b+c@sub.example.co", True),
    ("anna@example", False),
    ("anna example@example.com", False),
    ("@example.com", False),
    ("", False),
])
def test_email_pattern(email, valid):
    assert is_valid_email(email) is valid


def test_valid_shipping():
    assert validate_shipping_fields(**VALID_SHIPPING) == {}


def test_missing_shipping_fields():
    errors = validate_shipping_fields(**{**VALID_SHIPPING, "full_name": " ", "city": "", "phone": "abc"})

    assert errors == {
        "full_name": "Full name is required",
        "city": "City is required",
        "phone": "Invalid phone format",
    }


def test_zip_code_by_country():
    assert "zip_code" in validate_shipping_fields(**{**VALID_SHIPPING, "zip_code": "1011"})
    assert validate_shipping_fields(**{**VALID_SHIPPING, "country": "United Kingdom", "zip_code": "SW1A 1AA"}) == {}


def test_valid_card():
    assert validate_card_fields("4111-1111-1111-1111", "10/26", "123", "Anna Schmidt", today=TODAY) == {}


@pytest.mark.parametrize("field,value,error", [
    ("card_number", "4111 1111 1111", "card_number"),
    ("expiry", "13/27", "expiry"),
    ("expiry", "09/26", "expiry"),
    ("cvv", "12", "cvv"),
    ("cvv", "12345", "cvv"),
    ("holder", "", "holder"),
])
def test_invalid_card(field, value, error):
    card = {"card_number": "4111111111111111", "expiry": "12/27", "cvv": "1234", "holder": "Anna Schmidt", field: value}

    assert error in validate_card_fields(**card, today=TODAY)
