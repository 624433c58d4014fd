"""
チェックアウト入力の形式チェック

ここで行うのは入力の形式確認のみで、カードの与信確認ではない。
ネットワーク呼び出しの前に必ず実行する。
"""
from datetime import date
from typing import Dict, Optional
import re

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[\d\s\+\-\(\)]+$")
CARD_NUMBER_PATTERN = re.compile(r"^\d{16}$")
EXPIRY_PATTERN = re.compile(r"^(0[1-9]|1[0-2])/(\d{2})$")
CVV_PATTERN = re.compile(r"^\d{3,4}$")

# 国別の郵便番号形式
ZIP_PATTERNS: Dict[str, str] = {
    "United States": r"^\d{5}(-\d{4})?$",
    "United Kingdom": r"^[A-Z]{1,2}\d{1,2}[A-Z]?\s?\d[A-Z]{2}$",
    "Germany": r"^\d{5}$",
    "France": r"^\d{5}$",
    "Spain": r"^\d{5}$",
    "Italy": r"^\d{5}$",
    "CN": r"^\d{6}$",
    "JP": r"^\d{3}-?\d{4}$",
    "KR": r"^\d{5}$",
}


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value or ""))


def validate_shipping_fields(
        full_name: str,
        email: str,
        phone: str,
        address: str,
        city: str,
        zip_code: str,
        country: str,
    ) -> Dict[str, str]:
    """配送先の入力チェック。エラーがあればフィールド名->メッセージを返す"""
    errors: Dict[str, str] = {}

    if not full_name.strip():
        errors["full_name"] = "Full name is required"
    elif len(full_name.strip()) < 2:
        errors["full_name"] = "Name must be at least 2 characters"

    if not email.strip():
        errors["email"] = "Email is required"
    elif not is_valid_email(email):
        errors["email"] = "Invalid email format"

    if not phone.strip():
        errors["phone"] = "Phone is required"
    elif not PHONE_PATTERN.match(phone):
        errors["phone"] = "Invalid phone format"

    if not address.strip():
        errors["address"] = "Address is required"
    elif len(address.strip()) < 5:
        errors["address"] = "Address must be at least 5 characters"

    if not city.strip():
        errors["city"] = "City is required"

    if not zip_code.strip():
        errors["zip_code"] = "ZIP code is required"
    else:
        pattern = ZIP_PATTERNS.get(country.strip())
        if pattern and not re.match(pattern, zip_code.strip(), re.IGNORECASE):
            errors["zip_code"] = "Invalid ZIP code format"

    if not country.strip():
        errors["country"] = "Country is required"

    return errors


def validate_card_fields(
        card_number: str,
        expiry: str,
        cvv: str,
        holder: str,
        today: Optional[date] = None,
    ) -> Dict[str, str]:
    """カード入力の形式チェック（16桁・MM/YY・CVV 3〜4桁）"""
    errors: Dict[str, str] = {}
    today = today or date.today()

    digits = re.sub(r"[\s\-]", "", card_number or "")
    if not CARD_NUMBER_PATTERN.match(digits):
        errors["card_number"] = "Card number must be 16 digits"

    match = EXPIRY_PATTERN.match((expiry or "").strip())
    if not match:
        errors["expiry"] = "Expiry must be in MM/YY format"
    else:
        month = int(match.group(1))
        year = 2000 + int(match.group(2))
        # 有効期限月の末日まで有効
        if (year, month) < (today.year, today.month):
            errors["expiry"] = "Card has expired"

    if not CVV_PATTERN.match((cvv or "").strip()):
        errors["cvv"] = "CVV must be 3 or 4 digits"

    if not (holder or "").strip():
        errors["holder"] = "Cardholder name is required"

    return errors
