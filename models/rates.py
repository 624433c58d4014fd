from pydantic import BaseModel
from typing import Dict, Literal

CurrencyCode = Literal['USD', 'EUR', 'GBP', 'JPY', 'CNY', 'KRW', 'CAD', 'AUD', 'CHF', 'INR', 'BRL', 'MXN']

# APIが使えない場合の既定レート（USD基準）
DEFAULT_RATES: Dict[str, float] = {
    'USD': 1,
    'EUR': 0.91,
    'GBP': 0.77,
    'JPY': 143,
    'CNY': 7.1,
    'KRW': 1300,
    'CAD': 1.32,
    'AUD': 1.47,
    'CHF': 0.86,
    'INR': 83,
    'BRL': 4.9,
    'MXN': 17.7,
}

CURRENCY_SYMBOLS: Dict[str, str] = {
    'USD': '$',
    'EUR': '€',
    'GBP': '£',
    'JPY': '¥',
    'CNY': '¥',
    'KRW': '₩',
    'CAD': 'C$',
    'AUD': 'A$',
    'CHF': 'Fr',
    'INR': '₹',
    'BRL': 'R$',
    'MXN': 'MX$',
}


class ExchangeRates(BaseModel):
    base: CurrencyCode
    date: str
    rates: Dict[str, float]
    fallback: bool = False


class ConversionResult(BaseModel):
    amount: float
    from_currency: CurrencyCode
    to_currency: CurrencyCode
    rate: float
    converted: float
    symbol: str


class SupportedCurrency(BaseModel):
    code: CurrencyCode
    symbol: str
