from typing import Dict, List, Optional, Tuple, get_args
from datetime import date
from threading import Lock
from models.rates import ExchangeRates, ConversionResult, CurrencyCode, SupportedCurrency, DEFAULT_RATES, CURRENCY_SYMBOLS
import requests
import logging
import time
import os

logger = logging.getLogger(__name__)

SUPPORTED_CURRENCIES = get_args(CurrencyCode)


class ExchangeRateManager:
    """Frankfurter APIから為替レートを取得してキャッシュする"""
    _instance: Optional['ExchangeRateManager'] = None
    _lock = Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance.session = requests.Session()
                    instance.api_url = os.getenv("EXCHANGE_RATE_API", "https://api.frankfurter.app/latest")
                    instance.cache_seconds = int(os.getenv("EXCHANGE_RATE_CACHE_SECONDS", "3600"))
                    instance._cache: Dict[str, Tuple[float, ExchangeRates]] = {}
                    cls._instance = instance
        return cls._instance

    def __init__(self):
        pass

    def _default_rates(self, base: str) -> Dict[str, float]:
        # USD基準の既定レートを指定の基準通貨に換算する
        base_rate = DEFAULT_RATES[base]
        return {code: round(rate / base_rate, 6) for code, rate in DEFAULT_RATES.items()}

    def supported_currencies(self) -> List[SupportedCurrency]:
        return [SupportedCurrency(code=code, symbol=CURRENCY_SYMBOLS[code]) for code in SUPPORTED_CURRENCIES]

    def get_rates(self, base: CurrencyCode = 'USD', force_refresh: bool = False) -> ExchangeRates:
        """最新の為替レートを取得する。失敗時は既定レートを返す"""
        cached = self._cache.get(base)
        if not force_refresh and cached and time.monotonic() - cached[0] < self.cache_seconds:
            return cached[1]

        try:
            response = self.session.get(self.api_url, params={"from": base}, timeout=10)
            response.raise_for_status()
            data = response.json()

            defaults = self._default_rates(base)
            fetched = data.get("rates", {})
            rates = {code: float(fetched.get(code) or defaults[code]) for code in SUPPORTED_CURRENCIES}
            # APIは基準通貨自身を返さない
            rates[base] = 1.0

            result = ExchangeRates(base=base, date=data.get("date") or date.today().isoformat(), rates=rates)
            self._cache[base] = (time.monotonic(), result)
            return result

        except (requests.RequestException, ValueError) as e:
            logger.error("Failed to fetch exchange rates, using defaults: %s", e)
            return ExchangeRates(base=base, date=date.today().isoformat(), rates=self._default_rates(base), fallback=True)

    def convert(self, amount: float, from_currency: CurrencyCode, to_currency: CurrencyCode) -> ConversionResult:
        rates = self.get_rates(from_currency)
        rate = rates.rates[to_currency]
        return ConversionResult(
            amount=amount,
            from_currency=from_currency,
            to_currency=to_currency,
            rate=rate,
            converted=round(amount * rate, 2),
            symbol=CURRENCY_SYMBOLS[to_currency],
        )
