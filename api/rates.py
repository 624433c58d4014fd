from fastapi import APIRouter, Query
from models.rates import ExchangeRates, ConversionResult, CurrencyCode, SupportedCurrency
from typing import List
from managers.rate_manager import ExchangeRateManager

router = APIRouter()


@router.get("/exchange-rates", response_model=ExchangeRates, tags=["rates"])
def get_exchange_rates(
    base: CurrencyCode = Query('USD', description="Base currency"),
    refresh: bool = Query(False, description="Ignore the cached rates"),
):
    return ExchangeRateManager().get_rates(base, force_refresh=refresh)


@router.get("/exchange-rates/convert", response_model=ConversionResult, tags=["rates"])
def convert_currency(
    amount: float = Query(..., ge=0),
    from_currency: CurrencyCode = Query(..., alias="from"),
    to_currency: CurrencyCode = Query(..., alias="to"),
):
    return ExchangeRateManager().convert(amount, from_currency, to_currency)


@router.get("/exchange-rates/currencies", response_model=List[SupportedCurrency], tags=["rates"])
def get_supported_currencies():
    return ExchangeRateManager().supported_currencies()
