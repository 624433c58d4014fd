from models.checkout import FundingSource, PaymentOption, PaymentOptionStyle
from models.settings import PayPalSettings
from typing import List, Optional

# 実際に決済できるものだけを表示する（Google Payは未対応のため出さない）
SUPPORTED_FUNDING_SOURCES = (FundingSource.PAYPAL, FundingSource.CARD, FundingSource.PAYLATER)

DEFAULT_STYLES = {
    FundingSource.PAYPAL: PaymentOptionStyle(color='gold', label='paypal'),
    FundingSource.CARD: PaymentOptionStyle(color='black', label='pay'),
    FundingSource.PAYLATER: PaymentOptionStyle(color='gold', label='pay'),
}


def render_payment_option(
        funding_source: FundingSource,
        settings: PayPalSettings,
        style: Optional[PaymentOptionStyle] = None,
        express: bool = False,
        currency_code: str = 'EUR',
    ) -> PaymentOption:
    """支払いボタン1つ分の設定を返す。支払い方法ごとの違いはfunding_sourceとstyleだけ"""
    if funding_source not in SUPPORTED_FUNDING_SOURCES:
        raise ValueError(f"未対応の支払い方法です: {funding_source.value}")

    style = style or DEFAULT_STYLES[funding_source]
    if express:
        # エクスプレスは横並びの小さいボタン
        style = style.model_copy(update={"layout": 'horizontal', "height": min(style.height, 40)})

    return PaymentOption(
        funding_source=funding_source,
        style=style,
        express=express,
        client_id=settings.client_id,
        currency_code=currency_code,
    )


def list_payment_options(settings: PayPalSettings, express: bool = False, currency_code: str = 'EUR') -> List[PaymentOption]:
    return [render_payment_option(source, settings, express=express, currency_code=currency_code)
            for source in SUPPORTED_FUNDING_SOURCES]
