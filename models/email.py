from pydantic import BaseModel
from typing import List, Optional
from models.order import LocalOrder
from models.rates import CURRENCY_SYMBOLS
from html import escape


class EmailAddress(BaseModel):
    address: str
    displayName: Optional[str] = None


class EmailRecipients(BaseModel):
    to: List[EmailAddress]
    bcc: List[EmailAddress] = []


class EmailContent(BaseModel):
    subject: str
    plainText: str
    html: Optional[str] = None

    @classmethod
    def order_confirmation(cls, order: LocalOrder, brand_name: str = "Pockimate") -> "EmailContent":
        symbol = CURRENCY_SYMBOLS.get(order.currency_code, order.currency_code + " ")
        name = order.shipping_address.full_name
        order_date = order.created_at.strftime('%Y-%m-%d %H:%M') if order.created_at else ""

        def lines() -> List[str]:
            rows = []
            for item in order.items:
                options = " / ".join(o for o in (item.variant, item.color) if o)
                label = f"{item.name} ({options})" if options else item.name
                rows.append(f"{label} x {item.quantity}  {symbol}{item.line_total:.2f}")
            return rows

        def html_rows() -> str:
            return "".join(f"<tr><td>{escape(row)}</td></tr>" for row in lines())

        address = order.shipping_address
        plain_text = f"""
{name} 様

{brand_name} をご利用いただきありがとうございます。
以下の内容でご注文を承りました。

[ご注文内容]
注文番号: {order.id}
注文日時: {order_date}
{chr(10).join(lines())}

小計: {symbol}{order.subtotal:.2f}
割引: -{symbol}{order.discount:.2f}
送料: {symbol}{order.shipping_cost:.2f}
合計: {symbol}{order.total:.2f}

[お届け先]
{address.full_name}
{address.address}
{address.city} {address.zip_code}
{address.country}
"""
        html = f"""
<html><body>
<p>{escape(name)} 様</p>
<p>{brand_name} をご利用いただきありがとうございます。以下の内容でご注文を承りました。</p>
<p>注文番号: {order.id}<br>注文日時: {order_date}</p>
<table>{html_rows()}</table>
<p>合計: <strong>{symbol}{order.total:.2f}</strong></p>
<p>{escape(address.full_name)}<br>{escape(address.address)}<br>{escape(address.city)} {escape(address.zip_code)}<br>{escape(address.country)}</p>
</body></html>
"""
        return cls(subject=f"【{brand_name}】ご注文ありがとうございます（注文番号: {order.id}）",
                   plainText=plain_text, html=html)


class EmailRequest(BaseModel):
    senderAddress: str
    recipients: EmailRecipients
    content: EmailContent
