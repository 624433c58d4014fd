from managers.email_manager import EmailManager
from models.email import EmailRequest, EmailContent, EmailRecipients, EmailAddress
from models.order import LocalOrder
import os
import logging

logger = logging.getLogger(__name__)


# 注文確認メール送信（BackgroundTasksから呼ぶ）
def send_order_confirmation(order: LocalOrder):
    try:
        email_manager = EmailManager()
        bcc = os.getenv('RECIPENTS_ADDRESS')
        reply = EmailRequest(
            content=EmailContent.order_confirmation(order, os.getenv("PAYPAL_BRAND_NAME", "Pockimate")),
            recipients=EmailRecipients(
                to=[EmailAddress(address=order.customer_email, displayName=order.shipping_address.full_name)],
                bcc=[EmailAddress(address=bcc, displayName=bcc)] if bcc else [],
            ),
            senderAddress=os.getenv('SENDER_ADDRESS'),
        )

        poller = email_manager.client.begin_send(reply.model_dump(exclude_none=True))
        mail_result = poller.result()
        return mail_result

    except Exception as e:
        # メール送信の失敗で注文処理を止めない
        logger.error("注文確認メール送信エラー (order=%s): %s", order.id, e)
