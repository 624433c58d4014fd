from models.webhook import WebhookEventRecord, WEBHOOK_CONTENT_TYPE
from repository import content as content_repo
from typing import Any, Dict, Optional
from datetime import datetime


def record_event(record: WebhookEventRecord) -> bool:
    """イベントを記録する。同じイベントIDが既にあればFalse"""
    return content_repo.create_content(WEBHOOK_CONTENT_TYPE, record.to_content())


def get_event(event_id: str) -> WebhookEventRecord:
    record = content_repo.get_content(WEBHOOK_CONTENT_TYPE, event_id)
    return WebhookEventRecord.from_content(record.content)


def mark_applied(event_id: str, outcome: str) -> WebhookEventRecord:
    def mutate(content: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        event = WebhookEventRecord.from_content(content)
        if event.applied:
            return None
        event.applied = True
        event.outcome = outcome
        event.applied_at = datetime.now()
        return event.to_content()

    record = content_repo.update_content_atomic(WEBHOOK_CONTENT_TYPE, event_id, mutate)
    return WebhookEventRecord.from_content(record.content)
