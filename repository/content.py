from azure.data.tables import UpdateMode
from azure.core import MatchConditions
from azure.core.exceptions import (
    AzureError,
    ResourceExistsError,
    ResourceNotFoundError,
    ResourceModifiedError,
)
from managers.table_manager import TableConnectionManager
from models.content import ContentRecord, ContentTableEntity
from models.query import QueryFilter
from utils.errors import PersistenceError
from typing import Callable, Dict, List, Optional, Any
from itertools import islice
import logging

logger = logging.getLogger(__name__)

Mutation = Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]


def query_contents(
        type: str,
        query_filter: Optional[QueryFilter] = None,
        limit: int = 50,
    ) -> List[ContentRecord]:
    """種別ごとのレコードを検索する"""
    try:
        manager = TableConnectionManager()
        scoped = (query_filter or QueryFilter()).for_type(type)

        entities = manager.content_table.query_entities(**scoped.model_dump(), results_per_page=limit)
        return [ContentTableEntity.from_entity(e).to_record(e.metadata.get("etag")) for e in islice(entities, limit)]

    except AzureError as e:
        raise PersistenceError(f"Error retrieving {type} contents: {str(e)}")


def get_content(type: str, content_id: str) -> ContentRecord:
    try:
        manager = TableConnectionManager()

        entity = manager.content_table.get_entity(partition_key=type, row_key=str(content_id))
        return ContentTableEntity.from_entity(entity).to_record(entity.metadata.get("etag"))

    except ResourceNotFoundError as e:
        raise ValueError(f"{type} {content_id} が見つかりません: {str(e)}")
    except AzureError as e:
        raise PersistenceError(f"Error retrieving {type} {content_id}: {str(e)}")


def create_content(type: str, content: Dict[str, Any]) -> bool:
    """レコードを新規作成する。既に存在する場合はFalseを返す"""
    try:
        manager = TableConnectionManager()
        content_entity = ContentTableEntity.from_content(type, content)

        manager.content_table.create_entity(content_entity.to_entity())
        return True

    except ResourceExistsError:
        return False
    except AzureError as e:
        raise PersistenceError(f"Error creating {type} content: {str(e)}")


def upsert_content(type: str, content: Dict[str, Any]) -> bool:
    """レコードの作成または置き換え"""
    try:
        manager = TableConnectionManager()
        content_entity = ContentTableEntity.from_content(type, content)

        manager.content_table.upsert_entity(content_entity.to_entity(), mode=UpdateMode.REPLACE)
        logger.info("Upserted %s content: %s", type, content_entity.RowKey)
        return True

    except AzureError as e:
        raise PersistenceError(f"Error upserting {type} content: {str(e)}")


def update_content_atomic(
        type: str,
        content_id: str,
        mutate: Mutation,
        max_attempts: int = 5,
    ) -> ContentRecord:
    """
    1件のレコードを読み込み→変更→書き込みする

    ETagによる楽観的排他制御を行い、他の書き込みと競合した場合は
    読み直して変更を適用し直す。mutateがNoneを返した場合は書き込まない。
    """
    manager = TableConnectionManager()
    for attempt in range(1, max_attempts + 1):
        current = get_content(type, content_id)
        updated = mutate(dict(current.content))
        if updated is None:
            return current

        content_entity = ContentTableEntity.from_content(type, updated)
        try:
            manager.content_table.update_entity(
                content_entity.to_entity(),
                mode=UpdateMode.REPLACE,
                etag=current.etag,
                match_condition=MatchConditions.IfNotModified,
            )
            return content_entity.to_record()

        except ResourceModifiedError:
            logger.warning("Concurrent update on %s %s (attempt %d)", type, content_id, attempt)
        except ResourceNotFoundError as e:
            raise ValueError(f"{type} {content_id} が見つかりません: {str(e)}")
        except AzureError as e:
            raise PersistenceError(f"Error updating {type} {content_id}: {str(e)}")

    raise PersistenceError(f"{type} {content_id} の更新が競合により完了しませんでした")


def delete_content(type: str, content_id: str) -> bool:
    try:
        manager = TableConnectionManager()

        manager.content_table.delete_entity(partition_key=type, row_key=str(content_id))
        return True

    except AzureError as e:
        raise PersistenceError(f"Error deleting {type} {content_id}: {str(e)}")
