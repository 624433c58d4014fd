from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime
from azure.data.tables import TableEntity
import json

# フィルタ用にテーブルの列として展開する値の型
_SCALAR_TYPES = (str, int, float, bool)


class ContentRecord(BaseModel):
    """(type, content.id) で識別される汎用レコード"""
    type: str
    id: str
    content: Dict[str, Any]
    etag: Optional[str] = None
    updated_at: Optional[datetime] = None


class ContentTableEntity(BaseModel):
    PartitionKey: str
    RowKey: str
    content: str
    updated_at: Optional[str] = None

    model_config = {
        "extra": "allow"
    }

    def to_record(self, etag: Optional[str] = None) -> ContentRecord:
        deserialized_content = json.loads(self.content)
        deserialized_updated_at = datetime.fromisoformat(self.updated_at) if self.updated_at else None
        return ContentRecord(type=self.PartitionKey, id=self.RowKey, content=deserialized_content,
                             etag=etag, updated_at=deserialized_updated_at)

    def to_entity(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_content(cls, type: str, content: Dict[str, Any]) -> "ContentTableEntity":
        content_id = content.get("id")
        if not content_id:
            raise ValueError(f"{type} のレコードに id がありません")

        serialized_content = json.dumps(content, ensure_ascii=False, default=str)
        # トップレベルのスカラー値は列としても保存し、クエリで絞り込めるようにする
        columns = {
            key: value for key, value in content.items()
            if isinstance(value, _SCALAR_TYPES) and key not in ("id", "content", "PartitionKey", "RowKey", "updated_at")
        }
        return cls(PartitionKey=type, RowKey=str(content_id), content=serialized_content,
                   updated_at=datetime.now().isoformat(), **columns)

    @classmethod
    def from_entity(cls, entity: TableEntity):
        entity_dict = dict(entity)
        table_entity = ContentTableEntity.model_validate(entity_dict)
        return table_entity
