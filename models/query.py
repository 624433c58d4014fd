from pydantic import BaseModel
from typing import Optional, Dict, Any, Literal


class QueryFilter(BaseModel):
    query_filter: Optional[str] = None
    parameters: Dict[str, Any] = {}

    def add_filter(self, filter: str, param: Optional[Dict[str, Any]] = None, operator: Literal['and', 'or'] = 'and'):
        """
        Examples:
            >>> add_filter("PartitionKey eq @PartitionKey", {"PartitionKey": "order"})
            >>> add_filter("paypal_order_id eq @paypal_order_id", {"paypal_order_id": "5O190127TN364715T"})

        パラメータの値がNoneの場合は条件を追加しない
        """
        def query_filter_append(val: str):
            if self.query_filter:
                self.query_filter += f" {operator} {val}"
            else:
                self.query_filter = val

        if not param:
            query_filter_append(filter)
            return

        first_key, first_value = next(iter(param.items()))
        if first_value is not None:
            query_filter_append(filter)
            self.parameters.update(param)

    def add_eq(self, field: str, value: Any, operator: Literal['and', 'or'] = 'and'):
        self.add_filter(f"{field} eq @{field}", {field: value}, operator)

    def for_type(self, type: str) -> "QueryFilter":
        """PartitionKey（レコード種別）での絞り込みを先頭に付けた新しいフィルタを返す"""
        scoped = QueryFilter(query_filter="PartitionKey eq @PartitionKey", parameters={"PartitionKey": type})
        if self.query_filter:
            scoped.query_filter += f" and ({self.query_filter})"
            scoped.parameters.update(self.parameters)
        return scoped

    def is_query(self):
        return True if self.query_filter is not None else False
