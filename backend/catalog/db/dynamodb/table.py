from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, TypeVar

from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from ...infrastructure.aws_clients import dynamodb_client, table_resource
from ...infrastructure.aws_errors import StoreError, StoreSignal, to_store_error
from ...settings import settings
from .numbers import from_dynamo, to_dynamo
from .pagination import decode_cursor, encode_cursor

T = TypeVar("T")

_serializer = TypeSerializer()


def _attribute_values(item: dict[str, Any]) -> dict[str, Any]:
    # Low-level client shape: {"S": ...}, {"N": ...}, ...
    return {k: _serializer.serialize(v) for k, v in to_dynamo(item).items()}


def _request(required: dict[str, Any], **optional: Any) -> dict[str, Any]:
    """Request kwargs with only the optional members that carry a value.

    DynamoDB rejects empty expression maps, so ``{}`` counts as absent.
    """
    req = dict(required)
    for name, value in optional.items():
        if value is None or (isinstance(value, (dict, str)) and not value):
            continue
        req[name] = value
    return req


@dataclass(slots=True)
class Page:
    items: list[dict[str, Any]]
    next_cursor: str | None


class DynamoTable:
    """
    Adapter over one DynamoDB table.

    Each method is exactly one store interaction (the ``*_all`` readers one
    per page). Failures leave as ``StoreError``; retrying and mapping to the
    application taxonomy belong to the repositories.
    """

    def __init__(self, *, table_name: str):
        self.table_name = str(table_name)
        self._table = table_resource(self.table_name)
        self._client = dynamodb_client()

    def _call(self, operation: str, fn: Callable[[], T], *, key: dict[str, Any] | None = None) -> T:
        try:
            return fn()
        except (ClientError, BotoCoreError) as e:
            raise to_store_error(e, operation=operation, resource=self.table_name, key=key) from e

    # --- single-item operations ---

    def get_item(self, *, key: dict[str, Any], projection_expression: str | None = None,
                 expression_attribute_names: dict[str, str] | None = None) -> dict[str, Any] | None:
        req = _request(
            {"Key": key},
            ProjectionExpression=projection_expression,
            ExpressionAttributeNames=expression_attribute_names,
        )
        item = self._call("GetItem", lambda: self._table.get_item(**req), key=key).get("Item")
        return from_dynamo(item) if item else None

    def put_item(self, *, item: dict[str, Any], condition_expression: str | None = None,
                 expression_attribute_values: dict[str, Any] | None = None) -> None:
        req = _request(
            {"Item": to_dynamo(item)},
            ConditionExpression=condition_expression,
            ExpressionAttributeValues=to_dynamo(expression_attribute_values),
        )
        self._call("PutItem", lambda: self._table.put_item(**req))

    def delete_item(self, *, key: dict[str, Any], condition_expression: str | None = None,
                    expression_attribute_values: dict[str, Any] | None = None,
                    return_values: str = "NONE") -> dict[str, Any] | None:
        req = _request(
            {"Key": key, "ReturnValues": return_values},
            ConditionExpression=condition_expression,
            ExpressionAttributeValues=to_dynamo(expression_attribute_values),
        )
        old = self._call("DeleteItem", lambda: self._table.delete_item(**req), key=key).get("Attributes")
        return from_dynamo(old) if old else None

    def update_item(self, *, key: dict[str, Any], update_expression: str,
                    expression_attribute_names: dict[str, str] | None,
                    expression_attribute_values: dict[str, Any] | None,
                    condition_expression: str | None = None,
                    return_values: str = "ALL_NEW") -> dict[str, Any] | None:
        # A REMOVE-only expression has no values; the empty map is dropped.
        req = _request(
            {"Key": key, "UpdateExpression": update_expression, "ReturnValues": return_values},
            ExpressionAttributeNames=expression_attribute_names,
            ExpressionAttributeValues=to_dynamo(expression_attribute_values),
            ConditionExpression=condition_expression,
        )
        new = self._call("UpdateItem", lambda: self._table.update_item(**req), key=key).get("Attributes")
        return from_dynamo(new) if new else None

    # --- reads over many rows ---

    def _scope(self, index_name: str | None = None) -> str:
        return f"{self.table_name}/{index_name or '-'}"

    def _read(self, operation: str, fn: Callable[..., dict[str, Any]], req: dict[str, Any],
              start_key: dict[str, Any] | None) -> tuple[list[dict[str, Any]], dict[str, Any] | None]:
        if start_key:
            req = {**req, "ExclusiveStartKey": start_key}
        resp = self._call(operation, lambda: fn(**req))
        return [from_dynamo(it) for it in resp.get("Items") or []], resp.get("LastEvaluatedKey")

    def _read_all(self, operation: str, fn: Callable[..., dict[str, Any]],
                  req: dict[str, Any]) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        start_key: dict[str, Any] | None = None
        while True:
            page, start_key = self._read(operation, fn, req, start_key)
            rows.extend(page)
            if not start_key:
                return rows

    @staticmethod
    def _query_request(*, key_condition_expression: Any, index_name: str | None = None,
                       limit: int | None = None, scan_index_forward: bool = True,
                       filter_expression: Any | None = None, projection_expression: str | None = None,
                       expression_attribute_names: dict[str, str] | None = None) -> dict[str, Any]:
        return _request(
            {"KeyConditionExpression": key_condition_expression, "ScanIndexForward": bool(scan_index_forward)},
            IndexName=index_name,
            Limit=max(1, int(limit)) if limit else None,
            FilterExpression=filter_expression,
            ProjectionExpression=projection_expression,
            ExpressionAttributeNames=expression_attribute_names,
        )

    @staticmethod
    def _scan_request(*, limit: int | None = None, filter_expression: Any | None = None,
                      projection_expression: str | None = None,
                      expression_attribute_names: dict[str, str] | None = None) -> dict[str, Any]:
        return _request(
            {},
            Limit=max(1, int(limit)) if limit else None,
            FilterExpression=filter_expression,
            ProjectionExpression=projection_expression,
            ExpressionAttributeNames=expression_attribute_names,
        )

    def query_page(self, *, cursor: str | None = None, limit: int = 50, **kwargs: Any) -> Page:
        scope = self._scope(kwargs.get("index_name"))
        req = self._query_request(limit=limit, **kwargs)
        items, last = self._read("Query", self._table.query, req, decode_cursor(cursor, scope=scope))
        return Page(items=items, next_cursor=encode_cursor(last, scope=scope))

    def query_all(self, **kwargs: Any) -> list[dict[str, Any]]:
        """Every row in the key range, following LastEvaluatedKey."""
        return self._read_all("Query", self._table.query, self._query_request(**kwargs))

    def scan_page(self, *, cursor: str | None = None, limit: int = 50, **kwargs: Any) -> Page:
        scope = self._scope()
        req = self._scan_request(limit=limit, **kwargs)
        items, last = self._read("Scan", self._table.scan, req, decode_cursor(cursor, scope=scope))
        return Page(items=items, next_cursor=encode_cursor(last, scope=scope))

    def scan_all(self, **kwargs: Any) -> list[dict[str, Any]]:
        return self._read_all("Scan", self._table.scan, self._scan_request(**kwargs))

    # --- multi-row writes ---

    def batch_delete(self, *, keys: Iterable[dict[str, Any]]) -> int:
        """
        Delete ``keys`` in one BatchWriteItem request and return how many.

        The request is not chunked; the store caps it at 25 keys. Unprocessed
        keys come back as a throughput signal so the caller's retry policy
        decides what happens next.
        """
        deletes = [{"DeleteRequest": {"Key": _attribute_values(k)}} for k in keys]
        if not deletes:
            return 0

        resp = self._call(
            "BatchWriteItem",
            lambda: self._client.batch_write_item(RequestItems={self.table_name: deletes}),
        )
        unprocessed = (resp.get("UnprocessedItems") or {}).get(self.table_name) or []
        if unprocessed:
            raise StoreError(
                signal=StoreSignal.THROUGHPUT_EXCEEDED,
                message=f"BatchWriteItem left {len(unprocessed)} unprocessed item(s)",
                operation="BatchWriteItem",
                resource=self.table_name,
            )
        return len(deletes)

    def transact_write(self, *, puts: Iterable[dict[str, Any]] = ()) -> None:
        """All-or-nothing write of ``tx_put`` entries."""
        actions = [{"Put": p} for p in puts]
        if actions:
            self._call("TransactWriteItems", lambda: self._client.transact_write_items(TransactItems=actions))

    def tx_put(self, *, item: dict[str, Any], condition_expression: str | None = None,
               expression_attribute_values: dict[str, Any] | None = None) -> dict[str, Any]:
        return _request(
            {"TableName": self.table_name, "Item": _attribute_values(item)},
            ConditionExpression=condition_expression,
            ExpressionAttributeValues=_attribute_values(expression_attribute_values or {}),
        )


def get_items_table() -> DynamoTable:
    return DynamoTable(table_name=settings.items_table_name)


def get_categories_table() -> DynamoTable:
    return DynamoTable(table_name=settings.categories_table_name)
