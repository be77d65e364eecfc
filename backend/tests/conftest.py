from __future__ import annotations

import copy
import re
import sys
import time
from pathlib import Path
from typing import Any

import pytest

# Ensure `backend/` is on sys.path so `import catalog.*` works in tests.
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from catalog.db.dynamodb.pagination import decode_cursor, encode_cursor  # noqa: E402
from catalog.db.dynamodb.table import Page  # noqa: E402
from catalog.infrastructure.aws_errors import StoreError, StoreSignal  # noqa: E402


def _path_get(item: dict[str, Any] | None, path: str) -> Any:
    cur: Any = item
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return None
        cur = cur[part]
    return cur


def eval_condition(cond: Any, item: dict[str, Any]) -> bool:
    """Evaluate a boto3 Key/Attr condition object against a plain dict."""
    expr = cond.get_expression()
    op = expr["operator"]
    vals = expr["values"]
    if op == "AND":
        return all(eval_condition(v, item) for v in vals)
    if op == "OR":
        return any(eval_condition(v, item) for v in vals)
    if op == "NOT":
        return not eval_condition(vals[0], item)

    got = _path_get(item, vals[0].name)
    if op == "=":
        return got is not None and got == vals[1]
    if op == "<>":
        return got is not None and got != vals[1]
    if op == "begins_with":
        return isinstance(got, str) and got.startswith(vals[1])
    if op == "attribute_exists":
        return got is not None
    if op == "attribute_not_exists":
        return got is None
    raise AssertionError(f"FakeTable: unsupported condition operator {op!r}")


class FakeTable:
    """
    In-memory stand-in for DynamoTable.

    Supports just enough of the adapter surface for the repositories:
    string conditions (attribute_exists / attribute_not_exists / `a = :v`),
    SET/REMOVE update expressions, boto3 condition objects for key
    conditions and filters, and scripted failures via ``fail_next``.
    """

    def __init__(self, *, key_attrs: tuple[str, ...], name: str = "Fake"):
        self.key_attrs = key_attrs
        self.table_name = name
        self.items: dict[tuple[str, ...], dict[str, Any]] = {}
        self.calls: list[str] = []
        self.unprocessed_batches = 0
        self._failures: dict[str, list[BaseException]] = {}

    # --- test helpers ---

    def fail_next(self, operation: str, exc: BaseException, times: int = 1) -> None:
        self._failures.setdefault(operation, []).extend([exc] * times)

    def seed(self, *rows: dict[str, Any]) -> None:
        for r in rows:
            self.items[self._k(r)] = copy.deepcopy(r)

    def _k(self, key: dict[str, Any]) -> tuple[str, ...]:
        return tuple(str(key.get(a) or "") for a in self.key_attrs)

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    def _condition_failed(self, operation: str) -> StoreError:
        return StoreError(
            signal=StoreSignal.CONDITIONAL_CHECK_FAILED,
            message=f"{operation} failed (ConditionalCheckFailedException)",
            operation=operation,
            resource=self.table_name,
        )

    def _check(self, operation: str, cond: str | None, current: dict[str, Any] | None,
               values: dict[str, Any] | None) -> None:
        if not cond:
            return
        m = re.fullmatch(r"attribute_not_exists\((\w+)\)", cond.strip())
        if m:
            ok = current is None or m.group(1) not in current
        else:
            m = re.fullmatch(r"attribute_exists\((\w+)\)", cond.strip())
            if m:
                ok = current is not None and m.group(1) in current
            else:
                m = re.fullmatch(r"(\w+) = (:\w+)", cond.strip())
                assert m, f"FakeTable: unsupported condition {cond!r}"
                ok = current is not None and current.get(m.group(1)) == (values or {}).get(m.group(2))
        if not ok:
            raise self._condition_failed(operation)

    # --- adapter surface ---

    def get_item(self, *, key: dict[str, Any], **_kw) -> dict[str, Any] | None:
        self._enter("GetItem")
        it = self.items.get(self._k(key))
        return copy.deepcopy(it) if it else None

    def put_item(self, *, item: dict[str, Any], condition_expression: str | None = None,
                 expression_attribute_values: dict[str, Any] | None = None, **_kw) -> None:
        self._enter("PutItem")
        k = self._k(item)
        self._check("PutItem", condition_expression, self.items.get(k), expression_attribute_values)
        self.items[k] = copy.deepcopy(item)

    def delete_item(self, *, key: dict[str, Any], condition_expression: str | None = None,
                    expression_attribute_values: dict[str, Any] | None = None,
                    return_values: str = "NONE", **_kw) -> dict[str, Any] | None:
        self._enter("DeleteItem")
        k = self._k(key)
        cur = self.items.get(k)
        self._check("DeleteItem", condition_expression, cur, expression_attribute_values)
        old = self.items.pop(k, None)
        return copy.deepcopy(old) if (old and return_values == "ALL_OLD") else None

    def update_item(self, *, key: dict[str, Any], update_expression: str,
                    expression_attribute_names: dict[str, str] | None,
                    expression_attribute_values: dict[str, Any] | None,
                    condition_expression: str | None = None, return_values: str = "ALL_NEW",
                    **_kw) -> dict[str, Any] | None:
        self._enter("UpdateItem")
        k = self._k(key)
        cur = self.items.get(k)
        self._check("UpdateItem", condition_expression, cur, expression_attribute_values)
        names = expression_attribute_names or {}
        values = expression_attribute_values or {}
        new = copy.deepcopy(cur) if cur else dict(key)

        tokens = re.split(r"\s*\b(SET|REMOVE)\s+", update_expression.strip())
        for clause, body in zip(tokens[1::2], tokens[2::2]):
            for part in [p.strip() for p in body.split(",") if p.strip()]:
                if clause == "SET":
                    left, right = [x.strip() for x in part.split("=", 1)]
                    new[names.get(left, left)] = copy.deepcopy(values[right])
                else:
                    new.pop(names.get(part, part), None)

        self.items[k] = new
        return copy.deepcopy(new) if return_values == "ALL_NEW" else None

    def _page(self, rows: list[dict[str, Any]], limit: int | None, cursor: str | None) -> Page:
        # Real cursor tokens, so tampering surfaces exactly as with DynamoTable.
        start = int((decode_cursor(cursor) or {}).get("offset") or 0)
        if not limit:
            return Page(items=copy.deepcopy(rows[start:]), next_cursor=None)
        end = start + int(limit)
        nxt = encode_cursor({"offset": end}) if end < len(rows) else None
        return Page(items=copy.deepcopy(rows[start:end]), next_cursor=nxt)

    def _matching(self, *, key_condition_expression: Any = None, filter_expression: Any = None,
                  **_kw) -> list[dict[str, Any]]:
        out = []
        for it in self.items.values():
            if key_condition_expression is not None and not eval_condition(key_condition_expression, it):
                continue
            if filter_expression is not None and not eval_condition(filter_expression, it):
                continue
            out.append(it)
        return out

    def query_page(self, *, limit: int | None = 50, cursor: str | None = None, **kw) -> Page:
        self._enter("Query")
        return self._page(self._matching(**kw), limit, cursor)

    def query_all(self, **kw) -> list[dict[str, Any]]:
        self._enter("Query")
        return copy.deepcopy(self._matching(**kw))

    def scan_page(self, *, limit: int | None = 50, cursor: str | None = None, **kw) -> Page:
        self._enter("Scan")
        return self._page(self._matching(**kw), limit, cursor)

    def scan_all(self, **kw) -> list[dict[str, Any]]:
        self._enter("Scan")
        return copy.deepcopy(self._matching(**kw))

    def batch_delete(self, *, keys) -> int:
        self._enter("BatchWriteItem")
        keys = list(keys)
        if self.unprocessed_batches > 0:
            self.unprocessed_batches -= 1
            raise StoreError(
                signal=StoreSignal.THROUGHPUT_EXCEEDED,
                message="BatchWriteItem left unprocessed item(s)",
                operation="BatchWriteItem",
                resource=self.table_name,
            )
        for k in keys:
            self.items.pop(self._k(k), None)
        return len(keys)

    def tx_put(self, *, item: dict[str, Any], condition_expression: str | None = None, **_kw) -> dict[str, Any]:
        return {"Item": copy.deepcopy(item), "ConditionExpression": condition_expression}

    def transact_write(self, *, puts=(), **_kw) -> None:
        self._enter("TransactWriteItems")
        puts = list(puts)
        # All-or-nothing: check every condition before applying anything.
        for p in puts:
            item = p["Item"]
            self._check("TransactWriteItems", p.get("ConditionExpression"), self.items.get(self._k(item)), None)
        for p in puts:
            self.items[self._k(p["Item"])] = copy.deepcopy(p["Item"])


@pytest.fixture()
def no_sleep(monkeypatch):
    slept: list[float] = []
    monkeypatch.setattr(time, "sleep", lambda s: slept.append(s))
    return slept


@pytest.fixture()
def items_table(monkeypatch, no_sleep):
    import catalog.repositories.items_repo as items_repo

    t = FakeTable(key_attrs=("itemId",), name="CatalogoProducts")
    monkeypatch.setattr(items_repo, "get_items_table", lambda: t)
    return t


@pytest.fixture()
def categories_table(monkeypatch, no_sleep):
    import catalog.repositories.categories_repo as categories_repo

    t = FakeTable(key_attrs=("categoryKey", "entryKey"), name="CatalogoCategories")
    monkeypatch.setattr(categories_repo, "get_categories_table", lambda: t)
    return t


def transient(operation: str = "PutItem") -> StoreError:
    return StoreError(
        signal=StoreSignal.THROUGHPUT_EXCEEDED,
        message=f"{operation} failed (ProvisionedThroughputExceededException)",
        operation=operation,
    )
