"""Category entries.

One partition per category (``categoryKey``). The ``METADATA`` row holds the
category's translations; each subcategory is a ``SUB#<name>`` row under the
same partition. A category with no rows does not exist.
"""

from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Attr, Key

from ..constants import METADATA_ENTRY, SUBCATEGORY_PREFIX
from ..db.dynamodb.table import get_categories_table
from ..domain.items import normalize_localized
from ..errors import ConflictError, NotFoundError
from ..infrastructure.aws_errors import StoreError
from ..observability.logging import get_logger
from ..resilience.retry import default_retry_policy, with_retry
from .common import reclassify

log = get_logger("categories_repo")

_TRANSLATIONS_ONLY = {"projection_expression": "#tr", "expression_attribute_names": {"#tr": "translations"}}


def category_key(name: str) -> dict[str, str]:
    return {"categoryKey": str(name), "entryKey": METADATA_ENTRY}


def subcategory_key(category: str, subcategory: str) -> dict[str, str]:
    return {"categoryKey": str(category), "entryKey": f"{SUBCATEGORY_PREFIX}{subcategory}"}


def _translations(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [r.get("translations") or {} for r in rows]


# --- reads ---


def list_categories() -> list[dict[str, Any]]:
    t = get_categories_table()

    def _op() -> list[dict[str, Any]]:
        try:
            rows = t.scan_all(filter_expression=Attr("entryKey").eq(METADATA_ENTRY), **_TRANSLATIONS_ONLY)
        except StoreError as e:
            raise reclassify(e) from e
        return _translations(rows)

    return with_retry(_op, context={"operation": "list_categories"})()


def list_all_subcategories() -> list[dict[str, Any]]:
    t = get_categories_table()

    def _op() -> list[dict[str, Any]]:
        try:
            rows = t.scan_all(
                filter_expression=Attr("entryKey").begins_with(SUBCATEGORY_PREFIX), **_TRANSLATIONS_ONLY
            )
        except StoreError as e:
            raise reclassify(e) from e
        return _translations(rows)

    return with_retry(_op, context={"operation": "list_all_subcategories"})()


def list_subcategories_of(category: str) -> list[dict[str, Any]]:
    t = get_categories_table()

    def _op() -> list[dict[str, Any]]:
        try:
            rows = t.query_all(
                key_condition_expression=Key("categoryKey").eq(category)
                & Key("entryKey").begins_with(SUBCATEGORY_PREFIX),
                **_TRANSLATIONS_ONLY,
            )
        except StoreError as e:
            raise reclassify(e) from e
        return _translations(rows)

    return with_retry(_op, context={"operation": "list_subcategories_of", "category": category})()


def get_category_by_id(name: str) -> dict[str, Any]:
    t = get_categories_table()

    def _op() -> dict[str, Any]:
        try:
            row = t.get_item(key=category_key(name), **_TRANSLATIONS_ONLY)
        except StoreError as e:
            raise reclassify(e) from e
        if not row:
            raise NotFoundError(f"Category {name} not found")
        return row.get("translations") or {}

    return with_retry(_op, context={"operation": "get_category_by_id", "category": name})()


# --- writes ---


def upsert_category(name: str, translations: Any) -> dict[str, Any]:
    """Create the category's METADATA row; an existing category is a Conflict."""
    item = {**category_key(name), "translations": normalize_localized(translations) or {}}
    t = get_categories_table()

    def _op() -> dict[str, Any]:
        try:
            t.put_item(item=item, condition_expression="attribute_not_exists(categoryKey)")
        except StoreError as e:
            raise reclassify(e, condition_failed=ConflictError(f"Category {name} already exists")) from e
        return item

    out = with_retry(_op, context={"operation": "upsert_category", "category": name})()
    log.info("category_created", category=name)
    return out


def update_category(name: str, translations: Any) -> dict[str, Any]:
    t = get_categories_table()
    tr = normalize_localized(translations) or {}

    def _op() -> dict[str, Any]:
        try:
            out = t.update_item(
                key=category_key(name),
                update_expression="SET #tr = :tr",
                expression_attribute_names={"#tr": "translations"},
                expression_attribute_values={":tr": tr},
                condition_expression="attribute_exists(entryKey)",
                return_values="ALL_NEW",
            )
        except StoreError as e:
            raise reclassify(e, condition_failed=NotFoundError(f"Category {name} not found")) from e
        return out or {}

    return with_retry(_op, context={"operation": "update_category", "category": name})()


def upsert_subcategory(category: str, subcategory: str, translations: Any) -> dict[str, Any]:
    """Create or overwrite a subcategory row (unconditional put)."""
    item = {
        **subcategory_key(category, subcategory),
        "translations": normalize_localized(translations) or {},
    }
    t = get_categories_table()

    def _op() -> dict[str, Any]:
        try:
            t.put_item(item=item)
        except StoreError as e:
            raise reclassify(e) from e
        return item

    return with_retry(
        _op,
        context={"operation": "upsert_subcategory", "category": category, "subcategory": subcategory},
    )()


def delete_subcategory(category: str, subcategory: str) -> None:
    t = get_categories_table()
    missing = NotFoundError(f"Subcategory {subcategory} not found in {category}")

    def _op() -> None:
        try:
            t.delete_item(
                key=subcategory_key(category, subcategory),
                condition_expression="attribute_exists(entryKey)",
            )
        except StoreError as e:
            raise reclassify(e, condition_failed=missing) from e

    with_retry(
        _op,
        context={"operation": "delete_subcategory", "category": category, "subcategory": subcategory},
    )()
    log.info("subcategory_deleted", category=category, subcategory=subcategory)


def delete_category(name: str) -> int:
    """
    Delete every row under the category (METADATA and all SUB# rows).

    Rows are enumerated first, then removed with one BatchWriteItem. The
    request is not chunked, so a category is limited to the store's batch
    ceiling of 25 rows. Returns the number of rows deleted.
    """
    t = get_categories_table()

    def _op() -> int:
        try:
            rows = t.query_all(
                key_condition_expression=Key("categoryKey").eq(name),
                projection_expression="categoryKey, entryKey",
            )
        except StoreError as e:
            raise reclassify(e) from e
        if not rows:
            raise NotFoundError(f"Category {name} not found or has no items")

        keys = [{"categoryKey": r["categoryKey"], "entryKey": r["entryKey"]} for r in rows]
        try:
            return t.batch_delete(keys=keys)
        except StoreError as e:
            raise reclassify(e) from e

    deleted = with_retry(
        _op,
        policy=default_retry_policy(max_attempts=2),
        context={"operation": "delete_category", "category": name},
    )()
    log.info("category_deleted", category=name, rows=deleted)
    return deleted
