from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Attr, Key

from ..constants import (
    CATEGORY_INDEX,
    CODE_GUARD_ENTITY,
    CODE_GUARD_PREFIX,
    CODE_INDEX,
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
)
from ..db.dynamodb.table import Page, get_items_table
from ..domain.items import (
    DERIVED_FIELDS,
    LOCALIZED_FIELDS,
    UNSET,
    normalize_localized,
    primary_text,
    units_per_pallet,
)
from ..errors import ConflictError, NotFoundError, ValidationError
from ..infrastructure.aws_errors import StoreError, StoreSignal
from ..observability.logging import get_logger
from ..resilience.retry import with_retry
from .common import new_id, now_iso, reclassify

log = get_logger("items_repo")

# Attributes never written from caller input on update.
_READ_ONLY_ON_UPDATE = ("itemId", "createdAt", "updatedAt", *DERIVED_FIELDS)


def item_key(item_id: str) -> dict[str, str]:
    return {"itemId": str(item_id)}


def code_guard_key(code: str) -> dict[str, str]:
    return {"itemId": f"{CODE_GUARD_PREFIX}{code}"}


def _clamp_limit(limit: int | None) -> int:
    return max(1, min(MAX_PAGE_LIMIT, int(limit or DEFAULT_PAGE_LIMIT)))


def _not_found(item_id: str) -> NotFoundError:
    return NotFoundError(f"Item with ID {item_id} not found")


def _is_guard_id(item_id: str) -> bool:
    return str(item_id or "").startswith(CODE_GUARD_PREFIX)


def _with_flat_fields(obj: dict[str, Any]) -> dict[str, Any]:
    cat = primary_text(obj.get("category"))
    sub = primary_text(obj.get("subcategory"))
    if cat:
        obj["categoryFlat"] = cat
    if sub:
        obj["subcategoryFlat"] = sub
    return obj


def build_new_item(data: dict[str, Any]) -> dict[str, Any]:
    """Build the row for a new item: fresh id, derived fields, timestamps."""
    obj = {k: v for k, v in (data or {}).items() if v is not UNSET and v is not None}
    for k in ("itemId", "createdAt", "updatedAt", *DERIVED_FIELDS):
        obj.pop(k, None)

    code = str(obj.get("code") or "").strip()
    if not code:
        raise ValidationError("Item code is required")
    obj["code"] = code
    obj["reservedCode"] = code

    for f in LOCALIZED_FIELDS:
        if f in obj:
            obj[f] = normalize_localized(obj[f])

    upp = units_per_pallet(obj.get("unitsPerBox"), obj.get("boxesPerPallet"))
    if upp is not None:
        obj["unitsPerPallet"] = upp

    now = now_iso()
    obj["itemId"] = new_id()
    obj["createdAt"] = now
    obj["updatedAt"] = now
    return _with_flat_fields(obj)


def create_item(data: dict[str, Any]) -> dict[str, Any]:
    """
    Create an item, reserving its code.

    The item row and its ``CODE#<code>`` guard row are written in one
    transaction, both create-if-absent, so a duplicate code fails the whole
    write with Conflict. A retry whose earlier attempt committed without a
    response finds its own guard and returns the item instead.
    """
    item = build_new_item(data)
    code = item["code"]
    guard = {
        **code_guard_key(code),
        "entityType": CODE_GUARD_ENTITY,
        "ownerItemId": item["itemId"],
        "createdAt": item["createdAt"],
    }
    t = get_items_table()

    def _op() -> dict[str, Any]:
        try:
            t.transact_write(
                puts=[
                    t.tx_put(item=item, condition_expression="attribute_not_exists(itemId)"),
                    t.tx_put(item=guard, condition_expression="attribute_not_exists(itemId)"),
                ]
            )
        except StoreError as e:
            if e.signal is StoreSignal.CONDITIONAL_CHECK_FAILED and _owns_code_guard(t, code, item["itemId"]):
                log.info("item_create_already_committed", item_id=item["itemId"], code=code)
                return item
            raise reclassify(
                e, condition_failed=ConflictError(f"Item with code {code} already exists")
            ) from e
        return item

    created = with_retry(_op, context={"operation": "create_item", "code": code})()
    log.info("item_created", item_id=created["itemId"], code=code)
    return created


def _owns_code_guard(t: Any, code: str, item_id: str) -> bool:
    try:
        guard = t.get_item(key=code_guard_key(code))
    except StoreError as e:
        raise reclassify(e) from e
    return bool(guard) and guard.get("ownerItemId") == item_id


def get_item(item_id: str) -> dict[str, Any]:
    if _is_guard_id(item_id):
        raise _not_found(item_id)
    t = get_items_table()

    def _op() -> dict[str, Any]:
        try:
            it = t.get_item(key=item_key(item_id))
        except StoreError as e:
            raise reclassify(e) from e
        if not it:
            raise _not_found(item_id)
        return it

    return with_retry(_op, context={"operation": "get_item", "item_id": item_id})()


def get_item_by_code(code: str) -> dict[str, Any] | None:
    c = str(code or "").strip()
    if not c:
        return None
    t = get_items_table()

    def _op() -> dict[str, Any] | None:
        try:
            pg = t.query_page(
                key_condition_expression=Key("code").eq(c),
                index_name=CODE_INDEX,
                limit=1,
            )
        except StoreError as e:
            raise reclassify(e) from e
        return pg.items[0] if pg.items else None

    return with_retry(_op, context={"operation": "get_item_by_code", "code": c})()


def _pending_changes(updates: dict[str, Any] | None) -> dict[str, Any]:
    changes = {
        k: v
        for k, v in (updates or {}).items()
        if k not in _READ_ONLY_ON_UPDATE and v is not UNSET
    }
    for f in LOCALIZED_FIELDS:
        if f in changes:
            changes[f] = normalize_localized(changes[f])
    if isinstance(changes.get("code"), str):
        changes["code"] = changes["code"].strip()
    return changes


def build_update_expression(
    changes: dict[str, Any],
) -> tuple[str, dict[str, str], dict[str, Any]]:
    """
    SET every non-None value, REMOVE every None value.

    Placeholders are positional so attribute names never collide with
    reserved words.
    """
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    sets: list[str] = []
    removes: list[str] = []
    for i, (k, v) in enumerate(changes.items()):
        names[f"#f{i}"] = k
        if v is None:
            removes.append(f"#f{i}")
        else:
            values[f":v{i}"] = v
            sets.append(f"#f{i} = :v{i}")

    parts: list[str] = []
    if sets:
        parts.append("SET " + ", ".join(sets))
    if removes:
        parts.append("REMOVE " + ", ".join(removes))
    return " ".join(parts), names, values


def update_item(item_id: str, updates: dict[str, Any]) -> dict[str, Any]:
    """
    Update-if-exists. Returns the item as stored after the write.

    ``UNSET`` values are ignored and ``None`` clears the attribute. Touching
    ``unitsPerBox`` or ``boxesPerPallet`` recomputes ``unitsPerPallet`` from
    the merged operands (reading the current item for the missing one).
    Last write wins; there is no version check. Changing ``code`` does not
    move the guard row; it stays under ``reservedCode`` until the item is
    deleted.
    """
    changes = _pending_changes(updates)
    if not changes:
        raise ValidationError("No fields to update")
    if _is_guard_id(item_id):
        raise _not_found(item_id)

    if "unitsPerBox" in changes or "boxesPerPallet" in changes:
        if "unitsPerBox" in changes and "boxesPerPallet" in changes:
            current: dict[str, Any] = {}
        else:
            current = get_item(item_id)
        upb = changes["unitsPerBox"] if "unitsPerBox" in changes else current.get("unitsPerBox")
        bpp = changes["boxesPerPallet"] if "boxesPerPallet" in changes else current.get("boxesPerPallet")
        changes["unitsPerPallet"] = units_per_pallet(upb, bpp)

    if "category" in changes:
        changes["categoryFlat"] = primary_text(changes["category"])
    if "subcategory" in changes:
        changes["subcategoryFlat"] = primary_text(changes["subcategory"])

    changes["updatedAt"] = now_iso()
    expr, names, values = build_update_expression(changes)
    t = get_items_table()

    def _op() -> dict[str, Any]:
        try:
            out = t.update_item(
                key=item_key(item_id),
                update_expression=expr,
                expression_attribute_names=names,
                expression_attribute_values=values,
                condition_expression="attribute_exists(itemId)",
                return_values="ALL_NEW",
            )
        except StoreError as e:
            raise reclassify(e, condition_failed=_not_found(item_id)) from e
        return out or {}

    updated = with_retry(_op, context={"operation": "update_item", "item_id": item_id})()
    log.info("item_updated", item_id=item_id, fields=sorted(k for k in changes if k != "updatedAt"))
    return updated


def delete_item(item_id: str) -> dict[str, Any]:
    """Delete-if-exists. Returns the deleted row; images are not touched here."""
    if _is_guard_id(item_id):
        raise _not_found(item_id)
    t = get_items_table()

    def _op() -> dict[str, Any]:
        try:
            old = t.delete_item(
                key=item_key(item_id),
                condition_expression="attribute_exists(itemId)",
                return_values="ALL_OLD",
            )
        except StoreError as e:
            raise reclassify(e, condition_failed=_not_found(item_id)) from e
        return old or {}

    old = with_retry(_op, context={"operation": "delete_item", "item_id": item_id})()
    log.info("item_deleted", item_id=item_id, code=old.get("code"))

    # Rows written before reservedCode existed hold their guard under code.
    code = str(old.get("reservedCode") or old.get("code") or "").strip()
    if code:
        _release_code_guard(code, owner_item_id=item_id)
    return old


def _release_code_guard(code: str, *, owner_item_id: str) -> None:
    # Only the owner may release; a guard re-taken by a newer item stays.
    t = get_items_table()
    try:
        t.delete_item(
            key=code_guard_key(code),
            condition_expression="ownerItemId = :owner",
            expression_attribute_values={":owner": owner_item_id},
        )
    except StoreError as e:
        log.warning(
            "code_guard_release_failed",
            code=code,
            item_id=owner_item_id,
            signal=e.signal.value,
            error=e.message,
        )


def list_items(*, limit: int | None = DEFAULT_PAGE_LIMIT, cursor: str | None = None) -> Page:
    t = get_items_table()
    lim = _clamp_limit(limit)

    def _op() -> Page:
        try:
            return t.scan_page(
                limit=lim,
                filter_expression=~Attr("itemId").begins_with(CODE_GUARD_PREFIX),
                cursor=cursor,
            )
        except StoreError as e:
            raise reclassify(e) from e

    return with_retry(_op, context={"operation": "list_items"})()


def query_by_category(
    category_flat: str,
    *,
    limit: int | None = DEFAULT_PAGE_LIMIT,
    cursor: str | None = None,
) -> Page:
    t = get_items_table()
    lim = _clamp_limit(limit)

    def _op() -> Page:
        try:
            return t.query_page(
                key_condition_expression=Key("categoryFlat").eq(category_flat),
                index_name=CATEGORY_INDEX,
                limit=lim,
                cursor=cursor,
            )
        except StoreError as e:
            raise reclassify(e) from e

    return with_retry(_op, context={"operation": "query_by_category", "category": category_flat})()


def query_by_category_and_subcategory(
    category_flat: str,
    subcategory: str,
    *,
    limit: int | None = DEFAULT_PAGE_LIMIT,
    cursor: str | None = None,
) -> Page:
    t = get_items_table()
    lim = _clamp_limit(limit)
    # Older rows carry only the nested map, newer ones the flat copy.
    sub_filter = Attr("subcategoryFlat").eq(subcategory) | Attr("subcategory.it").eq(subcategory)

    def _op() -> Page:
        try:
            return t.query_page(
                key_condition_expression=Key("categoryFlat").eq(category_flat),
                index_name=CATEGORY_INDEX,
                filter_expression=sub_filter,
                limit=lim,
                cursor=cursor,
            )
        except StoreError as e:
            raise reclassify(e) from e

    return with_retry(
        _op,
        context={
            "operation": "query_by_category_and_subcategory",
            "category": category_flat,
            "subcategory": subcategory,
        },
    )()
