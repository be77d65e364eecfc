from __future__ import annotations

import pytest

from catalog.errors import ValidationError
from catalog.schemas import (
    CategoryCreate,
    ItemCreate,
    ItemUpdate,
    PresignedUrlRequest,
    parse_body,
)

FULL = {"it": "Cloro", "en": "Chlorine", "fr": "Chlore", "es": "Cloro", "de": "Chlor"}


def _body(**overrides):
    body = {
        "name": FULL,
        "code": " ab-01 ",
        "type": "Granulare",
        "price": 9.9,
        "priceUnit": "€/KG",
        "category": FULL,
        "subcategory": FULL,
        "packagingType": "Secchio 5kg",
    }
    body.update(overrides)
    return body


def _fields(exc: ValidationError) -> set[str]:
    return {d["field"] for d in exc.details}


def test_item_create_accepts_a_complete_body():
    m = parse_body(ItemCreate, _body(unitsPerBox=4, images=["https://cdn.example.com/a.png"]))
    assert m.code == "AB-01"
    assert m.unitsPerBox == 4
    assert m.name["de"] == "Chlor"


def test_item_create_accepts_legacy_string_names():
    m = parse_body(ItemCreate, _body(name="Cloro"))
    assert m.name == {"it": "Cloro"}


def test_item_create_reports_every_problem():
    body = _body(price=-1, priceUnit="€/L", name={"it": "Cloro"}, images=["ftp://x/y.png"])
    del body["type"]

    with pytest.raises(ValidationError) as info:
        parse_body(ItemCreate, body)

    assert info.value.message == "Validation failed"
    assert {"price", "priceUnit", "name", "images", "type"} <= _fields(info.value)


def test_item_create_caps_image_count():
    urls = [f"https://cdn.example.com/{i}.png" for i in range(11)]
    with pytest.raises(ValidationError) as info:
        parse_body(ItemCreate, _body(images=urls))
    assert "images" in _fields(info.value)


def test_item_update_keeps_only_sent_keys():
    m = parse_body(ItemUpdate, {"price": 3, "unitsPerBox": None, "description": None})
    assert m.to_updates() == {"price": 3, "unitsPerBox": None, "description": None}


def test_item_update_rejects_null_for_required_fields():
    m = parse_body(ItemUpdate, {"name": None, "code": None})
    with pytest.raises(ValidationError) as info:
        m.to_updates()
    assert _fields(info.value) == {"code", "name"}


def test_category_create_requires_name():
    with pytest.raises(ValidationError):
        parse_body(CategoryCreate, {"translations": {"it": "Casa"}})
    m = parse_body(CategoryCreate, {"categoryName": "Home", "translations": {"it": "Casa", "zz": "?"}})
    assert m.translations == {"it": "Casa"}


@pytest.mark.parametrize(
    "body, field",
    [
        ({"fileName": "a.png", "fileType": "image/gif", "fileSize": 10}, "fileType"),
        ({"fileName": "a.png", "fileType": "image/png", "fileSize": 0}, "fileSize"),
        ({"fileName": "a.png", "fileType": "image/png", "fileSize": 6 * 1024 * 1024}, "fileSize"),
        ({"fileType": "image/png", "fileSize": 10}, "fileName"),
    ],
)
def test_presigned_url_request_validation(body, field):
    with pytest.raises(ValidationError) as info:
        parse_body(PresignedUrlRequest, body)
    assert field in _fields(info.value)
