"""Pure item rules shared by the repositories and request validation."""

from __future__ import annotations

from typing import Any

from ..constants import LANGUAGES, PRIMARY_LANGUAGE

LOCALIZED_FIELDS: tuple[str, ...] = ("name", "category", "subcategory", "description")

# Attributes the store layer owns; caller-supplied values are discarded.
DERIVED_FIELDS: tuple[str, ...] = ("unitsPerPallet", "categoryFlat", "subcategoryFlat", "reservedCode")


class _Unset:
    """Marks a key that must be left untouched on update (unlike None, which clears it)."""

    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def normalize_localized(value: Any) -> dict[str, str] | None:
    """
    Normalize a localized text value.

    A legacy plain string ``s`` becomes ``{"it": s}``. Mappings keep only the
    supported language keys, with values stripped. ``None`` stays ``None``.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return {PRIMARY_LANGUAGE: value.strip()}
    if isinstance(value, dict):
        out: dict[str, str] = {}
        for lang in LANGUAGES:
            v = value.get(lang)
            if v is None:
                continue
            out[lang] = str(v).strip()
        return out
    raise TypeError(f"localized value must be a string or mapping, got {type(value).__name__}")


def primary_text(value: Any) -> str | None:
    """The primary-language text of a localized value, or None."""
    loc = normalize_localized(value)
    if not loc:
        return None
    return loc.get(PRIMARY_LANGUAGE) or None


def units_per_pallet(units_per_box: Any, boxes_per_pallet: Any) -> int | None:
    if units_per_box is None or boxes_per_pallet is None:
        return None
    return int(units_per_box) * int(boxes_per_pallet)
