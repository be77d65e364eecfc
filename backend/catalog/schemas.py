from __future__ import annotations

from typing import Any, TypeVar
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .constants import (
    IMAGE_ALLOWED_TYPES,
    IMAGE_MAX_SIZE_BYTES,
    LANGUAGES,
    MAX_IMAGES_PER_ITEM,
    PACKAGING_TYPES,
    PRICE_UNITS,
)
from .domain.items import normalize_localized
from .errors import ValidationError

M = TypeVar("M", bound=BaseModel)


def _localized(v: Any, *, require_all: bool) -> dict[str, str]:
    # Legacy rows and older clients send a bare string for the primary language.
    if isinstance(v, str):
        if not v.strip():
            raise ValueError("must not be empty")
        return normalize_localized(v) or {}
    if not isinstance(v, dict):
        raise ValueError("must be an object keyed by language or a string")
    for lang, text in v.items():
        if lang in LANGUAGES and text is not None and not isinstance(text, str):
            raise ValueError(f"{lang} must be a string")
    out = normalize_localized(v) or {}
    if require_all:
        missing = [lang for lang in LANGUAGES if not out.get(lang)]
        if missing:
            raise ValueError(f"missing translations: {', '.join(missing)}")
    return out


def _check_images(v: list[str] | None) -> list[str] | None:
    if v is None:
        return None
    for url in v:
        sp = urlsplit(str(url))
        if sp.scheme not in ("http", "https") or not sp.netloc:
            raise ValueError(f"not a valid URI: {url}")
    return v


def _check_choice(v: str | None, choices: tuple[str, ...]) -> str | None:
    if v is not None and v not in choices:
        raise ValueError(f"must be one of: {', '.join(choices)}")
    return v


class ItemCreate(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: dict[str, str]
    code: str = Field(min_length=1)
    type: str = Field(min_length=1)
    price: float = Field(ge=0)
    priceUnit: str
    category: dict[str, str]
    subcategory: dict[str, str]
    packagingType: str
    unitsPerBox: int | None = Field(default=None, ge=0)
    boxesPerPallet: int | None = Field(default=None, ge=0)
    description: dict[str, str] | None = None
    images: list[str] | None = Field(default=None, max_length=MAX_IMAGES_PER_ITEM)

    @field_validator("name", "category", "subcategory", mode="before")
    @classmethod
    def _required_localized(cls, v: Any) -> dict[str, str]:
        return _localized(v, require_all=True)

    @field_validator("description", mode="before")
    @classmethod
    def _optional_localized(cls, v: Any) -> dict[str, str] | None:
        return None if v is None else _localized(v, require_all=False)

    @field_validator("code")
    @classmethod
    def _upper_code(cls, v: str) -> str:
        return v.upper()

    @field_validator("priceUnit")
    @classmethod
    def _price_unit(cls, v: str) -> str:
        return _check_choice(v, PRICE_UNITS)

    @field_validator("packagingType")
    @classmethod
    def _packaging(cls, v: str) -> str:
        return _check_choice(v, PACKAGING_TYPES)

    @field_validator("images")
    @classmethod
    def _images(cls, v: list[str] | None) -> list[str] | None:
        return _check_images(v)


# Fields that may be sent as null on update to clear them.
_CLEARABLE = frozenset({"unitsPerBox", "boxesPerPallet", "description", "images"})


class ItemUpdate(BaseModel):
    """
    Partial update. Only the keys present in the body are applied; an
    explicit null clears one of the optional attributes.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: dict[str, str] | None = None
    code: str | None = Field(default=None, min_length=1)
    type: str | None = Field(default=None, min_length=1)
    price: float | None = Field(default=None, ge=0)
    priceUnit: str | None = None
    category: dict[str, str] | None = None
    subcategory: dict[str, str] | None = None
    packagingType: str | None = None
    unitsPerBox: int | None = Field(default=None, ge=0)
    boxesPerPallet: int | None = Field(default=None, ge=0)
    description: dict[str, str] | None = None
    images: list[str] | None = Field(default=None, max_length=MAX_IMAGES_PER_ITEM)

    @field_validator("name", "category", "subcategory", "description", mode="before")
    @classmethod
    def _localized(cls, v: Any) -> dict[str, str] | None:
        return None if v is None else _localized(v, require_all=False)

    @field_validator("code")
    @classmethod
    def _upper_code(cls, v: str | None) -> str | None:
        return v.upper() if v is not None else None

    @field_validator("priceUnit")
    @classmethod
    def _price_unit(cls, v: str | None) -> str | None:
        return _check_choice(v, PRICE_UNITS)

    @field_validator("packagingType")
    @classmethod
    def _packaging(cls, v: str | None) -> str | None:
        return _check_choice(v, PACKAGING_TYPES)

    @field_validator("images")
    @classmethod
    def _images(cls, v: list[str] | None) -> list[str] | None:
        return _check_images(v)

    def to_updates(self) -> dict[str, Any]:
        out = self.model_dump(exclude_unset=True)
        bad = sorted(k for k, v in out.items() if v is None and k not in _CLEARABLE)
        if bad:
            raise ValidationError(
                "Validation failed",
                details=[{"field": k, "message": f"{k} may not be null"} for k in bad],
            )
        return out


class CategoryCreate(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    categoryName: str = Field(min_length=1)
    translations: dict[str, str]

    @field_validator("translations", mode="before")
    @classmethod
    def _translations(cls, v: Any) -> dict[str, str]:
        return _localized(v, require_all=False)


class SubcategoryCreate(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    subcategoryName: str = Field(min_length=1)
    translations: dict[str, str]

    @field_validator("translations", mode="before")
    @classmethod
    def _translations(cls, v: Any) -> dict[str, str]:
        return _localized(v, require_all=False)


class TranslationsUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    translations: dict[str, str]

    @field_validator("translations", mode="before")
    @classmethod
    def _translations(cls, v: Any) -> dict[str, str]:
        return _localized(v, require_all=False)


class PresignedUrlRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    fileName: str = Field(min_length=1)
    fileType: str
    fileSize: int = Field(ge=1, le=IMAGE_MAX_SIZE_BYTES)
    itemId: str | None = None

    @field_validator("fileType")
    @classmethod
    def _file_type(cls, v: str) -> str:
        return _check_choice(v, IMAGE_ALLOWED_TYPES)


def parse_body(model: type[M], body: Any) -> M:
    """
    Validate a JSON body, raising the app's ValidationError with one
    ``{field, message}`` entry per problem.
    """
    try:
        return model.model_validate(body or {})
    except PydanticValidationError as e:
        details: list[dict[str, Any]] = []
        for it in e.errors(include_url=False):
            details.append(
                {
                    "field": ".".join(str(x) for x in (it.get("loc") or [])),
                    "message": str(it.get("msg") or "Invalid value"),
                }
            )
        raise ValidationError("Validation failed", details=details) from e
