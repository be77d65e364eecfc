from __future__ import annotations

from fastapi import APIRouter

from ..repositories import categories_repo
from ..responses import success
from ..schemas import CategoryCreate, SubcategoryCreate, TranslationsUpdate, parse_body

public_router = APIRouter(tags=["categories"])
admin_router = APIRouter(tags=["admin-categories"])


@public_router.get("/categories")
def list_categories():
    return success(categories_repo.list_categories())


@public_router.get("/categories/{name}")
def get_category(name: str):
    return success(categories_repo.get_category_by_id(name))


@public_router.get("/categories/{name}/subcategories")
def list_subcategories_of(name: str):
    return success(categories_repo.list_subcategories_of(name))


@public_router.get("/subcategories")
def list_all_subcategories():
    return success(categories_repo.list_all_subcategories())


@admin_router.post("/categories", status_code=201)
def create_category(body: dict):
    req = parse_body(CategoryCreate, body)
    return success(categories_repo.upsert_category(req.categoryName, req.translations))


@admin_router.put("/categories/{name}")
def update_category(name: str, body: dict):
    req = parse_body(TranslationsUpdate, body)
    return success(categories_repo.update_category(name, req.translations))


@admin_router.delete("/categories/{name}")
def delete_category(name: str):
    deleted = categories_repo.delete_category(name)
    return success({"message": f"{deleted} items deleted for category {name}", "deleted": deleted})


@admin_router.post("/categories/{name}/subcategories", status_code=201)
def add_subcategory(name: str, body: dict):
    req = parse_body(SubcategoryCreate, body)
    return success(categories_repo.upsert_subcategory(name, req.subcategoryName, req.translations))


@admin_router.put("/categories/{name}/subcategories/{sub}")
def update_subcategory(name: str, sub: str, body: dict):
    req = parse_body(TranslationsUpdate, body)
    return success(categories_repo.upsert_subcategory(name, sub, req.translations))


@admin_router.delete("/categories/{name}/subcategories/{sub}")
def delete_subcategory(name: str, sub: str):
    categories_repo.delete_subcategory(name, sub)
    return success({"message": f"Subcategory {sub} deleted from {name}"})
