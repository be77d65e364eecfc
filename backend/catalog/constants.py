from __future__ import annotations

# Supported languages; the first one is primary and feeds the flat index fields.
LANGUAGES: tuple[str, ...] = ("it", "en", "fr", "es", "de")
PRIMARY_LANGUAGE = LANGUAGES[0]

PRICE_UNITS: tuple[str, ...] = ("€/PZ", "€/KG")

PACKAGING_TYPES: tuple[str, ...] = (
    "Barattolo 1kg",
    "BigBag 600kg",
    "Flacone 750g",
    "Sacco 10kg",
    "Sacco 20kg",
    "Secchio 200tabs",
    "Secchio 3.6kg",
    "Secchio 4kg",
    "Secchio 5kg",
    "Secchio 6kg",
    "Secchio 8kg",
    "Secchio 9kg",
    "Secchio 10kg",
    "Astuccio 100g",
    "Astuccio 700g",
    "Astuccio 2400g",
    "Astuccio 900g",
    "Astuccio 200g",
    "Flacone 500ml",
    "Flacone Trigger 750ml",
    "Tanica 1000l",
    "Flacone 5l",
    "Fustone 5.6kg",
    "Cartone 400tabs",
)

# Secondary indexes on the items table.
CATEGORY_INDEX = "CategoryIndex"
CODE_INDEX = "CodeIndex"

# Category-entry sort keys.
METADATA_ENTRY = "METADATA"
SUBCATEGORY_PREFIX = "SUB#"

# Items-table rows that reserve a product code.
CODE_GUARD_PREFIX = "CODE#"
CODE_GUARD_ENTITY = "ItemCode"

# Product images.
IMAGE_MAX_SIZE_MB = 5
IMAGE_MAX_SIZE_BYTES = IMAGE_MAX_SIZE_MB * 1024 * 1024
IMAGE_ALLOWED_TYPES: tuple[str, ...] = ("image/jpeg", "image/jpg", "image/png", "image/webp")
IMAGE_ALLOWED_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".png", ".webp")
MAX_IMAGES_PER_ITEM = 10
IMAGES_PREFIX = "products"

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100

API_VERSION = "1.0.0"
