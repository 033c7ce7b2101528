"""
Mock Product Catalog

Simulates the merchant catalog the protocol builders consult: maps a
free-text item name to a SKU and list price.

Lookups are deterministic. An unknown item raises CatalogMissError so the
caller can ask the user to clarify; no placeholder product is invented.
"""
from typing import List, Optional, Dict, Any
from dataclasses import dataclass
import logging

from ..exceptions import CatalogMissError
from ..protocols.base import CatalogEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Product:
    """Product data structure."""
    product_id: str
    name: str
    description: str
    category: str
    price_cents: int
    keywords: tuple  # lower-case lookup keys


PRODUCT_CATALOG: List[Product] = [
    Product(
        product_id="sku_nike_air_max",
        name="Nike Air Max 90",
        description="Classic Nike Air Max 90 sneakers",
        category="Fashion",
        price_cents=12000,  # $120.00
        keywords=("nike shoes", "sneakers", "shoes"),
    ),
    Product(
        product_id="sku_book_001",
        name="Programming Book",
        description="Technical programming book",
        category="Books",
        price_cents=2500,  # $25.00
        keywords=("book", "books"),
    ),
    Product(
        product_id="sku_rolex_submariner",
        name="Rolex Submariner",
        description="Swiss luxury watch",
        category="Fashion",
        price_cents=450000,  # $4,500.00
        keywords=("rolex watch", "rolex"),
    ),
    Product(
        product_id="sku_apple_iphone_15",
        name="Apple iPhone 15",
        description="Latest iPhone model",
        category="Electronics",
        price_cents=79900,  # $799.00
        keywords=("iphones", "iphone"),
    ),
    Product(
        product_id="sku_gaming_laptop_pro",
        name="Gaming Laptop Pro",
        description="High-performance gaming laptop",
        category="Electronics",
        price_cents=150000,  # $1,500.00
        keywords=("gaming laptops", "laptop"),
    ),
    Product(
        product_id="sku_wireless_studio_edge",
        name="Wireless Studio Edge",
        description="Over-ear wireless headphones",
        category="Electronics",
        price_cents=29900,  # $299.00
        keywords=("headphones",),
    ),
    Product(
        product_id="sku_smart_watch_horizon",
        name="Smart Watch Horizon",
        description="Fitness and notification smart watch",
        category="Electronics",
        price_cents=39900,  # $399.00
        keywords=("smart watch", "smartwatch"),
    ),
    Product(
        product_id="sku_keymaster_rgb",
        name="KeyMaster RGB Mechanical",
        description="Mechanical keyboard with RGB lighting",
        category="Electronics",
        price_cents=14900,  # $149.00
        keywords=("keyboard", "mechanical keyboard"),
    ),
    Product(
        product_id="sku_portable_ssd_2tb",
        name="Portable SSD 2TB Ultra",
        description="USB-C portable solid state drive",
        category="Electronics",
        price_cents=18900,  # $189.00
        keywords=("ssd", "portable ssd"),
    ),
    Product(
        product_id="sku_office_desk",
        name="Standing Office Desk",
        description="Height-adjustable standing desk",
        category="Home",
        price_cents=50000,  # $500.00
        keywords=("desk", "standing desk"),
    ),
]


def _to_dict(product: Product) -> Dict[str, Any]:
    return {
        "product_id": product.product_id,
        "name": product.name,
        "description": product.description,
        "category": product.category,
        "price_cents": product.price_cents,
    }


def find_product(item_name: str) -> Optional[Product]:
    """
    Resolve an item name to a product.

    Exact keyword or name match first, then substring match in either
    direction, both in catalog order.
    """
    normalized = (item_name or "").strip().lower()
    if not normalized:
        return None

    for product in PRODUCT_CATALOG:
        if normalized == product.name.lower() or normalized in product.keywords:
            return product

    for product in PRODUCT_CATALOG:
        for key in (product.name.lower(),) + product.keywords:
            if key in normalized or normalized in key:
                return product

    return None


def lookup_product(item_name: str) -> CatalogEntry:
    """
    Catalog lookup used by the protocol builders.

    Raises:
        CatalogMissError: No product matches the item name
    """
    product = find_product(item_name)
    if product is None:
        logger.info(f"Catalog miss for item {item_name!r}")
        raise CatalogMissError(
            f"No product matches '{item_name}'",
            {"item": item_name}
        )

    return CatalogEntry(id=product.product_id, price_cents=product.price_cents)


def search_products(
    query: Optional[str] = None,
    max_price: Optional[float] = None,
    category: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    Search the catalog by query, price, and category.

    Args:
        query: Case-insensitive match on name or description
        max_price: Maximum price in dollars
        category: Filter by category
    """
    results = PRODUCT_CATALOG

    if query:
        query_lower = query.lower()
        results = [
            p for p in results
            if query_lower in p.name.lower() or query_lower in p.description.lower()
        ]

    if max_price is not None:
        max_price_cents = int(max_price * 100)
        results = [p for p in results if p.price_cents <= max_price_cents]

    if category:
        results = [p for p in results if p.category.lower() == category.lower()]

    return [_to_dict(p) for p in results]


def get_product_by_id(product_id: str) -> Optional[Dict[str, Any]]:
    """Get specific product by ID."""
    for product in PRODUCT_CATALOG:
        if product.product_id == product_id:
            return _to_dict(product)
    return None
