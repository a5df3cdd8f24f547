"""
Product catalog and listing filters.

The catalog is a static in-memory list. Lookups are coroutines that resolve
after a short simulated network delay (CATALOG_DELAY_SECONDS) without blocking
the event loop.
"""
import asyncio
import os
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from errors import ProductNotFound, StaleViewError
from schemas import Product, ProductFilter

CATALOG_DELAY_SECONDS = float(os.getenv("CATALOG_DELAY_SECONDS", "0.3"))

CATEGORIES = [
    {"name": "Face Serum", "slug": "face-serum", "description": "Targeted treatments for hydration, brightening and repair."},
    {"name": "Face Wash", "slug": "face-wash", "description": "Gentle cleansers for every skin type."},
    {"name": "Sun Screen", "slug": "sun-screen", "description": "Broad-spectrum daily sun protection."},
]

PRODUCT_DATA = [
    {
        "id": "1",
        "name": "Hydrating Face Serum",
        "description": "A lightweight serum that deeply hydrates and plumps the skin with hyaluronic acid and vitamin B5.",
        "price": 1299,
        "category": "Face Serum",
        "stock": 25,
        "rating": 4.7,
        "num_reviews": 128,
        "featured": True,
        "best_seller": True,
    },
    {
        "id": "2",
        "name": "Vitamin C Brightening Serum",
        "description": "Powerful antioxidant serum that brightens skin tone, reduces hyperpigmentation, and boosts collagen production.",
        "price": 1499,
        "category": "Face Serum",
        "stock": 18,
        "rating": 4.9,
        "num_reviews": 94,
        "featured": True,
    },
    {
        "id": "3",
        "name": "Gentle Foaming Cleanser",
        "description": "A gentle face wash that effectively removes impurities without stripping the skin's natural moisture.",
        "price": 899,
        "category": "Face Wash",
        "stock": 32,
        "rating": 4.5,
        "num_reviews": 76,
    },
    {
        "id": "4",
        "name": "Exfoliating Face Wash",
        "description": "Removes dead skin cells and unclogs pores with natural exfoliants for a smoother complexion.",
        "price": 999,
        "category": "Face Wash",
        "stock": 22,
        "rating": 4.6,
        "num_reviews": 63,
        "best_seller": True,
    },
    {
        "id": "5",
        "name": "SPF 50 Lightweight Sunscreen",
        "description": "Broad-spectrum protection with a lightweight formula that blends seamlessly into all skin tones.",
        "price": 1199,
        "category": "Sun Screen",
        "stock": 15,
        "rating": 4.8,
        "num_reviews": 105,
        "featured": True,
    },
    {
        "id": "6",
        "name": "Hydrating SPF 30 Sunscreen",
        "description": "Daily protection with added hydration for dry skin types, enriched with niacinamide and ceramides.",
        "price": 1099,
        "category": "Sun Screen",
        "stock": 20,
        "rating": 4.4,
        "num_reviews": 89,
    },
    {
        "id": "7",
        "name": "Retinol Repair Serum",
        "description": "Night-time serum that diminishes fine lines and improves skin texture with stabilized retinol.",
        "price": 1699,
        "category": "Face Serum",
        "stock": 12,
        "rating": 4.7,
        "num_reviews": 72,
        "new": True,
    },
    {
        "id": "8",
        "name": "Oil Control Face Wash",
        "description": "Balances oily skin and reduces shine without over-drying, featuring salicylic acid and tea tree oil.",
        "price": 949,
        "category": "Face Wash",
        "stock": 28,
        "rating": 4.3,
        "num_reviews": 54,
    },
    {
        "id": "9",
        "name": "Tinted SPF 40 Sunscreen",
        "description": "Light coverage with sun protection, perfect for a natural look while protecting your skin.",
        "price": 1399,
        "category": "Sun Screen",
        "stock": 17,
        "rating": 4.6,
        "num_reviews": 48,
        "new": True,
    },
]


def matches_term(product: Product, term: str) -> bool:
    term = term.lower()
    return (
        term in product.name.lower()
        or term in product.description.lower()
        or term in product.category.lower()
    )


class Catalog:
    def __init__(self, products: Optional[Iterable[dict]] = None, delay: float = CATALOG_DELAY_SECONDS):
        self._products = [Product(**p) for p in (PRODUCT_DATA if products is None else products)]
        self.delay = delay

    async def _resolve(self, predicate: Callable[[Product], bool]) -> List[Product]:
        await asyncio.sleep(self.delay)
        # copies, so callers never mutate the catalog itself
        return [p.model_copy(deep=True) for p in self._products if predicate(p)]

    async def get_all_products(self) -> List[Product]:
        return await self._resolve(lambda p: True)

    async def get_product_by_id(self, product_id: str) -> Optional[Product]:
        found = await self._resolve(lambda p: p.id == product_id)
        return found[0] if found else None

    async def require_product(self, product_id: str) -> Product:
        product = await self.get_product_by_id(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return product

    async def get_products_by_category(self, category: str) -> List[Product]:
        return await self._resolve(lambda p: p.category == category)

    async def get_featured_products(self) -> List[Product]:
        return await self._resolve(lambda p: p.featured)

    async def get_best_selling_products(self) -> List[Product]:
        return await self._resolve(lambda p: p.best_seller)

    async def get_new_products(self) -> List[Product]:
        return await self._resolve(lambda p: p.new)

    async def search_products(self, search_term: str) -> List[Product]:
        return await self._resolve(lambda p: matches_term(p, search_term))


def apply_filters(products: List[Product], product_filter: ProductFilter) -> List[Product]:
    result = list(products)

    if product_filter.category and product_filter.category != "all":
        result = [p for p in result if p.category == product_filter.category]

    if product_filter.min_price is not None or product_filter.max_price is not None:
        low = product_filter.min_price if product_filter.min_price is not None else 0
        high = product_filter.max_price if product_filter.max_price is not None else float("inf")
        result = [p for p in result if low <= p.price <= high]

    if product_filter.in_stock:
        result = [p for p in result if p.stock > 0]

    if product_filter.search_term:
        result = [p for p in result if matches_term(p, product_filter.search_term)]

    sort_by = product_filter.sort_by
    if sort_by == "price-low-high":
        result.sort(key=lambda p: p.price)
    elif sort_by == "price-high-low":
        result.sort(key=lambda p: p.price, reverse=True)
    elif sort_by == "newest":
        # no release dates in the catalog, new arrivals first
        result = [p for p in result if p.new] + [p for p in result if not p.new]
    elif sort_by == "popularity":
        result.sort(key=lambda p: p.rating, reverse=True)

    return result


class ViewTasks:
    """Runs catalog loads as tasks keyed to the view that asked for them.

    Starting a load for a view cancels the one still pending for that view;
    whoever awaited the superseded load gets StaleViewError instead of its
    result.
    """

    def __init__(self):
        self._active: Dict[str, asyncio.Task] = {}

    async def run(self, view_key: str, load: Awaitable):
        self.cancel(view_key)
        task = asyncio.ensure_future(load)
        self._active[view_key] = task
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and self._active.get(view_key) is not task:
                raise StaleViewError(view_key) from None
            raise
        finally:
            if self._active.get(view_key) is task:
                del self._active[view_key]

    def cancel(self, view_key: str) -> bool:
        task = self._active.pop(view_key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def pending(self) -> List[str]:
        return [key for key, task in self._active.items() if not task.done()]
