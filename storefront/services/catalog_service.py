"""
Catalog Service - read-through cache over products, categories and offers.

Rows are converted to plain dicts by the normalizers below; that is the only
place where stored numerics are coerced to Decimal amounts.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from storefront.models import Product, Category, Offer
from storefront.exceptions import BusinessLogicError, NotFoundError
from storefront.services.cache_service import CacheService
from storefront.services.result import Result, store_operation

logger = logging.getLogger(__name__)

MONEY = Decimal('0.01')
FEATURED_LIMIT = 10
SEARCH_LIMIT = 20
SORTABLE_COLUMNS = {
    'name': Product.name,
    'price': Product.price,
    'mrp': Product.mrp,
    'created_at': Product.created_at,
    'discount_percentage': Product.discount_percentage,
}
DEFAULT_FILTERS = {
    'category': None,
    'price_range': (0, 10000),
    'sort_by': 'name',
    'in_stock': True,
}


# =====================================================
# NORMALIZATION
# =====================================================

def to_money(value: Any) -> Decimal:
    """Coerce a stored numeric (Decimal, float, str, None) to a 2-place Decimal."""
    if value is None or value == '':
        return Decimal('0.00')
    return Decimal(str(value)).quantize(MONEY)


def derive_discount_percentage(price: Decimal, mrp: Decimal) -> Decimal:
    """round((mrp - price) / mrp * 100), half away from zero."""
    if not mrp or mrp <= 0:
        return Decimal('0')
    pct = (Decimal(mrp) - Decimal(price)) / Decimal(mrp) * 100
    return pct.quantize(Decimal('1'), rounding=ROUND_HALF_UP)


def normalize_product(product: Product) -> Dict[str, Any]:
    """Product row -> dict with Decimal amounts and a derived discount."""
    price = to_money(product.price)
    mrp = to_money(product.mrp)
    if product.discount_percentage is not None:
        discount_percentage = Decimal(str(product.discount_percentage))
    else:
        discount_percentage = derive_discount_percentage(price, mrp)

    category = None
    if product.category is not None:
        category = {
            'id': product.category.id,
            'name': product.category.name,
            'slug': product.category.slug,
        }

    return {
        'id': product.id,
        'name': product.name,
        'slug': product.slug,
        'description': product.description,
        'brand': product.brand,
        'price': price,
        'mrp': mrp,
        'discount_percentage': discount_percentage,
        'unit': product.unit,
        'image_url': product.public_image_url,
        'is_available': bool(product.is_available),
        'quantity_available': int(product.quantity_available or 0),
        'max_order_qty': int(product.max_order_qty or 0),
        'is_featured': bool(product.is_featured),
        'is_bestseller': bool(product.is_bestseller),
        'category_id': product.category_id,
        'category': category,
    }


def normalize_offer(offer: Offer) -> Dict[str, Any]:
    """Offer row -> dict; optional amounts stay None."""
    return {
        'id': offer.id,
        'title': offer.title,
        'description': offer.description,
        'image_url': offer.image_url,
        'coupon_code': offer.coupon_code,
        'discount_type': offer.discount_type,
        'discount_value': to_money(offer.discount_value),
        'max_discount': to_money(offer.max_discount) if offer.max_discount is not None else None,
        'min_order_value': to_money(offer.min_order_value) if offer.min_order_value is not None else None,
        'start_date': offer.start_date.isoformat() if offer.start_date else None,
        'end_date': offer.end_date.isoformat() if offer.end_date else None,
        'is_active': bool(offer.is_active),
        'display_order': offer.display_order,
    }


# =====================================================
# CATALOG CACHE
# =====================================================

class CatalogCache:
    """Holds the last fetched catalog views for one client."""

    def __init__(self, db: Session, cache: Optional[CacheService] = None,
                 categories_ttl: Optional[int] = None, offers_ttl: Optional[int] = None):
        self.db = db
        self.cache = cache
        self.categories_ttl = categories_ttl
        self.offers_ttl = offers_ttl

        self.products: List[Dict[str, Any]] = []
        self.featured_products: List[Dict[str, Any]] = []
        self.bestseller_products: List[Dict[str, Any]] = []
        self.categories: List[Dict[str, Any]] = []
        self.offers: List[Dict[str, Any]] = []
        self.search_results: List[Dict[str, Any]] = []
        self.current_product: Optional[Dict[str, Any]] = None
        self.filters: Dict[str, Any] = dict(DEFAULT_FILTERS)

    def _product_query(self):
        return self.db.query(Product).options(joinedload(Product.category))

    @store_operation('fetch products')
    def fetch_products(
        self,
        category_id: Optional[str] = None,
        featured: bool = False,
        bestseller: bool = False,
        search: Optional[str] = None,
        sort_by: str = 'created_at',
        ascending: bool = False,
        limit: Optional[int] = None
    ) -> Result:
        """Available products with optional filters, sorted and limited."""
        sort_column = SORTABLE_COLUMNS.get(sort_by)
        if sort_column is None:
            raise BusinessLogicError(f"Cannot sort products by '{sort_by}'")

        query = self._product_query().filter(Product.is_available.is_(True))
        if category_id:
            query = query.filter(Product.category_id == category_id)
        if featured:
            query = query.filter(Product.is_featured.is_(True))
        if bestseller:
            query = query.filter(Product.is_bestseller.is_(True))
        if search:
            pattern = f'%{search.strip()[:100]}%'
            query = query.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))

        query = query.order_by(sort_column.asc() if ascending else sort_column.desc())
        if limit:
            query = query.limit(limit)

        self.products = [normalize_product(p) for p in query.all()]
        return Result.ok(self.products)

    @store_operation('fetch featured products')
    def fetch_featured_products(self) -> Result:
        rows = (self._product_query()
                .filter(Product.is_featured.is_(True), Product.is_available.is_(True))
                .limit(FEATURED_LIMIT)
                .all())
        self.featured_products = [normalize_product(p) for p in rows]
        return Result.ok(self.featured_products)

    @store_operation('fetch bestseller products')
    def fetch_bestseller_products(self) -> Result:
        rows = (self._product_query()
                .filter(Product.is_bestseller.is_(True), Product.is_available.is_(True))
                .limit(FEATURED_LIMIT)
                .all())
        self.bestseller_products = [normalize_product(p) for p in rows]
        return Result.ok(self.bestseller_products)

    @store_operation('fetch product')
    def fetch_product_by_slug(self, slug: str) -> Result:
        product = self._product_query().filter(Product.slug == slug).first()
        if not product:
            raise NotFoundError('Product not found')
        self.current_product = normalize_product(product)
        return Result.ok(self.current_product)

    @store_operation('fetch product')
    def fetch_product_by_id(self, product_id: str) -> Result:
        product = self._product_query().filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError('Product not found')
        return Result.ok(normalize_product(product))

    @store_operation('fetch categories')
    def fetch_categories(self) -> Result:
        def load():
            rows = (self.db.query(Category)
                    .filter(Category.is_active.is_(True))
                    .order_by(Category.display_order.asc())
                    .all())
            return [c.to_dict() for c in rows]

        if self.cache is not None:
            self.categories = self.cache.memoize('catalog', 'categories', load, self.categories_ttl)
        else:
            self.categories = load()
        return Result.ok(self.categories)

    @store_operation('fetch offers')
    def fetch_offers(self) -> Result:
        def load():
            rows = (self.db.query(Offer)
                    .filter(Offer.is_active.is_(True))
                    .order_by(Offer.display_order.asc())
                    .all())
            return [normalize_offer(o) for o in rows]

        if self.cache is not None:
            self.offers = self.cache.memoize('catalog', 'offers', load, self.offers_ttl)
        else:
            self.offers = load()
        return Result.ok(self.offers)

    @store_operation('search products')
    def search_products(self, term: Optional[str]) -> Result:
        """Case-insensitive match on name, description or brand."""
        if not term or not term.strip():
            self.search_results = []
            return Result.ok([])

        pattern = f'%{term.strip()[:100]}%'
        rows = (self._product_query()
                .filter(
                    or_(
                        Product.name.ilike(pattern),
                        Product.description.ilike(pattern),
                        Product.brand.ilike(pattern)
                    ),
                    Product.is_available.is_(True)
                )
                .limit(SEARCH_LIMIT)
                .all())
        self.search_results = [normalize_product(p) for p in rows]
        return Result.ok(self.search_results)

    @store_operation('fetch category products')
    def get_products_by_category(self, category_slug: str) -> Result:
        category = self.db.query(Category).filter(Category.slug == category_slug).first()
        if not category:
            raise NotFoundError('Category not found')

        rows = (self._product_query()
                .filter(Product.category_id == category.id, Product.is_available.is_(True))
                .order_by(Product.name.asc())
                .all())
        self.products = [normalize_product(p) for p in rows]
        return Result.ok(self.products)

    def apply_filters(self, **filters) -> Dict[str, Any]:
        self.filters = {**self.filters, **filters}
        return self.filters

    def reset_filters(self) -> Dict[str, Any]:
        self.filters = dict(DEFAULT_FILTERS)
        return self.filters

    def clear_search_results(self) -> None:
        self.search_results = []


def invalidate_catalog_cache(cache: Optional[CacheService]) -> None:
    """Drop memoized categories/offers after an admin write."""
    if cache is not None:
        cache.invalidate_namespace('catalog')
