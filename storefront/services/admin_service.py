"""
Admin Service - catalog maintenance and order fulfilment for admin profiles.

Every operation checks the admin flag first; catalog writes drop the
memoized categories/offers so storefront reads see them.
"""
import logging
import os
import re
import unicodedata
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from storefront.models import (
    Product, Category, Offer, DiscountType, Order, OrderStatus, Profile, UserRole, can_transition
)
from storefront.exceptions import (
    BusinessLogicError, NotFoundError, UnauthorizedError, InvalidStatusTransitionError
)
from storefront.services.cache_service import CacheService
from storefront.services.catalog_service import (
    derive_discount_percentage, invalidate_catalog_cache, normalize_product, normalize_offer, to_money
)
from storefront.services.order_service import serialize_order, summarize_orders
from storefront.services.result import Result, store_operation
from storefront.services.storage_service import get_storage_service
from storefront.utils.dates import as_utc, utc_now

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = (
    'name', 'description', 'brand', 'category_id', 'unit', 'image_url', 'is_available',
    'quantity_available', 'max_order_qty', 'is_featured', 'is_bestseller',
)


def generate_slug(name: str) -> str:
    """Generate URL-safe slug from a display name."""
    slug = unicodedata.normalize('NFKD', name)
    slug = slug.encode('ascii', 'ignore').decode('ascii')
    slug = re.sub(r'[^a-z0-9]+', '-', slug.lower()).strip('-')
    return slug[:80]


def _unique_slug(db: Session, model, name: str) -> str:
    base_slug = generate_slug(name)
    if not base_slug:
        raise BusinessLogicError('Name must contain letters or digits')
    slug = base_slug
    counter = 1
    while db.query(model.id).filter(model.slug == slug).first():
        slug = f"{base_slug}-{counter}"
        counter += 1
    return slug


def _parse_amount(value: Any, field: str, required: bool = True) -> Optional[Decimal]:
    if value is None or value == '':
        if required:
            raise BusinessLogicError(f"'{field}' is required")
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise BusinessLogicError(f"'{field}' must be a number")
    if amount < 0:
        raise BusinessLogicError(f"'{field}' cannot be negative")
    return amount.quantize(Decimal('0.01'))


def _parse_datetime(value: Any, field: str) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            raise BusinessLogicError(f"'{field}' must be an ISO date")
    return as_utc(parsed)


def _is_object_key(image_url: Optional[str]) -> bool:
    return bool(image_url) and not image_url.startswith(('http://', 'https://'))


class AdminConsole:
    """Admin-only catalog and order operations."""

    def __init__(
        self,
        db: Session,
        is_admin: Callable[[], bool],
        cache: Optional[CacheService] = None,
        storage_factory: Callable = get_storage_service,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.db = db
        self.is_admin = is_admin
        self.cache = cache
        self.storage_factory = storage_factory
        self.clock = clock or utc_now

    def _require_admin(self) -> None:
        if not self.is_admin():
            raise UnauthorizedError('Admin access required')

    def _get_product(self, product_id: str) -> Product:
        product = (self.db.query(Product)
                   .options(joinedload(Product.category))
                   .filter(Product.id == product_id)
                   .first())
        if not product:
            raise NotFoundError('Product not found')
        return product

    # =====================================================
    # PRODUCTS
    # =====================================================

    def _apply_product_fields(self, product: Product, data: Dict[str, Any]) -> None:
        for key in PRODUCT_FIELDS:
            if key in data:
                setattr(product, key, data[key])

        if 'category_id' in data and data['category_id']:
            if not self.db.query(Category.id).filter(Category.id == data['category_id']).first():
                raise NotFoundError('Category not found')

        if 'price' in data:
            product.price = _parse_amount(data['price'], 'price')
        if 'mrp' in data:
            product.mrp = _parse_amount(data['mrp'], 'mrp')
        if product.price is None or product.mrp is None:
            raise BusinessLogicError('Price and MRP are required')
        if Decimal(product.price) > Decimal(product.mrp):
            raise BusinessLogicError('Price cannot exceed MRP')
        product.discount_percentage = derive_discount_percentage(Decimal(product.price), Decimal(product.mrp))

        if product.quantity_available is not None and int(product.quantity_available) < 0:
            raise BusinessLogicError('Stock cannot be negative')
        if product.max_order_qty is not None and int(product.max_order_qty) < 1:
            raise BusinessLogicError('Max order quantity must be at least 1')

    @store_operation('create product')
    def create_product(self, data: Dict[str, Any]) -> Result:
        self._require_admin()
        name = (data.get('name') or '').strip()
        if not name:
            raise BusinessLogicError('Product name is required')

        product = Product(slug=_unique_slug(self.db, Product, name))
        self._apply_product_fields(product, {**data, 'name': name})
        self.db.add(product)
        self.db.commit()
        logger.info(f"[ADMIN] ✓ Product created: {product.slug}")
        return Result.ok(normalize_product(product))

    @store_operation('update product')
    def update_product(self, product_id: str, data: Dict[str, Any]) -> Result:
        self._require_admin()
        product = self._get_product(product_id)
        if 'name' in data and not (data['name'] or '').strip():
            raise BusinessLogicError('Product name is required')
        self._apply_product_fields(product, data)
        self.db.commit()
        logger.info(f"[ADMIN] ✓ Product updated: {product.slug}")
        return Result.ok(normalize_product(product))

    @store_operation('delete product')
    def delete_product(self, product_id: str) -> Result:
        self._require_admin()
        product = self._get_product(product_id)
        image_key = product.image_url if _is_object_key(product.image_url) else None

        self.db.delete(product)
        self.db.commit()
        logger.info(f"[ADMIN] ✓ Product deleted: {product_id}")

        if image_key:
            self.storage_factory().delete_file(image_key)
        return Result.ok()

    @store_operation('upload product image')
    def upload_product_image(self, product_id: str, file) -> Result:
        """Store the image under products/<id>/ and point the product at it."""
        self._require_admin()
        product = self._get_product(product_id)
        storage = self.storage_factory()

        ext = os.path.splitext(file.filename or '')[1].lower() or '.jpg'
        key = storage.upload_file(file, f"products/{product.id}/{uuid.uuid4().hex}{ext}")

        previous = product.image_url
        product.image_url = key
        self.db.commit()

        if _is_object_key(previous) and previous != key:
            storage.delete_file(previous)
        return Result.ok(normalize_product(product))

    # =====================================================
    # CATEGORIES & COUPONS
    # =====================================================

    @store_operation('create category')
    def create_category(self, data: Dict[str, Any]) -> Result:
        self._require_admin()
        name = (data.get('name') or '').strip()
        if not name:
            raise BusinessLogicError('Category name is required')

        category = Category(
            name=name,
            slug=_unique_slug(self.db, Category, name),
            image_url=data.get('image_url'),
            display_order=int(data.get('display_order') or 0),
            is_active=bool(data.get('is_active', True)),
        )
        self.db.add(category)
        self.db.commit()
        invalidate_catalog_cache(self.cache)
        return Result.ok(category.to_dict())

    @store_operation('create coupon')
    def create_coupon(self, data: Dict[str, Any]) -> Result:
        self._require_admin()
        title = (data.get('title') or '').strip()
        code = (data.get('coupon_code') or '').strip().upper()
        if not title:
            raise BusinessLogicError('Offer title is required')
        if not code:
            raise BusinessLogicError('Coupon code is required')

        try:
            discount_type = DiscountType(data.get('discount_type') or DiscountType.PERCENTAGE.value)
        except ValueError:
            raise BusinessLogicError(f"Invalid discount type: {data.get('discount_type')}")

        discount_value = _parse_amount(data.get('discount_value'), 'discount_value')
        if discount_value <= 0:
            raise BusinessLogicError('Discount value must be positive')
        if discount_type == DiscountType.PERCENTAGE and discount_value > 100:
            raise BusinessLogicError('Percentage discount cannot exceed 100')

        start_date = _parse_datetime(data.get('start_date'), 'start_date')
        end_date = _parse_datetime(data.get('end_date'), 'end_date')
        if start_date and end_date and end_date < start_date:
            raise BusinessLogicError('End date must be after start date')

        if self.db.query(Offer.id).filter(Offer.coupon_code == code).first():
            raise BusinessLogicError(f"Coupon {code} already exists")

        offer = Offer(
            title=title,
            description=data.get('description'),
            image_url=data.get('image_url'),
            coupon_code=code,
            discount_type=discount_type.value,
            discount_value=discount_value,
            max_discount=_parse_amount(data.get('max_discount'), 'max_discount', required=False),
            min_order_value=_parse_amount(data.get('min_order_value'), 'min_order_value', required=False),
            start_date=start_date,
            end_date=end_date,
            is_active=bool(data.get('is_active', True)),
            display_order=int(data.get('display_order') or 0),
        )
        self.db.add(offer)
        self.db.commit()
        invalidate_catalog_cache(self.cache)
        logger.info(f"[ADMIN] ✓ Coupon created: {code}")
        return Result.ok(normalize_offer(offer))

    # =====================================================
    # ORDERS
    # =====================================================

    @store_operation('list orders')
    def list_orders(self, status: Optional[str] = None) -> Result:
        self._require_admin()
        query = self.db.query(Order).options(joinedload(Order.address))
        if status:
            try:
                query = query.filter(Order.status == OrderStatus(status).value)
            except ValueError:
                raise BusinessLogicError(f"Unknown order status: {status}")
        rows = query.order_by(Order.created_at.desc()).all()
        return Result.ok([serialize_order(o) for o in rows])

    @store_operation('update order status')
    def update_order_status(self, order_id: str, status: str) -> Result:
        """Move an order along pending → confirmed → preparing → out_for_delivery → delivered."""
        self._require_admin()
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError('Order not found')
        if not can_transition(order.status, status):
            raise InvalidStatusTransitionError(order.status, status)

        now = self.clock()
        order.status = status
        order.updated_at = now
        if status == OrderStatus.DELIVERED.value:
            order.delivered_at = now
        self.db.commit()
        logger.info(f"[ADMIN] Order {order.order_number} -> {status}")
        return Result.ok(serialize_order(order))

    @store_operation('fetch dashboard stats')
    def get_dashboard_stats(self) -> Result:
        self._require_admin()
        order_stats = summarize_orders(self.db.query(Order.status, Order.total).all())
        by_status = dict(
            self.db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
        )
        product_count = self.db.query(func.count(Product.id)).scalar() or 0
        customer_count = (self.db.query(func.count(Profile.id))
                          .filter(Profile.role == UserRole.CUSTOMER.value)
                          .scalar() or 0)
        return Result.ok({
            'orders': order_stats['total'],
            'orders_by_status': {s.value: by_status.get(s.value, 0) for s in OrderStatus},
            'revenue': to_money(order_stats['total_spent']),
            'products': product_count,
            'customers': customer_count,
        })
