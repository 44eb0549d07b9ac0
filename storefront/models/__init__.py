"""Models package - exports all SQLAlchemy models."""
# Auth and identity
from storefront.models.auth_user import AuthUser, AuthSession
from storefront.models.profile import Profile, UserRole

# Catalog
from storefront.models.category import Category
from storefront.models.product import Product
from storefront.models.offer import Offer, DiscountType

# Shopping
from storefront.models.cart_item import CartItem
from storefront.models.wishlist_item import WishlistItem
from storefront.models.address import Address
from storefront.models.order import (
    Order, OrderStatus, PaymentStatus, PaymentMethod, ORDER_TRANSITIONS, can_transition
)
from storefront.models.order_item import OrderItem
from storefront.models.notification import Notification

__all__ = [
    'AuthUser', 'AuthSession', 'Profile', 'UserRole',
    'Category', 'Product', 'Offer', 'DiscountType',
    'CartItem', 'WishlistItem', 'Address',
    'Order', 'OrderStatus', 'PaymentStatus', 'PaymentMethod', 'ORDER_TRANSITIONS', 'can_transition',
    'OrderItem', 'Notification',
]
