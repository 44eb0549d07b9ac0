"""Wishlist Service - deduplicated product bookmarks mirrored to `wishlist`."""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session, joinedload

from storefront.models import WishlistItem
from storefront.exceptions import UnauthenticatedError, AlreadyInWishlistError
from storefront.services.catalog_service import normalize_product, to_money
from storefront.services.local_state import LocalStateStore, WISHLIST_STORAGE_KEY
from storefront.services.result import Result, store_operation

logger = logging.getLogger(__name__)


def _entry_from_product(entry_id: str, product: Mapping[str, Any], added_at) -> Dict[str, Any]:
    return {
        'id': entry_id,
        'product_id': product['id'],
        'name': product['name'],
        'slug': product.get('slug'),
        'price': to_money(product.get('price')),
        'mrp': to_money(product.get('mrp')),
        'discount_percentage': product.get('discount_percentage'),
        'image': product.get('image_url'),
        'unit': product.get('unit'),
        'brand': product.get('brand'),
        'is_available': bool(product.get('is_available', True)),
        'quantity_available': int(product.get('quantity_available') or 0),
        'added_at': added_at.isoformat() if added_at else None,
    }


class WishlistSet:
    """Wishlist entries for the current user, at most one per product."""

    def __init__(
        self,
        db: Session,
        get_user_id: Callable[[], Optional[str]],
        local_state: Optional[LocalStateStore] = None
    ):
        self.db = db
        self.get_user_id = get_user_id
        self.local_state = local_state
        self.items: List[Dict[str, Any]] = []
        self.owner_id: Optional[str] = None

    def restore(self) -> None:
        if self.local_state is None:
            return
        state = self.local_state.load(WISHLIST_STORAGE_KEY) or {}
        if not state or state.get('user_id') != self.get_user_id():
            return
        self.owner_id = state['user_id']
        self.items = list(state.get('items', []))

    def _persist(self) -> None:
        self.owner_id = self.get_user_id()
        if self.local_state is not None:
            self.local_state.save(WISHLIST_STORAGE_KEY, {'user_id': self.owner_id, 'items': self.items})

    def _require_user(self) -> str:
        user_id = self.get_user_id()
        if not user_id:
            raise UnauthenticatedError('Please login to add items to wishlist')
        return user_id

    def contains(self, product_id: str) -> bool:
        return self.get_entry(product_id) is not None

    def get_entry(self, product_id: str) -> Optional[Dict[str, Any]]:
        return next((item for item in self.items if item['product_id'] == product_id), None)

    @store_operation('fetch wishlist')
    def fetch(self) -> Result:
        user_id = self.get_user_id()
        if not user_id:
            self.items = []
            return Result.ok(self.items)

        rows = (self.db.query(WishlistItem)
                .options(joinedload(WishlistItem.product))
                .filter(WishlistItem.user_id == user_id)
                .order_by(WishlistItem.created_at.asc())
                .all())
        self.items = [
            _entry_from_product(row.id, normalize_product(row.product), row.created_at)
            for row in rows
        ]
        self._persist()
        return Result.ok(self.items)

    @store_operation('add to wishlist')
    def add(self, product: Mapping[str, Any]) -> Result:
        user_id = self._require_user()
        if self.contains(product['id']):
            raise AlreadyInWishlistError(product['id'])

        row = WishlistItem(user_id=user_id, product_id=product['id'])
        self.db.add(row)
        self.db.commit()

        entry = _entry_from_product(row.id, product, row.created_at)
        self.items.append(entry)
        self._persist()
        return Result.ok(entry)

    @store_operation('remove from wishlist')
    def remove(self, entry_id: str) -> Result:
        user_id = self._require_user()
        (self.db.query(WishlistItem)
         .filter(WishlistItem.id == entry_id, WishlistItem.user_id == user_id)
         .delete(synchronize_session=False))
        self.db.commit()

        self.items = [item for item in self.items if item['id'] != entry_id]
        self._persist()
        return Result.ok()

    @store_operation('remove from wishlist')
    def remove_by_product(self, product_id: str) -> Result:
        user_id = self._require_user()
        (self.db.query(WishlistItem)
         .filter(WishlistItem.user_id == user_id, WishlistItem.product_id == product_id)
         .delete(synchronize_session=False))
        self.db.commit()

        self.items = [item for item in self.items if item['product_id'] != product_id]
        self._persist()
        return Result.ok()

    @store_operation('clear wishlist')
    def clear(self) -> Result:
        user_id = self._require_user()
        (self.db.query(WishlistItem)
         .filter(WishlistItem.user_id == user_id)
         .delete(synchronize_session=False))
        self.db.commit()

        self.items = []
        self._persist()
        return Result.ok()

    def toggle(self, product: Mapping[str, Any]) -> Result:
        """Add the product if absent, otherwise remove its entry."""
        existing = self.get_entry(product['id'])
        if existing:
            result = self.remove(existing['id'])
            if result.success:
                result.data = {'in_wishlist': False}
            return result
        result = self.add(product)
        if result.success:
            result.data = {'in_wishlist': True, 'entry': result.data}
        return result
