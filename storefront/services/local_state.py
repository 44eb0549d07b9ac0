"""Device-local persisted state (cart, wishlist, auth token)."""
import logging
from typing import Any, Optional

from storefront.services.cache_service import CacheService

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = 'ozo-cart-storage'
WISHLIST_STORAGE_KEY = 'ozo-wishlist-storage'
AUTH_TOKEN_KEY = 'ozo-auth-token'


class LocalStateStore:
    """
    Per-device key/value storage under fixed keys.

    Values are written verbatim and restored verbatim; nothing here checks
    them against the database.
    """

    def __init__(self, cache: CacheService, device_id: str, ttl: Optional[int] = None):
        self.cache = cache
        self.device_id = device_id
        self.ttl = ttl

    @property
    def namespace(self) -> str:
        return f"device:{self.device_id}"

    def load(self, key: str, default: Any = None) -> Any:
        value = self.cache.get(self.namespace, key)
        return default if value is None else value

    def save(self, key: str, value: Any) -> bool:
        saved = self.cache.set(self.namespace, key, value, self.ttl)
        if not saved:
            logger.debug(f"[STATE] '{key}' not persisted for device {self.device_id}")
        return saved

    def remove(self, key: str) -> bool:
        return self.cache.delete(self.namespace, key)
