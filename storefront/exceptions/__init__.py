"""Custom exceptions for the storefront application."""


class StorefrontError(Exception):
    """Base exception for all application errors."""
    code = 'internal_error'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['status'] = 'error'
        return rv


class BusinessLogicError(StorefrontError):
    """Exception raised for business logic violations."""
    code = 'business_rule'

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(StorefrontError):
    """Exception raised when a resource is not found."""
    code = 'not_found'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class UnauthenticatedError(StorefrontError):
    """Raised when an operation needs a signed-in user and there is none."""
    code = 'unauthenticated'

    def __init__(self, message="Please login to continue"):
        super().__init__(message, 401)


class UnauthorizedError(StorefrontError):
    """Raised when a user lacks permission for an action."""
    code = 'unauthorized'

    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)


class RemoteOperationFailedError(StorefrontError):
    """Wraps any failure talking to the database, auth or blob store."""
    code = 'remote_operation_failed'

    def __init__(self, operation, cause=None):
        message = f"Failed to {operation}"
        super().__init__(message, 502, {'operation': operation})
        self.cause = cause


# Cart

class EmptyCartError(BusinessLogicError):
    code = 'empty_cart'

    def __init__(self, message="Cart is empty"):
        super().__init__(message)


class QuantityExceedsOrderLimitError(BusinessLogicError):
    """Raised when a line would exceed the product's per-order maximum."""
    code = 'quantity_exceeds_order_limit'

    def __init__(self, max_order_qty):
        super().__init__(f"Maximum {max_order_qty} items allowed", payload={'max_order_qty': max_order_qty})


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    code = 'insufficient_stock'

    def __init__(self, product_name, required, available):
        message = f"Not enough stock available for {product_name}: requested {required}, available {available}"
        super().__init__(message, status_code=409, payload={'available': available})


# Coupons

class CouponNotFoundError(BusinessLogicError):
    code = 'coupon_not_found'

    def __init__(self, coupon_code):
        super().__init__("Invalid coupon code", status_code=404, payload={'coupon_code': coupon_code})


class CouponNotYetActiveError(BusinessLogicError):
    code = 'coupon_not_yet_active'

    def __init__(self, coupon_code):
        super().__init__("This coupon is not yet active", payload={'coupon_code': coupon_code})


class CouponExpiredError(BusinessLogicError):
    code = 'coupon_expired'

    def __init__(self, coupon_code):
        super().__init__("This coupon has expired", payload={'coupon_code': coupon_code})


class MinimumOrderNotMetError(BusinessLogicError):
    code = 'minimum_order_not_met'

    def __init__(self, min_order_value):
        super().__init__(
            f"Minimum order value of ₹{min_order_value} required",
            payload={'min_order_value': str(min_order_value)}
        )


# Wishlist and orders

class AlreadyInWishlistError(BusinessLogicError):
    code = 'already_in_wishlist'

    def __init__(self, product_id):
        super().__init__("Already in wishlist", status_code=409, payload={'product_id': product_id})


class OrderNotCancellableError(BusinessLogicError):
    code = 'order_not_cancellable'

    def __init__(self, status):
        super().__init__(f"Orders in status '{status}' can no longer be cancelled", status_code=409)


class InvalidStatusTransitionError(BusinessLogicError):
    code = 'invalid_status_transition'

    def __init__(self, current, target):
        super().__init__(
            f"Cannot move order from '{current}' to '{target}'",
            status_code=409,
            payload={'current': current, 'target': target}
        )
