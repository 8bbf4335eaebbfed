"""Custom exceptions for shopapi."""


class ShopError(Exception):
    """Base exception for all shopapi errors."""

    pass


class NotFoundError(ShopError):
    """Base for errors raised when an entity cannot be found."""

    pass


class BusinessRuleError(ShopError):
    """Base for errors raised when a request breaks a business rule."""

    pass


class ConflictError(ShopError):
    """Base for errors raised when a uniqueness constraint is violated."""

    pass


class ProductNotFoundError(NotFoundError):
    """Raised when a product ID doesn't exist."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found")


class UserNotFoundError(NotFoundError):
    """Raised when a user ID or email doesn't exist."""

    def __init__(self, user_id: str | None = None, email: str | None = None):
        self.user_id = user_id
        self.email = email
        if email is not None:
            msg = f"User with email {email} not found"
        else:
            msg = f"User with ID {user_id} not found"
        super().__init__(msg)


class OrderNotFoundError(NotFoundError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order with ID {order_id} not found")


class CartNotFoundError(NotFoundError):
    """Raised when a cart ID doesn't exist."""

    def __init__(self, cart_id: str):
        self.cart_id = cart_id
        super().__init__(f"Cart with ID {cart_id} not found")


class CartItemNotFoundError(NotFoundError):
    """Raised when a product is not in the cart."""

    def __init__(self, cart_id: str, product_id: str):
        self.cart_id = cart_id
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found in cart")


class DuplicateEmailError(ConflictError):
    """Raised when an email is already registered, even by an inactive user."""

    def __init__(self, email: str):
        self.email = email
        super().__init__("User with this email already exists")


class DuplicateSkuError(ConflictError):
    """Raised when a SKU is already used by another product."""

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Product with SKU {sku} already exists")


class InsufficientStockError(BusinessRuleError):
    """Raised when a stock change would take stock below zero."""

    def __init__(
        self,
        product_id: str,
        available: int,
        requested: int,
        product_name: str | None = None,
    ):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        self.product_name = product_name
        msg = "Insufficient stock"
        if product_name is not None:
            msg = (
                f"Insufficient stock for product {product_name}. "
                f"Available: {available}, Requested: {requested}"
            )
        super().__init__(msg)


class ProductUnavailableError(BusinessRuleError):
    """Raised when ordering a product that has been deactivated."""

    def __init__(self, product_id: str, name: str):
        self.product_id = product_id
        self.name = name
        super().__init__(f"Product {name} is no longer available")


class InactiveUserError(BusinessRuleError):
    """Raised when a deactivated user tries to place an order."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User with ID {user_id} is inactive")


class EmptyOrderError(BusinessRuleError):
    """Raised when an order is created without items."""

    def __init__(self):
        super().__init__("Order must contain at least one item")


class InvalidQuantityError(BusinessRuleError):
    """Raised when a line quantity is not a positive integer."""

    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__(f"Quantity must be at least 1, got {quantity}")


class InvalidStatusTransitionError(BusinessRuleError):
    """Raised when an order status change is not in the transition table."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Invalid status transition from {current} to {requested}")


class OrderAlreadyCancelledError(BusinessRuleError):
    """Raised when cancelling an order twice."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Order is already cancelled")


class OrderDeliveredError(BusinessRuleError):
    """Raised when cancelling an order that was already delivered."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Cannot cancel a delivered order")


class OrderNotModifiableError(BusinessRuleError):
    """Raised when editing an order that is no longer pending."""

    def __init__(self, order_id: str, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__("Only pending orders can be modified")


class InvalidCouponError(BusinessRuleError):
    """Raised when a coupon code is not recognised."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Unknown coupon code: {code}")


class InvalidShippingMethodError(BusinessRuleError):
    """Raised when a shipping method has no fee configured."""

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Unknown shipping method: {method}")


class InvalidSortKeyError(BusinessRuleError):
    """Raised when sorting by a field that is not sortable."""

    def __init__(self, key: str, allowed: list[str]):
        self.key = key
        self.allowed = allowed
        super().__init__(
            f"Cannot sort by '{key}'. Allowed: {', '.join(allowed)}"
        )


class InvalidPaginationError(BusinessRuleError):
    """Raised when page or limit is out of range."""

    def __init__(self, field: str, value: int):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value} (must be at least 1)")


class NegativeStockError(BusinessRuleError):
    """Raised when a product is given a negative stock count."""

    def __init__(self, stock: int):
        self.stock = stock
        super().__init__(f"Stock cannot be negative, got {stock}")


class InvalidDateError(BusinessRuleError):
    """Raised when a date filter is not ISO 8601."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: '{value}' is not an ISO 8601 date")
