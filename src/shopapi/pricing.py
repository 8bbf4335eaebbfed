"""Order pricing tables: tax, shipping, coupons and delivery estimates.

All amounts are integer cents.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from .errors import InvalidCouponError, InvalidShippingMethodError
from .models import ShippingMethod

TAX_RATE = Decimal("0.08")

SHIPPING_FEES: dict[ShippingMethod, int] = {
    ShippingMethod.STANDARD: 999,
    ShippingMethod.EXPRESS: 1499,
    ShippingMethod.OVERNIGHT: 2999,
}

DELIVERY_DAYS: dict[ShippingMethod, int] = {
    ShippingMethod.STANDARD: 5,
    ShippingMethod.EXPRESS: 2,
    ShippingMethod.OVERNIGHT: 1,
}

# code -> (kind, value); "fixed" is cents off, "percent" is percent of subtotal
COUPONS: dict[str, tuple[str, int]] = {
    "SAVE5": ("fixed", 500),
    "SAVE10": ("fixed", 1000),
    "PERCENT10": ("percent", 10),
}


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_tax(subtotal: int) -> int:
    return _round_cents(Decimal(subtotal) * TAX_RATE)


def shipping_cost(method: ShippingMethod) -> int:
    """
    Flat shipping fee for a method.

    Raises:
        InvalidShippingMethodError: If the method has no fee.
    """
    try:
        return SHIPPING_FEES[ShippingMethod(method)]
    except (KeyError, ValueError):
        raise InvalidShippingMethodError(str(method))


def calculate_discount(coupon_code: str | None, subtotal: int) -> int:
    """
    Discount for a coupon, never more than the subtotal.

    Codes are matched case-insensitively.

    Raises:
        InvalidCouponError: If the code is unknown.
    """
    if not coupon_code:
        return 0
    coupon = COUPONS.get(coupon_code.strip().upper())
    if coupon is None:
        raise InvalidCouponError(coupon_code)
    kind, value = coupon
    if kind == "percent":
        discount = _round_cents(Decimal(subtotal) * Decimal(value) / Decimal(100))
    else:
        discount = value
    return min(discount, subtotal)


def estimate_delivery(method: ShippingMethod, today: date | None = None) -> str:
    """Return the estimated delivery date as YYYY-MM-DD."""
    if today is None:
        today = datetime.now(timezone.utc).date()
    days = DELIVERY_DAYS.get(ShippingMethod(method), DELIVERY_DAYS[ShippingMethod.STANDARD])
    return (today + timedelta(days=days)).isoformat()
