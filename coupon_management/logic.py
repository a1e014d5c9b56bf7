import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from .models import Cart, Coupon, DiscountType, Eligibility, UserContext
from .storage import CouponCatalog, UsageLedger

logger = logging.getLogger(__name__)


@dataclass
class SelectionResult:
    coupon: Optional[Coupon]
    discount: float
    cart_value: float


def compute_cart_value(cart: Optional[Cart]) -> float:
    if cart is None:
        return 0.0
    return sum(item.unitPrice * item.quantity for item in cart.items)


def compute_items_count(cart: Optional[Cart]) -> int:
    if cart is None:
        return 0
    return sum(item.quantity for item in cart.items)


def is_within_date_range(coupon: Coupon, now: Optional[datetime] = None) -> bool:
    if now is None:
        now = datetime.now(timezone.utc)
    if coupon.startDate is not None and now < coupon.startDate:
        return False
    if coupon.endDate is not None and now > coupon.endDate:
        return False
    return True


def user_eligibility_ok(elig: Eligibility, user: UserContext) -> bool:
    if elig.allowedUserTiers and user.userTier not in elig.allowedUserTiers:
        return False

    if elig.minLifetimeSpend is not None and user.lifetimeSpend < elig.minLifetimeSpend:
        return False

    if elig.minOrdersPlaced is not None and user.ordersPlaced < elig.minOrdersPlaced:
        return False

    # "first order" means nothing has been ordered yet
    if elig.firstOrderOnly and user.ordersPlaced != 0:
        return False

    if elig.allowedCountries and user.country not in elig.allowedCountries:
        return False

    return True


def cart_eligibility_ok(elig: Eligibility, cart: Cart, cart_value: float) -> bool:
    if elig.minCartValue is not None and cart_value < elig.minCartValue:
        return False

    categories = {item.category for item in cart.items}

    if elig.applicableCategories:
        # at least one item from these categories
        if not any(c in elig.applicableCategories for c in categories):
            return False

    if elig.excludedCategories:
        if any(c in elig.excludedCategories for c in categories):
            return False

    if elig.minItemsCount is not None and compute_items_count(cart) < elig.minItemsCount:
        return False

    return True


def is_eligible(coupon: Coupon, user: UserContext, cart: Cart, cart_value: float) -> bool:
    elig = coupon.eligibility
    return user_eligibility_ok(elig, user) and cart_eligibility_ok(elig, cart, cart_value)


def compute_discount(coupon: Coupon, cart_value: float) -> float:
    if cart_value <= 0:
        return 0.0

    discount_type = DiscountType.resolve(coupon.discountType)
    if discount_type == DiscountType.FLAT:
        discount = coupon.discountValue or 0.0
    elif discount_type == DiscountType.PERCENT:
        discount = cart_value * ((coupon.discountValue or 0.0) / 100.0)
        if coupon.maxDiscountAmount is not None:
            discount = min(discount, coupon.maxDiscountAmount)
    else:
        logger.warning(
            "Coupon %s has unknown discount type %r, treating discount as 0",
            coupon.code,
            coupon.discountType,
        )
        discount = 0.0

    # discount cannot exceed cart value and cannot be negative
    return max(0.0, min(discount, cart_value))


def wins_tie(candidate: Coupon, best: Coupon) -> bool:
    """
    Decide between two coupons giving the same discount.

    Rule:
     1. Earlier endDate wins; a coupon with an endDate beats one without
     2. If still tie, lexicographically smaller code
    """
    if candidate.endDate is not None and best.endDate is not None:
        if candidate.endDate != best.endDate:
            return candidate.endDate < best.endDate
        return candidate.code < best.code
    if candidate.endDate is not None:
        return True
    if best.endDate is not None:
        return False
    return candidate.code < best.code


def find_best_coupon(
    coupons: Iterable[Coupon],
    ledger: UsageLedger,
    user: UserContext,
    cart: Cart,
    now: Optional[datetime] = None,
) -> SelectionResult:
    """Single pass over ``coupons``; reads the ledger but never writes it."""
    if now is None:
        now = datetime.now(timezone.utc)
    cart_value = compute_cart_value(cart)

    best_coupon: Optional[Coupon] = None
    best_discount = 0.0

    for coupon in coupons:
        # 1. date validity
        if not is_within_date_range(coupon, now):
            logger.debug("Skipping %s: outside validity window", coupon.code)
            continue

        # 2. usage limit per user
        if not ledger.remaining_uses(user.userId, coupon):
            logger.debug("Skipping %s: usage limit reached for %s", coupon.code, user.userId)
            continue

        # 3. eligibility checks
        if not is_eligible(coupon, user, cart, cart_value):
            logger.debug("Skipping %s: eligibility rules not met", coupon.code)
            continue

        # 4. compute discount
        discount = compute_discount(coupon, cart_value)
        if discount <= 0:
            logger.debug("Skipping %s: no discount for this cart", coupon.code)
            continue

        if (
            best_coupon is None
            or discount > best_discount
            or (discount == best_discount and wins_tie(coupon, best_coupon))
        ):
            best_coupon = coupon
            best_discount = discount

    return SelectionResult(coupon=best_coupon, discount=best_discount, cart_value=cart_value)


def select_best_coupon(
    catalog: CouponCatalog,
    ledger: UsageLedger,
    user: UserContext,
    cart: Cart,
    now: Optional[datetime] = None,
) -> SelectionResult:
    """
    Pick the best applicable coupon for ``user`` and ``cart`` and consume one use of it.

    The usage check and the increment run under the user's ledger lock, so
    concurrent requests for one user cannot push a count past its limit.
    """
    coupons = catalog.snapshot()
    with ledger.lock_for(user.userId):
        result = find_best_coupon(coupons, ledger, user, cart, now)
        if result.coupon is None:
            logger.info("No applicable coupon for user %s (cart value %s)", user.userId, result.cart_value)
            return result
        used = ledger.record_use(user.userId, result.coupon.code)

    logger.info(
        "Selected %s for user %s: discount %s on cart value %s (use #%d)",
        result.coupon.code,
        user.userId,
        result.discount,
        result.cart_value,
        used,
    )
    return result
