from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Optional, Tuple

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator


class DiscountType(str, Enum):
    FLAT = "FLAT"
    PERCENT = "PERCENT"

    @classmethod
    def resolve(cls, value: Optional[str]) -> Optional["DiscountType"]:
        """Case-insensitive lookup; None for anything that is not a known type."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


def _as_identifier(value):
    # numeric ids are accepted and keyed as strings
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _zero_if_none(value):
    return 0 if value is None else value


Identifier = Annotated[str, BeforeValidator(_as_identifier)]
Amount = Annotated[float, BeforeValidator(_zero_if_none)]
Count = Annotated[int, BeforeValidator(_zero_if_none)]


class Eligibility(BaseModel):
    model_config = ConfigDict(frozen=True)

    # User based
    allowedUserTiers: Optional[Tuple[str, ...]] = None
    minLifetimeSpend: Optional[float] = None
    minOrdersPlaced: Optional[int] = None
    firstOrderOnly: Optional[bool] = None
    allowedCountries: Optional[Tuple[str, ...]] = None

    # Cart based
    minCartValue: Optional[float] = None
    applicableCategories: Optional[Tuple[str, ...]] = None
    excludedCategories: Optional[Tuple[str, ...]] = None
    minItemsCount: Optional[int] = None


class Coupon(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str = Field(min_length=1)
    description: str = ""
    # stored as given; DiscountType.resolve() interprets it at selection time
    discountType: Optional[str] = None
    discountValue: float = Field(default=0.0, ge=0)
    maxDiscountAmount: Optional[float] = Field(default=None, ge=0)

    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None

    usageLimitPerUser: Optional[int] = Field(default=None, gt=0)
    eligibility: Eligibility = Field(default_factory=Eligibility)

    @field_validator("startDate", "endDate")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # naive timestamps are read as UTC so they compare against an aware "now"
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class UserContext(BaseModel):
    userId: Identifier
    userTier: Optional[str] = None  # e.g. NEW, REGULAR, GOLD
    country: Optional[str] = None
    lifetimeSpend: Amount = 0.0
    ordersPlaced: Count = 0


class CartItem(BaseModel):
    productId: Optional[Identifier] = None
    category: Optional[str] = None
    unitPrice: Amount = Field(default=0.0, ge=0)
    quantity: Count = Field(default=0, ge=0)


class Cart(BaseModel):
    items: List[CartItem] = Field(default_factory=list)

    @field_validator("items", mode="before")
    @classmethod
    def _items_or_empty(cls, value):
        # anything that is not an items array counts as an empty cart
        if not isinstance(value, (list, tuple)):
            return []
        return value


class BestCouponRequest(BaseModel):
    user: UserContext
    cart: Cart


class CouponSummary(BaseModel):
    code: str
    description: str
    discountType: Optional[str]
    discountValue: float
    discountAmount: float


class BestCouponResponse(BaseModel):
    bestCoupon: Optional[CouponSummary]
    cartValue: float
    discountAmount: Optional[float] = None
    message: Optional[str] = None


class CreateCouponResponse(BaseModel):
    message: str
    coupon: Coupon
