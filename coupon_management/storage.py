import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Iterator, List

from .models import Coupon

logger = logging.getLogger(__name__)


class DuplicateCouponError(Exception):
    def __init__(self, code: str):
        super().__init__(f"Coupon code already exists: {code}")
        self.code = code


class CouponCatalog:
    """In-memory coupon store keyed by code, kept in creation order."""

    def __init__(self) -> None:
        # code -> Coupon
        self._coupons: Dict[str, Coupon] = {}
        self._lock = threading.Lock()

    def add(self, coupon: Coupon) -> Coupon:
        with self._lock:
            if coupon.code in self._coupons:
                raise DuplicateCouponError(coupon.code)
            self._coupons[coupon.code] = coupon
        logger.info("Coupon %s created", coupon.code)
        return coupon

    def snapshot(self) -> List[Coupon]:
        with self._lock:
            return list(self._coupons.values())


class UsageLedger:
    """
    Per-user, per-coupon redemption counts.

    Counts only ever grow. Callers that check a limit and then record a use
    must hold ``lock_for(user_id)`` across both steps.
    """

    def __init__(self) -> None:
        # userId -> couponCode -> usageCount
        self._counts: Dict[str, Dict[str, int]] = defaultdict(dict)
        self._user_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def lock_for(self, user_id: str) -> Iterator[None]:
        with self._registry_lock:
            lock = self._user_locks.setdefault(user_id, threading.Lock())
        with lock:
            yield

    def usage_count(self, user_id: str, coupon_code: str) -> int:
        user_counts = self._counts.get(user_id)
        if not user_counts:
            return 0
        return user_counts.get(coupon_code, 0)

    def remaining_uses(self, user_id: str, coupon: Coupon) -> bool:
        if coupon.usageLimitPerUser is None:
            return True
        return self.usage_count(user_id, coupon.code) < coupon.usageLimitPerUser

    def record_use(self, user_id: str, coupon_code: str) -> int:
        user_counts = self._counts[user_id]
        user_counts[coupon_code] = user_counts.get(coupon_code, 0) + 1
        return user_counts[coupon_code]
