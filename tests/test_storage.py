"""Tests for the coupon catalog and the usage ledger."""

import pytest

from coupon_management.storage import DuplicateCouponError
from tests.conftest import make_coupon


class TestCouponCatalog:
    def test_add_and_snapshot_keep_creation_order(self, catalog):
        for code in ("B", "A", "C"):
            catalog.add(make_coupon(code))
        assert [c.code for c in catalog.snapshot()] == ["B", "A", "C"]

    def test_duplicate_code_is_rejected(self, catalog):
        original = catalog.add(make_coupon("SAVE10", discountValue=10))
        with pytest.raises(DuplicateCouponError) as exc_info:
            catalog.add(make_coupon("SAVE10", discountValue=99))
        assert exc_info.value.code == "SAVE10"
        assert catalog.snapshot() == [original]

    def test_codes_are_case_sensitive(self, catalog):
        catalog.add(make_coupon("save10"))
        catalog.add(make_coupon("SAVE10"))
        assert [c.code for c in catalog.snapshot()] == ["save10", "SAVE10"]

    def test_snapshot_is_a_copy(self, catalog):
        catalog.add(make_coupon("A"))
        snapshot = catalog.snapshot()
        catalog.add(make_coupon("B"))
        assert [c.code for c in snapshot] == ["A"]


class TestUsageLedger:
    def test_unlimited_coupon_always_has_uses(self, ledger):
        coupon = make_coupon("FREE")
        for _ in range(5):
            ledger.record_use("u1", "FREE")
        assert ledger.remaining_uses("u1", coupon)

    def test_limit_is_strict(self, ledger):
        coupon = make_coupon("TWICE", usageLimitPerUser=2)
        assert ledger.remaining_uses("u1", coupon)
        ledger.record_use("u1", "TWICE")
        assert ledger.remaining_uses("u1", coupon)
        ledger.record_use("u1", "TWICE")
        assert not ledger.remaining_uses("u1", coupon)

    def test_counts_are_per_user_and_code(self, ledger):
        assert ledger.record_use("u1", "A") == 1
        assert ledger.record_use("u1", "A") == 2
        assert ledger.record_use("u2", "A") == 1
        assert ledger.usage_count("u1", "A") == 2
        assert ledger.usage_count("u1", "B") == 0
        assert ledger.usage_count("nobody", "A") == 0

    def test_reading_does_not_create_entries(self, ledger):
        ledger.remaining_uses("ghost", make_coupon("X", usageLimitPerUser=1))
        assert ledger.usage_count("ghost", "X") == 0
        assert "ghost" not in ledger._counts
