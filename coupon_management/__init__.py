"""Best-coupon selection service."""
