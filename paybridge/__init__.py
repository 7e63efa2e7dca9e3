"""Stripe checkout and webhook bridge for RevenueCat entitlements."""

__version__ = "1.0.0"
