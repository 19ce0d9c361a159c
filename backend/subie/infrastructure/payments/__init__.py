"""
Payments Infrastructure Module

REST adapters for the entitlement providers (RevenueCat, Flutterwave).
"""

from subie.infrastructure.payments.revenuecat_client import RevenueCatClient
from subie.infrastructure.payments.flutterwave_client import FlutterwaveClient

__all__ = ["RevenueCatClient", "FlutterwaveClient"]
