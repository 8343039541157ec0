"""Checkout and payment orchestration core for the mobile storefront"""

__version__ = "1.0.0"
