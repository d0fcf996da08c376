"""Payments domain - M-Pesa and Stripe payments and callback reconciliation"""

from .router import router

__all__ = ["router"]
