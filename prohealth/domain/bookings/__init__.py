"""Bookings domain - Creating and tracking service bookings"""

from .router import router

__all__ = ["router"]
