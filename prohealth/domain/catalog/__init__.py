"""Service catalog domain - Browsing wellness services"""

from .router import router

__all__ = ["router"]
