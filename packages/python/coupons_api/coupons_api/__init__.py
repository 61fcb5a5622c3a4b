"""Expose the coupon FastAPI router and its error handlers."""

from .errors import install_error_handlers
from .router import router

__all__ = ["router", "install_error_handlers"]
