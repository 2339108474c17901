"""
API v1 package.

Contains versioned API routes for the PIN authentication service.
"""

from pinauth.api.v1.routes import router

__all__ = ["router"]
