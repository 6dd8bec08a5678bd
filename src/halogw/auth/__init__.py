"""Authentication for the halogw HTTP API."""

from halogw.auth.middleware import APIKeyMiddleware

__all__ = ["APIKeyMiddleware"]
