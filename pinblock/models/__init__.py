"""
PIN Block Service Models

Pydantic schemas for the HTTP API.
"""

from .api import (
    APIError, HealthResponse, PublicKeyResponse,
    EncryptRequest, EncryptResponse,
    DecryptRequest, DecryptResponse,
)

__all__ = [
    "APIError",
    "HealthResponse",
    "PublicKeyResponse",
    "EncryptRequest",
    "EncryptResponse",
    "DecryptRequest",
    "DecryptResponse",
]
