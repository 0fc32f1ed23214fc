"""
PIN Block API Models

Pydantic models for API requests/responses. Field names are camelCase on
the wire and snake_case in Python.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class APIError(BaseModel):
    """Standard API error response"""
    error: str = Field(..., description="Error code")
    message: str = Field(..., description="Human readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=_utcnow)


class HealthResponse(WireModel):
    """Health check response"""
    status: str = "healthy"
    version: str = "1.0.0"
    zone_key_algorithm: str = Field(..., alias="zoneKeyAlgorithm")
    zone_key_check_value: str = Field(..., alias="zoneKeyCheckValue")
    transport_key_size: int = Field(..., alias="transportKeySize")
    timestamp: datetime = Field(default_factory=_utcnow)


class PublicKeyResponse(WireModel):
    public_key: str = Field(..., alias="publicKey", description="SPKI PEM encoded RSA public key")


class EncryptRequest(WireModel):
    encrypted_data: str = Field(
        ...,
        alias="encryptedData",
        min_length=1,
        description="Base64 RSA-OAEP-SHA256 ciphertext of JSON {pin, pan}",
    )


class EncryptResponse(WireModel):
    pin_field: str = Field(..., alias="pinField")
    pan_field: str = Field(..., alias="panField")
    clear_block: str = Field(..., alias="clearBlock", description="Uppercase hex")
    encrypted_block: str = Field(..., alias="encryptedBlock", description="Uppercase hex")


class DecryptRequest(WireModel):
    encrypted_block_hex: str = Field(..., alias="encryptedBlockHex", min_length=1)
    pan: str = Field(..., min_length=1)


class DecryptResponse(WireModel):
    pin_field: str = Field(..., alias="pinField", description="Uppercase hex")
    extracted_pin: str = Field(..., alias="extractedPin")
