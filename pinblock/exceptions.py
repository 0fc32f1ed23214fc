"""
PIN Block Service Errors

Every failure the core can produce maps to one of three families:

- ValidationError: missing or malformed input (PIN, PAN, hex, base64)
- CryptoError: a cipher refused the input (wrong key, wrong length, bad padding)
- ProtocolError: the cipher succeeded but the result is not a valid
  PIN block or transport payload

Each error carries the code and HTTP status used by the API layer.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PinBlockServiceError(Exception):
    """Base class for all service errors."""

    error_code = "service_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(PinBlockServiceError):
    error_code = "validation_error"


class ConfigurationError(PinBlockServiceError):
    """Raised at startup when key material cannot be used."""

    error_code = "configuration_error"
    status_code = 500


class CryptoError(PinBlockServiceError):
    error_code = "crypto_error"


class DecryptionError(CryptoError):
    """RSA-OAEP decryption of the transport envelope failed."""

    error_code = "transport_decryption_failed"


class PaddingError(CryptoError):
    error_code = "invalid_padding"


class LengthError(CryptoError):
    error_code = "invalid_block_length"


class ProtocolError(PinBlockServiceError):
    error_code = "protocol_error"


class DecodeError(ProtocolError):
    """Recovered PIN field is not a valid ISO-0 field (wrong key or PAN)."""

    error_code = "pin_block_decode_failed"


class MalformedPayloadError(ProtocolError):
    error_code = "malformed_payload"
