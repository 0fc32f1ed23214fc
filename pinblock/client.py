"""
PIN Block Service Client

Performs the entry-device side of the protocol: fetch the server's transport
public key, wrap {pin, pan} with RSA-OAEP locally, and call the encrypt and
decrypt endpoints.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import structlog

from .transport import wrap

logger = structlog.get_logger(__name__)


class PinBlockClientError(Exception):
    """Non-success response from the PIN block service."""

    def __init__(self, status_code: int, body: Any):
        self.status_code = status_code
        self.body = body
        message = body.get("message") if isinstance(body, dict) else body
        super().__init__(f"HTTP {status_code}: {message}")


class PinBlockClient:
    def __init__(self, base_url: str, http_client: Optional[httpx.Client] = None, timeout: float = 10.0):
        self._owns_client = http_client is None
        self.http = http_client or httpx.Client(base_url=base_url, timeout=timeout)
        self._public_key_pem: Optional[str] = None

    def __enter__(self) -> "PinBlockClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.http.close()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        response = self.http.request(method, path, **kwargs)
        try:
            body = response.json()
        except ValueError:
            body = response.text

        if response.is_error:
            logger.warning("PIN block service error", path=path, status_code=response.status_code)
            raise PinBlockClientError(response.status_code, body)
        return body

    def fetch_public_key(self) -> str:
        if self._public_key_pem is None:
            self._public_key_pem = self._request("GET", "/public-key")["publicKey"]
        return self._public_key_pem

    def encrypt(self, pin: str, pan: str) -> Dict[str, str]:
        """Wrap the PIN and PAN and ask the server for the zone-encrypted block."""
        encrypted_data = wrap(pin, pan, self.fetch_public_key())
        return self._request("POST", "/encrypt", json={"encryptedData": encrypted_data})

    def verify(self, encrypted_block_hex: str, pan: str) -> Dict[str, str]:
        return self._request(
            "POST",
            "/decrypt",
            json={"encryptedBlockHex": encrypted_block_hex, "pan": pan},
        )
