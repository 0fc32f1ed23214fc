"""
Transport Encryption for PIN Entry

Shields the PIN and PAN between the entry device and the server. The server
holds one RSA-2048 key pair for the life of the process and publishes the
public half as an SPKI PEM. Clients encrypt a compact JSON payload
``{"pin": ..., "pan": ...}`` with RSA-OAEP (SHA-256, MGF1-SHA-256) and send
it base64 encoded.

OAEP-SHA256 under a 2048-bit modulus carries at most 190 bytes of plaintext.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import structlog
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .exceptions import ConfigurationError, DecryptionError, MalformedPayloadError, ValidationError

logger = structlog.get_logger(__name__)

TRANSPORT_KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537

PublicKeyLike = Union[str, bytes, rsa.RSAPublicKey]


@dataclass(frozen=True)
class TransportPayload:
    pin: str
    pan: str


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def max_payload_size(key_size: int = TRANSPORT_KEY_SIZE) -> int:
    """Largest OAEP-SHA256 plaintext for a modulus of ``key_size`` bits."""
    return key_size // 8 - 2 * hashes.SHA256.digest_size - 2


def load_public_key(public_key: PublicKeyLike) -> rsa.RSAPublicKey:
    if isinstance(public_key, rsa.RSAPublicKey):
        return public_key
    if isinstance(public_key, str):
        public_key = public_key.encode()
    try:
        key = serialization.load_pem_public_key(public_key)
    except ValueError as e:
        raise ValidationError("Public key is not a valid PEM encoded key") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise ValidationError("Public key is not an RSA key")
    return key


class TransportKeyPair:
    """RSA key pair held for the process lifetime."""

    def __init__(self, private_key: rsa.RSAPrivateKey):
        self._private_key = private_key
        self._public_key = private_key.public_key()
        self._public_key_pem = self._public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode()

    @classmethod
    def generate(cls, key_size: int = TRANSPORT_KEY_SIZE) -> "TransportKeyPair":
        private_key = rsa.generate_private_key(
            public_exponent=PUBLIC_EXPONENT,
            key_size=key_size,
        )
        logger.info("Transport key pair generated", key_size=key_size)
        return cls(private_key)

    @classmethod
    def from_private_pem(cls, pem: bytes) -> "TransportKeyPair":
        try:
            private_key = serialization.load_pem_private_key(pem, password=None)
        except (ValueError, TypeError) as e:
            raise ConfigurationError("Transport private key could not be loaded") from e
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise ConfigurationError("Transport private key is not an RSA key")
        logger.info("Transport key pair loaded", key_size=private_key.key_size)
        return cls(private_key)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "TransportKeyPair":
        try:
            pem = Path(path).read_bytes()
        except OSError as e:
            raise ConfigurationError(f"Cannot read transport private key: {path}") from e
        return cls.from_private_pem(pem)

    @property
    def private_key(self) -> rsa.RSAPrivateKey:
        return self._private_key

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self._public_key

    @property
    def public_key_pem(self) -> str:
        return self._public_key_pem

    @property
    def key_size(self) -> int:
        return self._private_key.key_size


def wrap(pin: str, pan: str, public_key: PublicKeyLike) -> str:
    """Encrypt ``{pin, pan}`` for the server. Returns base64 ciphertext."""
    key = load_public_key(public_key)
    plaintext = json.dumps({"pin": pin, "pan": pan}, separators=(",", ":")).encode()

    limit = max_payload_size(key.key_size)
    if len(plaintext) > limit:
        raise ValidationError(
            "Transport payload exceeds RSA-OAEP capacity",
            {"size": len(plaintext), "limit": limit},
        )

    ciphertext = key.encrypt(plaintext, _oaep())
    return base64.b64encode(ciphertext).decode()


def unwrap(ciphertext_b64: str, private_key: rsa.RSAPrivateKey) -> TransportPayload:
    """Decrypt and parse a payload produced by ``wrap``."""
    try:
        ciphertext = base64.b64decode(ciphertext_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("encryptedData is not valid base64") from e

    try:
        plaintext = private_key.decrypt(ciphertext, _oaep())
    except ValueError as e:
        raise DecryptionError(
            "Transport decryption failed; ensure the client uses RSA-OAEP with SHA-256"
        ) from e

    try:
        data = json.loads(plaintext)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedPayloadError("Transport payload is not valid JSON") from e

    if not isinstance(data, dict):
        raise MalformedPayloadError("Transport payload must be a JSON object")

    pin = data.get("pin")
    pan = data.get("pan")
    if not pin or not pan:
        raise MalformedPayloadError("Invalid payload: missing pin or pan")
    if not isinstance(pin, str) or not isinstance(pan, str):
        raise MalformedPayloadError("Invalid payload: pin and pan must be strings")

    return TransportPayload(pin=pin, pan=pan)


class TransportCipher:
    """Binds the process key pair to wrap/unwrap."""

    def __init__(self, key_pair: TransportKeyPair):
        self.key_pair = key_pair

    @property
    def public_key_pem(self) -> str:
        return self.key_pair.public_key_pem

    def wrap(self, pin: str, pan: str) -> str:
        return wrap(pin, pan, self.key_pair.public_key)

    def unwrap(self, ciphertext_b64: str) -> TransportPayload:
        return unwrap(ciphertext_b64, self.key_pair.private_key)
