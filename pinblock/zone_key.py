"""
Zone Key Ciphers

Symmetric encryption of clear PIN blocks under a zone PIN key (ZPK), the way
two network nodes exchange PIN blocks under a shared key.

Two variants share one contract:
- AES-256-ECB with PKCS#7 padding (8-byte block padded to 16 bytes)
- Triple DES ECB, no padding (2-key K1||K2||K1 or 3-key)

Both use ECB on a single block only. This mirrors the legacy PIN block
interchange convention and must not be applied to multi-block payloads.
"""

from __future__ import annotations

import binascii
from abc import ABC, abstractmethod

import structlog
from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .exceptions import ConfigurationError, LengthError, PaddingError

logger = structlog.get_logger(__name__)

# Largest operand either variant accepts (one AES block)
MAX_BLOCK_OPERAND = 16


class ZoneKeyCipher(ABC):
    """Single-block cipher under a fixed zone key."""

    algorithm: str = ""
    block_size: int = 8

    def __init__(self, key: bytes):
        self._key = key

    @abstractmethod
    def encrypt_block(self, clear: bytes) -> bytes:
        ...

    @abstractmethod
    def decrypt_block(self, cipher: bytes) -> bytes:
        ...

    def key_check_value(self) -> str:
        """First 3 bytes of the key's encryption of an all-zero block, as hex."""
        encryptor = self._cipher().encryptor()
        zeros = bytes(self.block_size)
        return (encryptor.update(zeros) + encryptor.finalize())[:3].hex().upper()

    @abstractmethod
    def _cipher(self) -> Cipher:
        ...

    def _check_operand(self, data: bytes) -> None:
        if len(data) > MAX_BLOCK_OPERAND:
            raise LengthError(
                f"{self.algorithm} operates on a single PIN block, "
                f"got {len(data)} bytes",
                {"length": len(data)},
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kcv={self.key_check_value()})"


class Aes256EcbCipher(ZoneKeyCipher):
    algorithm = "AES-256-ECB-PKCS7"
    block_size = 16

    def __init__(self, key: bytes):
        if len(key) != 32:
            raise ConfigurationError(
                "AES-256 zone key must be 32 bytes", {"key_length": len(key)}
            )
        super().__init__(key)

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.ECB())

    def encrypt_block(self, clear: bytes) -> bytes:
        self._check_operand(clear)

        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(clear) + padder.finalize()

        encryptor = self._cipher().encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def decrypt_block(self, cipher: bytes) -> bytes:
        self._check_operand(cipher)
        if len(cipher) != self.block_size:
            raise LengthError(
                f"AES ciphertext must be {self.block_size} bytes",
                {"length": len(cipher)},
            )

        decryptor = self._cipher().decryptor()
        padded = decryptor.update(cipher) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise PaddingError("Invalid PKCS#7 padding; wrong zone key or corrupt block") from e


class TripleDesEcbCipher(ZoneKeyCipher):
    algorithm = "3DES-ECB"
    block_size = 8

    def __init__(self, key: bytes):
        if len(key) == 16:
            # 2-key TDES: K1 || K2 || K1
            key = key + key[:8]
        elif len(key) != 24:
            raise ConfigurationError(
                "Triple DES zone key must be 16 or 24 bytes", {"key_length": len(key)}
            )
        super().__init__(key)

    def _cipher(self) -> Cipher:
        return Cipher(TripleDES(self._key), modes.ECB())

    def _check_length(self, data: bytes) -> None:
        self._check_operand(data)
        if not data or len(data) % self.block_size:
            raise LengthError(
                f"Triple DES input must be a multiple of {self.block_size} bytes",
                {"length": len(data)},
            )

    def encrypt_block(self, clear: bytes) -> bytes:
        self._check_length(clear)
        encryptor = self._cipher().encryptor()
        return encryptor.update(clear) + encryptor.finalize()

    def decrypt_block(self, cipher: bytes) -> bytes:
        self._check_length(cipher)
        decryptor = self._cipher().decryptor()
        return decryptor.update(cipher) + decryptor.finalize()


def create_zone_key_cipher(key_hex: str) -> ZoneKeyCipher:
    """Pick the cipher variant from the zone key length."""
    try:
        key = binascii.unhexlify(key_hex.strip())
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError("Zone key is not valid hex") from e

    if len(key) == 32:
        cipher = Aes256EcbCipher(key)
    elif len(key) in (16, 24):
        cipher = TripleDesEcbCipher(key)
    else:
        raise ConfigurationError(
            "Zone key must be 16 or 24 bytes (Triple DES) or 32 bytes (AES-256)",
            {"key_length": len(key)},
        )

    logger.info(
        "Zone key loaded",
        algorithm=cipher.algorithm,
        key_check_value=cipher.key_check_value(),
    )
    return cipher
