"""
PIN Block Protocol

Composes the transport layer, the ISO-0 codec and the zone key cipher into
the two request flows:

    encrypt: unwrap {pin, pan} -> encode ISO-0 -> encrypt under zone key
    verify:  decrypt under zone key -> decode ISO-0 with PAN -> PIN

The keys are injected at construction and never change afterwards, so one
instance serves concurrent requests.
"""

from __future__ import annotations

import binascii
from dataclasses import asdict, dataclass
from typing import Dict

import structlog

from .exceptions import ValidationError
from .pin_block import PinBlockCodec
from .transport import TransportCipher
from .zone_key import ZoneKeyCipher

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EncryptResult:
    # Clear values are returned for visualisation only
    pin_field: str
    pan_field: str
    clear_block: str
    encrypted_block: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class VerifyResult:
    pin_field: str
    extracted_pin: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def mask_pan(pan: str) -> str:
    if len(pan) < 10:
        return "*" * len(pan)
    return pan[:6] + "*" * (len(pan) - 10) + pan[-4:]


class PinBlockProtocol:
    def __init__(
        self,
        transport: TransportCipher,
        zone_cipher: ZoneKeyCipher,
        codec: PinBlockCodec | None = None,
    ):
        self.transport = transport
        self.zone_cipher = zone_cipher
        self.codec = codec or PinBlockCodec()

    @property
    def public_key_pem(self) -> str:
        return self.transport.public_key_pem

    def encrypt(self, encrypted_data: str) -> EncryptResult:
        """Unwrap a transport envelope and return the zone-encrypted PIN block."""
        payload = self.transport.unwrap(encrypted_data)
        return self.encrypt_clear(payload.pin, payload.pan)

    def encrypt_clear(self, pin: str, pan: str) -> EncryptResult:
        fields = self.codec.encode(pin, pan)
        encrypted = self.zone_cipher.encrypt_block(fields.clear_block)

        logger.info(
            "PIN block encrypted",
            pan=mask_pan(pan),
            algorithm=self.zone_cipher.algorithm,
        )

        return EncryptResult(
            pin_field=fields.pin_field,
            pan_field=fields.pan_field,
            clear_block=fields.clear_block_hex,
            encrypted_block=encrypted.hex().upper(),
        )

    def verify(self, encrypted_block_hex: str, pan: str) -> VerifyResult:
        """Decrypt a zone-encrypted PIN block and extract the PIN."""
        try:
            encrypted = binascii.unhexlify(encrypted_block_hex)
        except (binascii.Error, ValueError) as e:
            raise ValidationError("encryptedBlockHex is not valid hex") from e

        clear_block = self.zone_cipher.decrypt_block(encrypted)
        decoded = self.codec.decode(clear_block, pan)

        logger.info(
            "PIN block verified",
            pan=mask_pan(pan),
            algorithm=self.zone_cipher.algorithm,
        )

        return VerifyResult(pin_field=decoded.pin_field, extracted_pin=decoded.extracted_pin)
