"""
ISO 9564-1 Format 0 PIN Block Codec

Format 0 (ANSI X9.8) combines two 16-nibble fields:

    PIN field:  0 L P P P P P/F P/F P/F P/F P/F P/F P/F P/F F F
    PAN field:  0 0 0 0 A A A A A A A A A A A A

    0 = format code, L = PIN length (4-12), P = PIN digit, F = fill (0xF)
    A = the 12 rightmost PAN digits, excluding the check digit

The clear PIN block is PIN field XOR PAN field. The PAN is therefore bound
into the block: decoding with a different PAN does not yield the same field.
"""

from __future__ import annotations

from dataclasses import dataclass

from .exceptions import DecodeError, LengthError, ValidationError

PIN_BLOCK_SIZE = 8
MIN_PIN_LENGTH = 4
MAX_PIN_LENGTH = 12
MIN_PAN_LENGTH = 13
MAX_PAN_LENGTH = 19


@dataclass(frozen=True)
class Iso0Fields:
    """Intermediate and final values of a Format 0 encode."""
    pin_field: str  # 16 uppercase hex digits
    pan_field: str  # 16 uppercase hex digits
    clear_block: bytes  # 8 bytes

    @property
    def clear_block_hex(self) -> str:
        return self.clear_block.hex().upper()


@dataclass(frozen=True)
class DecodedPinBlock:
    pin_field: str
    extracted_pin: str


def validate_pin(pin: str) -> None:
    if not isinstance(pin, str) or not (pin.isascii() and pin.isdigit()):
        raise ValidationError("PIN must be numeric")
    if not MIN_PIN_LENGTH <= len(pin) <= MAX_PIN_LENGTH:
        raise ValidationError(
            f"PIN must be {MIN_PIN_LENGTH}-{MAX_PIN_LENGTH} digits",
            {"pin_length": len(pin)},
        )


def validate_pan(pan: str) -> None:
    if not isinstance(pan, str) or not (pan.isascii() and pan.isdigit()):
        raise ValidationError("PAN must be numeric")
    if not MIN_PAN_LENGTH <= len(pan) <= MAX_PAN_LENGTH:
        raise ValidationError(
            f"PAN must be {MIN_PAN_LENGTH}-{MAX_PAN_LENGTH} digits",
            {"pan_length": len(pan)},
        )


def pin_field(pin: str) -> str:
    """Build the 16-nibble PIN field."""
    validate_pin(pin)
    return f"0{len(pin):X}{pin}" + "F" * (14 - len(pin))


def pan_field(pan: str) -> str:
    """Build the 16-nibble PAN field from the 12 digits before the check digit."""
    validate_pan(pan)
    return "0000" + pan[len(pan) - 13:len(pan) - 1]


def xor_blocks(left: bytes, right: bytes) -> bytes:
    return bytes(a ^ b for a, b in zip(left, right))


class PinBlockCodec:
    """
    Encoder/decoder for ISO Format 0 clear PIN blocks.

    With ``strict=True`` (the default) decode rejects any recovered PIN field
    that is not a well-formed Format 0 field. With ``strict=False`` decode
    returns whatever substring the length nibble selects, even when the
    field is garbage; callers then have to judge the result themselves.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict

    def encode(self, pin: str, pan: str) -> Iso0Fields:
        pin_hex = pin_field(pin)
        pan_hex = pan_field(pan)

        clear_block = xor_blocks(bytes.fromhex(pin_hex), bytes.fromhex(pan_hex))

        return Iso0Fields(pin_field=pin_hex, pan_field=pan_hex, clear_block=clear_block)

    def decode(self, clear_block: bytes, pan: str) -> DecodedPinBlock:
        if len(clear_block) != PIN_BLOCK_SIZE:
            raise LengthError(
                f"Clear PIN block must be {PIN_BLOCK_SIZE} bytes",
                {"length": len(clear_block)},
            )

        pan_bytes = bytes.fromhex(pan_field(pan))
        recovered = xor_blocks(clear_block, pan_bytes).hex().upper()

        pin_length = int(recovered[1], 16)
        extracted = recovered[2:2 + pin_length]

        if self.strict:
            self._check_field(recovered, pin_length, extracted)

        return DecodedPinBlock(pin_field=recovered, extracted_pin=extracted)

    @staticmethod
    def _check_field(field: str, pin_length: int, extracted: str) -> None:
        if field[0] != "0":
            raise DecodeError(
                "PIN block format nibble is not 0; wrong key or PAN",
                {"format_nibble": field[0]},
            )
        if not MIN_PIN_LENGTH <= pin_length <= MAX_PIN_LENGTH:
            raise DecodeError(
                "PIN length nibble out of range; wrong key or PAN",
                {"pin_length": pin_length},
            )
        if not extracted.isdigit():
            raise DecodeError("PIN digits are not decimal; wrong key or PAN")
        if field[2 + pin_length:] != "F" * (14 - pin_length):
            raise DecodeError("PIN block fill is not 0xF; wrong key or PAN")
