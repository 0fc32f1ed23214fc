"""
Test configuration and fixtures for the PIN block service tests.
"""

import pytest
from faker import Faker
from fastapi.testclient import TestClient

from pinblock.config import DEFAULT_ZONE_KEY_HEX, Settings
from pinblock.main import create_app
from pinblock.pin_block import PinBlockCodec
from pinblock.protocol import PinBlockProtocol
from pinblock.transport import TransportCipher, TransportKeyPair
from pinblock.zone_key import create_zone_key_cipher

fake = Faker()

AES_ZONE_KEY_HEX = DEFAULT_ZONE_KEY_HEX
TDES_ZONE_KEY_HEX = "0123456789ABCDEFFEDCBA9876543210"


@pytest.fixture(scope="session")
def transport_key_pair():
    """One RSA-2048 key pair for the whole session; generation is slow."""
    return TransportKeyPair.generate()


@pytest.fixture
def transport(transport_key_pair):
    return TransportCipher(transport_key_pair)


@pytest.fixture
def aes_cipher():
    return create_zone_key_cipher(AES_ZONE_KEY_HEX)


@pytest.fixture
def tdes_cipher():
    return create_zone_key_cipher(TDES_ZONE_KEY_HEX)


@pytest.fixture
def codec():
    return PinBlockCodec()


@pytest.fixture
def protocol(transport, aes_cipher, codec):
    return PinBlockProtocol(transport=transport, zone_cipher=aes_cipher, codec=codec)


@pytest.fixture
def tdes_protocol(transport, tdes_cipher, codec):
    return PinBlockProtocol(transport=transport, zone_cipher=tdes_cipher, codec=codec)


@pytest.fixture
def app(protocol):
    return create_app(Settings(zone_key_hex=AES_ZONE_KEY_HEX), protocol=protocol)


@pytest.fixture
def client(app):
    """Create test client."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def card_pans():
    """Random Luhn-valid card numbers of the common lengths."""
    return [
        fake.credit_card_number(card_type=card_type)
        for card_type in ("visa16", "mastercard", "amex", "discover", "visa13", "visa19")
    ]


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Keep tests independent of the caller's environment."""
    for name in (
        "ZONE_KEY_HEX",
        "TRANSPORT_KEY_SIZE",
        "TRANSPORT_PRIVATE_KEY_PATH",
        "PIN_DECODE_STRICT",
        "CORS_ORIGINS",
        "LOG_LEVEL",
        "LOG_JSON",
    ):
        monkeypatch.delenv(name, raising=False)
