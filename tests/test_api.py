"""
PIN Block API Tests

HTTP surface: public key distribution, encrypt and decrypt endpoints,
error responses, and the /api route prefix.
"""

import base64
import inspect

import httpx
import pytest
from fastapi.testclient import TestClient
from structlog.testing import capture_logs

from pinblock.config import DEFAULT_ZONE_KEY_HEX, Settings
from pinblock.endpoints.pin_block import decrypt_pin_block, encrypt_pin_block
from pinblock.main import create_app
from pinblock.protocol import PinBlockProtocol
from pinblock.transport import wrap
from pinblock.zone_key import Aes256EcbCipher


def _wrap_for(client, pin, pan, prefix=""):
    public_key = client.get(f"{prefix}/public-key").json()["publicKey"]
    return wrap(pin, pan, public_key)


class FailingZoneCipher(Aes256EcbCipher):
    """AES zone cipher whose decrypt breaks with an unexpected error."""

    def decrypt_block(self, cipher):
        raise RuntimeError("zone cipher offline while handling 4012345678901234")


class TestPublicKey:
    """Test transport public key distribution."""

    @pytest.mark.integration
    def test_returns_spki_pem(self, client, transport_key_pair):
        """Test the public key endpoint returns the SPKI PEM."""
        response = client.get("/public-key")

        assert response.status_code == 200
        assert response.json() == {"publicKey": transport_key_pair.public_key_pem}

    @pytest.mark.integration
    def test_stable_for_process_lifetime(self, client):
        """Test the public key does not change between requests."""
        assert client.get("/public-key").json() == client.get("/public-key").json()


class TestEncryptEndpoint:
    """Test the encrypt endpoint."""

    @pytest.mark.integration
    def test_encrypt(self, client):
        """Test encrypting a wrapped PIN and PAN."""
        encrypted_data = _wrap_for(client, "1234", "4012345678901234")
        response = client.post("/encrypt", json={"encryptedData": encrypted_data})

        assert response.status_code == 200
        assert response.json() == {
            "pinField": "041234FFFFFFFFFF",
            "panField": "0000234567890123",
            "clearBlock": "041217BA9876FEDC",
            "encryptedBlock": "978E708B09074A084055189D4F6B77D7",
        }

    @pytest.mark.integration
    def test_missing_encrypted_data(self, client):
        """Test a request without encryptedData is rejected."""
        response = client.post("/encrypt", json={})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["message"] == "Missing required fields"
        assert body["details"] == {"fields": ["encryptedData"]}

    @pytest.mark.integration
    def test_undecryptable_envelope(self, client):
        """Test an envelope the transport key cannot open."""
        garbage = base64.b64encode(b"\x01" * 256).decode()
        response = client.post("/encrypt", json={"encryptedData": garbage})

        assert response.status_code == 400
        assert response.json()["error"] == "transport_decryption_failed"
        assert "OAEP" in response.json()["message"]

    @pytest.mark.integration
    def test_invalid_pin_length(self, client):
        """Test a short PIN inside the envelope is rejected."""
        encrypted_data = _wrap_for(client, "123", "4012345678901234")
        response = client.post("/encrypt", json={"encryptedData": encrypted_data})

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.integration
    def test_malformed_payload(self, client):
        """Test an envelope with an empty PAN is rejected."""
        encrypted_data = _wrap_for(client, "1234", "")
        response = client.post("/encrypt", json={"encryptedData": encrypted_data})

        assert response.status_code == 400
        assert response.json()["error"] == "malformed_payload"


class TestDecryptEndpoint:
    """Test the decrypt endpoint."""

    @pytest.mark.integration
    def test_decrypt(self, client):
        """Test decrypting the reference PIN block."""
        response = client.post(
            "/decrypt",
            json={"encryptedBlockHex": "978E708B09074A084055189D4F6B77D7", "pan": "4012345678901234"},
        )

        assert response.status_code == 200
        assert response.json() == {"pinField": "041234FFFFFFFFFF", "extractedPin": "1234"}

    @pytest.mark.integration
    def test_encrypt_then_decrypt(self, client, card_pans):
        """Test encrypt then decrypt across card types."""
        for pan in card_pans:
            encrypted_data = _wrap_for(client, "04081516", pan)
            encrypted = client.post("/encrypt", json={"encryptedData": encrypted_data}).json()

            response = client.post(
                "/decrypt",
                json={"encryptedBlockHex": encrypted["encryptedBlock"], "pan": pan},
            )
            assert response.json()["extractedPin"] == "04081516"

    @pytest.mark.integration
    def test_missing_pan(self, client):
        """Test a request without a PAN is rejected."""
        response = client.post("/decrypt", json={"encryptedBlockHex": "00" * 16})

        assert response.status_code == 400
        assert response.json()["details"] == {"fields": ["pan"]}

    @pytest.mark.integration
    def test_wrong_pan(self, client):
        """Test decryption with the wrong PAN fails."""
        encrypted_data = _wrap_for(client, "0000", "4111111111111111")
        encrypted = client.post("/encrypt", json={"encryptedData": encrypted_data}).json()

        response = client.post(
            "/decrypt",
            json={"encryptedBlockHex": encrypted["encryptedBlock"], "pan": "4222222222222222"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "pin_block_decode_failed"

    @pytest.mark.integration
    def test_bad_padding(self, client):
        """Test a block with invalid PKCS#7 padding."""
        response = client.post(
            "/decrypt",
            json={"encryptedBlockHex": "F29000B62A499FD0A9F39A6ADD2E7780", "pan": "4012345678901234"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_padding"

    @pytest.mark.integration
    def test_bad_length(self, client):
        """Test a block of the wrong length for AES."""
        response = client.post(
            "/decrypt",
            json={"encryptedBlockHex": "BF5D44D08D106392", "pan": "4012345678901234"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_block_length"

    @pytest.mark.integration
    def test_bad_hex(self, client):
        """Test a block that is not hex."""
        response = client.post(
            "/decrypt",
            json={"encryptedBlockHex": "ZZ", "pan": "4012345678901234"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


class TestApiPrefix:
    """Test routes under the /api prefix."""

    @pytest.mark.integration
    def test_full_flow_under_api_prefix(self, client):
        """Test the full flow through /api paths."""
        encrypted_data = _wrap_for(client, "1234", "4012345678901234", prefix="/api")
        encrypted = client.post("/api/encrypt", json={"encryptedData": encrypted_data})
        assert encrypted.status_code == 200

        response = client.post(
            "/api/decrypt",
            json={"encryptedBlockHex": encrypted.json()["encryptedBlock"], "pan": "4012345678901234"},
        )
        assert response.json()["extractedPin"] == "1234"


class TestHealthAndConfig:
    """Test health reporting and configuration."""

    @pytest.mark.integration
    def test_health(self, client):
        """Test health reports the zone key and transport key."""
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["zoneKeyAlgorithm"] == "AES-256-ECB-PKCS7"
        assert body["zoneKeyCheckValue"] == "F29000"
        assert body["transportKeySize"] == 2048

    @pytest.mark.integration
    def test_cors_preflight(self, client):
        """Test CORS preflight for browser clients."""
        response = client.options(
            "/encrypt",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == 200
        assert "access-control-allow-origin" in response.headers

    @pytest.mark.integration
    def test_app_from_environment(self, monkeypatch, transport_key_pair, tmp_path):
        """Test building the app from environment variables."""
        from cryptography.hazmat.primitives import serialization

        key_file = tmp_path / "transport.pem"
        key_file.write_bytes(
            transport_key_pair.private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )
        monkeypatch.setenv("ZONE_KEY_HEX", "0123456789ABCDEFFEDCBA9876543210")
        monkeypatch.setenv("TRANSPORT_PRIVATE_KEY_PATH", str(key_file))
        monkeypatch.setenv("PIN_DECODE_STRICT", "false")

        app = create_app()
        assert app.state.settings == Settings.from_env()
        assert app.state.protocol.codec.strict is False

        with TestClient(app) as client:
            encrypted_data = _wrap_for(client, "1234", "4012345678901234")
            encrypted = client.post("/encrypt", json={"encryptedData": encrypted_data}).json()
            assert encrypted["encryptedBlock"] == "BF5D44D08D106392"
            assert client.get("/health").json()["zoneKeyCheckValue"] == "08D7B4"


class TestFailureHandling:
    """Test unexpected failures and log hygiene."""

    @pytest.mark.integration
    def test_unexpected_error_returns_500(self, transport, codec):
        """Test an unexpected failure becomes a generic 500 and the process keeps serving."""
        zone_cipher = FailingZoneCipher(bytes.fromhex(DEFAULT_ZONE_KEY_HEX))
        protocol = PinBlockProtocol(transport=transport, zone_cipher=zone_cipher, codec=codec)
        app = create_app(Settings(zone_key_hex=DEFAULT_ZONE_KEY_HEX), protocol=protocol)

        with capture_logs() as events, TestClient(app, raise_server_exceptions=False) as failing_client:
            response = failing_client.post(
                "/decrypt",
                json={"encryptedBlockHex": "978E708B09074A084055189D4F6B77D7", "pan": "4012345678901234"},
            )
            assert failing_client.get("/health").status_code == 200

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "internal_error"
        assert body["message"] == "Processing failed"
        assert "4012345678901234" not in response.text

        errors = [event for event in events if event["log_level"] == "error"]
        assert len(errors) == 1
        assert errors[0]["error_type"] == "RuntimeError"
        assert "error" not in errors[0]

    @pytest.mark.security
    def test_sensitive_values_never_logged(self, client):
        """Test PINs, PANs, clear blocks and zone keys stay out of the logs."""
        pin, pan, other_pan = "9876", "4012345678901234", "4222222222222222"
        encrypted_data = _wrap_for(client, pin, pan)

        with capture_logs() as events:
            encrypted = client.post("/encrypt", json={"encryptedData": encrypted_data}).json()
            verified = client.post(
                "/decrypt",
                json={"encryptedBlockHex": encrypted["encryptedBlock"], "pan": pan},
            )
            rejected = client.post(
                "/decrypt",
                json={"encryptedBlockHex": encrypted["encryptedBlock"], "pan": other_pan},
            )

        assert verified.json()["extractedPin"] == pin
        assert rejected.status_code == 400

        logged = " ".join(str(event) for event in events)
        for secret in (pin, pan, other_pan, encrypted["pinField"], encrypted["clearBlock"], DEFAULT_ZONE_KEY_HEX):
            assert secret not in logged
        assert [event["pan"] for event in events if "pan" in event] == ["401234******1234"] * 2

    @pytest.mark.unit
    def test_crypto_handlers_are_sync(self):
        """Test the RSA and zone cipher handlers run outside the event loop."""
        assert not inspect.iscoroutinefunction(encrypt_pin_block)
        assert not inspect.iscoroutinefunction(decrypt_pin_block)


@pytest.mark.integration
async def test_async_client_round_trip(app):
    """Test the flow over an async ASGI client."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as async_client:
        public_key = (await async_client.get("/public-key")).json()["publicKey"]
        encrypted = await async_client.post(
            "/encrypt",
            json={"encryptedData": wrap("987654", "5555555555554444", public_key)},
        )
        assert encrypted.status_code == 200

        verified = await async_client.post(
            "/decrypt",
            json={"encryptedBlockHex": encrypted.json()["encryptedBlock"], "pan": "5555555555554444"},
        )
        assert verified.json()["extractedPin"] == "987654"
