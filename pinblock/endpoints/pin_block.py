"""
PIN Block Endpoints
"""

from fastapi import APIRouter, Depends, Request

from ..models.api import (
    DecryptRequest,
    DecryptResponse,
    EncryptRequest,
    EncryptResponse,
    PublicKeyResponse,
)
from ..protocol import PinBlockProtocol

router = APIRouter(tags=["pin-block"])


def get_protocol(request: Request) -> PinBlockProtocol:
    """Protocol instance created at startup."""
    return request.app.state.protocol


@router.get("/public-key", response_model=PublicKeyResponse)
async def get_public_key(protocol: PinBlockProtocol = Depends(get_protocol)):
    """Transport public key (SPKI PEM) for client-side RSA-OAEP encryption"""
    return PublicKeyResponse(public_key=protocol.public_key_pem)


# Plain def: RSA and block cipher work runs in FastAPI's threadpool
@router.post("/encrypt", response_model=EncryptResponse)
def encrypt_pin_block(
    encrypt_request: EncryptRequest,
    protocol: PinBlockProtocol = Depends(get_protocol),
):
    """Build an ISO-0 PIN block from the wrapped {pin, pan} and encrypt it under the zone key"""
    result = protocol.encrypt(encrypt_request.encrypted_data)
    return EncryptResponse(**result.to_dict())


@router.post("/decrypt", response_model=DecryptResponse)
def decrypt_pin_block(
    decrypt_request: DecryptRequest,
    protocol: PinBlockProtocol = Depends(get_protocol),
):
    """Decrypt a zone-encrypted PIN block and extract the PIN using the PAN"""
    result = protocol.verify(decrypt_request.encrypted_block_hex, decrypt_request.pan)
    return DecryptResponse(**result.to_dict())
