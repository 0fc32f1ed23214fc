"""
Service configuration, read from environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

# AES-256 demo key (32 bytes). Deployments set ZONE_KEY_HEX.
DEFAULT_ZONE_KEY_HEX = "000102030405060708090A0B0C0D0E0F101112131415161718191A1B1C1D1E1F"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    zone_key_hex: str = DEFAULT_ZONE_KEY_HEX
    transport_key_size: int = 2048
    transport_private_key_path: Optional[str] = None
    pin_decode_strict: bool = True
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    log_json: bool = False
    host: str = "0.0.0.0"
    port: int = 3001

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            zone_key_hex=os.getenv("ZONE_KEY_HEX", DEFAULT_ZONE_KEY_HEX),
            transport_key_size=int(os.getenv("TRANSPORT_KEY_SIZE", "2048")),
            transport_private_key_path=os.getenv("TRANSPORT_PRIVATE_KEY_PATH") or None,
            pin_decode_strict=_env_bool("PIN_DECODE_STRICT", True),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("LOG_JSON", False),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3001")),
        )
