#!/usr/bin/env python3
"""
PIN Block Service command line

Usage:
    pinblock serve [--host HOST] [--port PORT]     # Run the HTTP service
    pinblock encode --pin 1234 --pan 4012345678901234
                                                    # Encode and encrypt locally
    pinblock demo --url http://localhost:3001 --pin 1234 --pan 4012345678901234
                                                    # Full client round trip
"""

import argparse
import sys
from typing import List, Optional

from .client import PinBlockClient, PinBlockClientError
from .config import Settings
from .exceptions import PinBlockServiceError
from .pin_block import PinBlockCodec
from .zone_key import create_zone_key_cipher


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    uvicorn.run(
        "pinblock.main:create_app",
        factory=True,
        host=args.host or settings.host,
        port=args.port or settings.port,
    )
    return 0


def cmd_encode(args: argparse.Namespace, settings: Settings) -> int:
    fields = PinBlockCodec().encode(args.pin, args.pan)
    cipher = create_zone_key_cipher(args.zone_key or settings.zone_key_hex)
    encrypted = cipher.encrypt_block(fields.clear_block)

    print(f"PIN field:       {fields.pin_field}")
    print(f"PAN field:       {fields.pan_field}")
    print(f"Clear block:     {fields.clear_block_hex}")
    print(f"Algorithm:       {cipher.algorithm} (KCV {cipher.key_check_value()})")
    print(f"Encrypted block: {encrypted.hex().upper()}")
    return 0


def cmd_demo(args: argparse.Namespace, settings: Settings) -> int:
    with PinBlockClient(args.url) as client:
        result = client.encrypt(args.pin, args.pan)
        print(f"PIN field:       {result['pinField']}")
        print(f"PAN field:       {result['panField']}")
        print(f"Clear block:     {result['clearBlock']}")
        print(f"Encrypted block: {result['encryptedBlock']}")

        verified = client.verify(result["encryptedBlock"], args.pan)
        print(f"Recovered field: {verified['pinField']}")
        print(f"Extracted PIN:   {verified['extractedPin']}")

    return 0 if verified["extractedPin"] == args.pin else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pinblock", description="ISO-0 PIN block zone service")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.set_defaults(func=cmd_serve)

    encode = subparsers.add_parser("encode", help="Encode and encrypt a PIN block locally")
    encode.add_argument("--pin", required=True)
    encode.add_argument("--pan", required=True)
    encode.add_argument("--zone-key", help="Zone key hex (defaults to ZONE_KEY_HEX)")
    encode.set_defaults(func=cmd_encode)

    demo = subparsers.add_parser("demo", help="Encrypt and verify against a running service")
    demo.add_argument("--url", default="http://localhost:3001")
    demo.add_argument("--pin", default="1234")
    demo.add_argument("--pan", default="4012345678901234")
    demo.set_defaults(func=cmd_demo)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()

    try:
        return args.func(args, settings)
    except PinBlockServiceError as e:
        print(f"[FAIL] {e.error_code}: {e.message}", file=sys.stderr)
        return 2
    except PinBlockClientError as e:
        print(f"[FAIL] {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
