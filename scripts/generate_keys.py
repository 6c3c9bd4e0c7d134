#!/usr/bin/env python3
"""
Generates an RSA-2048 signing keypair for the auth gateway.
Writes PEM files and prints the environment values for a key slot.
"""

import argparse
import os
import sys
from pathlib import Path

from cryptography.fernet import Fernet

from authgw.crypto.keys import dated_kid, encrypt_private_key, generate_rsa_keypair

PRIVATE_FILE_MODE = 0o600


def _single_line(pem: str) -> str:
    return pem.strip().replace("\n", "\\n")


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--kid", default=dated_kid(), help="key id (default auth-key-YYYY-MM)")
    parser.add_argument("--out-dir", default="keys", help="directory for the PEM files")
    parser.add_argument("--slot", type=int, default=1, help="JWT_*_<n> slot to print")
    parser.add_argument(
        "--encrypt",
        action="store_true",
        help="print the private key Fernet-encrypted with JWT_ENCRYPTION_KEY",
    )
    args = parser.parse_args()

    keypair = generate_rsa_keypair(args.kid)
    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    private_path = out_dir / "private.pem"
    public_path = out_dir / "public.pem"
    private_path.write_text(keypair.private_key_pem, encoding="utf-8")
    os.chmod(private_path, PRIVATE_FILE_MODE)
    public_path.write_text(keypair.public_key_pem, encoding="utf-8")

    private_value = _single_line(keypair.private_key_pem)
    if args.encrypt:
        fernet_key = os.environ.get("JWT_ENCRYPTION_KEY", "")
        if not fernet_key:
            fernet_key = Fernet.generate_key().decode()
            print(f"JWT_ENCRYPTION_KEY={fernet_key}")
        private_value = encrypt_private_key(keypair.private_key_pem, fernet_key)

    print(f"Wrote {private_path} and {public_path} (kid {keypair.kid})", file=sys.stderr)
    print(f"JWT_KEY_ID_{args.slot}={keypair.kid}")
    print(f'JWT_PRIVATE_KEY_{args.slot}="{private_value}"')
    print(f'JWT_PUBLIC_KEY_{args.slot}="{_single_line(keypair.public_key_pem)}"')
    return 0


if __name__ == "__main__":
    sys.exit(main())
