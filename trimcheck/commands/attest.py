from __future__ import annotations

from pathlib import Path
from typing import Any

from trimcheck.core.errors import AttestationError
from trimcheck.core.json_canon import canonical_json_bytes


SIGNATURE_ALG = "ed25519"
_HEX = "0123456789abcdefABCDEF"


def _load_ed25519_public_key(blob: bytes) -> Any:
    try:
        from cryptography.hazmat.primitives import serialization
        from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
    except ImportError as e:  # pragma: no cover
        raise AttestationError("Missing crypto dependency for Ed25519 verification (install 'cryptography').") from e

    trimmed = blob.strip()
    try:
        hex_s = trimmed.decode("ascii", errors="strict").strip()
    except UnicodeDecodeError:
        hex_s = ""
    if len(hex_s) == 64 and all(c in _HEX for c in hex_s):
        return Ed25519PublicKey.from_public_bytes(bytes.fromhex(hex_s))

    try:
        key = serialization.load_pem_public_key(trimmed)
    except ValueError as e:
        raise AttestationError(f"unreadable public key: {e}") from e
    if not isinstance(key, Ed25519PublicKey):
        raise AttestationError("Public key is not Ed25519")
    return key


def _load_ed25519_private_key(blob: bytes) -> Any:
    try:
        from cryptography.hazmat.primitives import serialization
        from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
    except ImportError as e:  # pragma: no cover
        raise AttestationError("Missing crypto dependency for Ed25519 signing (install 'cryptography').") from e

    trimmed = blob.strip()
    try:
        hex_s = trimmed.decode("ascii", errors="strict").strip()
    except UnicodeDecodeError:
        hex_s = ""
    if len(hex_s) == 64 and all(c in _HEX for c in hex_s):
        return Ed25519PrivateKey.from_private_bytes(bytes.fromhex(hex_s))

    try:
        key = serialization.load_pem_private_key(trimmed, password=None)
    except (TypeError, ValueError) as e:
        raise AttestationError(f"unreadable private key: {e}") from e
    if not isinstance(key, Ed25519PrivateKey):
        raise AttestationError("Private key is not Ed25519")
    return key


def signature_payload(report: dict[str, Any]) -> bytes:
    # Signature binds the canonical report bytes, not the on-disk formatting.
    return canonical_json_bytes(report)


def sign_report_bytes(report: dict[str, Any], private_key_blob: bytes) -> str:
    sk = _load_ed25519_private_key(private_key_blob)
    return sk.sign(signature_payload(report)).hex()


def verify_report_signature(report: dict[str, Any], signature_hex: str, public_key_blob: bytes) -> None:
    sig_s = str(signature_hex or "").strip()
    if len(sig_s) != 128 or not all(c in _HEX for c in sig_s):
        raise AttestationError("signature must be 64 bytes of hex")
    pub = _load_ed25519_public_key(public_key_blob)
    from cryptography.exceptions import InvalidSignature

    try:
        pub.verify(bytes.fromhex(sig_s), signature_payload(report))
    except InvalidSignature:
        # cryptography.exceptions.InvalidSignature has an empty string repr
        raise AttestationError(f"Invalid {SIGNATURE_ALG} signature over job report") from None


def write_signature(out_path: Path, signature_hex: str) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(signature_hex + "\n", encoding="utf-8", errors="strict", newline="\n")


def read_signature(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="strict").strip()
