"""Ed25519 signing for DP-1 playlists.

The signature covers the canonical JSON (sorted keys, compact separators)
of the playlist with any existing ``signature`` removed, hashed with
SHA-256.  Signatures are written as ``ed25519:0x<hex>``.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from ff1agent.utils.helpers import canonical_json

SIGNATURE_PREFIX = "ed25519:0x"


def _decode_key(text: str) -> bytes:
    text = text.strip()
    if text.startswith("0x"):
        return bytes.fromhex(text[2:])
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error:
        return bytes.fromhex(text)


def load_private_key(key: str) -> Ed25519PrivateKey:
    """Load a key given as base64 or 0x-hex.

    Accepts a 32-byte seed, a 64-byte seed+public pair or a PKCS#8 DER blob.
    Raises ``ValueError`` for anything else.
    """
    if not key:
        raise ValueError("Private key is required for signing")
    try:
        raw = _decode_key(key)
    except ValueError as e:
        raise ValueError(f"Private key is neither base64 nor hex: {e}") from None

    if len(raw) == 32:
        return Ed25519PrivateKey.from_private_bytes(raw)
    if len(raw) == 64:
        return Ed25519PrivateKey.from_private_bytes(raw[:32])
    loaded = serialization.load_der_private_key(raw, password=None)
    if not isinstance(loaded, Ed25519PrivateKey):
        raise ValueError("Private key is not an Ed25519 key")
    return loaded


def public_key_hex(key: str) -> str:
    public = load_private_key(key).public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return "0x" + public.hex()


def signing_payload(playlist: dict[str, Any]) -> bytes:
    unsigned = {k: v for k, v in playlist.items() if k != "signature"}
    return hashlib.sha256(canonical_json(unsigned).encode("utf-8")).digest()


def sign_playlist(playlist: dict[str, Any], private_key: str) -> str:
    """Return the signature string for ``playlist`` (existing signature ignored)."""
    key = load_private_key(private_key)
    return SIGNATURE_PREFIX + key.sign(signing_payload(playlist)).hex()


def verify_signature(playlist: dict[str, Any], public_key: str) -> bool:
    signature = playlist.get("signature")
    if not isinstance(signature, str) or not signature.startswith(SIGNATURE_PREFIX):
        raise ValueError("Playlist does not have an ed25519 signature")
    verifier = Ed25519PublicKey.from_public_bytes(_decode_key(public_key))
    try:
        verifier.verify(bytes.fromhex(signature[len(SIGNATURE_PREFIX):]), signing_payload(playlist))
    except InvalidSignature:
        return False
    return True
