"""secp256k1 key handling and transaction signatures.

Public keys travel in compressed SEC1 form (33 bytes, hex encoded) and
signatures as raw 64-byte ``r || s`` in canonical low-S form.
"""

from __future__ import annotations

import hashlib

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

_CURVE = ec.SECP256K1()
_CURVE_ORDER = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)
_HALF_ORDER = _CURVE_ORDER // 2


def _normalize_private_value(value: int) -> int:
    normalized = value % _CURVE_ORDER
    return normalized or 1


def _private_key_to_hex(private_key: ec.EllipticCurvePrivateKey) -> str:
    return private_key.private_numbers().private_value.to_bytes(32, "big").hex()


def _compressed_hex(public_key: ec.EllipticCurvePublicKey) -> str:
    return public_key.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.CompressedPoint,
    ).hex()


def load_private_key_from_hex(private_hex: str) -> ec.EllipticCurvePrivateKey:
    return ec.derive_private_key(_normalize_private_value(int(private_hex, 16)), _CURVE)


def load_public_key_from_hex(public_hex: str) -> ec.EllipticCurvePublicKey:
    raw = bytes.fromhex(public_hex)
    if len(raw) != 33 or raw[0] not in (2, 3):
        raise ValueError("Public key hex must be a 33-byte compressed point.")
    return ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, raw)


def generate_keypair_hex() -> tuple[str, str]:
    """Return a fresh ``(private_hex, compressed_public_hex)`` pair."""
    private_key = ec.generate_private_key(_CURVE)
    return _private_key_to_hex(private_key), _compressed_hex(private_key.public_key())


def derive_public_key_hex(private_hex: str) -> str:
    return _compressed_hex(load_private_key_from_hex(private_hex).public_key())


def keypair_from_seed(seed: bytes) -> tuple[str, str]:
    """Derive a reproducible keypair from arbitrary seed bytes.

    The seed is hashed first so short labels such as ``b"signer-1"`` still
    spread over the whole scalar range.
    """
    private_value = _normalize_private_value(
        int.from_bytes(hashlib.sha256(seed).digest(), "big")
    )
    private_key = ec.derive_private_key(private_value, _CURVE)
    return _private_key_to_hex(private_key), _compressed_hex(private_key.public_key())


def canonicalize_signature_components(r: int, s: int) -> tuple[int, int]:
    """
    Normalize signature components to canonical low-S form.

    Raises:
        ValueError: If either component is outside the curve order.
    """
    if not (1 <= r < _CURVE_ORDER) or not (1 <= s < _CURVE_ORDER):
        raise ValueError("Signature component out of range.")
    if s > _HALF_ORDER:
        s = _CURVE_ORDER - s
    return r, s


def is_canonical_signature(r: int, s: int) -> bool:
    return 1 <= r < _CURVE_ORDER and 1 <= s <= _HALF_ORDER


def sign_message_hex(private_hex: str, message: bytes) -> str:
    private_key = load_private_key_from_hex(private_hex)
    der_signature = private_key.sign(message, ec.ECDSA(hashes.SHA256()))
    r, s = canonicalize_signature_components(*decode_dss_signature(der_signature))
    return (r.to_bytes(32, "big") + s.to_bytes(32, "big")).hex()


def verify_signature_hex(public_hex: str, message: bytes, signature_hex: str) -> bool:
    """Verify a raw signature; malformed keys or signatures verify as False."""
    try:
        public_key = load_public_key_from_hex(public_hex)
        raw_signature = bytes.fromhex(signature_hex)
    except ValueError:
        return False
    if len(raw_signature) != 64:
        return False
    r = int.from_bytes(raw_signature[:32], "big")
    s = int.from_bytes(raw_signature[32:], "big")
    if not is_canonical_signature(r, s):
        return False
    try:
        public_key.verify(encode_dss_signature(r, s), message, ec.ECDSA(hashes.SHA256()))
    except InvalidSignature:
        return False
    return True
