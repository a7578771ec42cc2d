"""Message signing and verification for World Engine transactions.

Signatures are secp256k1 ECDSA over keccak256 of the canonical message
(no EIP-191 prefix), with RFC 6979 deterministic nonces via eth-account.
The encoded form is r || s || v as lowercase hex, without a 0x prefix,
where v is 0x1b or 0x1c.
"""

from __future__ import annotations
import logging

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_keys import keys
from web3 import Web3

from worldsign.constants import (
    PRIVATE_KEY_SIZE,
    RECOVERY_SUFFIXES,
    SIGNATURE_HEX_LENGTH,
)
from worldsign.errors import InvalidPrivateKey, InvalidSignatureParameters

logger = logging.getLogger(__name__)


def _strip_hex_prefix(value: str) -> str:
    return value[2:] if value[:2].lower() == "0x" else value


def load_private_key(private_key: str | bytes | None) -> LocalAccount:
    """Parse a hex (0x optional) or raw 32-byte private key into an account.

    Raises InvalidPrivateKey before any signing is attempted.
    """
    if private_key is None or len(private_key) == 0:
        raise InvalidPrivateKey("Private key is missing")

    if isinstance(private_key, str):
        try:
            key_bytes = bytes.fromhex(_strip_hex_prefix(private_key.strip()))
        except ValueError as e:
            raise InvalidPrivateKey("Private key is not valid hex") from e
    else:
        key_bytes = bytes(private_key)

    if len(key_bytes) != PRIVATE_KEY_SIZE:
        raise InvalidPrivateKey(
            f"Private key must be {PRIVATE_KEY_SIZE} bytes, got {len(key_bytes)}"
        )

    try:
        return Account.from_key(key_bytes)
    except Exception as e:
        # Out-of-range scalars (zero, >= curve order) are rejected here
        raise InvalidPrivateKey("Private key is not a valid secp256k1 scalar") from e


def derive_address(private_key: str | bytes) -> str:
    """Return the EIP-55 checksummed address for a private key."""
    return load_private_key(private_key).address


def hash_message(message: str) -> bytes:
    """Keccak-256 of the UTF-8 encoded message."""
    return bytes(Web3.keccak(text=message))


def encode_signature(r: int, s: int, v: int) -> str:
    """Encode (r, s, v) as 130 lowercase hex chars with a 1b/1c suffix."""
    suffix = RECOVERY_SUFFIXES.get(v)
    if suffix is None:
        raise InvalidSignatureParameters(f"Unexpected recovery value: {v}")
    return r.to_bytes(32, "big").hex() + s.to_bytes(32, "big").hex() + suffix


def sign_message(message: str, private_key: str | bytes) -> str:
    """Sign the keccak256 hash of a canonical message.

    Identical inputs always produce the identical signature.
    """
    account = load_private_key(private_key)
    signed = Account.unsafe_sign_hash(hash_message(message), account.key)
    return encode_signature(signed.r, signed.s, signed.v)


def decode_signature(signature: str) -> tuple[int, int, int]:
    """Split a hex signature into (v, r, s), normalizing v to 27/28.

    Accepts an optional 0x prefix and either 1b/1c or 00/01 recovery bytes.
    """
    sig_hex = _strip_hex_prefix(signature)
    if len(sig_hex) != SIGNATURE_HEX_LENGTH:
        raise InvalidSignatureParameters(
            f"Signature must be {SIGNATURE_HEX_LENGTH} hex chars, got {len(sig_hex)}"
        )
    try:
        raw = bytes.fromhex(sig_hex)
    except ValueError as e:
        raise InvalidSignatureParameters("Signature is not valid hex") from e

    r = int.from_bytes(raw[:32], "big")
    s = int.from_bytes(raw[32:64], "big")
    v = raw[64]
    if v in (0, 1):
        v += 27
    if v not in RECOVERY_SUFFIXES:
        raise InvalidSignatureParameters(f"Unexpected recovery value: {v}")
    return v, r, s


def recover_signer(message: str, signature: str) -> str:
    """Recover the checksummed signer address from a message and signature."""
    v, r, s = decode_signature(signature)
    public_key = keys.Signature(vrs=(v - 27, r, s)).recover_public_key_from_msg_hash(
        hash_message(message)
    )
    return public_key.to_checksum_address()


def verify_signature(address: str, message: str, signature: str) -> bool:
    """Check that a signature over message was produced by address.

    Comparison is case-insensitive on the hex address.
    """
    try:
        recovered = recover_signer(message, signature)
    except Exception as e:
        logger.debug("Signature recovery failed: %s", e)
        return False
    return recovered.lower() == address.lower()
