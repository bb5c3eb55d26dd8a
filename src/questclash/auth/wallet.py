"""
Ethereum wallet sign-in helpers.

The client signs a human-readable message (EIP-191 ``personal_sign``) whose
last 32 characters are the hex nonce previously issued by
``GET /api/auth/nonce``. Verification recovers the signer with eth-account
and compares it to the claimed address.
"""

from __future__ import annotations

import re

from eth_account import Account
from eth_account.messages import encode_defunct

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_NONCE_RE = re.compile(r"([a-fA-F0-9]{32})\s*$")


def is_valid_address(address: str) -> bool:
    """True for a 0x-prefixed, 20-byte hex address (any checksum casing)."""
    return bool(_ADDRESS_RE.match(address))


def normalize_address(address: str) -> str:
    """Canonical storage form: lower-case hex."""
    return address.strip().lower()


def extract_nonce(message: str) -> str | None:
    """Return the trailing 32-hex-char nonce embedded in a sign-in message."""
    match = _NONCE_RE.search(message)
    return match.group(1).lower() if match else None


def recover_signer(message: str, signature: str) -> str | None:
    """Recover the lower-cased signer address, or None for a malformed signature."""
    try:
        signer = Account.recover_message(encode_defunct(text=message), signature=signature)
    except Exception:
        return None
    return normalize_address(signer)


def verify_wallet_signature(address: str, message: str, signature: str) -> bool:
    """
    Verify an EIP-191 personal-sign signature.

    Args:
        address: Claimed signer (0x-prefixed hex).
        message: The exact text that was signed.
        signature: 65-byte signature as 0x-prefixed hex.

    Returns:
        True if the recovered signer matches ``address``.
    """
    if not is_valid_address(address):
        return False
    signer = recover_signer(message, signature)
    return signer is not None and signer == normalize_address(address)
