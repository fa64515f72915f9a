"""
Legacy wallet flow: the private key is generated whole, split 2-of-3 with
plain Shamir and handed out as shares A, B and C. Sending reassembles it.
Strictly weaker than the DKG flow, which never has the key in one place.
"""

import logging
from collections import namedtuple
from typing import List

from eth_utils import is_address

from .curve import address_from_point, pub_key_from_priv, scalar_from_hex, uncompressed_hex
from .errors import AddressMismatch, MalformedInput
from .feldman import random_scalar
from .shamir import combine_shares, split_secret

logger = logging.getLogger(__name__)

LEGACY_TOTAL_SHARES = 3
LEGACY_THRESHOLD = 2

LegacyWallet = namedtuple("LegacyWallet", "address public_key private_key shares")


def derive_keys(private_key: str):
    """0x-prefixed private key hex -> (uncompressed public key hex, address)."""
    secret = scalar_from_hex(private_key, "private key")
    if secret == 0:
        raise MalformedInput("Private key must not be zero")
    pub = pub_key_from_priv(secret)
    return "0x" + uncompressed_hex(pub), address_from_point(pub)


def create_wallet() -> LegacyWallet:
    private_key = "0x" + random_scalar().to_bytes(32, "big").hex()
    public_key, address = derive_keys(private_key)
    raw = bytes.fromhex(private_key[2:])
    shares = [
        {"id": chr(ord("A") + i), "label": f"Share {chr(ord('A') + i)}", "value": value}
        for i, value in enumerate(split_secret(raw, LEGACY_TOTAL_SHARES, LEGACY_THRESHOLD))
    ]
    logger.info("Created legacy wallet %s", address)
    return LegacyWallet(address, public_key, private_key, shares)


def reconstruct_private_key(shares: List[str], sender: str) -> str:
    """
    Plain Shamir cannot tell a wrong combination from a right one, so the
    recombined key has to derive the sender's address before it is used.
    """
    if not isinstance(shares, list) or len(shares) < LEGACY_THRESHOLD:
        raise MalformedInput(f"At least {LEGACY_THRESHOLD} shares are required")
    if not isinstance(sender, str) or not is_address(sender):
        raise MalformedInput("A valid sender address is required")
    private_key = "0x" + combine_shares(shares).hex()
    try:
        _, address = derive_keys(private_key)
    except MalformedInput:
        raise AddressMismatch("Reconstructed key is not a valid private key") from None
    if address.lower() != sender.lower():
        raise AddressMismatch(
            "Invalid Shares: Reconstructed wallet address does not match sender address.")
    return private_key
