"""
Threshold signing by momentary reconstruction.

This is not GG20: the server share (party 2) and one client held share
(party 1 or 3) are combined with Lagrange coefficients into the wallet
private key, the digest is signed and the key is dropped again. In a
production GG20 the key is never reconstructed.

    x = share_client * L_client + share_server * L_server
    L_i = prod_{j != i} j / (j - i)
"""

import logging
from collections import namedtuple

from .curve import (address_from_point, canonicalize, ecdsa_sign_digest, order,
                    pub_key_from_priv)
from .dkg import CLIENT_INDEX, RECOVERY_INDEX, SERVER_INDEX
from .errors import AddressMismatch, MalformedInput
from .feldman import interpolate_at_zero

logger = logging.getLogger(__name__)

CLIENT_SHARE_INDICES = (CLIENT_INDEX, RECOVERY_INDEX)
# Ethereum legacy signatures carry v = 27 + recovery id.
V_OFFSET = 27

ClientShare = namedtuple("ClientShare", "share index")


class Signature(namedtuple("Signature", "r s v")):
    def __repr__(self):
        return f"{self.r:0>64x}{self.s:0>64x}{self.v:02x}"

    def to_dict(self):
        return {"r": f"0x{self.r:0>64x}", "s": f"0x{self.s:0>64x}", "v": self.v}


class ScopedSecret:
    """
    A scalar that only lives inside a with block. The bytes are kept in a
    bytearray that is overwritten with zeros on exit, whatever the exit path.
    Python ints are immutable, so the int returned by value is a transient copy.
    """

    def __init__(self, value: int):
        self._buf = bytearray(value.to_bytes(32, "big"))
        self._released = False

    @property
    def value(self) -> int:
        if self._released:
            raise RuntimeError("Secret was already released")
        return int.from_bytes(self._buf, "big")

    def release(self):
        for i in range(len(self._buf)):
            self._buf[i] = 0
        self._released = True

    @property
    def released(self):
        return self._released

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    def __repr__(self):
        return "ScopedSecret(<redacted>)"


def reconstruct_signing_key(client: ClientShare, server_share: int) -> ScopedSecret:
    return ScopedSecret(interpolate_at_zero({client.index: client.share, SERVER_INDEX: server_share}))


def sign_digest(digest: bytes, server_share: int, client: ClientShare, expected_address=None) -> Signature:
    """
    With expected_address set, a pair of shares that reconstructs some other
    key is refused instead of producing a signature nobody can use.
    """
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != 32:
        raise MalformedInput("Digest must be exactly 32 bytes")
    if client.index not in CLIENT_SHARE_INDICES:
        raise MalformedInput(f"Client share index must be one of {CLIENT_SHARE_INDICES}")
    if not 0 < server_share < order:
        raise MalformedInput("Server share out of range")

    with reconstruct_signing_key(client, server_share) as key:
        if key.value == 0:
            raise MalformedInput("Shares reconstruct to the zero scalar")
        if expected_address is not None:
            derived = address_from_point(pub_key_from_priv(key.value))
            if derived.lower() != expected_address.lower():
                raise AddressMismatch("Shares do not reconstruct the key of the sender address")
        sig = canonicalize(ecdsa_sign_digest(key.value, bytes(digest)))
    logger.debug("Signed digest with parties %d and %d", client.index, SERVER_INDEX)
    return Signature(sig.r, sig.s, (sig.recid & 1) + V_OFFSET)
