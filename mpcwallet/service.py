"""
Signing request handling.

Request:  {"clientShare": {"share": hex, "index": 1 | 3},
           "senderAddress": address, "recipient": address, "amount": number}
Response: {"signature": {"r", "s", "v"}} or {"error": {"kind", "message"}}

The server share is looked up by senderAddress, never taken from the caller.
Turning (sender, recipient, amount) into the digest to sign, and broadcasting
the result, belong to whoever builds transactions; it is handed in as
tx_hasher.
"""

import logging
from decimal import Decimal
from typing import Callable

from .curve import scalar_from_hex
from .errors import MPCWalletError, ShareNotFound
from .messages import parse_signing_request
from .store import ShareStore
from .tss import sign_digest

logger = logging.getLogger(__name__)

TransactionHasher = Callable[[str, str, Decimal], bytes]


class SigningService:
    def __init__(self, store: ShareStore, tx_hasher: TransactionHasher):
        self.store = store
        self.tx_hasher = tx_hasher

    def sign(self, request: dict):
        parsed = parse_signing_request(request)
        client = parsed.client_share.to_client_share()
        sender, recipient, amount = parsed.sender_address, parsed.recipient, parsed.amount

        server_hex = self.store.get_share(sender)
        if server_hex is None:
            raise ShareNotFound(f"No server share for {sender.lower()}, run key generation first")
        server_share = scalar_from_hex(server_hex, "stored server share")

        digest = self.tx_hasher(sender, recipient, amount)
        signature = sign_digest(digest, server_share, client, expected_address=sender)
        logger.info("Signed transfer of %s from %s to %s", amount, sender.lower(), recipient.lower())
        return signature

    def handle(self, request: dict) -> dict:
        try:
            return {"signature": self.sign(request).to_dict()}
        except MPCWalletError as e:
            logger.warning("Signing request rejected with %s: %s", e.kind, e)
            return {"error": {"kind": e.kind, "message": str(e)}}
