"""
Storage for the server party's final share.

Only the server share is ever persisted: encrypted with AES-256-CBC, keyed by
the lower-cased wallet address, next to the IV and the wallet public key.
The backing database is somebody else's problem; ShareStore keeps records in
a dict and is the seam a real database adapter replaces.
"""

import logging
import os
import threading
from dataclasses import dataclass
from hashlib import sha256
from typing import Dict, Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

IV_LENGTH = 16


class ShareCipher:
    """encrypt(text) -> {"content", "iv"}; decrypt({"content", "iv"}) -> text."""

    def __init__(self, key_material: str):
        if not key_material:
            raise ValueError("Encryption key material must not be empty")
        self._key = sha256(key_material.encode()).digest()

    def encrypt(self, text: str) -> Dict[str, str]:
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        data = padder.update(text.encode()) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        content = encryptor.update(data) + encryptor.finalize()
        return {"content": content.hex(), "iv": iv.hex()}

    def decrypt(self, blob: Dict[str, str]) -> str:
        iv = bytes.fromhex(blob["iv"])
        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        data = decryptor.update(bytes.fromhex(blob["content"])) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return (unpadder.update(data) + unpadder.finalize()).decode()


@dataclass(frozen=True)
class ShareRecord:
    address: str
    encrypted_share: str
    iv: str
    public_key: str


class ShareStore:
    def __init__(self, cipher: ShareCipher):
        self._cipher = cipher
        self._records: Dict[str, ShareRecord] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "ShareStore":
        return cls(ShareCipher(settings.encryption_key))

    def __len__(self):
        return len(self._records)

    def __contains__(self, address):
        return address.lower() in self._records

    def save_share(self, address: str, share_hex: str, public_key: str = "") -> ShareRecord:
        """Upsert: a second DKG for the same address replaces the old share."""
        normalized = address.lower()
        blob = self._cipher.encrypt(share_hex)
        record = ShareRecord(normalized, blob["content"], blob["iv"], public_key)
        with self._lock:
            replaced = normalized in self._records
            self._records[normalized] = record
        logger.info("%s server share for %s", "Replaced" if replaced else "Secured", normalized)
        return record

    def get_record(self, address: str) -> Optional[ShareRecord]:
        with self._lock:
            return self._records.get(address.lower())

    def get_share(self, address: str) -> Optional[str]:
        record = self.get_record(address)
        if record is None:
            return None
        return self._cipher.decrypt({"content": record.encrypted_share, "iv": record.iv})
