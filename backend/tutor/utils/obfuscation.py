"""Reversible obfuscation for backup payloads.

NOT encryption. The payload's UTF-8 bytes are XORed with the repeating
passphrase and base64-encoded. Anyone holding the output can recover the text
with little effort, so this only keeps casual readers out of a backup file.
"""

import base64
import binascii
import json
import logging
from itertools import cycle

from tutor.core.exceptions import DecryptionError

logger = logging.getLogger(__name__)


class NonSecureObfuscator:
    """XOR + base64 obfuscation. Do not use where confidentiality matters."""

    @staticmethod
    def _xor(data: bytes, key: bytes) -> bytes:
        return bytes(b ^ k for b, k in zip(data, cycle(key)))

    @staticmethod
    def _key(passphrase: str) -> bytes:
        if not passphrase:
            raise ValueError("Passphrase must not be empty")
        return passphrase.encode("utf-8")

    def obfuscate(self, text: str, passphrase: str) -> str:
        key = self._key(passphrase)
        return base64.b64encode(self._xor(text.encode("utf-8"), key)).decode("ascii")

    def deobfuscate(self, payload: str, passphrase: str) -> str:
        """Reverse `obfuscate`.

        A wrong passphrase either raises DecryptionError (the result is not
        valid UTF-8) or silently returns garbage; there is no integrity check.
        """
        key = self._key(passphrase)
        try:
            raw = base64.b64decode(payload, validate=True)
            return self._xor(raw, key).decode("utf-8")
        except (binascii.Error, ValueError) as e:
            logger.warning(f"Failed to deobfuscate payload: {e}")
            raise DecryptionError("Decryption failed") from e

    def obfuscate_snapshot(self, document: dict, passphrase: str) -> str:
        return self.obfuscate(json.dumps(document), passphrase)

    def deobfuscate_snapshot(self, payload: str, passphrase: str) -> dict:
        """Recover a snapshot document; anything that is not a JSON object raises DecryptionError."""
        text = self.deobfuscate(payload, passphrase)
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise DecryptionError("Decrypted payload is not valid JSON") from e
        if not isinstance(document, dict):
            raise DecryptionError("Decrypted payload is not a backup document")
        return document


obfuscator = NonSecureObfuscator()
