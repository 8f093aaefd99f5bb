"""Content hashing utilities.

Features:
- SHA-256 fingerprint of raw page bytes (integrity + incidental dedup)
- Salted verifiers for secrets such as the admin PIN

Design:
- Stateless; digests depend only on the bytes, never on metadata.
- Verifiers are stored as "salt$digest"; the raw secret is never kept.
"""
from __future__ import annotations

import hashlib
import hmac
import secrets


class ContentHasher:
    algorithm = "sha256"

    def digest(self, data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

    def digest_text(self, text: str) -> str:
        return self.digest(text.encode("utf-8"))

    def make_verifier(self, secret: str) -> str:
        salt = secrets.token_hex(16)
        return f"{salt}${self.digest_text(salt + secret)}"

    def verify(self, secret: str, verifier: str) -> bool:
        try:
            salt, expected = verifier.split("$")
        except ValueError:
            return False
        return hmac.compare_digest(self.digest_text(salt + secret), expected)
