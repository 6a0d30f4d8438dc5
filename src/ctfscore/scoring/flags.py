"""Flag canonicalization and peppered hashing.

Plaintext flags are never stored. A flag is normalized (trim, Unicode NFKC,
lower-case unless the challenge is case sensitive) and hashed with
HMAC-SHA256 keyed by the server-held pepper.

Normalization policy: strings that differ visually but share an NFKC form
(full-width letters, ligatures, compatibility digits) are the same flag.
"""

from __future__ import annotations

import hashlib
import hmac
import unicodedata


def normalize_flag(raw: str, case_sensitive: bool) -> str:
    """Canonicalize a submitted or configured flag."""
    flag = unicodedata.normalize("NFKC", raw.strip())
    if not case_sensitive:
        flag = flag.lower()
    return flag


def hash_flag(normalized: str, pepper: str) -> str:
    """HMAC-SHA256 hex digest of an already normalized flag."""
    return hmac.new(pepper.encode("utf-8"), normalized.encode("utf-8"), hashlib.sha256).hexdigest()


def flag_matches(candidate_hash: str, stored_hash: str) -> bool:
    return hmac.compare_digest(candidate_hash, stored_hash)


def hash_meta(value: str) -> str:
    """Short SHA-256 fingerprint for IPs and user agents in the submission log."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]
