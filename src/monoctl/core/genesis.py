"""Genesis validator.

A genesis file is accepted only on two independent checks: its declared
chain id, and its SHA-256 against a digest that comes from somewhere else
(the peer document or the operator). A digest inside the genesis itself
is never consulted.
"""

from __future__ import annotations

import hashlib
import json
import re

from monoctl.errors import ChainIdMismatch, DigestMismatch, InvalidGenesis


_SHA256_HEX = re.compile(r"^[0-9a-f]{64}$")


def validate(data: bytes) -> str:
    """Parse genesis bytes and return the declared chain id.

    Raises InvalidGenesis if the outer JSON does not parse, is not an
    object, or has no non-empty string ``chain_id``.
    """
    try:
        doc = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidGenesis(f"invalid genesis JSON: {e}") from e
    if not isinstance(doc, dict):
        raise InvalidGenesis("genesis must be a JSON object")
    chain_id = doc.get("chain_id")
    if not isinstance(chain_id, str) or not chain_id:
        raise InvalidGenesis("genesis missing chain_id field")
    return chain_id


def digest(data: bytes) -> str:
    """SHA-256 of the raw bytes, lowercase hex."""
    return hashlib.sha256(data).hexdigest()


def check_chain_id(data: bytes, expected_chain_id: str) -> str:
    """Validate and require the expected chain id. Returns the chain id."""
    chain_id = validate(data)
    if chain_id != expected_chain_id:
        raise ChainIdMismatch(expected_chain_id, chain_id, source="genesis")
    return chain_id


def verify_digest(data: bytes, expected_sha256: str) -> str:
    """Compare the digest of ``data`` with a trusted digest.

    Comparison is case-insensitive. Raises DigestMismatch, which is always
    fatal. A malformed expected digest can never match and is reported
    the same way.
    """
    expected = expected_sha256.strip().lower()
    actual = digest(data)
    if not _SHA256_HEX.match(expected) or actual != expected:
        raise DigestMismatch(expected, actual)
    return actual
