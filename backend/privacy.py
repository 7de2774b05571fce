import hashlib
import re

from errors import ValidationError

HASH_PREFIX = "0x"
_HASH_PATTERN = re.compile(r"^0x[0-9a-f]{64}$")


def hash_voter_identity(raw_identifier: str) -> str:
    """SHA-256 of the voter's national identifier, hex encoded with a 0x prefix."""
    if not isinstance(raw_identifier, str) or not raw_identifier.strip():
        raise ValidationError("Voter identifier is required", field_name="voter_id")
    digest = hashlib.sha256(raw_identifier.encode("utf-8")).hexdigest()
    return HASH_PREFIX + digest


def is_identity_hash(value: str) -> bool:
    return isinstance(value, str) and bool(_HASH_PATTERN.match(value))


def identity_hash_bytes(identity_hash: str) -> bytes:
    if not is_identity_hash(identity_hash):
        raise ValidationError("Voter hash must be 0x followed by 64 lowercase hex digits", field_name="voter_hash")
    return bytes.fromhex(identity_hash[len(HASH_PREFIX):])
