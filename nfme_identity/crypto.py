from __future__ import annotations

import hashlib
from typing import Optional, Tuple

from ecdsa import SigningKey, VerifyingKey, SECP256k1
from ecdsa.util import sigencode_string, sigdecode_string

ZERO_ADDRESS = "0x" + "00" * 20

CLAIM_DOMAIN = b"nfme.claim.v1"
SIGNED_MESSAGE_PREFIX = b"\x19NFMe Signed Message:\n32"

# One-byte type tags of the canonical claim encoding
_TAG_STRING = b"s"
_TAG_ADDRESS = b"a"
_TAG_BYTES = b"b"
_TAG_UINT = b"u"


def sha3(data: bytes) -> bytes:
    return hashlib.sha3_256(data).digest()


def to_address(value: str) -> str:
    """Normalise a 0x-prefixed 20-byte hex address to lowercase."""
    if not isinstance(value, str):
        raise ValueError(f"address must be a string, got {type(value).__name__}")
    raw = value[2:] if value.startswith(("0x", "0X")) else value
    if len(raw) != 40:
        raise ValueError(f"invalid address length: {value!r}")
    bytes.fromhex(raw)
    return "0x" + raw.lower()


def address_bytes(address: str) -> bytes:
    return bytes.fromhex(to_address(address)[2:])


def address_from_verifying_key(vk: VerifyingKey) -> str:
    # Raw encoding is X(32) || Y(32) without the 0x04 prefix
    return "0x" + sha3(vk.to_string())[-20:].hex()


def gen_secp256k1_keypair(seed: bytes | None = None) -> Tuple[SigningKey, VerifyingKey]:
    """Generate a secp256k1 keypair. If seed is provided, derive a deterministic key."""
    if seed is None:
        sk = SigningKey.generate(curve=SECP256k1)
    else:
        sk = SigningKey.from_string(hashlib.sha256(seed).digest(), curve=SECP256k1)
    return sk, sk.get_verifying_key()


class KeyPair:
    """A secp256k1 key controlling one externally owned ledger account."""

    def __init__(self, privkey_hex: str | None = None, seed: bytes | None = None):
        if privkey_hex:
            self._sk = SigningKey.from_string(bytes.fromhex(privkey_hex), curve=SECP256k1)
            self._vk = self._sk.get_verifying_key()
        else:
            self._sk, self._vk = gen_secp256k1_keypair(seed=seed)
        self.address = address_from_verifying_key(self._vk)

    @classmethod
    def from_seed(cls, seed: bytes | str) -> "KeyPair":
        if isinstance(seed, str):
            seed = seed.encode()
        return cls(seed=seed)

    def export_privkey_hex(self) -> str:
        return self._sk.to_string().hex()

    def sign_digest(self, digest: bytes) -> bytes:
        return sign_recoverable(self._sk, digest)

    def sign_message_hash(self, digest: bytes) -> bytes:
        """Sign a 32-byte digest with the personal-message prefix applied."""
        return self.sign_digest(signed_message_hash(digest))

    def __repr__(self) -> str:
        return f"KeyPair({self.address})"


def signed_message_hash(digest: bytes) -> bytes:
    return sha3(SIGNED_MESSAGE_PREFIX + digest)


def sign_recoverable(sk: SigningKey, digest: bytes) -> bytes:
    """Deterministically sign a digest; returns 65 bytes r||s||v with v in {27, 28}."""
    rs = sk.sign_digest_deterministic(digest, hashfunc=hashlib.sha256, sigencode=sigencode_string)
    expected = sk.get_verifying_key().to_string()
    candidates = VerifyingKey.from_public_key_recovery_with_digest(
        rs, digest, SECP256k1, sigdecode=sigdecode_string
    )
    for recovery_id, candidate in enumerate(candidates):
        if candidate.to_string() == expected:
            return rs + bytes([27 + recovery_id])
    raise ValueError("unable to determine recovery id")


def recover_signer(digest: bytes, signature: bytes) -> Optional[str]:
    """Recover the signing address from a 65-byte signature, or None if malformed."""
    if not isinstance(signature, (bytes, bytearray)) or len(signature) != 65:
        return None
    v = signature[64]
    if v >= 27:
        v -= 27
    if v not in (0, 1):
        return None
    order = SECP256k1.order
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    if not (0 < r < order and 0 < s < order):
        return None
    try:
        candidates = VerifyingKey.from_public_key_recovery_with_digest(
            bytes(signature[:64]), digest, SECP256k1, sigdecode=sigdecode_string
        )
    except Exception:
        return None
    if v >= len(candidates):
        return None
    return address_from_verifying_key(candidates[v])


def _enc_string(value: str) -> bytes:
    data = value.encode("utf-8")
    return _TAG_STRING + len(data).to_bytes(4, "big") + data


def _enc_bytes(value: bytes) -> bytes:
    return _TAG_BYTES + len(value).to_bytes(4, "big") + bytes(value)


def _enc_address(value: str) -> bytes:
    return _TAG_ADDRESS + address_bytes(value)


def _enc_uint(value: int) -> bytes:
    if value < 0 or value >= 1 << 256:
        raise ValueError(f"uint256 out of range: {value}")
    return _TAG_UINT + value.to_bytes(32, "big")


def claim_digest(
    identifier: str,
    issuer: str,
    subject: str,
    payload: bytes,
    valid_from: int,
    valid_to: int,
) -> bytes:
    """Canonical 32-byte digest over every signed claim field, in order."""
    return sha3(
        CLAIM_DOMAIN
        + _enc_string(identifier)
        + _enc_address(issuer)
        + _enc_address(subject)
        + _enc_bytes(payload)
        + _enc_uint(valid_from)
        + _enc_uint(valid_to)
    )
