from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .crypto import claim_digest, to_address


def hex_encode(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def hex_decode(data: str) -> bytes:
    if data.startswith(("0x", "0X")):
        data = data[2:]
    return bytes.fromhex(data)


@dataclass(frozen=True)
class Claim:
    """A signed attestation stored in an Identity's claim store.

    - identifier: purpose tag, also the storage key (e.g. "nfme_mint_allowed")
    - issuer: address of the attester
    - subject: address of the Identity the claim is bound to
    - payload: opaque bytes
    - valid_from / valid_to: block-height bounds, 0 means unbounded on that side
    - signature: 65-byte r||s||v over all preceding fields
    """

    identifier: str
    issuer: str
    subject: str
    payload: bytes = b""
    valid_from: int = 0
    valid_to: int = 0
    signature: bytes = b""

    def digest(self) -> bytes:
        return claim_digest(
            self.identifier, self.issuer, self.subject, self.payload, self.valid_from, self.valid_to
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "issuer": self.issuer,
            "subject": self.subject,
            "payload": hex_encode(self.payload),
            "validFrom": self.valid_from,
            "validTo": self.valid_to,
            "signature": hex_encode(self.signature),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Claim":
        return cls(
            identifier=data["identifier"],
            issuer=to_address(data["issuer"]),
            subject=to_address(data["subject"]),
            payload=hex_decode(data.get("payload", "0x")),
            valid_from=int(data.get("validFrom", 0)),
            valid_to=int(data.get("validTo", 0)),
            signature=hex_decode(data.get("signature", "0x")),
        )


@dataclass(frozen=True)
class Event:
    """A log entry emitted by a contract; `args` keeps declaration order."""

    address: str
    name: str
    args: Dict[str, Any]
    block_number: int
    log_index: int

    def arg(self, position: int) -> Any:
        return list(self.args.values())[position]


@dataclass
class Receipt:
    tx_hash: str
    block_number: int
    sender: str
    to: Optional[str]
    return_value: Any = None
    events: List[Event] = field(default_factory=list)
    contract_address: Optional[str] = None

    def events_named(self, name: str) -> List[Event]:
        return [e for e in self.events if e.name == name]
