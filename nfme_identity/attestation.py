from __future__ import annotations

import json
from pathlib import Path
from dataclasses import replace
from typing import Any, Dict

from jsonschema import validate as jsonschema_validate

from .crypto import KeyPair, to_address
from .models import Claim

SCHEMA_DIR = Path(__file__).parent / "schemas"


def load_schema(name: str) -> Dict[str, Any]:
    with open(SCHEMA_DIR / f"{name}.schema.json", "r", encoding="utf-8") as f:
        return json.load(f)


class ClaimIssuer:
    """Holds the attester's key and signs claims bound to Identity accounts."""

    def __init__(self, privkey_hex: str | None = None, name: str = "Issuer", seed: bytes | None = None):
        self._key = KeyPair(privkey_hex=privkey_hex, seed=seed)
        self.address = self._key.address
        self.name = name

    def export_privkey_hex(self) -> str:
        return self._key.export_privkey_hex()

    def sign_claim(
        self,
        identifier: str,
        subject: str,
        payload: bytes = b"",
        valid_from: int = 0,
        valid_to: int = 0,
    ) -> Claim:
        """Create a claim for `subject` signed by this issuer.

        The signature covers identifier, issuer, subject, payload and both
        validity bounds, so changing any of them after signing invalidates it.
        """
        if valid_to and valid_from and valid_to < valid_from:
            raise ValueError("valid_to must not precede valid_from")
        unsigned = Claim(
            identifier=identifier,
            issuer=self.address,
            subject=to_address(subject),
            payload=payload,
            valid_from=valid_from,
            valid_to=valid_to,
        )
        signature = self._key.sign_message_hash(unsigned.digest())
        return replace(unsigned, signature=signature)


def claim_to_json(claim: Claim) -> Dict[str, Any]:
    return claim.to_dict()


def claim_from_json(data: Dict[str, Any]) -> Claim:
    """Validate claim JSON against the schema and build a Claim."""
    jsonschema_validate(data, load_schema("claim"))
    return Claim.from_dict(data)


def claim_setter_args(claim: Claim) -> tuple:
    """Arguments for Identity.setClaim in declaration order."""
    return (
        claim.identifier,
        claim.issuer,
        claim.subject,
        claim.payload,
        claim.valid_from,
        claim.valid_to,
        claim.signature,
    )
