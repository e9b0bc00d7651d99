from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict

from jsonschema import ValidationError

from .attestation import ClaimIssuer, claim_from_json, claim_to_json
from .crypto import KeyPair, claim_digest, signed_message_hash, to_address
from .issuer import DEFAULT_IDENTIFIER
from .models import hex_decode
from .verification import check_report
from webapp.crypto_utils import seal_private_key


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _dump_json(path: str | None, obj: Dict[str, Any]):
    data = json.dumps(obj, indent=2)
    if path:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(data + "\n")
    else:
        print(data)


def cmd_keygen(args: argparse.Namespace) -> int:
    key = KeyPair(seed=args.seed.encode() if args.seed else None)
    out = {"address": key.address}
    if args.passphrase:
        # Sealed form is what the issuer service reads from ISSUER_KEY_SEALED
        out["sealedKey"] = seal_private_key(args.passphrase, key.export_privkey_hex())
    else:
        out["privkeyHex"] = key.export_privkey_hex()
    _dump_json(args.out, out)
    return 0


def cmd_digest(args: argparse.Namespace) -> int:
    digest = claim_digest(
        args.identifier,
        to_address(args.issuer),
        to_address(args.subject),
        hex_decode(args.payload),
        args.valid_from,
        args.valid_to,
    )
    _dump_json(None, {"digest": "0x" + digest.hex(), "messageHash": "0x" + signed_message_hash(digest).hex()})
    return 0


def cmd_sign_claim(args: argparse.Namespace) -> int:
    issuer = ClaimIssuer(privkey_hex=args.privkey_hex)
    claim = issuer.sign_claim(
        args.identifier,
        args.subject,
        payload=hex_decode(args.payload),
        valid_from=args.valid_from,
        valid_to=args.valid_to,
    )
    _dump_json(args.out, claim_to_json(claim))
    return 0


def cmd_verify_claim(args: argparse.Namespace) -> int:
    try:
        claim = claim_from_json(_load_json(args.claim))
    except (ValidationError, ValueError, KeyError) as e:
        print(f"Invalid claim: {e}", file=sys.stderr)
        return 2

    # A claim stored under another identifier would not be found by the consumer
    lookup = claim if claim.identifier == args.identifier else None
    steps = check_report(
        lookup,
        trusted_issuer=to_address(args.issuer),
        subject=to_address(args.identity),
        block_number=args.block_number,
    )
    failed = next((s for s in steps if not s.ok), None)
    result = {
        "valid": failed is None,
        "reason": failed.reason if failed else None,
        "steps": [{"name": s.name, "status": "ok" if s.ok else "fail"} for s in steps],
    }
    _dump_json(None, result)
    return 0 if failed is None else 3


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nfme-identity", description="NFMe identity claim tools")
    sub = p.add_subparsers(dest="command", required=True)

    g1 = sub.add_parser("keygen", help="Generate an account key")
    g1.add_argument("--seed", help="Derive the key deterministically from this seed")
    g1.add_argument("--passphrase", help="Seal the private key with this passphrase instead of printing it")
    g1.add_argument("--out", help="Output file for the key (JSON)")
    g1.set_defaults(func=cmd_keygen)

    g2 = sub.add_parser("digest", help="Compute the canonical digest of claim fields")
    g2.add_argument("--identifier", default=DEFAULT_IDENTIFIER)
    g2.add_argument("--issuer", required=True)
    g2.add_argument("--subject", required=True)
    g2.add_argument("--payload", default="0x")
    g2.add_argument("--valid-from", type=int, default=0)
    g2.add_argument("--valid-to", type=int, default=0)
    g2.set_defaults(func=cmd_digest)

    g3 = sub.add_parser("sign-claim", help="Sign a claim for an Identity account")
    g3.add_argument("--privkey-hex", required=True, help="32-byte hex private key of the issuer")
    g3.add_argument("--subject", required=True, help="Identity account address")
    g3.add_argument("--identifier", default=DEFAULT_IDENTIFIER)
    g3.add_argument("--payload", default="0x", help="Hex payload")
    g3.add_argument("--valid-from", type=int, default=0)
    g3.add_argument("--valid-to", type=int, default=0)
    g3.add_argument("--out", help="Output file for the claim (JSON)")
    g3.set_defaults(func=cmd_sign_claim)

    g4 = sub.add_parser("verify-claim", help="Check a claim offline (revocations are not consulted)")
    g4.add_argument("--claim", required=True, help="Claim JSON path")
    g4.add_argument("--issuer", required=True, help="Trusted issuer address")
    g4.add_argument("--identity", required=True, help="Identity account presenting the claim")
    g4.add_argument("--identifier", default=DEFAULT_IDENTIFIER, help="Identifier the consumer requires")
    g4.add_argument("--block-number", type=int, default=0)
    g4.set_defaults(func=cmd_verify_claim)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
