import json

import pytest

from nfme_identity.attestation import ClaimIssuer, claim_from_json
from nfme_identity.cli import main
from nfme_identity.crypto import KeyPair
from webapp.crypto_utils import open_private_key

IDENTITY = "0x" + "ab" * 20


@pytest.fixture
def issuer():
    return ClaimIssuer(seed=b"alice", name="Alice")


@pytest.fixture
def claim_file(tmp_path, issuer):
    out = tmp_path / "claims" / "claim.json"
    rc = main([
        "sign-claim",
        "--privkey-hex", issuer.export_privkey_hex(),
        "--subject", IDENTITY,
        "--valid-to", "100",
        "--out", str(out),
    ])
    assert rc == 0
    return out


def test_keygen_with_seed_is_deterministic(capsys):
    assert main(["keygen", "--seed", "bob"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["address"] == KeyPair.from_seed("bob").address
    assert KeyPair(privkey_hex=data["privkeyHex"]).address == data["address"]


def test_sign_claim_writes_json(claim_file, issuer):
    data = json.loads(claim_file.read_text())
    assert data["issuer"] == issuer.address
    assert data["subject"] == IDENTITY
    assert data["identifier"] == "nfme_mint_allowed"
    assert data["validTo"] == 100
    assert data["signature"].startswith("0x") and len(data["signature"]) == 2 + 130


def test_digest_matches_signed_claim(capsys, claim_file, issuer):
    main(["digest", "--issuer", issuer.address, "--subject", IDENTITY, "--valid-to", "100"])
    out = json.loads(capsys.readouterr().out)
    claim = claim_from_json(json.loads(claim_file.read_text()))
    assert out["digest"] == "0x" + claim.digest().hex()


def test_verify_claim_passes(capsys, claim_file, issuer):
    rc = main([
        "verify-claim",
        "--claim", str(claim_file),
        "--issuer", issuer.address,
        "--identity", IDENTITY,
        "--block-number", "50",
    ])
    out = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert out["valid"] is True
    assert out["reason"] is None
    assert [s["name"] for s in out["steps"]] == [
        "Claim present",
        "Issuer",
        "Receiver",
        "Signature",
        "Valid from",
        "Valid to",
        "Revocation",
    ]


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"--identity": "0x" + "cd" * 20}, "Wrong claim receiver"),
        ({"--issuer": "0x" + "ef" * 20}, "Wrong claim issuer"),
        ({"--identifier": "something_else"}, "Required claim not available"),
        ({"--block-number": "101"}, "Claim not valid anymore"),
    ],
)
def test_verify_claim_failures(capsys, claim_file, issuer, overrides, reason):
    args = {
        "--claim": str(claim_file),
        "--issuer": issuer.address,
        "--identity": IDENTITY,
        "--block-number": "50",
    }
    args.update(overrides)
    argv = ["verify-claim"] + [item for pair in args.items() for item in pair]
    rc = main(argv)
    out = json.loads(capsys.readouterr().out)
    assert rc == 3
    assert out["valid"] is False
    assert out["reason"] == reason
    assert out["steps"][-1]["status"] == "fail"


def test_verify_claim_rejects_tampered_payload(capsys, tmp_path, claim_file, issuer):
    data = json.loads(claim_file.read_text())
    data["payload"] = "0x01"
    tampered = tmp_path / "tampered.json"
    tampered.write_text(json.dumps(data))
    rc = main(["verify-claim", "--claim", str(tampered), "--issuer", issuer.address, "--identity", IDENTITY])
    assert rc == 3
    assert json.loads(capsys.readouterr().out)["reason"] == "Claim signature not valid"


def test_verify_claim_invalid_json(capsys, tmp_path, issuer):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"identifier": "x", "issuer": "nope"}))
    rc = main(["verify-claim", "--claim", str(bad), "--issuer", issuer.address, "--identity", IDENTITY])
    assert rc == 2
    assert "Invalid claim" in capsys.readouterr().err


def test_keygen_sealed(tmp_path):
    out = tmp_path / "key.json"
    assert main(["keygen", "--seed", "issuer", "--passphrase", "pw", "--out", str(out)]) == 0
    data = json.loads(out.read_text())
    assert "privkeyHex" not in data
    assert KeyPair(privkey_hex=open_private_key("pw", data["sealedKey"])).address == data["address"]
